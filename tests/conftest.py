"""Shared fixtures for agile_planner tests."""

import copy

import pytest


SAMPLE_BACKLOG = {
    "projectName": "Shop",
    "projectDescription": "An online shop",
    "epics": [
        {
            "id": "ep1",
            "title": "Catalog",
            "description": "Browse products",
            "features": [
                {
                    "id": "f1",
                    "title": "Search",
                    "description": "Find products",
                    "business_value": "Customers find what they want",
                    "stories": [
                        {
                            "id": "s1",
                            "title": "Search by name",
                            "description": "As a shopper I search by name",
                            "acceptanceCriteria": ["c1"],
                            "tasks": ["t1"],
                            "priority": "HIGH",
                        },
                        {
                            "id": "s2",
                            "title": "Filter results",
                            "description": "As a shopper I filter",
                            "acceptance_criteria": ["c2"],
                            "tasks": ["t2"],
                            "dependencies": ["s1"],
                        },
                    ],
                },
                {"id": "f2", "title": "Empty feature", "stories": []},
            ],
        },
        {"id": "ep2", "title": "Checkout", "features": []},
    ],
    "mvp": ["s1"],
    "iterations": [
        {"name": "Sprint 1", "goal": "Search works", "stories": ["s1", "s2"]},
    ],
}


@pytest.fixture
def backlog():
    """A fresh copy of the sample backlog."""
    return copy.deepcopy(SAMPLE_BACKLOG)
