"""
Agile planner.

Turns a structured project plan (epics, features, user stories, MVP and
iterations) into a cross-linked markdown tree, and serves that operation
over JSON-RPC on stdio.
"""

__version__ = "0.4.0"
