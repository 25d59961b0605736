"""
Backlog materialization.

Turns a validated backlog into the markdown tree under
.agile-planner-backlog/ and reports what was written.
"""

from agile_planner.backlog.models import Backlog, Epic, Feature, UserStory, StoryRef, Iteration, Mvp
from agile_planner.backlog.materializer import (
    MaterializeContext,
    MaterializationError,
    MaterializationResult,
    materialize,
)

__all__ = [
    "Backlog",
    "Epic",
    "Feature",
    "UserStory",
    "StoryRef",
    "Iteration",
    "Mvp",
    "MaterializeContext",
    "MaterializationError",
    "MaterializationResult",
    "materialize",
]
