"""
Backlog generation through an external agent CLI.

Kept deliberately thin: render a prompt, run the configured agent, parse
the JSON it returns. Everything downstream works on the parsed backlog.
"""

from agile_planner.generation.agent import GenerationError, run_agent, strip_markdown_fences
from agile_planner.generation.backlog import generate_backlog
from agile_planner.generation.feature import feature_to_backlog, generate_feature

__all__ = [
    "GenerationError",
    "run_agent",
    "strip_markdown_fences",
    "generate_backlog",
    "generate_feature",
    "feature_to_backlog",
]
