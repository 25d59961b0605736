"""
Prompt loader for the generation stages.

Templates live in agile_planner/prompts/<name>.md and use str.format()
placeholders: {variable_name}. Use {{ and }} for literal braces, which the
JSON examples in the templates need.

HTML comments (<!-- ... -->) are stripped before rendering so templates can
carry notes that never reach the model.
"""

import logging
import re
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)

__all__ = ["PromptError", "load_prompt", "render_prompt", "clear_cache", "PROMPTS_DIR"]

_HTML_COMMENT_PATTERN = re.compile(r'<!--.*?-->\s*', re.DOTALL)

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"


class PromptError(Exception):
    """Raised when prompt loading or rendering fails."""
    pass


@lru_cache(maxsize=16)
def load_prompt(name: str) -> str:
    """
    Load a prompt template by name (cached).

    Raises:
        PromptError: If the prompt file doesn't exist
    """
    prompt_path = PROMPTS_DIR / f"{name}.md"
    if not prompt_path.exists():
        raise PromptError(f"Prompt template '{name}' not found. Expected file: {prompt_path}")

    logger.debug(f"Loading prompt template: {name}")
    content = prompt_path.read_text(encoding="utf-8")
    return _HTML_COMMENT_PATTERN.sub('', content).lstrip()


def render_prompt(name: str, **kwargs) -> str:
    """
    Load and render a prompt template with variables.

    Raises:
        PromptError: If the template is missing or a required variable is not given

    Example:
        render_prompt('feature', feature_description='CSV export', story_count=3, ...)
    """
    template = load_prompt(name)
    try:
        return template.format(**kwargs)
    except KeyError as e:
        raise PromptError(
            f"Missing required variable {e} in prompt '{name}'. "
            f"Provided: {list(kwargs.keys())}"
        ) from e


def clear_cache():
    """Clear the prompt cache (useful for tests)."""
    load_prompt.cache_clear()
