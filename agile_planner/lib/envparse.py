"""
Safe KEY=value parser for planner .env files.

Values are taken literally. Nothing is expanded or executed, and values
carrying shell metacharacters are refused so a config file can never be
mistaken for a script.
"""

import re
from pathlib import Path

FORBIDDEN_PATTERNS = [
    r'`',           # backticks
    r'\$\(',        # command substitution
    r'\$\{',        # variable expansion
    r';',           # command chaining
    r'&&',
    r'\|',          # pipes and OR chaining
]

KEY_PATTERN = re.compile(r'^[A-Z][A-Z0-9_]*$')


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def parse_env_text(text: str, source: str = "<env>") -> dict[str, str]:
    """
    Parse env-file content into a dict.

    Accepts an optional leading ``export`` on each assignment.

    Raises:
        ValueError: on a malformed line, a bad key or a forbidden value
    """
    result: dict[str, str] = {}

    for lineno, raw in enumerate(text.splitlines(), 1):
        line = raw.strip()
        if not line or line.startswith('#'):
            continue

        if line.startswith('export '):
            line = line[len('export '):].lstrip()

        key, sep, value = line.partition('=')
        if not sep:
            raise ValueError(f"{source}:{lineno}: expected KEY=value")

        key = key.strip()
        if not KEY_PATTERN.match(key):
            raise ValueError(f"{source}:{lineno}: invalid key '{key}'")

        value = _unquote(value.strip())
        if any(re.search(p, value) for p in FORBIDDEN_PATTERNS):
            raise ValueError(f"{source}:{lineno}: forbidden pattern in value of {key}")

        result[key] = value

    return result


def load_env(filepath: str | Path) -> dict[str, str]:
    """
    Parse an env file from disk.

    Raises:
        FileNotFoundError: if the file doesn't exist
        ValueError: if syntax is invalid or a forbidden pattern is found
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Env file not found: {path}")
    return parse_env_text(path.read_text(encoding="utf-8"), source=str(path))
