"""
Configuration loader for the planner.

Settings come from an optional planner.env file merged with the process
environment. Environment variables win over file values.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from . import envparse

logger = logging.getLogger(__name__)

OUTPUT_ROOT_ENV = "AGILE_PLANNER_OUTPUT_ROOT"
DEFAULT_ENV_FILE = "planner.env"

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class PlannerConfig:
    """Runtime settings for the server and the offline CLI."""
    output_root: Optional[str] = None      # AGILE_PLANNER_OUTPUT_ROOT, None means cwd
    log_level: str = "INFO"
    log_file: Optional[str] = None         # Extra log sink beside stderr
    atomic_writes: bool = True             # Build in a staging dir, then swap
    exit_on_eof: bool = False              # Server stays resident after stdin closes by default
    agents_file: Optional[str] = None      # agents.yaml override
    generation_timeout: int = 300          # Seconds allowed for one agent call


def _as_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def load_planner_config(
    env_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> PlannerConfig:
    """Build a PlannerConfig from an env file and the environment.

    Args:
        env_file: Explicit env file. Missing explicit files are an error.
            When None, ./planner.env is read if it exists.
        environ: Environment mapping (defaults to os.environ)

    Raises:
        FileNotFoundError: explicit env_file does not exist
        ValueError: env file syntax error or a non-integer timeout
    """
    if environ is None:
        environ = os.environ

    values: dict[str, str] = {}
    if env_file is not None:
        values.update(envparse.load_env(env_file))
    elif Path(DEFAULT_ENV_FILE).exists():
        values.update(envparse.load_env(DEFAULT_ENV_FILE))

    # Environment wins over file values
    for key in (
        OUTPUT_ROOT_ENV,
        "LOG_LEVEL",
        "LOG_FILE",
        "ATOMIC_WRITES",
        "EXIT_ON_EOF",
        "AGENTS_FILE",
        "GENERATION_TIMEOUT",
    ):
        if environ.get(key):
            values[key] = environ[key]

    log_level = values.get("LOG_LEVEL", "INFO").upper()
    if log_level not in VALID_LOG_LEVELS:
        logger.warning(f"Unknown LOG_LEVEL '{log_level}', using INFO")
        log_level = "INFO"

    try:
        timeout = int(values.get("GENERATION_TIMEOUT", "300"))
    except ValueError:
        raise ValueError(
            f"GENERATION_TIMEOUT must be an integer, got '{values['GENERATION_TIMEOUT']}'"
        ) from None

    return PlannerConfig(
        output_root=values.get(OUTPUT_ROOT_ENV) or None,
        log_level=log_level,
        log_file=values.get("LOG_FILE") or None,
        atomic_writes=_as_bool(values.get("ATOMIC_WRITES", "true")),
        exit_on_eof=_as_bool(values.get("EXIT_ON_EOF", "false")),
        agents_file=values.get("AGENTS_FILE") or None,
        generation_timeout=timeout,
    )
