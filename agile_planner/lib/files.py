"""
Disk writes for the backlog tree.

This is the only module that creates directories or writes files. Writes
are not retried; OSError propagates to the caller.
"""

import json
import logging
import shutil
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def ensure_dir(path: Path) -> Path:
    """Create a directory and its parents. Safe to call repeatedly."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_file(path: Path, content: str) -> Path:
    """Create or overwrite a UTF-8 text file, creating parent directories."""
    ensure_dir(path.parent)
    path.write_text(content, encoding="utf-8")
    logger.debug(f"Wrote {path}")
    return path


def write_json(path: Path, data: Any) -> Path:
    """Write data as pretty-printed JSON with a trailing newline."""
    return write_file(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")


def exists(path: Path) -> bool:
    return path.exists()


def remove_tree(path: Path) -> None:
    """Delete a directory tree if present."""
    if path.exists():
        shutil.rmtree(str(path))
        logger.debug(f"Removed {path}")


def swap_dir(staging: Path, target: Path) -> None:
    """Move a fully built staging directory into place at target.

    An existing target is moved aside first and removed only once the
    staging directory has been renamed, so a failed rename leaves the
    previous tree intact.
    """
    previous = target.with_name(target.name + ".previous")
    remove_tree(previous)

    if target.exists():
        target.rename(previous)
    try:
        staging.rename(target)
    except OSError:
        if previous.exists() and not target.exists():
            previous.rename(target)
        raise
    remove_tree(previous)


def read_json(path: Path) -> Any:
    """Load a JSON file. Raises OSError or json.JSONDecodeError."""
    return json.loads(path.read_text(encoding="utf-8"))
