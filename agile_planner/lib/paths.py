"""
Path derivation for the materialized backlog tree.

Every directory, file and relative link the materializer produces is
computed here. Nothing in this module touches the disk.

Layout under <root>/.agile-planner-backlog/:
  backlog.json
  index.json
  epics/<epicId>/epic.md
  epics/<epicId>/features/<featureId>/feature.md
  epics/<epicId>/features/<featureId>/user-stories/<storyId>.md
  planning/mvp/mvp.md
  planning/iterations/<slug>/iteration.md

Entity ids are used verbatim as directory names. Only iteration names are
slugified.
"""

import re
from pathlib import Path, PurePosixPath
from typing import Optional

BACKLOG_DIR_NAME = ".agile-planner-backlog"
SNAPSHOT_FILE = "backlog.json"
INDEX_FILE = "index.json"

# Planning document locations and how deep each one sits below the backlog root
LINK_DEPTHS = {
    "mvp": 2,        # planning/mvp/mvp.md
    "iteration": 3,  # planning/iterations/<slug>/iteration.md
}


def slugify(text: str, max_len: int = 60, fallback: str = "iteration") -> str:
    """Convert an iteration name to a folder name.

    - Lowercase
    - Replace runs of non-alphanumerics with a hyphen
    - Trim hyphens and truncate to max_len
    - Fall back to `fallback` when nothing usable remains
    """
    slug = re.sub(r'[^a-z0-9]+', '-', text.lower()).strip('-')
    slug = slug[:max_len].rstrip('-')
    return slug or fallback


def resolve_output_root(
    explicit: Optional[str] = None,
    env_override: Optional[str] = None,
    cwd: Optional[Path] = None,
) -> Path:
    """Pick the output root: explicit > environment override > cwd.

    The result is always absolute.
    """
    base = cwd if cwd is not None else Path.cwd()
    for candidate in (explicit, env_override):
        if candidate:
            path = Path(candidate).expanduser()
            return path if path.is_absolute() else (base / path).resolve()
    return Path(base).resolve()


def get_backlog_dir(output_root: Path) -> Path:
    return Path(output_root) / BACKLOG_DIR_NAME


def epics_dir(backlog_dir: Path) -> Path:
    return backlog_dir / "epics"


def epic_dir(backlog_dir: Path, epic_id: str) -> Path:
    return epics_dir(backlog_dir) / epic_id


def epic_path(backlog_dir: Path, epic_id: str) -> Path:
    return epic_dir(backlog_dir, epic_id) / "epic.md"


def features_dir(backlog_dir: Path, epic_id: str) -> Path:
    return epic_dir(backlog_dir, epic_id) / "features"


def feature_dir(backlog_dir: Path, epic_id: str, feature_id: str) -> Path:
    return features_dir(backlog_dir, epic_id) / feature_id


def feature_path(backlog_dir: Path, epic_id: str, feature_id: str) -> Path:
    return feature_dir(backlog_dir, epic_id, feature_id) / "feature.md"


def user_stories_dir(backlog_dir: Path, epic_id: str, feature_id: str) -> Path:
    return feature_dir(backlog_dir, epic_id, feature_id) / "user-stories"


def story_path(backlog_dir: Path, epic_id: str, feature_id: str, story_id: str) -> Path:
    return user_stories_dir(backlog_dir, epic_id, feature_id) / f"{story_id}.md"


def planning_dir(backlog_dir: Path) -> Path:
    return backlog_dir / "planning"


def mvp_dir(backlog_dir: Path) -> Path:
    return planning_dir(backlog_dir) / "mvp"


def mvp_path(backlog_dir: Path) -> Path:
    return mvp_dir(backlog_dir) / "mvp.md"


def iterations_dir(backlog_dir: Path) -> Path:
    return planning_dir(backlog_dir) / "iterations"


def iteration_dir(backlog_dir: Path, name: str) -> Path:
    return iterations_dir(backlog_dir) / slugify(name)


def iteration_path(backlog_dir: Path, name: str) -> Path:
    return iteration_dir(backlog_dir, name) / "iteration.md"


def story_rel_path(epic_id: str, feature_id: str, story_id: str) -> str:
    """Story file path relative to the backlog root, forward-slash separated."""
    return str(PurePosixPath("epics", epic_id, "features", feature_id, "user-stories", f"{story_id}.md"))


def relative_to_backlog(backlog_dir: Path, path: Path) -> str:
    """Express an absolute path under backlog_dir as a forward-slash relative path."""
    return Path(path).relative_to(backlog_dir).as_posix()


def relative_story_link(from_location: str, epic_id: str, feature_id: str, story_id: str) -> str:
    """Link from a planning document to a story file.

    Args:
        from_location: "mvp" or "iteration"

    Raises:
        ValueError: for any other location
    """
    if from_location not in LINK_DEPTHS:
        raise ValueError(
            f"Unsupported link location '{from_location}', expected one of {sorted(LINK_DEPTHS)}"
        )
    up = PurePosixPath(*([".."] * LINK_DEPTHS[from_location]))
    return str(up / story_rel_path(epic_id, feature_id, story_id))
