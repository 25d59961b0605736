"""
Backlog materializer.

Validates a backlog, then writes the whole document tree in one pass:

1. stories, then their feature.md, then the epic.md (depth first, so every
   story is in the story map before anything links to it)
2. planning/mvp/mvp.md and planning/iterations/<slug>/iteration.md
3. backlog.json (input snapshot) and index.json (manifest)

With atomic writes (the default) the tree is built in a sibling staging
directory and swapped into place only when complete. A failure leaves the
previous tree untouched.
"""

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from agile_planner.backlog import formatters
from agile_planner.backlog.models import Backlog, StoryLocation
from agile_planner.lib import files, paths
from agile_planner.lib.validate import ValidationError, extract_backlog_data, validate_backlog

logger = logging.getLogger(__name__)

STAGING_SUFFIX = ".staging"


class MaterializationError(Exception):
    """Writing the backlog tree failed after validation passed."""
    pass


@dataclass
class MaterializeContext:
    """Everything one materialization needs from its caller."""
    output_root: Path
    logger: logging.Logger = field(default_factory=lambda: logger)
    atomic: bool = True


@dataclass
class MaterializationResult:
    success: bool
    output_path: Optional[str] = None          # Absolute .agile-planner-backlog path
    index_path: Optional[str] = None
    index: Optional[dict] = None
    error: Optional[str] = None
    error_type: Optional[str] = None           # "validation" or "io"
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        if self.success:
            return {
                "success": True,
                "outputPath": self.output_path,
                "indexPath": self.index_path,
                "index": self.index,
            }
        return {"success": False, "error": self.error, "errors": list(self.errors)}

    def raise_for_error(self) -> None:
        """Raise the exception matching a failed result. No-op on success."""
        if self.success:
            return
        if self.error_type == "validation":
            raise ValidationError("backlog", "; ".join(self.errors) or self.error)
        raise MaterializationError(self.error)


@dataclass
class _Walk:
    """Per-run state. Never shared between runs."""
    backlog_dir: Path
    story_map: dict[str, StoryLocation] = field(default_factory=dict)
    written: int = 0

    def write(self, path: Path, content: str) -> None:
        files.write_file(path, content)
        self.written += 1


def _write_hierarchy(walk: _Walk, backlog: Backlog) -> list[dict]:
    """Write epics, features and stories. Returns the epic index entries."""
    root = walk.backlog_dir
    epic_entries = []

    for epic in backlog.epics:
        files.ensure_dir(paths.features_dir(root, epic.id))
        if not epic.features:
            walk.write(paths.features_dir(root, epic.id) / "README.md", formatters.EMPTY_FEATURES_README)

        feature_entries = []
        for feature in epic.features:
            stories_dir = files.ensure_dir(paths.user_stories_dir(root, epic.id, feature.id))
            if not feature.stories:
                walk.write(stories_dir / "README.md", formatters.EMPTY_STORIES_README)

            story_entries = []
            for story in feature.stories:
                rel = paths.story_rel_path(epic.id, feature.id, story.id)
                walk.write(paths.story_path(root, epic.id, feature.id, story.id),
                           formatters.format_user_story(story))
                walk.story_map[story.id] = StoryLocation(epic.id, feature.id, story, rel)
                story_entries.append({"id": story.id, "title": story.title, "path": rel})

            feature_file = paths.feature_path(root, epic.id, feature.id)
            walk.write(feature_file, formatters.format_feature(feature, epic))
            feature_entries.append({
                "id": feature.id,
                "title": feature.title,
                "path": paths.relative_to_backlog(root, feature_file),
                "stories": story_entries,
            })

        epic_file = paths.epic_path(root, epic.id)
        walk.write(epic_file, formatters.format_epic(epic))
        epic_entries.append({
            "id": epic.id,
            "title": epic.title,
            "path": paths.relative_to_backlog(root, epic_file),
            "features": feature_entries,
        })

    return epic_entries


def _plan_entries(items: list[formatters.PlanItem], story_map: dict[str, StoryLocation]) -> list[dict]:
    entries = []
    for item in items:
        entry: dict[str, Any] = {"id": item.id, "title": item.title, "orphan": item.orphan}
        if not item.orphan:
            entry["path"] = story_map[item.id].path
        entries.append(entry)
    return entries


def _write_planning(walk: _Walk, backlog: Backlog) -> tuple[dict, list[dict], list[str]]:
    """Write the MVP and iteration documents from the completed story map."""
    root = walk.backlog_dir
    orphan_defs = {s.id: s for s in backlog.orphan_stories}
    orphan_ids: list[str] = []

    mvp_refs = backlog.mvp.stories if backlog.mvp else []
    mvp_items = formatters.resolve_plan_items(mvp_refs, walk.story_map, "mvp", orphan_defs)
    walk.write(paths.mvp_path(root), formatters.format_mvp(backlog.mvp, backlog.project, mvp_items))
    orphan_ids.extend(i.id for i in mvp_items if i.orphan)
    mvp_entry = {
        "path": paths.relative_to_backlog(root, paths.mvp_path(root)),
        "stories": _plan_entries(mvp_items, walk.story_map),
    }

    iteration_entries = []
    for iteration in backlog.iterations:
        items = formatters.resolve_plan_items(iteration.stories, walk.story_map, "iteration", orphan_defs)
        iteration_file = paths.iteration_path(root, iteration.name)
        walk.write(iteration_file, formatters.format_iteration(iteration, items))
        orphan_ids.extend(i.id for i in items if i.orphan)
        iteration_entries.append({
            "name": iteration.name,
            "slug": paths.slugify(iteration.name),
            "path": paths.relative_to_backlog(root, iteration_file),
            "stories": _plan_entries(items, walk.story_map),
        })

    return mvp_entry, iteration_entries, sorted(set(orphan_ids))


def _build_tree(backlog_dir: Path, backlog: Backlog, snapshot: dict) -> dict:
    """Write every file under backlog_dir and return the index."""
    for directory in (
        paths.epics_dir(backlog_dir),
        paths.mvp_dir(backlog_dir),
        paths.iterations_dir(backlog_dir),
    ):
        files.ensure_dir(directory)

    walk = _Walk(backlog_dir)
    epic_entries = _write_hierarchy(walk, backlog)
    mvp_entry, iteration_entries, orphan_ids = _write_planning(walk, backlog)

    files.write_json(backlog_dir / paths.SNAPSHOT_FILE, snapshot)

    index = {
        "project": asdict(backlog.project),
        "epics": epic_entries,
        "mvp": mvp_entry,
        "iterations": iteration_entries,
        "orphans": orphan_ids,
        "counts": {
            "epics": len(backlog.epics),
            "features": sum(len(e.features) for e in backlog.epics),
            "stories": len(walk.story_map),
            "iterations": len(backlog.iterations),
            "documents": walk.written,
        },
    }
    files.write_json(backlog_dir / paths.INDEX_FILE, index)
    return index


def materialize(payload: Any, context: MaterializeContext) -> MaterializationResult:
    """
    Validate a backlog (or a {success, result} envelope) and write its tree.

    Never raises for invalid input or I/O failures; both come back as a
    failed MaterializationResult. Invalid input causes no writes at all.
    """
    log = context.logger
    validation = validate_backlog(payload)
    if not validation.valid:
        log.warning(f"Backlog rejected with {len(validation.errors)} validation error(s)")
        for err in validation.errors:
            log.debug(f"  {err}")
        return MaterializationResult(
            success=False,
            error="Invalid backlog: " + "; ".join(validation.errors),
            error_type="validation",
            errors=validation.errors,
        )

    data = extract_backlog_data(payload)
    backlog = Backlog.from_dict(data)
    output_root = Path(context.output_root)
    backlog_dir = paths.get_backlog_dir(output_root)
    build_dir = backlog_dir.with_name(backlog_dir.name + STAGING_SUFFIX) if context.atomic else backlog_dir

    log.info(f"Materializing '{backlog.project.name}' into {backlog_dir}")
    try:
        if context.atomic:
            files.remove_tree(build_dir)
        index = _build_tree(build_dir, backlog, data)
        if context.atomic:
            files.swap_dir(build_dir, backlog_dir)
    except (OSError, ValueError) as e:
        log.error(f"Failed to write backlog tree: {e}")
        if context.atomic:
            try:
                files.remove_tree(build_dir)
            except OSError as cleanup_error:
                log.warning(f"Could not remove staging directory {build_dir}: {cleanup_error}")
        return MaterializationResult(
            success=False,
            error=f"Failed to write backlog: {e}",
            error_type="io",
            errors=[str(e)],
        )

    counts = index["counts"]
    log.info(
        f"Wrote {counts['documents']} documents "
        f"({counts['epics']} epics, {counts['features']} features, {counts['stories']} stories)"
    )
    if index["orphans"]:
        log.warning(f"Orphan story references: {', '.join(index['orphans'])}")

    return MaterializationResult(
        success=True,
        output_path=str(backlog_dir),
        index_path=str(backlog_dir / paths.INDEX_FILE),
        index=index,
    )
