"""
agile-planner materialize / validate - Offline work on a saved backlog file.
"""

import json
import logging
import sys
from pathlib import Path

from agile_planner.backlog.materializer import MaterializeContext, materialize
from agile_planner.lib.config import PlannerConfig
from agile_planner.lib.paths import resolve_output_root
from agile_planner.lib.validate import validate_backlog

logger = logging.getLogger(__name__)


def _read_backlog(path: Path):
    """Load a backlog JSON file, or print why it can't be loaded and return None."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        print(f"ERROR: Backlog file not found: {path}", file=sys.stderr)
    except json.JSONDecodeError as e:
        print(f"ERROR: {path} is not valid JSON: {e}", file=sys.stderr)
    return None


def cmd_validate(args, config: PlannerConfig) -> int:
    """Check a backlog file and list every problem."""
    data = _read_backlog(Path(args.backlog))
    if data is None:
        return 1

    result = validate_backlog(data)
    if result.valid:
        print(f"{args.backlog}: valid")
        return 0

    print(f"{args.backlog}: {len(result.errors)} error(s)")
    for err in result.errors:
        print(f"  - {err}")
    return 1


def cmd_materialize(args, config: PlannerConfig) -> int:
    """Write the document tree for a backlog file and print where it went."""
    data = _read_backlog(Path(args.backlog))
    if data is None:
        return 1

    output_root = resolve_output_root(args.output_root, config.output_root)
    context = MaterializeContext(output_root=output_root, atomic=config.atomic_writes)
    result = materialize(data, context)

    if not result.success:
        print(f"ERROR: {result.error}", file=sys.stderr)
        return 1

    print(result.output_path)
    if args.json:
        print(json.dumps(result.index, indent=2))
    return 0
