"""
Tool catalog served through tools/list and tools/call.

Each tool is an explicit entry in TOOLS: name, description, JSON Schema for
its arguments and a handler. Handlers receive already-validated arguments
and a ToolContext, and raise on failure; the dispatcher turns exceptions
into JSON-RPC errors.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from agile_planner.backlog.materializer import MaterializationResult, MaterializeContext, materialize
from agile_planner.generation import backlog as backlog_generation
from agile_planner.generation import feature as feature_generation
from agile_planner.lib import files, paths
from agile_planner.lib.agents_config import AgentsConfig
from agile_planner.lib.config import PlannerConfig

logger = logging.getLogger(__name__)


GENERATE_BACKLOG_SCHEMA = {
    "type": "object",
    "properties": {
        "projectName": {"type": "string", "minLength": 1, "description": "Project name"},
        "projectDescription": {
            "type": "string",
            "minLength": 1,
            "description": "Detailed project description",
        },
        "outputPath": {"type": "string", "description": "Directory that receives .agile-planner-backlog"},
        "backlog": {
            "type": "object",
            "description": "Pre-built backlog to materialize instead of generating one",
        },
    },
    "required": ["projectName", "projectDescription"],
}

GENERATE_FEATURE_SCHEMA = {
    "type": "object",
    "properties": {
        "featureDescription": {"type": "string", "minLength": 1, "description": "Feature to break down"},
        "businessValue": {"type": "string", "description": "Why the feature matters"},
        "storyCount": {"type": "integer", "minimum": 1, "default": 3, "description": "Number of user stories"},
        "iterationName": {"type": "string", "minLength": 1, "default": "next", "description": "Target iteration"},
        "outputPath": {"type": "string", "description": "Directory that receives .agile-planner-backlog"},
    },
    "required": ["featureDescription"],
}


@dataclass
class ToolContext:
    """Explicit dependencies for tool handlers. Generators are swappable for tests."""
    config: PlannerConfig
    agents: AgentsConfig = field(default_factory=AgentsConfig)
    logger: logging.Logger = field(default_factory=lambda: logger)
    cwd: Optional[Path] = None
    generate_backlog: Callable[..., dict] = backlog_generation.generate_backlog
    generate_feature: Callable[..., dict] = feature_generation.generate_feature

    def output_root(self, explicit: Optional[str]) -> Path:
        return paths.resolve_output_root(explicit, self.config.output_root, self.cwd)


@dataclass
class Tool:
    name: str
    description: str
    input_schema: dict
    handler: Callable[[dict, ToolContext], dict]

    def describe(self) -> dict:
        return {"name": self.name, "description": self.description, "inputSchema": self.input_schema}


def _materialize(payload: Any, output_root: Path, ctx: ToolContext) -> MaterializationResult:
    result = materialize(payload, MaterializeContext(output_root, ctx.logger, ctx.config.atomic_writes))
    result.raise_for_error()
    return result


def _tool_result(text: str, structured: dict) -> dict:
    return {"content": [{"type": "text", "text": text}], "structuredContent": structured}


def _summary(result: MaterializationResult) -> str:
    counts = result.index["counts"]
    lines = [
        f"Backlog written to {result.output_path}",
        f"- {counts['epics']} epics, {counts['features']} features, {counts['stories']} user stories",
        f"- {counts['iterations']} iterations",
    ]
    if result.index["orphans"]:
        lines.append(f"- orphan references: {', '.join(result.index['orphans'])}")
    return "\n".join(lines)


def generate_backlog_tool(args: dict, ctx: ToolContext) -> dict:
    output_root = ctx.output_root(args.get("outputPath"))

    if "backlog" in args:
        ctx.logger.info("Materializing supplied backlog without generation")
        payload = args["backlog"]
    else:
        payload = ctx.generate_backlog(
            args["projectName"],
            args["projectDescription"],
            ctx.agents,
            timeout=ctx.config.generation_timeout,
        )

    result = _materialize(payload, output_root, ctx)
    return _tool_result(_summary(result), result.to_dict())


def _load_existing_backlog(output_root: Path, ctx: ToolContext) -> Optional[dict]:
    snapshot = paths.get_backlog_dir(output_root) / paths.SNAPSHOT_FILE
    if not files.exists(snapshot):
        return None
    try:
        data = files.read_json(snapshot)
    except json.JSONDecodeError as e:
        ctx.logger.warning(f"Ignoring unreadable {snapshot}: {e}")
        return None
    return data if isinstance(data, dict) else None


def generate_feature_tool(args: dict, ctx: ToolContext) -> dict:
    output_root = ctx.output_root(args.get("outputPath"))
    description = args["featureDescription"]
    business_value = args.get("businessValue")
    iteration_name = args.get("iterationName", "next")

    raw = ctx.generate_feature(
        description,
        ctx.agents,
        business_value=business_value,
        story_count=args.get("storyCount", 3),
        timeout=ctx.config.generation_timeout,
    )

    existing = _load_existing_backlog(output_root, ctx)
    addition = feature_generation.feature_to_backlog(
        raw,
        description,
        business_value=business_value,
        iteration_name=iteration_name,
        first_story_number=feature_generation.next_story_number(existing),
    )
    payload = feature_generation.merge_feature_backlog(existing, addition) if existing else addition

    result = _materialize(payload, output_root, ctx)
    feature = addition["epics"][0]["features"][0]
    structured = result.to_dict()
    structured["feature"] = {"id": feature["id"], "title": feature["title"]}
    structured["userStories"] = [s["id"] for s in feature["stories"]]
    structured["iteration"] = iteration_name
    return _tool_result(_summary(result), structured)


TOOLS: dict[str, Tool] = {
    tool.name: tool
    for tool in (
        Tool(
            name="generateBacklog",
            description="Generate an agile backlog (epics, features, user stories, MVP, iterations) "
                        "and write it as cross-linked markdown under .agile-planner-backlog",
            input_schema=GENERATE_BACKLOG_SCHEMA,
            handler=generate_backlog_tool,
        ),
        Tool(
            name="generateFeature",
            description="Generate one feature with its user stories and add it to the backlog "
                        "under .agile-planner-backlog",
            input_schema=GENERATE_FEATURE_SCHEMA,
            handler=generate_feature_tool,
        ),
    )
}
