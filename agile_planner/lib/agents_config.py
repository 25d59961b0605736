"""
Agent command configuration.

Loads agents.yaml to decide which CLI command generates backlog content for
each stage. Without a config file the defaults below are used.

Templates may contain {prompt}. When present the prompt is substituted as a
single CLI argument; when absent the prompt is sent on stdin, which is the
safer choice for long multi-line prompts.
"""

import logging
import re
import shlex
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)


DEFAULT_STAGE_COMMANDS = {
    "generate_backlog": "claude -p --output-format json",
    # Project name + description -> full backlog JSON

    "generate_feature": "claude -p --output-format json",
    # Feature description -> feature + user stories JSON
}

_PROMPT_PLACEHOLDER = "__PROMPT_PLACEHOLDER__"


@dataclass
class AgentsConfig:
    """Agent configuration from agents.yaml."""
    stages: dict[str, str] = field(default_factory=lambda: DEFAULT_STAGE_COMMANDS.copy())


def load_agents_config(config_path: Optional[Path]) -> AgentsConfig:
    """Load an agents.yaml file and return AgentsConfig.

    A directory is accepted too, in which case agents.yaml inside it is read.
    Missing or unparseable files fall back to defaults.
    """
    if config_path is None:
        return AgentsConfig()

    config_path = Path(config_path)
    if config_path.is_dir():
        config_path = config_path / "agents.yaml"
    if not config_path.exists():
        return AgentsConfig()

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        logger.warning(f"Failed to parse {config_path}: {e}")
        return AgentsConfig()

    stages = DEFAULT_STAGE_COMMANDS.copy()
    if isinstance(data, dict) and isinstance(data.get("stages"), dict):
        for name, template in data["stages"].items():
            if not isinstance(template, str) or not template.strip():
                logger.warning(f"Ignoring empty command for stage '{name}' in {config_path}")
                continue
            stages[name] = template
    return AgentsConfig(stages=stages)


@dataclass
class StageCommand:
    """Result of building a stage command."""
    cmd: list[str]  # Command ready for subprocess
    prompt_via_stdin: bool
    output_format: str | None  # "json" if --output-format json, else None

    def get_stdin_input(self, prompt: str) -> str | None:
        """Return prompt if it should be passed via stdin, else None."""
        return prompt if self.prompt_via_stdin else None


def _detect_output_format(parts: list[str]) -> str | None:
    for i, part in enumerate(parts):
        if part == "--output-format" and i + 1 < len(parts):
            return parts[i + 1]
        if part.startswith("--output-format="):
            return part.split("=", 1)[1]
    return None


def get_stage_command(config: AgentsConfig, stage: str, prompt: str | None = None) -> StageCommand:
    """Build the command list for a generation stage.

    Raises:
        ValueError: if the stage is unknown or the template has unknown variables

    Example:
        >>> get_stage_command(AgentsConfig({"generate_feature": "agent -p {prompt}"}),
        ...                   "generate_feature", "hi").cmd
        ['agent', '-p', 'hi']
    """
    if stage not in config.stages:
        raise ValueError(f"Unknown stage: {stage}")

    template = config.stages[stage]
    prompt_via_stdin = "{prompt}" not in template
    template = template.replace("{prompt}", _PROMPT_PLACEHOLDER)

    unknown = re.findall(r'\{(\w+)\}', template)
    if unknown:
        raise ValueError(f"Stage '{stage}' has unsupported variables: {unknown}")

    parts = shlex.split(template)
    output_format = _detect_output_format(parts)

    if not prompt_via_stdin:
        parts = [(prompt or "") if part == _PROMPT_PLACEHOLDER else part for part in parts]

    return StageCommand(cmd=parts, prompt_via_stdin=prompt_via_stdin, output_format=output_format)


def check_stage_binary(config: AgentsConfig, stage: str) -> str | None:
    """Return an error message if the stage's binary is not on PATH, else None."""
    command = get_stage_command(config, stage)
    binary = command.cmd[0] if command.cmd else ""
    if binary and shutil.which(binary) is not None:
        return None
    return (
        f"Agent CLI '{binary}' for stage '{stage}' is not installed. "
        f"Install it or point the stage at another tool in agents.yaml."
    )
