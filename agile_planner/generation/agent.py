"""
Agent CLI invocation shared by the generation stages.
"""

import json
import logging
import os
import re
import subprocess
from typing import Any

from agile_planner.lib.agents_config import AgentsConfig, get_stage_command

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """The agent failed or returned something that isn't usable JSON."""
    pass


def run_agent(config: AgentsConfig, stage: str, prompt: str, timeout: int = 300) -> tuple[bool, str]:
    """Run the agent configured for a stage and return (success, response).

    When the command uses --output-format json, the agent's JSON wrapper is
    unwrapped and its "result" field returned.
    """
    command = get_stage_command(config, stage, prompt)

    # Remove ANTHROPIC_API_KEY so the agent CLI uses its own login
    env = {k: v for k, v in os.environ.items() if k != "ANTHROPIC_API_KEY"}

    logger.debug(f"Running {stage}: {command.cmd[0]} ({len(prompt)} chars of prompt)")
    try:
        result = subprocess.run(
            command.cmd,
            input=command.get_stdin_input(prompt),
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env,
        )
    except subprocess.TimeoutExpired:
        return False, f"Agent timed out after {timeout}s"
    except FileNotFoundError:
        return False, f"Agent CLI '{command.cmd[0]}' not found"

    if result.returncode != 0:
        error_msg = result.stderr.strip() or result.stdout.strip() or "(no output)"
        return False, f"Agent failed (exit {result.returncode}): {error_msg}"

    if command.output_format != "json":
        return True, result.stdout

    try:
        wrapper = json.loads(result.stdout.strip())
    except json.JSONDecodeError:
        return True, result.stdout
    if isinstance(wrapper, dict) and "result" in wrapper:
        if wrapper.get("is_error"):
            return False, f"Agent reported an error: {wrapper['result']}"
        return True, wrapper["result"]
    return True, result.stdout


def strip_markdown_fences(text: str) -> str:
    """Strip markdown code fences from text if present."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        if lines and lines[0].strip().startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)
    return text


def parse_json_reply(text: str) -> dict[str, Any]:
    """Recover a JSON object from a free-form agent reply.

    Tries the whole reply, then a fenced ```json block, then the span from
    the first '{' to the last '}'.

    Raises:
        GenerationError: if no JSON object can be recovered
    """
    candidates = [strip_markdown_fences(text)]
    fence_match = re.search(r'```(?:json)?\s*\n([\s\S]*?)\n```', text)
    if fence_match:
        candidates.append(fence_match.group(1))
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data

    preview = text.strip()[:200]
    raise GenerationError(f"Agent reply did not contain a JSON object: {preview!r}")
