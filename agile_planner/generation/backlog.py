"""
Full backlog generation from a project name and description.
"""

import logging
from typing import Any

from agile_planner.generation.agent import GenerationError, parse_json_reply, run_agent
from agile_planner.lib.agents_config import AgentsConfig
from agile_planner.lib.prompts import render_prompt

logger = logging.getLogger(__name__)

STAGE = "generate_backlog"


def generate_backlog(
    project_name: str,
    project_description: str,
    agents: AgentsConfig,
    timeout: int = 300,
) -> dict[str, Any]:
    """Ask the agent for a backlog and return it as a dict.

    The project name and description are filled in when the agent omits
    them. The result is not validated here; the materializer does that.

    Raises:
        GenerationError: agent failure or unparseable reply
    """
    prompt = render_prompt(
        "backlog",
        project_name=project_name,
        project_description=project_description,
    )
    logger.info(f"Generating backlog for '{project_name}'")

    ok, response = run_agent(agents, STAGE, prompt, timeout=timeout)
    if not ok:
        raise GenerationError(response)

    backlog = parse_json_reply(response)
    backlog.setdefault("projectName", project_name)
    backlog.setdefault("projectDescription", project_description)
    return backlog
