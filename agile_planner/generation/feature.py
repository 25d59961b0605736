"""
Single-feature generation.

The agent answers with a feature and its user stories in a conversational
shape (asA / iWant / soThat, Given/When/Then criteria, task objects).
feature_to_backlog() turns that into an ordinary backlog: one container
epic, one feature, numbered stories and one iteration holding all of them.
"""

import copy
import logging
import re
from typing import Any, Optional

from agile_planner.generation.agent import GenerationError, parse_json_reply, run_agent
from agile_planner.lib.agents_config import AgentsConfig
from agile_planner.lib.paths import slugify
from agile_planner.lib.prompts import render_prompt

logger = logging.getLogger(__name__)

STAGE = "generate_feature"

CONTAINER_EPIC_ID = "feature-epic"
CONTAINER_EPIC_TITLE = "Feature Epic"

VALID_PRIORITIES = ("HIGH", "MEDIUM", "LOW")

_STORY_ID_PATTERN = re.compile(r'^US(\d+)$')


def generate_feature(
    feature_description: str,
    agents: AgentsConfig,
    business_value: Optional[str] = None,
    story_count: int = 3,
    timeout: int = 300,
) -> dict[str, Any]:
    """Ask the agent to break a feature into user stories.

    Returns the agent's reply as a dict with "feature" and "userStories".

    Raises:
        GenerationError: agent failure or a reply without user stories
    """
    prompt = render_prompt(
        "feature",
        feature_description=feature_description,
        business_value=business_value or "Not specified",
        story_count=story_count,
    )
    logger.info(f"Generating feature with {story_count} stories")

    ok, response = run_agent(agents, STAGE, prompt, timeout=timeout)
    if not ok:
        raise GenerationError(response)

    result = parse_json_reply(response)
    if not isinstance(result.get("userStories"), list):
        raise GenerationError("Agent reply has no 'userStories' list")
    if len(result["userStories"]) != story_count:
        logger.warning(f"Asked for {story_count} stories, agent returned {len(result['userStories'])}")
    return result


def _criterion_text(criterion: Any) -> str:
    if isinstance(criterion, dict):
        parts = [
            f"{label} {criterion[key]}"
            for label, key in (("Given", "given"), ("when", "when"), ("then", "then"))
            if criterion.get(key)
        ]
        return ", ".join(parts)
    return str(criterion)


def _task_text(task: Any) -> str:
    if isinstance(task, dict):
        text = task.get("description") or task.get("title") or ""
        if task.get("estimate"):
            text += f" ({task['estimate']})"
        return text
    return str(task)


def _story_description(story: dict) -> str:
    if story.get("asA") and story.get("iWant"):
        text = f"As a {story['asA']}, I want {story['iWant']}"
        if story.get("soThat"):
            text += f" so that {story['soThat']}"
        return text
    return story.get("description") or ""


def _priority(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.upper() in VALID_PRIORITIES:
        return value.upper()
    return None


def next_story_number(backlog: Optional[dict]) -> int:
    """First free USnnn number in an existing backlog (1 when there is none)."""
    highest = 0
    for epic in (backlog or {}).get("epics") or []:
        for feature in epic.get("features") or []:
            for story in feature.get("stories") or feature.get("userStories") or []:
                match = _STORY_ID_PATTERN.match(str(story.get("id", "")))
                if match:
                    highest = max(highest, int(match.group(1)))
    return highest + 1


def feature_to_backlog(
    result: dict,
    feature_description: str,
    business_value: Optional[str] = None,
    iteration_name: str = "next",
    first_story_number: int = 1,
) -> dict[str, Any]:
    """Normalize a feature reply into a backlog dict."""
    feature = result.get("feature") or {}
    title = feature.get("title") or feature_description.strip().splitlines()[0][:80]
    feature_id = slugify(title, fallback="feature")

    stories = []
    for offset, raw in enumerate(result.get("userStories") or []):
        story = {
            "id": f"US{first_story_number + offset:03d}",
            "title": raw.get("title") or "untitled",
            "description": _story_description(raw),
            "acceptance_criteria": [_criterion_text(c) for c in raw.get("acceptanceCriteria") or []],
            "tasks": [_task_text(t) for t in raw.get("tasks") or []],
        }
        priority = _priority(raw.get("priority"))
        if priority:
            story["priority"] = priority
        stories.append(story)

    return {
        "projectName": title,
        "projectDescription": feature.get("description") or feature_description,
        "epics": [{
            "id": CONTAINER_EPIC_ID,
            "title": CONTAINER_EPIC_TITLE,
            "description": "Container epic for individually generated features.",
            "features": [{
                "id": feature_id,
                "title": title,
                "description": feature.get("description") or feature_description,
                "business_value": feature.get("businessValue") or business_value or "",
                "stories": stories,
            }],
        }],
        "mvp": [],
        "iterations": [{
            "name": iteration_name,
            "goal": f"Deliver {title}",
            "stories": [s["id"] for s in stories],
        }],
    }


def merge_feature_backlog(existing: dict, addition: dict) -> dict[str, Any]:
    """Fold a feature_to_backlog() result into an existing backlog.

    The new feature replaces a feature with the same id in the container
    epic and is appended otherwise. Iteration stories are appended to an
    iteration with the same name. Project fields and the MVP are kept.
    """
    merged = copy.deepcopy(existing)
    merged.setdefault("epics", [])
    new_epic = addition["epics"][0]
    new_feature = new_epic["features"][0]

    container = next((e for e in merged["epics"] if e.get("id") == CONTAINER_EPIC_ID), None)
    if container is None:
        merged["epics"].append(copy.deepcopy(new_epic))
    else:
        features = container.setdefault("features", [])
        for i, feature in enumerate(features):
            if feature.get("id") == new_feature["id"]:
                features[i] = copy.deepcopy(new_feature)
                break
        else:
            features.append(copy.deepcopy(new_feature))

    iterations = merged.setdefault("iterations", [])
    for new_iteration in addition.get("iterations") or []:
        target = next((it for it in iterations if it.get("name") == new_iteration["name"]), None)
        if target is None:
            iterations.append(copy.deepcopy(new_iteration))
            continue
        stories = target.setdefault("stories", [])
        known = {s if isinstance(s, str) else s.get("id") for s in stories}
        stories.extend(s for s in new_iteration["stories"] if s not in known)

    for key in ("projectName", "projectDescription"):
        if not merged.get(key) and not merged.get("project"):
            merged[key] = addition[key]
    return merged
