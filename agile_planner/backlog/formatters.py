"""
Markdown rendering for backlog entities.

Every function here is pure: entity in, document text out. Checklist
items always start unchecked ("- [ ]") so that agents and humans working
through the backlog can tick them off in place.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from agile_planner.backlog.models import (
    UNTITLED,
    Epic,
    Feature,
    Iteration,
    Mvp,
    Project,
    StoryLocation,
    StoryRef,
    UserStory,
)
from agile_planner.lib.paths import relative_story_link

ORPHAN_MARKER = "This story is not defined in any epic/feature"

NO_DESCRIPTION = "No description provided."

EPIC_INSTRUCTIONS = """## Instructions

This document describes an Epic: a major initiative grouping related features.

- **Planning**: use the feature list below to build the roadmap
- **Navigation**: follow the links to the features and their user stories
- **Updates**: regenerate through the planner to keep the backlog consistent
- **Status**: tick a feature in the Status section once all its stories are done
  by replacing [ ] with [x]
- Do NOT change the structure of this document"""

FEATURE_INSTRUCTIONS = """## Instructions

This document describes a Feature: a complete capability that delivers value to users.

- **Development**: implement the user stories below, foundations first
- **Testing**: derive the test strategy from the business value
- **Acceptance**: demo each user story against its acceptance criteria
- **Status**: tick a story in the Status section once it is validated
  by replacing [ ] with [x]
- Do NOT change the structure of this document"""

STORY_INSTRUCTIONS = """## User Story Instructions for AI

When working on this user story:
- Mark tasks done by replacing [ ] with [x]
- Mark acceptance criteria validated by replacing [ ] with [x]
- Check the parent feature and the dependencies before starting
- Do NOT change the structure of this document

Example:
- [ ] Task to do  ->  - [x] Task done

---"""

MVP_INSTRUCTIONS = """## Instructions

This document defines the Minimum Viable Product: the smallest set of user stories for a first release.

- **Focus**: keep the team on these stories until the MVP ships
- **Scope**: avoid adding stories before the MVP is complete
- **Progress**: replace [ ] with [x] as each story is validated"""

ITERATION_INSTRUCTIONS = """## Instructions

This document describes an Iteration (sprint) and the user stories planned for it.

- **Planning**: walk through these stories in the sprint planning meeting
- **Priority**: stories are listed in priority order, top first
- **Progress**: replace [ ] with [x] as each story is validated"""

EMPTY_FEATURES_README = """# Features

This folder was created automatically by the planner.
The epic does not define any features yet.
"""

EMPTY_STORIES_README = """# User Stories

This folder was created automatically by the planner.
The feature does not define any user stories yet.
"""


@dataclass
class PlanItem:
    """A story reference from a planning document after lookup."""
    id: str
    title: str
    link: Optional[str]                        # None for orphans
    orphan: bool
    description: str = ""
    priority: Optional[str] = None


def resolve_plan_items(
    refs: list[StoryRef],
    story_map: dict[str, StoryLocation],
    location: str,
    orphan_stories: Optional[dict[str, UserStory]] = None,
) -> list[PlanItem]:
    """Look up each reference in the story map.

    A hit becomes a link relative to the planning document. A miss becomes
    an orphan carrying whatever details the reference or the top-level
    orphan_stories list provide.
    """
    orphan_stories = orphan_stories or {}
    items = []
    for ref in refs:
        located = story_map.get(ref.id)
        if located is not None:
            items.append(PlanItem(
                id=ref.id,
                title=located.story.title,
                link=relative_story_link(location, located.epic_id, located.feature_id, ref.id),
                orphan=False,
                description=located.story.description,
                priority=located.story.priority,
            ))
            continue

        known = orphan_stories.get(ref.id)
        items.append(PlanItem(
            id=ref.id,
            title=ref.title or (known.title if known else None) or UNTITLED,
            link=None,
            orphan=True,
            description=ref.description or (known.description if known else "") or "",
            priority=ref.priority or (known.priority if known else None),
        ))
    return items


def _link(text: str, target: str) -> str:
    # Ids may hold spaces or parentheses; percent-encode so the target stays one token
    return f"[{text}]({quote(target, safe='/')})"


def _plan_item_lines(items: list[PlanItem]) -> list[str]:
    if not items:
        return ["_No user stories assigned._"]

    lines = []
    for item in items:
        if not item.orphan:
            lines.append(f"- [ ] {_link(f'{item.id}: {item.title}', item.link)}")
            continue
        lines.append(f"- [ ] {item.id}: {item.title} (Warning: {ORPHAN_MARKER})")
        lines.append(f"  - Description: {item.description or NO_DESCRIPTION}")
        lines.append(f"  - Priority: {item.priority or 'unspecified'}")
    return lines


def format_user_story(story: UserStory) -> str:
    lines = [
        f"# User Story {story.id}: {story.title}",
        "",
        "## Description",
        f"- [ ] {story.description or NO_DESCRIPTION}",
        "",
        "### Acceptance Criteria",
    ]
    lines.extend(f"- [ ] {criterion}" for criterion in story.acceptance_criteria)
    lines.append("")

    lines.append("### Technical Tasks")
    lines.extend(f"- [ ] {task}" for task in story.tasks)
    lines.append("")

    if story.priority:
        lines.append(f"**Priority:** {story.priority}")
    if story.dependencies:
        lines.append(f"**Dependencies:** {', '.join(story.dependencies)}")
    if story.priority or story.dependencies:
        lines.append("")

    lines.append(STORY_INSTRUCTIONS)
    return "\n".join(lines) + "\n"


def format_feature(feature: Feature, epic: Epic) -> str:
    lines = [
        f"# Feature: {feature.title}",
        "",
        f"**ID:** {feature.id}",
        "",
        FEATURE_INSTRUCTIONS,
        "",
        "## Description",
        "",
        feature.description or NO_DESCRIPTION,
        "",
    ]

    if feature.business_value:
        lines.extend(["## Business Value", "", feature.business_value, ""])

    lines.extend([
        "## Parent Epic",
        "",
        _link(f"{epic.id}: {epic.title}", "../../epic.md"),
        "",
        "## User Stories",
        "",
    ])
    if feature.stories:
        lines.extend(
            f"- {_link(f'{s.id}: {s.title}', f'./user-stories/{s.id}.md')}" for s in feature.stories
        )
    else:
        lines.append("_No user stories defined._")
    lines.append("")

    lines.extend(["## Status", ""])
    lines.extend(f"- [ ] {s.id}: {s.title}" for s in feature.stories)
    if not feature.stories:
        lines.append("- [ ] Define user stories")

    return "\n".join(lines) + "\n"


def format_epic(epic: Epic) -> str:
    lines = [
        f"# Epic: {epic.title}",
        "",
        f"**ID:** {epic.id}",
        "",
        EPIC_INSTRUCTIONS,
        "",
        "## Description",
        "",
        epic.description or NO_DESCRIPTION,
        "",
        "## Features",
        "",
    ]
    if epic.features:
        lines.extend(
            f"- {_link(f'{f.id}: {f.title}', f'./features/{f.id}/feature.md')}" for f in epic.features
        )
    else:
        lines.append("_No features defined._")
    lines.append("")

    lines.extend(["## Status", ""])
    lines.extend(f"- [ ] {f.id}: {f.title}" for f in epic.features)
    if not epic.features:
        lines.append("- [ ] Define features")

    return "\n".join(lines) + "\n"


def format_mvp(mvp: Optional[Mvp], project: Project, items: list[PlanItem]) -> str:
    """Render planning/mvp/mvp.md. items come from resolve_plan_items(..., "mvp")."""
    title = (mvp.title if mvp else None) or project.name
    description = (mvp.description if mvp else "") or project.description

    lines = [
        f"# Minimum Viable Product: {title}",
        "",
        MVP_INSTRUCTIONS,
        "",
        "## Description",
        "",
        description or NO_DESCRIPTION,
        "",
        "## User Stories",
        "",
    ]
    lines.extend(_plan_item_lines(items))
    return "\n".join(lines) + "\n"


def format_iteration(iteration: Iteration, items: list[PlanItem]) -> str:
    """Render an iteration.md. items come from resolve_plan_items(..., "iteration")."""
    lines = [
        f"# Iteration: {iteration.name}",
        "",
        "## Goal",
        "",
        iteration.goal or "No goal defined.",
        "",
        ITERATION_INSTRUCTIONS,
        "",
        "## User Stories",
        "",
    ]
    lines.extend(_plan_item_lines(items))
    return "\n".join(lines) + "\n"
