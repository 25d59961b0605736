"""
Data models for backlogs.

from_dict() constructors accept both camelCase and snake_case field names
and fill missing optional fields with placeholders, so formatters never
have to guard against absent keys. Input is expected to have passed
validate_backlog() already.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

UNTITLED = "untitled"


def _text_list(value: Any) -> list[str]:
    if not value:
        return []
    return [str(item) for item in value]


@dataclass
class Project:
    name: str = UNTITLED
    description: str = ""

    @classmethod
    def from_backlog(cls, data: dict) -> "Project":
        nested = data.get("project") or {}
        return cls(
            name=data.get("projectName") or nested.get("name") or UNTITLED,
            description=data.get("projectDescription") or nested.get("description") or "",
        )


@dataclass
class UserStory:
    """A user story, owned by exactly one feature unless it is an orphan."""
    id: str
    title: str = UNTITLED
    description: str = ""
    acceptance_criteria: list[str] = field(default_factory=list)
    tasks: list[str] = field(default_factory=list)
    priority: Optional[str] = None             # HIGH, MEDIUM, LOW
    dependencies: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "UserStory":
        return cls(
            id=data["id"],
            title=data.get("title") or UNTITLED,
            description=data.get("description") or "",
            acceptance_criteria=_text_list(
                data.get("acceptanceCriteria", data.get("acceptance_criteria"))
            ),
            tasks=_text_list(data.get("tasks")),
            priority=data.get("priority") or None,
            dependencies=_text_list(data.get("dependencies")),
        )


@dataclass
class Feature:
    id: str
    title: str = UNTITLED
    description: str = ""
    business_value: Optional[str] = None
    stories: list[UserStory] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Feature":
        stories = data.get("stories") or data.get("userStories") or []
        return cls(
            id=data["id"],
            title=data.get("title") or UNTITLED,
            description=data.get("description") or "",
            business_value=data.get("businessValue") or data.get("business_value") or None,
            stories=[UserStory.from_dict(s) for s in stories],
        )


@dataclass
class Epic:
    id: str
    title: str = UNTITLED
    description: str = ""
    features: list[Feature] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Epic":
        return cls(
            id=data["id"],
            title=data.get("title") or UNTITLED,
            description=data.get("description") or "",
            features=[Feature.from_dict(f) for f in data.get("features") or []],
        )


@dataclass
class StoryRef:
    """A reference from the MVP or an iteration to a story.

    Inline details (title, description, priority) are only used when the id
    does not resolve to a story in any feature.
    """
    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None

    @classmethod
    def from_value(cls, value: Any) -> "StoryRef":
        if isinstance(value, str):
            return cls(id=value)
        return cls(
            id=value["id"],
            title=value.get("title") or None,
            description=value.get("description") or None,
            priority=value.get("priority") or None,
        )


def _refs(values: Any) -> list[StoryRef]:
    return [StoryRef.from_value(v) for v in values or []]


@dataclass
class Mvp:
    title: Optional[str] = None
    description: str = ""
    stories: list[StoryRef] = field(default_factory=list)

    @classmethod
    def from_value(cls, value: Any) -> "Mvp":
        if isinstance(value, list):
            return cls(stories=_refs(value))
        return cls(
            title=value.get("title") or None,
            description=value.get("description") or "",
            stories=_refs(value.get("stories") or value.get("userStories")),
        )


@dataclass
class Iteration:
    name: str
    goal: str = ""
    stories: list[StoryRef] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Iteration":
        return cls(
            name=data["name"],
            goal=data.get("goal") or "",
            stories=_refs(data.get("stories")),
        )


@dataclass
class Backlog:
    project: Project
    epics: list[Epic] = field(default_factory=list)
    mvp: Optional[Mvp] = None
    iterations: list[Iteration] = field(default_factory=list)
    orphan_stories: list[UserStory] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Backlog":
        mvp = data.get("mvp")
        return cls(
            project=Project.from_backlog(data),
            epics=[Epic.from_dict(e) for e in data.get("epics") or []],
            mvp=Mvp.from_value(mvp) if mvp is not None else None,
            iterations=[Iteration.from_dict(i) for i in data.get("iterations") or []],
            orphan_stories=[UserStory.from_dict(s) for s in data.get("orphan_stories") or []],
        )


@dataclass
class StoryLocation:
    """Where a materialized story lives. Built as the tree walk writes each story."""
    epic_id: str
    feature_id: str
    story: UserStory
    path: str                                  # Relative to the backlog root
