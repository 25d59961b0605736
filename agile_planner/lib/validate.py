"""
Schema validation for backlogs.

Every backlog is checked here before anything touches the disk. Schema
violations and cross-entity problems (duplicate ids, colliding iteration
folders) are collected rather than raised, so a caller gets the full list
in one round trip.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema

from .paths import slugify

BACKLOG_SCHEMA = "backlog"


class ValidationError(Exception):
    """Schema validation failed."""

    def __init__(self, schema_name: str, message: str, path: str = None):
        self.schema_name = schema_name
        self.path = path
        super().__init__(f"[{schema_name}] {message}" + (f" at {path}" if path else ""))


@dataclass
class ValidationResult:
    """Outcome of validate_backlog(). errors is empty when valid is True."""
    valid: bool
    errors: list[str] = field(default_factory=list)


_schema_cache: dict[str, dict] = {}


def _get_schemas_dir() -> Path:
    return Path(__file__).resolve().parent.parent / "schemas"


def _load_schema(schema_name: str) -> dict:
    """Load schema by name, with caching."""
    if schema_name not in _schema_cache:
        schema_path = _get_schemas_dir() / f"{schema_name}.schema.json"
        if not schema_path.exists():
            raise ValidationError(schema_name, f"Schema file not found: {schema_path}")
        _schema_cache[schema_name] = json.loads(schema_path.read_text(encoding="utf-8"))
    return _schema_cache[schema_name]


def _format_path(error: jsonschema.ValidationError) -> str:
    return ".".join(str(p) for p in error.absolute_path) if error.absolute_path else "(root)"


def schema_errors(data: Any, schema: dict) -> list[str]:
    """Return every violation of an inline schema as 'path: message' strings."""
    validator_cls = jsonschema.validators.validator_for(schema)
    errors = sorted(validator_cls(schema).iter_errors(data), key=lambda e: list(map(str, e.absolute_path)))
    return [f"{_format_path(e)}: {e.message}" for e in errors]


def extract_backlog_data(payload: Any) -> Any:
    """Unwrap a generation envelope ({success, result}) to the bare backlog.

    Anything that isn't an envelope is returned unchanged.
    """
    if isinstance(payload, dict) and "success" in payload and "result" in payload:
        return payload["result"]
    return payload


def _structural_errors(backlog: dict) -> list[str]:
    """Cross-entity checks the schema can't express."""
    errors = []
    story_ids: set[str] = set()
    epic_ids: set[str] = set()

    for e_idx, epic in enumerate(backlog["epics"]):
        if epic["id"] in epic_ids:
            errors.append(f"epics.{e_idx}.id: duplicate epic id '{epic['id']}'")
        epic_ids.add(epic["id"])

        feature_ids: set[str] = set()
        for f_idx, feature in enumerate(epic.get("features") or []):
            where = f"epics.{e_idx}.features.{f_idx}"
            if feature["id"] in feature_ids:
                errors.append(f"{where}.id: duplicate feature id '{feature['id']}' in epic '{epic['id']}'")
            feature_ids.add(feature["id"])

            stories = feature.get("stories") or feature.get("userStories") or []
            for s_idx, story in enumerate(stories):
                if story["id"] in story_ids:
                    errors.append(f"{where}.stories.{s_idx}.id: duplicate story id '{story['id']}'")
                story_ids.add(story["id"])

    slugs: dict[str, str] = {}
    for i_idx, iteration in enumerate(backlog.get("iterations") or []):
        slug = slugify(iteration["name"])
        if slug in slugs:
            errors.append(
                f"iterations.{i_idx}.name: '{iteration['name']}' maps to the same folder "
                f"'{slug}' as '{slugs[slug]}'"
            )
        slugs.setdefault(slug, iteration["name"])

    return errors


def validate_backlog(payload: Any) -> ValidationResult:
    """
    Check a backlog (or a generation envelope around one).

    Never raises. Returns ValidationResult(valid, errors).
    """
    data = extract_backlog_data(payload)

    if not isinstance(data, dict):
        return ValidationResult(False, [f"(root): backlog must be an object, got {type(data).__name__}"])

    if "epics" not in data and "epic" in data:
        return ValidationResult(
            False, ["(root): singular 'epic' is not supported, provide an 'epics' list"]
        )

    try:
        schema = _load_schema(BACKLOG_SCHEMA)
    except ValidationError as e:
        return ValidationResult(False, [str(e)])

    errors = schema_errors(data, schema)
    if errors:
        return ValidationResult(False, errors)

    errors = _structural_errors(data)
    return ValidationResult(not errors, errors)
