"""Tests for agile_planner.lib.validate module."""

import pytest

from agile_planner.lib.validate import (
    ValidationError,
    extract_backlog_data,
    schema_errors,
    validate_backlog,
)


class TestExtractBacklogData:

    def test_unwraps_envelope(self, backlog):
        assert extract_backlog_data({"success": True, "result": backlog}) is backlog

    def test_bare_backlog_unchanged(self, backlog):
        assert extract_backlog_data(backlog) is backlog

    def test_non_dict_unchanged(self):
        assert extract_backlog_data([1, 2]) == [1, 2]


class TestValidateBacklog:

    def test_sample_is_valid(self, backlog):
        result = validate_backlog(backlog)
        assert result.valid is True
        assert result.errors == []

    def test_envelope_is_valid(self, backlog):
        assert validate_backlog({"success": True, "result": backlog}).valid

    def test_minimal_backlog(self):
        assert validate_backlog({"epics": []}).valid

    def test_missing_epics(self):
        result = validate_backlog({"projectName": "x"})
        assert result.valid is False
        assert any("'epics' is a required property" in e for e in result.errors)

    def test_legacy_singular_epic_rejected(self):
        result = validate_backlog({"epic": {"id": "e1", "features": []}})
        assert result.valid is False
        assert "singular 'epic'" in result.errors[0]

    def test_epics_must_be_list(self):
        result = validate_backlog({"epics": {"id": "e1"}})
        assert not result.valid
        assert result.errors[0].startswith("epics:")

    def test_not_an_object(self):
        result = validate_backlog("backlog")
        assert not result.valid
        assert "must be an object" in result.errors[0]

    def test_collects_every_error(self, backlog):
        del backlog["epics"][0]["id"]
        backlog["epics"][0]["features"][0]["stories"][0]["tasks"] = "not a list"
        result = validate_backlog(backlog)
        assert not result.valid
        assert len(result.errors) == 2
        assert any(e.startswith("epics.0:") for e in result.errors)
        assert any(e.startswith("epics.0.features.0.stories.0.tasks:") for e in result.errors)

    @pytest.mark.parametrize("bad_id", ["", "a/b", "a\\b", ".", "..", "a\x00b", "tab\there", "del\x7f"])
    def test_ids_must_be_path_segments(self, backlog, bad_id):
        backlog["epics"][0]["id"] = bad_id
        assert not validate_backlog(backlog).valid

    def test_dotted_ids_are_fine(self, backlog):
        backlog["epics"][0]["id"] = "v1.2"
        assert validate_backlog(backlog).valid

    def test_duplicate_story_ids(self, backlog):
        backlog["epics"][0]["features"][0]["stories"][1]["id"] = "s1"
        result = validate_backlog(backlog)
        assert not result.valid
        assert "duplicate story id 's1'" in result.errors[0]

    def test_duplicate_epic_ids(self, backlog):
        backlog["epics"][1]["id"] = "ep1"
        result = validate_backlog(backlog)
        assert "duplicate epic id 'ep1'" in result.errors[0]

    def test_duplicate_feature_ids_within_epic(self, backlog):
        backlog["epics"][0]["features"][1]["id"] = "f1"
        result = validate_backlog(backlog)
        assert "duplicate feature id 'f1'" in result.errors[0]

    def test_iteration_slug_collision(self, backlog):
        backlog["iterations"].append({"name": "sprint-1", "stories": []})
        result = validate_backlog(backlog)
        assert not result.valid
        assert "same folder 'sprint-1'" in result.errors[0]

    def test_mvp_object_form(self, backlog):
        backlog["mvp"] = {"title": "First release", "stories": ["s1", {"id": "x9", "title": "Later"}]}
        assert validate_backlog(backlog).valid

    def test_mvp_bad_reference(self, backlog):
        backlog["mvp"] = [42]
        assert not validate_backlog(backlog).valid


class TestValidationError:

    def test_message_includes_schema_and_path(self):
        exc = ValidationError("backlog", "'id' is a required property", "epics.0")
        assert exc.schema_name == "backlog"
        assert exc.path == "epics.0"
        assert str(exc) == "[backlog] 'id' is a required property at epics.0"

    def test_message_without_path(self):
        assert str(ValidationError("backlog", "bad")) == "[backlog] bad"


class TestSchemaErrors:

    def test_inline_schema(self):
        schema = {"type": "object", "required": ["name"], "properties": {"n": {"type": "integer"}}}
        errors = schema_errors({"n": "x"}, schema)
        assert len(errors) == 2
        assert "(root): 'name' is a required property" in errors
