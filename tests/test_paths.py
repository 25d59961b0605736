"""Tests for agile_planner.lib.paths module."""

import pytest
from pathlib import Path

from agile_planner.lib import paths


class TestSlugify:

    @pytest.mark.parametrize("name,expected", [
        ("Sprint 1", "sprint-1"),
        ("  Iteration #2: Checkout!  ", "iteration-2-checkout"),
        ("Élan", "lan"),
        ("???", "iteration"),
    ])
    def test_slugify(self, name, expected):
        assert paths.slugify(name) == expected

    def test_custom_fallback(self):
        assert paths.slugify("!!!", fallback="feature") == "feature"

    def test_truncates_without_trailing_hyphen(self):
        slug = paths.slugify("a" * 59 + " b", max_len=60)
        assert slug == "a" * 59


class TestResolveOutputRoot:

    def test_explicit_wins(self, tmp_path):
        root = paths.resolve_output_root(str(tmp_path / "explicit"), "/env/root", cwd=tmp_path)
        assert root == tmp_path / "explicit"

    def test_env_override_next(self, tmp_path):
        assert paths.resolve_output_root(None, "/env/root", cwd=tmp_path) == Path("/env/root")

    def test_cwd_last(self, tmp_path):
        assert paths.resolve_output_root(None, None, cwd=tmp_path) == tmp_path.resolve()

    def test_relative_made_absolute(self, tmp_path):
        root = paths.resolve_output_root("out", None, cwd=tmp_path)
        assert root.is_absolute()
        assert root == (tmp_path / "out").resolve()

    def test_defaults_to_process_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert paths.resolve_output_root() == tmp_path.resolve()


class TestCanonicalPaths:

    @pytest.fixture
    def backlog_dir(self, tmp_path):
        return paths.get_backlog_dir(tmp_path)

    def test_backlog_dir_name(self, tmp_path, backlog_dir):
        assert backlog_dir == tmp_path / ".agile-planner-backlog"

    def test_story_path(self, backlog_dir):
        assert paths.story_path(backlog_dir, "ep1", "f1", "s1") == (
            backlog_dir / "epics" / "ep1" / "features" / "f1" / "user-stories" / "s1.md"
        )

    def test_ids_used_verbatim(self, backlog_dir):
        assert paths.epic_dir(backlog_dir, "EPIC One").name == "EPIC One"

    def test_planning_paths(self, backlog_dir):
        assert paths.mvp_path(backlog_dir) == backlog_dir / "planning" / "mvp" / "mvp.md"
        assert paths.iteration_path(backlog_dir, "Sprint 1") == (
            backlog_dir / "planning" / "iterations" / "sprint-1" / "iteration.md"
        )

    def test_deterministic(self, backlog_dir):
        first = paths.feature_path(backlog_dir, "ep1", "f1")
        assert paths.feature_path(backlog_dir, "ep1", "f1") == first

    def test_relative_to_backlog_uses_forward_slashes(self, backlog_dir):
        rel = paths.relative_to_backlog(backlog_dir, paths.epic_path(backlog_dir, "ep1"))
        assert rel == "epics/ep1/epic.md"


class TestRelativeStoryLink:

    def test_from_mvp(self):
        assert paths.relative_story_link("mvp", "ep1", "f1", "s1") == (
            "../../epics/ep1/features/f1/user-stories/s1.md"
        )

    def test_from_iteration(self):
        assert paths.relative_story_link("iteration", "ep1", "f1", "s1") == (
            "../../../epics/ep1/features/f1/user-stories/s1.md"
        )

    def test_link_resolves_to_story_file(self, tmp_path):
        backlog_dir = paths.get_backlog_dir(tmp_path)
        link = paths.relative_story_link("iteration", "ep1", "f1", "s1")
        target = (paths.iteration_path(backlog_dir, "Sprint 1").parent / link).resolve()
        assert target == paths.story_path(backlog_dir, "ep1", "f1", "s1").resolve()

    def test_unsupported_location(self):
        with pytest.raises(ValueError, match="Unsupported link location 'epic'"):
            paths.relative_story_link("epic", "ep1", "f1", "s1")
