"""Tests for agile_planner.lib.envparse module."""

import pytest

from agile_planner.lib.envparse import load_env, parse_env_text


class TestParseEnvText:

    def test_basic_pairs(self):
        assert parse_env_text("A=1\nB_2=two\n") == {"A": "1", "B_2": "two"}

    def test_skips_comments_and_blank_lines(self):
        assert parse_env_text("# comment\n\nA=1\n") == {"A": "1"}

    def test_strips_matching_quotes(self):
        env = parse_env_text('A="hello world"\nB=\'x\'\nC="unbalanced\n')
        assert env == {"A": "hello world", "B": "x", "C": '"unbalanced'}

    def test_export_prefix(self):
        assert parse_env_text("export LOG_LEVEL=DEBUG") == {"LOG_LEVEL": "DEBUG"}

    def test_missing_equals_rejected(self):
        with pytest.raises(ValueError, match="expected KEY=value"):
            parse_env_text("JUSTAKEY")

    def test_lowercase_key_rejected(self):
        with pytest.raises(ValueError, match="invalid key 'lower'"):
            parse_env_text("lower=1")

    @pytest.mark.parametrize("value", ["$(rm -rf /)", "`id`", "${HOME}", "a;b", "a && b", "a | b"])
    def test_forbidden_patterns(self, value):
        with pytest.raises(ValueError, match="forbidden pattern"):
            parse_env_text(f"A={value}")


class TestLoadEnv:

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_env(tmp_path / "nope.env")

    def test_error_names_file_and_line(self, tmp_path):
        env_file = tmp_path / "planner.env"
        env_file.write_text("A=1\nbroken\n")
        with pytest.raises(ValueError, match=r"planner\.env:2"):
            load_env(env_file)
