"""Tests for agents_config module."""

import pytest
from unittest.mock import patch

from agile_planner.lib.agents_config import (
    AgentsConfig,
    DEFAULT_STAGE_COMMANDS,
    check_stage_binary,
    get_stage_command,
    load_agents_config,
)


class TestLoadAgentsConfig:

    def test_returns_defaults_when_no_path(self):
        assert load_agents_config(None).stages == DEFAULT_STAGE_COMMANDS

    def test_returns_defaults_when_file_missing(self, tmp_path):
        assert load_agents_config(tmp_path).stages == DEFAULT_STAGE_COMMANDS

    def test_loads_yaml_from_directory(self, tmp_path):
        (tmp_path / "agents.yaml").write_text(
            "stages:\n  generate_feature: other-agent --json -p {prompt}\n"
        )
        config = load_agents_config(tmp_path)
        assert config.stages["generate_feature"] == "other-agent --json -p {prompt}"
        assert config.stages["generate_backlog"] == DEFAULT_STAGE_COMMANDS["generate_backlog"]

    def test_loads_explicit_file(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text("stages:\n  generate_backlog: my-agent\n")
        assert load_agents_config(path).stages["generate_backlog"] == "my-agent"

    def test_invalid_yaml_falls_back(self, tmp_path, caplog):
        (tmp_path / "agents.yaml").write_text("stages: [unclosed\n")
        config = load_agents_config(tmp_path)
        assert config.stages == DEFAULT_STAGE_COMMANDS
        assert "Failed to parse" in caplog.text

    def test_empty_command_ignored(self, tmp_path):
        (tmp_path / "agents.yaml").write_text("stages:\n  generate_backlog: ''\n")
        config = load_agents_config(tmp_path)
        assert config.stages["generate_backlog"] == DEFAULT_STAGE_COMMANDS["generate_backlog"]


class TestGetStageCommand:

    def test_default_sends_prompt_on_stdin(self):
        result = get_stage_command(AgentsConfig(), "generate_backlog", "hello")
        assert result.cmd == ["claude", "-p", "--output-format", "json"]
        assert result.prompt_via_stdin is True
        assert result.output_format == "json"
        assert result.get_stdin_input("hello") == "hello"

    def test_prompt_placeholder_becomes_single_argument(self):
        config = AgentsConfig(stages={"generate_feature": "agent -p {prompt}"})
        result = get_stage_command(config, "generate_feature", "it's \"quoted\" text")
        assert result.cmd == ["agent", "-p", "it's \"quoted\" text"]
        assert result.prompt_via_stdin is False
        assert result.get_stdin_input("x") is None

    def test_output_format_equals_form(self):
        config = AgentsConfig(stages={"generate_feature": "agent --output-format=json"})
        assert get_stage_command(config, "generate_feature").output_format == "json"

    def test_unknown_stage(self):
        with pytest.raises(ValueError, match="Unknown stage"):
            get_stage_command(AgentsConfig(), "deploy")

    def test_unsupported_variable(self):
        config = AgentsConfig(stages={"generate_feature": "agent -C {worktree}"})
        with pytest.raises(ValueError, match="worktree"):
            get_stage_command(config, "generate_feature")


class TestCheckStageBinary:

    @patch("agile_planner.lib.agents_config.shutil.which", return_value="/usr/bin/claude")
    def test_available(self, mock_which):
        assert check_stage_binary(AgentsConfig(), "generate_backlog") is None
        mock_which.assert_called_once_with("claude")

    @patch("agile_planner.lib.agents_config.shutil.which", return_value=None)
    def test_missing(self, mock_which):
        message = check_stage_binary(AgentsConfig(), "generate_backlog")
        assert "'claude'" in message
        assert "agents.yaml" in message
