"""Tests for CLI argument handling in main.py."""
import json
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from fclipsync.main import main


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "config.json"


@pytest.fixture
def mock_run_agent():
    with patch("fclipsync.main._run_agent") as mock_run:
        yield mock_run


def _saved(config_path: Path) -> dict:
    return json.loads(config_path.read_text())


class TestCLIArguments:
    """Tests for command-line argument validation."""

    def test_both_watch_modes_exits_with_code_2(self, config_path: Path, mock_run_agent):
        """Test that --native-watch and --polling together give a usage error."""
        runner = CliRunner()
        result = runner.invoke(
            main, ["--native-watch", "--polling", "--config", str(config_path)]
        )
        assert result.exit_code == 2
        assert "mutually exclusive" in result.output
        mock_run_agent.assert_not_called()

    def test_malformed_setting_exits_with_code_2(self, config_path: Path, mock_run_agent):
        runner = CliRunner()
        result = runner.invoke(main, ["--set", "send_files", "--config", str(config_path)])
        assert result.exit_code == 2
        assert "KEY=VALUE" in result.output

    def test_unknown_setting_exits_with_code_2(self, config_path: Path, mock_run_agent):
        runner = CliRunner()
        result = runner.invoke(main, ["--set", "colour=blue", "--config", str(config_path)])
        assert result.exit_code == 2
        assert "colour" in result.output

    def test_help_exits_with_code_0(self):
        """Test that --help exits cleanly with code 0."""
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "--folder" in result.output
        assert "--polling" in result.output


class TestConfigPersistence:
    """Tests for settings given on the command line."""

    def test_folder_is_saved_and_agent_started(
        self, tmp_path: Path, config_path: Path, mock_run_agent
    ):
        folder = tmp_path / "share"
        runner = CliRunner()
        result = runner.invoke(main, ["--folder", str(folder), "--config", str(config_path)])

        assert result.exit_code == 0
        assert _saved(config_path)["folder"] == str(folder)
        mock_run_agent.assert_called_once()

    def test_settings_and_watch_mode_are_saved(
        self, tmp_path: Path, config_path: Path, mock_run_agent
    ):
        runner = CliRunner()
        result = runner.invoke(
            main,
            [
                "--folder", str(tmp_path),
                "--polling",
                "--set", "send_files=false",
                "--set", "auto_cleanup=off",
                "--config", str(config_path),
            ],
        )

        assert result.exit_code == 0
        saved = _saved(config_path)
        assert saved["watch_mode"] == "polling"
        assert saved["send_files"] is False
        assert saved["auto_cleanup"] is False

    def test_saved_folder_is_reused(self, tmp_path: Path, config_path: Path, mock_run_agent):
        config_path.write_text(json.dumps({"folder": str(tmp_path)}))
        runner = CliRunner()
        result = runner.invoke(main, ["--config", str(config_path)])

        assert result.exit_code == 0
        store = mock_run_agent.call_args.args[0]
        assert store.config.folder == str(tmp_path)


class TestFolderPrompt:
    """Tests for asking the user for a sync folder."""

    def test_prompted_folder_is_saved(self, tmp_path: Path, config_path: Path, mock_run_agent):
        runner = CliRunner()
        result = runner.invoke(
            main, ["--config", str(config_path)], input=f"{tmp_path}\n"
        )

        assert result.exit_code == 0
        assert _saved(config_path)["folder"] == str(tmp_path)

    def test_empty_answer_exits_with_code_1(self, config_path: Path, mock_run_agent):
        runner = CliRunner()
        result = runner.invoke(main, ["--config", str(config_path)], input="\n")

        assert result.exit_code == 1
        assert "A sync folder is required" in result.output
        mock_run_agent.assert_not_called()

    def test_change_folder_prompts_even_when_configured(
        self, tmp_path: Path, config_path: Path, mock_run_agent
    ):
        config_path.write_text(json.dumps({"folder": "/old/share"}))
        new_folder = tmp_path / "new"
        runner = CliRunner()
        result = runner.invoke(
            main, ["--change-folder", "--config", str(config_path)], input=f"{new_folder}\n"
        )

        assert result.exit_code == 0
        assert _saved(config_path)["folder"] == str(new_folder)
