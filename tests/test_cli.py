"""Tests for CLI commands."""

import json
from pathlib import Path

import pytest

from memloop.cli.app import app
from memloop.extraction.prompts import DEFAULT_EXTRACTION_PROMPT


def _flat(text: str) -> str:
    """Collapse whitespace so wrapped console output can be matched."""
    return "".join(text.split())


@pytest.fixture
def config_file(tmp_path: Path, vaults_dir: Path) -> Path:
    (vaults_dir / "personal").mkdir()
    path = tmp_path / "config.toml"
    path.write_text(
        f"""
vaults_dir = "{vaults_dir}"
timezone = "UTC"

[[vaults]]
id = "personal"
path = "personal"
"""
    )
    return path


class TestMemoryCommand:
    def test_path(self, cli_runner, memory_path: Path):
        result = cli_runner.invoke(app, ["memory", "path"])
        assert result.exit_code == 0
        assert str(memory_path) in _flat(result.stdout)

    def test_show_missing(self, cli_runner):
        result = cli_runner.invoke(app, ["memory", "show"])
        assert result.exit_code == 0
        assert "empty or missing" in result.stdout

    def test_show(self, cli_runner, memory_path: Path):
        memory_path.parent.mkdir(parents=True)
        memory_path.write_text("## Facts\nKeeps bees\n")

        result = cli_runner.invoke(app, ["memory", "show"])

        assert result.exit_code == 0
        assert "Keeps bees" in result.stdout

    def test_size(self, cli_runner, memory_path: Path):
        memory_path.parent.mkdir(parents=True)
        memory_path.write_text("## Facts\nKeeps bees\nRuns marathons\n")

        result = cli_runner.invoke(app, ["memory", "size"])

        assert result.exit_code == 0
        assert "50.0 KiB" in result.stdout
        assert "(2 facts)" in result.stdout

    def test_edit(self, cli_runner, tmp_path: Path, memory_path: Path):
        source = tmp_path / "new.md"
        source.write_text("## Facts\nSpeaks Portuguese\n")

        result = cli_runner.invoke(app, ["memory", "edit", "--file", str(source)])

        assert result.exit_code == 0
        assert memory_path.read_text() == "## Facts\nSpeaks Portuguese\n"

    def test_edit_requires_file(self, cli_runner):
        result = cli_runner.invoke(app, ["memory", "edit"])
        assert result.exit_code == 1
        assert "--file is required" in result.stdout

    def test_unknown_action(self, cli_runner):
        result = cli_runner.invoke(app, ["memory", "unknown"])
        assert result.exit_code == 1
        assert "Unknown action" in result.stdout

    def test_no_action_shows_help(self, cli_runner):
        result = cli_runner.invoke(app, ["memory"])
        assert result.exit_code == 0
        assert "Usage" in result.stdout

    def test_missing_config_file(self, cli_runner, tmp_path: Path):
        result = cli_runner.invoke(
            app, ["memory", "path", "--config", str(tmp_path / "missing.toml")]
        )
        assert result.exit_code == 1
        assert "not found" in result.stdout


class TestInsightsCommand:
    def test_set_and_show(self, cli_runner, config_file: Path, vaults_dir: Path):
        result = cli_runner.invoke(
            app,
            ["insights", "set", "--vault", "personal", "--text", "Prefers tables", "-c", str(config_file)],
        )
        assert result.exit_code == 0
        assert "Prefers tables" in (vaults_dir / "personal" / "CLAUDE.md").read_text()

        result = cli_runner.invoke(
            app, ["insights", "show", "--vault", "personal", "-c", str(config_file)]
        )
        assert result.exit_code == 0
        assert "Prefers tables" in result.stdout

    def test_unknown_vault(self, cli_runner, config_file: Path):
        result = cli_runner.invoke(
            app, ["insights", "show", "--vault", "work", "-c", str(config_file)]
        )
        assert result.exit_code == 1
        assert "Unknown vault" in result.stdout

    def test_requires_vault(self, cli_runner):
        result = cli_runner.invoke(app, ["insights", "show"])
        assert result.exit_code == 1
        assert "--vault is required" in result.stdout


class TestPromptCommand:
    def test_show_built_in(self, cli_runner):
        result = cli_runner.invoke(app, ["prompt", "show"])
        assert result.exit_code == 0
        assert "built-in" in result.stdout
        assert DEFAULT_EXTRACTION_PROMPT.splitlines()[0] in result.stdout

    def test_set_show_reset(self, cli_runner, tmp_path: Path, isolated_home: Path):
        source = tmp_path / "mine.md"
        source.write_text("Only extract gardening facts.")

        result = cli_runner.invoke(app, ["prompt", "set", "--file", str(source)])
        assert result.exit_code == 0
        assert (isolated_home / "durable-facts.md").read_text() == "Only extract gardening facts."

        result = cli_runner.invoke(app, ["prompt", "show"])
        assert "Only extract gardening facts." in result.stdout

        result = cli_runner.invoke(app, ["prompt", "reset"])
        assert result.exit_code == 0
        assert "removed" in result.stdout
        assert not (isolated_home / "durable-facts.md").exists()

        result = cli_runner.invoke(app, ["prompt", "reset"])
        assert "No prompt override" in result.stdout

    def test_path(self, cli_runner, isolated_home: Path):
        result = cli_runner.invoke(app, ["prompt", "path"])
        assert result.exit_code == 0
        assert str(isolated_home / "durable-facts.md") in _flat(result.stdout)

    def test_unknown_action(self, cli_runner):
        result = cli_runner.invoke(app, ["prompt", "unknown"])
        assert result.exit_code == 1
        assert "Unknown action" in result.stdout


class TestRunCommand:
    def test_run_with_no_transcripts(self, cli_runner, config_file: Path, isolated_home: Path):
        result = cli_runner.invoke(app, ["run", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "Extraction complete" in result.stdout
        assert (isolated_home / "extraction-state.json").exists()

    def test_run_json(self, cli_runner, config_file: Path):
        result = cli_runner.invoke(app, ["run", "--json", "--config", str(config_file)])

        assert result.exit_code == 0
        payload = json.loads(result.stdout[result.stdout.index("{") :])
        assert payload["success"] is True
        assert payload["transcripts_discovered"] == 0
        assert payload["was_catch_up"] is False
        assert payload["error"] is None
        assert "Extraction complete" not in result.stdout

    def test_run_invalid_config(self, cli_runner, tmp_path: Path):
        path = tmp_path / "bad.toml"
        path.write_text("vaults = [")

        result = cli_runner.invoke(app, ["run", "--config", str(path)])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.stdout


class TestStatusCommand:
    def test_status_never_run(self, cli_runner, config_file: Path):
        result = cli_runner.invoke(app, ["status", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "never" in result.stdout
        assert "Needs catch-up" in result.stdout
        assert "Paths" in result.stdout
        assert "prompt_override" in result.stdout

    def test_status_invalid_schedule(self, cli_runner, config_file: Path):
        result = cli_runner.invoke(
            app,
            ["status", "--config", str(config_file)],
            env={"EXTRACTION_SCHEDULE": "bogus"},
        )

        assert result.exit_code == 0
        assert "invalid schedule" in result.stdout
