"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json
import subprocess
import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner

from src.leitner.cli import app
from src.leitner.storage import PROGRESS_KEY, SCHEMA_VERSION_KEY

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent

runner = CliRunner()


def run_cli_command(command: str, timeout: int = 30) -> tuple[int, str, str]:
    """
    Run a CLI command and return exit code, stdout, stderr.

    Args:
        command: The command to run (after 'python -m src.leitner')
        timeout: Maximum time to wait

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    full_command = f"{sys.executable} -m src.leitner {command}"

    result = subprocess.run(
        full_command,
        shell=True,
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        timeout=timeout,
    )

    return result.returncode, result.stdout, result.stderr


@pytest.fixture
def catalog_file(tmp_path):
    items = [
        {"id": f"q{i:02d}", "topic": ["networking", "security"][i % 2], "optionCount": 4}
        for i in range(6)
    ]
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"items": items}), encoding="utf-8")
    return path


@pytest.fixture
def storage_file(tmp_path):
    return tmp_path / "storage.json"


def invoke(*args):
    return runner.invoke(app, [str(a) for a in args])


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        """Main help should display without errors."""
        code, stdout, stderr = run_cli_command("--help")

        assert code == 0, f"Help failed: {stderr}"
        assert "leitner" in stdout.lower()
        assert "Commands" in stdout

    @pytest.mark.parametrize("command", ["due", "answer", "stats", "session", "migrate"])
    def test_command_help(self, command):
        result = invoke(command, "--help")
        assert result.exit_code == 0, result.output


class TestCLIStudy:
    """Test the study commands against a temp storage file."""

    def test_due_lists_items(self, catalog_file, storage_file):
        result = invoke("due", "-c", catalog_file, "-s", storage_file)

        assert result.exit_code == 0, result.output
        assert "Due (6 items)" in result.output
        assert "q00" in result.output

    def test_answer_then_progress(self, catalog_file, storage_file):
        result = invoke("answer", "q01", "--correct", "-c", catalog_file, "-s", storage_file)
        assert result.exit_code == 0, result.output
        assert "Correct" in result.output

        result = invoke("progress", "q01", "-s", storage_file)
        assert result.exit_code == 0, result.output
        assert "Times correct" in result.output

        saved = json.loads(storage_file.read_text(encoding="utf-8"))
        assert json.loads(saved[PROGRESS_KEY])["q01"]["currentBox"] == 2

    def test_unknown_item_fails(self, catalog_file, storage_file):
        result = invoke("answer", "nope", "--wrong", "-c", catalog_file, "-s", storage_file)
        assert result.exit_code == 1

    def test_missing_catalog_fails(self, tmp_path, storage_file):
        result = invoke("due", "-c", tmp_path / "missing.json", "-s", storage_file)
        assert result.exit_code == 1

    def test_stats_runs(self, catalog_file, storage_file):
        invoke("answer", "q00", "--correct", "-c", catalog_file, "-s", storage_file)
        result = invoke("stats", "-c", catalog_file, "-s", storage_file)

        assert result.exit_code == 0, result.output
        assert "Learning Statistics" in result.output
        assert "Boxes" in result.output


class TestCLISession:
    """Test the session commands."""

    def test_session_round(self, catalog_file, storage_file):
        result = invoke("session", "-c", catalog_file, "-s", storage_file)
        assert result.exit_code == 0, result.output
        assert "Session (6 items)" in result.output

        result = invoke(
            "answer", "q02", "--correct", "--choice", "1", "--session",
            "-c", catalog_file, "-s", storage_file,
        )
        assert result.exit_code == 0, result.output

        result = invoke("session-end", "-c", catalog_file, "-s", storage_file)
        assert result.exit_code == 0, result.output
        assert "Correct: 1" in result.output
        assert "Incorrect: 5" in result.output

    def test_session_end_after_answering_everything(self, catalog_file, storage_file):
        """Ending a session whose items were all answered reports every answer."""
        result = invoke("session", "-c", catalog_file, "-s", storage_file)
        assert result.exit_code == 0, result.output

        for i in range(6):
            result = invoke(
                "answer", f"q{i:02d}", "--correct", "--session",
                "-c", catalog_file, "-s", storage_file,
            )
            assert result.exit_code == 0, result.output

        result = invoke("session-end", "-c", catalog_file, "-s", storage_file)
        assert result.exit_code == 0, result.output
        assert "Correct: 6" in result.output
        assert "Incorrect: 0" in result.output

    def test_session_end_without_session_fails(self, catalog_file, storage_file):
        result = invoke("session-end", "-c", catalog_file, "-s", storage_file)
        assert result.exit_code == 1
        assert "No active session" in result.output

    def test_session_answer_needs_catalog(self, storage_file):
        result = invoke("answer", "q00", "--correct", "--session", "-s", storage_file)
        assert result.exit_code == 1

    def test_session_new(self, catalog_file, storage_file):
        result = invoke("session-new", "-c", catalog_file, "-s", storage_file)
        assert result.exit_code == 0, result.output
        assert "New session (6 items)" in result.output


class TestCLISettings:
    """Test target, reset and migrate."""

    def test_target_set_and_show(self, storage_file):
        result = invoke("target", "25", "-s", storage_file)
        assert result.exit_code == 0, result.output

        result = invoke("target", "-s", storage_file)
        assert "25" in result.output

    def test_target_out_of_range_fails(self, storage_file):
        result = invoke("target", "900", "-s", storage_file)
        assert result.exit_code == 1

    def test_reset_with_yes(self, catalog_file, storage_file):
        invoke("answer", "q00", "--correct", "-c", catalog_file, "-s", storage_file)
        result = invoke("reset", "--yes", "-s", storage_file)

        assert result.exit_code == 0, result.output
        assert PROGRESS_KEY not in json.loads(storage_file.read_text(encoding="utf-8"))

    def test_migrate_legacy_storage(self, storage_file):
        storage_file.write_text(json.dumps({"quiz_progress_old": "{}"}), encoding="utf-8")

        result = invoke("migrate", "-s", storage_file)
        assert result.exit_code == 0, result.output
        assert "Migrated storage" in result.output

        saved = json.loads(storage_file.read_text(encoding="utf-8"))
        assert "quiz_progress_old" not in saved
        assert saved[SCHEMA_VERSION_KEY] == "2"

        result = invoke("migrate", "-s", storage_file)
        assert "already at schema 2" in result.output
