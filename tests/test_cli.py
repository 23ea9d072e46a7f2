"""Tests for the command line interface."""

import pytest
from click.testing import CliRunner

from powerplan.cli import main


@pytest.fixture
def invoke(tmp_path):
    """Run CLI commands against a data directory under tmp_path."""
    runner = CliRunner()
    env = {"POWERPLAN_DATA_DIR": str(tmp_path / "data")}

    def _invoke(*args: str, input: str | None = None):
        return runner.invoke(main, list(args), env=env, input=input)

    return _invoke


class TestInit:
    """Tests for the init command."""

    def test_init_sample(self, invoke):
        """Test init --sample loads the bundled programs."""
        result = invoke("init", "--sample")
        assert result.exit_code == 0
        assert "Catalog loaded" in result.output

        result = invoke("catalog", "show")
        assert result.exit_code == 0
        assert "wendler-531" in result.output

    def test_uninitialized(self, invoke):
        """Test commands refuse to run before init."""
        result = invoke("status", "alice")
        assert result.exit_code == 1
        assert "powerplan init" in result.output


class TestWorkflow:
    """Tests for the record-enroll-train flow."""

    def test_workout_reports_missing_maxes(self, invoke):
        """Test a workout lists missing maxes and exits non-zero until they are set."""
        assert invoke("init", "--sample").exit_code == 0
        assert invoke("maxes", "set", "alice", "squat", "315").exit_code == 0
        assert invoke("enroll", "alice", "wendler-531").exit_code == 0

        result = invoke("workout", "alice")
        assert result.exit_code == 1
        assert "Missing maxes" in result.output
        assert "bench" in result.output

        assert invoke("maxes", "set", "alice", "bench", "225").exit_code == 0
        result = invoke("workout", "alice")
        assert result.exit_code == 0
        assert "270" in result.output
        assert "190" in result.output
        assert "5+" in result.output

    def test_derived_lift_rejected(self, invoke):
        """Test maxes can't be recorded for a lift derived from another."""
        invoke("init", "--sample")
        result = invoke("maxes", "set", "alice", "paused-squat", "250")
        assert result.exit_code == 1
        assert "validation_error" in result.output

    def test_session_flow(self, invoke):
        """Test starting a session twice fails and finishing advances."""
        invoke("init", "--sample")
        invoke("enroll", "alice", "gzclp")

        assert invoke("session", "start", "alice").exit_code == 0
        result = invoke("session", "start", "alice")
        assert result.exit_code == 1
        assert "workout_already_in_progress" in result.output

        result = invoke("session", "finish", "alice")
        assert result.exit_code == 0
        assert "completed" in result.output

        result = invoke("status", "alice")
        assert "Rotation" in result.output

    def test_forced_trigger(self, invoke):
        """Test --force reapplies a trigger that was already applied."""
        invoke("init", "--sample")
        invoke("maxes", "set", "alice", "squat", "200")
        args = (
            "progression", "trigger", "alice", "gzclp-t1-linear", "squat",
            "--type", "AFTER_SESSION", "--at", "2024-01-03 18:00:00",
        )

        assert "200 -> 205" in invoke(*args).output
        assert "already applied" in invoke(*args).output
        result = invoke(*args, "--force")
        assert result.exit_code == 0
        assert "205 -> 210" in result.output

    def test_not_enrolled(self, invoke):
        """Test a workout needs an enrollment."""
        invoke("init", "--sample")
        result = invoke("workout", "bob")
        assert result.exit_code == 1
        assert "not_enrolled" in result.output


class TestTransition:
    """Tests for the transition command."""

    def test_invalid(self, invoke):
        """Test a completed workout can't restart."""
        result = invoke("transition", "workout", "COMPLETED", "IN_PROGRESS")
        assert result.exit_code == 1
        assert "invalid_transition" in result.output

    def test_valid(self, invoke):
        result = invoke("transition", "enrollment", "active", "quit")
        assert result.exit_code == 0
        assert "ACTIVE -> QUIT" in result.output
