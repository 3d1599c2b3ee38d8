"""Tests for the subprocess execution engine."""

import os
from unittest.mock import MagicMock, patch

import pytest

from depwright.core.types import ProgressEventType
from depwright.services.command_runner import STDERR, STDOUT, CommandRunner

pytestmark = pytest.mark.skipif(os.name == "nt", reason="uses POSIX shell commands")


@pytest.fixture
def runner():
    return CommandRunner(timeout=10)


class TestRun:
    def test_success_collects_stdout(self, runner):
        """Test stdout lines are collected on success."""
        result = runner.run("echo hello && echo world")
        assert result.success
        assert result.exit_code == 0
        assert result.stdout == ["hello", "world"]

    def test_nonzero_exit(self, runner):
        """Test a non-zero exit is a failure with its code."""
        result = runner.run("exit 3")
        assert not result
        assert result.exit_code == 3
        assert result.describe_failure() == "exited with code 3"

    def test_stderr_is_informational(self, runner):
        """Test stderr output does not fail a successful command."""
        result = runner.run("echo progress >&2")
        assert result.success
        assert result.stderr == ["progress"]

    def test_on_output_receives_streams(self, runner):
        """Test the callback receives (stream, line) pairs."""
        seen = []
        runner.run("echo out; echo err >&2", on_output=lambda s, line: seen.append((s, line)))
        assert (STDOUT, "out") in seen
        assert (STDERR, "err") in seen

    def test_callback_error_does_not_abort(self, runner):
        """Test a raising callback is logged and ignored."""
        callback = MagicMock(side_effect=RuntimeError("boom"))
        result = runner.run("echo a", on_output=callback)
        assert result.success
        callback.assert_called_once()

    def test_timeout_kills_process(self, runner):
        """Test a command exceeding its timeout is killed."""
        result = runner.run("sleep 30", timeout=0.5)
        assert result.timed_out
        assert not result.success
        assert result.describe_failure() == "timed out"

    def test_missing_working_directory(self, runner, tmp_path):
        """Test a spawn failure is reported, not raised."""
        result = runner.run("echo hi", working_directory=str(tmp_path / "missing"))
        assert result.spawn_error is not None
        assert result.describe_failure().startswith("failed to start")

    def test_working_directory(self, runner, tmp_path):
        """Test commands run in the given directory."""
        result = runner.run("pwd", working_directory=str(tmp_path))
        assert os.path.realpath(result.output) == os.path.realpath(str(tmp_path))

    @patch("depwright.services.command_runner.subprocess.Popen", side_effect=OSError("no shell"))
    def test_popen_error(self, mock_popen, runner):
        """Test Popen errors become spawn errors."""
        result = runner.run("anything")
        assert result.spawn_error == "no shell"
        assert result.exit_code is None


class TestStream:
    def test_event_order_success(self, runner):
        """Test events of a successful two command sequence."""
        events = list(runner.stream(["echo one", "echo two"]))
        types = [e.type for e in events]

        assert types == [
            ProgressEventType.COMMAND_START,
            ProgressEventType.COMMAND_OUTPUT,
            ProgressEventType.COMMAND_COMPLETE,
            ProgressEventType.COMMAND_START,
            ProgressEventType.COMMAND_OUTPUT,
            ProgressEventType.COMMAND_COMPLETE,
            ProgressEventType.INSTALL_COMPLETE,
        ]
        assert events[1].output == "one"
        assert events[4].command_index == 1
        assert all(e.total_commands == 2 for e in events)
        assert events[-1].command_index == 1

    def test_stops_at_first_failure(self, runner):
        """Test the first failing command ends the sequence."""
        events = list(runner.stream(["echo ok", "echo bad >&2; exit 2", "echo never"]))

        terminal = [e for e in events if e.type in (ProgressEventType.INSTALL_COMPLETE, ProgressEventType.INSTALL_ERROR)]
        assert len(terminal) == 1
        assert events[-1].type == ProgressEventType.INSTALL_ERROR
        assert events[-1].command_index == 1
        assert "Command 2/3 exited with code 2" in events[-1].error
        assert "bad" in events[-1].error
        assert not any(e.command == "echo never" for e in events)

        complete = [e for e in events if e.type == ProgressEventType.COMMAND_COMPLETE]
        assert complete[-1].exit_code == 2

    def test_stderr_events(self, runner):
        """Test stderr lines become command-error events."""
        events = list(runner.stream(["echo warn >&2"]))
        errors = [e for e in events if e.type == ProgressEventType.COMMAND_ERROR]
        assert errors[0].error == "warn"
        assert events[-1].type == ProgressEventType.INSTALL_COMPLETE

    def test_is_lazy(self, runner, tmp_path):
        """Test nothing runs until the iterator is consumed."""
        marker = tmp_path / "ran"
        events = runner.stream([f"touch {marker}"])
        assert not marker.exists()
        first = next(events)
        assert first.type == ProgressEventType.COMMAND_START
        list(events)
        assert marker.exists()


class TestRunSequence:
    def test_success(self, runner):
        """Test a successful sequence result."""
        seen = []
        result = runner.run_sequence(["true", "echo done"], on_progress=seen.append)
        assert result.success
        assert result.failed_index is None
        assert seen[-1].type == ProgressEventType.INSTALL_COMPLETE

    def test_failure(self, runner):
        """Test the failing index and message are reported."""
        result = runner.run_sequence(["true", "false"])
        assert not result.success
        assert result.failed_index == 1
        assert "exited with code 1" in result.error
