"""Tests for iso/runner.py module.

Uses mocked subprocess for cancellation and timeout paths.
"""

import itertools
import subprocess
import sys
import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from ubuntu_isogen.errors import BuildCancelledError, SubprocessFailureError
from ubuntu_isogen.iso.runner import CommandResult, SubprocessRunner


def mock_process(*communicate_results, returncode=0) -> MagicMock:
    proc = MagicMock()
    proc.communicate.side_effect = list(communicate_results)
    proc.returncode = returncode
    return proc


class TestCommandResult:
    """Tests for CommandResult."""

    def test_success(self):
        assert CommandResult(exit_code=0, output="").success is True
        assert CommandResult(exit_code=2, output="").success is False


class TestSubprocessRunner:
    """Tests for SubprocessRunner."""

    def test_real_command_combines_output(self):
        """Should capture stdout and stderr together with the exit code."""
        runner = SubprocessRunner()

        result = runner(
            [
                sys.executable,
                "-c",
                "import sys; print('out'); sys.stdout.flush(); "
                "print('err', file=sys.stderr); sys.exit(3)",
            ]
        )

        assert result.exit_code == 3
        assert "out" in result.output
        assert "err" in result.output

    def test_undecodable_output(self):
        """Should replace non-UTF-8 bytes instead of failing to decode."""
        runner = SubprocessRunner()

        result = runner(
            [
                sys.executable,
                "-c",
                "import sys; sys.stdout.buffer.write(b'ok \\xff\\xfe name.cfg\\n'); "
                "sys.exit(3)",
            ]
        )

        assert result.exit_code == 3
        assert "ok" in result.output
        assert "name.cfg" in result.output
        assert "�" in result.output

    def test_args_encoding(self):
        proc = mock_process(("ok", None))
        with patch("ubuntu_isogen.iso.runner.subprocess.Popen", return_value=proc) as popen:
            SubprocessRunner()(["xorriso", "-version"])

        assert popen.call_args.kwargs["encoding"] == "utf-8"
        assert popen.call_args.kwargs["errors"] == "replace"

    def test_missing_executable(self):
        """Should raise SubprocessFailureError when launch fails."""
        runner = SubprocessRunner()

        with pytest.raises(SubprocessFailureError) as exc_info:
            runner(["/nonexistent/xorriso-binary", "-version"])

        assert exc_info.value.exit_code == -1

    def test_args_stringified(self):
        """Should pass every argument as a string."""
        proc = mock_process(("ok", None))
        with patch("ubuntu_isogen.iso.runner.subprocess.Popen", return_value=proc) as popen:
            SubprocessRunner()(["xorriso", Path("/tmp/x.iso")])

        assert popen.call_args.args[0] == ["xorriso", "/tmp/x.iso"]
        assert popen.call_args.kwargs["stderr"] == subprocess.STDOUT

    def test_polls_until_done(self):
        """Should keep waiting while the event stays clear."""
        proc = mock_process(
            subprocess.TimeoutExpired("xorriso", 0.5),
            ("done", None),
        )
        event = threading.Event()

        with patch("ubuntu_isogen.iso.runner.subprocess.Popen", return_value=proc):
            result = SubprocessRunner(poll_interval=0.01)(["xorriso"], cancel_event=event)

        assert result.output == "done"
        proc.terminate.assert_not_called()

    def test_cancel_terminates(self):
        """Should terminate the process when cancelled."""
        proc = mock_process(
            subprocess.TimeoutExpired("xorriso", 0.5),
            ("partial", None),
        )
        event = threading.Event()
        event.set()

        with (
            patch("ubuntu_isogen.iso.runner.subprocess.Popen", return_value=proc),
            pytest.raises(BuildCancelledError),
        ):
            SubprocessRunner(poll_interval=0.01)(["xorriso"], cancel_event=event)

        proc.terminate.assert_called_once()
        proc.kill.assert_not_called()

    def test_cancel_escalates_to_kill(self):
        """Should kill a process that ignores terminate."""
        proc = mock_process(
            subprocess.TimeoutExpired("xorriso", 0.5),
            subprocess.TimeoutExpired("xorriso", 5),
            ("", None),
        )
        event = threading.Event()
        event.set()

        with (
            patch("ubuntu_isogen.iso.runner.subprocess.Popen", return_value=proc),
            pytest.raises(BuildCancelledError),
        ):
            SubprocessRunner(poll_interval=0.01)(["xorriso"], cancel_event=event)

        proc.kill.assert_called_once()

    def test_timeout(self):
        """Should stop the process and raise after the timeout."""
        proc = mock_process(
            subprocess.TimeoutExpired("xorriso", 0.5),
            ("partial output", None),
        )

        with (
            patch("ubuntu_isogen.iso.runner.subprocess.Popen", return_value=proc),
            patch("ubuntu_isogen.iso.runner.time.monotonic", side_effect=itertools.count(0, 10)),
            pytest.raises(SubprocessFailureError) as exc_info,
        ):
            SubprocessRunner(timeout=5)(["xorriso"])

        assert "timed out after 5 seconds" in str(exc_info.value)
        assert exc_info.value.output == "partial output"
        proc.terminate.assert_called_once()
