"""Command runner seam for external tool invocations.

Everything the pipeline asks of xorriso goes through a ``CommandRunner``:
a callable taking an argv list and returning the exit code plus the
combined stdout/stderr text. Tests substitute a fake; production uses
``SubprocessRunner``.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from ubuntu_isogen.errors import BuildCancelledError, SubprocessFailureError

logger = logging.getLogger(__name__)

# How often a running command checks the cancellation signal (seconds)
POLL_INTERVAL = 0.5

# Grace period between SIGTERM and SIGKILL (seconds)
TERMINATE_GRACE = 5.0


@dataclass
class CommandResult:
    """Result of an external command.

    Attributes:
        exit_code: Process exit code.
        output: Combined stdout and stderr.
    """

    exit_code: int
    output: str

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class CommandRunner(Protocol):
    """Callable that runs an argv and reports ``(exit_code, output)``."""

    def __call__(
        self,
        args: Sequence[str],
        cancel_event: threading.Event | None = None,
    ) -> CommandResult: ...


def _terminate(proc: subprocess.Popen[str]) -> str:
    """Stop a running process, escalating to kill, and drain its output."""
    proc.terminate()
    try:
        output, _ = proc.communicate(timeout=TERMINATE_GRACE)
    except subprocess.TimeoutExpired:
        proc.kill()
        output, _ = proc.communicate()
    return output or ""


class SubprocessRunner:
    """Run commands as blocking subprocesses.

    Args:
        timeout: Per-command timeout in seconds (None = no timeout).
        poll_interval: How often to check ``cancel_event`` while waiting.
    """

    def __init__(
        self,
        timeout: float | None = None,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        self.timeout = timeout
        self.poll_interval = poll_interval

    def __call__(
        self,
        args: Sequence[str],
        cancel_event: threading.Event | None = None,
    ) -> CommandResult:
        """Run ``args`` and wait for it to finish.

        Raises:
            BuildCancelledError: If ``cancel_event`` is set while running.
            SubprocessFailureError: If the command cannot be started or
                exceeds the timeout.
        """
        argv = [str(a) for a in args]
        logger.debug("Executing: %s", shlex.join(argv))

        try:
            proc = subprocess.Popen(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                # File names echoed by xorriso need not be UTF-8
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            raise SubprocessFailureError(
                f"Failed to execute {argv[0]}: {e}",
                exit_code=-1,
                output=str(e),
            ) from e

        if cancel_event is None and self.timeout is None:
            output, _ = proc.communicate()
            return CommandResult(exit_code=proc.returncode, output=output or "")

        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        while True:
            try:
                output, _ = proc.communicate(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                if cancel_event is not None and cancel_event.is_set():
                    logger.warning("Cancellation requested, stopping %s", argv[0])
                    _terminate(proc)
                    raise BuildCancelledError() from None
                if deadline is not None and time.monotonic() >= deadline:
                    partial = _terminate(proc)
                    raise SubprocessFailureError(
                        f"{argv[0]} timed out after {self.timeout} seconds",
                        exit_code=-1,
                        output=partial,
                    ) from None

        return CommandResult(exit_code=proc.returncode, output=output or "")


__all__ = [
    "CommandResult",
    "CommandRunner",
    "SubprocessRunner",
]
