"""Error definitions for ubuntu_isogen.

Every exception carries a stable ``code`` for programmatic handling and,
where it applies, the pipeline stage that was running when it was raised.
"""

from __future__ import annotations

from ubuntu_isogen.types import BuildStage

# Error code constants
TOOLING_UNAVAILABLE = "tooling_unavailable"
INVALID_INPUT = "invalid_input"
FILESYSTEM_ERROR = "filesystem_error"
BOOTLOADER_NOT_FOUND = "bootloader_not_found"
SUBPROCESS_FAILURE = "subprocess_failure"
BUILD_CANCELLED = "build_cancelled"


class IsoGenError(Exception):
    """Base exception for ISO generation errors."""

    def __init__(
        self,
        message: str,
        code: str,
        stage: BuildStage | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.stage = stage


class ToolingUnavailableError(IsoGenError):
    """xorriso is missing or failed its version probe."""

    def __init__(self, message: str, instructions: str = "") -> None:
        super().__init__(message, code=TOOLING_UNAVAILABLE)
        self.instructions = instructions


class InvalidInputError(IsoGenError):
    """Build options or user profile are missing or malformed.

    ``code`` narrows the rule that failed, e.g. ``unsupported_version``.
    """

    def __init__(self, message: str, code: str = INVALID_INPUT) -> None:
        super().__init__(message, code=code)


class FilesystemError(IsoGenError):
    """Work-area, extraction, injection or output-directory failure."""

    def __init__(self, message: str, stage: BuildStage | None = None) -> None:
        super().__init__(message, code=FILESYSTEM_ERROR, stage=stage)


class BootloaderNotFoundError(IsoGenError):
    """No GRUB configuration was found in the extracted tree."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=BOOTLOADER_NOT_FOUND)


class SubprocessFailureError(IsoGenError):
    """An external command exited non-zero.

    Attributes:
        exit_code: Process exit code.
        output: Combined stdout/stderr, verbatim.
    """

    def __init__(
        self,
        message: str,
        exit_code: int,
        output: str = "",
        stage: BuildStage | None = None,
    ) -> None:
        super().__init__(message, code=SUBPROCESS_FAILURE, stage=stage)
        self.exit_code = exit_code
        self.output = output


class BuildCancelledError(IsoGenError):
    """The caller's cancellation signal was observed."""

    def __init__(self, stage: BuildStage | None = None) -> None:
        where = f" before {stage.value}" if stage is not None else ""
        super().__init__(f"Build cancelled{where}", code=BUILD_CANCELLED, stage=stage)


__all__ = [
    "BOOTLOADER_NOT_FOUND",
    "BUILD_CANCELLED",
    "BootloaderNotFoundError",
    "BuildCancelledError",
    "FILESYSTEM_ERROR",
    "FilesystemError",
    "INVALID_INPUT",
    "InvalidInputError",
    "IsoGenError",
    "SUBPROCESS_FAILURE",
    "SubprocessFailureError",
    "TOOLING_UNAVAILABLE",
    "ToolingUnavailableError",
]
