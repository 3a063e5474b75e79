"""External tool detection for ISO mastering.

Locates the xorriso executable, probes its version and supplies
platform-specific install guidance when it is missing.
"""

from __future__ import annotations

import logging
import shutil
import sys

from ubuntu_isogen.errors import SubprocessFailureError, ToolingUnavailableError
from ubuntu_isogen.iso.runner import CommandRunner, SubprocessRunner

logger = logging.getLogger(__name__)

XORRISO = "xorriso"

_INSTALL_INSTRUCTIONS = {
    "darwin": "Install with: brew install xorriso",
    "linux": "Install with: sudo apt install xorriso",
    "win32": "Install xorriso inside WSL with: sudo apt install xorriso",
}


class ToolDetector:
    """Locate and validate the xorriso executable.

    The located path is held on the instance; a builder receives the
    detector rather than looking the tool up itself.

    Args:
        binary: Executable name or path to look up.
        runner: Command runner used for the version probe.
        platform: Platform key for install instructions (``sys.platform``).
    """

    def __init__(
        self,
        binary: str = XORRISO,
        runner: CommandRunner | None = None,
        platform: str | None = None,
    ) -> None:
        self.binary = binary
        self.runner = runner or SubprocessRunner()
        self.platform = platform or sys.platform
        self.path: str | None = None

    def detect(self) -> str:
        """Find xorriso on PATH and check that it runs.

        Returns:
            Absolute path of the executable.

        Raises:
            ToolingUnavailableError: If xorriso is missing or its version
                probe fails.
        """
        path = shutil.which(self.binary)
        if path is None:
            self.path = None
            raise ToolingUnavailableError(
                f"{self.binary} not found on PATH",
                instructions=self.install_instructions(),
            )

        try:
            result = self.runner([path, "-version"])
        except SubprocessFailureError as e:
            self.path = None
            raise ToolingUnavailableError(
                f"{self.binary} validation failed: {e}",
                instructions=self.install_instructions(),
            ) from e

        if not result.success:
            self.path = None
            raise ToolingUnavailableError(
                f"{self.binary} validation failed with exit code {result.exit_code}",
                instructions=self.install_instructions(),
            )
        if "xorriso" not in result.output:
            self.path = None
            raise ToolingUnavailableError(
                f"Unexpected {self.binary} output: {result.output.strip()}",
                instructions=self.install_instructions(),
            )

        self.path = path
        logger.debug("Found xorriso at %s", path)
        return path

    def available(self) -> bool:
        """Return True if xorriso has already been detected."""
        return self.path is not None

    def version(self) -> str:
        """Return the first line of ``xorriso -version``.

        Raises:
            ToolingUnavailableError: If xorriso was not detected or the
                probe fails.
        """
        if self.path is None:
            raise ToolingUnavailableError(
                "xorriso not detected", instructions=self.install_instructions()
            )

        result = self.runner([self.path, "-version"])
        if not result.success:
            raise ToolingUnavailableError(
                f"Failed to get xorriso version (exit code {result.exit_code})",
                instructions=self.install_instructions(),
            )

        lines = result.output.strip().splitlines()
        if not lines:
            raise ToolingUnavailableError("No version output from xorriso")
        return lines[0].strip()

    def install_instructions(self) -> str:
        """Return installation guidance for the current platform."""
        return _INSTALL_INSTRUCTIONS.get(
            self.platform, "Please install xorriso for your platform"
        )


__all__ = ["XORRISO", "ToolDetector"]
