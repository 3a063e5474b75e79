"""ISO build pipeline.

This module handles:
- Checking for xorriso and validating build options
- Extracting the source ISO into a per-build work area
- Injecting the autoinstall documents into the NoCloud directory
- Patching the GRUB configuration
- Re-mastering a bootable ISO at the output path

Stages run strictly in sequence. Any failure aborts the build; the work
area is removed on every exit path and no partial ISO is left at the
output path.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from ubuntu_isogen.errors import (
    BuildCancelledError,
    FilesystemError,
    InvalidInputError,
    SubprocessFailureError,
    ToolingUnavailableError,
)
from ubuntu_isogen.iso.autoinstall import AutoinstallGenerator
from ubuntu_isogen.iso.bootloader import patch_boot_configs
from ubuntu_isogen.iso.mastering import (
    BootFiles,
    compose_extract_command,
    compose_repack_command,
    volume_id,
)
from ubuntu_isogen.iso.runner import CommandResult, CommandRunner, SubprocessRunner
from ubuntu_isogen.iso.tools import ToolDetector
from ubuntu_isogen.iso.workarea import make_tree_writable, work_area
from ubuntu_isogen.types import BootMode, BuildStage

if TYPE_CHECKING:
    from ubuntu_isogen.config import Settings
    from ubuntu_isogen.iso.options import ImageOptions
    from ubuntu_isogen.profile.models import UserProfile

logger = logging.getLogger(__name__)

EXTRACT_DIR_NAME = "iso"
NOCLOUD_DIR = "nocloud"
USER_DATA_FILE = "user-data"
META_DATA_FILE = "meta-data"
DEFAULT_STAGING_DIR = ".tmp"


@dataclass
class BuildResult:
    """Result of a successful ISO build.

    Attributes:
        output_path: Path of the generated ISO.
        size_bytes: Size of the generated ISO.
        volume_id: ISO volume identifier.
        boot_modes: Firmware boot paths written into the ISO.
        boot_config: GRUB config that was patched, relative to the ISO root.
        warnings: Non-fatal problems encountered.
        started_at: Build start time.
        finished_at: Build finish time.
    """

    output_path: Path
    size_bytes: int
    volume_id: str
    boot_modes: list[BootMode]
    boot_config: Path
    started_at: datetime
    finished_at: datetime
    warnings: list[str] = field(default_factory=list)

    @property
    def duration(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()


def inject_configuration(extract_dir: Path, user_data: bytes, meta_data: bytes) -> Path:
    """Write the NoCloud documents into the extracted tree.

    Returns:
        Path of the NoCloud directory.

    Raises:
        FilesystemError: If the directory or files cannot be written.
    """
    nocloud_dir = extract_dir / NOCLOUD_DIR
    try:
        nocloud_dir.mkdir(parents=True, exist_ok=True)
        (nocloud_dir / USER_DATA_FILE).write_bytes(user_data)
        (nocloud_dir / META_DATA_FILE).write_bytes(meta_data)
    except OSError as e:
        raise FilesystemError(
            f"Failed to write autoinstall configuration: {e}",
            stage=BuildStage.INJECTED,
        ) from e
    return nocloud_dir


def _partial_path(output_path: Path) -> Path:
    return output_path.with_name(f".{output_path.name}.partial")


class ImageBuilder:
    """Create bootable Ubuntu ISOs with an embedded autoinstall config.

    Args:
        project_root: Project directory; work areas go under
            ``<project_root>/<staging_dir_name>``.
        tools: xorriso detector; one sharing ``runner`` is created if None.
        runner: Command runner for xorriso invocations.
        generator: Autoinstall document generator.
        staging_dir_name: Name of the staging directory.
    """

    def __init__(
        self,
        project_root: Path,
        tools: ToolDetector | None = None,
        runner: CommandRunner | None = None,
        generator: AutoinstallGenerator | None = None,
        staging_dir_name: str = DEFAULT_STAGING_DIR,
    ) -> None:
        self.project_root = Path(project_root)
        self.runner = runner or SubprocessRunner()
        self.tools = tools or ToolDetector(runner=self.runner)
        self.generator = generator or AutoinstallGenerator()
        self.staging_root = self.project_root / staging_dir_name
        self.stage = BuildStage.IDLE

    @classmethod
    def from_settings(cls, settings: Settings) -> ImageBuilder:
        """Create a builder configured from application settings."""
        runner = SubprocessRunner(timeout=settings.command_timeout)
        return cls(
            project_root=settings.project_root,
            tools=ToolDetector(binary=settings.xorriso_binary, runner=runner),
            runner=runner,
            staging_dir_name=settings.staging_dir_name,
        )

    def check_tools(self) -> str:
        """Detect xorriso; see ``ToolDetector.detect``."""
        return self.tools.detect()

    def tools_available(self) -> bool:
        """Return True if xorriso can be detected."""
        try:
            self.tools.detect()
        except ToolingUnavailableError:
            return False
        return True

    def install_instructions(self) -> str:
        return self.tools.install_instructions()

    def _enter(self, stage: BuildStage, cancel_event: threading.Event | None) -> None:
        """Check for cancellation before moving on to ``stage``."""
        if cancel_event is not None and cancel_event.is_set():
            raise BuildCancelledError(stage)
        logger.debug("Stage: %s -> %s", self.stage.value, stage.value)

    def _run(
        self,
        args: list[str],
        stage: BuildStage,
        cancel_event: threading.Event | None,
    ) -> CommandResult:
        try:
            return self.runner(args, cancel_event=cancel_event)
        except (BuildCancelledError, SubprocessFailureError) as e:
            if e.stage is None:
                e.stage = stage
            raise

    def build(
        self,
        profile: UserProfile | None,
        options: ImageOptions,
        cancel_event: threading.Event | None = None,
    ) -> BuildResult:
        """Build a bootable ISO with embedded autoinstall configuration.

        Args:
            profile: User profile for the autoinstall document.
            options: Build options; defaults are filled in place.
            cancel_event: Optional signal checked before every stage and
                while xorriso runs.

        Returns:
            BuildResult describing the generated ISO.

        Raises:
            ToolingUnavailableError: If xorriso is missing.
            InvalidInputError: If options or profile are invalid.
            FilesystemError: On work-area, injection or output failures.
            BootloaderNotFoundError: If no GRUB config is found.
            SubprocessFailureError: If xorriso exits non-zero.
            BuildCancelledError: If ``cancel_event`` is set.
        """
        started_at = datetime.now(timezone.utc)
        self.stage = BuildStage.IDLE

        self._enter(BuildStage.TOOLS_CHECKED, cancel_event)
        try:
            xorriso = self.tools.detect()
        except ToolingUnavailableError as e:
            raise ToolingUnavailableError(
                f"required tools not available: {e}\n{e.instructions}",
                instructions=e.instructions,
            ) from e
        self.stage = BuildStage.TOOLS_CHECKED

        self._enter(BuildStage.OPTIONS_VALIDATED, cancel_event)
        options.validate()
        if profile is None:
            raise InvalidInputError("profile is nil", code="nil_input")
        profile.validate()
        self.stage = BuildStage.OPTIONS_VALIDATED
        output_path = Path(options.output_path)

        self._enter(BuildStage.WORK_AREA_READY, cancel_event)
        with work_area(self.staging_root) as work_dir:
            self.stage = BuildStage.WORK_AREA_READY
            extract_dir = work_dir / EXTRACT_DIR_NAME

            self._enter(BuildStage.EXTRACTED, cancel_event)
            self._extract(xorriso, Path(options.source_iso), extract_dir, cancel_event)
            self.stage = BuildStage.EXTRACTED

            self._enter(BuildStage.DOCUMENTS_GENERATED, cancel_event)
            user_data = self.generator.generate(profile, options)
            meta_data = self.generator.generate_meta_data()
            self.stage = BuildStage.DOCUMENTS_GENERATED

            self._enter(BuildStage.INJECTED, cancel_event)
            logger.info("Injecting autoinstall configuration")
            inject_configuration(extract_dir, user_data, meta_data)
            self.stage = BuildStage.INJECTED

            self._enter(BuildStage.BOOTLOADER_PATCHED, cancel_event)
            patch = patch_boot_configs(extract_dir)
            self.stage = BuildStage.BOOTLOADER_PATCHED

            self._enter(BuildStage.OUTPUT_DIR_READY, cancel_event)
            try:
                options.output_directory().mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise FilesystemError(
                    f"Failed to create output directory: {e}",
                    stage=BuildStage.OUTPUT_DIR_READY,
                ) from e
            self.stage = BuildStage.OUTPUT_DIR_READY

            self._enter(BuildStage.REPACKED, cancel_event)
            boot_files = BootFiles.detect(extract_dir)
            size_bytes = self._repack(
                xorriso,
                extract_dir,
                output_path,
                options.ubuntu_version,
                boot_files,
                cancel_event,
            )
            self.stage = BuildStage.REPACKED

        self.stage = BuildStage.DONE
        finished_at = datetime.now(timezone.utc)
        logger.info("ISO created: %s (%d bytes)", output_path, size_bytes)

        return BuildResult(
            output_path=output_path,
            size_bytes=size_bytes,
            volume_id=volume_id(options.ubuntu_version),
            boot_modes=boot_files.boot_modes(),
            boot_config=patch.primary,
            started_at=started_at,
            finished_at=finished_at,
            warnings=patch.warnings,
        )

    def _extract(
        self,
        xorriso: str,
        source_iso: Path,
        extract_dir: Path,
        cancel_event: threading.Event | None,
    ) -> None:
        logger.info("Extracting ISO: %s", source_iso)
        try:
            extract_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(
                f"Failed to create extract directory: {e}",
                stage=BuildStage.EXTRACTED,
            ) from e

        cmd = compose_extract_command(xorriso, source_iso, extract_dir)
        result = self._run(cmd, BuildStage.EXTRACTED, cancel_event)
        if not result.success:
            raise SubprocessFailureError(
                f"xorriso extraction failed with exit code {result.exit_code}\n"
                f"{result.output}",
                exit_code=result.exit_code,
                output=result.output,
                stage=BuildStage.EXTRACTED,
            )

        # Files extracted from ISO 9660 keep their read-only modes
        try:
            make_tree_writable(extract_dir)
        except OSError as e:
            raise FilesystemError(
                f"Failed to fix permissions: {e}", stage=BuildStage.EXTRACTED
            ) from e

    def _repack(
        self,
        xorriso: str,
        extract_dir: Path,
        output_path: Path,
        ubuntu_version: str,
        boot_files: BootFiles,
        cancel_event: threading.Event | None,
    ) -> int:
        """Write the ISO to a partial file and move it into place.

        Returns:
            Size of the ISO in bytes.
        """
        logger.info("Repacking ISO: %s", output_path)
        logger.info(
            "Boot files: eltorito.img=%s boot_hybrid.img=%s efi.img=%s",
            boot_files.eltorito,
            boot_files.boot_hybrid,
            boot_files.efi,
        )

        partial = _partial_path(output_path)
        partial.unlink(missing_ok=True)
        cmd = compose_repack_command(
            xorriso, extract_dir, partial, ubuntu_version, boot_files
        )
        logger.debug("Running xorriso with args: %s", cmd[1:])

        completed = False
        try:
            result = self._run(cmd, BuildStage.REPACKED, cancel_event)
            if not result.success:
                raise SubprocessFailureError(
                    f"xorriso repacking failed with exit code {result.exit_code}\n"
                    f"{result.output}",
                    exit_code=result.exit_code,
                    output=result.output,
                    stage=BuildStage.REPACKED,
                )

            try:
                size_bytes = partial.stat().st_size if partial.exists() else 0
                if size_bytes == 0:
                    raise FilesystemError(
                        f"xorriso produced no output at {partial}",
                        stage=BuildStage.REPACKED,
                    )
                os.replace(partial, output_path)
            except OSError as e:
                raise FilesystemError(
                    f"Failed to move ISO into place at {output_path}: {e}",
                    stage=BuildStage.REPACKED,
                ) from e
            completed = True
        finally:
            if not completed:
                partial.unlink(missing_ok=True)

        return size_bytes


__all__ = [
    "BuildResult",
    "ImageBuilder",
    "META_DATA_FILE",
    "NOCLOUD_DIR",
    "USER_DATA_FILE",
    "inject_configuration",
]
