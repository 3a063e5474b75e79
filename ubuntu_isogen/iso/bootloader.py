"""GRUB configuration patching.

Adds the autoinstall kernel arguments to the extracted ISO's GRUB
configuration. The ``---`` token on a ``linux`` line separates kernel
arguments from arguments passed on to init; the NoCloud locator has to sit
before it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from ubuntu_isogen.errors import BootloaderNotFoundError, FilesystemError
from ubuntu_isogen.types import BuildStage

logger = logging.getLogger(__name__)

# The semicolon must be escaped for GRUB
AUTOINSTALL_PARAM = "autoinstall ds=nocloud\\;s=/cdrom/nocloud/"
KERNEL_ARG_SEPARATOR = "---"

# Checked in order, first existing wins
PRIMARY_CANDIDATES = (
    Path("boot") / "grub" / "grub.cfg",
    Path("EFI") / "boot" / "grub.cfg",
)
# Used when booting the ISO from another GRUB via loopback
SECONDARY_CONFIG = Path("boot") / "grub" / "loopback.cfg"

_SEPARATOR_RE = re.compile(r"(?<!\S)" + re.escape(KERNEL_ARG_SEPARATOR) + r"(?!\S)")


@dataclass
class BootPatchResult:
    """Outcome of patching the boot configuration.

    Attributes:
        primary: Patched primary config, relative to the tree root.
        secondary: Patched secondary config, if present and patched.
        warnings: Non-fatal problems with the secondary config.
    """

    primary: Path
    secondary: Path | None = None
    warnings: list[str] = field(default_factory=list)


def patch_kernel_args(content: str, fragment: str = AUTOINSTALL_PARAM) -> str:
    """Insert ``fragment`` before every kernel argument separator.

    Content that already contains ``fragment`` is returned unchanged, so
    applying the patch repeatedly never duplicates it.
    """
    if fragment in content:
        return content
    return _SEPARATOR_RE.sub(lambda _: f"{fragment} {KERNEL_ARG_SEPARATOR}", content)


def find_boot_config(tree_root: Path) -> Path:
    """Return the first existing primary GRUB config, relative to the root.

    Raises:
        BootloaderNotFoundError: If none of the candidates exist.
    """
    for candidate in PRIMARY_CANDIDATES:
        if (tree_root / candidate).is_file():
            return candidate
    searched = ", ".join(str(c) for c in PRIMARY_CANDIDATES)
    raise BootloaderNotFoundError(
        f"grub.cfg not found in expected locations ({searched})"
    )


def patch_file(path: Path, fragment: str = AUTOINSTALL_PARAM) -> bool:
    """Patch a single config file in place.

    Returns:
        True if the file was rewritten.

    Raises:
        OSError: If the file cannot be read or written.
    """
    original = path.read_text(encoding="utf-8", errors="surrogateescape")
    patched = patch_kernel_args(original, fragment)
    if patched == original:
        logger.debug("No change needed for %s", path)
        return False
    path.write_text(patched, encoding="utf-8", errors="surrogateescape")
    return True


def patch_boot_configs(tree_root: Path) -> BootPatchResult:
    """Patch the primary GRUB config and, if present, the loopback config.

    Raises:
        BootloaderNotFoundError: If no primary config exists.
        FilesystemError: If the primary config cannot be patched.
    """
    primary = find_boot_config(tree_root)
    logger.info("Patching boot configuration %s", primary)
    try:
        patch_file(tree_root / primary)
    except OSError as e:
        raise FilesystemError(
            f"Failed to patch {primary}: {e}",
            stage=BuildStage.BOOTLOADER_PATCHED,
        ) from e

    result = BootPatchResult(primary=primary)

    secondary_path = tree_root / SECONDARY_CONFIG
    if secondary_path.is_file():
        try:
            patch_file(secondary_path)
            result.secondary = SECONDARY_CONFIG
        except OSError as e:
            message = f"failed to modify {SECONDARY_CONFIG}: {e}"
            logger.warning("Warning: %s", message)
            result.warnings.append(message)

    return result


__all__ = [
    "AUTOINSTALL_PARAM",
    "BootPatchResult",
    "KERNEL_ARG_SEPARATOR",
    "PRIMARY_CANDIDATES",
    "SECONDARY_CONFIG",
    "find_boot_config",
    "patch_boot_configs",
    "patch_file",
    "patch_kernel_args",
]
