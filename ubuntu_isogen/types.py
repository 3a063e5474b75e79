"""Shared type definitions for ubuntu_isogen.

This module contains enums shared across subpackages to avoid circular
imports.
"""

from enum import Enum


class UbuntuVersion(str, Enum):
    """Supported Ubuntu releases for the source ISO."""

    JAMMY = "22.04"
    NOBLE = "24.04"


class StorageLayout(str, Enum):
    """Disk partitioning scheme used by the installer."""

    LVM = "lvm"
    DIRECT = "direct"
    ZFS = "zfs"


class BuildStage(str, Enum):
    """Stages of the ISO build pipeline, in execution order."""

    IDLE = "idle"
    TOOLS_CHECKED = "tools_checked"
    OPTIONS_VALIDATED = "options_validated"
    WORK_AREA_READY = "work_area_ready"
    EXTRACTED = "extracted"
    DOCUMENTS_GENERATED = "documents_generated"
    INJECTED = "injected"
    BOOTLOADER_PATCHED = "bootloader_patched"
    OUTPUT_DIR_READY = "output_dir_ready"
    REPACKED = "repacked"
    DONE = "done"


class BootMode(str, Enum):
    """Firmware boot paths written into the output ISO."""

    BIOS = "bios"
    BIOS_HYBRID_MBR = "bios-hybrid-mbr"
    UEFI = "uefi"


class Severity(str, Enum):
    """Severity of a configuration issue."""

    ERROR = "error"
    WARNING = "warning"


DEFAULT_UBUNTU_VERSION = UbuntuVersion.NOBLE
DEFAULT_STORAGE_LAYOUT = StorageLayout.LVM
DEFAULT_TIMEZONE = "UTC"
DEFAULT_LOCALE = "en_US.UTF-8"


__all__ = [
    "BootMode",
    "BuildStage",
    "DEFAULT_LOCALE",
    "DEFAULT_STORAGE_LAYOUT",
    "DEFAULT_TIMEZONE",
    "DEFAULT_UBUNTU_VERSION",
    "Severity",
    "StorageLayout",
    "UbuntuVersion",
]
