"""xorriso command composition.

Builds the argument lists for extracting a source ISO and re-mastering
the patched tree. Boot options are derived from the boot images actually
present in the extracted tree.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ubuntu_isogen.types import BootMode

VOLUME_ID_PREFIX = "UBUNTU_AUTOINSTALL_"
# ISO 9660 volume identifier limit
MAX_VOLUME_ID_LENGTH = 32

ELTORITO_IMG = "boot/grub/i386-pc/eltorito.img"
BOOT_HYBRID_IMG = "boot/grub/i386-pc/boot_hybrid.img"
EFI_IMG = "boot/grub/efi.img"
BOOT_CATALOG = "boot.catalog"


@dataclass
class BootFiles:
    """Which boot images exist in an extracted tree."""

    eltorito: bool = False
    boot_hybrid: bool = False
    efi: bool = False

    @classmethod
    def detect(cls, tree_root: Path) -> BootFiles:
        return cls(
            eltorito=(tree_root / ELTORITO_IMG).is_file(),
            boot_hybrid=(tree_root / BOOT_HYBRID_IMG).is_file(),
            efi=(tree_root / EFI_IMG).is_file(),
        )

    def boot_modes(self) -> list[BootMode]:
        """Firmware boot paths the repacked ISO will support."""
        modes: list[BootMode] = []
        if self.eltorito:
            modes.append(BootMode.BIOS)
            if self.boot_hybrid:
                modes.append(BootMode.BIOS_HYBRID_MBR)
        if self.efi:
            modes.append(BootMode.UEFI)
        return modes


def volume_id(ubuntu_version: str) -> str:
    """Derive the ISO volume identifier from the Ubuntu version.

    ``24.04`` gives ``UBUNTU_AUTOINSTALL_24_04``; the result never exceeds
    32 characters.
    """
    vol = VOLUME_ID_PREFIX + ubuntu_version.replace(".", "_")
    return vol[:MAX_VOLUME_ID_LENGTH]


def compose_extract_command(
    xorriso: str,
    source_iso: Path,
    extract_dir: Path,
) -> list[str]:
    """Compose the command that unpacks the whole ISO into ``extract_dir``."""
    return [
        xorriso,
        "-osirrox",
        "on",
        "-indev",
        str(source_iso),
        "-extract",
        "/",
        str(extract_dir),
    ]


def compose_boot_args(extract_dir: Path, boot_files: BootFiles) -> list[str]:
    """Compose El Torito boot arguments for the boot images present.

    BIOS boot with a hybrid MBR needs both the El Torito image and the
    hybrid MBR image; with only the former the ISO still boots from BIOS
    on optical media. UEFI boot is added whenever the EFI image exists.
    """
    args: list[str] = []

    if boot_files.eltorito and boot_files.boot_hybrid:
        args += [
            "-partition_offset",
            "16",
            "-b",
            ELTORITO_IMG,
            "-c",
            BOOT_CATALOG,
            "-no-emul-boot",
            "-boot-load-size",
            "4",
            "-boot-info-table",
            "--grub2-boot-info",
            "--grub2-mbr",
            str(extract_dir / BOOT_HYBRID_IMG),
        ]
    elif boot_files.eltorito:
        args += [
            "-b",
            ELTORITO_IMG,
            "-c",
            BOOT_CATALOG,
            "-no-emul-boot",
            "-boot-load-size",
            "4",
            "-boot-info-table",
        ]

    if boot_files.efi:
        args += [
            "-eltorito-alt-boot",
            "-e",
            EFI_IMG,
            "-no-emul-boot",
        ]

    return args


def compose_repack_command(
    xorriso: str,
    extract_dir: Path,
    output_path: Path,
    ubuntu_version: str,
    boot_files: BootFiles | None = None,
) -> list[str]:
    """Compose the ``xorriso -as mkisofs`` command for the patched tree.

    Args:
        xorriso: Path to the xorriso executable.
        extract_dir: Root of the patched tree.
        output_path: ISO file to write.
        ubuntu_version: Ubuntu version, used for the volume ID.
        boot_files: Boot images present; detected from the tree if None.

    Returns:
        Command as list of strings suitable for the command runner.
    """
    if boot_files is None:
        boot_files = BootFiles.detect(extract_dir)

    cmd = [
        xorriso,
        "-as",
        "mkisofs",
        "-r",  # Rock Ridge
        "-V",
        volume_id(ubuntu_version),
        "-J",  # Joliet
        "-joliet-long",
        "-l",  # full 31-character ISO 9660 names
        "-iso-level",
        "3",
    ]
    cmd += compose_boot_args(extract_dir, boot_files)
    cmd += ["-o", str(output_path), str(extract_dir)]
    return cmd


__all__ = [
    "BOOT_CATALOG",
    "BOOT_HYBRID_IMG",
    "BootFiles",
    "EFI_IMG",
    "ELTORITO_IMG",
    "MAX_VOLUME_ID_LENGTH",
    "VOLUME_ID_PREFIX",
    "compose_boot_args",
    "compose_extract_command",
    "compose_repack_command",
    "volume_id",
]
