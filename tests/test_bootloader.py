"""Tests for iso/bootloader.py module."""

from pathlib import Path
from unittest.mock import patch

import pytest

from ubuntu_isogen.errors import BootloaderNotFoundError, FilesystemError
from ubuntu_isogen.iso import bootloader
from ubuntu_isogen.iso.bootloader import (
    AUTOINSTALL_PARAM,
    find_boot_config,
    patch_boot_configs,
    patch_file,
    patch_kernel_args,
)

LINUX_LINE = "\tlinux\t/casper/vmlinuz  ---\n"


def write(root: Path, rel: str, content: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


class TestPatchKernelArgs:
    """Tests for patch_kernel_args function."""

    def test_inserts_before_separator(self):
        """Should put the NoCloud locator before ---."""
        result = patch_kernel_args(LINUX_LINE)
        assert result == f"\tlinux\t/casper/vmlinuz  {AUTOINSTALL_PARAM} ---\n"

    def test_semicolon_escaped(self):
        """Should escape the semicolon for GRUB."""
        assert "ds=nocloud\\;s=/cdrom/nocloud/" in patch_kernel_args(LINUX_LINE)

    def test_every_entry_patched(self):
        """Should patch each menu entry."""
        content = LINUX_LINE + "\tinitrd /casper/initrd\n" + LINUX_LINE
        assert patch_kernel_args(content).count(AUTOINSTALL_PARAM) == 2

    def test_idempotent(self):
        """Should not duplicate the fragment when applied twice."""
        once = patch_kernel_args(LINUX_LINE)
        assert patch_kernel_args(once) == once

    def test_no_separator(self):
        """Should leave content without a separator unchanged."""
        content = "set timeout=30\n"
        assert patch_kernel_args(content) == content

    def test_embedded_dashes_ignored(self):
        """Should only match a whitespace-delimited separator."""
        content = "linux /casper/vmlinuz quiet --- \nmenuentry '----' {}\n"
        result = patch_kernel_args(content)
        assert result.count(AUTOINSTALL_PARAM) == 1
        assert "'----'" in result

    def test_separator_at_line_end(self):
        """Should match --- at the end of the file."""
        assert patch_kernel_args("linux /vmlinuz ---").endswith(f"{AUTOINSTALL_PARAM} ---")


class TestFindBootConfig:
    """Tests for find_boot_config function."""

    def test_prefers_boot_grub(self, tmp_path):
        """Should return boot/grub/grub.cfg when both exist."""
        write(tmp_path, "boot/grub/grub.cfg", LINUX_LINE)
        write(tmp_path, "EFI/boot/grub.cfg", LINUX_LINE)
        assert find_boot_config(tmp_path) == Path("boot/grub/grub.cfg")

    def test_efi_fallback(self, tmp_path):
        """Should fall back to EFI/boot/grub.cfg."""
        write(tmp_path, "EFI/boot/grub.cfg", LINUX_LINE)
        assert find_boot_config(tmp_path) == Path("EFI/boot/grub.cfg")

    def test_not_found(self, tmp_path):
        """Should raise when no config exists."""
        with pytest.raises(BootloaderNotFoundError) as exc_info:
            find_boot_config(tmp_path)
        assert exc_info.value.code == "bootloader_not_found"


class TestPatchFile:
    """Tests for patch_file function."""

    def test_rewrites_once(self, tmp_path):
        """Should report a rewrite only the first time."""
        cfg = write(tmp_path, "grub.cfg", LINUX_LINE)

        assert patch_file(cfg) is True
        assert patch_file(cfg) is False
        assert cfg.read_text().count(AUTOINSTALL_PARAM) == 1

    def test_non_utf8_preserved(self, tmp_path):
        """Should keep bytes that are not valid UTF-8."""
        cfg = tmp_path / "grub.cfg"
        cfg.write_bytes(b"# \xff\xfe\nlinux /vmlinuz ---\n")

        patch_file(cfg)

        data = cfg.read_bytes()
        assert data.startswith(b"# \xff\xfe\n")
        assert AUTOINSTALL_PARAM.encode() in data


class TestPatchBootConfigs:
    """Tests for patch_boot_configs function."""

    def test_primary_and_secondary(self, tmp_path):
        """Should patch grub.cfg and loopback.cfg."""
        write(tmp_path, "boot/grub/grub.cfg", LINUX_LINE)
        write(tmp_path, "boot/grub/loopback.cfg", LINUX_LINE)

        result = patch_boot_configs(tmp_path)

        assert result.primary == Path("boot/grub/grub.cfg")
        assert result.secondary == Path("boot/grub/loopback.cfg")
        assert result.warnings == []
        assert AUTOINSTALL_PARAM in (tmp_path / "boot/grub/loopback.cfg").read_text()

    def test_secondary_optional(self, tmp_path):
        """Should succeed without loopback.cfg."""
        write(tmp_path, "boot/grub/grub.cfg", LINUX_LINE)

        result = patch_boot_configs(tmp_path)

        assert result.secondary is None

    def test_secondary_failure_warns(self, tmp_path, caplog):
        """Should log and record a loopback.cfg failure."""
        write(tmp_path, "boot/grub/grub.cfg", LINUX_LINE)
        write(tmp_path, "boot/grub/loopback.cfg", LINUX_LINE)
        real_patch = bootloader.patch_file

        def flaky(path, *args, **kwargs):
            if path.name == "loopback.cfg":
                raise PermissionError("denied")
            return real_patch(path, *args, **kwargs)

        with patch.object(bootloader, "patch_file", side_effect=flaky):
            result = patch_boot_configs(tmp_path)

        assert result.secondary is None
        assert result.warnings == ["failed to modify boot/grub/loopback.cfg: denied"]
        assert "loopback.cfg" in caplog.text

    def test_primary_failure_raises(self, tmp_path):
        """Should raise FilesystemError when grub.cfg cannot be patched."""
        write(tmp_path, "boot/grub/grub.cfg", LINUX_LINE)

        with (
            patch.object(bootloader, "patch_file", side_effect=PermissionError("denied")),
            pytest.raises(FilesystemError),
        ):
            patch_boot_configs(tmp_path)

    def test_missing_primary(self, tmp_path):
        """Should raise BootloaderNotFoundError even if loopback.cfg exists."""
        write(tmp_path, "boot/grub/loopback.cfg", LINUX_LINE)

        with pytest.raises(BootloaderNotFoundError):
            patch_boot_configs(tmp_path)
