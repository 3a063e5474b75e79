"""Shared fixtures for ubuntu_isogen tests.

The fake xorriso stands in for the real tool: extraction lays down a small
ISO-like tree, repacking writes a few bytes to the ``-o`` path.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Sequence
from pathlib import Path
from unittest.mock import patch

import pytest

from ubuntu_isogen.iso.runner import CommandResult
from ubuntu_isogen.profile.models import UserProfile

XORRISO_PATH = "/usr/bin/xorriso"
XORRISO_VERSION_OUTPUT = (
    "xorriso 1.5.6 : RockRidge filesystem manipulator, libburnia project.\n"
    "xorriso 1.5.6\n"
)

GRUB_CFG = """\
set timeout=30
menuentry "Try or Install Ubuntu Server" {
\tset gfxpayload=keep
\tlinux\t/casper/vmlinuz  ---
\tinitrd\t/casper/initrd
}
menuentry "Ubuntu Server with the HWE kernel" {
\tlinux\t/casper/hwe-vmlinuz  ---
\tinitrd\t/casper/hwe-initrd
}
"""

DEFAULT_TREE = {
    "boot/grub/grub.cfg": GRUB_CFG,
    "boot/grub/loopback.cfg": 'menuentry "Install" {\n\tlinux /casper/vmlinuz ---\n}\n',
    "boot/grub/i386-pc/eltorito.img": "eltorito",
    "boot/grub/i386-pc/boot_hybrid.img": "mbr",
    "boot/grub/efi.img": "efi",
    "casper/vmlinuz": "kernel",
}


class FakeXorriso:
    """Callable command runner imitating xorriso.

    Attributes:
        tree: Files created on extraction, relative path to content.
        calls: Every argv received.
        snapshots: Files read from the tree at repack time.
    """

    def __init__(
        self,
        tree: dict[str, str] | None = None,
        extract_exit: int = 0,
        repack_exit: int = 0,
        write_output: bool = True,
        on_extract=None,
    ) -> None:
        self.tree = dict(DEFAULT_TREE if tree is None else tree)
        self.extract_exit = extract_exit
        self.repack_exit = repack_exit
        self.write_output = write_output
        self.on_extract = on_extract
        self.calls: list[list[str]] = []
        self.snapshots: dict[str, str] = {}

    def __call__(
        self,
        args: Sequence[str],
        cancel_event: threading.Event | None = None,
    ) -> CommandResult:
        argv = [str(a) for a in args]
        self.calls.append(argv)

        if "-version" in argv:
            return CommandResult(exit_code=0, output=XORRISO_VERSION_OUTPUT)

        if "-osirrox" in argv:
            return self._extract(Path(argv[-1]))

        if "mkisofs" in argv:
            return self._repack(Path(argv[-1]), Path(argv[argv.index("-o") + 1]))

        return CommandResult(exit_code=1, output=f"unexpected command: {argv}")

    @property
    def extract_calls(self) -> list[list[str]]:
        return [c for c in self.calls if "-osirrox" in c]

    @property
    def repack_calls(self) -> list[list[str]]:
        return [c for c in self.calls if "mkisofs" in c]

    def _extract(self, extract_dir: Path) -> CommandResult:
        if self.extract_exit != 0:
            return CommandResult(
                exit_code=self.extract_exit,
                output="libisoburn: FAILURE : Cannot open source ISO",
            )
        for rel, content in self.tree.items():
            path = extract_dir / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
            # ISO 9660 extraction leaves files read-only
            path.chmod(0o444)
        if self.on_extract is not None:
            self.on_extract()
        return CommandResult(exit_code=0, output="xorriso : extracted\n")

    def _repack(self, extract_dir: Path, output: Path) -> CommandResult:
        for rel in ("boot/grub/grub.cfg", "boot/grub/loopback.cfg", "nocloud/user-data"):
            path = extract_dir / rel
            if path.is_file():
                self.snapshots[rel] = path.read_text()
        self.snapshots["nocloud/meta-data"] = (
            (extract_dir / "nocloud/meta-data").read_text()
            if (extract_dir / "nocloud/meta-data").is_file()
            else "<missing>"
        )

        if self.write_output:
            # xorriso writes as it goes, even when it fails later
            output.write_bytes(b"\x00" * 2048)
        if self.repack_exit != 0:
            return CommandResult(
                exit_code=self.repack_exit,
                output="xorriso : FAILURE : Image size exceeds free space on media",
            )
        return CommandResult(exit_code=0, output="ISO image produced: 1 sectors\n")


@pytest.fixture
def fake_xorriso() -> FakeXorriso:
    return FakeXorriso()


@pytest.fixture
def xorriso_on_path() -> Iterator[None]:
    """Make ``shutil.which`` find xorriso."""
    with patch("ubuntu_isogen.iso.tools.shutil.which", return_value=XORRISO_PATH):
        yield


@pytest.fixture
def profile() -> UserProfile:
    """Create a minimal valid profile."""
    return UserProfile(
        username="ubuntu",
        hostname="devbox",
        ssh_public_keys=["ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIExample user@host"],
    )


@pytest.fixture
def source_iso(tmp_path: Path) -> Path:
    """Create a placeholder source ISO."""
    path = tmp_path / "ubuntu-24.04.3-live-server-amd64.iso"
    path.write_bytes(b"\x00" * 1024)
    return path


@pytest.fixture
def make_xorriso() -> type[FakeXorriso]:
    """Factory for fake xorriso runners with custom behaviour."""
    return FakeXorriso
