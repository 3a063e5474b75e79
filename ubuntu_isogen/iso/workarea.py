"""Per-build work area management.

Each build extracts the source ISO into its own uniquely named directory
under the project's staging root. The directory only lives for the
duration of the ``work_area`` context.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ubuntu_isogen.errors import FilesystemError
from ubuntu_isogen.types import BuildStage

logger = logging.getLogger(__name__)

WORK_AREA_PREFIX = "iso-"
DEFAULT_DIR_MODE = 0o755


def _add_owner_write(path: str, extra: int = 0) -> None:
    mode = os.lstat(path).st_mode
    wanted = stat.S_IMODE(mode) | stat.S_IWUSR | extra
    if wanted != stat.S_IMODE(mode):
        os.chmod(path, wanted)


def make_tree_writable(root: Path) -> None:
    """Give the owner write access to every file and directory under root.

    ISO9660 trees extract read-only; later stages need to write into them.
    Symlinks are left alone.

    Raises:
        OSError: If a mode cannot be changed.
    """
    _add_owner_write(str(root), stat.S_IXUSR)
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames:
            path = os.path.join(dirpath, name)
            if not os.path.islink(path):
                _add_owner_write(path, stat.S_IXUSR)
        for name in filenames:
            path = os.path.join(dirpath, name)
            if not os.path.islink(path):
                _add_owner_write(path)


def remove_tree(path: Path) -> None:
    """Remove a work area, logging rather than raising on failure."""
    if not path.exists():
        return
    try:
        make_tree_writable(path)
        shutil.rmtree(path)
        logger.debug("Removed work directory %s", path)
    except OSError as e:
        logger.warning("Failed to remove work directory %s: %s", path, e)


@contextmanager
def work_area(staging_root: Path, prefix: str = WORK_AREA_PREFIX) -> Iterator[Path]:
    """Create a unique work directory and remove it on exit.

    Args:
        staging_root: Parent directory, created if missing.
        prefix: Name prefix for the work directory.

    Yields:
        Path to the work directory.

    Raises:
        FilesystemError: If the directory cannot be created.
    """
    try:
        staging_root.mkdir(mode=DEFAULT_DIR_MODE, parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix=prefix, dir=staging_root))
    except OSError as e:
        raise FilesystemError(
            f"Failed to create work directory under {staging_root}: {e}",
            stage=BuildStage.WORK_AREA_READY,
        ) from e

    logger.info("Work directory: %s", path)
    try:
        yield path
    finally:
        remove_tree(path)


__all__ = ["WORK_AREA_PREFIX", "make_tree_writable", "remove_tree", "work_area"]
