"""Options for a single ISO build request.

``ImageOptions.validate()`` checks rules in a fixed order so that the same
bad request always produces the same error, and fills in defaults for
empty optional fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ubuntu_isogen.errors import InvalidInputError
from ubuntu_isogen.types import (
    DEFAULT_LOCALE,
    DEFAULT_STORAGE_LAYOUT,
    DEFAULT_TIMEZONE,
    DEFAULT_UBUNTU_VERSION,
    StorageLayout,
    UbuntuVersion,
)

ISO_EXTENSION = ".iso"
DEFAULT_OUTPUT_FILENAME = "ubuntu-autoinstall.iso"

SUPPORTED_VERSIONS = tuple(v.value for v in UbuntuVersion)
SUPPORTED_LAYOUTS = tuple(s.value for s in StorageLayout)


def _plain(value: object) -> str:
    """Return the string value of an enum member or plain string."""
    return value.value if isinstance(value, Enum) else str(value)


@dataclass
class ImageOptions:
    """Configuration of one ISO build.

    Attributes:
        source_iso: Path to the source Ubuntu ISO (required).
        output_path: Path of the generated ISO; defaults to
            ``<source dir>/ubuntu-autoinstall.iso``.
        ubuntu_version: Ubuntu release of the source ISO.
        storage_layout: Installer disk layout.
        timezone: Timezone of the installed system.
        locale: Locale of the installed system.
    """

    source_iso: Path | str = ""
    output_path: Path | str = ""
    ubuntu_version: str = ""
    storage_layout: str = ""
    timezone: str = ""
    locale: str = ""

    @classmethod
    def defaults(cls) -> ImageOptions:
        """Return options with every optional field at its default."""
        return cls(
            ubuntu_version=DEFAULT_UBUNTU_VERSION.value,
            storage_layout=DEFAULT_STORAGE_LAYOUT.value,
            timezone=DEFAULT_TIMEZONE,
            locale=DEFAULT_LOCALE,
        )

    def validate(self) -> None:
        """Validate the options, filling in defaults in place.

        Raises:
            InvalidInputError: On the first rule violated.
        """
        source = str(self.source_iso).strip() if self.source_iso else ""
        if not source:
            raise InvalidInputError(
                "source ISO path is required", code="source_required"
            )

        source_path = Path(source)
        if not source_path.exists():
            raise InvalidInputError(
                f"source ISO not found: {source}", code="source_not_found"
            )
        if source_path.is_dir():
            raise InvalidInputError(
                f"source ISO path is a directory, not a file: {source}",
                code="source_not_file",
            )
        if not source_path.is_file():
            raise InvalidInputError(
                f"source ISO path is not a regular file: {source}",
                code="source_not_file",
            )

        if source_path.suffix.lower() != ISO_EXTENSION:
            raise InvalidInputError(
                f"source file does not have {ISO_EXTENSION} extension: {source}",
                code="source_not_iso",
            )

        if not self.ubuntu_version:
            self.ubuntu_version = DEFAULT_UBUNTU_VERSION.value
        elif _plain(self.ubuntu_version) not in SUPPORTED_VERSIONS:
            raise InvalidInputError(
                f"unsupported version: {self.ubuntu_version} "
                f"(supported Ubuntu versions: {', '.join(SUPPORTED_VERSIONS)})",
                code="unsupported_version",
            )
        self.ubuntu_version = UbuntuVersion(_plain(self.ubuntu_version)).value

        if not self.storage_layout:
            self.storage_layout = DEFAULT_STORAGE_LAYOUT.value
        elif _plain(self.storage_layout) not in SUPPORTED_LAYOUTS:
            raise InvalidInputError(
                f"unsupported storage layout: {self.storage_layout} "
                f"(supported: {', '.join(SUPPORTED_LAYOUTS)})",
                code="unsupported_storage_layout",
            )
        self.storage_layout = StorageLayout(_plain(self.storage_layout)).value

        self.source_iso = source_path
        if not self.output_path or not str(self.output_path).strip():
            self.output_path = source_path.parent / DEFAULT_OUTPUT_FILENAME
        else:
            self.output_path = Path(self.output_path)

        if not self.timezone:
            self.timezone = DEFAULT_TIMEZONE
        if not self.locale:
            self.locale = DEFAULT_LOCALE

    def output_directory(self) -> Path:
        """Directory the output ISO is written to; callers create it."""
        return Path(self.output_path).parent

    def output_filename(self) -> str:
        """File name of the output ISO."""
        return Path(self.output_path).name


__all__ = [
    "DEFAULT_OUTPUT_FILENAME",
    "ISO_EXTENSION",
    "ImageOptions",
    "SUPPORTED_LAYOUTS",
    "SUPPORTED_VERSIONS",
]
