"""Known Ubuntu live-server ISOs for the supported releases."""

from __future__ import annotations

from dataclasses import dataclass

from ubuntu_isogen.errors import InvalidInputError

UBUNTU_RELEASES_BASE = "https://releases.ubuntu.com"


@dataclass(frozen=True)
class SourceImage:
    """An official Ubuntu live-server ISO.

    Attributes:
        version: Ubuntu release (e.g., '24.04').
        codename: Release codename (e.g., 'noble').
        filename: ISO file name on the release server.
        size: Approximate download size, for display.
    """

    version: str
    codename: str
    filename: str
    size: str = ""

    def url(self, base_url: str = UBUNTU_RELEASES_BASE) -> str:
        return f"{base_url}/{self.version}/{self.filename}"

    def checksum_url(self, base_url: str = UBUNTU_RELEASES_BASE) -> str:
        return f"{base_url}/{self.version}/SHA256SUMS"


SOURCE_IMAGES: dict[str, SourceImage] = {
    "24.04": SourceImage(
        version="24.04",
        codename="noble",
        filename="ubuntu-24.04.3-live-server-amd64.iso",
        size="~3.1GB",
    ),
    "22.04": SourceImage(
        version="22.04",
        codename="jammy",
        filename="ubuntu-22.04.5-live-server-amd64.iso",
        size="~2.0GB",
    ),
}


def list_source_images() -> list[SourceImage]:
    """Return known images, newest release first."""
    return sorted(SOURCE_IMAGES.values(), key=lambda i: i.version, reverse=True)


def get_source_image(version: str) -> SourceImage:
    """Look up the live-server ISO for a release.

    Raises:
        InvalidInputError: If the release is not known.
    """
    try:
        return SOURCE_IMAGES[version]
    except KeyError:
        known = ", ".join(sorted(SOURCE_IMAGES))
        raise InvalidInputError(
            f"unsupported version: {version} (supported: {known})",
            code="unsupported_version",
        ) from None


__all__ = [
    "SOURCE_IMAGES",
    "SourceImage",
    "UBUNTU_RELEASES_BASE",
    "get_source_image",
    "list_source_images",
]
