"""Source ISO download.

This module handles:
- Fetching and parsing the release SHA256SUMS file
- Streaming downloads with checksum verification
- Reusing an already downloaded ISO when its checksum matches

Downloading is a separate step from building; builds only read local files.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import httpx

from ubuntu_isogen.errors import IsoGenError
from ubuntu_isogen.images.registry import UBUNTU_RELEASES_BASE, get_source_image

logger = logging.getLogger(__name__)

CHECKSUM_TIMEOUT = 30  # seconds
DOWNLOAD_TIMEOUT = 3600  # seconds
DOWNLOAD_CHUNK_SIZE = 1024 * 1024  # 1 MiB


class DownloadError(IsoGenError):
    """An HTTP request for a source ISO or its checksums failed."""

    def __init__(self, message: str, code: str = "download_error") -> None:
        super().__init__(message, code=code)


class VerificationError(IsoGenError):
    """A downloaded ISO does not match its published SHA256."""

    def __init__(self, message: str, code: str = "verification_error") -> None:
        super().__init__(message, code=code)


@dataclass
class DownloadResult:
    """Result of a source ISO download."""

    path: Path
    checksum: str
    size_bytes: int
    verified: bool = False
    reused: bool = False


@contextmanager
def _translate_http_errors(url: str) -> Iterator[None]:
    """Re-raise httpx failures as DownloadError with a stable code."""
    try:
        yield
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        raise DownloadError(
            f"HTTP {status} {e.response.reason_phrase} for {url}", code="http_error"
        ) from e
    except httpx.TimeoutException as e:
        raise DownloadError(f"Timed out requesting {url}", code="timeout") from e
    except httpx.RequestError as e:
        raise DownloadError(
            f"Network error requesting {url}: {e}", code="network_error"
        ) from e


def parse_sha256sums(content: str, filename: str) -> str | None:
    """Find the checksum for ``filename`` in SHA256SUMS content.

    Lines look like ``<hex> *<name>`` (binary mode) or ``<hex>  <name>``.

    Returns:
        Lower-case hex digest, or None if the file is not listed.
    """
    for raw in content.splitlines():
        fields = raw.strip().split(maxsplit=1)
        if len(fields) != 2 or fields[0].startswith("#"):
            continue
        digest, name = fields
        if name.strip().lstrip("*") == filename:
            return digest.lower()
    return None


def compute_file_sha256(file_path: Path, chunk_size: int = DOWNLOAD_CHUNK_SIZE) -> str:
    digest = hashlib.sha256()
    with file_path.open("rb") as f:
        for block in iter(lambda: f.read(chunk_size), b""):
            digest.update(block)
    return digest.hexdigest()


def fetch_checksums(
    client: httpx.Client,
    url: str,
    timeout: float = CHECKSUM_TIMEOUT,
) -> str:
    """Return the text of a SHA256SUMS file.

    Raises:
        DownloadError: If the request fails.
    """
    logger.debug("Fetching checksums from %s", url)
    with _translate_http_errors(url):
        response = client.get(url, timeout=timeout)
        response.raise_for_status()
    return response.text


def download_file(
    client: httpx.Client,
    url: str,
    dest_path: Path,
    expected_checksum: str | None = None,
    timeout: float = DOWNLOAD_TIMEOUT,
    chunk_size: int = DOWNLOAD_CHUNK_SIZE,
) -> DownloadResult:
    """Stream ``url`` to ``dest_path``, hashing as it goes.

    Raises:
        DownloadError: If the download fails.
        VerificationError: If the checksum does not match; the file is
            removed.
    """
    logger.info("Downloading %s", url)
    digest = hashlib.sha256()
    size = 0

    dest_path.parent.mkdir(parents=True, exist_ok=True)
    with _translate_http_errors(url), client.stream("GET", url, timeout=timeout) as response:
        response.raise_for_status()
        with dest_path.open("wb") as out:
            for block in response.iter_bytes(chunk_size):
                out.write(block)
                digest.update(block)
                size += len(block)

    actual = digest.hexdigest()
    if expected_checksum is not None and actual != expected_checksum.lower():
        dest_path.unlink(missing_ok=True)
        raise VerificationError(
            f"SHA256 mismatch for {url}: expected {expected_checksum}, got {actual}"
        )

    logger.info("Downloaded %d bytes (sha256 %s...)", size, actual[:16])
    return DownloadResult(
        path=dest_path,
        checksum=actual,
        size_bytes=size,
        verified=expected_checksum is not None,
    )


def download_iso(
    client: httpx.Client,
    version: str,
    dest_dir: Path,
    base_url: str = UBUNTU_RELEASES_BASE,
    verify_checksum: bool = True,
    timeout: float = DOWNLOAD_TIMEOUT,
) -> DownloadResult:
    """Download the live-server ISO for an Ubuntu release.

    The ISO is downloaded to a temporary file in ``dest_dir`` and renamed
    into place once complete. An existing ISO whose checksum matches is
    reused.

    Raises:
        InvalidInputError: If the release is not known.
        DownloadError: If a request fails.
        VerificationError: If the checksum does not match.
    """
    image = get_source_image(version)
    dest_path = dest_dir / image.filename

    expected: str | None = None
    if verify_checksum:
        checksums = fetch_checksums(client, image.checksum_url(base_url))
        expected = parse_sha256sums(checksums, image.filename)
        if expected is None:
            logger.warning("Could not find checksum for %s in SHA256SUMS", image.filename)

    if expected and dest_path.is_file():
        if compute_file_sha256(dest_path) == expected:
            logger.info("Reusing verified ISO at %s", dest_path)
            return DownloadResult(
                path=dest_path,
                checksum=expected,
                size_bytes=dest_path.stat().st_size,
                verified=True,
                reused=True,
            )
        logger.warning("Existing %s does not match checksum, re-downloading", dest_path)

    dest_dir.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=dest_dir, prefix=f".{image.filename}.", suffix=".part")
    os.close(fd)
    tmp_path = Path(tmp_name)

    try:
        result = download_file(
            client,
            image.url(base_url),
            tmp_path,
            expected_checksum=expected,
            timeout=timeout,
        )
        os.replace(tmp_path, dest_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    result.path = dest_path
    return result


__all__ = [
    "DownloadError",
    "DownloadResult",
    "VerificationError",
    "compute_file_sha256",
    "download_file",
    "download_iso",
    "fetch_checksums",
    "parse_sha256sums",
]
