"""Read a user profile from the project's env files.

The project root holds two shell-style env files:

- ``cloud-init/secrets.env``: identity and credentials
- ``config.env``: git identity overrides and ``PACKAGE_<NAME>_ENABLED`` flags
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from dotenv import dotenv_values

from ubuntu_isogen.errors import InvalidInputError
from ubuntu_isogen.profile.models import UserProfile, calculate_disabled_packages
from ubuntu_isogen.types import DEFAULT_UBUNTU_VERSION

logger = logging.getLogger(__name__)

SECRETS_ENV = Path("cloud-init") / "secrets.env"
CONFIG_ENV = Path("config.env")

PACKAGE_FLAG_PATTERN = re.compile(r"^PACKAGE_(?P<name>[A-Z0-9_]+)_ENABLED$")
VERSION_PATTERN = re.compile(r"(\d{2}\.\d{2})(?:\.\d+)?")
DOCKER_ENABLED_KEY = "DOCKER_ENABLED"


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a KEY=VALUE env file.

    Quotes around values are stripped, comments and blank lines skipped.
    Keys without a value map to an empty string.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    if not path.is_file():
        raise FileNotFoundError(f"env file not found: {path}")
    values = dotenv_values(path, interpolate=False)
    return {key: (value or "") for key, value in values.items()}


def is_true(value: str) -> bool:
    return value.strip().lower() == "true"


def parse_package_flags(env: dict[str, str]) -> tuple[list[str], list[str]]:
    """Split ``PACKAGE_<NAME>_ENABLED`` flags into enabled/disabled names.

    ``PACKAGE_LAZY_GIT_ENABLED=true`` becomes ``lazy-git``. Order follows
    the file.
    """
    names: list[str] = []
    enabled: list[str] = []
    for key, value in env.items():
        match = PACKAGE_FLAG_PATTERN.match(key)
        if not match:
            continue
        name = match.group("name").lower().replace("_", "-")
        names.append(name)
        if is_true(value):
            enabled.append(name)
    return enabled, calculate_disabled_packages(names, enabled)


def read_profile(project_root: Path) -> UserProfile:
    """Build a UserProfile from ``secrets.env`` and ``config.env``.

    Args:
        project_root: Directory containing the env files.

    Returns:
        UserProfile populated from the files.

    Raises:
        InvalidInputError: If either file is missing.
    """
    secrets_path = project_root / SECRETS_ENV
    config_path = project_root / CONFIG_ENV

    try:
        secrets = parse_env_file(secrets_path)
        config = parse_env_file(config_path)
    except FileNotFoundError as e:
        raise InvalidInputError(str(e), code="config_not_found") from e

    keys = [secrets["SSH_PUBLIC_KEY"]] if secrets.get("SSH_PUBLIC_KEY") else []
    enabled, disabled = parse_package_flags(config)
    # An explicit DOCKER_ENABLED wins over PACKAGE_DOCKER_ENABLED
    docker_enabled = None
    if DOCKER_ENABLED_KEY in config:
        docker_enabled = is_true(config[DOCKER_ENABLED_KEY])

    profile = UserProfile(
        username=secrets.get("USERNAME", ""),
        hostname=secrets.get("HOSTNAME", ""),
        machine_name=secrets.get("MACHINE_USER_NAME", ""),
        ssh_public_keys=keys,
        full_name=config.get("USER_NAME") or secrets.get("USER_NAME", ""),
        email=config.get("USER_EMAIL") or secrets.get("USER_EMAIL", ""),
        enabled_packages=enabled,
        disabled_packages=disabled,
        docker_enabled=docker_enabled,
    )
    logger.debug(
        "Read profile for %s@%s (%d package(s) enabled)",
        profile.username,
        profile.hostname,
        len(enabled),
    )
    return profile


def detect_ubuntu_version(
    iso_path: Path | str, default: str = DEFAULT_UBUNTU_VERSION.value
) -> str:
    """Guess the Ubuntu release from an ISO file name.

    ``ubuntu-22.04.3-live-server-amd64.iso`` gives ``22.04``; names without
    a version give ``default``.
    """
    match = VERSION_PATTERN.search(Path(iso_path).name)
    if match:
        return match.group(1)
    return default


__all__ = [
    "CONFIG_ENV",
    "SECRETS_ENV",
    "detect_ubuntu_version",
    "parse_env_file",
    "parse_package_flags",
    "read_profile",
]
