"""User profile consumed by the autoinstall generator."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ubuntu_isogen.errors import InvalidInputError

# RFC 1123 host label
HOSTNAME_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$")
USERNAME_PATTERN = re.compile(r"^[a-z_][a-z0-9_-]*$")
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
SSH_KEY_PREFIXES = ("ssh-rsa", "ssh-ed25519", "ssh-ecdsa", "ecdsa-sha2")

DOCKER_PACKAGE = "docker"


@dataclass
class UserProfile:
    """Identity, credentials and package selection for the installed system.

    Attributes:
        username: Login name of the primary user.
        hostname: Hostname of the installed machine.
        machine_name: Display name for the machine user.
        ssh_public_keys: Authorized SSH keys, order preserved.
        full_name: Git commit name (optional).
        email: Git commit email (optional).
        enabled_packages: Post-boot installer packages selected.
        disabled_packages: Post-boot installer packages not selected.
        docker_enabled: Whether to install Docker; derived from
            ``enabled_packages`` when not given.
    """

    username: str
    hostname: str
    machine_name: str = ""
    ssh_public_keys: list[str] = field(default_factory=list)
    full_name: str = ""
    email: str = ""
    enabled_packages: list[str] = field(default_factory=list)
    disabled_packages: list[str] = field(default_factory=list)
    docker_enabled: bool | None = None

    def __post_init__(self) -> None:
        if self.docker_enabled is None:
            self.docker_enabled = DOCKER_PACKAGE in self.enabled_packages

    @property
    def has_git_identity(self) -> bool:
        return bool(self.full_name) and bool(self.email)

    def validate(self) -> None:
        """Check identity and credential fields.

        Raises:
            InvalidInputError: On the first invalid field.
        """
        problems = [check_username(self.username), check_hostname(self.hostname)]
        problems += [check_ssh_key(key) for key in self.ssh_public_keys]
        if self.email:
            problems.append(check_email(self.email))

        for problem in problems:
            if problem is not None:
                raise InvalidInputError(problem, code="invalid_profile")


def check_username(value: str) -> str | None:
    """Return a message describing what is wrong with ``value``, or None."""
    if not value.strip():
        return "username is required"
    if not USERNAME_PATTERN.match(value):
        return f"invalid username: {value}"
    return None


def check_hostname(value: str) -> str | None:
    hostname = value.strip()
    if not hostname:
        return "hostname is required"
    if not HOSTNAME_PATTERN.match(hostname.lower()):
        return (
            f"invalid hostname: {hostname} (must be alphanumeric with "
            "optional hyphens, no leading/trailing hyphens)"
        )
    return None


def check_ssh_key(value: str) -> str | None:
    if not value.strip().startswith(SSH_KEY_PREFIXES):
        return (
            "invalid SSH key: must start with ssh-rsa, ssh-ed25519, "
            "ssh-ecdsa or ecdsa-sha2"
        )
    return None


def check_email(value: str) -> str | None:
    if not EMAIL_PATTERN.match(value.strip()):
        return f"invalid email format: {value}"
    return None


def calculate_disabled_packages(
    all_packages: list[str], enabled_packages: list[str]
) -> list[str]:
    """Return packages in ``all_packages`` that are not enabled."""
    enabled = set(enabled_packages)
    return [pkg for pkg in all_packages if pkg not in enabled]


__all__ = [
    "UserProfile",
    "calculate_disabled_packages",
    "check_email",
    "check_hostname",
    "check_ssh_key",
    "check_username",
]
