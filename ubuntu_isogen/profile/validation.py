"""Validate the project's env files, collecting every issue.

``UserProfile.validate`` stops at the first problem. This module checks
``cloud-init/secrets.env`` and ``config.env`` as files instead, reporting
each issue with its file, field and severity so all of them can be fixed
in one pass.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from ubuntu_isogen.errors import InvalidInputError
from ubuntu_isogen.profile.models import (
    check_email,
    check_hostname,
    check_ssh_key,
    check_username,
)
from ubuntu_isogen.profile.reader import (
    CONFIG_ENV,
    PACKAGE_FLAG_PATTERN,
    SECRETS_ENV,
    is_true,
    parse_env_file,
)
from ubuntu_isogen.types import Severity

logger = logging.getLogger(__name__)

REQUIRED_SECRETS = ("USERNAME", "HOSTNAME", "SSH_PUBLIC_KEY")
GIT_IDENTITY_FIELDS = ("USER_NAME", "USER_EMAIL")

BOOL_FIELDS = (
    "GIT_PUSH_AUTO_SETUP_REMOTE",
    "GIT_PULL_REBASE",
    "GIT_URL_REWRITE_GITHUB",
    "TAILSCALE_SSH_ENABLED",
    "TAILSCALE_EXIT_NODE_ADVERTISE",
    "TAILSCALE_SSH_CHECK_MODE",
    "DOCKER_ENABLED",
    "DOCKER_ADD_TO_GROUP",
    "DOCKER_START_ON_BOOT",
)


class ValidationIssue(BaseModel):
    """A single problem found in a config file.

    Attributes:
        file: Path of the file the issue was found in.
        field: Variable name, if the issue concerns one.
        message: Human-readable description.
        severity: Errors block a build; warnings do not.
    """

    model_config = ConfigDict(extra="forbid")

    file: str
    field: str | None = None
    message: str
    severity: Severity

    def __str__(self) -> str:
        text = f"{self.file}: {self.message}"
        return f"{text} ({self.field})" if self.field else text


class ValidationResult(BaseModel):
    """All issues found across the project's config files."""

    model_config = ConfigDict(extra="forbid")

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def raise_for_errors(self) -> None:
        """Raise if any error-level issue was found.

        Raises:
            InvalidInputError: With code ``invalid_config``, listing the
                errors.
        """
        if not self.has_errors:
            return
        details = "; ".join(str(issue) for issue in self.errors)
        raise InvalidInputError(
            f"configuration has {self.error_count} error(s): {details}",
            code="invalid_config",
        )


def _is_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "false")


def validate_secrets_env(path: Path) -> list[ValidationIssue]:
    """Check identity and credential variables in ``secrets.env``."""
    file = str(path)

    def error(message: str, field: str | None = None) -> ValidationIssue:
        return ValidationIssue(
            file=file, field=field, message=message, severity=Severity.ERROR
        )

    if not path.is_file():
        return [error("secrets.env file not found")]

    env = parse_env_file(path)
    issues = [
        error(f"{name} is required", name)
        for name in REQUIRED_SECRETS
        if not env.get(name, "").strip()
    ]

    checks = (
        ("USERNAME", check_username),
        ("HOSTNAME", check_hostname),
        ("SSH_PUBLIC_KEY", check_ssh_key),
        ("USER_EMAIL", check_email),
    )
    for name, check in checks:
        value = env.get(name, "")
        if not value.strip():
            continue
        problem = check(value)
        if problem is not None:
            issues.append(error(problem, name))

    key_count = env.get("SSH_KEY_COUNT", "")
    if key_count and not key_count.strip().isdigit():
        issues.append(
            ValidationIssue(
                file=file,
                field="SSH_KEY_COUNT",
                message="SSH_KEY_COUNT must be a valid integer",
                severity=Severity.WARNING,
            )
        )

    return issues


def validate_config_env(path: Path) -> list[ValidationIssue]:
    """Check boolean flags and the git email override in ``config.env``."""
    file = str(path)
    if not path.is_file():
        return [
            ValidationIssue(
                file=file, message="config.env file not found", severity=Severity.ERROR
            )
        ]

    env = parse_env_file(path)
    issues: list[ValidationIssue] = []

    flags = [name for name in BOOL_FIELDS if name in env]
    flags += [name for name in env if PACKAGE_FLAG_PATTERN.match(name)]
    for name in flags:
        if not _is_bool(env[name]):
            issues.append(
                ValidationIssue(
                    file=file,
                    field=name,
                    message=f"{name} must be 'true' or 'false', got '{env[name]}'",
                    severity=Severity.ERROR,
                )
            )

    email = env.get("USER_EMAIL", "")
    problem = check_email(email) if email.strip() else None
    if problem is not None:
        issues.append(
            ValidationIssue(
                file=file, field="USER_EMAIL", message=problem, severity=Severity.ERROR
            )
        )

    tailscale_ssh = is_true(env.get("TAILSCALE_SSH_ENABLED", ""))
    if tailscale_ssh and not is_true(env.get("PACKAGE_TAILSCALE_ENABLED", "")):
        issues.append(
            ValidationIssue(
                file=file,
                field="TAILSCALE_SSH_ENABLED",
                message=(
                    "TAILSCALE_SSH_ENABLED is true but PACKAGE_TAILSCALE_ENABLED "
                    "is not set"
                ),
                severity=Severity.WARNING,
            )
        )

    return issues


def _git_identity_issues(
    secrets_path: Path, config_path: Path
) -> list[ValidationIssue]:
    """Warn about git identity variables set in neither file."""
    envs = [parse_env_file(p) for p in (secrets_path, config_path) if p.is_file()]
    return [
        ValidationIssue(
            file=str(secrets_path),
            field=name,
            message=f"{name} is not set; git identity will not be configured",
            severity=Severity.WARNING,
        )
        for name in GIT_IDENTITY_FIELDS
        if not any(env.get(name, "").strip() for env in envs)
    ]


def validate_project(project_root: Path) -> ValidationResult:
    """Validate ``secrets.env`` and ``config.env`` under ``project_root``.

    Args:
        project_root: Directory containing the env files.

    Returns:
        ValidationResult with every issue found, secrets.env first.
    """
    secrets_path = project_root / SECRETS_ENV
    config_path = project_root / CONFIG_ENV

    issues = validate_secrets_env(secrets_path)
    if secrets_path.is_file():
        issues += _git_identity_issues(secrets_path, config_path)
    issues += validate_config_env(config_path)

    result = ValidationResult(issues=issues)
    logger.debug(
        "Validated %s: %d error(s), %d warning(s)",
        project_root,
        result.error_count,
        result.warning_count,
    )
    return result


__all__ = [
    "ValidationIssue",
    "ValidationResult",
    "validate_config_env",
    "validate_project",
    "validate_secrets_env",
]
