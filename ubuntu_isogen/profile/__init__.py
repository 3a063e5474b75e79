"""User profile module.

This module handles:
- The UserProfile consumed by the autoinstall generator
- Reading a profile from the project's env files
- Validating those env files, reporting every issue at once
"""

from ubuntu_isogen.profile.models import UserProfile
from ubuntu_isogen.profile.reader import detect_ubuntu_version, read_profile
from ubuntu_isogen.profile.validation import (
    ValidationIssue,
    ValidationResult,
    validate_project,
)

__all__ = [
    "UserProfile",
    "ValidationIssue",
    "ValidationResult",
    "detect_ubuntu_version",
    "read_profile",
    "validate_project",
]
