"""Configuration settings for ubuntu_isogen.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_images_dir() -> Path:
    """Return the default directory for downloaded source ISOs."""
    return Path.home() / ".local" / "share" / "ubuntu-isogen" / "images"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the UBUNTU_ISOGEN_
    prefix. CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="UBUNTU_ISOGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    project_root: Path = Field(
        default_factory=Path.cwd,
        description="Project root holding config.env, cloud-init/ and .tmp/",
    )
    staging_dir_name: str = Field(
        default=".tmp",
        min_length=1,
        description="Name of the staging directory under the project root",
    )
    images_dir: Path = Field(
        default_factory=_default_images_dir,
        description="Directory for downloaded source ISOs",
    )

    # Tooling
    xorriso_binary: str = Field(
        default="xorriso",
        description="Name or path of the xorriso executable",
    )
    default_ubuntu_version: Literal["22.04", "24.04"] = Field(
        default="24.04",
        description="Ubuntu version assumed when none can be detected",
    )

    # Operational
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Timeouts (in seconds)
    download_timeout: int = Field(
        default=3600,
        ge=60,
        description="Timeout for source ISO downloads",
    )
    command_timeout: int | None = Field(
        default=None,
        ge=1,
        description="Timeout for each xorriso invocation (None = no timeout)",
    )

    @property
    def staging_root(self) -> Path:
        """Directory under which per-build work areas are created."""
        return self.project_root / self.staging_dir_name


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
