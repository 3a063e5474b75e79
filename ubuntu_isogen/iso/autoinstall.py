"""Ubuntu autoinstall document generation.

Builds the ``user-data`` document consumed by the Ubuntu installer
(subiquity) through the cloud-init NoCloud data source, plus its empty
``meta-data`` companion.

See https://canonical-subiquity.readthedocs-hosted.com/en/latest/reference/autoinstall-reference.html
"""

from __future__ import annotations

import logging
import shlex
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from ubuntu_isogen.errors import InvalidInputError

if TYPE_CHECKING:
    from ubuntu_isogen.iso.options import ImageOptions
    from ubuntu_isogen.profile.models import UserProfile

logger = logging.getLogger(__name__)

CLOUD_CONFIG_HEADER = "#cloud-config\n"
AUTOINSTALL_VERSION = 1
KEYBOARD_LAYOUT = "us"

# Installed by the installer itself; post-boot tools come from the
# package installer scripts instead.
BASE_PACKAGES = (
    "curl",
    "wget",
    "git",
    "zsh",
    "tree",
    "jq",
    "htop",
    "unzip",
    "build-essential",
    "ca-certificates",
    "gnupg",
    "apt-transport-https",
)

IN_TARGET = "curtin in-target --"
DOCKER_INSTALL = f"{IN_TARGET} bash -c 'curl -fsSL https://get.docker.com | sh'"
GH_KEYRING = "/etc/apt/keyrings/githubcli-archive-keyring.gpg"


class _Section(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class KeyboardConfig(_Section):
    layout: str
    variant: str | None = None


class IdentityConfig(_Section):
    """Installer identity; no password since access is SSH-key only."""

    hostname: str
    username: str
    password: str | None = None


class SSHConfig(_Section):
    install_server: bool = Field(alias="install-server")
    authorized_keys: list[str] = Field(default_factory=list, alias="authorized-keys")
    allow_pw: bool = Field(alias="allow-pw")


class StorageLayoutConfig(_Section):
    name: str


class StorageConfig(_Section):
    layout: StorageLayoutConfig


class AutoinstallDocument(_Section):
    """The ``autoinstall:`` block of the user-data document.

    Field order is the order written to YAML.
    """

    version: int = AUTOINSTALL_VERSION
    locale: str | None = None
    keyboard: KeyboardConfig | None = None
    identity: IdentityConfig
    ssh: SSHConfig
    storage: StorageConfig | None = None
    packages: list[str] = Field(default_factory=list)
    late_commands: list[str] = Field(default_factory=list, alias="late-commands")
    timezone: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the document with YAML key names, empty fields dropped."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        for key in ("packages", "late-commands"):
            if not data.get(key):
                data.pop(key, None)
        if not data["ssh"].get("authorized-keys"):
            data["ssh"].pop("authorized-keys", None)
        return data


def render_user_data(document: AutoinstallDocument) -> bytes:
    """Serialize a document as ``#cloud-config`` YAML."""
    body = yaml.safe_dump(
        {"autoinstall": document.to_dict()},
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        width=4096,
    )
    return (CLOUD_CONFIG_HEADER + body).encode("utf-8")


def build_package_list() -> list[str]:
    """Return the fixed base package set."""
    return list(BASE_PACKAGES)


def build_late_commands(profile: UserProfile, options: ImageOptions) -> list[str]:
    """Return the ordered post-install command sequence.

    Optional stages (Docker, git identity) add nothing when disabled.
    """
    user = profile.username
    timezone = shlex.quote(options.timezone)
    commands = [f"{IN_TARGET} timedatectl set-timezone {timezone}"]

    if profile.docker_enabled:
        commands += [
            DOCKER_INSTALL,
            f"{IN_TARGET} usermod -aG docker {user}",
            f"{IN_TARGET} systemctl enable docker",
        ]

    # GitHub CLI from its signed apt repository
    commands += [
        f"{IN_TARGET} bash -c 'curl -fsSL "
        f"https://cli.github.com/packages/githubcli-archive-keyring.gpg "
        f"| dd of={GH_KEYRING}'",
        f"{IN_TARGET} chmod go+r {GH_KEYRING}",
        f"{IN_TARGET} bash -c 'echo \"deb [arch=$(dpkg --print-architecture) "
        f"signed-by={GH_KEYRING}] https://cli.github.com/packages stable main\" "
        f"> /etc/apt/sources.list.d/github-cli.list'",
        f"{IN_TARGET} apt-get update",
        f"{IN_TARGET} apt-get install -y gh",
    ]

    commands += [
        f"{IN_TARGET} bash -c 'curl -fsSL https://tailscale.com/install.sh | sh'",
        f"{IN_TARGET} systemctl enable tailscaled",
    ]

    commands.append(f"{IN_TARGET} chsh -s /bin/zsh {user}")

    home = f"/home/{user}"
    commands += [
        f"{IN_TARGET} mkdir -p {home}/.config {home}/.local/bin",
        f"{IN_TARGET} chown -R {user}:{user} {home}/.config {home}/.local",
    ]

    if profile.has_git_identity:
        git = f"{IN_TARGET} sudo -u {user} git config --global"
        commands += [
            f"{git} user.email {shlex.quote(profile.email)}",
            f"{git} user.name {shlex.quote(profile.full_name)}",
            f"{git} init.defaultBranch main",
        ]

    return commands


class AutoinstallGenerator:
    """Generate autoinstall ``user-data`` and ``meta-data`` documents."""

    def build_document(
        self,
        profile: UserProfile | None,
        options: ImageOptions | None,
    ) -> AutoinstallDocument:
        """Build the in-memory autoinstall document.

        Raises:
            InvalidInputError: If ``profile`` or ``options`` is None.
        """
        if profile is None:
            raise InvalidInputError("profile is nil", code="nil_input")
        if options is None:
            raise InvalidInputError("options is nil", code="nil_input")

        return AutoinstallDocument(
            version=AUTOINSTALL_VERSION,
            locale=options.locale,
            timezone=options.timezone,
            keyboard=KeyboardConfig(layout=KEYBOARD_LAYOUT),
            identity=IdentityConfig(
                hostname=profile.hostname,
                username=profile.username,
            ),
            ssh=SSHConfig(
                install_server=True,
                authorized_keys=list(profile.ssh_public_keys),
                allow_pw=False,
            ),
            storage=StorageConfig(
                layout=StorageLayoutConfig(
                    name=getattr(options.storage_layout, "value", options.storage_layout)
                )
            ),
            packages=build_package_list(),
            late_commands=build_late_commands(profile, options),
        )

    def generate(
        self,
        profile: UserProfile | None,
        options: ImageOptions | None,
    ) -> bytes:
        """Return the serialized ``user-data`` document.

        Raises:
            InvalidInputError: If ``profile`` or ``options`` is None.
        """
        document = self.build_document(profile, options)
        logger.debug(
            "Generated autoinstall document with %d late command(s)",
            len(document.late_commands),
        )
        return render_user_data(document)

    def generate_meta_data(self) -> bytes:
        """Return ``meta-data``: empty, but the NoCloud source requires it."""
        return b""


__all__ = [
    "AutoinstallDocument",
    "AutoinstallGenerator",
    "BASE_PACKAGES",
    "CLOUD_CONFIG_HEADER",
    "DOCKER_INSTALL",
    "build_late_commands",
    "build_package_list",
    "render_user_data",
]
