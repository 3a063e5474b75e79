"""Tests for the profile package (models and env file reader)."""

from pathlib import Path

import pytest

from ubuntu_isogen.errors import InvalidInputError
from ubuntu_isogen.profile import UserProfile, detect_ubuntu_version, read_profile
from ubuntu_isogen.profile.models import calculate_disabled_packages
from ubuntu_isogen.profile.reader import parse_env_file, parse_package_flags

SSH_KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIExample user@host"

SECRETS_ENV = f"""\
# Identity
USERNAME=jaspreet
HOSTNAME=devbox
USER_NAME="Secret Name"
USER_EMAIL=secret@example.com
MACHINE_USER_NAME='Dev Machine'
SSH_PUBLIC_KEY="{SSH_KEY}"
"""

CONFIG_ENV = """\
USER_NAME="Jaspreet Singh"
USER_EMAIL=jaspreet@example.com

PACKAGE_DOCKER_ENABLED=true
PACKAGE_LAZY_GIT_ENABLED=false
PACKAGE_NEOVIM_ENABLED=TRUE
"""


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    (tmp_path / "cloud-init").mkdir()
    (tmp_path / "cloud-init" / "secrets.env").write_text(SECRETS_ENV)
    (tmp_path / "config.env").write_text(CONFIG_ENV)
    return tmp_path


class TestParseEnvFile:
    """Tests for parse_env_file function."""

    def test_quotes_and_comments(self, project_root):
        """Should strip quotes and skip comments."""
        env = parse_env_file(project_root / "cloud-init" / "secrets.env")

        assert env["USERNAME"] == "jaspreet"
        assert env["USER_NAME"] == "Secret Name"
        assert env["MACHINE_USER_NAME"] == "Dev Machine"
        assert env["SSH_PUBLIC_KEY"] == SSH_KEY
        assert "# Identity" not in env

    def test_no_interpolation(self, tmp_path):
        """Should keep dollar signs literally."""
        path = tmp_path / "a.env"
        path.write_text("PASSWORD_HASH='$6$rounds$abc'\n")
        assert parse_env_file(path)["PASSWORD_HASH"] == "$6$rounds$abc"

    def test_missing(self, tmp_path):
        """Should raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            parse_env_file(tmp_path / "missing.env")


class TestParsePackageFlags:
    """Tests for parse_package_flags function."""

    def test_flags(self):
        """Should split flags into enabled and disabled names."""
        enabled, disabled = parse_package_flags(
            {
                "PACKAGE_DOCKER_ENABLED": "true",
                "PACKAGE_LAZY_GIT_ENABLED": "false",
                "USER_NAME": "ignored",
            }
        )
        assert enabled == ["docker"]
        assert disabled == ["lazy-git"]

    def test_calculate_disabled(self):
        assert calculate_disabled_packages(["a", "b", "c"], ["b"]) == ["a", "c"]


class TestReadProfile:
    """Tests for read_profile function."""

    def test_reads_both_files(self, project_root):
        """Should combine secrets.env with config.env overrides."""
        profile = read_profile(project_root)

        assert profile.username == "jaspreet"
        assert profile.hostname == "devbox"
        assert profile.machine_name == "Dev Machine"
        assert profile.ssh_public_keys == [SSH_KEY]
        assert profile.full_name == "Jaspreet Singh"
        assert profile.email == "jaspreet@example.com"
        assert profile.enabled_packages == ["docker", "neovim"]
        assert profile.disabled_packages == ["lazy-git"]
        assert profile.docker_enabled is True
        profile.validate()

    def test_git_identity_fallback(self, project_root):
        """Should fall back to secrets.env for the git identity."""
        (project_root / "config.env").write_text("PACKAGE_DOCKER_ENABLED=false\n")

        profile = read_profile(project_root)

        assert profile.full_name == "Secret Name"
        assert profile.email == "secret@example.com"
        assert profile.docker_enabled is False

    def test_docker_enabled_overrides_package_flag(self, project_root):
        """Should honour DOCKER_ENABLED over PACKAGE_DOCKER_ENABLED."""
        (project_root / "config.env").write_text(
            "PACKAGE_DOCKER_ENABLED=true\nDOCKER_ENABLED=false\n"
        )

        profile = read_profile(project_root)

        assert profile.enabled_packages == ["docker"]
        assert profile.docker_enabled is False

    def test_docker_enabled_without_package_flag(self, project_root):
        (project_root / "config.env").write_text("DOCKER_ENABLED=TRUE\n")
        assert read_profile(project_root).docker_enabled is True

    def test_missing_secrets(self, tmp_path):
        """Should raise InvalidInputError when secrets.env is missing."""
        (tmp_path / "config.env").write_text("")

        with pytest.raises(InvalidInputError) as exc_info:
            read_profile(tmp_path)

        assert exc_info.value.code == "config_not_found"
        assert "secrets.env" in str(exc_info.value)

    def test_missing_config(self, project_root):
        """Should raise InvalidInputError when config.env is missing."""
        (project_root / "config.env").unlink()

        with pytest.raises(InvalidInputError, match="config.env"):
            read_profile(project_root)


class TestUserProfileValidate:
    """Tests for UserProfile.validate."""

    def test_valid(self):
        UserProfile(
            username="dev_user",
            hostname="dev-box-01",
            ssh_public_keys=[SSH_KEY, "ecdsa-sha2-nistp256 AAAA key"],
            email="dev@example.com",
        ).validate()

    @pytest.mark.parametrize(
        ("kwargs", "match"),
        [
            ({"username": "", "hostname": "devbox"}, "username is required"),
            ({"username": "Dev", "hostname": "devbox"}, "invalid username"),
            ({"username": "dev", "hostname": ""}, "hostname is required"),
            ({"username": "dev", "hostname": "-devbox"}, "invalid hostname"),
            ({"username": "dev", "hostname": "dev_box"}, "invalid hostname"),
            ({"username": "dev", "hostname": "a" * 64}, "invalid hostname"),
            (
                {"username": "dev", "hostname": "devbox", "ssh_public_keys": ["AAAA"]},
                "invalid SSH key",
            ),
            (
                {"username": "dev", "hostname": "devbox", "email": "not-an-email"},
                "invalid email format",
            ),
        ],
    )
    def test_invalid(self, kwargs, match):
        with pytest.raises(InvalidInputError, match=match) as exc_info:
            UserProfile(**kwargs).validate()
        assert exc_info.value.code == "invalid_profile"

    def test_hostname_surrounding_whitespace(self):
        """Should check the hostname after trimming it."""
        UserProfile(username="dev", hostname=" srv1 ").validate()
        UserProfile(username="dev", hostname="DevBox").validate()

    def test_git_identity(self):
        assert UserProfile("dev", "devbox", full_name="A", email="a@b.co").has_git_identity
        assert not UserProfile("dev", "devbox", full_name="A").has_git_identity


class TestDetectUbuntuVersion:
    """Tests for detect_ubuntu_version function."""

    @pytest.mark.parametrize(
        ("filename", "expected"),
        [
            ("ubuntu-22.04.3-live-server-amd64.iso", "22.04"),
            ("ubuntu-24.04-live-server-amd64.iso", "24.04"),
            ("/downloads/ubuntu-24.04.1-live-server-arm64.iso", "24.04"),
            ("custom.iso", "24.04"),
        ],
    )
    def test_detect(self, filename, expected):
        assert detect_ubuntu_version(filename) == expected
