from __future__ import annotations

import pytest

from nixpkgs_using.config import (
    DEFAULT_REPOSITORY,
    ConfigError,
    NixpkgsUsingConfig,
    get_cache_dir,
    get_config_dir,
    parse_repository,
)


def test_config_missing_file_uses_defaults(tmp_path):
    config = NixpkgsUsingConfig.load(tmp_path / "config.yml")

    assert config.flake is None
    assert config.repository == DEFAULT_REPOSITORY
    assert config.system_packages is True
    assert config.home_manager_packages is True
    assert config.ignore_packages == []


def test_config_load_values(tmp_path):
    config_path = tmp_path / "config.yml"
    config_path.write_text(
        """
flake: /etc/nixos
repository: me/nixpkgs
username: alice
configuration: nixosConfigurations.laptop
home_manager_packages: false
ignore_packages:
  - git
  - vim
        """.strip()
    )

    config = NixpkgsUsingConfig.load(config_path)

    assert config.flake == "/etc/nixos"
    assert config.repository == "me/nixpkgs"
    assert config.username == "alice"
    assert config.configuration == "nixosConfigurations.laptop"
    assert config.system_packages is True
    assert config.home_manager_packages is False
    assert config.ignore_packages == ["git", "vim"]


def test_config_default_location(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    (tmp_path / "nixpkgs-using").mkdir()
    (tmp_path / "nixpkgs-using" / "config.yml").write_text("flake: github:me/dotfiles")

    assert NixpkgsUsingConfig.load().flake == "github:me/dotfiles"


def test_config_invalid_yaml(tmp_path):
    config_path = tmp_path / "config.yml"
    config_path.write_text("flake: [unclosed")

    with pytest.raises(ConfigError):
        NixpkgsUsingConfig.load(config_path)


def test_config_wrong_types(tmp_path):
    config_path = tmp_path / "config.yml"
    config_path.write_text("system_packages: maybe")

    with pytest.raises(ConfigError, match="system_packages"):
        NixpkgsUsingConfig.load(config_path)


def test_parse_repository():
    assert parse_repository("nixos/nixpkgs") == ("nixos", "nixpkgs")


@pytest.mark.parametrize("value", ["nixpkgs", "nixos/nixpkgs/extra", "/nixpkgs", "nixos/", ""])
def test_parse_repository_rejects_malformed(value):
    with pytest.raises(ConfigError, match="Invalid repository format"):
        parse_repository(value)


def test_dirs_follow_xdg(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))

    assert get_cache_dir() == tmp_path / "cache" / "nixpkgs-using"
    assert get_config_dir() == tmp_path / "config" / "nixpkgs-using"


def test_dirs_default_to_home(tmp_path, monkeypatch):
    monkeypatch.delenv("XDG_CACHE_HOME", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))

    assert get_cache_dir() == tmp_path / ".cache" / "nixpkgs-using"
