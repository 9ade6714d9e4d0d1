"""
Configuration management for nixpkgs-using.

Loads and validates:
- config.yml: Optional defaults for the CLI (flake, repository, package sources)

Also resolves the per-user cache and config directories and parses
`owner/name` repository strings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


APP_NAME = "nixpkgs-using"
CONFIG_FILENAME = "config.yml"
DEFAULT_REPOSITORY = "nixos/nixpkgs"


class ConfigError(Exception):
    """Invalid user input or configuration, detected before any network I/O."""


@dataclass
class NixpkgsUsingConfig:
    """Complete nixpkgs-using configuration."""
    flake: str | None = None
    repository: str = DEFAULT_REPOSITORY
    username: str | None = None
    configuration: str | None = None  # e.g. "nixosConfigurations.myhost"
    system_packages: bool = True
    home_manager_packages: bool = True
    ignore_packages: list[str] = field(default_factory=list)

    @classmethod
    def load(cls, path: Path | None = None) -> "NixpkgsUsingConfig":
        """Load configuration from a YAML file, falling back to defaults."""
        if path is None:
            path = get_config_dir() / CONFIG_FILENAME

        if not path.exists():
            return cls()

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid config file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Invalid config file {path}: expected a mapping")

        return cls._parse(data)

    @classmethod
    def _parse(cls, data: dict[str, Any]) -> "NixpkgsUsingConfig":
        """Parse configuration dictionary."""
        config = cls(
            flake=_optional_str(data, "flake"),
            repository=_optional_str(data, "repository") or DEFAULT_REPOSITORY,
            username=_optional_str(data, "username"),
            configuration=_optional_str(data, "configuration"),
            system_packages=_bool(data, "system_packages", True),
            home_manager_packages=_bool(data, "home_manager_packages", True),
        )

        ignore = data.get("ignore_packages", [])
        if not isinstance(ignore, list) or not all(isinstance(p, str) for p in ignore):
            raise ConfigError("ignore_packages must be a list of package names")
        config.ignore_packages = ignore

        return config


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ConfigError(f"{key} must be a string")
    return value


def _bool(data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"{key} must be true or false")
    return value


def parse_repository(repository: str) -> tuple[str, str]:
    """
    Split an `owner/name` repository string.

    Raises:
        ConfigError: if the string is not exactly two non-empty parts
    """
    parts = repository.split("/")
    if len(parts) != 2 or not all(parts):
        raise ConfigError(f"Invalid repository format: {repository!r} (expected owner/name)")
    return parts[0], parts[1]


def get_cache_dir() -> Path:
    """Get the per-user cache directory ($XDG_CACHE_HOME/nixpkgs-using)."""
    base = os.environ.get("XDG_CACHE_HOME")
    root = Path(base).expanduser() if base else Path.home() / ".cache"
    return root / APP_NAME


def get_config_dir() -> Path:
    """Get the per-user config directory ($XDG_CONFIG_HOME/nixpkgs-using)."""
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base).expanduser() if base else Path.home() / ".config"
    return root / APP_NAME

