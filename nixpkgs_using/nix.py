"""
Package discovery for nixpkgs-using.

Evaluates the user's flake with `nix eval` and returns the names of the
packages their configuration installs, with versions stripped.
"""

from __future__ import annotations

import getpass
import json
import logging
import socket
import subprocess
import sys
from pathlib import Path
from typing import Iterable

from .config import ConfigError


logger = logging.getLogger(__name__)

NIXOS_MARKER = Path("/etc/NIXOS")

# Strips "-1.2.3" from derivation names
APPLY_PARSE_NAMES = "map (pkg: (builtins.parseDrvName pkg.name).name)"

# Installed on every NixOS / nix-darwin system regardless of user choice
COMMON_EXTRA_PACKAGES = frozenset({
    "acl", "attr", "bash", "bash-interactive", "bind", "bzip2", "coreutils",
    "coreutils-full", "cpio", "curl", "diffutils", "dosfstools", "e2fsprogs",
    "findutils", "fuse", "gawk", "getconf", "getent", "gnugrep", "gnupatch",
    "gnused", "gnutar", "gzip", "hostname", "iproute2", "iputils", "kbd",
    "kmod", "less", "libcap", "linux-pam", "lvm2", "man-db", "mkpasswd",
    "mtools", "nano", "ncurses", "nix", "nixos-build-vms", "nixos-enter",
    "nixos-generate-config", "nixos-help", "nixos-install", "nixos-option",
    "nixos-rebuild", "nixos-version", "openssh", "perl", "procps", "shadow",
    "strace", "su", "sudo", "systemd", "time", "util-linux", "which", "xz",
    "zstd",
})


class NixEvalError(Exception):
    """`nix eval` could not produce a package list."""


def detect_configuration() -> str:
    """Flake output attribute holding configurations for this OS."""
    if sys.platform.startswith("linux"):
        if NIXOS_MARKER.exists():
            return "nixosConfigurations"
        return "homeConfigurations"
    if sys.platform == "darwin":
        return "darwinConfigurations"
    raise ConfigError(f"Unsupported operating system detected: {sys.platform}")


def get_hostname() -> str:
    """Short host name, like `hostname -s`."""
    return socket.gethostname().split(".")[0]


def get_username() -> str:
    try:
        return getpass.getuser()
    except (OSError, KeyError) as e:
        raise ConfigError("Failed to get current username") from e


def build_nix_expression(
    flake: str,
    configuration: str,
    username: str,
    system_packages: bool = True,
    home_manager_packages: bool = True,
) -> str:
    """
    Build the Nix expression listing the configuration's packages.

    Args:
        flake: Flake reference, e.g. "/etc/nixos" or "github:me/dotfiles"
        configuration: Attribute path such as "nixosConfigurations.myhost"
        username: Home Manager user whose packages are included
        system_packages: Include environment.systemPackages
        home_manager_packages: Include the user's Home Manager packages

    Raises:
        ConfigError: if no package source is enabled
    """
    config = f'(builtins.getFlake "{flake}").{configuration}.config'

    # Standalone Home Manager configurations only have home.packages
    if configuration.split(".")[0] == "homeConfigurations":
        if not home_manager_packages:
            raise ConfigError("Home Manager packages are disabled for a Home Manager configuration")
        return f"{config}.home.packages"

    parts = []
    if system_packages:
        parts.append(f"{config}.environment.systemPackages")
    if home_manager_packages:
        parts.append(f"{config}.home-manager.users.{username}.home.packages")

    if not parts:
        raise ConfigError("Both system and Home Manager packages are disabled")

    return " ++ ".join(parts)


def eval_nix_configuration(
    flake: str,
    configuration: str,
    username: str,
    system_packages: bool = True,
    home_manager_packages: bool = True,
) -> list[str]:
    """Run `nix eval` and return package names in evaluation order."""
    expr = build_nix_expression(flake, configuration, username, system_packages, home_manager_packages)
    cmd = ["nix", "eval", "--impure", "--json", "--expr", expr, "--apply", APPLY_PARSE_NAMES]
    logger.debug("Running: %s", " ".join(cmd))

    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise NixEvalError("nix executable not found on PATH") from e

    if result.returncode != 0:
        raise NixEvalError(f"unable to evaluate nix configuration: {result.stderr.strip()}")

    try:
        packages = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise NixEvalError(f"nix eval returned invalid JSON: {e}") from e

    if not isinstance(packages, list) or not all(isinstance(p, str) for p in packages):
        raise NixEvalError("nix eval did not return a list of package names")

    return packages


def resolve_packages(
    flake: str,
    configuration: str,
    username: str,
    system_packages: bool = True,
    home_manager_packages: bool = True,
    ignore: Iterable[str] = (),
) -> list[str]:
    """
    Package names for the configuration, minus defaults every system has.

    Duplicates are removed; first-seen order is kept.
    """
    packages = eval_nix_configuration(flake, configuration, username, system_packages, home_manager_packages)
    skip = COMMON_EXTRA_PACKAGES | set(ignore)
    return [pkg for pkg in dict.fromkeys(packages) if pkg not in skip]
