"""
nixpkgs-using CLI - Find update pull requests for the Nix packages you use.

Commands:
    prs   - List update PRs for packages you use
    list  - List packages you use
"""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, NoReturn

import click
from click.core import ParameterSource
from dotenv import load_dotenv

# Load .env file from current directory
load_dotenv()

from . import __version__
from .config import ConfigError, NixpkgsUsingConfig, parse_repository
from .filters import Entry, filter_pull_requests, latest_created_at
from .github import GitHubAPIError, fetch_all
from .log import setup_logging
from .nix import NixEvalError, detect_configuration, get_hostname, get_username, resolve_packages
from .store import WatermarkStore


@dataclass
class Settings:
    """Effective options after merging command line, environment and config file."""
    token: str | None
    flake: str
    configuration: str | None
    username: str
    repository: str
    as_json: bool
    system_packages: bool
    home_manager_packages: bool
    ignore_packages: list[str] = field(default_factory=list)


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _pick(cli_value: bool | None, config_value: bool) -> bool:
    return config_value if cli_value is None else cli_value


def _resolve_settings(ctx: click.Context, as_json: bool) -> Settings:
    """Merge global options with the config file; CLI and env win."""
    params = ctx.obj
    config = NixpkgsUsingConfig.load(params["config_path"])

    flake = params["flake"] or config.flake
    if not flake:
        raise ConfigError("No flake given. Use --flake or set FLAKE")

    return Settings(
        token=params["token"],
        flake=flake,
        configuration=params["configuration"] or config.configuration,
        username=params["username"] or config.username or get_username(),
        repository=params["repository"] or config.repository,
        as_json=as_json or params["as_json"],
        system_packages=_pick(params["system_packages"], config.system_packages),
        home_manager_packages=_pick(params["home_manager_packages"], config.home_manager_packages),
        ignore_packages=config.ignore_packages,
    )


def _progress(settings: Settings) -> Callable[[str], None]:
    """Echo progress lines, except in JSON mode."""
    def display(message: str) -> None:
        if not settings.as_json:
            click.echo(message)
    return display


def _load_packages(settings: Settings, display: Callable[[str], None]) -> list[str]:
    configuration = settings.configuration or f"{detect_configuration()}.{get_hostname()}"

    display(
        f"Evaluating user configuration (username: {click.style(settings.username, fg='green')}, "
        f"configuration: {click.style(configuration, fg='blue')})... "
    )

    packages = resolve_packages(
        settings.flake,
        configuration,
        settings.username,
        system_packages=settings.system_packages,
        home_manager_packages=settings.home_manager_packages,
        ignore=settings.ignore_packages,
    )

    display(f"{click.style(str(len(packages)), fg='yellow')} packages detected.\n")
    return packages


def hyperlink(text: str, url: str) -> str:
    """OSC 8 terminal hyperlink."""
    return f"\033]8;;{url}\033\\{text}\033]8;;\033\\"


def format_entry(entry: Entry, link: bool) -> str:
    title = hyperlink(entry.title, entry.url) if link else f"{entry.title} <{entry.url}>"
    new = click.style(" (new)", fg="green") if entry.new else ""
    return f" * {title}{new}"


def _explicit(ctx: click.Context, name: str, value: bool) -> bool | None:
    """The flag value if given on the command line, None if left at its default."""
    if ctx.get_parameter_source(name) in (ParameterSource.DEFAULT, ParameterSource.DEFAULT_MAP):
        return None
    return value


@click.group()
@click.version_option(version=__version__)
@click.option("--token", "-t", envvar="GITHUB_TOKEN", help="GitHub token [env: GITHUB_TOKEN]")
@click.option("--flake", "-f", envvar="FLAKE", help="Path to the flake to evaluate [env: FLAKE]")
@click.option("--configuration", "-c", help="Configuration to extract packages from (e.g. nixosConfigurations.myhost)")
@click.option("--username", "-u", help="Username to locate Home Manager packages from")
@click.option("--repository", "-r", help="The GitHub repository from which pull requests are fetched [default: nixos/nixpkgs]")
@click.option("--json", "as_json", is_flag=True, help="Print results in JSON")
@click.option("--system-packages/--no-system-packages", default=True, help="Search through system packages")
@click.option("--home-manager-packages/--no-home-manager-packages", default=True, help="Search through Home Manager packages")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), help="Config file (default: ~/.config/nixpkgs-using/config.yml)")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def main(
    ctx: click.Context,
    token: str | None,
    flake: str | None,
    configuration: str | None,
    username: str | None,
    repository: str | None,
    as_json: bool,
    system_packages: bool,
    home_manager_packages: bool,
    config_path: Path | None,
    verbose: bool,
):
    """nixpkgs-using - Find update pull requests for the Nix packages you use."""
    setup_logging(verbose)
    ctx.obj = {
        "token": token,
        "flake": flake,
        "configuration": configuration,
        "username": username,
        "repository": repository,
        "as_json": as_json,
        "system_packages": _explicit(ctx, "system_packages", system_packages),
        "home_manager_packages": _explicit(ctx, "home_manager_packages", home_manager_packages),
        "config_path": config_path,
    }


@main.command()
@click.option("--only-new", is_flag=True, help="Exclude pull requests that have already been shown")
@click.option("--only-updates", is_flag=True, help="Only include titles that look like version bumps (a -> b)")
@click.option("--json", "as_json", is_flag=True, help="Print results in JSON")
@click.pass_context
def prs(ctx: click.Context, only_new: bool, only_updates: bool, as_json: bool):
    """List update PRs for packages you use.

    Pull requests created after the previous run are marked as new.

    Examples:

        nixpkgs-using prs                        # All matching PRs
        nixpkgs-using prs --only-updates         # Version bumps only
        nixpkgs-using prs --only-new --json      # Unseen PRs as JSON
    """
    try:
        settings = _resolve_settings(ctx, as_json)
        if not settings.token:
            raise ConfigError("No GitHub token given. Use --token or set GITHUB_TOKEN")
        owner, name = parse_repository(settings.repository)
    except ConfigError as e:
        _fail(str(e))

    display = _progress(settings)
    store = WatermarkStore()
    watermark = store.read()

    try:
        packages = _load_packages(settings, display)
    except (ConfigError, NixEvalError) as e:
        _fail(str(e))

    display("Fetching pull requests...")

    try:
        pull_requests = fetch_all(owner, name, settings.token)
    except GitHubAPIError as e:
        _fail(str(e))

    display(f"{click.style(str(len(pull_requests)), fg='yellow')} pull requests found.\n")

    entries = filter_pull_requests(
        pull_requests,
        packages,
        watermark,
        only_updates=only_updates,
        only_new=only_new,
    )

    if settings.as_json:
        click.echo(json.dumps([entry.to_dict() for entry in entries], indent=2))
    else:
        link = click.get_text_stream("stdout").isatty()
        click.echo(f"{click.style(str(len(entries)), fg='magenta')} filtered pull requests.\n")
        for entry in entries:
            click.echo(format_entry(entry, link))

    # Watermark moves only after output has been written
    latest = latest_created_at(pull_requests)
    if latest is not None:
        try:
            store.advance(latest)
        except OSError as e:
            _fail(f"Could not update watermark at {store.path}: {e}")


@main.command(name="list")
@click.option("--json", "as_json", is_flag=True, help="Print results in JSON")
@click.pass_context
def list_packages(ctx: click.Context, as_json: bool):
    """List packages you use."""
    try:
        settings = _resolve_settings(ctx, as_json)
        packages = _load_packages(settings, _progress(settings))
    except (ConfigError, NixEvalError) as e:
        _fail(str(e))

    if settings.as_json:
        click.echo(json.dumps(packages))
    else:
        click.echo(" ".join(packages))


if __name__ == "__main__":
    main()
