"""
Title matching and novelty filtering for pull requests.

nixpkgs update pull requests are titled `<package>: <old> -> <new>`. The
predicates below encode that convention so it can be changed in one place.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable, Sequence

from .github import PullRequest


UPDATE_MARKER = "->"
PACKAGE_DELIMITER = ":"


@dataclass(frozen=True)
class Entry:
    """A matched pull request, ready for display."""
    title: str
    url: str
    new: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def is_update_title(title: str) -> bool:
    """True if the title looks like a version bump (`1.2 -> 1.3`)."""
    return UPDATE_MARKER in title


def matches_package(title: str, packages: Iterable[str]) -> bool:
    """
    True if the title starts with `<package>:` for one of the packages.

    The match is case-sensitive and the delimiter must follow the name
    immediately, so `foo` matches `foo: 1 -> 2` but not `foobar: 1 -> 2`.
    """
    return any(title.startswith(pkg + PACKAGE_DELIMITER) for pkg in packages)


def is_new(pr: PullRequest, watermark: int) -> bool:
    """True if the pull request was created strictly after the watermark."""
    return pr.created_at > watermark


def filter_pull_requests(
    prs: Sequence[PullRequest],
    packages: Iterable[str],
    watermark: int,
    only_updates: bool = False,
    only_new: bool = False,
) -> list[Entry]:
    """
    Select the pull requests that concern the given packages.

    Drafts are always dropped. Input order is preserved.

    Args:
        prs: Every fetched pull request
        packages: Package names from the user's configuration
        watermark: Creation time of the newest pull request seen by a previous run
        only_updates: Keep only titles that look like version bumps
        only_new: Keep only pull requests newer than the watermark

    Returns:
        One Entry per kept pull request
    """
    package_set = frozenset(packages)
    entries = []

    for pr in prs:
        if pr.is_draft:
            continue
        if only_updates and not is_update_title(pr.title):
            continue
        if not matches_package(pr.title, package_set):
            continue

        new = is_new(pr, watermark)
        if only_new and not new:
            continue

        entries.append(Entry(title=pr.title, url=pr.url, new=new))

    return entries


def latest_created_at(prs: Iterable[PullRequest]) -> int | None:
    """Newest creation time among the pull requests, None if there are none."""
    return max((pr.created_at for pr in prs), default=None)
