from __future__ import annotations

from nixpkgs_using.filters import (
    Entry,
    filter_pull_requests,
    is_new,
    is_update_title,
    latest_created_at,
    matches_package,
)
from nixpkgs_using.github import PullRequest


def _pr(title: str, created_at: int = 100, is_draft: bool = False, url: str = "u") -> PullRequest:
    return PullRequest(title=title, url=url, created_at=created_at, is_draft=is_draft)


def test_matches_package_requires_exact_prefix():
    assert matches_package("firefox: 120.0 -> 121.0", {"firefox"})
    assert not matches_package("firefox-esr: 1 -> 2", {"firefox"})
    assert not matches_package("firefox: 120.0 -> 121.0", {"fire"})
    assert not matches_package("foobar: 1 -> 2", {"foo"})


def test_matches_package_is_case_sensitive():
    assert not matches_package("Firefox: 120.0 -> 121.0", {"firefox"})


def test_matches_package_empty_set():
    assert not matches_package("firefox: 120.0 -> 121.0", set())


def test_is_update_title():
    assert is_update_title("hello: 2.10 -> 2.12")
    assert not is_update_title("hello: add meta.mainProgram")


def test_is_new_is_strict():
    assert not is_new(_pr("a: 1 -> 2", created_at=1000), 1000)
    assert is_new(_pr("a: 1 -> 2", created_at=1001), 1000)


def test_drafts_are_always_excluded():
    prs = [_pr("hello: 1 -> 2", is_draft=True, created_at=5000)]

    for only_updates in (False, True):
        for only_new in (False, True):
            assert filter_pull_requests(prs, {"hello"}, 0, only_updates=only_updates, only_new=only_new) == []


def test_only_updates_heuristic():
    prs = [_pr("hello: add meta.mainProgram")]

    assert filter_pull_requests(prs, {"hello"}, 0, only_updates=True) == []
    assert len(filter_pull_requests(prs, {"hello"}, 0, only_updates=False)) == 1


def test_only_new_drops_seen_entries():
    prs = [
        _pr("hello: 1 -> 2", created_at=1000, url="old"),
        _pr("hello: 2 -> 3", created_at=1001, url="new"),
    ]

    all_entries = filter_pull_requests(prs, {"hello"}, 1000)
    assert [(e.url, e.new) for e in all_entries] == [("old", False), ("new", True)]

    new_entries = filter_pull_requests(prs, {"hello"}, 1000, only_new=True)
    assert [e.url for e in new_entries] == ["new"]


def test_output_preserves_input_order():
    prs = [
        _pr("b: 1 -> 2", created_at=10, url="1"),
        _pr("a: 1 -> 2", created_at=30, url="2"),
        _pr("c: 1 -> 2", created_at=20, url="3"),
    ]

    entries = filter_pull_requests(prs, ["a", "b", "c"], 0)

    assert [e.url for e in entries] == ["1", "2", "3"]


def test_kittysay_scenario():
    prs = [
        _pr("kittysay: 1.0 -> 1.1", url="u1", created_at=1500),
        _pr("other: 1->2", url="u2", created_at=2000),
        _pr("kittysay: 1.1 -> 1.2", url="u3", created_at=900, is_draft=True),
    ]

    entries = filter_pull_requests(prs, {"kittysay"}, 1000, only_updates=True, only_new=False)

    assert entries == [Entry(title="kittysay: 1.0 -> 1.1", url="u1", new=True)]
    assert entries[0].to_dict() == {"title": "kittysay: 1.0 -> 1.1", "url": "u1", "new": True}
    assert latest_created_at(prs) == 2000


def test_latest_created_at_empty():
    assert latest_created_at([]) is None
