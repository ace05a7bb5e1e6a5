from __future__ import annotations

import itertools

import pytest

from docharvest.services.patterns import GlobPattern, UrlFilter, is_eligible, is_excluded, matches


@pytest.mark.parametrize(
    ("pattern", "url", "expected"),
    [
        ("**/a", "https://x.test/a", True),
        ("**/learn/**", "https://react.dev/learn/thinking-in-react", True),
        ("**/learn/**", "https://react.dev/learn", False),
        ("https://*/docs/**", "https://x.test/docs/intro/setup", True),
        ("https://*/docs/*", "https://x.test/docs/intro/setup", False),
        ("https://*/docs/*", "https://x.test/docs/intro", True),
        ("/a", "https://x.test/a", False),
        ("*/a", "https://x.test/a", False),
        ("**/docs.html", "https://x.test/docs_html", False),
    ],
)
def test_glob_matches_whole_url(pattern: str, url: str, expected: bool) -> None:
    assert GlobPattern(pattern).matches(url) is expected


def test_malformed_glob_matches_nothing_and_does_not_raise() -> None:
    pattern = GlobPattern("**/[docs(")

    assert pattern.matches("https://x.test/docs") is False
    assert pattern.matches("https://x.test/[docs(") is True


def test_empty_include_set_matches_everything() -> None:
    assert matches("https://x.test/anything", []) is True
    assert is_excluded("https://x.test/anything", []) is False


def test_exclude_wins_over_include() -> None:
    url_filter = UrlFilter(["**/docs/**"], ["**/docs/legacy/**"])

    assert url_filter.is_eligible("https://x.test/docs/intro") is True
    assert url_filter.is_eligible("https://x.test/docs/legacy/old") is False
    assert url_filter.is_eligible("https://x.test/blog/post") is False


URLS = [
    "https://x.test/a",
    "https://x.test/docs/intro",
    "https://x.test/docs/legacy/old",
    "https://y.test/blog/post",
]
PATTERN_SETS = [[], ["**/docs/**"], ["**/a", "**/blog/**"], ["**/legacy/**"]]


@pytest.mark.parametrize(
    ("url", "include", "exclude"), list(itertools.product(URLS, PATTERN_SETS, PATTERN_SETS))
)
def test_eligibility_is_not_excluded_and_included(url, include, exclude) -> None:
    expected = (not any(GlobPattern(p).matches(url) for p in exclude)) and (
        not include or any(GlobPattern(p).matches(url) for p in include)
    )

    assert is_eligible(url, include, exclude) is expected
    assert UrlFilter(include, exclude).is_eligible(url) is expected
