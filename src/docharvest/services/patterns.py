"""Glob patterns over full URLs.

``**`` matches any run of characters including ``/``; ``*`` matches any run
of characters except ``/``.  Every other character is literal and a pattern
must match the whole URL, scheme and host included, so patterns usually start
with ``**/``.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Pattern, Sequence

__all__ = ["GlobPattern", "UrlFilter", "compile_glob", "is_eligible", "is_excluded", "matches"]

_TOKEN = re.compile(r"\*\*|\*")


def compile_glob(pattern: str) -> Pattern[str]:
    """Translate ``pattern`` into a regular expression for :meth:`re.Pattern.fullmatch`."""

    parts: List[str] = []
    position = 0
    for token in _TOKEN.finditer(pattern):
        parts.append(re.escape(pattern[position : token.start()]))
        parts.append(".*" if token.group() == "**" else "[^/]*")
        position = token.end()
    parts.append(re.escape(pattern[position:]))

    return re.compile("".join(parts), re.DOTALL)


class GlobPattern:
    """A glob compiled once; every character other than ``*`` is literal."""

    __slots__ = ("source", "_regex")

    def __init__(self, source: str) -> None:
        self.source = source
        self._regex = compile_glob(source)

    def matches(self, url: str) -> bool:
        return self._regex.fullmatch(url) is not None

    def __repr__(self) -> str:
        return f"GlobPattern({self.source!r})"


def _compile_all(patterns: Iterable[str | GlobPattern]) -> List[GlobPattern]:
    return [p if isinstance(p, GlobPattern) else GlobPattern(p) for p in patterns]


def matches(url: str, patterns: Iterable[str | GlobPattern]) -> bool:
    """Return ``True`` if ``url`` matches any pattern, or if there are none."""

    compiled = _compile_all(patterns)
    if not compiled:
        return True
    return any(pattern.matches(url) for pattern in compiled)


def is_excluded(url: str, patterns: Iterable[str | GlobPattern]) -> bool:
    return any(pattern.matches(url) for pattern in _compile_all(patterns))


def is_eligible(
    url: str,
    include: Iterable[str | GlobPattern],
    exclude: Iterable[str | GlobPattern],
) -> bool:
    return not is_excluded(url, exclude) and matches(url, include)


class UrlFilter:
    """Include/exclude policy compiled once per target."""

    def __init__(self, include: Sequence[str] = (), exclude: Sequence[str] = ()) -> None:
        self.include = _compile_all(include)
        self.exclude = _compile_all(exclude)

    def is_excluded(self, url: str) -> bool:
        return is_excluded(url, self.exclude)

    def is_included(self, url: str) -> bool:
        return matches(url, self.include)

    def is_eligible(self, url: str) -> bool:
        return not self.is_excluded(url) and self.is_included(url)
