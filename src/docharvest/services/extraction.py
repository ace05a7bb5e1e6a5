"""Login-wall detection, content extraction and text cleaning for loaded pages."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterator, List, Sequence, Tuple

from docharvest.errors import InsufficientContentError
from docharvest.services.pages import PageHandle

logger = logging.getLogger(__name__)

__all__ = [
    "ContentExtractor",
    "DOCS_SELECTORS",
    "LOGIN_INDICATORS",
    "LoginIndicator",
    "LoginWallDetector",
    "MIN_CONTENT_LENGTH",
    "WIKI_SELECTORS",
    "clean_text",
    "extract_metadata",
]

MIN_CONTENT_LENGTH = 100

DOCS_SELECTORS: Tuple[str, ...] = (
    "main",
    ".content",
    "article",
    ".documentation",
    "#content",
    ".main-content",
    "body",
)

# Confluence containers first, then the generic documentation containers.
WIKI_SELECTORS: Tuple[str, ...] = (
    "#main-content",
    ".wiki-content",
    ".page-content",
    ".aui-page-panel-content",
    "main",
    ".content",
    "article",
    ".documentation",
    "#content",
    "body",
)

META_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("last-modified", "Last Modified"),
    ("author", "Author"),
)

_WHITESPACE_RUN = re.compile(r"\s+")
_NEWLINE_INDENT = re.compile(r"\n\s+")
BOILERPLATE_PATTERNS = (
    re.compile(r"Table of Contents[^\n]*"),
    re.compile(r"Edit this page[^\n]*"),
    re.compile(r"\bShare\b[^\n]*"),
)


@dataclass(frozen=True)
class LoginIndicator:
    """An element whose presence means the page is a login prompt.

    When ``text`` is set the element must also contain it (case-insensitive).
    """

    selector: str
    text: str | None = None

    def present(self, page: PageHandle) -> bool:
        if self.text is None:
            return page.text_content(self.selector) is not None
        return page.has_text(self.selector, self.text)


LOGIN_INDICATORS: Tuple[LoginIndicator, ...] = (
    LoginIndicator('input[type="password"]'),
    LoginIndicator('button[type="submit"]', "Login"),
    LoginIndicator("a", "Sign in"),
    LoginIndicator(".login-form"),
)


class LoginWallDetector:
    def __init__(self, indicators: Sequence[LoginIndicator] = LOGIN_INDICATORS) -> None:
        self.indicators = tuple(indicators)

    def matched(self, page: PageHandle) -> LoginIndicator | None:
        for indicator in self.indicators:
            if indicator.present(page):
                return indicator
        return None

    def looks_unauthenticated(self, page: PageHandle) -> bool:
        return self.matched(page) is not None


def clean_text(raw: str, *, strip_boilerplate: bool = False) -> str:
    """Normalise whitespace and optionally drop wiki chrome such as "Edit this page".

    The transform is idempotent.
    """

    text = _WHITESPACE_RUN.sub(" ", raw)
    text = _NEWLINE_INDENT.sub("\n", text)
    if strip_boilerplate:
        for pattern in BOILERPLATE_PATTERNS:
            text = pattern.sub("", text)
    return text.strip()


class ContentExtractor:
    """Pick the first selector candidate whose text is long enough."""

    def __init__(
        self,
        selectors: Sequence[str] = DOCS_SELECTORS,
        min_length: int = MIN_CONTENT_LENGTH,
    ) -> None:
        self.selectors = tuple(selectors)
        self.min_length = min_length

    def candidates(self, page: PageHandle) -> Iterator[Tuple[str, str]]:
        """Lazily yield ``(selector, text)`` for every candidate present on the page."""

        for selector in self.selectors:
            try:
                text = page.text_content(selector)
            except Exception as exc:  # noqa: BLE001 - engine errors mean "try the next one"
                logger.debug("Selector %s failed: %s", selector, exc)
                continue
            if text is None:
                continue
            yield selector, text

    def extract(self, page: PageHandle, url: str | None = None) -> Tuple[str, str]:
        """Return ``(title, text)`` or raise :class:`InsufficientContentError`."""

        observed = 0
        for selector, text in self.candidates(page):
            observed = len(text)
            if observed >= self.min_length:
                logger.debug("Using %s (%d chars) for %s", selector, observed, url)
                return page.title(), text
        raise InsufficientContentError(url, observed)


def extract_metadata(page: PageHandle) -> List[Tuple[str, str]]:
    """Best-effort ``(label, value)`` pairs from well-known ``<meta>`` tags."""

    metadata: List[Tuple[str, str]] = []
    for name, label in META_FIELDS:
        try:
            value = page.meta_content(name)
        except Exception as exc:  # noqa: BLE001 - metadata is optional
            logger.debug("Could not read meta[%s]: %s", name, exc)
            continue
        if value:
            metadata.append((label, value.strip()))
    return metadata
