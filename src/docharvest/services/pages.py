"""Page handles over the two supported page engines.

The crawler never talks to a browser directly; it receives a page handle from
an engine's :meth:`open_page` context manager.  :class:`PlaywrightEngine`
renders pages in headless Chromium, :class:`HttpEngine` fetches static HTML
with ``requests`` and queries it with BeautifulSoup.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Mapping, Protocol, Sequence
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from docharvest.errors import NavigationError
from docharvest.models import Cookie

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_HEADERS",
    "HttpEngine",
    "HttpPage",
    "PageEngine",
    "PageHandle",
    "PlaywrightEngine",
    "PlaywrightPage",
    "create_engine",
]

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/129.0.0.0 Safari/537.36"
    ),
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
}


class PageHandle(Protocol):
    """What the crawl pipeline needs from a loaded (or loadable) page."""

    #: Final URL after redirects, ``None`` before navigation.
    url: str | None

    def set_extra_http_headers(self, headers: Mapping[str, str]) -> None: ...

    def add_cookies(self, cookies: Sequence[Cookie]) -> None: ...

    def goto(self, url: str, timeout_ms: int) -> None: ...

    def title(self) -> str: ...

    def text_content(self, selector: str) -> str | None: ...

    def has_text(self, selector: str, text: str) -> bool: ...

    def meta_content(self, name: str) -> str | None: ...

    def links(self) -> List[str]: ...


class PageEngine(Protocol):
    #: Highest number of pages the engine can drive at once.
    max_concurrency: int | None

    def open_page(self): ...


class PlaywrightPage:
    """:class:`PageHandle` backed by a Playwright sync ``Page``."""

    def __init__(self, page) -> None:
        self._page = page
        self._headers: Dict[str, str] = {}

    @property
    def url(self) -> str | None:
        return self._page.url or None

    def set_extra_http_headers(self, headers: Mapping[str, str]) -> None:
        self._headers.update(headers)
        self._page.set_extra_http_headers(dict(self._headers))

    def add_cookies(self, cookies: Sequence[Cookie]) -> None:
        self._page.context.add_cookies([cookie.to_playwright() for cookie in cookies])

    def goto(self, url: str, timeout_ms: int) -> None:
        try:
            self._page.goto(url, wait_until="networkidle", timeout=timeout_ms)
        except PlaywrightError as exc:
            raise NavigationError(str(exc), url) from exc

    def title(self) -> str:
        return self._page.title()

    def text_content(self, selector: str) -> str | None:
        element = self._page.query_selector(selector)
        if element is None:
            return None
        return element.text_content()

    def has_text(self, selector: str, text: str) -> bool:
        # ``:has-text`` is a case-insensitive substring match evaluated in the browser.
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return self._page.query_selector(f'{selector}:has-text("{escaped}")') is not None

    def meta_content(self, name: str) -> str | None:
        element = self._page.query_selector(f'meta[name="{name}"]')
        if element is None:
            return None
        return element.get_attribute("content")

    def links(self) -> List[str]:
        return self._page.eval_on_selector_all("a[href]", "els => els.map(e => e.href)")


class PlaywrightEngine:
    """Headless Chromium driven through the Playwright sync API.

    Sync Playwright objects are bound to the thread that created them, so the
    engine only supports sequential dispatch.
    """

    max_concurrency = 1

    def __init__(self, *, headless: bool = True, user_agent: str | None = None) -> None:
        self.headless = headless
        self.user_agent = user_agent or DEFAULT_HEADERS["User-Agent"]
        self._playwright = None
        self._browser = None

    def __enter__(self) -> "PlaywrightEngine":
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(headless=self.headless)
        return self

    def __exit__(self, *exc_info) -> None:
        try:
            if self._browser is not None:
                self._browser.close()
        finally:
            if self._playwright is not None:
                self._playwright.stop()
            self._browser = None
            self._playwright = None

    @contextmanager
    def open_page(self) -> Iterator[PlaywrightPage]:
        if self._browser is None:
            raise RuntimeError("PlaywrightEngine must be entered before opening pages")
        context = self._browser.new_context(user_agent=self.user_agent)
        try:
            yield PlaywrightPage(context.new_page())
        finally:
            context.close()


class HttpPage:
    """:class:`PageHandle` over static HTML fetched with ``requests``."""

    def __init__(self, session: requests.Session) -> None:
        self._session = session
        self._soup: BeautifulSoup | None = None
        self.url: str | None = None

    def set_extra_http_headers(self, headers: Mapping[str, str]) -> None:
        self._session.headers.update(headers)

    def add_cookies(self, cookies: Sequence[Cookie]) -> None:
        for cookie in cookies:
            self._session.cookies.set(
                cookie.name, cookie.value, domain=cookie.domain, path=cookie.path
            )

    def goto(self, url: str, timeout_ms: int) -> None:
        try:
            response = self._session.get(url, timeout=timeout_ms / 1000)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise NavigationError(str(exc), url) from exc

        self.url = getattr(response, "url", None) or url
        self._soup = BeautifulSoup(response.text, "lxml")
        for tag in self._soup(["script", "style", "noscript"]):
            tag.decompose()

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            raise RuntimeError("Page has not been loaded")
        return self._soup

    def title(self) -> str:
        return self.soup.title.get_text(strip=True) if self.soup.title else ""

    def text_content(self, selector: str) -> str | None:
        element = self.soup.select_one(selector)
        if element is None:
            return None
        return element.get_text()

    def has_text(self, selector: str, text: str) -> bool:
        needle = text.lower()
        return any(needle in element.get_text().lower() for element in self.soup.select(selector))

    def meta_content(self, name: str) -> str | None:
        element = self.soup.find("meta", attrs={"name": name})
        if element is None:
            return None
        return element.get("content")

    def links(self) -> List[str]:
        return [
            urljoin(self.url or "", anchor["href"].strip())
            for anchor in self.soup.find_all("a", href=True)
        ]


class HttpEngine:
    """Static HTML engine; every page gets its own ``requests.Session``."""

    max_concurrency = None

    def __init__(self, session_factory: Callable[[], requests.Session] = requests.Session) -> None:
        self._session_factory = session_factory

    def __enter__(self) -> "HttpEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    @contextmanager
    def open_page(self) -> Iterator[HttpPage]:
        session = self._session_factory()
        session.headers.update(DEFAULT_HEADERS)
        try:
            yield HttpPage(session)
        finally:
            session.close()


def create_engine(name: str, *, headless: bool = True):
    """Return an (unentered) engine for the ``engine`` setting."""

    if name == "playwright":
        return PlaywrightEngine(headless=headless)
    if name == "http":
        return HttpEngine()
    raise ValueError(f"Unknown page engine: {name}")
