from __future__ import annotations

from typing import Dict, List

import requests

from docharvest.services.pages import HttpEngine


class DummyResponse:
    def __init__(self, text: str, status_code: int = 200, url: str | None = None) -> None:
        self.text = text
        self.status_code = status_code
        self.url = url

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class SiteStub:
    """Serves canned HTML per URL and records what each request carried."""

    def __init__(self, pages: Dict[str, str | DummyResponse]) -> None:
        self.pages = pages
        self.requests: List[dict] = []

    def session_factory(self) -> requests.Session:
        session = requests.Session()

        def fake_get(url, timeout=None):
            self.requests.append(
                {
                    "url": url,
                    "timeout": timeout,
                    "headers": dict(session.headers),
                    "cookies": {cookie.name: cookie.value for cookie in session.cookies},
                }
            )
            if url not in self.pages:
                raise requests.ConnectionError(f"unreachable: {url}")
            page = self.pages[url]
            if isinstance(page, DummyResponse):
                return page
            return DummyResponse(page, url=url)

        session.get = fake_get
        return session

    def engine(self) -> HttpEngine:
        return HttpEngine(session_factory=self.session_factory)


def html_page(body: str, title: str = "A page", head: str = "") -> str:
    return f"<html><head><title>{title}</title>{head}</head><body>{body}</body></html>"
