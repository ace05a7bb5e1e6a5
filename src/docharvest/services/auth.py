"""Session authentication from pre-captured cookies and headers."""

from __future__ import annotations

import logging
from typing import List, Sequence
from urllib.parse import urlparse

from docharvest.config import AuthProfile
from docharvest.errors import StartupMisconfigurationError
from docharvest.models import Cookie
from docharvest.services.pages import PageHandle

logger = logging.getLogger(__name__)

__all__ = ["SessionAuthenticator", "ensure_auth_configured", "parse_cookie_string"]


def parse_cookie_string(raw: str, domain: str, path: str = "/") -> List[Cookie]:
    """Split a ``name=value; name2=value2`` header into cookies for ``domain``.

    Only the first ``=`` separates name from value, so values may contain ``=``.
    """

    cookies: List[Cookie] = []
    for pair in raw.split(";"):
        pair = pair.strip()
        if not pair:
            continue
        name, _, value = pair.partition("=")
        name = name.strip()
        if not name:
            continue
        cookies.append(Cookie(name=name, value=value.strip(), domain=domain, path=path))
    return cookies


def ensure_auth_configured(profiles: Sequence[AuthProfile]) -> None:
    if not any(profile.is_configured for profile in profiles):
        raise StartupMisconfigurationError(
            "No authentication configuration found in environment variables"
        )


class SessionAuthenticator:
    """Apply the first matching :class:`AuthProfile` to a page before navigation."""

    def __init__(self, profiles: Sequence[AuthProfile]) -> None:
        self._profiles = tuple(profiles)

    def resolve(self, hostname: str) -> AuthProfile | None:
        for profile in self._profiles:
            if profile.host in hostname:
                return profile
        return None

    def prepare(self, page: PageHandle, url: str) -> AuthProfile | None:
        hostname = urlparse(url).hostname or ""
        profile = self.resolve(hostname)
        if profile is None:
            return None

        logger.info("Setting up authentication for %s", hostname)

        if profile.cookies:
            cookies = parse_cookie_string(profile.cookies, hostname)
            page.add_cookies(cookies)
            logger.debug("Added %d cookies for %s", len(cookies), hostname)

        if profile.headers:
            page.set_extra_http_headers(profile.headers)
            logger.debug("Added headers for %s", hostname)

        return profile
