"""Configuration models and helpers for the documentation harvester."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict, List, Literal, Mapping, Tuple

from pydantic import BaseModel, Field, ValidationError

__all__ = [
    "AppConfig",
    "AuthProfile",
    "CrawlTarget",
    "CrawlerSettings",
    "DEFAULT_AUTH_ENV",
    "DEFAULT_AUTHENTICATED_CONFIG_PATH",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_OUTPUT_DIR",
    "default_authenticated_targets",
    "default_targets",
    "load_auth_profiles",
]

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "data" / "targets.json"
DEFAULT_AUTHENTICATED_CONFIG_PATH = (
    Path(__file__).resolve().parents[2] / "data" / "authenticated_targets.json"
)
DEFAULT_OUTPUT_DIR = Path("./crawled-content")

#: Host key -> (cookie variable, authorization header variable).
DEFAULT_AUTH_ENV: Dict[str, Tuple[str, str]] = {
    "atlassian.net": ("CONFLUENCE_COOKIES", "CONFLUENCE_AUTH"),
    "atlassian.com": ("JIRA_COOKIES", "JIRA_AUTH"),
}

PLACEHOLDER_HOST = "yourcompany"


class CrawlTarget(BaseModel):
    """A named crawl job with seed URLs, filters and a page budget."""

    name: str = Field(..., description="Human friendly target name, used in filenames")
    start_urls: List[str] = Field(default_factory=list, description="Seeds for traversal")
    include_patterns: List[str] = Field(
        default_factory=list,
        description="Glob patterns a URL must match; empty means no restriction",
    )
    exclude_patterns: List[str] = Field(
        default_factory=list,
        description="Glob patterns that reject a URL regardless of include matches",
    )
    max_pages: int = Field(..., gt=0, description="Upper bound on artifacts written")
    requires_auth: bool = Field(default=False)
    follow_links: bool = Field(
        default=True,
        description="Enqueue same-host links discovered on loaded pages",
    )
    max_requests: int | None = Field(
        default=None,
        gt=0,
        description="Request queue budget. Defaults to ``max_pages``.",
    )
    content_selectors: List[str] | None = Field(
        default=None,
        description="Override of the ordered content selector candidates",
    )
    strip_boilerplate: bool | None = Field(
        default=None,
        description="Strip wiki boilerplate fragments. Defaults to ``requires_auth``.",
    )

    @property
    def request_budget(self) -> int:
        return self.max_requests if self.max_requests is not None else self.max_pages

    @property
    def strips_boilerplate(self) -> bool:
        if self.strip_boilerplate is None:
            return self.requires_auth
        return self.strip_boilerplate

    @property
    def is_placeholder(self) -> bool:
        """Return ``True`` while the start URLs still point at the template host."""

        return any(PLACEHOLDER_HOST in url for url in self.start_urls)


class AuthProfile(BaseModel):
    """Credentials applied to every host whose name contains ``host``."""

    host: str
    cookies: str | None = None
    headers: Dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @property
    def is_configured(self) -> bool:
        return bool(self.cookies) or any(value for value in self.headers.values())

    @classmethod
    def from_env(
        cls,
        host: str,
        cookie_var: str,
        auth_var: str,
        environ: Mapping[str, str] | None = None,
    ) -> "AuthProfile":
        env = os.environ if environ is None else environ
        headers = {}
        authorization = env.get(auth_var, "").strip()
        if authorization:
            headers["Authorization"] = authorization
        cookies = env.get(cookie_var, "").strip() or None
        return cls(host=host, cookies=cookies, headers=headers)


def load_auth_profiles(
    environ: Mapping[str, str] | None = None,
    table: Mapping[str, Tuple[str, str]] | None = None,
) -> List[AuthProfile]:
    """Build the ordered auth profile table from environment variables."""

    table = DEFAULT_AUTH_ENV if table is None else table
    return [
        AuthProfile.from_env(host, cookie_var, auth_var, environ)
        for host, (cookie_var, auth_var) in table.items()
    ]


class CrawlerSettings(BaseModel):
    """Run-wide crawler settings."""

    output_dir: Path = Field(default=DEFAULT_OUTPUT_DIR)
    navigation_timeout_ms: int = Field(default=15_000, gt=0)
    engine: Literal["playwright", "http"] = Field(default="playwright")
    headless: bool = Field(default=True)
    max_concurrency: int = Field(default=1, gt=0)
    clear_output: bool = Field(
        default=False,
        description="Remove files left over from a previous run before crawling",
    )


class AppConfig(BaseModel):
    """Collection of :class:`CrawlTarget` entries plus run settings."""

    settings: CrawlerSettings = Field(default_factory=CrawlerSettings)
    targets: List[CrawlTarget] = Field(default_factory=list)
    auth_profiles: List[AuthProfile] = Field(default_factory=list)

    @classmethod
    def from_file(cls, path: Path | str | None = None) -> "AppConfig":
        """Load configuration data from a JSON file."""

        config_path = Path(path) if path else DEFAULT_CONFIG_PATH
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise FileNotFoundError(f"Configuration file not found: {config_path}") from exc
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in configuration file: {config_path}") from exc

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Configuration file is invalid: {config_path}\n{exc}") from exc

    def dump(self, path: Path | str | None = None) -> None:
        """Persist the configuration back to disk as JSON."""

        config_path = Path(path) if path else DEFAULT_CONFIG_PATH
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(self.model_dump_json(indent=2), encoding="utf-8")


def default_targets() -> List[CrawlTarget]:
    """Public documentation sites crawled when no configuration file exists."""

    return [
        CrawlTarget(
            name="React Documentation",
            start_urls=["https://react.dev/learn"],
            include_patterns=["**/learn", "**/learn/**", "**/reference/**"],
            exclude_patterns=["**/blog/**", "**/community/**"],
            max_pages=50,
        ),
        CrawlTarget(
            name="TypeScript Handbook",
            start_urls=["https://www.typescriptlang.org/docs/"],
            include_patterns=["**/docs/**"],
            exclude_patterns=["**/playground/**", "**/download/**"],
            max_pages=40,
        ),
        CrawlTarget(
            name="MDN Web Docs",
            start_urls=["https://developer.mozilla.org/en-US/docs/Web/JavaScript"],
            include_patterns=[
                "**/docs/Web/JavaScript",
                "**/docs/Web/JavaScript/**",
                "**/docs/Web/API/**",
            ],
            exclude_patterns=["**/docs/Web/JavaScript/Guide/Introduction/**"],
            max_pages=30,
        ),
    ]


def default_authenticated_targets() -> List[CrawlTarget]:
    """Template authenticated target; skipped until its start URL is edited."""

    return [
        CrawlTarget(
            name="Confluence Documentation",
            start_urls=["https://yourcompany.atlassian.net/wiki/spaces/DOCS/overview"],
            include_patterns=["**/wiki/**", "**/spaces/**"],
            exclude_patterns=["**/labels/**", "**/people/**"],
            max_pages=25,
            requires_auth=True,
        )
    ]
