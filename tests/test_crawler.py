from __future__ import annotations

import logging
import threading
from pathlib import Path

import pytest

from conftest import DummyResponse, SiteStub, html_page
from docharvest.config import AuthProfile, CrawlerSettings, CrawlTarget
from docharvest.models import OutcomeStatus, SkipReason
from docharvest.services.auth import SessionAuthenticator
from docharvest.services.crawler import PageBudget, TargetCrawler, run_targets
from docharvest.services.writer import ArtifactWriter

BODY_150 = ("Docs content " * 12)[:150]


def docs_target(**overrides) -> CrawlTarget:
    data = {
        "name": "Docs",
        "start_urls": ["https://x.test/a"],
        "include_patterns": ["**/a"],
        "exclude_patterns": [],
        "max_pages": 1,
    }
    data.update(overrides)
    return CrawlTarget(**data)


def test_single_page_is_written(tmp_path: Path) -> None:
    stub = SiteStub({"https://x.test/a": html_page(f"<main>{BODY_150}</main>", title="Page A")})
    crawler = TargetCrawler(docs_target(), stub.engine(), ArtifactWriter(tmp_path))

    summary = crawler.run()

    files = list(tmp_path.glob("*.txt"))
    assert summary.pages_written == 1
    assert len(files) == 1
    assert files[0].name.startswith("Docs_a_")
    assert files[0].name[len("Docs_a_") : -len(".txt")].isdigit()

    header, body = files[0].read_text(encoding="utf-8").split("\n\n", 1)
    assert header.splitlines()[:3] == ["Title: Page A", "URL: https://x.test/a", "Source: Docs"]
    assert header.splitlines()[3].startswith("Crawled: ")
    assert body == BODY_150
    assert len(body) == 150


def test_login_wall_produces_no_artifact(tmp_path: Path, caplog) -> None:
    html = html_page(f'<main>{BODY_150}</main><input type="password">')
    stub = SiteStub({"https://x.test/a": html})
    crawler = TargetCrawler(docs_target(), stub.engine(), ArtifactWriter(tmp_path))

    with caplog.at_level(logging.WARNING):
        summary = crawler.run()

    assert list(tmp_path.glob("*.txt")) == []
    assert summary.skipped == {SkipReason.AUTHENTICATION_EXPIRED.value: 1}
    expired = [r for r in caplog.records if "authentication may have expired" in r.getMessage()]
    assert len(expired) == 1


def test_budget_stops_writing_at_max_pages(tmp_path: Path, monkeypatch) -> None:
    urls = [f"https://x.test/docs/page-{i}" for i in range(5)]
    stub = SiteStub({url: html_page(f"<main>{BODY_150}</main>") for url in urls})
    target = docs_target(
        start_urls=urls, include_patterns=["**/docs/**"], max_pages=2, max_requests=5
    )
    writer = ArtifactWriter(tmp_path)
    written = []
    original_write = writer.write
    monkeypatch.setattr(
        writer, "write", lambda *args: written.append(args[1]) or original_write(*args)
    )

    summary = TargetCrawler(target, stub.engine(), writer).run()

    assert summary.pages_written == 2
    assert written == urls[:2]
    assert len(list(tmp_path.glob("*.txt"))) == 2
    assert [r["url"] for r in stub.requests] == urls[:2]


def test_budget_holds_under_parallel_dispatch(tmp_path: Path) -> None:
    urls = [f"https://x.test/docs/page-{i}" for i in range(12)]
    stub = SiteStub({url: html_page(f"<main>{BODY_150}</main>") for url in urls})
    target = docs_target(
        start_urls=urls, include_patterns=["**/docs/**"], max_pages=3, max_requests=12
    )

    summary = TargetCrawler(target, stub.engine(), ArtifactWriter(tmp_path)).run(concurrency=4)

    assert summary.pages_written == 3
    assert len(list(tmp_path.glob("*.txt"))) == 3


def test_page_budget_never_overshoots() -> None:
    budget = PageBudget(5)
    barrier = threading.Barrier(20)
    results = []

    def worker() -> None:
        barrier.wait()
        if budget.try_reserve():
            results.append(budget.commit())

    threads = [threading.Thread(target=worker) for _ in range(20)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(results) == [1, 2, 3, 4, 5]
    assert budget.exhausted is True


def test_filtered_and_excluded_urls_are_skipped(tmp_path: Path) -> None:
    stub = SiteStub({})
    target = docs_target(
        start_urls=["https://x.test/blog/post", "https://x.test/docs/legacy/old"],
        include_patterns=["**/docs/**"],
        exclude_patterns=["**/legacy/**"],
        max_requests=5,
    )

    summary = TargetCrawler(target, stub.engine(), ArtifactWriter(tmp_path)).run()

    assert summary.skipped == {SkipReason.FILTERED_OUT.value: 2}
    assert stub.requests == []


def test_navigation_failure_invokes_error_hook_and_continues(tmp_path: Path) -> None:
    stub = SiteStub(
        {
            "https://x.test/docs/broken": DummyResponse("", status_code=503),
            "https://x.test/docs/ok": html_page(f"<article>{BODY_150}</article>"),
        }
    )
    target = docs_target(
        start_urls=["https://x.test/docs/missing", "https://x.test/docs/broken", "https://x.test/docs/ok"],
        include_patterns=["**/docs/**"],
        max_pages=5,
        max_requests=5,
    )
    failures = []
    crawler = TargetCrawler(
        target,
        stub.engine(),
        ArtifactWriter(tmp_path),
        on_navigation_error=lambda url, exc: failures.append(url),
    )

    summary = crawler.run()

    assert failures == ["https://x.test/docs/missing", "https://x.test/docs/broken"]
    assert summary.skipped == {SkipReason.NAVIGATION_FAILED.value: 2}
    assert summary.pages_written == 1


def test_insufficient_content_is_skipped(tmp_path: Path, caplog) -> None:
    stub = SiteStub({"https://x.test/a": html_page("<main>short</main>")})

    with caplog.at_level(logging.WARNING):
        outcome = TargetCrawler(docs_target(), stub.engine(), ArtifactWriter(tmp_path)).process(
            "https://x.test/a"
        )

    assert outcome.status is OutcomeStatus.SKIPPED
    assert outcome.reason is SkipReason.INSUFFICIENT_CONTENT
    assert any("insufficient content" in r.getMessage() for r in caplog.records)


def test_unexpected_errors_abandon_only_that_url(tmp_path: Path, monkeypatch) -> None:
    urls = ["https://x.test/docs/one", "https://x.test/docs/two"]
    stub = SiteStub({url: html_page(f"<main>{BODY_150}</main>") for url in urls})
    target = docs_target(start_urls=urls, include_patterns=["**/docs/**"], max_pages=2, max_requests=2)
    writer = ArtifactWriter(tmp_path)
    original_write = writer.write

    def flaky_write(target_name, url, document):
        if url.endswith("one"):
            raise OSError("disk full")
        return original_write(target_name, url, document)

    monkeypatch.setattr(writer, "write", flaky_write)
    crawler = TargetCrawler(target, stub.engine(), writer)

    summary = crawler.run()

    assert summary.failed == 1
    assert summary.pages_written == 1
    assert crawler.budget.written == 1


def test_authenticated_target_sends_cookies_and_headers(tmp_path: Path) -> None:
    url = "https://acme.atlassian.net/wiki/spaces/DOCS/overview"
    html = html_page(
        f'<div id="main-content">{BODY_150} Edit this page on GitHub</div>',
        head='<meta name="author" content="Docs Team">',
    )
    stub = SiteStub({url: html})
    target = docs_target(
        name="Confluence Documentation",
        start_urls=[url],
        include_patterns=["**/wiki/**"],
        requires_auth=True,
    )
    profile = AuthProfile(
        host="atlassian.net",
        cookies="JSESSIONID=abc123; token=xyz=789",
        headers={"Authorization": "Bearer t"},
    )
    crawler = TargetCrawler(
        target,
        stub.engine(),
        ArtifactWriter(tmp_path),
        authenticator=SessionAuthenticator([profile]),
    )

    summary = crawler.run()

    request = stub.requests[0]
    assert request["headers"]["Authorization"] == "Bearer t"
    assert request["cookies"] == {"JSESSIONID": "abc123", "token": "xyz=789"}
    assert summary.pages_written == 1
    text = next(tmp_path.glob("*.txt")).read_text(encoding="utf-8")
    assert "Author: Docs Team\n\n" in text
    assert "Edit this page" not in text


def test_follow_links_enqueues_eligible_same_host_links(tmp_path: Path) -> None:
    start = "https://x.test/docs/"
    stub = SiteStub(
        {
            start: html_page(
                f'<main>{BODY_150}</main>'
                '<a href="/docs/intro#top">Intro</a>'
                '<a href="/blog/news">Blog</a>'
                '<a href="https://other.test/docs/x">Other</a>'
            ),
            "https://x.test/docs/intro": html_page(f"<main>{BODY_150}</main>"),
        }
    )
    target = docs_target(start_urls=[start], include_patterns=["**/docs/**"], max_pages=5, max_requests=5)

    summary = TargetCrawler(target, stub.engine(), ArtifactWriter(tmp_path)).run()

    assert [r["url"] for r in stub.requests] == [start, "https://x.test/docs/intro"]
    assert summary.pages_written == 2


def test_target_without_start_urls_is_noop(tmp_path: Path) -> None:
    summary = TargetCrawler(docs_target(start_urls=[]), SiteStub({}).engine(), ArtifactWriter(tmp_path)).run()

    assert summary.pages_written == 0
    assert summary.requests_handled == 0


def test_run_targets_skips_placeholders_and_aggregates(tmp_path: Path) -> None:
    stub = SiteStub({"https://x.test/a": html_page(f"<main>{BODY_150}</main>")})
    targets = [
        docs_target(name="Template", start_urls=["https://yourcompany.atlassian.net/wiki"]),
        docs_target(),
        docs_target(name="Other Docs", start_urls=["https://x.test/missing"], include_patterns=[]),
    ]

    summary = run_targets(
        targets,
        stub.engine(),
        ArtifactWriter(tmp_path),
        settings=CrawlerSettings(output_dir=tmp_path, engine="http"),
    )

    assert [t.target_name for t in summary.targets] == ["Docs", "Other Docs"]
    assert summary.total_written == 1
    assert summary.targets[1].skipped == {SkipReason.NAVIGATION_FAILED.value: 1}


def test_max_pages_must_be_positive() -> None:
    with pytest.raises(ValueError):
        docs_target(max_pages=0)


def test_body_emptied_by_boilerplate_stripping_is_not_written(tmp_path: Path) -> None:
    url = "https://acme.atlassian.net/wiki/spaces/DOCS/toc"
    stub = SiteStub({url: html_page(f'<div id="main-content">Table of Contents {BODY_150}</div>')})
    target = docs_target(
        name="Wiki", start_urls=[url], include_patterns=["**/wiki/**"], requires_auth=True
    )
    crawler = TargetCrawler(target, stub.engine(), ArtifactWriter(tmp_path))

    summary = crawler.run()

    assert list(tmp_path.glob("*.txt")) == []
    assert summary.pages_written == 0
    assert summary.skipped == {SkipReason.INSUFFICIENT_CONTENT.value: 1}
    assert crawler.budget.written == 0


def test_links_are_followed_after_a_redirect(tmp_path: Path) -> None:
    seed = "https://docs.x.test/docs/"
    final = "https://www.docs.x.test/docs/"
    stub = SiteStub(
        {
            seed: DummyResponse(
                html_page(f'<main>{BODY_150}</main><a href="/docs/intro">Intro</a>'), url=final
            ),
            "https://www.docs.x.test/docs/intro": html_page(f"<main>{BODY_150}</main>"),
        }
    )
    target = docs_target(start_urls=[seed], include_patterns=["**/docs/**"], max_pages=5, max_requests=5)

    summary = TargetCrawler(target, stub.engine(), ArtifactWriter(tmp_path)).run()

    assert [r["url"] for r in stub.requests] == [seed, "https://www.docs.x.test/docs/intro"]
    assert summary.pages_written == 2
