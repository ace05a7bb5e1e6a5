"""Crawl orchestration: one target end to end, then every target of a run."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Iterable, Sequence
from urllib.parse import urlparse

from docharvest.config import AuthProfile, CrawlerSettings, CrawlTarget
from docharvest.errors import InsufficientContentError, NavigationError
from docharvest.models import (
    ExtractedDocument,
    PageOutcome,
    RunSummary,
    SkipReason,
    TargetSummary,
)
from docharvest.services.auth import SessionAuthenticator
from docharvest.services.extraction import (
    DOCS_SELECTORS,
    WIKI_SELECTORS,
    ContentExtractor,
    LoginWallDetector,
    clean_text,
    extract_metadata,
)
from docharvest.services.pages import PageEngine, PageHandle
from docharvest.services.patterns import UrlFilter
from docharvest.services.queue import RequestQueue
from docharvest.services.writer import ArtifactWriter

logger = logging.getLogger(__name__)

__all__ = ["PageBudget", "TargetCrawler", "run_targets"]


class PageBudget:
    """Thread-safe counter of written pages that never overshoots ``limit``.

    A writer first reserves a slot, then either commits it after a successful
    write or releases it on failure.
    """

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self._written = 0
        self._reserved = 0
        self._lock = threading.Lock()

    def try_reserve(self) -> bool:
        with self._lock:
            if self._written + self._reserved >= self.limit:
                return False
            self._reserved += 1
            return True

    def commit(self) -> int:
        with self._lock:
            self._reserved -= 1
            self._written += 1
            return self._written

    def release(self) -> None:
        with self._lock:
            self._reserved -= 1

    @property
    def written(self) -> int:
        return self._written

    @property
    def exhausted(self) -> bool:
        return self._written >= self.limit


class TargetCrawler:
    """Drive a single :class:`CrawlTarget` through the page pipeline."""

    def __init__(
        self,
        target: CrawlTarget,
        engine: PageEngine,
        writer: ArtifactWriter,
        *,
        authenticator: SessionAuthenticator | None = None,
        navigation_timeout_ms: int = 15_000,
        on_navigation_error: Callable[[str, Exception], None] | None = None,
    ) -> None:
        self.target = target
        self.engine = engine
        self.writer = writer
        self.authenticator = authenticator
        self.navigation_timeout_ms = navigation_timeout_ms
        self.on_navigation_error = on_navigation_error or _log_navigation_error

        self.url_filter = UrlFilter(target.include_patterns, target.exclude_patterns)
        default_selectors = WIKI_SELECTORS if target.requires_auth else DOCS_SELECTORS
        self.extractor = ContentExtractor(target.content_selectors or default_selectors)
        self.detector = LoginWallDetector()
        self.budget = PageBudget(target.max_pages)
        self.queue = RequestQueue(target.request_budget)
        self._summary_lock = threading.Lock()

    def run(self, concurrency: int = 1) -> TargetSummary:
        summary = TargetSummary(target_name=self.target.name)
        if not self.target.start_urls:
            logger.info("%s has no start URLs, nothing to crawl", self.target.name)
            return summary

        limit = getattr(self.engine, "max_concurrency", None)
        if limit is not None and concurrency > limit:
            logger.debug("Engine supports %d concurrent pages, lowering from %d", limit, concurrency)
            concurrency = limit

        logger.info("Crawling %s...", self.target.name)
        started = time.monotonic()
        for url in self.target.start_urls:
            self.queue.add(url)

        def handle(url: str) -> None:
            outcome = self.process(url)
            with self._summary_lock:
                summary.record(outcome)

        self.queue.run(handle, concurrency=concurrency, should_stop=lambda: self.budget.exhausted)

        summary.elapsed_seconds = time.monotonic() - started
        logger.info("Finished crawling %s (%d pages)", self.target.name, summary.pages_written)
        return summary

    def process(self, url: str) -> PageOutcome:
        """Run one candidate URL to a terminal state; never raises."""

        if not self.url_filter.is_eligible(url):
            reason = "excluded" if self.url_filter.is_excluded(url) else "doesn't match patterns"
            logger.info("Skipping %s (%s)", url, reason)
            return PageOutcome.skipped(url, SkipReason.FILTERED_OUT, reason)

        if self.budget.exhausted:
            return PageOutcome.skipped(url, SkipReason.BUDGET_EXHAUSTED)

        try:
            with self.engine.open_page() as page:
                return self._process_page(page, url)
        except Exception as exc:  # noqa: BLE001 - one bad page never aborts the target
            logger.error("Error processing %s: %s", url, exc)
            return PageOutcome.failed(url, exc)

    def _process_page(self, page: PageHandle, url: str) -> PageOutcome:
        if self.target.requires_auth and self.authenticator is not None:
            self._authenticate(page, url)

        try:
            page.goto(url, self.navigation_timeout_ms)
        except NavigationError as exc:
            self.on_navigation_error(url, exc)
            return PageOutcome.skipped(url, SkipReason.NAVIGATION_FAILED, str(exc))

        indicator = self.detector.matched(page)
        if indicator is not None:
            logger.warning(
                "%s requires login - skipping (authentication may have expired; matched %s)",
                url,
                indicator.selector,
            )
            return PageOutcome.skipped(url, SkipReason.AUTHENTICATION_EXPIRED, indicator.selector)

        if self.target.follow_links:
            self._enqueue_links(page, url)

        try:
            title, raw_text = self.extractor.extract(page, url)
        except InsufficientContentError as exc:
            logger.warning("Skipping %s (insufficient content: %d chars)", url, exc.length)
            return PageOutcome.skipped(url, SkipReason.INSUFFICIENT_CONTENT, str(exc))

        body = clean_text(raw_text, strip_boilerplate=self.target.strips_boilerplate)
        if not body:
            logger.warning("Skipping %s (insufficient content: 0 chars after cleaning)", url)
            return PageOutcome.skipped(
                url, SkipReason.INSUFFICIENT_CONTENT, str(InsufficientContentError(url, 0))
            )

        document = ExtractedDocument(
            title=title,
            source_url=url,
            target_name=self.target.name,
            metadata=extract_metadata(page),
            body=body,
        )
        return self._persist(url, document)

    def _authenticate(self, page: PageHandle, url: str) -> None:
        try:
            self.authenticator.prepare(page, url)
        except Exception as exc:  # noqa: BLE001 - a login wall will surface it
            logger.warning("Authentication setup failed for %s: %s", url, exc)

    def _enqueue_links(self, page: PageHandle, url: str) -> None:
        # Links resolve against the final URL, which differs from ``url`` after a redirect.
        host = urlparse(page.url or url).netloc
        try:
            links = page.links()
        except Exception as exc:  # noqa: BLE001 - link discovery is best effort
            logger.debug("Could not collect links from %s: %s", url, exc)
            return
        added = 0
        for link in links:
            parsed = urlparse(link)
            if parsed.scheme not in {"http", "https"} or parsed.netloc != host:
                continue
            if self.url_filter.is_eligible(link) and self.queue.add(link):
                added += 1
        if added:
            logger.debug("Enqueued %d links from %s", added, url)

    def _persist(self, url: str, document: ExtractedDocument) -> PageOutcome:
        if not self.budget.try_reserve():
            return PageOutcome.skipped(url, SkipReason.BUDGET_EXHAUSTED)
        try:
            path = self.writer.write(self.target.name, url, document)
        except BaseException:
            self.budget.release()
            raise
        count = self.budget.commit()
        logger.info("Saved (%d/%d): %s", count, self.target.max_pages, path.name)
        return PageOutcome.written(url, path)


def _log_navigation_error(url: str, exc: Exception) -> None:
    logger.error("Failed to crawl %s: %s", url, exc)


def run_targets(
    targets: Iterable[CrawlTarget],
    engine: PageEngine,
    writer: ArtifactWriter,
    *,
    settings: CrawlerSettings | None = None,
    auth_profiles: Sequence[AuthProfile] = (),
) -> RunSummary:
    """Crawl every target sequentially and aggregate a :class:`RunSummary`."""

    settings = settings or CrawlerSettings()
    authenticator = SessionAuthenticator(auth_profiles)
    run_summary = RunSummary(output_dir=str(writer.output_dir))
    started = time.monotonic()

    for target in targets:
        if target.is_placeholder:
            logger.info("Skipping %s - please update start_urls with your actual URLs", target.name)
            continue

        crawler = TargetCrawler(
            target,
            engine,
            writer,
            authenticator=authenticator,
            navigation_timeout_ms=settings.navigation_timeout_ms,
        )
        try:
            summary = crawler.run(concurrency=settings.max_concurrency)
        except Exception as exc:  # noqa: BLE001 - keep going with the next target
            logger.error("Error crawling %s: %s", target.name, exc)
            summary = TargetSummary(target_name=target.name, error=str(exc))
        else:
            logger.info("%s completed in %.1fs", target.name, summary.elapsed_seconds)
        run_summary.targets.append(summary)

    run_summary.elapsed_seconds = time.monotonic() - started
    return run_summary

