"""Console entry points for crawling and for the quality tooling."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Callable, List, Sequence

from docharvest.config import (
    DEFAULT_AUTHENTICATED_CONFIG_PATH,
    DEFAULT_CONFIG_PATH,
    AppConfig,
    CrawlerSettings,
    CrawlTarget,
    default_authenticated_targets,
    default_targets,
    load_auth_profiles,
)
from docharvest.errors import StartupMisconfigurationError
from docharvest.models import RunSummary
from docharvest.services.auth import ensure_auth_configured
from docharvest.services.crawler import run_targets
from docharvest.services.model_selector import SmartModelSelector
from docharvest.services.pages import create_engine
from docharvest.services.quality import DEFAULT_EXPORT_FILE, QualityTracker
from docharvest.services.writer import ArtifactWriter
from docharvest.storage import clear_output_root, count_artifacts

logger = logging.getLogger(__name__)

PLAIN_HINTS = [
    "Network connectivity issues",
    "Sites blocking automated requests",
    "Pattern matching issues",
    "Content extraction failures",
]
AUTH_HINTS = [
    "Authentication tokens expired",
    "Invalid URLs in the authenticated target configuration",
    "Network connectivity issues",
    "Sites blocking automated requests",
]
CREDENTIAL_HELP = """\
No authentication configuration found in environment variables.

To crawl authenticated sites:
1. Copy .env.example to .env
2. Login to your sites in a browser
3. Open DevTools (F12) -> Network tab
4. Refresh the page and find any request to your site
5. Right-click -> Copy -> Copy as cURL
6. Extract cookies and headers from the cURL command into .env

Example:
CONFLUENCE_COOKIES="JSESSIONID=abc123; atlassian.xsrf.token=xyz789"
CONFLUENCE_AUTH="Bearer your_token_here"
"""


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )


def _crawl_parser(description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("--config", "-c", type=Path, default=None, help="Path to a targets JSON file")
    parser.add_argument("--output-dir", "-o", type=Path, default=None, help="Override output directory")
    parser.add_argument(
        "--engine", choices=["playwright", "http"], default=None, help="Page engine to use"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def load_config(
    path: Path | None,
    default_path: Path,
    fallback_targets: Callable[[], List[CrawlTarget]],
    *,
    clear_output: bool = False,
) -> AppConfig:
    """Load ``path`` (or the shipped default), falling back to built-in targets."""

    if path is not None:
        return AppConfig.from_file(path)
    try:
        return AppConfig.from_file(default_path)
    except FileNotFoundError:
        logger.debug("No configuration at %s, using built-in targets", default_path)
        return AppConfig(
            settings=CrawlerSettings(clear_output=clear_output),
            targets=fallback_targets(),
        )


def _apply_overrides(config: AppConfig, args: argparse.Namespace) -> None:
    if args.output_dir is not None:
        config.settings.output_dir = args.output_dir
    if args.engine is not None:
        config.settings.engine = args.engine


def _run(config: AppConfig, auth_profiles) -> RunSummary:
    settings = config.settings
    writer = ArtifactWriter(settings.output_dir)
    with create_engine(settings.engine, headless=settings.headless) as engine:
        return run_targets(
            config.targets,
            engine,
            writer,
            settings=settings,
            auth_profiles=auth_profiles,
        )


def print_summary(summary: RunSummary, title: str, hints: Sequence[str], tip: str) -> None:
    on_disk = count_artifacts(summary.output_dir)
    print()
    print(title)
    print("=" * len(title))
    for target in summary.targets:
        skipped = ", ".join(f"{k}={v}" for k, v in sorted(target.skipped.items())) or "none"
        print(
            f"  {target.target_name}: {target.pages_written} written, "
            f"{target.failed} failed, skipped: {skipped} ({target.elapsed_seconds:.1f}s)"
        )
    print(f"Total pages crawled: {summary.total_written}")
    print(f"Files in output directory: {on_disk}")
    print(f"Files saved to: {summary.output_dir}")

    if summary.total_written == 0:
        logger.warning("No pages were crawled")
        print()
        print("No pages were crawled. This might be due to:")
        for hint in hints:
            print(f"  - {hint}")
        print()
        print(tip)


def crawl_main(argv: Sequence[str] | None = None) -> int:
    """Crawl the public documentation targets."""

    args = _crawl_parser("Crawl documentation sites into flat text files").parse_args(argv)
    _configure_logging(args.verbose)

    config = load_config(args.config, DEFAULT_CONFIG_PATH, default_targets, clear_output=True)
    _apply_overrides(config, args)

    logger.info("Starting Simple Crawler")
    if config.settings.clear_output:
        clear_output_root(config.settings.output_dir)

    summary = _run(config, config.auth_profiles)
    print_summary(
        summary,
        "Crawling Complete!",
        PLAIN_HINTS,
        "Try adjusting the crawl target configuration",
    )
    return 0


def crawl_auth_main(argv: Sequence[str] | None = None) -> int:
    """Crawl the targets that need pre-captured credentials."""

    args = _crawl_parser("Crawl authenticated documentation sites").parse_args(argv)
    _configure_logging(args.verbose)

    config = load_config(
        args.config, DEFAULT_AUTHENTICATED_CONFIG_PATH, default_authenticated_targets
    )
    _apply_overrides(config, args)
    auth_profiles = [*config.auth_profiles, *load_auth_profiles()]

    logger.info("Starting Authenticated Crawler")
    try:
        ensure_auth_configured(auth_profiles)
    except StartupMisconfigurationError as exc:
        logger.error("%s", exc)
        print(CREDENTIAL_HELP)
        return 1

    if config.settings.clear_output:
        clear_output_root(config.settings.output_dir)

    summary = _run(config, auth_profiles)
    print_summary(
        summary,
        "Authenticated Crawling Complete!",
        AUTH_HINTS,
        "Try refreshing your authentication tokens",
    )
    return 0


def quality_main(argv: Sequence[str] | None = None) -> int:
    """Log, analyze and export rated queries."""

    parser = argparse.ArgumentParser(description="Query quality tracker")
    parser.add_argument("--log-file", type=Path, default=None)
    sub = parser.add_subparsers(dest="command")

    log_cmd = sub.add_parser("log", help="Log a query")
    log_cmd.add_argument("question")
    log_cmd.add_argument("model")
    log_cmd.add_argument("rating", type=int)
    log_cmd.add_argument("notes", nargs="?")
    log_cmd.add_argument("--category")
    log_cmd.add_argument("--response-time", type=int)

    sub.add_parser("analyze", help="Analyze quality metrics")
    export_cmd = sub.add_parser("export", help="Export logs to CSV")
    export_cmd.add_argument("output", nargs="?", type=Path, default=DEFAULT_EXPORT_FILE)
    sub.add_parser("recommendations", help="Get improvement recommendations")

    args = parser.parse_args(argv)
    _configure_logging(False)
    tracker = QualityTracker(args.log_file) if args.log_file else QualityTracker()

    if args.command == "log":
        try:
            tracker.log_query(
                args.question,
                args.model,
                args.rating,
                notes=args.notes,
                category=args.category,
                response_time=args.response_time,
            )
        except ValueError as exc:
            parser.error(str(exc))
    elif args.command == "analyze":
        print_quality_report(tracker)
    elif args.command == "export":
        count = tracker.export_csv(args.output)
        print(f"Exported {count} logs to {args.output}" if count else "No logs to export")
    elif args.command == "recommendations":
        print("Recommendations:")
        for line in tracker.recommendations():
            print(f"  {line}")
    else:
        parser.print_help()
        return 1
    return 0


def print_quality_report(tracker: QualityTracker) -> None:
    report = tracker.analyze()
    if report is None:
        print("No queries logged yet")
        return

    print("Quality Analysis Report")
    print(f"Average Quality: {report.average_rating:.2f}/5.0")
    print(f"Total Queries: {report.total}")
    print(f"Good Queries (4-5): {report.good} ({report.good / report.total * 100:.1f}%)")
    print(f"Poor Queries (1-2): {report.poor} ({report.poor / report.total * 100:.1f}%)")
    print("\nModel Performance:")
    for model, stats in report.models.items():
        print(f"  {model}: {stats.average:.2f}/5.0 ({stats.total} queries)")
    print("\nCategory Performance:")
    for category, stats in report.categories.items():
        print(f"  {category}: {stats.average:.2f}/5.0 ({stats.total} queries)")
    if report.poor_queries:
        print("\nPoor Quality Queries:")
        for index, query in enumerate(report.poor_queries, 1):
            print(f"{index}. [{query.rating}] {query.question}")
            print(f"   Model: {query.model} | Date: {query.iso_date}")
            if query.notes:
                print(f"   Notes: {query.notes}")
        if report.poor > len(report.poor_queries):
            print(f"... and {report.poor - len(report.poor_queries)} more poor queries")


def select_model_main(argv: Sequence[str] | None = None) -> int:
    """Recommend a model for a question, or audit past selections."""

    parser = argparse.ArgumentParser(description="Smart model selector")
    parser.add_argument("--log-file", type=Path, default=None)
    sub = parser.add_subparsers(dest="command")
    select_cmd = sub.add_parser("select", help="Get a model recommendation")
    select_cmd.add_argument("question")
    sub.add_parser("analyze", help="Analyze historical pattern accuracy")

    args = parser.parse_args(argv)
    _configure_logging(False)
    tracker = QualityTracker(args.log_file) if args.log_file else QualityTracker()
    selector = SmartModelSelector(tracker)

    if args.command == "select":
        print(f'Question: "{args.question}"\n')
        print(selector.recommend(args.question))
    elif args.command == "analyze":
        bands, misclassified = selector.analyze_patterns()
        if not bands:
            print("No quality logs found. Start logging queries to analyze patterns.")
            return 0
        for key, entry in bands.items():
            print(
                f"  {key}: {entry['accuracy']:.1f}% accuracy, "
                f"{entry['average_rating']:.1f}/5.0 avg rating ({entry['total']} queries)"
            )
        for index, item in enumerate(misclassified, 1):
            print(f"{index}. Question: \"{item['question']}\"")
            print(f"   Used: {item['used']} | Suggested: {item['suggested']} | Rating: {item['rating']}/5")
            print(f"   Reason: {item['reason']}")
    else:
        parser.print_help()
        return 1
    return 0
