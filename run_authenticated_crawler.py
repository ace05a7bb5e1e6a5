"""Convenience script for crawling authenticated sites locally."""

from __future__ import annotations

import sys
from pathlib import Path

SRC_PATH = Path(__file__).resolve().parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from docharvest.cli import crawl_auth_main  # noqa: E402  (import after path setup)


if __name__ == "__main__":
    sys.exit(crawl_auth_main())
