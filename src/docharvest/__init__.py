"""Crawl documentation sites into a flat corpus of cleaned text files."""

from __future__ import annotations

import os
from pathlib import Path


def _load_local_env() -> None:
    """Populate ``os.environ`` from a project-level ``.env`` file.

    Variables already present in the environment win over the file.
    """

    env_path = Path(__file__).resolve().parent.parent.parent / ".env"
    if not env_path.exists():
        return

    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key or key in os.environ:
            continue

        os.environ[key] = value.strip().strip('"').strip("'")


_load_local_env()

from .config import AppConfig, AuthProfile, CrawlTarget  # noqa: E402,F401

__all__ = ["AppConfig", "AuthProfile", "CrawlTarget"]
