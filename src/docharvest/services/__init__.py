"""Pipeline components for Doc Harvest."""

from __future__ import annotations

from .crawler import PageBudget, TargetCrawler, run_targets  # noqa: F401
from .writer import ArtifactWriter  # noqa: F401

__all__ = ["ArtifactWriter", "PageBudget", "TargetCrawler", "run_targets"]
