"""Domain models used across the application."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Cookie(BaseModel):
    """A cookie scoped to a single host."""

    name: str
    value: str
    domain: str
    path: str = "/"

    def to_playwright(self) -> dict:
        return {"name": self.name, "value": self.value, "domain": self.domain, "path": self.path}


class ExtractedDocument(BaseModel):
    """A cleaned page ready to be written exactly once."""

    title: str
    source_url: str
    target_name: str
    crawled_at: datetime = Field(default_factory=utcnow)
    metadata: List[Tuple[str, str]] = Field(default_factory=list)
    body: str

    model_config = {"frozen": True}


class SkipReason(str, enum.Enum):
    FILTERED_OUT = "filtered_out"
    AUTHENTICATION_EXPIRED = "authentication_expired"
    INSUFFICIENT_CONTENT = "insufficient_content"
    NAVIGATION_FAILED = "navigation_failed"
    BUDGET_EXHAUSTED = "budget_exhausted"


class OutcomeStatus(str, enum.Enum):
    WRITTEN = "written"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class PageOutcome:
    """Terminal state of one candidate URL."""

    url: str
    status: OutcomeStatus
    reason: Optional[SkipReason] = None
    path: Optional[Path] = None
    detail: str = ""

    @classmethod
    def written(cls, url: str, path: Path) -> "PageOutcome":
        return cls(url=url, status=OutcomeStatus.WRITTEN, path=path)

    @classmethod
    def skipped(cls, url: str, reason: SkipReason, detail: str = "") -> "PageOutcome":
        return cls(url=url, status=OutcomeStatus.SKIPPED, reason=reason, detail=detail)

    @classmethod
    def failed(cls, url: str, cause: BaseException) -> "PageOutcome":
        return cls(url=url, status=OutcomeStatus.FAILED, detail=f"{type(cause).__name__}: {cause}")


class TargetSummary(BaseModel):
    """Observational counters for one target."""

    target_name: str
    pages_written: int = 0
    requests_handled: int = 0
    failed: int = 0
    skipped: Dict[str, int] = Field(default_factory=dict)
    files: List[str] = Field(default_factory=list)
    elapsed_seconds: float = 0.0
    error: str | None = None

    def record(self, outcome: PageOutcome) -> None:
        self.requests_handled += 1
        if outcome.status is OutcomeStatus.WRITTEN:
            self.pages_written += 1
            if outcome.path is not None:
                self.files.append(outcome.path.name)
        elif outcome.status is OutcomeStatus.FAILED:
            self.failed += 1
        elif outcome.reason is not None:
            self.skipped[outcome.reason.value] = self.skipped.get(outcome.reason.value, 0) + 1


class RunSummary(BaseModel):
    """Aggregate over every target of a run."""

    output_dir: str
    targets: List[TargetSummary] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow)
    elapsed_seconds: float = 0.0

    @property
    def total_written(self) -> int:
        return sum(summary.pages_written for summary in self.targets)
