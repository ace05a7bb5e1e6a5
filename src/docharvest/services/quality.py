"""Append-only log of rated knowledge-base queries plus simple statistics."""

from __future__ import annotations

import csv
import json
import logging
import time
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

__all__ = ["DEFAULT_LOG_FILE", "ModelStats", "QualityReport", "QualityTracker", "QueryLog"]

DEFAULT_LOG_FILE = Path("./logs/quality-log.jsonl")
DEFAULT_EXPORT_FILE = Path("./logs/quality-export.csv")
MIN_LOGS_FOR_RECOMMENDATIONS = 10
CSV_HEADERS = ["timestamp", "date", "question", "model", "rating", "category", "responseTime", "notes"]


class QueryLog(BaseModel):
    question: str
    model: str
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))
    rating: int = Field(..., ge=1, le=5)
    response_time: Optional[int] = Field(default=None, alias="responseTime")
    notes: Optional[str] = None
    category: Optional[str] = None

    model_config = {"populate_by_name": True}

    @property
    def iso_date(self) -> str:
        return datetime.fromtimestamp(self.timestamp / 1000, tz=timezone.utc).isoformat()


class ModelStats(BaseModel):
    total: int = 0
    rating_sum: int = 0

    @property
    def average(self) -> float:
        return self.rating_sum / self.total if self.total else 0.0

    def add(self, rating: int) -> None:
        self.total += 1
        self.rating_sum += rating


class QualityReport(BaseModel):
    total: int
    average_rating: float
    good: int
    poor: int
    models: Dict[str, ModelStats] = Field(default_factory=dict)
    categories: Dict[str, ModelStats] = Field(default_factory=dict)
    poor_queries: List[QueryLog] = Field(default_factory=list)


def _group(logs: List[QueryLog], key) -> Dict[str, ModelStats]:
    stats: Dict[str, ModelStats] = {}
    for log in logs:
        stats.setdefault(key(log), ModelStats()).add(log.rating)
    return stats


class QualityTracker:
    def __init__(self, log_file: Path | str = DEFAULT_LOG_FILE) -> None:
        self.log_file = Path(log_file)
        self.log_file.parent.mkdir(parents=True, exist_ok=True)

    def log_query(
        self,
        question: str,
        model: str,
        rating: int,
        *,
        response_time: int | None = None,
        notes: str | None = None,
        category: str | None = None,
    ) -> QueryLog:
        if rating < 1 or rating > 5:
            raise ValueError("Rating must be between 1 and 5")

        entry = QueryLog(
            question=question,
            model=model,
            rating=rating,
            response_time=response_time,
            notes=notes,
            category=category,
        )
        with self.log_file.open("a", encoding="utf-8") as fp:
            fp.write(entry.model_dump_json(by_alias=True, exclude_none=True) + "\n")
        logger.info("Logged query: %r (Rating: %d/5)", question[:50], rating)
        return entry

    def load_logs(self) -> List[QueryLog]:
        if not self.log_file.exists():
            return []

        logs: List[QueryLog] = []
        for line_no, line in enumerate(self.log_file.read_text(encoding="utf-8").splitlines(), 1):
            if not line.strip():
                continue
            try:
                logs.append(QueryLog.model_validate(json.loads(line)))
            except (json.JSONDecodeError, ValidationError) as exc:
                logger.warning("Ignoring malformed line %d in %s: %s", line_no, self.log_file, exc)
        return logs

    def model_stats(self) -> Dict[str, ModelStats]:
        return _group(self.load_logs(), lambda log: log.model)

    def analyze(self) -> QualityReport | None:
        logs = self.load_logs()
        if not logs:
            return None

        poor = [log for log in logs if log.rating <= 2]
        return QualityReport(
            total=len(logs),
            average_rating=sum(log.rating for log in logs) / len(logs),
            good=sum(1 for log in logs if log.rating >= 4),
            poor=len(poor),
            models=_group(logs, lambda log: log.model),
            categories=_group(logs, lambda log: log.category or "uncategorized"),
            poor_queries=poor[:10],
        )

    def export_csv(self, output_file: Path | str = DEFAULT_EXPORT_FILE) -> int:
        """Write every log entry to ``output_file``; return the number of rows."""

        logs = self.load_logs()
        if not logs:
            return 0

        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("w", encoding="utf-8", newline="") as fp:
            writer = csv.writer(fp)
            writer.writerow(CSV_HEADERS)
            for log in logs:
                writer.writerow(
                    [
                        log.timestamp,
                        log.iso_date,
                        log.question,
                        log.model,
                        log.rating,
                        log.category or "",
                        log.response_time if log.response_time is not None else "",
                        log.notes or "",
                    ]
                )
        return len(logs)

    def recommendations(self) -> List[str]:
        logs = self.load_logs()
        if len(logs) < MIN_LOGS_FOR_RECOMMENDATIONS:
            return [
                "Log more queries to get meaningful insights",
                "Aim for at least 20-30 queries before analyzing patterns",
            ]

        average = sum(log.rating for log in logs) / len(logs)
        lines: List[str] = []
        if average < 3.0:
            lines.extend(
                [
                    "Overall quality is low. Consider:",
                    "  Adding more relevant documentation to your knowledge base",
                    "  Improving your question phrasing",
                    "  Trying different models for different question types",
                ]
            )
        elif average < 4.0:
            lines.extend(
                [
                    "Quality is moderate. Consider:",
                    "  Analyzing which topics have poor coverage",
                    "  Adding more specific documentation for problem areas",
                ]
            )
        else:
            lines.append("Quality is good! Keep up the good work.")

        stats = _group(logs, lambda log: log.model)
        best_model, best = max(stats.items(), key=lambda item: item[1].average)
        lines.append(f"Best performing model: {best_model} ({best.average:.2f}/5.0)")

        issues = Counter(log.notes.lower() for log in logs if log.rating <= 2 and log.notes)
        if issues:
            lines.append("Common issues to address:")
            lines.extend(f"  {issue} ({count} occurrences)" for issue, count in issues.most_common(3))
        return lines
