"""Keyword-based routing of questions to a local model."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from docharvest.services.quality import ModelStats, QualityTracker

logger = logging.getLogger(__name__)

__all__ = ["DEFAULT_RULES", "ModelRule", "ModelSelection", "SmartModelSelector"]

CODE_MODEL = "deepseek-coder:6.7b"
GENERAL_MODEL = "llama3.1:8b"


@dataclass(frozen=True)
class ModelRule:
    patterns: Tuple[str, ...]
    model: str
    description: str


@dataclass(frozen=True)
class ModelSelection:
    model: str
    confidence: float
    reason: str


DEFAULT_RULES: Tuple[ModelRule, ...] = (
    ModelRule(
        patterns=(
            "code", "implement", "debug", "error", "function", "syntax",
            "programming", "algorithm", "variable", "class", "method",
            "bug", "fix", "compile", "runtime", "exception", "typescript",
            "javascript", "python", "java", "c++", "sql", "html", "css",
            "api", "endpoint", "database", "query", "schema", "optimization",
            "performance", "refactor", "testing", "unit test", "integration",
            "deployment", "build", "ci/cd", "docker", "kubernetes",
        ),
        model=CODE_MODEL,
        description="Code-related questions and debugging",
    ),
    ModelRule(
        patterns=(
            "architecture", "design", "pattern", "best practice", "principle",
            "microservices", "monolith", "scalability", "system design",
            "requirements", "specification", "planning", "strategy",
            "overview", "concept", "theory", "philosophy", "methodology",
            "approach", "framework", "structure", "organization",
            "workflow", "process", "documentation", "explain", "what is",
            "how does", "difference between", "comparison", "pros and cons",
        ),
        model=GENERAL_MODEL,
        description="Architecture, concepts, and general questions",
    ),
)


class SmartModelSelector:
    """Pick a model from keyword rules, demoting models that rate poorly."""

    def __init__(
        self,
        tracker: QualityTracker | None = None,
        rules: Sequence[ModelRule] = DEFAULT_RULES,
    ) -> None:
        self.tracker = tracker or QualityTracker()
        self.rules = tuple(rules)

    @staticmethod
    def alternative(model: str) -> str:
        return GENERAL_MODEL if model == CODE_MODEL else CODE_MODEL

    def select(self, question: str, stats: Dict[str, ModelStats] | None = None) -> ModelSelection:
        lowered = question.lower()
        best = ModelSelection(GENERAL_MODEL, 0.0, "Default general model")

        for rule in self.rules:
            hits = [pattern for pattern in rule.patterns if pattern.lower() in lowered]
            if not hits:
                continue
            confidence = min(len(hits) / 3, 1.0)
            if confidence > best.confidence:
                best = ModelSelection(
                    rule.model,
                    confidence,
                    f"Matched {len(hits)} patterns: {', '.join(hits[:3])}",
                )

        stats = self.tracker.model_stats() if stats is None else stats
        history = stats.get(best.model)
        if history is not None and history.average < 3.0 and history.total > 5:
            best = ModelSelection(
                self.alternative(best.model),
                best.confidence * 0.8,
                f"Switched from {best.model} due to poor performance ({history.average:.1f}/5.0)",
            )
        return best

    def recommend(self, question: str) -> str:
        stats = self.tracker.model_stats()
        selection = self.select(question, stats)
        lines = [
            f"Recommended model: {selection.model}",
            f"Confidence: {selection.confidence * 100:.0f}%",
            f"Reason: {selection.reason}",
        ]
        history = stats.get(selection.model)
        if history is not None:
            lines.append(
                f"Historical performance: {history.average:.1f}/5.0 ({history.total} queries)"
            )
        lines.append("")
        lines.append(
            f"Alternative: Try {self.alternative(selection.model)} if results are unsatisfactory"
        )
        return "\n".join(lines)

    def analyze_patterns(self) -> Tuple[Dict[str, dict], List[dict]]:
        """Return per-band accuracy and up to five likely misclassifications."""

        logs = self.tracker.load_logs()
        stats = self.tracker.model_stats()
        bands: Dict[str, dict] = {}
        misclassified: List[dict] = []

        for log in logs:
            selection = self.select(log.question, stats)
            band = "high" if selection.confidence > 0.5 else "low"
            key = f"{selection.model} ({band} confidence)"
            entry = bands.setdefault(key, {"correct": 0, "total": 0, "rating_sum": 0})
            entry["total"] += 1
            entry["rating_sum"] += log.rating
            if selection.model == log.model:
                entry["correct"] += 1
            elif log.rating <= 2 and len(misclassified) < 5:
                misclassified.append(
                    {
                        "question": log.question,
                        "used": log.model,
                        "suggested": selection.model,
                        "rating": log.rating,
                        "reason": selection.reason,
                    }
                )

        for entry in bands.values():
            entry["accuracy"] = entry["correct"] / entry["total"] * 100
            entry["average_rating"] = entry["rating_sum"] / entry["total"]
        return bands, misclassified
