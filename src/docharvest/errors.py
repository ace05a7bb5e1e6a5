"""Exceptions raised by the harvesting pipeline."""

from __future__ import annotations


class HarvestError(Exception):
    """Base exception for all harvesting errors."""

    def __init__(self, message: str, url: str | None = None) -> None:
        self.url = url
        super().__init__(message)


class NavigationError(HarvestError):
    """The page engine could not load a URL (timeout, network, blocked)."""


class InsufficientContentError(HarvestError):
    """No selector candidate yielded enough text."""

    def __init__(self, url: str | None, length: int) -> None:
        self.length = length
        super().__init__(f"Insufficient content: {length} chars", url)


class OutputError(HarvestError):
    """Error writing an artifact to disk."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        super().__init__(message)


class StartupMisconfigurationError(HarvestError):
    """No usable authentication profile for an authenticated run."""
