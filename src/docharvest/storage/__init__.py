"""Utilities for working with the flat output directory of crawled artifacts."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from docharvest.config import DEFAULT_OUTPUT_DIR

logger = logging.getLogger(__name__)

#: Extension of every artifact written by the crawler.
ARTIFACT_SUFFIX = ".txt"

_Pathish = Union[str, Path]


def resolve_output_root(output_root: _Pathish | None = None) -> Path:
    """Return a :class:`Path` pointing at the output directory.

    ``output_root`` may be either a string or :class:`Path`.  When ``None`` is
    provided, :data:`~docharvest.config.DEFAULT_OUTPUT_DIR` is returned.  The
    path is not created on disk; callers can use :func:`ensure_output_root` if
    they need to create it.
    """

    if output_root is None:
        return DEFAULT_OUTPUT_DIR
    if isinstance(output_root, Path):
        return output_root
    return Path(output_root)


def ensure_output_root(output_root: _Pathish | None = None) -> Path:
    """Ensure the output directory exists and return it as a :class:`Path`."""

    root = resolve_output_root(output_root)
    root.mkdir(parents=True, exist_ok=True)
    return root


def clear_output_root(output_root: _Pathish | None = None) -> int:
    """Delete files left over from a previous run; return how many were removed."""

    root = resolve_output_root(output_root)
    if not root.exists():
        return 0

    leftovers = [path for path in root.iterdir() if path.is_file()]
    if leftovers:
        logger.info("Clearing %d old files from %s", len(leftovers), root)
    for path in leftovers:
        path.unlink()
    return len(leftovers)


def count_artifacts(output_root: _Pathish | None = None) -> int:
    root = resolve_output_root(output_root)
    if not root.exists():
        return 0
    return sum(1 for path in root.glob(f"*{ARTIFACT_SUFFIX}") if path.is_file())


__all__ = [
    "ARTIFACT_SUFFIX",
    "clear_output_root",
    "count_artifacts",
    "ensure_output_root",
    "resolve_output_root",
]
