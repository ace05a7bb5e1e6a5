"""Persist extracted documents as flat ``.txt`` artifacts."""

from __future__ import annotations

import logging
import re
import threading
import time
from pathlib import Path
from urllib.parse import unquote, urlparse

from docharvest.errors import OutputError
from docharvest.models import ExtractedDocument
from docharvest.storage import ARTIFACT_SUFFIX, ensure_output_root, resolve_output_root

logger = logging.getLogger(__name__)

__all__ = ["ArtifactWriter", "render_document", "sanitize_name"]

_WHITESPACE_RUN = re.compile(r"\s+")
_UNSAFE = re.compile(r"[^\w.\-]")
#: Filesystems cap names at 255 bytes; leave room for the target name and stamp.
MAX_PATH_COMPONENT_BYTES = 150


def sanitize_name(name: str) -> str:
    """Replace whitespace runs with ``_`` and drop characters unsafe in filenames."""

    return _UNSAFE.sub("_", _WHITESPACE_RUN.sub("_", name.strip()))


def _path_component(url: str) -> str:
    segments = [segment for segment in urlparse(url).path.split("/") if segment]
    component = "_".join(_UNSAFE.sub("_", unquote(segment)) for segment in segments)
    encoded = component.encode("utf-8")
    if len(encoded) <= MAX_PATH_COMPONENT_BYTES:
        return component
    return encoded[:MAX_PATH_COMPONENT_BYTES].decode("utf-8", errors="ignore")


def _iso_millis(document: ExtractedDocument) -> str:
    return document.crawled_at.strftime("%Y-%m-%dT%H:%M:%S.") + (
        f"{document.crawled_at.microsecond // 1000:03d}Z"
    )


def render_document(document: ExtractedDocument) -> str:
    """Header block, metadata lines, a blank line, then the body."""

    lines = [
        f"Title: {document.title}",
        f"URL: {document.source_url}",
        f"Source: {document.target_name}",
        f"Crawled: {_iso_millis(document)}",
    ]
    lines.extend(f"{label}: {value}" for label, value in document.metadata)
    lines.append("")
    lines.append(document.body)
    return "\n".join(lines)


class ArtifactWriter:
    """Write one file per document into a single output directory.

    Filenames carry a millisecond timestamp that is strictly increasing for
    every write through the same writer, so two documents for the same target
    and path never share a name even when written within one millisecond.
    """

    def __init__(self, output_dir: Path | str | None = None, clock=time.time) -> None:
        self.output_dir = resolve_output_root(output_dir)
        self._clock = clock
        self._lock = threading.Lock()
        self._last_stamp = 0

    def _next_stamp(self) -> int:
        with self._lock:
            stamp = max(int(self._clock() * 1000), self._last_stamp + 1)
            self._last_stamp = stamp
            return stamp

    def filename(self, target_name: str, url: str) -> str:
        parts = [sanitize_name(target_name), _path_component(url), str(self._next_stamp())]
        return "_".join(part for part in parts if part) + ARTIFACT_SUFFIX

    def write(self, target_name: str, url: str, document: ExtractedDocument) -> Path:
        root = ensure_output_root(self.output_dir)
        output_path = root / self.filename(target_name, url)
        try:
            with output_path.open("x", encoding="utf-8") as fp:
                fp.write(render_document(document))
        except OSError as exc:
            raise OutputError(f"Failed to write file: {exc}", str(output_path)) from exc
        return output_path
