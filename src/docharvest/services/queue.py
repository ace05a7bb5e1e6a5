"""Request queue with a request budget and optional parallel dispatch."""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Callable, Deque, Iterable, Set

logger = logging.getLogger(__name__)

__all__ = ["RequestQueue", "normalize_url"]


def normalize_url(url: str) -> str:
    return url.split("#", 1)[0]


class RequestQueue:
    """FIFO of unique URLs that hands out at most ``max_requests`` of them."""

    def __init__(self, max_requests: int, urls: Iterable[str] = ()) -> None:
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        self.max_requests = max_requests
        self._pending: Deque[str] = deque()
        self._seen: Set[str] = set()
        self._handed_out = 0
        self._lock = threading.Lock()
        for url in urls:
            self.add(url)

    def add(self, url: str) -> bool:
        """Enqueue ``url`` unless it has been seen before."""

        normalized = normalize_url(url)
        with self._lock:
            if normalized in self._seen:
                return False
            self._seen.add(normalized)
            self._pending.append(normalized)
            return True

    def next(self) -> str | None:
        with self._lock:
            if self._handed_out >= self.max_requests or not self._pending:
                return None
            self._handed_out += 1
            return self._pending.popleft()

    def run(
        self,
        handler: Callable[[str], object],
        *,
        concurrency: int = 1,
        should_stop: Callable[[], bool] | None = None,
    ) -> None:
        """Dispatch queued URLs to ``handler`` until the queue or budget runs out.

        ``handler`` may call :meth:`add` while running.  With ``concurrency``
        above one, handlers run on a thread pool and must be reentrant.
        """

        stop = should_stop or (lambda: False)

        if concurrency <= 1:
            while not stop():
                url = self.next()
                if url is None:
                    break
                handler(url)
            return

        with ThreadPoolExecutor(max_workers=concurrency) as pool:
            in_flight = set()
            while True:
                while len(in_flight) < concurrency and not stop():
                    url = self.next()
                    if url is None:
                        break
                    in_flight.add(pool.submit(handler, url))
                if not in_flight:
                    break
                done, in_flight = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    future.result()
