# File: doccrawler/crawler/frontier.py
"""doccrawler.crawler.frontier: pending/visited URL bookkeeping of one crawl run."""

from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Dict, Iterable, Optional, Set, Tuple

from doccrawler.crawler.models import FrontierEntry
from doccrawler.logger import get_logger
from doccrawler.utils import is_valid_url, normalize_url

__all__ = ("UrlFrontier",)

log = get_logger("frontier")

SortKey = Callable[[FrontierEntry], object]


class UrlFrontier:
    """FIFO frontier with normalisation-based deduplication.

    A URL is always in exactly one of three states: unseen, queued or visited.
    Every lookup goes through :func:`normalize_url`, so ``/a/`` and ``/a`` are
    the same entry.
    """

    def __init__(self) -> None:
        self._queue: Deque[FrontierEntry] = deque()
        self._queued: Dict[str, FrontierEntry] = {}
        self._visited: Set[str] = set()

    def add(self, url: str, depth: int = 0) -> bool:
        """Queue *url* unless it is invalid, queued or visited. Returns True when added."""
        if not is_valid_url(url):
            log.debug("Rejected invalid URL %r", url)
            return False
        key = normalize_url(url)
        if key in self._visited or key in self._queued:
            return False
        entry = FrontierEntry(key, depth)
        self._queued[key] = entry
        self._queue.append(entry)
        return True

    def add_bulk(self, entries: Iterable[Tuple[str, int]]) -> int:
        """Batched :meth:`add`; duplicates inside the batch are dropped too."""
        added = 0
        for url, depth in entries:
            if self.add(url, depth):
                added += 1
        return added

    def get_next(self) -> Optional[FrontierEntry]:
        """Pop the earliest queued entry, or None when the frontier is empty."""
        if not self._queue:
            return None
        entry = self._queue.popleft()
        del self._queued[entry.url]
        return entry

    def mark_visited(self, url: str) -> None:
        key = normalize_url(url)
        entry = self._queued.pop(key, None)
        if entry is not None:
            self._queue.remove(entry)
        self._visited.add(key)

    def is_visited(self, url: str) -> bool:
        return normalize_url(url) in self._visited

    def has(self, url: str) -> bool:
        """True when *url* is queued or visited."""
        key = normalize_url(url)
        return key in self._queued or key in self._visited

    def size(self) -> int:
        return len(self._queue)

    def visited_count(self) -> int:
        return len(self._visited)

    def prioritize(self, key: Optional[SortKey] = None) -> None:
        """Re-order pending entries; default is ascending depth (stable)."""
        ordered = sorted(self._queue, key=key or (lambda e: e.depth))
        self._queue = deque(ordered)

    def clear(self) -> None:
        self._queue.clear()
        self._queued.clear()
        self._visited.clear()

    def __len__(self) -> int:
        return self.size()
