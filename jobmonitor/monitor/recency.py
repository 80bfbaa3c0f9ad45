"""Time-windowed bookkeeping of recently processed jobs."""

from __future__ import annotations

import threading
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Callable


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecencyCache:
    """Suppress duplicate processing of a job name within a time window.

    The watch consumer and the periodic sweeps may hand the same job to the
    handler in close succession. ``claim`` performs the check and the marking
    under one lock, so only one of them proceeds. Entries older than the
    window are evicted on every access, which bounds the cache to the job
    names seen within one window.
    """

    def __init__(self, window: timedelta, clock: Clock = utc_now) -> None:
        self.window = window
        self._clock = clock
        self._lock = threading.Lock()
        # Ordered by processing time, oldest first.
        self._entries: OrderedDict[str, datetime] = OrderedDict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._entries

    def _prune(self, now: datetime) -> None:
        threshold = now - self.window
        while self._entries:
            name, processed_at = next(iter(self._entries.items()))
            if processed_at > threshold:
                break
            del self._entries[name]

    def _record(self, name: str, now: datetime) -> None:
        self._entries.pop(name, None)
        self._entries[name] = now

    def should_skip(self, name: str, now: datetime | None = None) -> bool:
        now = now or self._clock()
        with self._lock:
            self._prune(now)
            return name in self._entries

    def mark_processed(self, name: str, now: datetime | None = None) -> None:
        now = now or self._clock()
        with self._lock:
            self._prune(now)
            self._record(name, now)

    def claim(self, name: str, now: datetime | None = None) -> bool:
        """Atomically mark ``name`` as processed unless it already is.

        Returns:
            True if the caller may process the job, False if it was processed
            within the window.
        """
        now = now or self._clock()
        with self._lock:
            self._prune(now)
            if name in self._entries:
                return False
            self._record(name, now)
            return True

    def release(self, name: str) -> None:
        """Forget a claim so the job is picked up again by a later cycle."""
        with self._lock:
            self._entries.pop(name, None)


__all__ = ["Clock", "RecencyCache", "utc_now"]
