"""Resumable consumption of the cluster's job watch stream."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator

from kubernetes.client.rest import ApiException

from jobmonitor.cluster import BOOKMARK_EVENT, MODIFIED_EVENT, ClusterClientProtocol, WatchEvent

LOGGER = logging.getLogger(__name__)


class JobWatchHelper:
    """Turn watch streams into an uninterrupted sequence of job modifications.

    Watch streams end regularly (server-side timeouts) or break on errors.
    The helper remembers the last resource version it has seen, including
    the versions announced by ``BOOKMARK`` events, and opens a new watch at
    that version, so that no change is lost in between.
    """

    def __init__(
        self,
        cluster: ClusterClientProtocol,
        namespace: str,
        resource_version: str | None = None,
        *,
        retry_delay_seconds: float = 5.0,
        stop_event: threading.Event | None = None,
    ) -> None:
        self._cluster = cluster
        self.namespace = namespace
        self.resource_version = resource_version
        self.retry_delay_seconds = retry_delay_seconds
        self._stop_event = stop_event or threading.Event()
        self._stream: Iterator[WatchEvent] | None = None

    def stop(self) -> None:
        """Stop consuming events and end the watch stream that is currently open."""
        self._stop_event.set()
        self._cluster.stop_watches()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def next_event(self) -> WatchEvent | None:
        """Block until the next ``MODIFIED`` event; return None once stopped."""
        while not self.stopped:
            try:
                stream = self._current_stream()
                event = next(stream)
            except StopIteration:
                LOGGER.debug(f"Watch ended, resuming at resource version {self.resource_version}.")
                self._stream = None
                continue
            except ApiException as exc:
                self._stream = None
                if exc.status == 410:
                    LOGGER.info("Watch resource version expired, obtaining a new one.")
                    self.resource_version = None
                else:
                    LOGGER.error(f"Job watch failed: {exc}")
                self._stop_event.wait(self.retry_delay_seconds)
                continue
            except Exception:
                LOGGER.error("Job watch failed.", exc_info=True)
                self._stream = None
                self._stop_event.wait(self.retry_delay_seconds)
                continue

            if event.resource_version:
                self.resource_version = event.resource_version
            if event.type == MODIFIED_EVENT and event.job is not None:
                return event
            if event.type == BOOKMARK_EVENT:
                LOGGER.debug(f"Watch bookmark at resource version {self.resource_version}.")
                continue
            LOGGER.debug(f"Ignoring watch event of type {event.type}.")
        return None

    def events(self) -> Iterator[WatchEvent]:
        while True:
            event = self.next_event()
            if event is None:
                return
            yield event

    def _current_stream(self) -> Iterator[WatchEvent]:
        if self._stream is None:
            if self.resource_version is None:
                self.resource_version = self._cluster.current_resource_version(self.namespace)
            LOGGER.debug(f"Starting job watch at resource version {self.resource_version}.")
            self._stream = iter(self._cluster.watch_jobs(self.namespace, self.resource_version))
        return self._stream


__all__ = ["JobWatchHelper"]
