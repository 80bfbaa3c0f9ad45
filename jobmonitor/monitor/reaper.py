"""Periodic removal of completed jobs."""

from __future__ import annotations

import logging
from datetime import timedelta, timezone, tzinfo

from jobmonitor.cluster import job_state
from jobmonitor.monitor.handler import JobHandler
from jobmonitor.monitor.recency import Clock, utc_now
from jobmonitor.monitor.scheduler import ScheduledAction, SchedulerProtocol

LOGGER = logging.getLogger(__name__)


class Reaper:
    """Delete completed jobs once they have reached a maximum age.

    The watcher already handles jobs as soon as they change; the reaper
    catches everything it missed, e.g. while the monitor was down.
    """

    def __init__(
        self,
        handler: JobHandler,
        max_age: timedelta,
        interval: timedelta,
        clock: Clock = utc_now,
        tz: tzinfo = timezone.utc,
    ) -> None:
        self._handler = handler
        self.max_age = max_age
        self.interval = interval
        self._clock = clock
        self._tz = tz

    def run(self, scheduler: SchedulerProtocol) -> ScheduledAction:
        return scheduler.schedule(self.interval, self.reap)

    def reap(self) -> list[str]:
        """Process the jobs completed before the reference time.

        Returns the names of the jobs that were processed in this run, not
        counting jobs skipped as recently processed.
        """
        reference_time = (self._clock() - self.max_age).astimezone(self._tz)
        LOGGER.info(f"Reaper run: removing jobs completed before {reference_time.isoformat()}.")

        jobs = self._handler.find_jobs_completed_before(reference_time)
        LOGGER.debug(f"Reaper found {len(jobs)} completed jobs.")
        processed: list[str] = []
        for job in jobs:
            try:
                if self._handler.delete_and_notify_if_failed(job):
                    processed.append(job_state.job_name(job))
            except Exception:
                LOGGER.error(
                    f"[job {job_state.job_name(job)}] reaper could not process job.", exc_info=True
                )
        return processed


__all__ = ["Reaper"]
