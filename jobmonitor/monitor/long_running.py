"""Periodic termination of worker jobs that exceed their timeout.

A job hanging in the cluster blocks its run forever. Each worker type has a
timeout; jobs that are still not completed after it are reported as failed
and deleted.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from collections.abc import Mapping

from kubernetes.client import V1Job

from jobmonitor.cluster import job_state
from jobmonitor.monitor.handler import JobHandler
from jobmonitor.monitor.recency import Clock, utc_now
from jobmonitor.monitor.scheduler import ScheduledAction, SchedulerProtocol
from jobmonitor.workers import WorkerType

LOGGER = logging.getLogger(__name__)


class LongRunningJobsFinder:
    def __init__(
        self,
        handler: JobHandler,
        timeouts: Mapping[WorkerType, timedelta],
        interval: timedelta,
        clock: Clock = utc_now,
    ) -> None:
        self._handler = handler
        self.timeouts = dict(timeouts)
        self.interval = interval
        self._clock = clock

    def run(self, scheduler: SchedulerProtocol) -> ScheduledAction:
        return scheduler.schedule(self.interval, self.check_for_long_running_jobs)

    def check_for_long_running_jobs(self) -> dict[WorkerType, list[str]]:
        """Terminate the jobs exceeding their worker's timeout; return their names per worker."""
        LOGGER.info("Checking for long-running jobs.")
        terminated: dict[WorkerType, list[str]] = {}
        for worker in WorkerType:
            timeout = self.timeouts.get(worker)
            if timeout is None:
                continue
            try:
                terminated[worker] = self._check_worker(worker, timeout)
            except Exception:
                LOGGER.error(f"Long-running jobs check failed for {worker.value}.", exc_info=True)
        return terminated

    def find_long_running_jobs(self, worker: WorkerType, timeout: timedelta) -> list[V1Job]:
        """Return the jobs of ``worker`` that were created more than ``timeout`` ago and still run."""
        started_before = self._clock() - timeout
        long_running: list[V1Job] = []
        for job in self._handler.find_jobs_for_worker(worker):
            if job_state.is_completed(job):
                continue
            created_at = job_state.creation_time(job)
            if created_at is not None and created_at < started_before:
                long_running.append(job)
        return long_running

    def _check_worker(self, worker: WorkerType, timeout: timedelta) -> list[str]:
        jobs = self.find_long_running_jobs(worker, timeout)
        if not jobs:
            return []

        LOGGER.warning(f"Found {len(jobs)} {worker.value} jobs running longer than {timeout}.")
        terminated: list[str] = []
        for job in jobs:
            name = job_state.job_name(job)
            try:
                if self._handler.terminate_long_running_job(job):
                    terminated.append(name)
            except Exception:
                LOGGER.error(f"[job {name}] could not terminate long-running job.", exc_info=True)
        return terminated


__all__ = ["LongRunningJobsFinder"]
