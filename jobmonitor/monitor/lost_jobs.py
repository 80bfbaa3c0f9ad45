"""Periodic detection of jobs that disappeared from the cluster.

Not every failed job is reported by the watcher or the reaper: node
evictions or a manual ``kubectl delete job`` remove job objects without a
terminal status being observed. The runs affected would stay "running"
forever. This module compares the jobs the database still considers active
with the jobs that exist in the cluster and notifies the orchestrator about
the difference.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from collections.abc import Mapping

from jobmonitor.cluster import job_state
from jobmonitor.monitor.handler import JobHandler
from jobmonitor.monitor.notifier import FailureNotifier
from jobmonitor.monitor.recency import Clock, utc_now
from jobmonitor.monitor.scheduler import ScheduledAction, SchedulerProtocol
from jobmonitor.persistence import ActiveJobRecord, BaseJobRepository, BaseRunRepository
from jobmonitor.workers import REPOSITORY_WORKERS, WorkerType

LOGGER = logging.getLogger(__name__)


class LostJobsFinder:
    def __init__(
        self,
        handler: JobHandler,
        notifier: FailureNotifier,
        repositories: Mapping[WorkerType, BaseJobRepository],
        min_age: timedelta,
        interval: timedelta,
        clock: Clock = utc_now,
        runs: BaseRunRepository | None = None,
    ) -> None:
        self._handler = handler
        self._notifier = notifier
        self._repositories = dict(repositories)
        self._runs = runs
        self.min_age = min_age
        self.interval = interval
        self._clock = clock

    def run(self, scheduler: SchedulerProtocol) -> ScheduledAction:
        return scheduler.schedule(self.interval, self.check_for_lost_jobs)

    def check_for_lost_jobs(self) -> dict[WorkerType, list[ActiveJobRecord]]:
        """Notify about lost jobs of all workers with a repository; return them per worker."""
        LOGGER.info("Checking for lost jobs.")
        lost: dict[WorkerType, list[ActiveJobRecord]] = {}
        for worker in REPOSITORY_WORKERS:
            repository = self._repositories.get(worker)
            if repository is None:
                continue
            try:
                lost[worker] = self._check_worker(worker, repository)
            except Exception:
                LOGGER.error(f"Lost jobs check failed for {worker.value}.", exc_info=True)
        return lost

    def find_lost_jobs(
        self, worker: WorkerType, repository: BaseJobRepository
    ) -> list[ActiveJobRecord]:
        """Return active records of ``worker`` without a job in the cluster.

        Records younger than ``min_age`` are ignored; their cluster job may
        not have been created yet.
        """
        created_before = self._clock() - self.min_age
        cluster_jobs = self._handler.find_jobs_for_worker(worker)
        cluster_run_ids = {job_state.run_id(job) for job in cluster_jobs}
        cluster_run_ids.discard(None)
        LOGGER.debug(
            f"Found {len(cluster_jobs)} active cluster jobs for {worker.value}: "
            f"{[job_state.job_name(job) for job in cluster_jobs]}"
        )

        return [
            record
            for record in repository.list_active(created_before)
            if record.run_id not in cluster_run_ids
        ]

    def _check_worker(
        self, worker: WorkerType, repository: BaseJobRepository
    ) -> list[ActiveJobRecord]:
        lost_jobs = self.find_lost_jobs(worker, repository)
        if not lost_jobs:
            return lost_jobs

        LOGGER.warning(f"Found {len(lost_jobs)} lost jobs for {worker.value}.")
        LOGGER.debug(f"Lost jobs: {lost_jobs}")
        for record in lost_jobs:
            try:
                trace_id = self._trace_id_of(record.run_id)
                self._notifier.send_lost_job_notification(record.run_id, worker, trace_id)
            except Exception:
                LOGGER.error(
                    f"Could not report lost {worker.value} job of run {record.run_id}.",
                    exc_info=True,
                )
        return lost_jobs

    def _trace_id_of(self, run_id: int) -> str:
        if self._runs is None:
            return ""
        run = self._runs.get(run_id)
        if run is None:
            LOGGER.debug(f"Run {run_id} not found, reporting lost job without trace ID.")
            return ""
        return run.trace_id


__all__ = ["LostJobsFinder"]
