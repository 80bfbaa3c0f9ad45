"""Periodic detection of runs that stay active after all their jobs ended.

When the message that a worker finished gets lost, the orchestrator never
schedules the next stage and the run stays active although nothing runs
for it anymore.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from collections.abc import Mapping

from jobmonitor.monitor.notifier import FailureNotifier
from jobmonitor.monitor.recency import Clock, utc_now
from jobmonitor.monitor.scheduler import ScheduledAction, SchedulerProtocol
from jobmonitor.persistence import ActiveJobRecord, BaseJobRepository, BaseRunRepository, RunRecord
from jobmonitor.workers import REPOSITORY_WORKERS, WorkerType

LOGGER = logging.getLogger(__name__)


class StuckRunsFinder:
    """Report active runs whose jobs have all reached a final status.

    Runs without any job are reported as well. Runs younger than ``min_age``
    are ignored, since their first job may not have been created yet.
    """

    def __init__(
        self,
        runs: BaseRunRepository,
        repositories: Mapping[WorkerType, BaseJobRepository],
        notifier: FailureNotifier,
        min_age: timedelta,
        interval: timedelta,
        clock: Clock = utc_now,
    ) -> None:
        self._runs = runs
        self._repositories = dict(repositories)
        self._notifier = notifier
        self.min_age = min_age
        self.interval = interval
        self._clock = clock

    def run(self, scheduler: SchedulerProtocol) -> ScheduledAction:
        return scheduler.schedule(self.interval, self.check_for_stuck_runs)

    def check_for_stuck_runs(self) -> list[RunRecord]:
        """Notify about stuck runs and return them."""
        LOGGER.info("Checking for stuck runs.")
        stuck: list[RunRecord] = []
        for run in self._runs.list_active(self._clock() - self.min_age):
            try:
                if not self.is_stuck(run):
                    continue
                stuck.append(run)
                LOGGER.warning(f"Run {run.run_id} is active, but none of its jobs is.")
                self._notifier.send_stuck_run_notification(run)
            except Exception:
                LOGGER.error(f"Could not check run {run.run_id} for stuck jobs.", exc_info=True)
        return stuck

    def is_stuck(self, run: RunRecord) -> bool:
        jobs = self._jobs_of(run)
        unfinished = [worker.value for worker, job in jobs.items() if not job.status.final]
        if unfinished:
            LOGGER.debug(f"Run {run.run_id} still has unfinished jobs: {unfinished}")
            return False
        return True

    def _jobs_of(self, run: RunRecord) -> dict[WorkerType, ActiveJobRecord]:
        jobs: dict[WorkerType, ActiveJobRecord] = {}
        for worker in REPOSITORY_WORKERS:
            repository = self._repositories.get(worker)
            if repository is None:
                continue
            job = repository.get_for_run(run.run_id)
            if job is not None:
                jobs[worker] = job
        return jobs


__all__ = ["StuckRunsFinder"]
