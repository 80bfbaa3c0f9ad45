"""Composition root wiring the watcher and the periodic monitor activities."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Mapping

from jobmonitor.cluster import ClusterClientInterface, ClusterClientProtocol, job_state
from jobmonitor.config.schema import AppConfig, MonitorConfig
from jobmonitor.monitor.handler import JobHandler
from jobmonitor.monitor.long_running import LongRunningJobsFinder
from jobmonitor.monitor.lost_jobs import LostJobsFinder
from jobmonitor.monitor.notifier import FailureNotifier
from jobmonitor.monitor.reaper import Reaper
from jobmonitor.monitor.recency import Clock, RecencyCache, utc_now
from jobmonitor.monitor.scheduler import Scheduler, SchedulerProtocol
from jobmonitor.monitor.stuck_runs import StuckRunsFinder
from jobmonitor.monitor.watch import JobWatchHelper
from jobmonitor.persistence import (
    BaseJobRepository,
    BaseRunRepository,
    JobRepositoryInterface,
    RunRepositoryInterface,
)
from jobmonitor.transport import BaseMessageSender, MessageSenderInterface
from jobmonitor.workers import WorkerType

LOGGER = logging.getLogger(__name__)


class MonitorComponent:
    """Start the activities enabled in the configuration.

    - The watcher reacts on job modifications immediately; it runs in its
      own daemon thread, since the watch stream blocks.
    - The reaper, the lost jobs finder, the long-running jobs finder and the
      stuck runs finder run periodically on the scheduler.

    All activities share one ``JobHandler`` and thus one recency cache.
    """

    def __init__(
        self,
        config: MonitorConfig,
        *,
        cluster: ClusterClientProtocol,
        sender: BaseMessageSender,
        repositories: Mapping[WorkerType, BaseJobRepository] | None = None,
        runs: BaseRunRepository | None = None,
        scheduler: SchedulerProtocol | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.config = config
        self.cluster = cluster
        self.scheduler = scheduler if scheduler is not None else Scheduler()
        self.recent_jobs = RecencyCache(config.recently_processed_interval, clock)
        self.notifier = FailureNotifier(sender)
        self.handler = JobHandler(cluster, self.notifier, self.recent_jobs, config.namespace, clock)
        repositories = repositories or {}
        self.reaper = Reaper(
            self.handler,
            max_age=config.reaper_max_age,
            interval=config.reaper_interval,
            clock=clock,
            tz=config.tz,
        )
        self.lost_jobs_finder = LostJobsFinder(
            self.handler,
            self.notifier,
            repositories,
            min_age=config.lost_jobs_min_age,
            interval=config.lost_jobs_interval,
            clock=clock,
            runs=runs,
        )
        self.long_running_jobs_finder = LongRunningJobsFinder(
            self.handler,
            config.timeouts.as_mapping(),
            interval=config.long_running_jobs_interval,
            clock=clock,
        )
        self.stuck_runs_finder: StuckRunsFinder | None = None
        if runs is not None:
            self.stuck_runs_finder = StuckRunsFinder(
                runs,
                repositories,
                self.notifier,
                min_age=config.stuck_jobs_min_age,
                interval=config.stuck_jobs_interval,
                clock=clock,
            )
        self._stop_event = threading.Event()
        self.watch_helper: JobWatchHelper | None = None
        self._watch_thread: threading.Thread | None = None

    @property
    def watching(self) -> bool:
        return self._watch_thread is not None and self._watch_thread.is_alive()

    async def start(self) -> None:
        LOGGER.info(f"Starting job monitor for namespace {self.config.namespace}.")
        self._stop_event.clear()

        if self.config.enable_reaper:
            LOGGER.info("Starting reaper component.")
            self.reaper.run(self.scheduler)

        if self.config.enable_lost_jobs:
            LOGGER.info("Starting lost jobs detection component.")
            self.lost_jobs_finder.run(self.scheduler)

        if self.config.enable_long_running_jobs:
            LOGGER.info("Starting long-running jobs detection component.")
            self.long_running_jobs_finder.run(self.scheduler)

        if self.config.enable_stuck_jobs:
            if self.stuck_runs_finder is None:
                LOGGER.warning("Stuck jobs detection is enabled, but no run repository is configured.")
            else:
                LOGGER.info("Starting stuck jobs detection component.")
                self.stuck_runs_finder.run(self.scheduler)

        if self.config.enable_watching:
            LOGGER.info("Starting watcher component.")
            self.watch_helper = JobWatchHelper(
                self.cluster,
                self.config.namespace,
                retry_delay_seconds=self.config.watch_retry_delay_seconds,
                stop_event=self._stop_event,
            )
            self._watch_thread = threading.Thread(
                target=self._consume_watch_events, name="job-watch", daemon=True
            )
            self._watch_thread.start()

    def _consume_watch_events(self) -> None:
        assert self.watch_helper is not None
        try:
            for event in self.watch_helper.events():
                job = event.job
                # Running jobs are modified as well (e.g. when pods start); only
                # finished ones are cleaned up.
                if job is None or not job_state.is_completed(job):
                    continue
                try:
                    self.handler.delete_and_notify_if_failed(job)
                except Exception:
                    LOGGER.error(
                        f"[job {job_state.job_name(job)}] watcher could not process job.",
                        exc_info=True,
                    )
        except Exception:
            LOGGER.error("Watcher terminated with an error.", exc_info=True)
            return
        LOGGER.info("Watcher component stopped.")

    async def stop(self) -> None:
        LOGGER.info("Stopping job monitor.")
        self._stop_event.set()
        if self.watch_helper is not None:
            self.watch_helper.stop()
        await self.scheduler.shutdown()
        if self._watch_thread is None:
            return
        await asyncio.to_thread(self._watch_thread.join, self.config.watch_stop_timeout_seconds)
        if self._watch_thread.is_alive():
            # Daemon thread: it does not keep the process alive.
            LOGGER.warning(
                f"Watcher did not stop within {self.config.watch_stop_timeout_seconds}s, "
                "leaving its blocked watch behind."
            )
            return
        self._watch_thread = None

    async def run_forever(self) -> None:
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()


def build_repositories(config: AppConfig) -> dict[WorkerType, BaseJobRepository]:
    repositories: dict[WorkerType, BaseJobRepository] = {}
    for worker in WorkerType:
        repository_config = config.repositories.for_worker(worker)
        if repository_config is not None:
            repositories[worker] = repository_config.instantiate(JobRepositoryInterface)
    return repositories


def build_component(
    config: AppConfig,
    *,
    scheduler: SchedulerProtocol | None = None,
    clock: Clock = utc_now,
) -> MonitorComponent:
    """Instantiate the collaborators described by ``config`` and wire them."""
    cluster = config.cluster.instantiate(ClusterClientInterface)
    sender = config.sender.instantiate(MessageSenderInterface)
    runs = config.runs.instantiate(RunRepositoryInterface) if config.runs is not None else None
    return MonitorComponent(
        config.monitor,
        cluster=cluster,
        sender=sender,
        repositories=build_repositories(config),
        runs=runs,
        scheduler=scheduler,
        clock=clock,
    )


__all__ = ["MonitorComponent", "build_component", "build_repositories"]
