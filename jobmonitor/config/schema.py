"""Configuration dataclasses for the job monitor.

These types are designed for use with compoconf so that cluster clients,
message senders and job repositories can be selected declaratively from
configuration files via their ``class_name``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

from compoconf import ConfigInterface

from jobmonitor.cluster import ClusterClientInterface, KubernetesClusterClientConfig
from jobmonitor.persistence import JobRepositoryInterface, RunRepositoryInterface
from jobmonitor.transport import LoggingMessageSenderConfig, MessageSenderInterface
from jobmonitor.workers import REPOSITORY_WORKERS, WorkerType


@dataclass(kw_only=True)
class TimeoutConfig(ConfigInterface):
    """Minutes after which a still running job of a worker type is terminated."""

    class_name: str = "Timeouts"
    config_minutes: int = 10
    analyzer_minutes: int = 120
    advisor_minutes: int = 30
    scanner_minutes: int = 1440
    evaluator_minutes: int = 30
    reporter_minutes: int = 60
    notifier_minutes: int = 10

    def __post_init__(self) -> None:
        for worker in WorkerType:
            minutes = getattr(self, f"{worker.value}_minutes")
            if minutes <= 0:
                raise ValueError(f"{worker.value}_minutes must be positive, got {minutes}")

    def for_worker(self, worker: WorkerType) -> timedelta:
        return timedelta(minutes=getattr(self, f"{worker.value}_minutes"))

    def as_mapping(self) -> dict[WorkerType, timedelta]:
        return {worker: self.for_worker(worker) for worker in WorkerType}


@dataclass(kw_only=True)
class MonitorConfig(ConfigInterface):
    """Settings of the monitoring activities.

    Attributes:
        namespace: Kubernetes namespace containing the worker jobs
        reaper_interval_seconds: Interval in which the reaper runs
        reaper_max_age_seconds: Completed jobs older than this are deleted by the reaper
        lost_jobs_interval_seconds: Interval in which the lost jobs detection runs
        lost_jobs_min_age_seconds: Minimum age of a database job to be considered lost.
            Protects jobs that were just stored but not yet created in the cluster.
        recently_processed_interval_seconds: Window in which a processed job is not
            processed again
        enable_watching: Whether the watcher reacts to job changes immediately
        enable_reaper: Whether the reaper runs
        enable_lost_jobs: Whether the lost jobs detection runs
        long_running_jobs_interval_seconds: Interval in which jobs exceeding their
            timeout are terminated
        enable_long_running_jobs: Whether long-running jobs are terminated
        timeouts: Per worker type timeouts of running jobs
        stuck_jobs_interval_seconds: Interval in which the stuck runs detection runs
        stuck_jobs_min_age_seconds: Minimum age of a run to be checked for stuck jobs
        enable_stuck_jobs: Whether the stuck runs detection runs. Requires a run repository.
        watch_retry_delay_seconds: Pause before reconnecting a failed watch
        watch_stop_timeout_seconds: How long stopping waits for the watch thread to end
        timezone: Time zone used for the reaper's reference time
    """

    class_name: str = "Monitor"
    namespace: str = "default"
    reaper_interval_seconds: int = 600
    reaper_max_age_seconds: int = 600
    lost_jobs_interval_seconds: int = 120
    lost_jobs_min_age_seconds: int = 30
    recently_processed_interval_seconds: int = 60
    enable_watching: bool = True
    enable_reaper: bool = True
    enable_lost_jobs: bool = True
    long_running_jobs_interval_seconds: int = 300
    enable_long_running_jobs: bool = False
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    stuck_jobs_interval_seconds: int = 600
    stuck_jobs_min_age_seconds: int = 1800
    enable_stuck_jobs: bool = False
    watch_retry_delay_seconds: float = 5.0
    watch_stop_timeout_seconds: float = 2.0
    timezone: str = "UTC"

    def __post_init__(self) -> None:
        for name in (
            "reaper_interval_seconds",
            "lost_jobs_interval_seconds",
            "recently_processed_interval_seconds",
            "long_running_jobs_interval_seconds",
            "stuck_jobs_interval_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        for name in (
            "reaper_max_age_seconds",
            "lost_jobs_min_age_seconds",
            "stuck_jobs_min_age_seconds",
            "watch_stop_timeout_seconds",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative, got {getattr(self, name)}")

    @property
    def reaper_interval(self) -> timedelta:
        return timedelta(seconds=self.reaper_interval_seconds)

    @property
    def reaper_max_age(self) -> timedelta:
        return timedelta(seconds=self.reaper_max_age_seconds)

    @property
    def lost_jobs_interval(self) -> timedelta:
        return timedelta(seconds=self.lost_jobs_interval_seconds)

    @property
    def lost_jobs_min_age(self) -> timedelta:
        return timedelta(seconds=self.lost_jobs_min_age_seconds)

    @property
    def long_running_jobs_interval(self) -> timedelta:
        return timedelta(seconds=self.long_running_jobs_interval_seconds)

    @property
    def stuck_jobs_interval(self) -> timedelta:
        return timedelta(seconds=self.stuck_jobs_interval_seconds)

    @property
    def stuck_jobs_min_age(self) -> timedelta:
        return timedelta(seconds=self.stuck_jobs_min_age_seconds)

    @property
    def recently_processed_interval(self) -> timedelta:
        return timedelta(seconds=self.recently_processed_interval_seconds)

    @property
    def tz(self) -> tzinfo:
        if self.timezone.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(self.timezone)


@dataclass(kw_only=True)
class RepositoriesConfig(ConfigInterface):
    """Job repositories per worker type; unset workers are not checked for lost jobs.

    Config jobs have no repository.
    """

    class_name: str = "Repositories"
    analyzer: JobRepositoryInterface.cfgtype | None = None
    advisor: JobRepositoryInterface.cfgtype | None = None
    scanner: JobRepositoryInterface.cfgtype | None = None
    evaluator: JobRepositoryInterface.cfgtype | None = None
    reporter: JobRepositoryInterface.cfgtype | None = None
    notifier: JobRepositoryInterface.cfgtype | None = None

    def for_worker(self, worker: WorkerType) -> JobRepositoryInterface.cfgtype | None:
        if worker not in REPOSITORY_WORKERS:
            return None
        return getattr(self, worker.value)


@dataclass(kw_only=True)
class AppConfig(ConfigInterface):
    """Root configuration of the job monitor application."""

    class_name: str = "App"
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    cluster: ClusterClientInterface.cfgtype = field(default_factory=KubernetesClusterClientConfig)
    sender: MessageSenderInterface.cfgtype = field(default_factory=LoggingMessageSenderConfig)
    repositories: RepositoriesConfig = field(default_factory=RepositoriesConfig)
    runs: RunRepositoryInterface.cfgtype | None = None


__all__ = ["AppConfig", "MonitorConfig", "RepositoriesConfig", "TimeoutConfig"]
