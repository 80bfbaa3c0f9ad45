import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone

from jobmonitor.cluster import MODIFIED_EVENT, FakeClusterClient, FakeClusterClientConfig, WatchEvent
from jobmonitor.config.schema import AppConfig, MonitorConfig, RepositoriesConfig, TimeoutConfig
from jobmonitor.monitor.component import MonitorComponent, build_component
from jobmonitor.monitor.scheduler import ManualScheduler
from jobmonitor.persistence import (
    ActiveJobRecord,
    InMemoryJobRepository,
    InMemoryJobRepositoryConfig,
    InMemoryRunRepository,
    InMemoryRunRepositoryConfig,
    RunRecord,
)
from jobmonitor.transport import (
    InMemoryMessageSender,
    InMemoryMessageSenderConfig,
    LostJob,
    StuckRun,
    WorkerError,
)
from jobmonitor.workers import WorkerType

NOW = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


def _config(**kwargs) -> MonitorConfig:
    defaults = dict(
        reaper_interval_seconds=300,
        lost_jobs_interval_seconds=120,
        watch_retry_delay_seconds=0.0,
    )
    defaults.update(kwargs)
    return MonitorConfig(**defaults)


async def _wait_for(predicate, timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        assert loop.time() < deadline, "condition not reached in time"
        await asyncio.sleep(0.01)


def test_enabled_activities_are_scheduled():
    scheduler = ManualScheduler()
    component = MonitorComponent(
        _config(enable_watching=False),
        cluster=FakeClusterClient(),
        sender=InMemoryMessageSender(),
        scheduler=scheduler,
    )

    async def scenario() -> None:
        await component.start()
        assert not component.watching
        await component.stop()

    asyncio.run(scenario())

    intervals = sorted(schedule.interval for schedule in scheduler.schedules)
    assert intervals == [timedelta(seconds=120), timedelta(seconds=300)]
    assert all(schedule.cancelled for schedule in scheduler.schedules)


def test_disabled_activities_are_not_started():
    scheduler = ManualScheduler()
    cluster = FakeClusterClient()
    component = MonitorComponent(
        _config(enable_watching=False, enable_reaper=False, enable_lost_jobs=False),
        cluster=cluster,
        sender=InMemoryMessageSender(),
        scheduler=scheduler,
    )

    async def scenario() -> None:
        await component.start()
        await component.stop()

    asyncio.run(scenario())

    assert scheduler.schedules == []
    assert cluster.watch_requests == []


def test_watched_failed_job_is_reported_and_deleted(make_job, failed_job_labels):
    cluster = FakeClusterClient(FakeClusterClientConfig(idle_watch_seconds=0.01))
    sender = InMemoryMessageSender()
    failed = cluster.add_job(
        make_job("analyzer-1234", failed=True, completion_time=NOW, labels=failed_job_labels)
    )
    running = cluster.add_job(make_job("scanner-1234", labels=failed_job_labels))
    cluster.add_watch_stream(
        [
            WatchEvent(type=MODIFIED_EVENT, job=running, resource_version="2"),
            WatchEvent(type=MODIFIED_EVENT, job=failed, resource_version="3"),
        ]
    )
    component = MonitorComponent(
        _config(enable_reaper=False, enable_lost_jobs=False),
        cluster=cluster,
        sender=sender,
        scheduler=ManualScheduler(),
    )

    async def scenario() -> None:
        await component.start()
        assert component.watching
        await _wait_for(lambda: ("analyzer-1234", "default") in cluster.deleted_jobs)
        await component.stop()

    asyncio.run(scenario())

    assert [message.payload for message in sender.messages] == [WorkerError("analyzer")]
    assert cluster.deleted_jobs == [("analyzer-1234", "default")]
    assert [job.metadata.name for job in cluster.list_jobs("default")] == ["scanner-1234"]


def test_triggered_schedules_share_handler(make_job, failed_job_labels):
    scheduler = ManualScheduler()
    cluster = FakeClusterClient()
    sender = InMemoryMessageSender()
    cluster.add_job(make_job("reporter-1234", failed=True, labels=failed_job_labels))
    repository = InMemoryJobRepository(
        records=[ActiveJobRecord(run_id=55, created_at=NOW - timedelta(hours=1))]
    )
    component = MonitorComponent(
        _config(enable_watching=False),
        cluster=cluster,
        sender=sender,
        repositories={WorkerType.EVALUATOR: repository},
        scheduler=scheduler,
        clock=lambda: NOW,
    )

    async def scenario() -> None:
        await component.start()
        scheduler.expect_schedule(timedelta(seconds=300)).trigger(times=2)
        scheduler.expect_schedule(timedelta(seconds=120)).trigger()
        await component.stop()

    asyncio.run(scenario())

    assert [message.payload for message in sender.messages] == [
        WorkerError("reporter"),
        LostJob("evaluator"),
    ]


def test_build_component_from_config():
    config = AppConfig(
        monitor=_config(namespace="workers"),
        cluster=FakeClusterClientConfig(),
        sender=InMemoryMessageSenderConfig(),
        repositories=RepositoriesConfig(analyzer=InMemoryJobRepositoryConfig()),
    )

    component = build_component(config, scheduler=ManualScheduler())

    assert isinstance(component.cluster, FakeClusterClient)
    assert component.handler.namespace == "workers"
    assert component.lost_jobs_finder.min_age == timedelta(seconds=30)
    assert component.stuck_runs_finder is None


def test_build_component_with_run_repository():
    config = AppConfig(
        monitor=_config(),
        cluster=FakeClusterClientConfig(),
        sender=InMemoryMessageSenderConfig(),
        runs=InMemoryRunRepositoryConfig(),
    )

    component = build_component(config, scheduler=ManualScheduler())

    assert component.stuck_runs_finder is not None
    assert component.stuck_runs_finder.min_age == timedelta(seconds=1800)


def test_stop_ends_an_open_watch_promptly():
    cluster = FakeClusterClient(FakeClusterClientConfig(idle_watch_seconds=3.0))
    component = MonitorComponent(
        _config(enable_reaper=False, enable_lost_jobs=False),
        cluster=cluster,
        sender=InMemoryMessageSender(),
        scheduler=ManualScheduler(),
    )

    async def scenario() -> float:
        await component.start()
        await asyncio.sleep(0.2)
        started = time.monotonic()
        await component.stop()
        return time.monotonic() - started

    elapsed = asyncio.run(scenario())

    assert elapsed < 1.0
    assert cluster.watches_stopped.is_set()
    assert not component.watching


def test_stop_does_not_wait_for_a_watch_ignoring_the_stop_request(caplog):
    class UnresponsiveCluster(FakeClusterClient):
        def watch_jobs(self, namespace, resource_version):
            self.watch_requests.append((namespace, resource_version))
            time.sleep(3.0)
            return iter(())

    cluster = UnresponsiveCluster()
    component = MonitorComponent(
        _config(enable_reaper=False, enable_lost_jobs=False, watch_stop_timeout_seconds=0.2),
        cluster=cluster,
        sender=InMemoryMessageSender(),
        scheduler=ManualScheduler(),
    )

    async def scenario() -> float:
        await component.start()
        await _wait_for(lambda: cluster.watch_requests)
        started = time.monotonic()
        await component.stop()
        return time.monotonic() - started

    with caplog.at_level(logging.WARNING, logger="jobmonitor.monitor.component"):
        elapsed = asyncio.run(scenario())

    assert elapsed < 1.0
    assert "Watcher did not stop" in caplog.text


def test_long_running_and_stuck_jobs_detection_are_scheduled(make_job, failed_job_labels):
    scheduler = ManualScheduler()
    cluster = FakeClusterClient()
    sender = InMemoryMessageSender()
    cluster.add_job(
        make_job("config-1234", created=NOW - timedelta(minutes=20), labels=failed_job_labels)
    )
    runs = InMemoryRunRepository(
        records=[RunRecord(run_id=77, trace_id="trace-77", created_at=NOW - timedelta(hours=2))]
    )
    component = MonitorComponent(
        _config(
            enable_watching=False,
            enable_reaper=False,
            enable_lost_jobs=False,
            enable_long_running_jobs=True,
            long_running_jobs_interval_seconds=240,
            timeouts=TimeoutConfig(config_minutes=15),
            enable_stuck_jobs=True,
            stuck_jobs_interval_seconds=900,
        ),
        cluster=cluster,
        sender=sender,
        runs=runs,
        scheduler=scheduler,
        clock=lambda: NOW,
    )

    async def scenario() -> None:
        await component.start()
        scheduler.expect_schedule(timedelta(seconds=240)).trigger()
        scheduler.expect_schedule(timedelta(seconds=900)).trigger()
        await component.stop()

    asyncio.run(scenario())

    assert [message.payload for message in sender.messages] == [WorkerError("config"), StuckRun(77)]
    assert cluster.deleted_jobs == [("config-1234", "default")]


def test_stuck_jobs_detection_requires_run_repository(caplog):
    scheduler = ManualScheduler()
    component = MonitorComponent(
        _config(enable_watching=False, enable_reaper=False, enable_lost_jobs=False, enable_stuck_jobs=True),
        cluster=FakeClusterClient(),
        sender=InMemoryMessageSender(),
        scheduler=scheduler,
    )

    async def scenario() -> None:
        await component.start()
        await component.stop()

    with caplog.at_level(logging.WARNING, logger="jobmonitor.monitor.component"):
        asyncio.run(scenario())

    assert scheduler.schedules == []
    assert "no run repository" in caplog.text
