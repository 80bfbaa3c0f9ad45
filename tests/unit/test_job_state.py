from datetime import datetime, timezone

from kubernetes.client import V1Job

from jobmonitor.cluster import job_state
from jobmonitor.workers import WorkerType


def test_failed_job_is_failed_and_completed(make_job):
    job = make_job("analyzer-1", failed=True)

    assert job_state.is_failed(job)
    assert job_state.is_completed(job)
    assert job_state.completion_time(job) is None


def test_successful_job_is_completed_but_not_failed(make_job):
    finished = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    job = make_job("scanner-1", complete=True, completion_time=finished)

    assert job_state.is_completed(job)
    assert not job_state.is_failed(job)
    assert job_state.completion_time(job) == finished


def test_completion_time_alone_marks_job_completed(make_job):
    job = make_job("scanner-1", completion_time=datetime(2024, 3, 1, tzinfo=timezone.utc))

    assert job_state.is_completed(job)


def test_running_job_is_neither_failed_nor_completed(make_job):
    job = make_job("analyzer-1")

    assert not job_state.is_failed(job)
    assert not job_state.is_completed(job)


def test_job_without_status_or_metadata():
    job = V1Job()

    assert job_state.job_name(job) is None
    assert not job_state.is_failed(job)
    assert not job_state.is_completed(job)
    assert job_state.trace_id(job) is None
    assert job_state.run_id(job) is None


def test_trace_id_is_assembled_from_ordered_labels(make_job, failed_job_labels):
    job = make_job("analyzer-1", labels=failed_job_labels)

    assert job_state.trace_id(job) == "trace1_trace2_trace3"


def test_trace_id_stops_at_first_gap(make_job):
    job = make_job("analyzer-1", labels={"trace-id-0": "a", "trace-id-1": "b", "trace-id-3": "d"})

    assert job_state.trace_id(job) == "ab"


def test_trace_id_requires_first_fragment(make_job):
    job = make_job("analyzer-1", labels={"trace-id-1": "b"})

    assert job_state.trace_id(job) is None


def test_run_id_parsing(make_job):
    assert job_state.run_id(make_job("analyzer-1", labels={"run-id": "42"})) == 42
    assert job_state.run_id(make_job("analyzer-1", labels={"run-id": "not-a-number"})) is None
    assert job_state.run_id(make_job("analyzer-1", labels={})) is None


def test_worker_type_of_job_name():
    assert job_state.worker_type_of("analyzer-run-17") == "analyzer"
    assert job_state.worker_type_of("reporter") == "reporter"
    assert WorkerType.ADVISOR.job_name_prefix == "advisor-"
    assert WorkerType.CONFIG.job_name_prefix == "config-"


def test_creation_time(make_job):
    created = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)

    assert job_state.creation_time(make_job("config-1", created=created)) == created
    assert job_state.creation_time(make_job("config-1")) is None
    assert job_state.creation_time(V1Job()) is None
