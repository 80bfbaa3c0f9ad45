"""Classification of Kubernetes job objects and access to their labels."""

from __future__ import annotations

from datetime import datetime

from kubernetes.client import V1Job

FAILED_CONDITION = "Failed"
COMPLETE_CONDITION = "Complete"
COMPLETED_CONDITIONS = frozenset({COMPLETE_CONDITION, FAILED_CONDITION})

RUN_ID_LABEL = "run-id"
TRACE_LABEL_PREFIX = "trace-id-"
WORKER_NAME_SEPARATOR = "-"


def _condition_types(job: V1Job) -> list[str]:
    status = job.status
    if status is None or not status.conditions:
        return []
    return [condition.type for condition in status.conditions if condition is not None]


def _labels(job: V1Job) -> dict[str, str]:
    if job.metadata is None or not job.metadata.labels:
        return {}
    return dict(job.metadata.labels)


def job_name(job: V1Job) -> str | None:
    if job.metadata is None:
        return None
    return job.metadata.name or None


def creation_time(job: V1Job) -> datetime | None:
    if job.metadata is None:
        return None
    return job.metadata.creation_timestamp


def completion_time(job: V1Job) -> datetime | None:
    if job.status is None:
        return None
    return job.status.completion_time


def is_failed(job: V1Job) -> bool:
    """Return whether the job carries a ``Failed`` condition.

    Jobs that are still running report ``False``.
    """
    return FAILED_CONDITION in _condition_types(job)


def is_completed(job: V1Job) -> bool:
    """Return whether the job finished, either successfully or in failure.

    A completion time is only set for jobs that completed normally; failed
    jobs are recognized by their condition instead.
    """
    if completion_time(job) is not None:
        return True
    return any(condition in COMPLETED_CONDITIONS for condition in _condition_types(job))


def trace_id(job: V1Job) -> str | None:
    """Assemble the trace ID from the ordered ``trace-id-<n>`` labels.

    Kubernetes limits label values to 63 characters, so longer IDs are split
    over several labels. Reading stops at the first missing index.
    """
    labels = _labels(job)
    fragments: list[str] = []
    index = 0
    while f"{TRACE_LABEL_PREFIX}{index}" in labels:
        fragments.append(labels[f"{TRACE_LABEL_PREFIX}{index}"])
        index += 1
    if not fragments:
        return None
    return "".join(fragments)


def run_id(job: V1Job) -> int | None:
    value = _labels(job).get(RUN_ID_LABEL)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def worker_type_of(name: str) -> str:
    """Return the worker type encoded as prefix of a job name."""
    return name.split(WORKER_NAME_SEPARATOR, 1)[0]


__all__ = [
    "COMPLETED_CONDITIONS",
    "RUN_ID_LABEL",
    "TRACE_LABEL_PREFIX",
    "completion_time",
    "creation_time",
    "is_completed",
    "is_failed",
    "job_name",
    "run_id",
    "trace_id",
    "worker_type_of",
]
