import sys
from datetime import datetime
from pathlib import Path

import pytest
from kubernetes.client import V1Job, V1JobCondition, V1JobStatus, V1ObjectMeta

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _build_job(
    name: str | None,
    *,
    failed: bool = False,
    complete: bool = False,
    completion_time: datetime | None = None,
    created: datetime | None = None,
    labels: dict[str, str] | None = None,
    namespace: str = "default",
) -> V1Job:
    conditions = []
    if failed:
        conditions.append(V1JobCondition(type="Failed", status="True"))
    if complete:
        conditions.append(V1JobCondition(type="Complete", status="True"))
    return V1Job(
        metadata=V1ObjectMeta(
            name=name, namespace=namespace, labels=labels, creation_timestamp=created
        ),
        status=V1JobStatus(conditions=conditions or None, completion_time=completion_time),
    )


@pytest.fixture
def make_job():
    """Factory for job objects as returned by the Kubernetes API."""
    return _build_job


@pytest.fixture
def failed_job_labels() -> dict[str, str]:
    return {
        "run-id": "1234",
        "trace-id-0": "trace1_",
        "trace-id-1": "trace2_",
        "trace-id-2": "trace3",
    }
