"""In-memory cluster simulator used for tests and dry runs."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from collections.abc import Iterable, Iterator

from compoconf import ConfigInterface, register
from kubernetes.client import V1Job, V1ObjectMeta, V1Pod

from jobmonitor.cluster.client_protocol import ClusterClientInterface, WatchEvent


@dataclass(kw_only=True)
class FakeClusterClientConfig(ConfigInterface):
    class_name: str = "FakeClusterClient"
    resource_version: str = "1"
    # How long a watch call stays open without events once all scripted
    # streams are consumed, like a server-side watch timeout. Ends early
    # when the watches are stopped.
    idle_watch_seconds: float = 0.05


@register
class FakeClusterClient(ClusterClientInterface):
    """In-memory cluster closely mirroring the Kubernetes client behaviour.

    Pods are associated with jobs through the ``job-name`` label like in a
    real cluster. Watch streams are scripted: each call of ``watch_jobs``
    consumes the next entry registered via ``add_watch_stream``. A stream
    entry that is an exception instance is raised when reached.
    """

    config: FakeClusterClientConfig

    def __init__(self, config: FakeClusterClientConfig | None = None) -> None:
        self.config = config or FakeClusterClientConfig()
        self._lock = threading.Lock()
        self._jobs: dict[tuple[str, str], V1Job] = {}
        self._pods: dict[tuple[str, str], V1Pod] = {}
        self._watch_streams: list[list[WatchEvent | Exception]] = []
        self.deleted_jobs: list[tuple[str, str]] = []
        self.deleted_pods: list[tuple[str, str]] = []
        self.pod_queries: list[tuple[str, str]] = []
        self.watch_requests: list[tuple[str, str | None]] = []
        self.failing_deletions: set[str] = set()
        self.watches_stopped = threading.Event()

    def add_job(self, job: V1Job, namespace: str | None = None) -> V1Job:
        if job.metadata is None:
            job.metadata = V1ObjectMeta()
        namespace = namespace or job.metadata.namespace or "default"
        job.metadata.namespace = namespace
        with self._lock:
            self._jobs[(namespace, job.metadata.name or "")] = job
        return job

    def add_pod(self, name: str, job_name: str, namespace: str = "default") -> V1Pod:
        pod = V1Pod(
            metadata=V1ObjectMeta(name=name, namespace=namespace, labels={"job-name": job_name})
        )
        with self._lock:
            self._pods[(namespace, name)] = pod
        return pod

    def add_watch_stream(self, events: Iterable[WatchEvent | Exception]) -> None:
        with self._lock:
            self._watch_streams.append(list(events))

    def list_jobs(
        self,
        namespace: str,
        *,
        name_prefix: str | None = None,
        label_selector: str | None = None,
    ) -> list[V1Job]:
        selector = _parse_selector(label_selector)
        with self._lock:
            jobs = [job for (ns, _), job in self._jobs.items() if ns == namespace]
        result: list[V1Job] = []
        for job in jobs:
            name = job.metadata.name or ""
            if name_prefix is not None and not name.startswith(name_prefix):
                continue
            labels = job.metadata.labels or {}
            if any(labels.get(key) != value for key, value in selector.items()):
                continue
            result.append(job)
        return result

    def delete_job(self, name: str, namespace: str) -> None:
        self.deleted_jobs.append((name, namespace))
        if name in self.failing_deletions:
            raise RuntimeError(f"Simulated failure deleting job {name}")
        with self._lock:
            self._jobs.pop((namespace, name), None)

    def list_pods(self, namespace: str, label_selector: str) -> list[V1Pod]:
        self.pod_queries.append((namespace, label_selector))
        selector = _parse_selector(label_selector)
        with self._lock:
            pods = [pod for (ns, _), pod in self._pods.items() if ns == namespace]
        return [
            pod
            for pod in pods
            if all((pod.metadata.labels or {}).get(key) == value for key, value in selector.items())
        ]

    def delete_pod(self, name: str, namespace: str) -> None:
        self.deleted_pods.append((name, namespace))
        if name in self.failing_deletions:
            raise RuntimeError(f"Simulated failure deleting pod {name}")
        with self._lock:
            self._pods.pop((namespace, name), None)

    def current_resource_version(self, namespace: str) -> str:
        return self.config.resource_version

    def watch_jobs(self, namespace: str, resource_version: str | None) -> Iterator[WatchEvent]:
        self.watch_requests.append((namespace, resource_version))
        with self._lock:
            stream = self._watch_streams.pop(0) if self._watch_streams else None
        if stream is None:
            self.watches_stopped.wait(self.config.idle_watch_seconds)
            return
        for entry in stream:
            if isinstance(entry, Exception):
                raise entry
            yield entry

    def stop_watches(self) -> None:
        self.watches_stopped.set()


def _parse_selector(selector: str | None) -> dict[str, str]:
    if not selector:
        return {}
    parsed: dict[str, str] = {}
    for term in selector.split(","):
        key, _, value = term.partition("=")
        parsed[key.strip()] = value.strip()
    return parsed


__all__ = ["FakeClusterClient", "FakeClusterClientConfig"]
