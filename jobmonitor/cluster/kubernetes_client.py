"""Cluster client backed by the official Kubernetes Python client."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any
from collections.abc import Iterator

from compoconf import ConfigInterface, register
from kubernetes import client, config as kube_config, watch
from kubernetes.client import V1Job, V1Pod
from kubernetes.client.rest import ApiException

from jobmonitor.cluster.client_protocol import ClusterClientInterface, WatchEvent

LOGGER = logging.getLogger(__name__)


@dataclass(kw_only=True)
class KubernetesClusterClientConfig(ConfigInterface):
    """Connection settings for the Kubernetes API.

    Attributes:
        in_cluster: Use the service account mounted into the pod
        kubeconfig: Path to a kubeconfig file (only used if ``in_cluster`` is false)
        context: Optional kubeconfig context
        watch_timeout_seconds: Server-side timeout after which a watch stream ends
        propagation_policy: Deletion propagation policy for jobs
    """

    class_name: str = "KubernetesClusterClient"
    in_cluster: bool = True
    kubeconfig: str | None = None
    context: str | None = None
    watch_timeout_seconds: int = 300
    propagation_policy: str = "Background"


@register
class KubernetesClusterClient(ClusterClientInterface):
    """Query and clean up worker jobs through the Kubernetes API.

    Deleting a resource that no longer exists (HTTP 404) is logged and
    tolerated, since several monitor activities may clean up the same job.
    All other API errors are raised to the caller.
    """

    config: KubernetesClusterClientConfig

    def __init__(
        self,
        config: KubernetesClusterClientConfig | None = None,
        *,
        api_client: client.ApiClient | None = None,
    ) -> None:
        self.config = config or KubernetesClusterClientConfig()
        if api_client is None:
            if self.config.in_cluster:
                kube_config.load_incluster_config()
            else:
                kube_config.load_kube_config(
                    config_file=self.config.kubeconfig, context=self.config.context
                )
        self._batch_api = client.BatchV1Api(api_client)
        self._core_api = client.CoreV1Api(api_client)
        self._watch_lock = threading.Lock()
        self._active_watches: set[watch.Watch] = set()

    def list_jobs(
        self,
        namespace: str,
        *,
        name_prefix: str | None = None,
        label_selector: str | None = None,
    ) -> list[V1Job]:
        kwargs: dict[str, Any] = {}
        if label_selector:
            kwargs["label_selector"] = label_selector
        jobs = self._batch_api.list_namespaced_job(namespace, **kwargs).items or []
        if name_prefix is None:
            return list(jobs)
        # Field selectors only support equality on metadata.name, so prefix
        # matching happens on the listed objects.
        return [
            job
            for job in jobs
            if job.metadata is not None and (job.metadata.name or "").startswith(name_prefix)
        ]

    def delete_job(self, name: str, namespace: str) -> None:
        try:
            self._batch_api.delete_namespaced_job(
                name, namespace, propagation_policy=self.config.propagation_policy
            )
        except ApiException as exc:
            if exc.status == 404:
                LOGGER.warning(f"[job {name}] already removed from namespace {namespace}")
                return
            raise
        LOGGER.info(f"[job {name}] deletion requested in namespace {namespace}")

    def list_pods(self, namespace: str, label_selector: str) -> list[V1Pod]:
        return list(
            self._core_api.list_namespaced_pod(namespace, label_selector=label_selector).items or []
        )

    def delete_pod(self, name: str, namespace: str) -> None:
        try:
            self._core_api.delete_namespaced_pod(name, namespace)
        except ApiException as exc:
            if exc.status == 404:
                LOGGER.warning(f"Pod {name} already removed from namespace {namespace}")
                return
            raise

    def current_resource_version(self, namespace: str) -> str:
        job_list = self._batch_api.list_namespaced_job(namespace, limit=1)
        return job_list.metadata.resource_version

    def watch_jobs(self, namespace: str, resource_version: str | None) -> Iterator[WatchEvent]:
        watcher = watch.Watch()
        with self._watch_lock:
            self._active_watches.add(watcher)
        kwargs: dict[str, Any] = {
            "allow_watch_bookmarks": True,
            "timeout_seconds": self.config.watch_timeout_seconds,
        }
        if resource_version:
            kwargs["resource_version"] = resource_version
        try:
            for event in watcher.stream(self._batch_api.list_namespaced_job, namespace, **kwargs):
                job = event.get("object")
                if not isinstance(job, V1Job):
                    LOGGER.debug(f"Skipping watch event without job payload: {event.get('type')}")
                    continue
                version = job.metadata.resource_version if job.metadata is not None else None
                yield WatchEvent(type=event["type"], job=job, resource_version=version)
        finally:
            watcher.stop()
            with self._watch_lock:
                self._active_watches.discard(watcher)

    def stop_watches(self) -> None:
        # A stopped watch ends after the next event or bookmark it receives,
        # at the latest when the server-side timeout closes the stream.
        with self._watch_lock:
            watchers = list(self._active_watches)
        for watcher in watchers:
            watcher.stop()


__all__ = ["KubernetesClusterClient", "KubernetesClusterClientConfig"]
