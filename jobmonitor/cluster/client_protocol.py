"""Protocol defining the cluster client interface required by the monitor.

This protocol allows the monitor to work with different cluster backends:
- Kubernetes (via the official ``kubernetes`` client)
- An in-memory fake cluster for tests and dry runs
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable
from collections.abc import Iterator

from compoconf import RegistrableConfigInterface, register_interface
from kubernetes.client import V1Job, V1Pod


MODIFIED_EVENT = "MODIFIED"
BOOKMARK_EVENT = "BOOKMARK"


@dataclass(frozen=True)
class WatchEvent:
    """Single change notification from a job watch stream."""

    type: str
    job: V1Job | None = None
    resource_version: str | None = None


@register_interface
class ClusterClientInterface(RegistrableConfigInterface):
    """Registrable interface for cluster backends."""


@runtime_checkable
class ClusterClientProtocol(Protocol):
    """Protocol for listing, deleting and watching worker jobs.

    Any class implementing these methods can be used by the job handler and
    the watch helper.
    """

    def list_jobs(
        self,
        namespace: str,
        *,
        name_prefix: str | None = None,
        label_selector: str | None = None,
    ) -> list[V1Job]:  # pragma: no cover
        """List the jobs in a namespace.

        Args:
            namespace: Namespace to query
            name_prefix: Only return jobs whose name starts with this prefix
            label_selector: Optional Kubernetes label selector

        Returns:
            The matching job objects
        """
        ...

    def delete_job(self, name: str, namespace: str) -> None:  # pragma: no cover
        ...

    def list_pods(self, namespace: str, label_selector: str) -> list[V1Pod]:  # pragma: no cover
        ...

    def delete_pod(self, name: str, namespace: str) -> None:  # pragma: no cover
        ...

    def current_resource_version(self, namespace: str) -> str:  # pragma: no cover
        """Return the resource version of the current job list.

        A watch started at this version receives all changes made afterwards.
        """
        ...

    def watch_jobs(
        self,
        namespace: str,
        resource_version: str | None,
    ) -> Iterator[WatchEvent]:  # pragma: no cover
        """Stream job change events starting after ``resource_version``.

        The iterator ends when the server closes the watch; callers are
        expected to reconnect.
        """
        ...

    def stop_watches(self) -> None:  # pragma: no cover
        """Ask all open watch streams to end, e.g. on shutdown."""
        ...


__all__ = [
    "BOOKMARK_EVENT",
    "ClusterClientInterface",
    "ClusterClientProtocol",
    "MODIFIED_EVENT",
    "WatchEvent",
]
