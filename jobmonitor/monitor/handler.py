"""Reconciliation of single cluster jobs: notify about failures, then clean up."""

from __future__ import annotations

import logging
from datetime import datetime

from kubernetes.client import V1Job, V1Pod

from jobmonitor.cluster import ClusterClientProtocol, job_state
from jobmonitor.monitor.notifier import FailureNotifier
from jobmonitor.monitor.recency import Clock, RecencyCache, utc_now
from jobmonitor.workers import WorkerType

LOGGER = logging.getLogger(__name__)

JOB_NAME_LABEL = "job-name"


class JobHandler:
    """Shared job operations of the watcher and the periodic monitor activities."""

    def __init__(
        self,
        cluster: ClusterClientProtocol,
        notifier: FailureNotifier,
        recent_jobs: RecencyCache,
        namespace: str,
        clock: Clock = utc_now,
    ) -> None:
        self._cluster = cluster
        self._notifier = notifier
        self._recent_jobs = recent_jobs
        self.namespace = namespace
        self._clock = clock

    def find_jobs_completed_before(self, reference_time: datetime) -> list[V1Job]:
        """Return the existing jobs that completed before ``reference_time``.

        Failed jobs have no completion time. They are always returned, since
        failures have to be reported without delay.
        """
        return [
            job
            for job in self._cluster.list_jobs(self.namespace)
            if _completed_before(job, reference_time)
        ]

    def find_jobs_for_worker(self, worker: WorkerType) -> list[V1Job]:
        return self._cluster.list_jobs(self.namespace, name_prefix=worker.job_name_prefix)

    def delete_and_notify_if_failed(self, job: V1Job) -> bool:
        """Delete a completed job, sending a failure notification first if needed.

        If the notification cannot be sent, the exception propagates and the
        job is left in place, so that a later cycle retries the notification.
        Jobs handled within the recency window and jobs without a name are
        skipped. Returns whether the job was processed.
        """
        return self._notify_and_delete(job, notify=job_state.is_failed(job), reason="failed")

    def terminate_long_running_job(self, job: V1Job) -> bool:
        """Report a job that exceeded its timeout as failed and delete it."""
        return self._notify_and_delete(job, notify=True, reason="long-running")

    def _notify_and_delete(self, job: V1Job, *, notify: bool, reason: str) -> bool:
        name = job_state.job_name(job)
        if name is None:
            return False
        if not self._recent_jobs.claim(name, self._clock()):
            LOGGER.debug(f"[job {name}] skipping, processed recently.")
            return False

        if notify:
            LOGGER.info(f"[job {name}] detected {reason} job (run {job_state.run_id(job)}).")
            LOGGER.debug(f"[job {name}] details of the {reason} job: {job}")
            try:
                self._notifier.send_failed_job_notification(job)
            except Exception:
                self._recent_jobs.release(name)
                LOGGER.error(f"[job {name}] failed to notify about {reason} job.", exc_info=True)
                raise

        self.delete_job(name)
        self._recent_jobs.mark_processed(name, self._clock())
        return True

    def delete_job(self, name: str) -> None:
        """Delete the pods of a job and the job itself, logging errors."""
        for pod in self._find_pods_for_job(name):
            self._delete_pod(pod)

        try:
            self._cluster.delete_job(name, self.namespace)
        except Exception as exc:
            LOGGER.error(f"[job {name}] could not remove job: {exc}")

    def _find_pods_for_job(self, name: str) -> list[V1Pod]:
        try:
            return self._cluster.list_pods(self.namespace, f"{JOB_NAME_LABEL}={name}")
        except Exception as exc:
            LOGGER.error(f"[job {name}] could not list pods: {exc}")
            return []

    def _delete_pod(self, pod: V1Pod) -> None:
        pod_name = pod.metadata.name if pod.metadata is not None else None
        if not pod_name:
            return
        LOGGER.info(f"Deleting pod {pod_name}.")
        try:
            self._cluster.delete_pod(pod_name, self.namespace)
        except Exception as exc:
            LOGGER.error(f"Could not remove pod {pod_name}: {exc}")


def _completed_before(job: V1Job, reference_time: datetime) -> bool:
    if not job_state.is_completed(job):
        return False
    completed_at = job_state.completion_time(job)
    return completed_at is None or completed_at < reference_time


__all__ = ["JOB_NAME_LABEL", "JobHandler"]
