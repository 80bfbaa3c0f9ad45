"""Notifications about failed, lost and stuck worker jobs."""

from __future__ import annotations

import logging

from kubernetes.client import V1Job

from jobmonitor.cluster import job_state
from jobmonitor.persistence import RunRecord
from jobmonitor.transport import (
    BaseMessageSender,
    LostJob,
    Message,
    MessageHeader,
    StuckRun,
    WorkerError,
)
from jobmonitor.workers import WorkerType

LOGGER = logging.getLogger(__name__)


class FailureNotifier:
    """Report failed or lost worker jobs to the orchestrator.

    Errors raised by the sender propagate to the caller; retries are left to
    the next monitoring cycle.
    """

    def __init__(self, sender: BaseMessageSender) -> None:
        self._sender = sender

    def send_failed_job_notification(self, job: V1Job) -> None:
        name = job_state.job_name(job)
        if name is None:
            LOGGER.info("Ignoring failed job without a name.")
            return

        trace_id = job_state.trace_id(job)
        if trace_id is None:
            LOGGER.info(f"[job {name}] ignoring failed job without a trace ID.")
            return

        run_id = job_state.run_id(job)
        if run_id is None:
            LOGGER.info(f"[job {name}] ignoring failed job without a run ID.")
            return

        worker = job_state.worker_type_of(name)
        LOGGER.info(f"[job {name}] sending failure notification for {worker} of run {run_id}.")
        self._sender.send(
            Message(
                header=MessageHeader(trace_id=trace_id, run_id=run_id),
                payload=WorkerError(worker),
            )
        )

    def send_lost_job_notification(
        self, run_id: int, worker: WorkerType | str, trace_id: str = ""
    ) -> None:
        """Report that the job of ``worker`` for the run vanished; the trace ID may be unknown."""
        endpoint = worker.value if isinstance(worker, WorkerType) else str(worker)
        LOGGER.info(f"Sending lost job notification for {endpoint} of run {run_id}.")
        self._sender.send(
            Message(
                header=MessageHeader(trace_id=trace_id, run_id=run_id),
                payload=LostJob(endpoint),
            )
        )

    def send_stuck_run_notification(self, run: RunRecord) -> None:
        LOGGER.info(f"Sending stuck run notification for run {run.run_id}.")
        self._sender.send(
            Message(
                header=MessageHeader(trace_id=run.trace_id, run_id=run.run_id),
                payload=StuckRun(run.run_id),
            )
        )


__all__ = ["FailureNotifier"]
