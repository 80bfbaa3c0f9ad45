"""Worker types whose jobs are dispatched to the cluster."""

from __future__ import annotations

from enum import Enum


class WorkerType(str, Enum):
    """Closed set of worker stages.

    The value doubles as the job name prefix (``analyzer-<suffix>``) and as
    the endpoint identity used in orchestrator messages.
    """

    CONFIG = "config"
    ANALYZER = "analyzer"
    ADVISOR = "advisor"
    SCANNER = "scanner"
    EVALUATOR = "evaluator"
    REPORTER = "reporter"
    NOTIFIER = "notifier"

    @property
    def job_name_prefix(self) -> str:
        return f"{self.value}-"


# Config jobs only exist in the cluster; the database keeps no job records for them.
REPOSITORY_WORKERS: tuple[WorkerType, ...] = tuple(
    worker for worker in WorkerType if worker is not WorkerType.CONFIG
)


__all__ = ["REPOSITORY_WORKERS", "WorkerType"]
