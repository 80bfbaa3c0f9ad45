"""Persistence helpers for the records of runs and their worker jobs."""

from .job_repository import (
    ActiveJobRecord,
    BaseJobRepository,
    FileJobRepository,
    FileJobRepositoryConfig,
    InMemoryJobRepository,
    InMemoryJobRepositoryConfig,
    JobRepositoryInterface,
    JobStatus,
)
from .run_repository import (
    BaseRunRepository,
    FileRunRepository,
    FileRunRepositoryConfig,
    InMemoryRunRepository,
    InMemoryRunRepositoryConfig,
    RunRecord,
    RunRepositoryInterface,
)

__all__ = [
    "ActiveJobRecord",
    "BaseJobRepository",
    "BaseRunRepository",
    "FileJobRepository",
    "FileJobRepositoryConfig",
    "FileRunRepository",
    "FileRunRepositoryConfig",
    "InMemoryJobRepository",
    "InMemoryJobRepositoryConfig",
    "InMemoryRunRepository",
    "InMemoryRunRepositoryConfig",
    "JobRepositoryInterface",
    "JobStatus",
    "RunRecord",
    "RunRepositoryInterface",
]
