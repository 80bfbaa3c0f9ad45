"""Repositories exposing the worker jobs of the runs known to the server."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field, MISSING
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any
from collections.abc import Iterable

from compoconf import ConfigInterface, RegistrableConfigInterface, register, register_interface

LOGGER = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """Lifecycle states of a worker job as stored by the server."""

    CREATED = "CREATED"
    SCHEDULED = "SCHEDULED"
    RUNNING = "RUNNING"
    FAILED = "FAILED"
    FINISHED = "FINISHED"
    FINISHED_WITH_ISSUES = "FINISHED_WITH_ISSUES"

    @property
    def final(self) -> bool:
        return self in (JobStatus.FAILED, JobStatus.FINISHED, JobStatus.FINISHED_WITH_ISSUES)


@dataclass(frozen=True, kw_only=True)
class ActiveJobRecord:
    """The worker job of a run; active until it is finished or reaches a final status."""

    run_id: int = field(default_factory=MISSING)
    created_at: datetime = field(default_factory=MISSING)
    finished_at: datetime | None = None
    status: JobStatus = JobStatus.RUNNING

    @property
    def active(self) -> bool:
        return self.finished_at is None and not self.status.final

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "created_at": self.created_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "status": self.status.value,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> ActiveJobRecord:
        finished = data.get("finished_at")
        return ActiveJobRecord(
            run_id=int(data["run_id"]),
            created_at=parse_instant(data["created_at"]),
            finished_at=parse_instant(finished) if finished else None,
            status=JobStatus(data.get("status") or JobStatus.RUNNING.value),
        )


def parse_instant(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@register_interface
class JobRepositoryInterface(RegistrableConfigInterface):
    """Interface for the per-worker-type stores of job records."""


class BaseJobRepository(JobRepositoryInterface):
    config: ConfigInterface

    def __init__(self, config: ConfigInterface) -> None:
        self.config = config

    def list_active(self, created_before: datetime) -> list[ActiveJobRecord]:  # pragma: no cover
        """Return active jobs that were created before the given instant."""
        raise NotImplementedError

    def get_for_run(self, run_id: int) -> ActiveJobRecord | None:  # pragma: no cover
        """Return the job of a run, whatever its status, or None if the run has none."""
        raise NotImplementedError


@dataclass(kw_only=True)
class InMemoryJobRepositoryConfig(ConfigInterface):
    class_name: str = "InMemoryJobRepository"


@register
class InMemoryJobRepository(BaseJobRepository):
    config: InMemoryJobRepositoryConfig

    def __init__(
        self,
        config: InMemoryJobRepositoryConfig | None = None,
        records: Iterable[ActiveJobRecord] = (),
    ) -> None:
        super().__init__(config or InMemoryJobRepositoryConfig())
        self._lock = threading.Lock()
        self._records: list[ActiveJobRecord] = list(records)
        self.queries: list[datetime] = []

    def add(self, record: ActiveJobRecord) -> None:
        with self._lock:
            self._records.append(record)

    def list_active(self, created_before: datetime) -> list[ActiveJobRecord]:
        self.queries.append(created_before)
        with self._lock:
            return [
                record
                for record in self._records
                if record.active and record.created_at < created_before
            ]

    def get_for_run(self, run_id: int) -> ActiveJobRecord | None:
        with self._lock:
            matches = [record for record in self._records if record.run_id == run_id]
        return matches[-1] if matches else None


@dataclass(kw_only=True)
class FileJobRepositoryConfig(ConfigInterface):
    """Job records stored as ``<run_id>.job.json`` files in a state directory."""

    class_name: str = "FileJobRepository"
    state_dir: str = field(default_factory=MISSING)


@register
class FileJobRepository(BaseJobRepository):
    """Store job records as files in a state directory."""

    config: FileJobRepositoryConfig

    def __init__(self, config: FileJobRepositoryConfig) -> None:
        super().__init__(config)
        self.root = Path(config.state_dir)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, run_id: int) -> Path:
        return self.root / f"{run_id}.job.json"

    def upsert(self, record: ActiveJobRecord) -> None:
        self.path_for(record.run_id).write_text(
            json.dumps(record.to_dict(), indent=2), encoding="utf-8"
        )

    def load_all(self) -> list[ActiveJobRecord]:
        records = (self._read(path) for path in sorted(self.root.glob("*.job.json")))
        return [record for record in records if record is not None]

    def get_for_run(self, run_id: int) -> ActiveJobRecord | None:
        path = self.path_for(run_id)
        if not path.exists():
            return None
        return self._read(path)

    def _read(self, path: Path) -> ActiveJobRecord | None:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return ActiveJobRecord.from_dict(payload)
        except (OSError, json.JSONDecodeError, ValueError, KeyError) as exc:
            LOGGER.warning(f"Skipping unreadable job record {path}: {exc}")
            return None

    def list_active(self, created_before: datetime) -> list[ActiveJobRecord]:
        return [
            record
            for record in self.load_all()
            if record.active and record.created_at < created_before
        ]


__all__ = [
    "ActiveJobRecord",
    "BaseJobRepository",
    "FileJobRepository",
    "FileJobRepositoryConfig",
    "InMemoryJobRepository",
    "InMemoryJobRepositoryConfig",
    "JobRepositoryInterface",
    "JobStatus",
    "parse_instant",
]
