"""Repositories exposing the runs the orchestrator still considers active."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field, MISSING
from datetime import datetime
from pathlib import Path
from typing import Any
from collections.abc import Iterable

from compoconf import ConfigInterface, RegistrableConfigInterface, register, register_interface

from jobmonitor.persistence.job_repository import parse_instant

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class RunRecord:
    """A run with the trace ID its messages are correlated by."""

    run_id: int = field(default_factory=MISSING)
    trace_id: str = ""
    created_at: datetime = field(default_factory=MISSING)
    finished_at: datetime | None = None

    @property
    def active(self) -> bool:
        return self.finished_at is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "trace_id": self.trace_id,
            "created_at": self.created_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> RunRecord:
        finished = data.get("finished_at")
        return RunRecord(
            run_id=int(data["run_id"]),
            trace_id=str(data.get("trace_id") or ""),
            created_at=parse_instant(data["created_at"]),
            finished_at=parse_instant(finished) if finished else None,
        )


@register_interface
class RunRepositoryInterface(RegistrableConfigInterface):
    """Interface for the store of runs."""


class BaseRunRepository(RunRepositoryInterface):
    config: ConfigInterface

    def __init__(self, config: ConfigInterface) -> None:
        self.config = config

    def get(self, run_id: int) -> RunRecord | None:  # pragma: no cover
        raise NotImplementedError

    def list_active(self, created_before: datetime) -> list[RunRecord]:  # pragma: no cover
        """Return active runs that were created before the given instant."""
        raise NotImplementedError


@dataclass(kw_only=True)
class InMemoryRunRepositoryConfig(ConfigInterface):
    class_name: str = "InMemoryRunRepository"


@register
class InMemoryRunRepository(BaseRunRepository):
    config: InMemoryRunRepositoryConfig

    def __init__(
        self,
        config: InMemoryRunRepositoryConfig | None = None,
        records: Iterable[RunRecord] = (),
    ) -> None:
        super().__init__(config or InMemoryRunRepositoryConfig())
        self._lock = threading.Lock()
        self._records: dict[int, RunRecord] = {record.run_id: record for record in records}
        self.queries: list[datetime] = []

    def add(self, record: RunRecord) -> None:
        with self._lock:
            self._records[record.run_id] = record

    def get(self, run_id: int) -> RunRecord | None:
        with self._lock:
            return self._records.get(run_id)

    def list_active(self, created_before: datetime) -> list[RunRecord]:
        self.queries.append(created_before)
        with self._lock:
            return [
                record
                for record in self._records.values()
                if record.active and record.created_at < created_before
            ]


@dataclass(kw_only=True)
class FileRunRepositoryConfig(ConfigInterface):
    """Runs stored as ``<run_id>.run.json`` files in a state directory."""

    class_name: str = "FileRunRepository"
    state_dir: str = field(default_factory=MISSING)


@register
class FileRunRepository(BaseRunRepository):
    config: FileRunRepositoryConfig

    def __init__(self, config: FileRunRepositoryConfig) -> None:
        super().__init__(config)
        self.root = Path(config.state_dir)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, run_id: int) -> Path:
        return self.root / f"{run_id}.run.json"

    def upsert(self, record: RunRecord) -> None:
        self.path_for(record.run_id).write_text(
            json.dumps(record.to_dict(), indent=2), encoding="utf-8"
        )

    def get(self, run_id: int) -> RunRecord | None:
        path = self.path_for(run_id)
        if not path.exists():
            return None
        return self._read(path)

    def load_all(self) -> list[RunRecord]:
        records = (self._read(path) for path in sorted(self.root.glob("*.run.json")))
        return [record for record in records if record is not None]

    def list_active(self, created_before: datetime) -> list[RunRecord]:
        return [
            record
            for record in self.load_all()
            if record.active and record.created_at < created_before
        ]

    def _read(self, path: Path) -> RunRecord | None:
        try:
            return RunRecord.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError, ValueError, KeyError) as exc:
            LOGGER.warning(f"Skipping unreadable run record {path}: {exc}")
            return None


__all__ = [
    "BaseRunRepository",
    "FileRunRepository",
    "FileRunRepositoryConfig",
    "InMemoryRunRepository",
    "InMemoryRunRepositoryConfig",
    "RunRecord",
    "RunRepositoryInterface",
]
