"""Messages sent from the job monitor to the orchestrator."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True, kw_only=True)
class MessageHeader:
    """Correlation data attached to every orchestrator message."""

    trace_id: str
    run_id: int

    def to_dict(self) -> dict[str, Any]:
        return {"traceId": self.trace_id, "runId": self.run_id}


@dataclass(frozen=True)
class WorkerError:
    """A worker job for the given endpoint terminated in failure."""

    endpoint: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "WorkerError", "endpoint": self.endpoint}


@dataclass(frozen=True)
class LostJob:
    """A worker job still active in the database has disappeared from the cluster."""

    endpoint: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "LostJob", "endpoint": self.endpoint}


@dataclass(frozen=True)
class StuckRun:
    """An active run whose worker jobs have all ended; the orchestrator has to finish it."""

    run_id: int

    def to_dict(self) -> dict[str, Any]:
        return {"type": "StuckRun", "runId": self.run_id}


OrchestratorMessage = Union[WorkerError, LostJob, StuckRun]


@dataclass(frozen=True, kw_only=True)
class Message:
    header: MessageHeader
    payload: OrchestratorMessage
    created_at: float = field(default_factory=time.time, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "header": self.header.to_dict(),
            "payload": self.payload.to_dict(),
            "createdAt": self.created_at,
        }


__all__ = [
    "LostJob",
    "Message",
    "MessageHeader",
    "OrchestratorMessage",
    "StuckRun",
    "WorkerError",
]
