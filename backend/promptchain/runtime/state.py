"""Run state for flow executions."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from promptchain.graph.ir import GenerationResult, utcnow


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.STOPPED, RunStatus.ERRORED)


@dataclass
class Run:
    """One execution attempt over a frozen plan.

    A Run is never reused: restarting allocates a new one with its own
    result map and cancellation event.
    """

    order: tuple[str, ...]
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    results: dict[str, GenerationResult] = field(default_factory=dict)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    status: RunStatus = RunStatus.RUNNING
    error_message: str | None = None
    error_node_id: str | None = None
    started_at: datetime = field(default_factory=utcnow)
    ended_at: datetime | None = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    @property
    def duration_seconds(self) -> float | None:
        if self.ended_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "order": list(self.order),
            "results": {nid: r.to_dict() for nid, r in self.results.items()},
            "error_message": self.error_message,
            "error_node_id": self.error_node_id,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
        }
