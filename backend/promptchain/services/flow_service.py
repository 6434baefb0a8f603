"""Flow service: owns the process-wide orchestrator and its event log.

The HTTP layer talks to this service only. Orchestrator callbacks append to
an in-memory, monotonically numbered event log that the SSE endpoint polls.
The log is cleared when a new run starts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from promptchain.graph.ir import FlowGraph, GenerationResult
from promptchain.providers.registry import ProviderRegistry
from promptchain.runtime.node_processor import NodeProcessor
from promptchain.runtime.orchestrator import FlowOrchestrator, Pacer
from promptchain.runtime.state import Run, RunStatus
from promptchain.services.settings_store import SettingsStore
from promptchain.utils.metrics import MetricsCollector

logger = logging.getLogger("promptchain.flow_service")


@dataclass
class FlowEvent:
    event_id: int
    event_type: str  # node_result | run_state | warning
    run_id: str | None
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "run_id": self.run_id,
            "payload": self.payload,
        }


class FlowService:
    def __init__(
        self,
        registry: ProviderRegistry,
        store: SettingsStore,
        *,
        default_temperature: float = 0.7,
        default_max_tokens: int = 500,
        pacer: Pacer | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self.registry = registry
        self.store = store
        self.events: list[FlowEvent] = []
        self._next_event_id = 1
        self.graph: FlowGraph | None = None
        processor = NodeProcessor(
            registry,
            store,
            default_temperature=default_temperature,
            default_max_tokens=default_max_tokens,
        )
        self.orchestrator = FlowOrchestrator(
            processor,
            store,
            on_result=self._on_result,
            on_state_change=self._on_state_change,
            on_warning=self._on_warning,
            pacer=pacer,
            metrics=metrics,
        )

    # ── commands ────────────────────────────────────────────

    def start(self, graph: FlowGraph) -> Run | None:
        """Start a run, resetting a finished previous one first."""
        if self.orchestrator.status.is_terminal:
            self.orchestrator.reset()
        if self.orchestrator.status is RunStatus.IDLE:
            self.events.clear()
        run = self.orchestrator.start(graph)
        # A refused start leaves the running flow's graph in place
        if run is not None:
            self.graph = graph
        return run

    def stop(self) -> bool:
        return self.orchestrator.stop()

    def reset(self) -> bool:
        ok = self.orchestrator.reset()
        if ok:
            self.events.clear()
            self.graph = None
        return ok

    def status(self) -> dict[str, Any]:
        run = self.orchestrator.current_run
        return {
            "status": self.orchestrator.status.value,
            "run": run.to_dict() if run else None,
        }

    def events_after(self, last_id: int) -> list[FlowEvent]:
        return [ev for ev in self.events if ev.event_id > last_id]

    # ── orchestrator callbacks ──────────────────────────────

    def _append(self, event_type: str, payload: dict[str, Any]) -> None:
        run = self.orchestrator.current_run
        self.events.append(
            FlowEvent(
                event_id=self._next_event_id,
                event_type=event_type,
                run_id=run.run_id if run else None,
                payload=payload,
            )
        )
        self._next_event_id += 1

    def _on_result(self, node_id: str, result: GenerationResult) -> None:
        if self.graph is not None:
            self.graph.attach_result(node_id, result)
        self._append("node_result", {"node_id": node_id, "result": result.to_dict()})

    def _on_state_change(self, run: Run, status: RunStatus) -> None:
        payload: dict[str, Any] = {"status": status.value}
        if run.error_message:
            payload["error_message"] = run.error_message
            payload["error_node_id"] = run.error_node_id
        self._append("run_state", payload)

    def _on_warning(self, message: str) -> None:
        self._append("warning", {"message": message})
