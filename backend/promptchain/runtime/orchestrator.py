"""Flow orchestrator: drives planner + node processor over a whole graph.

State machine::

    idle ──start()──▶ running ──▶ completed | stopped | errored
      ▲                                      │
      └──────────────── reset() ─────────────┘

Nodes run strictly one at a time in plan order. Before each node the run's
cancellation event is checked; after each node its result is recorded once
and handed to ``on_result``. An errored result ends the run as ``errored``;
an output node ends it as ``completed``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from promptchain.graph.ir import FlowGraph, GenerationResult, OutputPayload, utcnow
from promptchain.runtime.node_processor import CredentialStore, NodeProcessor
from promptchain.runtime.planner import plan_graph
from promptchain.runtime.state import Run, RunStatus
from promptchain.utils.logger import log_context
from promptchain.utils.metrics import (
    MetricsCollector,
    record_node_execution,
    record_run_completed,
    record_run_started,
)

logger = logging.getLogger("promptchain.runtime.orchestrator")

ResultCallback = Callable[[str, GenerationResult], None]
StateCallback = Callable[[Run, RunStatus], None]
WarningCallback = Callable[[str], None]
Pacer = Callable[[], Awaitable[None]]

NO_PROVIDER_WARNING = "Please configure at least one API provider in settings before running"


def sleep_pacer(seconds: float) -> Pacer | None:
    """Pacer that waits *seconds* between nodes; None when seconds <= 0."""
    if seconds <= 0:
        return None

    async def _pace() -> None:
        await asyncio.sleep(seconds)

    return _pace


class FlowOrchestrator:
    """Runs one flow at a time.

    Parameters
    ----------
    processor : NodeProcessor
        Evaluates individual nodes.
    credentials : CredentialStore
        Consulted by ``start`` for the "any provider configured" precondition.
    on_result : callable(node_id, result)
        Called once per processed node, in execution order.
    on_state_change : callable(run, status)
        Called when the run enters running / completed / stopped / errored.
    on_warning : callable(message)
        Called when ``start`` is refused.
    pacer : async callable
        Awaited between two nodes; ``None`` (default) means no pause.
    """

    def __init__(
        self,
        processor: NodeProcessor,
        credentials: CredentialStore,
        *,
        on_result: ResultCallback | None = None,
        on_state_change: StateCallback | None = None,
        on_warning: WarningCallback | None = None,
        pacer: Pacer | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self.processor = processor
        self.credentials = credentials
        self.on_result = on_result
        self.on_state_change = on_state_change
        self.on_warning = on_warning
        self.pacer = pacer
        self.metrics = metrics
        self._status = RunStatus.IDLE
        self._run: Run | None = None
        self._task: asyncio.Task[Run] | None = None

    # ── public API ─────────────────────────────────────────

    @property
    def status(self) -> RunStatus:
        return self._status

    @property
    def current_run(self) -> Run | None:
        return self._run

    def start(self, graph: FlowGraph) -> Run | None:
        """Plan *graph* and schedule its execution on the running event loop.

        Returns the new Run, or None when the start was refused (a run is
        already in progress, the previous run was not reset, or no provider
        is configured). Raises CycleDetectedError before anything executes
        when the graph is cyclic.
        """
        if self._status is RunStatus.RUNNING:
            self._warn("A flow is already running")
            return None
        if self._status is not RunStatus.IDLE:
            self._warn(f"Previous run is {self._status.value}; reset before starting again")
            return None
        if not self.credentials.is_any_provider_configured():
            self._warn(NO_PROVIDER_WARNING)
            return None

        order = plan_graph(graph)

        run = Run(order=tuple(order))
        self._run = run
        self._set_status(run, RunStatus.RUNNING)
        record_run_started(self.metrics)
        logger.info("Run %s started: %d node(s), order=%s", run.run_id, len(order), order)
        self._task = asyncio.create_task(self._execute(run, graph), name=f"flow-run-{run.run_id}")
        return run

    async def execute(self, graph: FlowGraph) -> Run | None:
        """Start a run and wait for it to finish."""
        run = self.start(graph)
        if run is None:
            return None
        return await self.wait()

    async def wait(self) -> Run | None:
        task = self._task
        if task is None:
            return self._run
        return await asyncio.shield(task)

    def stop(self) -> bool:
        """Request cancellation; the node in flight finishes, no later node starts."""
        if self._status is not RunStatus.RUNNING or self._run is None:
            logger.debug("stop() ignored in state %s", self._status.value)
            return False
        self._run.cancel_event.set()
        logger.info("Run %s: stop requested", self._run.run_id)
        return True

    def reset(self) -> bool:
        """Return a finished orchestrator to idle. Refused while running."""
        if self._status is RunStatus.RUNNING:
            self._warn("Cannot reset while a flow is running")
            return False
        self._status = RunStatus.IDLE
        self._run = None
        self._task = None
        return True

    # ── run loop ───────────────────────────────────────────

    async def _execute(self, run: Run, graph: FlowGraph) -> Run:
        with log_context(run_id=run.run_id):
            return await self._run_loop(run, graph)

    async def _run_loop(self, run: Run, graph: FlowGraph) -> Run:
        final = RunStatus.COMPLETED
        try:
            for index, node_id in enumerate(run.order):
                if run.cancelled:
                    logger.info("Run %s: execution stopped by user before node %s", run.run_id, node_id)
                    final = RunStatus.STOPPED
                    break

                node = graph.node(node_id)
                if node is None:
                    continue

                if node_id in run.results:
                    logger.warning("Run %s: node %s already has a result; skipping", run.run_id, node_id)
                    continue

                with log_context(node_id=node_id):
                    result = await self._process(node, run, graph)

                run.results[node_id] = result
                record_node_execution(node.kind, "error" if result.error else "ok", self.metrics)
                self._emit(node_id, result)

                if result.error:
                    run.error_node_id = node_id
                    run.error_message = result.text
                    final = RunStatus.ERRORED
                    break
                if isinstance(node.payload, OutputPayload):
                    logger.info("Run %s: output node %s reached", run.run_id, node_id)
                    final = RunStatus.COMPLETED
                    break

                if self.pacer is not None and index < len(run.order) - 1:
                    await self.pacer()
        except asyncio.CancelledError:
            final = RunStatus.STOPPED
            raise
        finally:
            run.ended_at = utcnow()
            self._set_status(run, final)
            record_run_completed(run.duration_seconds or 0.0, final.value, self.metrics)
            logger.info(
                "Run %s finished: status=%s nodes=%d/%d",
                run.run_id, final.value, len(run.results), len(run.order),
            )
        return run

    async def _process(self, node, run: Run, graph: FlowGraph) -> GenerationResult:
        try:
            return await self.processor.process(node, run.results, graph.inbound_edges(node.node_id))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Run %s: node %s raised", run.run_id, node.node_id)
            return GenerationResult.failure(str(exc) or exc.__class__.__name__)

    # ── helpers ────────────────────────────────────────────

    def _set_status(self, run: Run, status: RunStatus) -> None:
        run.status = status
        if self._run is run:
            self._status = status
        if self.on_state_change is not None:
            try:
                self.on_state_change(run, status)
            except Exception:
                logger.exception("on_state_change callback failed")

    def _emit(self, node_id: str, result: GenerationResult) -> None:
        if self.on_result is None:
            return
        try:
            self.on_result(node_id, result)
        except Exception:
            logger.exception("on_result callback failed for node %s", node_id)

    def _warn(self, message: str) -> None:
        logger.warning(message)
        if self.on_warning is not None:
            try:
                self.on_warning(message)
            except Exception:
                logger.exception("on_warning callback failed")
