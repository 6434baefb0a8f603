"""Flows API router: plan, run, stop and stream flow executions."""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sse_starlette.sse import EventSourceResponse

from promptchain.api.deps import get_flow_service
from promptchain.graph.ir import FlowGraph
from promptchain.graph.parser import load_graph
from promptchain.graph.validator import GraphValidationError
from promptchain.runtime.planner import CycleDetectedError, plan_graph
from promptchain.runtime.state import RunStatus
from promptchain.schemas.flows import FlowDocument, FlowStatusOut, PlanOut
from promptchain.services.flow_service import FlowService

logger = logging.getLogger("promptchain.api.flows")
router = APIRouter()

_STREAM_POLL_SECONDS = 0.25


def _load_or_422(body: FlowDocument) -> FlowGraph:
    try:
        return load_graph(body.as_document())
    except GraphValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail={"message": "Invalid flow", "errors": exc.errors},
        ) from exc


@router.post("/plan", response_model=PlanOut)
async def plan_flow(body: FlowDocument):
    graph = _load_or_422(body)
    try:
        order = plan_graph(graph)
    except CycleDetectedError as exc:
        raise HTTPException(
            status_code=422,
            detail={"message": str(exc), "cycle": exc.cycle},
        ) from exc
    return PlanOut(order=order)


@router.post("/run", response_model=FlowStatusOut, status_code=202)
async def run_flow(body: FlowDocument, service: FlowService = Depends(get_flow_service)):
    graph = _load_or_422(body)
    try:
        run = service.start(graph)
    except CycleDetectedError as exc:
        raise HTTPException(
            status_code=422,
            detail={"message": str(exc), "cycle": exc.cycle},
        ) from exc
    if run is None:
        warning = next(
            (ev.payload.get("message") for ev in reversed(service.events) if ev.event_type == "warning"),
            "Flow could not be started",
        )
        raise HTTPException(status_code=409, detail={"message": warning})
    return service.status()


@router.post("/stop", response_model=FlowStatusOut)
async def stop_flow(service: FlowService = Depends(get_flow_service)):
    if not service.stop():
        raise HTTPException(status_code=409, detail={"message": "No flow is running"})
    return service.status()


@router.post("/reset", response_model=FlowStatusOut)
async def reset_flow(service: FlowService = Depends(get_flow_service)):
    if not service.reset():
        raise HTTPException(status_code=409, detail={"message": "Cannot reset while a flow is running"})
    return service.status()


@router.get("/status", response_model=FlowStatusOut)
async def flow_status(service: FlowService = Depends(get_flow_service)):
    return service.status()


@router.get("/stream")
async def stream_flow(
    request: Request,
    last_event_id: int = 0,
    service: FlowService = Depends(get_flow_service),
):
    """SSE endpoint: streams node results and run state changes.

    Ends once the current run is in a terminal state and every event has
    been delivered.
    """

    async def event_generator():
        last_id = last_event_id
        while True:
            if await request.is_disconnected():
                break
            for ev in service.events_after(last_id):
                last_id = ev.event_id
                yield {
                    "event": ev.event_type,
                    "id": str(ev.event_id),
                    "data": json.dumps(ev.to_dict()),
                }
            if service.orchestrator.status is not RunStatus.RUNNING and not service.events_after(last_id):
                break
            await asyncio.sleep(_STREAM_POLL_SECONDS)

    return EventSourceResponse(event_generator())
