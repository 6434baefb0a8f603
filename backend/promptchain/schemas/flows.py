"""Pydantic models for flow documents and runs."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FlowNodeIn(BaseModel):
    # position, width, selected... are editor state and pass through untouched
    model_config = ConfigDict(extra="allow")

    id: str
    type: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class FlowEdgeIn(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    source: str
    target: str
    sourceHandle: str | None = None
    targetHandle: str | None = None


class FlowDocument(BaseModel):
    nodes: list[FlowNodeIn] = Field(default_factory=list)
    edges: list[FlowEdgeIn] = Field(default_factory=list)

    def as_document(self) -> dict[str, Any]:
        return {
            "nodes": [n.model_dump() for n in self.nodes],
            "edges": [e.model_dump() for e in self.edges],
        }


class PlanOut(BaseModel):
    order: list[str]


class GenerationResultOut(BaseModel):
    text: str
    timestamp: datetime
    error: bool = False
    usage: dict[str, int] | None = None
    model: str | None = None
    provider_id: str | None = None


class RunOut(BaseModel):
    run_id: str
    status: str
    order: list[str]
    results: dict[str, GenerationResultOut] = Field(default_factory=dict)
    error_message: str | None = None
    error_node_id: str | None = None
    started_at: datetime
    ended_at: datetime | None = None


class FlowStatusOut(BaseModel):
    status: str
    run: RunOut | None = None
