"""Internal Representation (IR) dataclasses: output of flow document parsing."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Union


NODE_KINDS: frozenset[str] = frozenset({"input", "model", "output", "custom"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Result ──────────────────────────────────────────────────────


@dataclass
class GenerationResult:
    text: str
    timestamp: datetime = field(default_factory=utcnow)
    error: bool = False
    usage: dict[str, int] | None = None
    model: str | None = None
    provider_id: str | None = None

    @classmethod
    def failure(cls, message: str, **kwargs: Any) -> "GenerationResult":
        return cls(text=f"Error: {message}", error=True, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
            "error": self.error,
        }
        if self.usage is not None:
            d["usage"] = dict(self.usage)
        if self.model is not None:
            d["model"] = self.model
        if self.provider_id is not None:
            d["provider_id"] = self.provider_id
        return d


# ── Type-specific payloads ──────────────────────────────────────


@dataclass(frozen=True)
class InputPayload:
    content: str = ""


@dataclass(frozen=True)
class ModelPayload:
    provider_id: str | None = None
    model_id: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    content: str | None = None  # prefix / system instruction


@dataclass(frozen=True)
class OutputPayload:
    content: str | None = None


@dataclass(frozen=True)
class CustomPayload:
    content: str | None = None


@dataclass(frozen=True)
class UnknownPayload:
    raw_type: str
    data: dict[str, Any] = field(default_factory=dict)


NodePayload = Union[InputPayload, ModelPayload, OutputPayload, CustomPayload, UnknownPayload]


# ── Node / Edge / Graph ─────────────────────────────────────────


@dataclass
class FlowNode:
    node_id: str
    kind: str
    payload: NodePayload
    label: str | None = None
    last_result: GenerationResult | None = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "kind" and "kind" in self.__dict__:
            raise AttributeError("FlowNode.kind is immutable")
        super().__setattr__(name, value)


@dataclass(frozen=True)
class FlowEdge:
    edge_id: str
    source: str
    target: str
    source_handle: str | None = None
    target_handle: str | None = None


@dataclass
class FlowGraph:
    nodes: list[FlowNode] = field(default_factory=list)
    edges: list[FlowEdge] = field(default_factory=list)

    def node(self, node_id: str) -> FlowNode | None:
        for n in self.nodes:
            if n.node_id == node_id:
                return n
        return None

    def node_ids(self) -> list[str]:
        return [n.node_id for n in self.nodes]

    def inbound_edges(self, node_id: str) -> list[FlowEdge]:
        """Edges targeting *node_id*, in edge-list order."""
        return [e for e in self.edges if e.target == node_id]

    def attach_result(self, node_id: str, result: GenerationResult) -> None:
        n = self.node(node_id)
        if n is not None:
            n.last_result = result
