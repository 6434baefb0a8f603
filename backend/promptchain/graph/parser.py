"""Flow document parser: converts the editor's node/edge JSON into IR structures.

The editor emits React-Flow shaped documents::

    {
      "nodes": [{"id": "1", "type": "input", "data": {"content": "..."}}, ...],
      "edges": [{"id": "e1-2", "source": "1", "target": "2"}, ...]
    }

Positions, markers and other presentation keys are ignored.
"""

from __future__ import annotations

from typing import Any

from promptchain.graph.ir import (
    CustomPayload,
    FlowEdge,
    FlowGraph,
    FlowNode,
    InputPayload,
    ModelPayload,
    NodePayload,
    OutputPayload,
    UnknownPayload,
)
from promptchain.graph.validator import GraphValidationError, validate_graph


def parse_graph(doc: dict[str, Any]) -> FlowGraph:
    """Parse a flow document dict into a FlowGraph.

    Raises GraphValidationError when a field cannot be coerced to its type;
    structural checks live in ``validate_graph``.
    """
    if not isinstance(doc, dict):
        raise GraphValidationError(["flow document must be an object"])
    errors: list[str] = []
    nodes: list[FlowNode] = []
    for i, nd in enumerate(doc.get("nodes") or []):
        try:
            nodes.append(_parse_node(nd))
        except (KeyError, TypeError, ValueError) as exc:
            errors.append(f"nodes[{i}]: {_describe(exc)}")

    edges: list[FlowEdge] = []
    for i, ed in enumerate(doc.get("edges") or []):
        try:
            edges.append(_parse_edge(ed, i))
        except (KeyError, TypeError) as exc:
            errors.append(f"edges[{i}]: {_describe(exc)}")

    if errors:
        raise GraphValidationError(errors)
    return FlowGraph(nodes=nodes, edges=edges)


def load_graph(doc: dict[str, Any]) -> FlowGraph:
    """Parse and validate; raise GraphValidationError on any problem."""
    graph = parse_graph(doc)
    errors = validate_graph(graph)
    if errors:
        raise GraphValidationError(errors)
    return graph


# ── Internal helpers ────────────────────────────────────────────


def _parse_node(d: dict[str, Any]) -> FlowNode:
    node_id = str(d["id"])
    data: dict[str, Any] = d.get("data") or {}
    if not isinstance(data, dict):
        raise TypeError("data must be an object")
    # Older editor builds only set data.nodeType
    kind = str(d.get("type") or data.get("nodeType") or "")
    return FlowNode(
        node_id=node_id,
        kind=kind,
        payload=_parse_payload(kind, data),
        label=data.get("label"),
    )


def _parse_payload(kind: str, data: dict[str, Any]) -> NodePayload:
    if kind == "input":
        return InputPayload(content=data.get("content") or "")
    if kind == "model":
        return ModelPayload(
            provider_id=data.get("providerId") or None,
            model_id=data.get("model") or data.get("modelId") or None,
            temperature=_opt_float(data.get("temperature"), "temperature"),
            max_tokens=_opt_int(data.get("maxTokens"), "maxTokens"),
            content=data.get("content") or None,
        )
    if kind == "output":
        return OutputPayload(content=data.get("content") or None)
    if kind == "custom":
        return CustomPayload(content=data.get("content") or None)
    return UnknownPayload(raw_type=kind, data=dict(data))


def _parse_edge(d: dict[str, Any], index: int) -> FlowEdge:
    source = str(d["source"])
    target = str(d["target"])
    return FlowEdge(
        edge_id=str(d.get("id") or f"e{source}-{target}-{index}"),
        source=source,
        target=target,
        source_handle=d.get("sourceHandle"),
        target_handle=d.get("targetHandle"),
    )


def _opt_float(value: Any, name: str) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}") from None


def _opt_int(value: Any, name: str) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    try:
        as_float = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer, got {value!r}") from None
    if not as_float.is_integer():
        raise ValueError(f"{name} must be an integer, got {value!r}")
    return int(as_float)


def _describe(exc: Exception) -> str:
    if isinstance(exc, KeyError):
        return f"missing field {exc.args[0]!r}"
    return str(exc)
