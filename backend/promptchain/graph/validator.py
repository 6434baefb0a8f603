"""Flow graph static validator: checks IR integrity before execution.

Cycles are deliberately not reported here: the editor allows them while a
flow is being drawn, and the planner rejects them when a run starts.
"""

from __future__ import annotations

from promptchain.graph.ir import FlowGraph, ModelPayload


class GraphValidationError(Exception):
    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Flow validation failed: {errors}")


def validate_graph(graph: FlowGraph) -> list[str]:
    """Return a list of error strings. Empty list means valid."""
    errors: list[str] = []

    seen: set[str] = set()
    for node in graph.nodes:
        if not node.node_id:
            errors.append("Node with empty id.")
            continue
        if node.node_id in seen:
            errors.append(f"Duplicate node id '{node.node_id}'.")
        seen.add(node.node_id)

        payload = node.payload
        if isinstance(payload, ModelPayload):
            if payload.temperature is not None and not 0.0 <= payload.temperature <= 1.0:
                errors.append(
                    f"Node '{node.node_id}': temperature {payload.temperature} is outside 0.0-1.0."
                )
            if payload.max_tokens is not None and payload.max_tokens <= 0:
                errors.append(
                    f"Node '{node.node_id}': maxTokens must be positive, got {payload.max_tokens}."
                )

    edge_ids: set[str] = set()
    for edge in graph.edges:
        if edge.edge_id in edge_ids:
            errors.append(f"Duplicate edge id '{edge.edge_id}'.")
        edge_ids.add(edge.edge_id)

        if edge.source == edge.target:
            errors.append(f"Edge '{edge.edge_id}': self-loop on node '{edge.source}'.")
        if edge.source not in seen:
            errors.append(f"Edge '{edge.edge_id}': source '{edge.source}' not found.")
        if edge.target not in seen:
            errors.append(f"Edge '{edge.edge_id}': target '{edge.target}' not found.")

    return errors
