"""Execution order planner: depth-first topological sort with cycle detection."""

from __future__ import annotations

from typing import Iterable, Sequence

from promptchain.graph.ir import FlowEdge, FlowGraph, FlowNode


class FlowPlanningError(Exception):
    """The graph cannot be turned into an execution order."""


class CycleDetectedError(FlowPlanningError):
    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(
            "Graph has a cycle, cannot determine execution order: " + " -> ".join(cycle)
        )


def plan(nodes: Sequence[FlowNode], edges: Iterable[FlowEdge]) -> list[str]:
    """Return node ids ordered so every node follows all of its upstream nodes.

    Nodes are visited in list order and each node's dependencies in edge-list
    order, so the result is stable for a given input. Edges naming unknown
    nodes are ignored.
    """
    node_ids = [n.node_id for n in nodes]
    dependencies: dict[str, list[str]] = {nid: [] for nid in node_ids}
    for edge in edges:
        if edge.target in dependencies and edge.source in dependencies:
            dependencies[edge.target].append(edge.source)

    ordered: set[str] = set()
    on_stack: set[str] = set()
    order: list[str] = []

    for root in node_ids:
        if root in ordered:
            continue
        # Explicit stack of (node, next dependency index) instead of recursion
        stack: list[tuple[str, int]] = [(root, 0)]
        on_stack.add(root)
        while stack:
            nid, idx = stack[-1]
            deps = dependencies[nid]
            if idx < len(deps):
                stack[-1] = (nid, idx + 1)
                dep = deps[idx]
                if dep in on_stack:
                    # stack runs downstream -> upstream; report in edge direction
                    path = [n for n, _ in stack]
                    cycle = path[path.index(dep):] + [dep]
                    raise CycleDetectedError(cycle[::-1])
                if dep not in ordered:
                    on_stack.add(dep)
                    stack.append((dep, 0))
                continue
            stack.pop()
            on_stack.discard(nid)
            ordered.add(nid)
            order.append(nid)

    return order


def plan_graph(graph: FlowGraph) -> list[str]:
    return plan(graph.nodes, graph.edges)
