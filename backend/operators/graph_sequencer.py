"""
Derive the linear playback order of a node graph.

Traversal starts at the first ``starting`` node and follows exactly one
outgoing edge per node (the first one in edge-list order). Branches beyond
the first edge are not explored and a revisited node ends the walk.
"""

from __future__ import annotations

import logging

from models.graph_models import GraphEdge, GraphNode, NodeGraph, NodeKind

logger = logging.getLogger(__name__)


def find_start_node(graph: NodeGraph) -> GraphNode | None:
    return next(
        (node for node in graph.nodes if node.kind == NodeKind.STARTING.value),
        None,
    )


def _first_outgoing(graph: NodeGraph) -> dict[str, str]:
    targets: dict[str, str] = {}
    for edge in graph.edges:
        targets.setdefault(edge.source, edge.target)
    return targets


def build_timeline_sequence(graph: NodeGraph) -> list[GraphNode]:
    """
    Ordered content nodes reachable from the start node.

    The start node itself is never part of the result. A graph without a
    start node yields an empty sequence.
    """
    start = find_start_node(graph)
    if start is None:
        return []

    nodes_by_id = {node.id: node for node in graph.nodes}
    next_of = _first_outgoing(graph)

    sequence: list[GraphNode] = []
    visited = {start.id}
    current_id = start.id
    while True:
        target_id = next_of.get(current_id)
        if target_id is None or target_id in visited:
            break
        node = nodes_by_id.get(target_id)
        if node is None:
            logger.warning(f"Edge from {current_id} points at unknown node {target_id}")
            break
        visited.add(target_id)
        sequence.append(node)
        current_id = target_id

    return sequence


def build_auto_link_edge(graph: NodeGraph, new_node_id: str) -> GraphEdge | None:
    """
    Edge that appends ``new_node_id`` to the end of the main path.

    Returns None when there is no start node or the node is already on the
    path.
    """
    start = find_start_node(graph)
    if start is None or new_node_id == start.id:
        return None

    sequence = build_timeline_sequence(graph)
    if any(node.id == new_node_id for node in sequence):
        return None

    tail = sequence[-1].id if sequence else start.id
    return GraphEdge(source=tail, target=new_node_id)
