# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Graph

Adjacency map construction plus structural checks (Kahn's algorithm for
cycle reporting).
"""

from collections import deque
from typing import Dict, Iterable, List, NamedTuple, Optional, Set

from flowrunner.exceptions import WorkflowValidationError
from flowrunner.models import WorkflowDefinition, WorkflowEdge, WorkflowNode, NodeType


class GraphEdge(NamedTuple):
    """Outgoing edge: target node id plus optional output port."""
    target_id: str
    output_port: Optional[str] = None


AdjacencyMap = Dict[str, List[GraphEdge]]


def build_graph(nodes: Iterable[WorkflowNode], edges: Iterable[WorkflowEdge]) -> AdjacencyMap:
    """
    Build the adjacency map keyed by source node id.

    Outgoing edges keep their declaration order. Edges missing a source or
    a target are dropped silently.
    """
    graph: AdjacencyMap = {}
    for edge in edges:
        if not edge.source or not edge.target:
            continue
        graph.setdefault(edge.source, []).append(GraphEdge(edge.target, edge.source_handle))
    return graph


def find_node(nodes: Iterable[WorkflowNode], node_id: str) -> Optional[WorkflowNode]:
    for node in nodes:
        if node.id == node_id:
            return node
    return None


def find_trigger_node(nodes: Iterable[WorkflowNode]) -> Optional[WorkflowNode]:
    """First trigger node in declaration order."""
    for node in nodes:
        if node.type == NodeType.TRIGGER.value:
            return node
    return None


def find_cycle(graph: AdjacencyMap) -> Optional[List[str]]:
    """
    Report nodes involved in (or downstream of) a cycle.

    Returns None for an acyclic graph.
    """
    vertices: Set[str] = set(graph)
    for edges in graph.values():
        vertices.update(edge.target_id for edge in edges)

    in_degree: Dict[str, int] = {vertex: 0 for vertex in vertices}
    for edges in graph.values():
        for edge in edges:
            in_degree[edge.target_id] += 1

    queue = deque(vertex for vertex, degree in in_degree.items() if degree == 0)
    processed = 0
    while queue:
        vertex = queue.popleft()
        processed += 1
        for edge in graph.get(vertex, []):
            in_degree[edge.target_id] -= 1
            if in_degree[edge.target_id] == 0:
                queue.append(edge.target_id)

    if processed == len(vertices):
        return None
    return sorted(vertex for vertex, degree in in_degree.items() if degree > 0)


def validate_workflow(workflow: WorkflowDefinition) -> None:
    """
    Validate workflow structure before it is stored.

    Edges without a source or target are tolerated (they are dropped at
    build time); edges that name unknown nodes are not.

    Raises WorkflowValidationError if validation fails.
    """
    if not workflow.nodes:
        raise WorkflowValidationError("Workflow must have at least one node", field="nodes")

    node_ids = [node.id for node in workflow.nodes]
    if len(node_ids) != len(set(node_ids)):
        duplicates = {nid for nid in node_ids if node_ids.count(nid) > 1}
        raise WorkflowValidationError(f"Duplicate node IDs found: {duplicates}", field="nodes")

    valid_types = {t.value for t in NodeType}
    for node in workflow.nodes:
        if node.type not in valid_types:
            raise WorkflowValidationError(
                f"Unknown node type '{node.type}'",
                field=f"nodes[{node.id}].type"
            )

    if find_trigger_node(workflow.nodes) is None:
        raise WorkflowValidationError("Workflow must have a trigger node", field="nodes")

    node_id_set = set(node_ids)
    for edge in workflow.edges:
        for endpoint in (edge.source, edge.target):
            if endpoint and endpoint not in node_id_set:
                raise WorkflowValidationError(
                    f"Edge references non-existent node: {endpoint}",
                    field="edges"
                )
