# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Node Handler Base

A handler is consulted after a node produces output and decides which
outgoing edges to follow, or whether the execution should suspend.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from flowrunner.context import ExecutionContext
from flowrunner.graph import GraphEdge
from flowrunner.models import WorkflowNode


# dispatch(node, context) executes a downstream node and raises on failure
DispatchFn = Callable[[WorkflowNode, ExecutionContext], Awaitable[None]]
FindNodeFn = Callable[[List[WorkflowNode], str], Optional[WorkflowNode]]


def error_text(error: BaseException) -> str:
    return getattr(error, "message", None) or str(error)


@dataclass
class HandlerResult:
    routed: bool = False
    context: Optional[ExecutionContext] = None
    has_errors: bool = False
    error_message: str = ""
    suspend: bool = False


class NodeHandler(ABC):
    """Routing strategy for one node shape."""

    @abstractmethod
    def can_handle(self, node: WorkflowNode, output: Any) -> bool:
        """Whether this handler claims the node."""

    @abstractmethod
    async def handle(
        self,
        node: WorkflowNode,
        output: Any,
        next_edges: List[GraphEdge],
        all_nodes: List[WorkflowNode],
        context: ExecutionContext,
        dispatch: DispatchFn,
        find_node: FindNodeFn,
    ) -> HandlerResult:
        """Route (or decline to route) to downstream nodes."""


async def follow_edges(
    edges: List[GraphEdge],
    all_nodes: List[WorkflowNode],
    context: ExecutionContext,
    dispatch: DispatchFn,
    find_node: FindNodeFn,
) -> HandlerResult:
    """
    Dispatch each edge in order.

    A failing target is recorded on the result; later edges still run.
    """
    result = HandlerResult(context=context)
    for edge in edges:
        result.routed = True
        next_node = find_node(all_nodes, edge.target_id)
        if next_node is None:
            continue
        try:
            await dispatch(next_node, context)
        except Exception as e:
            result.has_errors = True
            if not result.error_message:
                result.error_message = f"Node '{edge.target_id}' failed: {error_text(e)}"
    return result
