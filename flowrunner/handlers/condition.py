# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Condition Router

Follows only the "true" or "false" output port of a condition node.
"""

from typing import Any, List

from flowrunner.context import ExecutionContext
from flowrunner.core.logging import get_engine_logger, log_event
from flowrunner.graph import GraphEdge
from flowrunner.handlers.base import DispatchFn, FindNodeFn, HandlerResult, NodeHandler, follow_edges
from flowrunner.models import NodeType, WorkflowNode

logger = get_engine_logger("handlers.condition")


class ConditionRouter(NodeHandler):

    def can_handle(self, node: WorkflowNode, output: Any) -> bool:
        return (
            node.type == NodeType.CONDITION.value
            and isinstance(output, dict)
            and isinstance(output.get("result"), bool)
        )

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
        port = "true" if output["result"] else "false"
        matching = [edge for edge in next_edges if edge.output_port == port]

        result = await follow_edges(matching, all_nodes, context, dispatch, find_node)
        if not result.routed and next_edges:
            log_event(
                logger,
                "condition_branch_unconnected",
                level="WARNING",
                node_id=node.id,
                branch=port,
                available_ports=[edge.output_port for edge in next_edges],
            )
        return result
