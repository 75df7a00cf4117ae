# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Button Message Handlers

An action node that sends an interactive button message has one output
port per button. Right after sending, the execution suspends until the
recipient clicks; on continuation the clicked button picks the port.
"""

from typing import Any, Iterable, List

from flowrunner.context import ExecutionContext
from flowrunner.core.logging import get_engine_logger, log_event
from flowrunner.graph import GraphEdge
from flowrunner.handlers.base import DispatchFn, FindNodeFn, HandlerResult, NodeHandler, follow_edges
from flowrunner.models import NodeType, WorkflowNode

logger = get_engine_logger("handlers.button_message")


class _ButtonNodeHandler(NodeHandler):
    def __init__(self, button_tool_ids: Iterable[str]):
        self.button_tool_ids = set(button_tool_ids)

    def is_button_node(self, node: WorkflowNode, output: Any) -> bool:
        return (
            node.type == NodeType.ACTION.value
            and node.config.get("tool_id") in self.button_tool_ids
            and isinstance(output, dict)
        )


class PendingSendHandler(_ButtonNodeHandler):
    """Suspends after a button message is sent and before any click."""

    def can_handle(self, node: WorkflowNode, output: Any) -> bool:
        return self.is_button_node(node, output) and not output.get("button_id")

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
        if not next_edges:
            # Nothing waits on the click; the run completes normally
            return HandlerResult(routed=True, context=context)

        log_event(
            logger,
            "execution_suspended",
            node_id=node.id,
            message_id=output.get("message_id"),
            ports=[edge.output_port for edge in next_edges],
        )
        return HandlerResult(routed=False, context=context, suspend=True)


class ButtonClickRouter(_ButtonNodeHandler):
    """Follows the port matching the clicked button (continuations only)."""

    def can_handle(self, node: WorkflowNode, output: Any) -> bool:
        return self.is_button_node(node, output) and bool(output.get("button_id"))

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
        button_id = str(output["button_id"])
        matching = [edge for edge in next_edges if edge.output_port == button_id]
        if not matching:
            return HandlerResult(routed=False, context=context)

        # Expose the click as a same-named field, e.g. {{parents.action.btn_yes}}
        context.splice_button(node.id, {button_id: output.get("button_title") or button_id})
        context.button_data = {
            "button_id": button_id,
            "button_title": output.get("button_title", ""),
            "interactive_type": output.get("interactive_type", "button_reply"),
        }

        log_event(logger, "button_click_routed", node_id=node.id, button_id=button_id)
        return await follow_edges(matching, all_nodes, context, dispatch, find_node)
