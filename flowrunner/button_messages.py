# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Button Message Service

Records which suspended execution/node an outbound interactive message
belongs to, so a later click can be routed back to it.
"""

from typing import Any, Dict, List, Optional

from flowrunner.core.logging import get_engine_logger, log_event
from flowrunner.execution_store import ExecutionStore
from flowrunner.models import ButtonMessageMapping, WorkflowNode

logger = get_engine_logger("button_messages")


def extract_button_ids(node: WorkflowNode) -> List[str]:
    """Button ids declared in config.inputs.buttons[].id"""
    buttons = (node.config.get("inputs") or {}).get("buttons") or []
    if not isinstance(buttons, list):
        return []
    return [str(button["id"]) for button in buttons if isinstance(button, dict) and button.get("id")]


class ButtonMessageService:
    def __init__(self, store: ExecutionStore):
        self.store = store

    async def store_mapping(
        self,
        node: WorkflowNode,
        output: Any,
        workflow_id: str,
        execution_id: str
    ) -> Optional[ButtonMessageMapping]:
        """
        Store a mapping for a sent button message.

        Nothing is stored when the output has no message_id or the node
        declares no buttons.
        """
        if not isinstance(output, dict) or not output.get("message_id"):
            return None

        button_ids = extract_button_ids(node)
        if not button_ids:
            log_event(
                logger,
                "button_mapping_skipped",
                level="WARNING",
                node_id=node.id,
                execution_id=execution_id,
                reason="no button ids configured",
            )
            return None

        mapping = await self.store.save_button_mapping(ButtonMessageMapping(
            message_id=str(output["message_id"]),
            workflow_id=workflow_id,
            execution_id=execution_id,
            node_id=node.id,
            button_ids=button_ids,
        ))
        log_event(
            logger,
            "button_mapping_stored",
            message_id=mapping.message_id,
            execution_id=execution_id,
            node_id=node.id,
            button_ids=button_ids,
        )
        return mapping

    async def find_mapping(self, message_id: str) -> Optional[ButtonMessageMapping]:
        """Most recent mapping for a message id."""
        return await self.store.get_button_mapping(message_id)

    @staticmethod
    def button_fields(button_id: str, button_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Clicked-button fields spliced into the node's context entry."""
        button_data = button_data or {}
        return {
            "button_id": button_id,
            "button_title": button_data.get("button_title", ""),
            "interactive_type": button_data.get("interactive_type", "button_reply"),
        }
