# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Continuation Service

Resumes a suspended execution when a button click arrives, possibly in a
different process long after the original run returned. State is rebuilt
from durable records only:

    mapping (message_id) -> workflow + execution + suspended node
    node logs            -> execution context
    workflow definition  -> graph

The suspended node is never re-executed; its recorded output plus the
clicked button picks the outgoing edge to follow.
"""

import time
from typing import Any, Dict, Optional

from flowrunner.button_messages import ButtonMessageService
from flowrunner.context import ExecutionContext
from flowrunner.core.logging import get_engine_logger, log_event
from flowrunner.exceptions import ContinuationError
from flowrunner.execution_store import ExecutionStore
from flowrunner.executor import WorkflowExecutor
from flowrunner.graph import build_graph, find_node
from flowrunner.handlers import error_text
from flowrunner.models import ButtonMessageMapping, ExecutionStatus
from flowrunner.recorder import ExecutionRecorder
from flowrunner.workflow_store import WorkflowStore

logger = get_engine_logger("continuation")


class ContinuationService:
    def __init__(
        self,
        store: ExecutionStore,
        workflows: WorkflowStore,
        recorder: ExecutionRecorder,
        executor: WorkflowExecutor,
        button_messages: ButtonMessageService
    ):
        self.store = store
        self.workflows = workflows
        self.recorder = recorder
        self.executor = executor
        self.button_messages = button_messages

    async def continue_from_async_event(
        self,
        message_id: str,
        button_id: str,
        button_data: Optional[Dict[str, Any]] = None
    ) -> Optional[str]:
        """
        Resume the execution waiting on message_id.

        Args:
            message_id: Id of the outbound interactive message
            button_id: Id of the clicked button (matches an edge's output port)
            button_data: Click metadata (button_title, interactive_type)

        Returns:
            Execution id if the click was routed and the execution succeeded
            or suspended again; None otherwise
        """
        mapping = await self.button_messages.find_mapping(message_id)
        if mapping is None:
            # No execution to attach a button routing log to
            log_event(
                logger,
                "continuation_mapping_not_found",
                level="ERROR",
                message_id=message_id,
                button_id=button_id,
            )
            return None

        try:
            return await self._continue(mapping, message_id, button_id, button_data or {})
        except ContinuationError as e:
            error_message = e.message
            details = e.details
        except Exception as e:
            error_message = f"Button click routing failed: {error_text(e)}"
            details = {"exception": error_text(e)}
            logger.exception(error_message)

        await self.recorder.log_button_routing_error(
            mapping.execution_id,
            mapping.node_id,
            error_message,
            {"message_id": message_id, "button_id": button_id, **details},
        )
        return None

    async def _continue(
        self,
        mapping: ButtonMessageMapping,
        message_id: str,
        button_id: str,
        button_data: Dict[str, Any]
    ) -> Optional[str]:
        start_time = time.time()

        workflow = await self.workflows.get(mapping.workflow_id)
        if workflow is None or not workflow.is_published:
            raise ContinuationError(
                f"Workflow {mapping.workflow_id} not found or not published. "
                "Cannot continue button click routing.",
                mapping.execution_id,
                mapping.node_id,
            )

        execution = await self.store.get_execution(mapping.execution_id)
        if execution is None:
            raise ContinuationError(
                f"Execution {mapping.execution_id} not found. Cannot continue button click routing.",
                mapping.execution_id,
                mapping.node_id,
            )
        if not execution.is_running:
            raise ContinuationError(
                f"Execution {execution.id} is {execution.status.value}, not waiting for a button click.",
                execution.id,
                mapping.node_id,
                {"status": execution.status.value},
            )

        node = find_node(workflow.nodes, mapping.node_id)
        if node is None:
            raise ContinuationError(
                f"Button message node {mapping.node_id} not found in workflow. Cannot route button click.",
                execution.id,
                mapping.node_id,
            )

        if mapping.button_ids and button_id not in mapping.button_ids:
            log_event(
                logger,
                "continuation_unknown_button",
                level="WARNING",
                execution_id=execution.id,
                button_id=button_id,
                known_buttons=mapping.button_ids,
            )

        if not await self.store.claim_message(message_id, execution.id):
            raise ContinuationError(
                f"Message {message_id} was already used to continue execution {execution.id}.",
                execution.id,
                mapping.node_id,
            )

        try:
            logs = await self.store.get_node_logs(execution.id)
            context = ExecutionContext.from_node_logs(execution.trigger_data, logs)
            context.splice_button(node.id, ButtonMessageService.button_fields(button_id, button_data))
        except Exception as e:
            # Nothing was dispatched yet; free the message for a retry
            await self.store.release_claim(message_id)
            raise ContinuationError(
                f"Could not restore execution {execution.id} from node logs: {error_text(e)}",
                execution.id,
                node.id,
                {"exception": error_text(e)},
            ) from e

        log_event(
            logger,
            "continuation_started",
            execution_id=execution.id,
            node_id=node.id,
            button_id=button_id,
        )

        try:
            result, run = await self.executor.resume_from_node(
                workflow, execution.id, node, context, prior_error=execution.error_message
            )

            if not result.routed:
                edges = build_graph(workflow.nodes, workflow.edges).get(node.id, [])
                error_message = (
                    f"No connected node found for button_id '{button_id}'. "
                    "Make sure a node is connected to this button's output handle."
                )
                await self.recorder.log_button_routing_error(
                    execution.id,
                    node.id,
                    error_message,
                    {
                        "message_id": message_id,
                        "button_id": button_id,
                        "available_handles": [edge.output_port for edge in edges],
                    },
                )
                run.record_failure(error_message)

            duration_ms = execution.duration_ms + (time.time() - start_time) * 1000
            return await self.executor.finalize(run, duration_ms)
        except Exception as e:
            duration_ms = execution.duration_ms + (time.time() - start_time) * 1000
            error_message = f"Workflow continuation failed: {error_text(e)}"
            logger.exception(error_message)
            await self.recorder.finish_execution(execution.id, ExecutionStatus.FAILED, error_message, duration_ms)
            raise ContinuationError(error_message, execution.id, node.id, {"exception": error_text(e)})
