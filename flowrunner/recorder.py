# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Execution Recorder

Single writer for execution and node log records: status transitions,
timing, input/output snapshots and error details. Events are mirrored to
the History MCP audit trail when one is configured.
"""

import json
import traceback
from typing import Any, Dict, Optional

from flowrunner.audit import WorkflowAuditLogger
from flowrunner.core.logging import get_engine_logger, log_event
from flowrunner.execution_store import ExecutionStore, generate_execution_id
from flowrunner.models import (
    BUTTON_ROUTING_NODE_TYPE,
    Execution,
    ExecutionStatus,
    NodeLog,
    WorkflowNode,
    utcnow,
)

logger = get_engine_logger("recorder")


def to_jsonable(value: Any) -> Any:
    """Snapshot a value as plain JSON types."""
    if value is None:
        return None
    return json.loads(json.dumps(value, default=str))


def format_stack(error: BaseException) -> str:
    return "".join(traceback.format_exception(type(error), error, error.__traceback__))


class ExecutionRecorder:
    """Persists execution and node-level status."""

    def __init__(self, store: ExecutionStore, audit: Optional[WorkflowAuditLogger] = None):
        self.store = store
        self.audit = audit
        self._sessions: Dict[str, Optional[str]] = {}

    async def _session_for(self, execution_id: str) -> Optional[str]:
        if self.audit is None:
            return None
        if execution_id not in self._sessions:
            execution = await self.store.get_execution(execution_id)
            self._sessions[execution_id] = execution.history_session_id if execution else None
        return self._sessions[execution_id]

    # ========================================================================
    # Executions
    # ========================================================================

    async def start_execution(self, workflow_id: str, trigger_data: Any) -> Execution:
        """Create a running execution record."""
        execution_id = generate_execution_id()
        session_id = None
        if self.audit is not None:
            session_id = await self.audit.create_session(workflow_id, execution_id)
            self._sessions[execution_id] = session_id

        execution = Execution(
            id=execution_id,
            workflow_id=workflow_id,
            status=ExecutionStatus.RUNNING,
            trigger_data=to_jsonable(trigger_data),
            history_session_id=session_id,
        )
        await self.store.save_execution(execution)
        log_event(logger, "execution_started", execution_id=execution_id, workflow_id=workflow_id)
        return execution

    async def finish_execution(
        self,
        execution_id: str,
        status: ExecutionStatus,
        error_message: Optional[str] = None,
        duration_ms: int = 0
    ) -> Execution:
        """
        Record the outcome of one engine invocation.

        A RUNNING status means the execution suspended; completed_at stays
        unset until a later continuation reaches a terminal status.
        """
        fields: Dict[str, Any] = {
            "status": status,
            "error_message": error_message,
            "duration_ms": int(duration_ms),
        }
        if status != ExecutionStatus.RUNNING:
            fields["completed_at"] = utcnow()

        execution = await self.store.update_execution(execution_id, **fields)
        log_event(
            logger,
            "execution_finished",
            level="INFO" if status != ExecutionStatus.FAILED else "WARNING",
            execution_id=execution_id,
            status=execution.status.value,
            duration_ms=execution.duration_ms,
            error_message=error_message,
        )
        if self.audit is not None:
            await self.audit.log_workflow_complete(
                await self._session_for(execution_id),
                execution.workflow_id,
                execution.status.value,
                error_message,
            )
        return execution

    # ========================================================================
    # Node logs
    # ========================================================================

    async def start_node(self, execution_id: str, node: WorkflowNode, input_data: Any) -> NodeLog:
        """Insert a running node log with the input snapshot."""
        log = await self.store.append_node_log(
            execution_id,
            node_id=node.id,
            node_type=node.type,
            node_title=node.display_title,
            status=ExecutionStatus.RUNNING,
            input_data=to_jsonable(input_data),
        )
        if self.audit is not None:
            await self.audit.log_node_start(await self._session_for(execution_id), node.id, node.type)
        return log

    async def node_succeeded(self, log: NodeLog, output: Any, duration_ms: int) -> NodeLog:
        updated = await self.store.update_node_log(
            log.execution_id,
            log.id,
            status=ExecutionStatus.SUCCESS,
            output_data=to_jsonable(output),
            duration_ms=int(duration_ms),
            completed_at=utcnow(),
        )
        if self.audit is not None:
            await self.audit.log_node_complete(
                await self._session_for(log.execution_id), log.node_id, log.node_type, updated.duration_ms
            )
        return updated

    async def node_failed(
        self,
        log: NodeLog,
        error: BaseException,
        duration_ms: int,
        output: Any = None
    ) -> NodeLog:
        """Mark a node failed with message, stack trace and any partial output."""
        message = getattr(error, "message", None) or str(error)
        updated = await self.store.update_node_log(
            log.execution_id,
            log.id,
            status=ExecutionStatus.FAILED,
            output_data=to_jsonable(output),
            error_message=message,
            error_stack=format_stack(error),
            duration_ms=int(duration_ms),
            completed_at=utcnow(),
        )
        log_event(
            logger,
            "node_failed",
            level="WARNING",
            execution_id=log.execution_id,
            node_id=log.node_id,
            node_type=log.node_type,
            error=message,
        )
        if self.audit is not None:
            await self.audit.log_error(
                await self._session_for(log.execution_id), log.node_id, log.node_type, message
            )
        return updated

    async def log_button_routing_error(
        self,
        execution_id: str,
        node_id: str,
        error_message: str,
        details: Optional[Dict[str, Any]] = None
    ) -> NodeLog:
        """
        Insert a synthetic failed log for a continuation that could not route.

        Every call inserts a new row so repeated failures stay distinguishable.
        """
        output = {"error": True, "message": error_message}
        output.update(details or {})
        log = await self.store.append_node_log(
            execution_id,
            node_id=f"{node_id}_button_continuation",
            node_type=BUTTON_ROUTING_NODE_TYPE,
            node_title="Button Click Routing",
            status=ExecutionStatus.FAILED,
            output_data=to_jsonable(output),
            error_message=error_message,
            completed_at=utcnow(),
        )
        log_event(
            logger,
            "button_routing_failed",
            level="ERROR",
            execution_id=execution_id,
            node_id=node_id,
            error=error_message,
        )
        return log
