# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Engine

Wires stores, registries, recorder, executor and continuation service from
a Config and exposes the engine entry points.
"""

from typing import Any, Dict, List, Optional

from flowrunner.audit import WorkflowAuditLogger
from flowrunner.button_messages import ButtonMessageService
from flowrunner.continuation import ContinuationService
from flowrunner.core.config import Config, get_config
from flowrunner.core.logging import get_engine_logger, log_event
from flowrunner.execution_store import ExecutionStore
from flowrunner.executor import WorkflowExecutor
from flowrunner.models import WorkflowDefinition
from flowrunner.recorder import ExecutionRecorder
from flowrunner.registries import AgentRegistry, ToolRegistry, TriggerRegistry
from flowrunner.workflow_store import WorkflowStore

logger = get_engine_logger("engine")


class WorkflowEngine:
    def __init__(
        self,
        config: Config,
        tools: ToolRegistry,
        agents: AgentRegistry,
        store: ExecutionStore,
        workflows: WorkflowStore,
        audit: Optional[WorkflowAuditLogger] = None
    ):
        self.config = config
        self.tools = tools
        self.agents = agents
        self.store = store
        self.workflows = workflows
        self.audit = audit

        self.recorder = ExecutionRecorder(store, audit)
        self.button_messages = ButtonMessageService(store)
        self.executor = WorkflowExecutor(tools, agents, self.recorder, self.button_messages, config)
        self.continuation = ContinuationService(
            store, workflows, self.recorder, self.executor, self.button_messages
        )
        self.triggers = TriggerRegistry(workflows, self.execute)

    @classmethod
    def from_config(
        cls,
        config: Optional[Config] = None,
        tools: Optional[ToolRegistry] = None,
        agents: Optional[AgentRegistry] = None
    ) -> "WorkflowEngine":
        """Build an engine with file-backed stores under config.storage_dir."""
        config = config or get_config()
        audit = None
        if config.history_mcp_url:
            audit = WorkflowAuditLogger(config.history_mcp_url, timeout=config.http_timeout)

        return cls(
            config=config,
            tools=tools or ToolRegistry(),
            agents=agents or AgentRegistry(),
            store=ExecutionStore(config.storage_dir),
            workflows=WorkflowStore(config.storage_dir),
            audit=audit,
        )

    async def execute(self, workflow: WorkflowDefinition, trigger_data: Any = None) -> Optional[str]:
        """Run a workflow; execution id, or None if the run failed."""
        return await self.executor.execute(workflow, trigger_data)

    async def execute_workflow(self, workflow_id: str, trigger_data: Any = None) -> Optional[str]:
        """Run a stored workflow. Only published workflows run."""
        workflow = await self.workflows.get(workflow_id)
        if workflow is None or not workflow.is_published:
            log_event(
                logger,
                "workflow_not_runnable",
                level="WARNING",
                workflow_id=workflow_id,
                found=workflow is not None,
            )
            return None
        return await self.execute(workflow, trigger_data)

    async def continue_from_async_event(
        self,
        message_id: str,
        button_id: str,
        button_data: Optional[Dict[str, Any]] = None
    ) -> Optional[str]:
        """Resume the execution waiting on an interactive message."""
        return await self.continuation.continue_from_async_event(message_id, button_id, button_data)

    async def trigger(self, trigger_id: str, payload: Optional[Dict[str, Any]] = None) -> List[str]:
        """Fan a trigger event out to every matching published workflow."""
        return await self.triggers.trigger(trigger_id, payload)

    async def close(self) -> None:
        if self.audit is not None:
            await self.audit.close()
