# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Registries

Tools, agents and triggers are external collaborators. The engine only
knows them by id through these registries. Implementations may be
BaseTool/BaseAgent subclasses or plain callables, sync or async.
"""

import inspect
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

from flowrunner.core.errors import NotFoundError
from flowrunner.core.logging import get_engine_logger, log_event

logger = get_engine_logger("registry")


class BaseTool(ABC):
    """Tool invoked by action nodes."""

    @abstractmethod
    def execute(self, inputs: Dict[str, Any], context: Dict[str, Any]) -> Any:
        """Run the tool. May return an awaitable."""


class BaseAgent(ABC):
    """Agent invoked by agent nodes."""

    @abstractmethod
    def execute(self, inputs: Dict[str, Any], node_config: Dict[str, Any]) -> Any:
        """Run the agent. May return an awaitable."""


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class Registry:
    """Id -> item mapping shared by all registries."""

    kind = "Item"

    def __init__(self):
        self._items: Dict[str, Any] = {}

    def register(self, item_id: str, item: Any) -> None:
        self._items[item_id] = item

    def get(self, item_id: str) -> Optional[Any]:
        return self._items.get(item_id)

    def get_all(self) -> Dict[str, Any]:
        return dict(self._items)

    def has(self, item_id: str) -> bool:
        return item_id in self._items

    def unregister(self, item_id: str) -> None:
        self._items.pop(item_id, None)

    def require(self, item_id: str) -> Any:
        """
        Get an item or fail.

        Raises:
            NotFoundError: If nothing is registered under item_id
        """
        item = self._items.get(item_id)
        if item is None:
            raise NotFoundError(self.kind, item_id)
        return item


class ToolRegistry(Registry):
    kind = "Tool"

    async def execute(self, tool_id: str, inputs: Dict[str, Any], context: Dict[str, Any]) -> Any:
        tool = self.require(tool_id)
        if isinstance(tool, BaseTool):
            return await _maybe_await(tool.execute(inputs, context))
        return await _maybe_await(tool(inputs, context))


class AgentRegistry(Registry):
    kind = "Agent"

    async def execute(self, agent_id: str, inputs: Dict[str, Any], node_config: Dict[str, Any]) -> Any:
        agent = self.require(agent_id)
        if isinstance(agent, BaseAgent):
            return await _maybe_await(agent.execute(inputs, node_config))
        return await _maybe_await(agent(inputs, node_config))


class TriggerRegistry(Registry):
    """
    Known trigger ids plus the fan-out entry point.

    `trigger()` runs every published workflow whose trigger node declares
    the trigger id. One workflow failing does not stop the others.
    """

    kind = "Trigger"

    def __init__(self, workflow_store, run_workflow: Callable[..., Awaitable[Optional[str]]]):
        super().__init__()
        self.workflow_store = workflow_store
        self.run_workflow = run_workflow

    async def trigger(self, trigger_id: str, payload: Optional[Dict[str, Any]] = None) -> List[str]:
        """
        Fire a trigger.

        Args:
            trigger_id: Trigger id declared by workflow trigger nodes
            payload: Event payload passed to each workflow as trigger_data

        Returns:
            Execution ids of the workflows that started
        """
        payload = payload or {}
        workflows = await self.workflow_store.get_workflows_by_trigger(trigger_id)
        log_event(logger, "trigger_fired", trigger_id=trigger_id, matched=len(workflows))

        execution_ids = []
        for workflow in workflows:
            try:
                execution_id = await self.run_workflow(workflow, payload)
            except Exception as e:
                logger.exception(f"Workflow {workflow.id} failed to run for trigger '{trigger_id}': {e}")
                continue
            if execution_id:
                execution_ids.append(execution_id)
            else:
                log_event(
                    logger,
                    "workflow_run_failed",
                    level="WARNING",
                    trigger_id=trigger_id,
                    workflow_id=workflow.id,
                )
        return execution_ids
