# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Executor

Depth-first node dispatch. Each node is executed according to its type,
its output is written to the execution context, then the handler chain
decides which outgoing edges to follow (or whether to suspend).

A failing node is logged at its own frame and re-raised; the parent frame
records it and keeps dispatching sibling edges. Only the first error
message is kept on the execution.
"""

import json
import re
import time
from typing import Any, Dict, List, Optional, Tuple

from flowrunner.button_messages import ButtonMessageService
from flowrunner.conditions import evaluate_condition
from flowrunner.context import ExecutionContext
from flowrunner.core.config import Config
from flowrunner.core.logging import get_engine_logger, log_event
from flowrunner.exceptions import (
    NodeConfigurationError,
    NodeExecutionException,
    NodeTimeoutException,
    WorkflowValidationError,
)
from flowrunner.graph import AdjacencyMap, build_graph, find_cycle, find_node, find_trigger_node
from flowrunner.handlers import (
    ButtonClickRouter,
    HandlerResult,
    NodeHandler,
    default_handlers,
    error_text,
    follow_edges,
)
from flowrunner.models import ExecutionStatus, NodeType, WorkflowDefinition, WorkflowNode
from flowrunner.recorder import ExecutionRecorder
from flowrunner.registries import AgentRegistry, ToolRegistry
from flowrunner.variable_resolver import resolve_structure, resolve_template

logger = get_engine_logger("executor")

DEFAULT_DECISIONS = ["yes", "no", "maybe"]
LEADING_INT_PATTERN = re.compile(r"^\s*[+-]?\d+")


def absint(value: Any) -> int:
    """Non-negative integer from loosely typed input ("12", 12.0, "-3" -> 3)."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return abs(int(value))
    match = LEADING_INT_PATTERN.match(str(value)) if value is not None else None
    return abs(int(match.group(0))) if match else 0


def parse_decision_options(custom_decisions: Any) -> List[str]:
    """yes/no/maybe plus comma-separated custom decisions, deduplicated."""
    options = list(DEFAULT_DECISIONS)
    if isinstance(custom_decisions, str):
        custom = [item.strip() for item in custom_decisions.split(",")]
    elif isinstance(custom_decisions, list):
        custom = [str(item).strip() for item in custom_decisions]
    else:
        custom = []
    for option in custom:
        if option and option not in options:
            options.append(option)
    return options


def build_agent_context(user_context: Any, trigger_data: Any) -> Any:
    """
    Merge the trigger payload into the agent's auxiliary context.

    Comment events only contribute their content, and author-provided
    keys win. Other events contribute the full payload, which wins.
    """
    if not trigger_data:
        return user_context

    if isinstance(trigger_data, dict) and (
        trigger_data.get("comment_id") is not None or trigger_data.get("comment") is not None
    ):
        simplified = {"content": trigger_data["content"]} if trigger_data.get("content") else {}
        if isinstance(user_context, dict):
            return {**simplified, **user_context}
        return simplified

    if isinstance(user_context, dict) and isinstance(trigger_data, dict):
        return {**user_context, **trigger_data}
    return trigger_data


class RunState:
    """Bookkeeping for one engine invocation over an execution."""

    def __init__(self, execution_id: str, workflow: WorkflowDefinition, graph: AdjacencyMap):
        self.execution_id = execution_id
        self.workflow = workflow
        self.graph = graph
        self.has_failed = False
        self.first_error = ""
        self.suspended = False

    @property
    def nodes(self) -> List[WorkflowNode]:
        return self.workflow.nodes

    def record_failure(self, message: str) -> None:
        self.has_failed = True
        if not self.first_error:
            self.first_error = message


class WorkflowExecutor:
    """
    Executes workflow graphs against trigger payloads.

    Entry points:
        execute()           run a workflow from its trigger node
        resume_from_node()  route a suspended button node after a click
        finalize()          fold a run's outcome into the execution record
    """

    def __init__(
        self,
        tools: ToolRegistry,
        agents: AgentRegistry,
        recorder: ExecutionRecorder,
        button_messages: ButtonMessageService,
        config: Config,
        handlers: Optional[List[NodeHandler]] = None
    ):
        self.tools = tools
        self.agents = agents
        self.recorder = recorder
        self.button_messages = button_messages
        self.config = config
        self.handlers = handlers if handlers is not None else default_handlers(config.button_tool_ids)
        self.click_router = next(
            (h for h in self.handlers if isinstance(h, ButtonClickRouter)),
            ButtonClickRouter(config.button_tool_ids),
        )

    # ========================================================================
    # Entry points
    # ========================================================================

    async def execute(self, workflow: WorkflowDefinition, trigger_data: Any = None) -> Optional[str]:
        """
        Execute a workflow from its trigger node.

        Returns:
            Execution id on success or suspension, None if the run failed
        """
        trigger_data = trigger_data if trigger_data is not None else {}
        start_time = time.time()
        execution = await self.recorder.start_execution(workflow.id, trigger_data)

        graph = build_graph(workflow.nodes, workflow.edges)
        run = RunState(execution.id, workflow, graph)
        log_event(logger, "workflow_started", workflow_id=workflow.id, execution_id=execution.id)

        cycle = find_cycle(graph)
        if cycle:
            log_event(
                logger,
                "workflow_has_cycle",
                level="WARNING",
                workflow_id=workflow.id,
                nodes=cycle,
            )

        try:
            trigger_node = find_trigger_node(workflow.nodes)
            if trigger_node is None:
                raise WorkflowValidationError("No trigger node found", field="nodes")

            context = ExecutionContext(trigger_data)
            await self._execute_node(trigger_node, context, run)
        except Exception as e:
            logger.exception(f"Workflow {workflow.id} execution failed: {e}")
            run.record_failure(error_text(e))

        duration_ms = (time.time() - start_time) * 1000
        return await self.finalize(run, duration_ms)

    async def resume_from_node(
        self,
        workflow: WorkflowDefinition,
        execution_id: str,
        node: WorkflowNode,
        context: ExecutionContext,
        prior_error: Optional[str] = None
    ) -> Tuple[HandlerResult, RunState]:
        """
        Route a suspended button node using its recorded output.

        The node itself is not re-executed or re-logged. Its context entry
        must already carry the clicked button fields.
        """
        graph = build_graph(workflow.nodes, workflow.edges)
        run = RunState(execution_id, workflow, graph)
        if prior_error:
            run.record_failure(prior_error)

        output = context.get_output(node.id)
        if not self.click_router.can_handle(node, output):
            return HandlerResult(routed=False, context=context), run

        result = await self.click_router.handle(
            node,
            output,
            graph.get(node.id, []),
            workflow.nodes,
            context,
            self._dispatcher(run),
            find_node,
        )
        self._apply_result(result, run)
        return result, run

    async def finalize(self, run: RunState, duration_ms: float) -> Optional[str]:
        """
        Persist the outcome of a run.

        Suspended runs stay running (keeping any error so far); otherwise the
        status is failed if any node failed and success if none did.
        """
        if run.suspended:
            await self.recorder.finish_execution(
                run.execution_id,
                ExecutionStatus.RUNNING,
                run.first_error or None,
                duration_ms,
            )
            return run.execution_id

        if run.has_failed:
            await self.recorder.finish_execution(
                run.execution_id,
                ExecutionStatus.FAILED,
                run.first_error,
                duration_ms,
            )
            return None

        await self.recorder.finish_execution(run.execution_id, ExecutionStatus.SUCCESS, None, duration_ms)
        return run.execution_id

    # ========================================================================
    # Dispatch
    # ========================================================================

    def _dispatcher(self, run: RunState):
        async def dispatch(node: WorkflowNode, context: ExecutionContext) -> None:
            await self._execute_node(node, context, run)
        return dispatch

    def _apply_result(self, result: HandlerResult, run: RunState) -> None:
        if result.has_errors:
            run.record_failure(result.error_message)
        if result.suspend:
            run.suspended = True

    async def _execute_node(self, node: WorkflowNode, context: ExecutionContext, run: RunState) -> None:
        """Execute one node, record it, then route downstream."""
        if context.is_completed(node.id):
            # Joins and cycles: a node runs at most once per execution
            log_event(logger, "node_skipped", level="DEBUG", node_id=node.id, execution_id=run.execution_id)
            return
        context.mark_completed(node.id)

        node_start = time.time()
        node_log = await self.recorder.start_node(run.execution_id, node, context.to_dict())

        try:
            output = await self._run_node(node, context, run)
        except Exception as e:
            duration_ms = (time.time() - node_start) * 1000
            partial = getattr(e, "output", None)
            if partial is not None and not context.has_output(node.id):
                context.record(node.id, node.type, partial)
            await self.recorder.node_failed(node_log, e, duration_ms, partial)
            raise

        context.record(node.id, node.type, output)
        await self.recorder.node_succeeded(node_log, output, (time.time() - node_start) * 1000)

        await self._route(node, output, context, run)

    async def _route(self, node: WorkflowNode, output: Any, context: ExecutionContext, run: RunState) -> None:
        next_edges = run.graph.get(node.id, [])
        dispatch = self._dispatcher(run)

        for handler in self.handlers:
            if handler.can_handle(node, output):
                result = await handler.handle(node, output, next_edges, run.nodes, context, dispatch, find_node)
                self._apply_result(result, run)
                return

        # Default fan-out: follow every outgoing edge
        result = await follow_edges(next_edges, run.nodes, context, dispatch, find_node)
        self._apply_result(result, run)

    async def _run_node(self, node: WorkflowNode, context: ExecutionContext, run: RunState) -> Any:
        if node.type == NodeType.TRIGGER.value:
            return context.trigger_data
        if node.type == NodeType.AGENT.value:
            return await self._execute_agent(node, context)
        if node.type == NodeType.ACTION.value:
            return await self._execute_action(node, context, run)
        if node.type == NodeType.CONDITION.value:
            return evaluate_condition(node.config, context, node.id)
        raise NodeConfigurationError(node.id, node.type, f"Unknown node type '{node.type}'")

    # ========================================================================
    # Node types
    # ========================================================================

    async def _execute_agent(self, node: WorkflowNode, context: ExecutionContext) -> Dict[str, Any]:
        config = node.config
        agent_id = node.agent_id or config.get("agent_id")
        if not agent_id:
            raise NodeConfigurationError(node.id, NodeType.AGENT.value, "Agent node missing agent_id")

        raw_inputs = config.get("inputs") if isinstance(config.get("inputs"), dict) else {}
        prompt = resolve_template(config.get("prompt") or raw_inputs.get("prompt") or "", context)
        if not prompt.strip():
            raise NodeConfigurationError(
                node.id,
                NodeType.AGENT.value,
                "Agent prompt is empty after variable resolution"
            )

        inputs = resolve_structure(raw_inputs, context)
        inputs["prompt"] = prompt
        agent_context = build_agent_context(inputs.get("context"), context.trigger_data)
        if agent_context is not None:
            inputs["context"] = agent_context

        decision_options = parse_decision_options(config.get("custom_decisions"))
        node_config = {key: value for key, value in config.items() if key != "inputs"}

        full_user_message = prompt
        if inputs.get("context"):
            full_user_message += "\n\nContext: " + json.dumps(
                inputs["context"], indent=4, ensure_ascii=False, default=str
            )

        inputs_sent = {
            "prompt": prompt,
            "context": inputs.get("context") or {},
            "decision_options": decision_options,
            "full_user_message": full_user_message,
            "full_inputs": dict(inputs),
        }
        inputs["decision_options"] = decision_options

        timeout = self.config.agent_timeout_seconds
        started = time.monotonic()
        try:
            result = await self.agents.execute(agent_id, inputs, node_config)
            elapsed = time.monotonic() - started
            if elapsed > timeout:
                raise NodeTimeoutException(node.id, NodeType.AGENT.value, timeout, elapsed)
        except NodeExecutionException as e:
            e.output = {"error": e.message, "_inputs_sent": inputs_sent}
            raise
        except Exception as e:
            log_event(
                logger,
                "agent_failed",
                level="WARNING",
                node_id=node.id,
                agent_id=agent_id,
                error=error_text(e),
            )
            raise NodeExecutionException(
                node.id,
                NodeType.AGENT.value,
                error_text(e),
                output={"error": error_text(e), "_inputs_sent": inputs_sent},
            ) from e

        if isinstance(result, dict):
            output = dict(result)
            output["_inputs_sent"] = inputs_sent
            return output
        return {"result": result, "_inputs_sent": inputs_sent}

    async def _execute_action(self, node: WorkflowNode, context: ExecutionContext, run: RunState) -> Any:
        config = node.config
        if config.get("action_type") == "conditional":
            return await self._execute_conditional_action(node, context)

        tool_id = config.get("tool_id")
        if not tool_id:
            raise NodeConfigurationError(
                node.id,
                NodeType.ACTION.value,
                f"Action node '{node.id}' is missing tool_id"
            )

        inputs = resolve_structure(config.get("inputs") or {}, context)
        if not isinstance(inputs, dict):
            inputs = {}
        self._populate_comment_id(tool_id, inputs, context.trigger_data)

        output = await self.tools.execute(tool_id, inputs, context.to_dict())

        if (
            self.config.is_button_tool(tool_id)
            and isinstance(output, dict)
            and output.get("message_id")
            and not output.get("button_id")
        ):
            await self.button_messages.store_mapping(node, output, run.workflow.id, run.execution_id)
        return output

    def _populate_comment_id(self, tool_id: str, inputs: Dict[str, Any], trigger_data: Any) -> None:
        """Comment tools take the comment id from the trigger when not wired."""
        trigger_comment = trigger_data.get("comment_id") if isinstance(trigger_data, dict) else None
        if (
            not inputs.get("comment_id")
            and trigger_comment
            and tool_id.startswith(self.config.comment_tool_prefix)
        ):
            comment_id = absint(trigger_comment)
            if comment_id > 0:
                inputs["comment_id"] = comment_id

        if "comment_id" in inputs:
            inputs["comment_id"] = absint(inputs["comment_id"])

    async def _execute_conditional_action(self, node: WorkflowNode, context: ExecutionContext) -> Any:
        """
        Run the tool mapped to an earlier agent decision.

        config.conditions: [{"if": "decision == 'approve'", "then": "<tool_id>"}]
        """
        decision = None
        for output in context.outputs.values():
            if isinstance(output, dict) and output.get("decision"):
                decision = output["decision"]
                break

        if not decision:
            return {"success": False, "message": "No decision found"}

        for condition in node.config.get("conditions") or []:
            expected = str(condition.get("if", "")).replace("decision == '", "").replace("'", "").strip()
            if expected == str(decision) and condition.get("then"):
                trigger_data = context.trigger_data if isinstance(context.trigger_data, dict) else {}
                inputs = {"comment_id": absint(trigger_data.get("comment_id"))}
                return await self.tools.execute(condition["then"], inputs, context.to_dict())

        return {"success": False, "message": "No matching condition"}
