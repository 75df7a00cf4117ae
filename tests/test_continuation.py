# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for suspend/resume on button clicks
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from flowrunner.models import ExecutionStatus, WorkflowEdge, WorkflowNode, WorkflowStatus

BUTTON_TOOL = "whatsapp_send_button_message"


def routing_logs(logs):
    return [log for log in logs if log.node_type == "button_routing"]


@pytest.mark.asyncio
async def test_button_node_suspends_execution(engine, store, tools, workflow_store, button_workflow):
    await workflow_store.save(button_workflow)
    execution_id = await engine.execute(button_workflow, {"order": "A-1"})

    assert execution_id is not None
    execution = await store.get_execution(execution_id)
    assert execution.status == ExecutionStatus.RUNNING
    assert execution.completed_at is None

    mapping = await store.get_button_mapping("wamid.1")
    assert mapping.execution_id == execution_id
    assert mapping.workflow_id == "wf1"
    assert mapping.node_id == "ask"
    assert mapping.button_ids == ["btn_yes", "btn_no"]

    inputs, _ = tools.get(BUTTON_TOOL).await_args.args
    assert inputs["text"] == "Approve A-1?"
    tools.get("notify").assert_not_awaited()
    tools.get("send_email").assert_not_awaited()


@pytest.mark.asyncio
async def test_suspend_resume_round_trip(engine, store, tools, workflow_store, button_workflow):
    await workflow_store.save(button_workflow)
    execution_id = await engine.execute(button_workflow, {"order": "A-1"})
    logs_before = await store.get_node_logs(execution_id)

    result = await engine.continue_from_async_event("wamid.1", "btn_yes", {"button_title": "Yes"})

    assert result == execution_id
    execution = await store.get_execution(execution_id)
    assert execution.status == ExecutionStatus.SUCCESS
    assert execution.completed_at is not None

    logs_after = await store.get_node_logs(execution_id)
    assert len(logs_after) == len(logs_before) + 1
    assert logs_after[-1].node_id == "on_yes"
    assert logs_after[-1].status == ExecutionStatus.SUCCESS
    assert [log.node_id for log in logs_after].count("ask") == 1

    inputs, context = tools.get("notify").await_args.args
    assert inputs == {"text": "Yes"}
    assert context["button_data"]["button_id"] == "btn_yes"
    assert context["ask"]["button_id"] == "btn_yes"
    assert context["trigger_data"] == {"order": "A-1"}
    tools.get("send_email").assert_not_awaited()
    assert tools.get(BUTTON_TOOL).await_count == 1


@pytest.mark.asyncio
async def test_unmatched_button_is_idempotent_failure(engine, store, tools, workflow_store, button_workflow):
    """Replaying an unroutable click fails both times with separate routing logs"""
    await workflow_store.save(button_workflow)
    execution_id = await engine.execute(button_workflow, {"order": "A-1"})

    first = await engine.continue_from_async_event("wamid.1", "btn_maybe")
    second = await engine.continue_from_async_event("wamid.1", "btn_maybe")

    assert first is None
    assert second is None

    logs = await store.get_node_logs(execution_id)
    routing = routing_logs(logs)
    assert len(routing) == 2
    assert routing[0].id != routing[1].id
    assert all(log.node_id == "ask_button_continuation" for log in routing)
    assert "No connected node found for button_id 'btn_maybe'" in routing[0].error_message
    assert routing[0].output_data["available_handles"] == ["btn_yes", "btn_no"]

    execution = await store.get_execution(execution_id)
    assert execution.status == ExecutionStatus.FAILED
    tools.get("notify").assert_not_awaited()
    tools.get("send_email").assert_not_awaited()


@pytest.mark.asyncio
async def test_unknown_message_returns_none(engine, store):
    assert await engine.continue_from_async_event("wamid.unknown", "btn_yes") is None
    assert await store.list_executions() == []


@pytest.mark.asyncio
async def test_unpublished_workflow_is_not_continued(engine, store, tools, workflow_store, button_workflow):
    await workflow_store.save(button_workflow)
    execution_id = await engine.execute(button_workflow, {"order": "A-1"})
    await workflow_store.set_status("wf1", WorkflowStatus.DRAFT)

    assert await engine.continue_from_async_event("wamid.1", "btn_yes") is None

    routing = routing_logs(await store.get_node_logs(execution_id))
    assert len(routing) == 1
    assert "not found or not published" in routing[0].error_message
    assert routing[0].output_data["message_id"] == "wamid.1"
    assert (await store.get_execution(execution_id)).status == ExecutionStatus.RUNNING
    tools.get("notify").assert_not_awaited()


@pytest.mark.asyncio
async def test_second_click_after_success_is_rejected(engine, store, tools, workflow_store, button_workflow):
    await workflow_store.save(button_workflow)
    execution_id = await engine.execute(button_workflow, {"order": "A-1"})

    assert await engine.continue_from_async_event("wamid.1", "btn_yes") == execution_id
    assert await engine.continue_from_async_event("wamid.1", "btn_no") is None

    assert tools.get("notify").await_count == 1
    tools.get("send_email").assert_not_awaited()
    assert (await store.get_execution(execution_id)).status == ExecutionStatus.SUCCESS


@pytest.mark.asyncio
async def test_concurrent_clicks_continue_once(engine, store, tools, workflow_store, button_workflow):
    await workflow_store.save(button_workflow)
    execution_id = await engine.execute(button_workflow, {"order": "A-1"})

    results = await asyncio.gather(
        engine.continue_from_async_event("wamid.1", "btn_yes"),
        engine.continue_from_async_event("wamid.1", "btn_yes"),
    )

    assert [r for r in results if r] == [execution_id]
    assert tools.get("notify").await_count == 1
    assert len(routing_logs(await store.get_node_logs(execution_id))) == 1


@pytest.mark.asyncio
async def test_resume_can_suspend_again(engine, store, tools, workflow_store, make_workflow):
    tools.register(BUTTON_TOOL, AsyncMock(side_effect=[
        {"success": True, "message_id": "m1"},
        {"success": True, "message_id": "m2"},
    ]))
    buttons = {"buttons": [{"id": "ok", "title": "OK"}]}
    workflow = make_workflow(
        nodes=[
            {"id": "t", "type": "trigger"},
            {"id": "ask1", "type": "action", "config": {"tool_id": BUTTON_TOOL, "inputs": buttons}},
            {"id": "ask2", "type": "action", "config": {"tool_id": BUTTON_TOOL, "inputs": buttons}},
            {"id": "done", "type": "action", "config": {"tool_id": "notify"}},
        ],
        edges=[
            {"from": "t", "to": "ask1"},
            {"from": "ask1", "to": "ask2", "sourceHandle": "ok"},
            {"from": "ask2", "to": "done", "sourceHandle": "ok"},
        ],
    )
    await workflow_store.save(workflow)
    execution_id = await engine.execute(workflow, {})

    assert await engine.continue_from_async_event("m1", "ok") == execution_id
    assert (await store.get_execution(execution_id)).status == ExecutionStatus.RUNNING
    assert (await store.get_button_mapping("m2")).node_id == "ask2"

    assert await engine.continue_from_async_event("m2", "ok") == execution_id
    assert (await store.get_execution(execution_id)).status == ExecutionStatus.SUCCESS
    assert [log.node_id for log in await store.get_node_logs(execution_id)] == ["t", "ask1", "ask2", "done"]


@pytest.mark.asyncio
async def test_error_before_suspend_is_kept_after_resume(engine, store, workflow_store, button_workflow):
    """A sibling failure from the first run still fails the execution"""
    button_workflow.nodes.append(WorkflowNode(id="broken", type="action"))
    button_workflow.edges.append(WorkflowEdge(source="trigger1", target="broken"))
    await workflow_store.save(button_workflow)

    execution_id = await engine.execute(button_workflow, {"order": "A-1"})
    execution = await store.get_execution(execution_id)
    assert execution.status == ExecutionStatus.RUNNING
    assert execution.error_message == "Node 'broken' failed: Action node 'broken' is missing tool_id"

    assert await engine.continue_from_async_event("wamid.1", "btn_yes") is None
    execution = await store.get_execution(execution_id)
    assert execution.status == ExecutionStatus.FAILED
    assert execution.error_message == "Node 'broken' failed: Action node 'broken' is missing tool_id"
    assert (await store.get_node_logs(execution_id))[-1].node_id == "on_yes"


@pytest.mark.asyncio
async def test_unreadable_node_logs_release_the_message(engine, store, tools, workflow_store, button_workflow, monkeypatch):
    """A failed context rebuild leaves the click retryable"""
    await workflow_store.save(button_workflow)
    execution_id = await engine.execute(button_workflow, {"order": "A-1"})

    monkeypatch.setattr(store, "get_node_logs", AsyncMock(side_effect=OSError("disk")))
    assert await engine.continue_from_async_event("wamid.1", "btn_yes") is None
    monkeypatch.undo()

    routing = routing_logs(await store.get_node_logs(execution_id))
    assert len(routing) == 1
    assert routing[0].error_message == f"Could not restore execution {execution_id} from node logs: disk"
    assert routing[0].output_data["message_id"] == "wamid.1"
    assert (await store.get_execution(execution_id)).status == ExecutionStatus.RUNNING
    tools.get("notify").assert_not_awaited()

    assert await engine.continue_from_async_event("wamid.1", "btn_yes") == execution_id
    assert (await store.get_execution(execution_id)).status == ExecutionStatus.SUCCESS
    assert tools.get("notify").await_count == 1


@pytest.mark.asyncio
async def test_failure_while_finishing_resume_fails_execution(engine, store, workflow_store, button_workflow, monkeypatch):
    await workflow_store.save(button_workflow)
    execution_id = await engine.execute(button_workflow, {"order": "A-1"})

    monkeypatch.setattr(engine.executor, "finalize", AsyncMock(side_effect=OSError("disk")))
    assert await engine.continue_from_async_event("wamid.1", "btn_yes") is None

    execution = await store.get_execution(execution_id)
    assert execution.status == ExecutionStatus.FAILED
    assert execution.error_message == "Workflow continuation failed: disk"
    routing = routing_logs(await store.get_node_logs(execution_id))
    assert len(routing) == 1
    assert routing[0].error_message == "Workflow continuation failed: disk"


@pytest.mark.asyncio
async def test_unexpected_error_is_logged_as_routing_failure(engine, store, workflow_store, button_workflow, monkeypatch):
    await workflow_store.save(button_workflow)
    execution_id = await engine.execute(button_workflow, {"order": "A-1"})

    monkeypatch.setattr(store, "get_execution", AsyncMock(side_effect=OSError("disk")))
    assert await engine.continue_from_async_event("wamid.1", "btn_yes") is None
    monkeypatch.undo()

    routing = routing_logs(await store.get_node_logs(execution_id))
    assert len(routing) == 1
    assert routing[0].error_message == "Button click routing failed: disk"
    assert routing[0].output_data["exception"] == "disk"
    assert (await store.get_execution(execution_id)).status == ExecutionStatus.RUNNING


@pytest.mark.asyncio
async def test_missing_execution_record_is_not_continued(engine, store, tools, workflow_store, button_workflow):
    await workflow_store.save(button_workflow)
    execution_id = await engine.execute(button_workflow, {"order": "A-1"})
    (store.executions_dir / f"{execution_id}.json").unlink()

    assert await engine.continue_from_async_event("wamid.1", "btn_yes") is None

    routing = routing_logs(await store.get_node_logs(execution_id))
    assert len(routing) == 1
    assert routing[0].error_message == (
        f"Execution {execution_id} not found. Cannot continue button click routing."
    )
    tools.get("notify").assert_not_awaited()


@pytest.mark.asyncio
async def test_removed_button_node_is_not_continued(engine, store, tools, workflow_store, button_workflow):
    await workflow_store.save(button_workflow)
    execution_id = await engine.execute(button_workflow, {"order": "A-1"})

    button_workflow.nodes = [node for node in button_workflow.nodes if node.id != "ask"]
    button_workflow.edges = [
        edge for edge in button_workflow.edges if "ask" not in (edge.source, edge.target)
    ]
    await workflow_store.save(button_workflow)

    assert await engine.continue_from_async_event("wamid.1", "btn_yes") is None

    routing = routing_logs(await store.get_node_logs(execution_id))
    assert len(routing) == 1
    assert routing[0].error_message == (
        "Button message node ask not found in workflow. Cannot route button click."
    )
    assert (await store.get_execution(execution_id)).status == ExecutionStatus.RUNNING
    tools.get("notify").assert_not_awaited()


@pytest.mark.asyncio
async def test_click_to_node_already_run_by_sibling_is_skipped(engine, store, tools, workflow_store, button_workflow):
    """Nodes run at most once per execution, including across a resume"""
    button_workflow.edges.append(WorkflowEdge(source="trigger1", target="on_yes"))
    await workflow_store.save(button_workflow)
    execution_id = await engine.execute(button_workflow, {"order": "A-1"})
    logs_before = await store.get_node_logs(execution_id)
    assert tools.get("notify").await_count == 1

    assert await engine.continue_from_async_event("wamid.1", "btn_yes") == execution_id

    logs_after = await store.get_node_logs(execution_id)
    assert len(logs_after) == len(logs_before)
    assert [log.node_id for log in logs_after].count("on_yes") == 1
    assert tools.get("notify").await_count == 1
    assert (await store.get_execution(execution_id)).status == ExecutionStatus.SUCCESS
