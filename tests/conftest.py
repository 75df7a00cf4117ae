# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Pytest configuration and fixtures for FlowRunner tests
"""

import os
import sys

import pytest
from unittest.mock import AsyncMock

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from flowrunner.core.config import Config
from flowrunner.engine import WorkflowEngine
from flowrunner.execution_store import ExecutionStore
from flowrunner.models import WorkflowDefinition, WorkflowEdge, WorkflowNode, WorkflowStatus
from flowrunner.registries import AgentRegistry, ToolRegistry
from flowrunner.workflow_store import WorkflowStore


BUTTON_TOOL = "whatsapp_send_button_message"


@pytest.fixture
def config(tmp_path):
    """Engine config rooted in a temporary storage directory"""
    return Config(storage_dir=str(tmp_path / "storage"), agent_timeout_seconds=60)


@pytest.fixture
def store(config):
    return ExecutionStore(config.storage_dir)


@pytest.fixture
def workflow_store(config):
    return WorkflowStore(config.storage_dir)


@pytest.fixture
def tools():
    """Tool registry with a generic tool and a button message tool"""
    registry = ToolRegistry()
    registry.register("send_email", AsyncMock(return_value={"success": True}))
    registry.register("notify", AsyncMock(return_value={"success": True}))
    registry.register(BUTTON_TOOL, AsyncMock(return_value={"success": True, "message_id": "wamid.1"}))
    return registry


@pytest.fixture
def agents():
    """Agent registry with a single deciding agent"""
    registry = AgentRegistry()
    registry.register("classifier", AsyncMock(return_value={"response": "yes", "decision": "approve"}))
    return registry


@pytest.fixture
def engine(config, tools, agents, store, workflow_store):
    return WorkflowEngine(
        config=config,
        tools=tools,
        agents=agents,
        store=store,
        workflows=workflow_store,
    )


@pytest.fixture
def make_workflow():
    """Factory for published workflows from plain node/edge dicts"""
    def _make(nodes, edges=None, workflow_id="wf1", status=WorkflowStatus.PUBLISHED):
        return WorkflowDefinition(
            id=workflow_id,
            title="Test Workflow",
            status=status,
            nodes=[WorkflowNode(**node) for node in nodes],
            edges=[WorkflowEdge.model_validate(edge) for edge in (edges or [])],
        )
    return _make


@pytest.fixture
def button_workflow(make_workflow):
    """trigger -> button message -> (btn_yes) notify / (btn_no) send_email"""
    return make_workflow(
        nodes=[
            {"id": "trigger1", "type": "trigger", "config": {"trigger_type": "whatsapp_message"}},
            {
                "id": "ask",
                "type": "action",
                "title": "Ask customer",
                "config": {
                    "tool_id": BUTTON_TOOL,
                    "inputs": {
                        "text": "Approve {{trigger_data.order}}?",
                        "buttons": [{"id": "btn_yes", "title": "Yes"}, {"id": "btn_no", "title": "No"}],
                    },
                },
            },
            {"id": "on_yes", "type": "action", "config": {"tool_id": "notify", "inputs": {"text": "{{parents.action.btn_yes}}"}}},
            {"id": "on_no", "type": "action", "config": {"tool_id": "send_email"}},
        ],
        edges=[
            {"from": "trigger1", "to": "ask"},
            {"from": "ask", "to": "on_yes", "sourceHandle": "btn_yes"},
            {"from": "ask", "to": "on_no", "sourceHandle": "btn_no"},
        ],
    )
