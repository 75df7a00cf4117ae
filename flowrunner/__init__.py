# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
FlowRunner - event-driven workflow execution engine.

Interprets node/edge graphs of triggers, agents, actions and conditions,
and can suspend mid-graph until an interactive button reply arrives.
"""

from flowrunner.context import ExecutionContext
from flowrunner.engine import WorkflowEngine
from flowrunner.models import (
    ButtonMessageMapping,
    Execution,
    ExecutionStatus,
    NodeLog,
    NodeType,
    WorkflowDefinition,
    WorkflowEdge,
    WorkflowNode,
    WorkflowStatus,
)
from flowrunner.registries import AgentRegistry, BaseAgent, BaseTool, ToolRegistry

__version__ = "1.0.0"

__all__ = [
    "WorkflowEngine",
    "ExecutionContext",
    "ButtonMessageMapping",
    "Execution",
    "ExecutionStatus",
    "NodeLog",
    "NodeType",
    "WorkflowDefinition",
    "WorkflowEdge",
    "WorkflowNode",
    "WorkflowStatus",
    "AgentRegistry",
    "BaseAgent",
    "BaseTool",
    "ToolRegistry",
]
