# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
FlowRunner Models

Pydantic models for workflow definitions and the durable execution records
(executions, node logs, button message mappings).
"""

from datetime import datetime
from enum import Enum
from typing import List, Dict, Any, Optional
from pydantic import BaseModel, Field, ConfigDict, AliasChoices


class NodeType(str, Enum):
    TRIGGER = "trigger"
    AGENT = "agent"
    ACTION = "action"
    CONDITION = "condition"


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class WorkflowStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


# Synthetic node type for continuation (button routing) log entries
BUTTON_ROUTING_NODE_TYPE = "button_routing"


def utcnow() -> str:
    return datetime.utcnow().isoformat()


class WorkflowNode(BaseModel):
    """Workflow node - type plus free-form configuration"""
    model_config = ConfigDict(extra="allow")

    id: str
    type: str
    title: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)

    # Some editors store these on the node instead of inside config
    agent_id: Optional[str] = None
    trigger_type: Optional[str] = None

    @property
    def display_title(self) -> str:
        return self.title or self.config.get("title") or self.id


class WorkflowEdge(BaseModel):
    """Workflow edge; source/target may be missing on malformed data"""
    model_config = ConfigDict(populate_by_name=True)

    source: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("from", "source", "from_")
    )
    target: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("to", "target")
    )
    source_handle: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("sourceHandle", "source_handle")
    )


class WorkflowDefinition(BaseModel):
    """Workflow definition - node/edge graph"""
    id: str
    title: Optional[str] = None
    status: WorkflowStatus = WorkflowStatus.DRAFT
    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[WorkflowEdge] = Field(default_factory=list)

    @property
    def is_published(self) -> bool:
        return self.status == WorkflowStatus.PUBLISHED

    def trigger_ids(self) -> List[str]:
        """Trigger ids declared by this workflow's trigger nodes."""
        ids = []
        for node in self.nodes:
            if node.type != NodeType.TRIGGER.value:
                continue
            trigger_id = node.trigger_type or node.config.get("trigger_type")
            if trigger_id:
                ids.append(trigger_id)
        return ids


class Execution(BaseModel):
    """One run of a workflow against one trigger payload"""
    id: str
    workflow_id: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    trigger_data: Any = None
    error_message: Optional[str] = None
    duration_ms: int = 0
    started_at: str = Field(default_factory=utcnow)
    history_session_id: Optional[str] = None
    completed_at: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.status == ExecutionStatus.RUNNING


class NodeLog(BaseModel):
    """One row per (execution, node) attempt"""
    id: int
    execution_id: str
    node_id: str
    node_type: str
    node_title: Optional[str] = None
    status: ExecutionStatus = ExecutionStatus.RUNNING
    input_data: Any = None
    output_data: Any = None
    error_message: Optional[str] = None
    error_stack: Optional[str] = None
    duration_ms: int = 0
    started_at: str = Field(default_factory=utcnow)
    completed_at: Optional[str] = None


class ButtonMessageMapping(BaseModel):
    """Links an outbound interactive message to the node awaiting its reply"""
    id: int = 0
    message_id: str
    workflow_id: str
    execution_id: str
    node_id: str
    button_ids: List[str] = Field(default_factory=list)
    created_at: str = Field(default_factory=utcnow)
