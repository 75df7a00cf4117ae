# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Execution Context

Per-execution working memory: node outputs, node types in execution order,
the trigger payload and, after a resume, the clicked button.
"""

from typing import Dict, Any, Iterable, List, Optional, Set

from flowrunner.exceptions import WorkflowEngineException
from flowrunner.models import NodeLog, BUTTON_ROUTING_NODE_TYPE


class ExecutionContext:
    """
    Execution context for a workflow run.

    Tracks:
    - Node outputs (node_id -> output), never overwritten once written
    - Node types in execution order (used by parents.<type> lookups)
    - Nodes already dispatched in this run, including ones that failed
    """

    def __init__(self, trigger_data: Any = None):
        self.trigger_data = trigger_data if trigger_data is not None else {}
        self.outputs: Dict[str, Any] = {}
        self.node_types: Dict[str, str] = {}
        self.button_data: Optional[Dict[str, Any]] = None
        self.completed_nodes: Set[str] = set()

    def record(self, node_id: str, node_type: str, output: Any) -> None:
        """Write a node's output. Each node is written at most once."""
        if node_id in self.outputs:
            raise WorkflowEngineException(f"Output for node '{node_id}' already recorded")
        self.outputs[node_id] = output
        self.node_types[node_id] = node_type
        self.completed_nodes.add(node_id)

    def mark_completed(self, node_id: str) -> None:
        self.completed_nodes.add(node_id)

    def is_completed(self, node_id: str) -> bool:
        return node_id in self.completed_nodes

    def has_output(self, node_id: str) -> bool:
        return node_id in self.outputs

    def get_output(self, node_id: str) -> Any:
        return self.outputs.get(node_id)

    def nodes_of_type(self, node_type: str) -> List[str]:
        """Node ids of a type, in the order they executed."""
        return [nid for nid, ntype in self.node_types.items() if ntype == node_type]

    def splice_button(self, node_id: str, fields: Dict[str, Any]) -> None:
        """
        Merge clicked-button fields into a node's own entry.

        This is the only permitted mutation of an existing entry.
        """
        entry = self.outputs.get(node_id)
        if isinstance(entry, dict):
            merged = dict(entry)
        elif entry is None:
            merged = {}
        else:
            merged = {"result": entry}
        merged.update(fields)
        self.outputs[node_id] = merged

    def to_dict(self) -> Dict[str, Any]:
        """
        Flat mapping view used for input snapshots and passed to tools.

        Keys: trigger_data, _node_types, then one key per node id.
        """
        flat: Dict[str, Any] = {
            "trigger_data": self.trigger_data,
            "_node_types": dict(self.node_types),
        }
        if self.button_data is not None:
            flat["button_data"] = self.button_data
        for node_id, output in self.outputs.items():
            flat.setdefault(node_id, output)
        return flat

    @classmethod
    def from_node_logs(cls, trigger_data: Any, logs: Iterable[NodeLog]) -> "ExecutionContext":
        """
        Rebuild a context by replaying node log outputs in order.

        Button routing entries are bookkeeping and are skipped. Failed nodes
        without output still count as dispatched so they are never replayed.
        """
        context = cls(trigger_data)
        for log in logs:
            if log.node_type == BUTTON_ROUTING_NODE_TYPE:
                continue
            context.mark_completed(log.node_id)
            if log.output_data is None or log.node_id in context.outputs:
                continue
            context.record(log.node_id, log.node_type, log.output_data)
        return context
