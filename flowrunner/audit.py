# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
History MCP Audit Logging

Mirrors execution events to a History MCP server for an audit trail.
Fails gracefully if History MCP is not available.
"""

import json
import httpx
from typing import Dict, Any, Optional
from datetime import datetime, timezone

from flowrunner.core.logging import get_engine_logger

logger = get_engine_logger("audit")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class WorkflowAuditLogger:
    """
    Logs workflow execution events to History MCP.

    The first transport failure disables the logger for the rest of the
    process; executions never fail because auditing did.
    """

    def __init__(
        self,
        history_mcp_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.history_mcp_url = history_mcp_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.enabled = True

    async def _call_tool(self, tool: str, arguments: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """POST a tool call; returns the decoded text payload or None."""
        if not self.enabled:
            return None

        try:
            response = await self.client.post(
                f"{self.history_mcp_url}/mcp/call_tool",
                json={"tool": tool, "arguments": arguments}
            )
            response.raise_for_status()
            result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"History MCP unavailable, audit logging disabled: {e}")
            self.enabled = False
            return None

        if not isinstance(result, dict):
            return None
        content = (result.get("content") or [{}])[0]
        try:
            return json.loads(content.get("text", "{}"))
        except ValueError:
            return None

    async def create_session(self, workflow_id: str, execution_id: str) -> Optional[str]:
        """
        Create History MCP session for a workflow execution.

        Returns session_id or None if History MCP unavailable.
        """
        data = await self._call_tool("create_session", {
            "title": f"Workflow: {workflow_id}",
            "metadata": {
                "type": "flowrunner",
                "workflow_id": workflow_id,
                "execution_id": execution_id,
            }
        })
        if data and data.get("success"):
            return data.get("session_id")
        return None

    async def _append(self, session_id: Optional[str], message_type: str, content: str, metadata: Dict[str, Any]) -> None:
        if not session_id:
            return
        metadata["timestamp"] = _timestamp()
        await self._call_tool("append_message", {
            "session_id": session_id,
            "type": message_type,
            "content": content,
            "metadata": metadata,
        })

    async def log_node_start(self, session_id: Optional[str], node_id: str, node_type: str) -> None:
        """Log node execution start"""
        await self._append(session_id, "system", f"Node '{node_id}' started", {
            "event": "node_start",
            "node_id": node_id,
            "node_type": node_type,
        })

    async def log_node_complete(self, session_id: Optional[str], node_id: str, node_type: str, duration_ms: int) -> None:
        """Log node execution completion"""
        await self._append(session_id, "system", f"Node '{node_id}' completed", {
            "event": "node_complete",
            "node_id": node_id,
            "node_type": node_type,
            "duration_ms": duration_ms,
        })

    async def log_error(self, session_id: Optional[str], node_id: str, node_type: str, error: str) -> None:
        """Log node execution error"""
        await self._append(session_id, "system", f"Node '{node_id}' failed: {error}", {
            "event": "node_error",
            "node_id": node_id,
            "node_type": node_type,
            "error": error,
        })

    async def log_workflow_complete(
        self,
        session_id: Optional[str],
        workflow_id: str,
        status: str,
        error_message: Optional[str] = None
    ) -> None:
        """Log workflow status change (success, failed, or suspended while running)"""
        await self._append(session_id, "system", f"Workflow finished with status: {status}", {
            "event": "workflow_complete",
            "workflow_id": workflow_id,
            "status": status,
            "error_message": error_message,
        })

    async def close(self) -> None:
        """Close HTTP client"""
        await self.client.aclose()
