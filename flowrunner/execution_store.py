# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Execution Store - Durable storage for executions, node logs and
button message mappings.

All records are plain JSON files so a suspended execution can be inspected
(and resumed) by a different process long after the original one exited.

Async file locking prevents lost updates within a process; continuation
claims use exclusive file creation so they hold across processes too.
"""
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Dict, Any, Optional
import asyncio
import json
import uuid

import aiofiles
import aiofiles.os

from flowrunner.core.errors import NotFoundError
from flowrunner.models import Execution, NodeLog, ButtonMessageMapping, utcnow


def generate_execution_id() -> str:
    """exec_YYYYMMDD_HHMMSS_<hex8>"""
    return f"exec_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"


class ExecutionStore:
    """
    Store and query workflow execution state.

    Storage structure:
        {base_dir}/
        ├── executions/{execution_id}.json       Execution record
        ├── node_logs/{execution_id}.json        list of NodeLog rows
        ├── button_mappings/{message_id}.json    list of mapping rows (newest last)
        └── claims/{message_id}.claim            continuation claim marker
    """

    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)
        self.executions_dir = self.base_dir / "executions"
        self.node_logs_dir = self.base_dir / "node_logs"
        self.mappings_dir = self.base_dir / "button_mappings"
        self.claims_dir = self.base_dir / "claims"
        for directory in (self.executions_dir, self.node_logs_dir, self.mappings_dir, self.claims_dir):
            directory.mkdir(parents=True, exist_ok=True)

        # Async locks for safe read-modify-write
        self._locks: Dict[str, asyncio.Lock] = {}

    def _get_lock(self, file_path: Path) -> asyncio.Lock:
        """Get or create lock for a specific file"""
        key = str(file_path)
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    @staticmethod
    def _safe_name(identifier: str) -> str:
        # Message ids come from external providers and may contain separators
        return "".join(c if c.isalnum() or c in "-_.=" else "_" for c in identifier)

    async def _read_json(self, path: Path, default: Any = None) -> Any:
        if not await aiofiles.os.path.exists(path):
            return default
        async with aiofiles.open(path, "r") as f:
            content = await f.read()
        return json.loads(content) if content.strip() else default

    async def _write_json(self, path: Path, data: Any) -> None:
        async with aiofiles.open(path, "w") as f:
            await f.write(json.dumps(data, indent=2, default=str))

    # ========================================================================
    # Executions
    # ========================================================================

    def _execution_file(self, execution_id: str) -> Path:
        return self.executions_dir / f"{self._safe_name(execution_id)}.json"

    async def save_execution(self, execution: Execution) -> Execution:
        path = self._execution_file(execution.id)
        async with self._get_lock(path):
            await self._write_json(path, execution.model_dump(mode="json"))
        return execution

    async def get_execution(self, execution_id: str) -> Optional[Execution]:
        data = await self._read_json(self._execution_file(execution_id))
        return Execution.model_validate(data) if data else None

    async def update_execution(self, execution_id: str, **fields: Any) -> Execution:
        """
        Update execution fields in place.

        Raises:
            NotFoundError: If the execution does not exist
        """
        path = self._execution_file(execution_id)
        async with self._get_lock(path):
            data = await self._read_json(path)
            if not data:
                raise NotFoundError("Execution", execution_id)
            execution = Execution.model_validate({**data, **fields})
            await self._write_json(path, execution.model_dump(mode="json"))
        return execution

    async def list_executions(
        self,
        workflow_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100
    ) -> List[Execution]:
        """List executions, newest first, with optional filters."""
        executions = []
        for execution_file in sorted(self.executions_dir.glob("exec_*.json"), reverse=True):
            data = await self._read_json(execution_file)
            if not data:
                continue
            execution = Execution.model_validate(data)
            if workflow_id and execution.workflow_id != workflow_id:
                continue
            if status and execution.status.value != status:
                continue
            executions.append(execution)
            if len(executions) >= limit:
                break
        return executions

    # ========================================================================
    # Node logs
    # ========================================================================

    def _node_log_file(self, execution_id: str) -> Path:
        return self.node_logs_dir / f"{self._safe_name(execution_id)}.json"

    async def append_node_log(self, execution_id: str, **fields: Any) -> NodeLog:
        """Insert a new node log row; ids are sequential per execution."""
        path = self._node_log_file(execution_id)
        async with self._get_lock(path):
            rows = await self._read_json(path, default=[])
            log = NodeLog(id=len(rows) + 1, execution_id=execution_id, **fields)
            rows.append(log.model_dump(mode="json"))
            await self._write_json(path, rows)
        return log

    async def update_node_log(self, execution_id: str, log_id: int, **fields: Any) -> NodeLog:
        """
        Update a node log row.

        Raises:
            NotFoundError: If the row does not exist
        """
        path = self._node_log_file(execution_id)
        async with self._get_lock(path):
            rows = await self._read_json(path, default=[])
            for index, row in enumerate(rows):
                if row.get("id") == log_id:
                    log = NodeLog.model_validate({**row, **fields})
                    rows[index] = log.model_dump(mode="json")
                    await self._write_json(path, rows)
                    return log
        raise NotFoundError("NodeLog", f"{execution_id}#{log_id}")

    async def get_node_logs(self, execution_id: str) -> List[NodeLog]:
        """All node log rows for an execution, in insertion order."""
        rows = await self._read_json(self._node_log_file(execution_id), default=[])
        return [NodeLog.model_validate(row) for row in rows]

    # ========================================================================
    # Button message mappings
    # ========================================================================

    def _mapping_file(self, message_id: str) -> Path:
        return self.mappings_dir / f"{self._safe_name(message_id)}.json"

    async def save_button_mapping(self, mapping: ButtonMessageMapping) -> ButtonMessageMapping:
        """Append a mapping row. Rows are never updated."""
        path = self._mapping_file(mapping.message_id)
        async with self._get_lock(path):
            rows = await self._read_json(path, default=[])
            stored = mapping.model_copy(update={"id": len(rows) + 1})
            rows.append(stored.model_dump(mode="json"))
            await self._write_json(path, rows)
        return stored

    async def get_button_mapping(self, message_id: str) -> Optional[ButtonMessageMapping]:
        """Most recent mapping for a message id, if any."""
        rows = await self._read_json(self._mapping_file(message_id), default=[])
        if not rows:
            return None
        return ButtonMessageMapping.model_validate(rows[-1])

    # ========================================================================
    # Continuation claims
    # ========================================================================

    async def claim_message(self, message_id: str, execution_id: str) -> bool:
        """
        Claim a message for continuation.

        Exclusive creation succeeds for exactly one caller, in this process
        or any other sharing the same storage directory.
        """
        path = self.claims_dir / f"{self._safe_name(message_id)}.claim"
        try:
            async with aiofiles.open(path, "x") as f:
                await f.write(json.dumps({"execution_id": execution_id, "claimed_at": utcnow()}))
        except FileExistsError:
            return False
        return True

    async def release_claim(self, message_id: str) -> None:
        """Remove a claim so the message can be continued again."""
        path = self.claims_dir / f"{self._safe_name(message_id)}.claim"
        if await aiofiles.os.path.exists(path):
            await aiofiles.os.remove(path)
