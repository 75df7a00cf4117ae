# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Store - Workflow definitions as JSON files.

Storage structure:
    {base_dir}/workflows/{workflow_id}.json
"""

import json
from pathlib import Path
from typing import Dict, List, Optional
import asyncio

import aiofiles
import aiofiles.os

from flowrunner.graph import validate_workflow
from flowrunner.models import WorkflowDefinition, WorkflowStatus


class WorkflowStore:
    """Load, save and query workflow definitions."""

    def __init__(self, base_dir: str):
        self.workflows_dir = Path(base_dir) / "workflows"
        self.workflows_dir.mkdir(parents=True, exist_ok=True)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _get_lock(self, workflow_id: str) -> asyncio.Lock:
        if workflow_id not in self._locks:
            self._locks[workflow_id] = asyncio.Lock()
        return self._locks[workflow_id]

    def _workflow_file(self, workflow_id: str) -> Path:
        return self.workflows_dir / f"{workflow_id}.json"

    async def save(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        """
        Validate and persist a workflow.

        Raises:
            WorkflowValidationError: If the graph is structurally invalid
        """
        validate_workflow(workflow)
        path = self._workflow_file(workflow.id)
        async with self._get_lock(workflow.id):
            async with aiofiles.open(path, "w") as f:
                await f.write(json.dumps(workflow.model_dump(mode="json", by_alias=True), indent=2))
        return workflow

    async def get(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        path = self._workflow_file(workflow_id)
        if not await aiofiles.os.path.exists(path):
            return None
        async with aiofiles.open(path, "r") as f:
            data = json.loads(await f.read())
        return WorkflowDefinition.model_validate(data)

    async def set_status(self, workflow_id: str, status: WorkflowStatus) -> Optional[WorkflowDefinition]:
        """Publish or unpublish a workflow."""
        workflow = await self.get(workflow_id)
        if workflow is None:
            return None
        return await self.save(workflow.model_copy(update={"status": status}))

    async def list(self, status: Optional[WorkflowStatus] = None) -> List[WorkflowDefinition]:
        workflows = []
        for path in sorted(self.workflows_dir.glob("*.json")):
            async with aiofiles.open(path, "r") as f:
                workflow = WorkflowDefinition.model_validate(json.loads(await f.read()))
            if status is None or workflow.status == status:
                workflows.append(workflow)
        return workflows

    async def get_workflows_by_trigger(self, trigger_id: str) -> List[WorkflowDefinition]:
        """Published workflows whose trigger node declares trigger_id."""
        published = await self.list(status=WorkflowStatus.PUBLISHED)
        return [workflow for workflow in published if trigger_id in workflow.trigger_ids()]
