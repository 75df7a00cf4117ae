# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for durable execution storage
"""

import asyncio
import json
import re

import pytest

from flowrunner.core.errors import NotFoundError
from flowrunner.execution_store import ExecutionStore, generate_execution_id
from flowrunner.models import ButtonMessageMapping, Execution, ExecutionStatus


class TestExecutionStore:
    """Execution, node log, mapping and claim persistence"""

    def test_directories_created(self, store):
        for name in ("executions", "node_logs", "button_mappings", "claims"):
            assert (store.base_dir / name).is_dir()

    def test_execution_id_format(self):
        assert re.match(r"^exec_\d{8}_\d{6}_[0-9a-f]{8}$", generate_execution_id())

    @pytest.mark.asyncio
    async def test_save_and_get_execution(self, store):
        execution = Execution(id="exec_1", workflow_id="wf1", trigger_data={"a": 1})
        await store.save_execution(execution)

        loaded = await store.get_execution("exec_1")
        assert loaded.workflow_id == "wf1"
        assert loaded.status == ExecutionStatus.RUNNING
        assert loaded.trigger_data == {"a": 1}
        assert await store.get_execution("missing") is None

    @pytest.mark.asyncio
    async def test_update_execution(self, store):
        await store.save_execution(Execution(id="exec_1", workflow_id="wf1"))
        updated = await store.update_execution("exec_1", status="failed", error_message="boom")

        assert updated.status == ExecutionStatus.FAILED
        assert (await store.get_execution("exec_1")).error_message == "boom"

    @pytest.mark.asyncio
    async def test_update_missing_execution_raises(self, store):
        with pytest.raises(NotFoundError, match="Execution not found"):
            await store.update_execution("nope", status="failed")

    @pytest.mark.asyncio
    async def test_list_executions_filters(self, store):
        await store.save_execution(Execution(id="exec_a", workflow_id="wf1", status=ExecutionStatus.SUCCESS))
        await store.save_execution(Execution(id="exec_b", workflow_id="wf2"))
        await store.save_execution(Execution(id="exec_c", workflow_id="wf1"))

        assert [e.id for e in await store.list_executions()] == ["exec_c", "exec_b", "exec_a"]
        assert [e.id for e in await store.list_executions(workflow_id="wf1", status="running")] == ["exec_c"]
        assert len(await store.list_executions(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_node_logs_sequential(self, store):
        first = await store.append_node_log("exec_1", node_id="t", node_type="trigger")
        second = await store.append_node_log("exec_1", node_id="a", node_type="agent")
        assert (first.id, second.id) == (1, 2)

        await store.update_node_log("exec_1", 2, status="success", output_data={"response": "ok"})
        logs = await store.get_node_logs("exec_1")
        assert [log.node_id for log in logs] == ["t", "a"]
        assert logs[1].output_data == {"response": "ok"}
        assert await store.get_node_logs("other") == []

    @pytest.mark.asyncio
    async def test_update_missing_node_log_raises(self, store):
        with pytest.raises(NotFoundError):
            await store.update_node_log("exec_1", 9, status="success")

    @pytest.mark.asyncio
    async def test_concurrent_appends_keep_every_row(self, store):
        await asyncio.gather(*[
            store.append_node_log("exec_1", node_id=f"n{i}", node_type="action") for i in range(10)
        ])
        logs = await store.get_node_logs("exec_1")
        assert sorted(log.id for log in logs) == list(range(1, 11))

    @pytest.mark.asyncio
    async def test_button_mapping_most_recent_wins(self, store):
        for execution_id in ("exec_1", "exec_2"):
            await store.save_button_mapping(ButtonMessageMapping(
                message_id="wamid.ABC/1",
                workflow_id="wf1",
                execution_id=execution_id,
                node_id="ask",
                button_ids=["btn_yes"],
            ))

        mapping = await store.get_button_mapping("wamid.ABC/1")
        assert mapping.execution_id == "exec_2"
        assert mapping.id == 2
        assert await store.get_button_mapping("unknown") is None

    @pytest.mark.asyncio
    async def test_claim_message_once(self, store):
        assert await store.claim_message("wamid.1", "exec_1") is True
        assert await store.claim_message("wamid.1", "exec_1") is False

        claim = json.loads((store.claims_dir / "wamid.1.claim").read_text())
        assert claim["execution_id"] == "exec_1"

        await store.release_claim("wamid.1")
        assert await store.claim_message("wamid.1", "exec_1") is True

    @pytest.mark.asyncio
    async def test_claims_shared_across_store_instances(self, config):
        """A second process sharing the directory cannot claim the same message"""
        first = ExecutionStore(config.storage_dir)
        second = ExecutionStore(config.storage_dir)
        results = await asyncio.gather(
            first.claim_message("wamid.2", "exec_1"),
            second.claim_message("wamid.2", "exec_1"),
        )
        assert sorted(results) == [False, True]
