"""
Unit tests for execution log bookkeeping.
"""

import dataclasses
import pytest
from unittest.mock import AsyncMock, patch
from structlog.testing import capture_logs

from service_rule_engine.app.rules.execution_log import ExecutionLogger
from service_rule_engine.app.rules.models import ActionOutcome, ExecutionStatus
from service_rule_engine.app.stores.memory import InMemoryExecutionLogStore


class TestExecutionLogger:
    """Test cases for ExecutionLogger."""

    @pytest.fixture
    def log_store(self):
        """Empty execution log."""
        return InMemoryExecutionLogStore()

    @pytest.fixture
    def execution_logger(self, log_store):
        """Create ExecutionLogger instance."""
        return ExecutionLogger(log_store, default_limit=2)

    @pytest.mark.asyncio
    async def test_success_entry(self, execution_logger, log_store):
        outcome = ActionOutcome("a-1", "set_priority", 1, {"priority": "high"})

        entry = await execution_logger.log_success("R-1", "T-1", {"c-1": {"result": True}}, [outcome], 12.5)

        # Assertions
        assert log_store.entries == [entry]
        assert entry.execution_status == ExecutionStatus.SUCCESS
        assert entry.actions_executed == [{
            "action_id": "a-1",
            "action_type": "set_priority",
            "step_order": 1,
            "changes": {"priority": "high"},
        }]
        assert entry.execution_time_ms == 12.5
        assert entry.id
        assert entry.created_at is not None

    @pytest.mark.asyncio
    async def test_entries_are_immutable(self, execution_logger):
        entry = await execution_logger.log_skipped("R-1", "T-1", "Conditions not matched")

        with pytest.raises(dataclasses.FrozenInstanceError):
            entry.execution_status = ExecutionStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_failed_entry(self, execution_logger):
        entry = await execution_logger.log_failed("R-1", "T-1", "boom", 3.0)

        assert entry.execution_status == ExecutionStatus.FAILED
        assert entry.error_message == "boom"
        assert entry.matched_conditions is None

    @pytest.mark.asyncio
    async def test_insert_failure_is_logged_not_raised(self, execution_logger, log_store):
        with patch.object(log_store, "insert", new_callable=AsyncMock) as mock_insert, capture_logs() as logs:
            mock_insert.side_effect = ConnectionError("db down")
            entry = await execution_logger.log_skipped("R-1", "T-1", "Conditions not matched")

        assert entry.reason == "Conditions not matched"
        assert logs[0]["event"] == "Failed to write execution log"
        assert logs[0]["log_level"] == "error"
        assert logs[0]["error"] == "db down"

    @pytest.mark.asyncio
    async def test_count_successes(self, execution_logger):
        await execution_logger.log_success("R-1", "T-1", {}, [], 1.0)
        await execution_logger.log_success("R-1", "T-2", {}, [], 1.0)
        await execution_logger.log_skipped("R-1", "T-1", "Conditions not matched")
        await execution_logger.log_failed("R-1", "T-1", "boom", 1.0)

        assert await execution_logger.count_successes("R-1", "T-1") == 1

    @pytest.mark.asyncio
    async def test_count_failure_returns_zero(self, execution_logger, log_store):
        with patch.object(log_store, "count_success_logs", new_callable=AsyncMock) as mock_count:
            mock_count.side_effect = RuntimeError("timeout")

            assert await execution_logger.count_successes("R-1", "T-1") == 0

    @pytest.mark.asyncio
    async def test_rule_logs_are_newest_first_and_limited(self, execution_logger):
        first = await execution_logger.log_success("R-1", "T-1", {}, [], 1.0)
        second = await execution_logger.log_success("R-1", "T-2", {}, [], 1.0)
        third = await execution_logger.log_success("R-1", "T-3", {}, [], 1.0)
        await execution_logger.log_success("R-2", "T-1", {}, [], 1.0)

        assert await execution_logger.get_execution_logs("R-1") == [third, second]
        assert await execution_logger.get_execution_logs("R-1", limit=5) == [third, second, first]

    @pytest.mark.asyncio
    async def test_ticket_logs(self, execution_logger):
        first = await execution_logger.log_success("R-1", "T-1", {}, [], 1.0)
        second = await execution_logger.log_skipped("R-2", "T-1", "Conditions not matched")
        await execution_logger.log_success("R-1", "T-9", {}, [], 1.0)

        assert await execution_logger.get_ticket_execution_logs("T-1") == [second, first]

    @pytest.mark.asyncio
    async def test_query_errors_propagate(self, execution_logger, log_store):
        with patch.object(log_store, "list_logs_for_ticket", new_callable=AsyncMock) as mock_list:
            mock_list.side_effect = RuntimeError("timeout")

            with pytest.raises(RuntimeError):
                await execution_logger.get_ticket_execution_logs("T-1")
