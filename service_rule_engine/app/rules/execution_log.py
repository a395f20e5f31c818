"""
Execution log bookkeeping for rule passes.
"""

from typing import Dict, Any, List, Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..stores.base import ExecutionLogStore
from .models import ActionOutcome, ExecutionLogEntry, ExecutionStatus


class ExecutionLogger:
    """Writes and queries execution log entries.

    Write failures and count failures never reach the rule pass: writes are
    dropped with an error log and counts fall back to zero.
    """

    def __init__(self, log_store: ExecutionLogStore, metrics: Optional[MetricsCollector] = None,
                 default_limit: int = 100):
        self.log_store = log_store
        self.metrics = metrics
        self.default_limit = default_limit
        self.logger = get_logger("rule_engine.execution_log")

    async def log_success(self, rule_id: str, ticket_id: str, matched_conditions: Dict[str, Any],
                          actions: List[ActionOutcome], execution_time_ms: float) -> ExecutionLogEntry:
        return await self.record(ExecutionLogEntry(
            rule_id=rule_id,
            ticket_id=ticket_id,
            execution_status=ExecutionStatus.SUCCESS,
            matched_conditions=matched_conditions,
            actions_executed=[outcome.to_dict() for outcome in actions],
            execution_time_ms=execution_time_ms
        ))

    async def log_skipped(self, rule_id: str, ticket_id: str, reason: str,
                          matched_conditions: Optional[Dict[str, Any]] = None) -> ExecutionLogEntry:
        return await self.record(ExecutionLogEntry(
            rule_id=rule_id,
            ticket_id=ticket_id,
            execution_status=ExecutionStatus.SKIPPED,
            matched_conditions=matched_conditions,
            reason=reason
        ))

    async def log_failed(self, rule_id: str, ticket_id: str, error_message: str,
                         execution_time_ms: float) -> ExecutionLogEntry:
        return await self.record(ExecutionLogEntry(
            rule_id=rule_id,
            ticket_id=ticket_id,
            execution_status=ExecutionStatus.FAILED,
            error_message=error_message,
            execution_time_ms=execution_time_ms
        ))

    async def record(self, entry: ExecutionLogEntry) -> ExecutionLogEntry:
        """Store an entry, swallowing store failures."""
        try:
            await self.log_store.insert(entry)
        except Exception as e:
            self.logger.error(
                "Failed to write execution log",
                rule_id=entry.rule_id,
                ticket_id=entry.ticket_id,
                execution_status=entry.execution_status.value,
                error=str(e)
            )
            if self.metrics:
                self.metrics.record_log_write_failure()
                self.metrics.record_error("execution_log_write")
        return entry

    async def count_successes(self, rule_id: str, ticket_id: str) -> int:
        """Prior successful executions of a rule on a ticket; 0 if the store fails."""
        try:
            return await self.log_store.count_success_logs(rule_id, ticket_id)
        except Exception as e:
            self.logger.error("Error getting execution count", rule_id=rule_id, ticket_id=ticket_id, error=str(e))
            if self.metrics:
                self.metrics.record_error("execution_count")
            return 0

    async def get_execution_logs(self, rule_id: str, limit: Optional[int] = None) -> List[ExecutionLogEntry]:
        """Most recent entries for a rule."""
        return await self.log_store.list_logs_for_rule(rule_id, limit or self.default_limit)

    async def get_ticket_execution_logs(self, ticket_id: str) -> List[ExecutionLogEntry]:
        """All entries for a ticket, newest first."""
        return await self.log_store.list_logs_for_ticket(ticket_id)
