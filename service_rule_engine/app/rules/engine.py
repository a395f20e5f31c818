"""
Rule processing engine for ticket lifecycle events.
"""

import time
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Callable, List, Optional, Tuple, Union

from shared.config import BaseConfig, get_config
from shared.errors import TicketNotFoundError
from shared.logging import get_logger, processing_context
from shared.metrics import MetricsCollector
from ..notifications import LoggingNotifier, Notifier
from ..stores.base import ExecutionLogStore, ExecutorDirectory, RuleStore, TicketStore
from .actions import ActionExecutor, utcnow
from .assignment import ExecutorAssigner
from .conditions import ConditionEvaluator
from .execution_log import ExecutionLogger
from .models import ExecutionLogEntry, ExecutionStatus, Rule, RuleType, TriggerEvent

MAX_EXECUTIONS_REACHED = "Max executions reached"
CONDITIONS_NOT_MATCHED = "Conditions not matched"

# Priority rules settle the priority that SLA rules compute deadlines from,
# and both run before allocation.
CANONICAL_RULE_TYPE_ORDER = [RuleType.PRIORITY.value, RuleType.SLA.value, RuleType.ALLOCATION.value]


class RuleEngine:
    """Applies configured rules to a ticket when a lifecycle event fires.

    Each pass loads the ticket, fetches the active rules for its tenant and
    trigger, and evaluates them one at a time: grouped by rule type in
    canonical order, then by ``priority_order``. Every evaluated rule leaves an
    execution log entry. Only a missing ticket aborts a pass.

    The engine keeps no state between passes, so independent passes can run
    as concurrent tasks.
    """

    def __init__(self, rule_store: RuleStore, ticket_store: TicketStore,
                 executor_directory: ExecutorDirectory, log_store: ExecutionLogStore,
                 notifier: Optional[Notifier] = None,
                 config: Optional[BaseConfig] = None,
                 metrics: Optional[MetricsCollector] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.config = config or get_config()
        self.rule_store = rule_store
        self.ticket_store = ticket_store
        self.executor_directory = executor_directory
        self.log_store = log_store
        self.metrics = metrics or MetricsCollector(self.config.service_name)
        self.logger = get_logger("rule_engine.engine")

        self.condition_evaluator = ConditionEvaluator()
        self.assigner = ExecutorAssigner(
            executor_directory,
            ticket_store,
            default_max_concurrent_tickets=self.config.default_max_concurrent_tickets,
            metrics=self.metrics
        )
        self.action_executor = ActionExecutor(
            ticket_store,
            self.assigner,
            notifier or LoggingNotifier(),
            condition_evaluator=self.condition_evaluator,
            metrics=self.metrics,
            default_due_hours=self.config.default_due_hours,
            clock=clock
        )
        self.execution_logger = ExecutionLogger(
            log_store,
            metrics=self.metrics,
            default_limit=self.config.execution_log_limit
        )

    async def process_ticket(self, ticket_id: str, trigger_event: Union[TriggerEvent, str]) -> None:
        """Run every applicable rule against a ticket.

        Raises ``TicketNotFoundError`` if the ticket does not exist. Rule
        failures are recorded in the execution log and never raised.
        """
        trigger = trigger_event.value if isinstance(trigger_event, Enum) else trigger_event

        with processing_context(ticket_id=ticket_id, trigger_event=trigger):
            ticket = await self.ticket_store.get_ticket_by_id(ticket_id)
            if ticket is None:
                self.logger.error("Ticket not found", ticket_id=ticket_id)
                raise TicketNotFoundError(ticket_id)

            tenant_id = ticket.get("tenant_id")

            with processing_context(ticket_id=ticket_id, tenant_id=tenant_id, trigger_event=trigger), \
                    self.metrics.time_operation("rule_pass_duration_seconds", trigger_event=trigger):
                rules = await self.rule_store.get_active_rules(tenant_id, trigger)
                grouped = self.group_rules_by_type(rules)

                self.logger.info("Processing ticket", rule_count=len(rules), rule_types=list(grouped))

                for rule_type in self.ordered_rule_types(grouped):
                    ticket = await self._process_rule_group(rule_type, grouped[rule_type], ticket)

                self.logger.info("Ticket processed", rule_count=len(rules))

    def group_rules_by_type(self, rules: List[Rule]) -> Dict[str, List[Rule]]:
        """Group rules by ``rule_type``, keeping first-seen order."""
        grouped: Dict[str, List[Rule]] = {}
        for rule in rules:
            grouped.setdefault(rule.rule_type, []).append(rule)
        return grouped

    def ordered_rule_types(self, grouped: Dict[str, List[Rule]]) -> List[str]:
        """Canonical rule types first, then custom types in first-seen order."""
        canonical = [rule_type for rule_type in CANONICAL_RULE_TYPE_ORDER if rule_type in grouped]
        custom = [rule_type for rule_type in grouped if rule_type not in CANONICAL_RULE_TYPE_ORDER]
        return canonical + custom

    async def _process_rule_group(self, rule_type: str, rules: List[Rule],
                                  ticket: Dict[str, Any]) -> Dict[str, Any]:
        for rule in sorted(rules, key=lambda r: r.priority_order):
            ticket, stop = await self._process_rule(rule, rule_type, ticket)
            if stop:
                self.logger.info("Stop on match", rule_id=rule.id, rule_type=rule_type)
                break
        return ticket

    async def _process_rule(self, summary: Rule, rule_type: str,
                            ticket: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        """Evaluate one rule. Returns the current ticket and whether to stop the group."""
        ticket_id = ticket["id"]
        start_time = time.perf_counter()

        try:
            rule = await self.rule_store.get_rule_by_id(summary.id)
            if rule is None:
                self.logger.debug("Rule disappeared before evaluation", rule_id=summary.id)
                return ticket, False

            if rule.max_executions:
                execution_count = await self.execution_logger.count_successes(rule.id, ticket_id)
                if execution_count >= rule.max_executions:
                    await self.execution_logger.log_skipped(rule.id, ticket_id, MAX_EXECUTIONS_REACHED)
                    self._record(rule_type, ExecutionStatus.SKIPPED, start_time)
                    self.logger.debug("Rule skipped", rule_id=rule.id, reason=MAX_EXECUTIONS_REACHED)
                    return ticket, False

            evaluation = self.condition_evaluator.evaluate_rule(rule, ticket)

            if not evaluation.matched:
                await self.execution_logger.log_skipped(
                    rule.id, ticket_id, CONDITIONS_NOT_MATCHED, evaluation.matched_conditions
                )
                self._record(rule_type, ExecutionStatus.SKIPPED, start_time)
                self.logger.debug("Rule skipped", rule_id=rule.id, reason=CONDITIONS_NOT_MATCHED)
                return ticket, False

            outcomes = await self.action_executor.execute_actions(rule, ticket, evaluation.matched_conditions)

            elapsed_ms = self._elapsed_ms(start_time)
            await self.execution_logger.log_success(
                rule.id, ticket_id, evaluation.matched_conditions, outcomes, elapsed_ms
            )
            self._record(rule_type, ExecutionStatus.SUCCESS, start_time)
            self.logger.info(
                "Rule executed",
                rule_id=rule.id,
                rule_name=rule.name,
                actions=len(outcomes),
                execution_time_ms=elapsed_ms
            )

        except Exception as e:
            elapsed_ms = self._elapsed_ms(start_time)
            await self.execution_logger.log_failed(summary.id, ticket_id, str(e), elapsed_ms)
            self._record(rule_type, ExecutionStatus.FAILED, start_time)
            self.metrics.record_error(type(e).__name__)
            self.logger.error("Error processing rule", rule_id=summary.id, error=str(e))
            return await self._refresh_ticket(ticket), False

        return await self._refresh_ticket(ticket), rule.stop_on_match

    async def _refresh_ticket(self, ticket: Dict[str, Any]) -> Dict[str, Any]:
        """Reload the ticket so later rules see changes made by actions."""
        try:
            refreshed = await self.ticket_store.get_ticket_by_id(ticket["id"])
        except Exception as e:
            self.logger.warning("Ticket reload failed", ticket_id=ticket["id"], error=str(e))
            return ticket
        return refreshed if refreshed is not None else ticket

    def _record(self, rule_type: str, status: ExecutionStatus, start_time: float):
        self.metrics.record_rule_execution(rule_type, status.value, time.perf_counter() - start_time)

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return (time.perf_counter() - start_time) * 1000

    async def get_execution_logs(self, rule_id: str, limit: Optional[int] = None) -> List[ExecutionLogEntry]:
        """Most recent execution log entries for a rule, newest first."""
        return await self.execution_logger.get_execution_logs(rule_id, limit)

    async def get_ticket_execution_logs(self, ticket_id: str) -> List[ExecutionLogEntry]:
        """Execution log entries for a ticket, newest first."""
        return await self.execution_logger.get_ticket_execution_logs(ticket_id)
