"""
In-memory collaborator implementations.

Used for embedding the engine without a database and throughout the tests.
Tickets are copied on the way in and out so callers never share state with
the store.
"""

import copy
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Iterable

from shared.errors import ActionExecutionError
from shared.logging import get_logger
from ..rules.models import (
    ExecutionLogEntry, ExecutionStatus, ExecutorProfile, Rule,
    TERMINAL_TICKET_STATUSES, TicketStatus
)
from .base import ExecutionLogStore, ExecutorDirectory, RuleStore, TicketStore


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryRuleStore(RuleStore):
    """Rule store backed by a dict."""

    def __init__(self, rules: Optional[Iterable[Rule]] = None):
        self.logger = get_logger("rule_engine.stores.rules")
        self.rules: Dict[str, Rule] = {}
        for rule in rules or []:
            self.add_rule(rule)

    def add_rule(self, rule: Rule) -> Rule:
        """Add or replace a rule."""
        self.rules[rule.id] = rule
        self.logger.debug("Rule stored", rule_id=rule.id, name=rule.name)
        return rule

    def remove_rule(self, rule_id: str) -> bool:
        """Remove a rule."""
        return self.rules.pop(rule_id, None) is not None

    async def get_active_rules(self, tenant_id: Optional[str], trigger_event: str) -> List[Rule]:
        """Active rules for the trigger; a ``None`` tenant sees every tenant's rules."""
        rules = [
            rule for rule in self.rules.values()
            if rule.is_active
            and rule.trigger_event == trigger_event
            and (tenant_id is None or rule.tenant_id == tenant_id)
        ]
        return sorted(rules, key=lambda r: r.priority_order)

    async def get_rule_by_id(self, rule_id: str) -> Optional[Rule]:
        return self.rules.get(rule_id)


class InMemoryTicketStore(TicketStore):
    """Ticket store backed by a dict of attribute maps."""

    def __init__(self, tickets: Optional[Iterable[Dict[str, Any]]] = None):
        self.logger = get_logger("rule_engine.stores.tickets")
        self.tickets: Dict[str, Dict[str, Any]] = {}
        for ticket in tickets or []:
            self.add_ticket(ticket)

    def add_ticket(self, ticket: Dict[str, Any]) -> Dict[str, Any]:
        """Add or replace a ticket."""
        self.tickets[ticket["id"]] = copy.deepcopy(ticket)
        return copy.deepcopy(ticket)

    async def get_ticket_by_id(self, ticket_id: str) -> Optional[Dict[str, Any]]:
        ticket = self.tickets.get(ticket_id)
        return copy.deepcopy(ticket) if ticket is not None else None

    async def update_ticket(self, ticket_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        ticket = self._require(ticket_id)
        ticket.update(copy.deepcopy(fields))
        ticket["updated_at"] = _utcnow_iso()
        self.logger.debug("Ticket updated", ticket_id=ticket_id, fields=sorted(fields))
        return copy.deepcopy(ticket)

    async def update_status(self, ticket_id: str, status: str) -> Dict[str, Any]:
        fields: Dict[str, Any] = {"status": status}
        if status in TERMINAL_TICKET_STATUSES:
            fields["resolved_at"] = _utcnow_iso()
        return await self.update_ticket(ticket_id, fields)

    async def assign_executor(self, ticket_id: str, executor_profile_id: str,
                              executor_user_id: Optional[str] = None) -> Dict[str, Any]:
        return await self.update_ticket(ticket_id, {
            "executor_profile_id": executor_profile_id,
            "executor_id": executor_user_id,
            "status": TicketStatus.IN_PROGRESS.value,
        })

    def _require(self, ticket_id: str) -> Dict[str, Any]:
        ticket = self.tickets.get(ticket_id)
        if ticket is None:
            raise ActionExecutionError(f"Ticket {ticket_id} not found", details={"ticket_id": ticket_id})
        return ticket


class InMemoryExecutorDirectory(ExecutorDirectory):
    """Executor directory backed by a list of profiles.

    When a ticket store is attached, live loads are counted from its tickets;
    otherwise the live count is reported as unavailable.
    """

    def __init__(self, executors: Optional[Iterable[ExecutorProfile]] = None,
                 ticket_store: Optional[InMemoryTicketStore] = None):
        self.executors: List[ExecutorProfile] = list(executors or [])
        self.ticket_store = ticket_store

    def add_executor(self, profile: ExecutorProfile) -> ExecutorProfile:
        self.executors.append(profile)
        return profile

    async def get_executors(self, tenant_id: Optional[str]) -> List[ExecutorProfile]:
        return [
            profile for profile in self.executors
            if tenant_id is None or profile.tenant_id == tenant_id
        ]

    async def count_active_tickets(self, executor_profile_id: str, statuses: List[str]) -> Optional[int]:
        if self.ticket_store is None:
            return None
        return sum(
            1 for ticket in self.ticket_store.tickets.values()
            if ticket.get("executor_profile_id") == executor_profile_id
            and ticket.get("status") in statuses
        )


class InMemoryExecutionLogStore(ExecutionLogStore):
    """Append-only execution log."""

    def __init__(self):
        self.entries: List[ExecutionLogEntry] = []

    async def insert(self, entry: ExecutionLogEntry) -> None:
        self.entries.append(entry)

    async def count_success_logs(self, rule_id: str, ticket_id: str) -> int:
        return sum(
            1 for entry in self.entries
            if entry.rule_id == rule_id
            and entry.ticket_id == ticket_id
            and entry.execution_status == ExecutionStatus.SUCCESS
        )

    async def list_logs_for_rule(self, rule_id: str, limit: int) -> List[ExecutionLogEntry]:
        entries = [entry for entry in reversed(self.entries) if entry.rule_id == rule_id]
        return entries[:limit]

    async def list_logs_for_ticket(self, ticket_id: str) -> List[ExecutionLogEntry]:
        return [entry for entry in reversed(self.entries) if entry.ticket_id == ticket_id]
