"""
Collaborator contracts consumed by the rule engine.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional

from ..rules.models import ExecutionLogEntry, ExecutorProfile, Rule


class RuleStore(ABC):
    """Source of rule definitions."""

    @abstractmethod
    async def get_active_rules(self, tenant_id: Optional[str], trigger_event: str) -> List[Rule]:
        """Active rules for a tenant and trigger event."""

    @abstractmethod
    async def get_rule_by_id(self, rule_id: str) -> Optional[Rule]:
        """A rule with its conditions and actions, or ``None``."""


class TicketStore(ABC):
    """Read and write access to tickets."""

    @abstractmethod
    async def get_ticket_by_id(self, ticket_id: str) -> Optional[Dict[str, Any]]:
        """A ticket with its relations, or ``None``."""

    @abstractmethod
    async def update_ticket(self, ticket_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Apply a partial update and return the updated ticket."""

    @abstractmethod
    async def update_status(self, ticket_id: str, status: str) -> Dict[str, Any]:
        """Change status, stamping ``resolved_at`` for resolved and closed."""

    @abstractmethod
    async def assign_executor(self, ticket_id: str, executor_profile_id: str,
                              executor_user_id: Optional[str] = None) -> Dict[str, Any]:
        """Point the ticket at an executor and move it to in-progress."""


class ExecutorDirectory(ABC):
    """Executor profiles and their live ticket load."""

    @abstractmethod
    async def get_executors(self, tenant_id: Optional[str]) -> List[ExecutorProfile]:
        """Executor profiles for a tenant."""

    @abstractmethod
    async def count_active_tickets(self, executor_profile_id: str, statuses: List[str]) -> Optional[int]:
        """Tickets in ``statuses`` assigned to the executor, ``None`` if unknown."""


class ExecutionLogStore(ABC):
    """Persistence for execution log entries."""

    @abstractmethod
    async def insert(self, entry: ExecutionLogEntry) -> None:
        """Store one entry."""

    @abstractmethod
    async def count_success_logs(self, rule_id: str, ticket_id: str) -> int:
        """Number of ``success`` entries for a rule and ticket."""

    @abstractmethod
    async def list_logs_for_rule(self, rule_id: str, limit: int) -> List[ExecutionLogEntry]:
        """Most recent entries for a rule, newest first."""

    @abstractmethod
    async def list_logs_for_ticket(self, ticket_id: str) -> List[ExecutionLogEntry]:
        """All entries for a ticket, newest first."""
