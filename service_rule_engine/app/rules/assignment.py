"""
Executor selection for assign_executor actions.
"""

from typing import Dict, Any, List, Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..stores.base import ExecutorDirectory, TicketStore
from .models import (
    ACTIVE_TICKET_STATUSES, AssignExecutorParams, AssignmentStrategy,
    ExecutorAvailability, ExecutorCandidate, ExecutorProfile
)


class ExecutorAssigner:
    """Picks the least loaded eligible executor for a ticket and assigns it."""

    def __init__(self, executor_directory: ExecutorDirectory, ticket_store: TicketStore,
                 default_max_concurrent_tickets: int = 10,
                 metrics: Optional[MetricsCollector] = None):
        self.executor_directory = executor_directory
        self.ticket_store = ticket_store
        self.default_max_concurrent_tickets = default_max_concurrent_tickets
        self.metrics = metrics
        self.logger = get_logger("rule_engine.assignment")

    async def assign(self, ticket: Dict[str, Any], params: AssignExecutorParams) -> Optional[ExecutorProfile]:
        """Select an executor and write the assignment to the ticket store.

        Returns the assigned profile, or ``None`` when nobody has capacity.
        """
        candidate = await self.select_executor(ticket, params)

        if candidate is None:
            self.logger.warning(
                "No eligible executor for ticket",
                ticket_id=ticket.get("id"),
                strategy=params.strategy
            )
            if self.metrics:
                self.metrics.record_assignment("no_capacity")
            return None

        profile = candidate.profile
        await self.ticket_store.assign_executor(ticket["id"], profile.id, profile.user_id)

        self.logger.info(
            "Executor assigned",
            ticket_id=ticket.get("id"),
            executor_profile_id=profile.id,
            current_load=candidate.current_load,
            strategy=params.strategy
        )
        if self.metrics:
            self.metrics.record_assignment("assigned")

        return profile

    async def select_executor(self, ticket: Dict[str, Any],
                              params: AssignExecutorParams) -> Optional[ExecutorCandidate]:
        """Run the eligibility filters and return the chosen candidate."""
        executors = await self.executor_directory.get_executors(ticket.get("tenant_id"))

        eligible = [profile for profile in executors if self._is_status_eligible(profile)]

        with_capacity: List[ExecutorCandidate] = []
        for profile in eligible:
            candidate = ExecutorCandidate(
                profile=profile,
                current_load=await self.get_current_load(profile),
                capacity=self._capacity(profile)
            )
            if candidate.has_capacity:
                with_capacity.append(candidate)

        filtered = self.apply_strategy(with_capacity, ticket, params)
        if not filtered:
            filtered = with_capacity

        if not filtered:
            return None

        # min() keeps the first candidate among equal loads
        return min(filtered, key=lambda c: c.current_load)

    async def get_current_load(self, profile: ExecutorProfile) -> int:
        """Live count of open and in-progress tickets, else the stored counters."""
        try:
            live_count = await self.executor_directory.count_active_tickets(
                profile.id, list(ACTIVE_TICKET_STATUSES)
            )
        except Exception as e:
            self.logger.warning("Live load count failed", executor_profile_id=profile.id, error=str(e))
            live_count = None

        if live_count is not None:
            return live_count
        if profile.open_tickets_count is not None:
            return profile.open_tickets_count
        if profile.assigned_tickets_count is not None:
            return profile.assigned_tickets_count
        return 0

    def apply_strategy(self, candidates: List[ExecutorCandidate], ticket: Dict[str, Any],
                       params: AssignExecutorParams) -> List[ExecutorCandidate]:
        """Narrow capacity-eligible candidates by the configured strategy."""
        if params.strategy == AssignmentStrategy.SPECIFIC_EXECUTOR.value:
            return [c for c in candidates if c.profile.id == params.executor_id]

        if params.strategy == AssignmentStrategy.SKILL_MATCH.value:
            if params.skill_ids:
                wanted = {skill.lower() for skill in params.skill_ids}
                return [c for c in candidates if self._matches_any_category(c.profile, wanted)]
            return [c for c in candidates if self._matches_ticket_category(c.profile, ticket)]

        return list(candidates)

    def _is_status_eligible(self, profile: ExecutorProfile) -> bool:
        return profile.user_is_active and profile.availability_status == ExecutorAvailability.AVAILABLE.value

    def _capacity(self, profile: ExecutorProfile) -> int:
        if profile.max_concurrent_tickets is None:
            return self.default_max_concurrent_tickets
        return profile.max_concurrent_tickets

    @staticmethod
    def _matches_any_category(profile: ExecutorProfile, wanted: set) -> bool:
        keys = {str(key).lower() for key in (profile.category_id, profile.category_name) if key}
        return bool(keys & wanted)

    @staticmethod
    def _matches_ticket_category(profile: ExecutorProfile, ticket: Dict[str, Any]) -> bool:
        ticket_category = ticket.get("category")
        ticket_category_id = ticket.get("category_id")
        if isinstance(ticket_category, dict):
            ticket_category_id = ticket_category_id or ticket_category.get("id")
            ticket_category = ticket_category.get("name")

        if ticket_category_id and profile.category_id == ticket_category_id:
            return True

        if ticket_category and profile.category_name:
            return str(ticket_category).lower() == profile.category_name.lower()

        return False
