"""
Unit tests for executor assignment.
"""

import pytest
from unittest.mock import AsyncMock, patch
from structlog.testing import capture_logs
from prometheus_client import CollectorRegistry

from service_rule_engine.app.rules.assignment import ExecutorAssigner
from service_rule_engine.app.rules.models import AssignExecutorParams, TicketStatus
from service_rule_engine.app.stores.memory import InMemoryExecutorDirectory, InMemoryTicketStore
from shared.metrics import MetricsCollector
from shared.test_helpers import TestDataFactory


def skill_match(**kwargs) -> AssignExecutorParams:
    return AssignExecutorParams(strategy="skill_match", **kwargs)


class TestExecutorAssigner:
    """Test cases for ExecutorAssigner."""

    @pytest.fixture
    def ticket(self):
        """Open HVAC ticket."""
        return TestDataFactory.create_ticket("T-1", category="HVAC", category_id=None)

    @pytest.fixture
    def ticket_store(self, ticket):
        """Ticket store holding the HVAC ticket."""
        return InMemoryTicketStore([ticket])

    def make_assigner(self, ticket_store, executors, **kwargs):
        # No ticket store on the directory: loads come from the stored counters
        return ExecutorAssigner(InMemoryExecutorDirectory(executors), ticket_store, **kwargs)

    @pytest.mark.asyncio
    async def test_skill_match_prefers_category_over_load(self, ticket, ticket_store):
        """HVAC executor at 2/10 beats an idle electrician."""
        assigner = self.make_assigner(ticket_store, TestDataFactory.create_hvac_executors(e1_load=2))

        profile = await assigner.assign(ticket, skill_match())

        # Assertions
        assert profile.id == "E1"
        stored = await ticket_store.get_ticket_by_id("T-1")
        assert stored["executor_profile_id"] == "E1"
        assert stored["executor_id"] == "user-E1"
        assert stored["status"] == TicketStatus.IN_PROGRESS.value

    @pytest.mark.asyncio
    async def test_skill_match_falls_back_when_matching_executor_is_full(self, ticket, ticket_store):
        """HVAC executor at 10/10 is skipped; the electrician gets the ticket."""
        assigner = self.make_assigner(ticket_store, TestDataFactory.create_hvac_executors(e1_load=10))

        profile = await assigner.assign(ticket, skill_match())

        assert profile.id == "E2"

    @pytest.mark.asyncio
    async def test_full_executor_never_selected(self, ticket, ticket_store):
        executors = [TestDataFactory.create_executor("E1", category_name="HVAC", load=3, max_concurrent_tickets=3)]
        assigner = self.make_assigner(ticket_store, executors)

        with capture_logs() as logs:
            profile = await assigner.assign(ticket, skill_match())

        # Assertions
        assert profile is None
        stored = await ticket_store.get_ticket_by_id("T-1")
        assert stored["executor_profile_id"] is None
        assert stored["status"] == TicketStatus.OPEN.value
        warnings = [log for log in logs if log["log_level"] == "warning"]
        assert warnings[0]["event"] == "No eligible executor for ticket"

    @pytest.mark.asyncio
    async def test_no_executors_is_a_silent_no_op(self, ticket, ticket_store):
        assigner = self.make_assigner(ticket_store, [])

        with capture_logs() as logs:
            profile = await assigner.assign(ticket, AssignExecutorParams(strategy="load_balance"))

        assert profile is None
        assert any(log["event"] == "No eligible executor for ticket" for log in logs)

    @pytest.mark.asyncio
    async def test_status_eligibility(self, ticket, ticket_store):
        executors = [
            TestDataFactory.create_executor("inactive", load=0, is_active=False),
            TestDataFactory.create_executor("busy", load=0, availability_status="busy"),
            TestDataFactory.create_executor("offline", load=0, availability_status="offline"),
            TestDataFactory.create_executor("ready", load=5),
        ]
        assigner = self.make_assigner(ticket_store, executors)

        profile = await assigner.assign(ticket, AssignExecutorParams(strategy="load_balance"))

        assert profile.id == "ready"

    @pytest.mark.asyncio
    async def test_missing_user_account_is_ineligible(self, ticket, ticket_store):
        orphan = TestDataFactory.create_executor("orphan", load=0)
        orphan.user = None
        assigner = self.make_assigner(ticket_store, [orphan])

        assert await assigner.select_executor(ticket, AssignExecutorParams()) is None

    @pytest.mark.asyncio
    async def test_lowest_load_wins_first_on_ties(self, ticket, ticket_store):
        executors = [
            TestDataFactory.create_executor("A", load=4),
            TestDataFactory.create_executor("B", load=1),
            TestDataFactory.create_executor("C", load=1),
        ]
        assigner = self.make_assigner(ticket_store, executors)

        candidate = await assigner.select_executor(ticket, AssignExecutorParams(strategy="round_robin"))

        assert candidate.profile.id == "B"
        assert candidate.current_load == 1

    @pytest.mark.asyncio
    async def test_zero_max_means_unlimited(self, ticket, ticket_store):
        executors = [TestDataFactory.create_executor("A", load=500, max_concurrent_tickets=0)]
        assigner = self.make_assigner(ticket_store, executors)

        candidate = await assigner.select_executor(ticket, AssignExecutorParams())

        assert candidate.profile.id == "A"
        assert candidate.capacity == 0

    @pytest.mark.asyncio
    async def test_unset_max_uses_default(self, ticket, ticket_store):
        executors = [TestDataFactory.create_executor("A", load=10, max_concurrent_tickets=None)]

        default_assigner = self.make_assigner(ticket_store, executors)
        roomy_assigner = self.make_assigner(ticket_store, executors, default_max_concurrent_tickets=11)

        assert await default_assigner.select_executor(ticket, AssignExecutorParams()) is None
        assert (await roomy_assigner.select_executor(ticket, AssignExecutorParams())).profile.id == "A"

    @pytest.mark.asyncio
    async def test_specific_executor(self, ticket, ticket_store):
        executors = [
            TestDataFactory.create_executor("A", load=0),
            TestDataFactory.create_executor("B", load=7),
        ]
        assigner = self.make_assigner(ticket_store, executors)

        profile = await assigner.assign(ticket, AssignExecutorParams(strategy="specific_executor", executor_id="B"))

        assert profile.id == "B"

    @pytest.mark.asyncio
    async def test_specific_executor_without_capacity_falls_back(self, ticket, ticket_store):
        executors = [
            TestDataFactory.create_executor("A", load=3),
            TestDataFactory.create_executor("B", load=10),
        ]
        assigner = self.make_assigner(ticket_store, executors)

        profile = await assigner.assign(ticket, AssignExecutorParams(strategy="specific_executor", executor_id="B"))

        assert profile.id == "A"

    @pytest.mark.asyncio
    async def test_skill_ids_match_category_id_or_name(self, ticket, ticket_store):
        executors = [
            TestDataFactory.create_executor("hvac", category_name="HVAC", load=0),
            TestDataFactory.create_executor("plumb", category_name="Plumbing", category_id="cat-7", load=5),
            TestDataFactory.create_executor("elec", category_name="Electrical", load=6),
        ]
        assigner = self.make_assigner(ticket_store, executors)

        by_id = await assigner.select_executor(ticket, skill_match(skill_ids=["CAT-7"]))
        by_name = await assigner.select_executor(ticket, skill_match(skill_ids=["electrical"]))

        assert by_id.profile.id == "plumb"
        assert by_name.profile.id == "elec"

    @pytest.mark.asyncio
    async def test_skill_match_uses_ticket_category_id(self, ticket_store):
        ticket = TestDataFactory.create_ticket("T-1", category="Cooling", category_id="cat-42")
        executors = [
            TestDataFactory.create_executor("A", category_name="General", load=0),
            TestDataFactory.create_executor("B", category_name="Cooling Systems", category_id="cat-42", load=4),
        ]
        assigner = self.make_assigner(ticket_store, executors)

        candidate = await assigner.select_executor(ticket, skill_match())

        assert candidate.profile.id == "B"

    @pytest.mark.asyncio
    async def test_skill_match_uses_category_relation_id(self, ticket_store):
        ticket = TestDataFactory.create_ticket(
            "T-1", category={"id": "cat-42", "name": "Cooling"}, category_id=None
        )
        executors = [
            TestDataFactory.create_executor("A", category_name="General", load=0),
            TestDataFactory.create_executor("B", category_name="Cooling Systems", category_id="cat-42", load=4),
        ]
        assigner = self.make_assigner(ticket_store, executors)

        candidate = await assigner.select_executor(ticket, skill_match())

        assert candidate.profile.id == "B"

    @pytest.mark.asyncio
    async def test_skill_match_falls_back_to_category_relation_name(self, ticket_store):
        ticket = TestDataFactory.create_ticket(
            "T-1", category={"id": "cat-unknown", "name": "hvac"}, category_id=None
        )
        executors = [
            TestDataFactory.create_executor("A", category_name="Electrical", load=0),
            TestDataFactory.create_executor("B", category_name="HVAC", load=5),
        ]
        assigner = self.make_assigner(ticket_store, executors)

        candidate = await assigner.select_executor(ticket, skill_match())

        assert candidate.profile.id == "B"

    @pytest.mark.asyncio
    async def test_skill_match_ticket_category_is_case_insensitive(self, ticket_store):
        ticket = TestDataFactory.create_ticket("T-1", category="hvac", category_id=None)
        executors = [
            TestDataFactory.create_executor("A", category_name="Electrical", load=0),
            TestDataFactory.create_executor("B", category_name="HVAC", load=9),
        ]
        assigner = self.make_assigner(ticket_store, executors)

        candidate = await assigner.select_executor(ticket, skill_match())

        assert candidate.profile.id == "B"

    @pytest.mark.asyncio
    async def test_live_count_takes_precedence(self, ticket, ticket_store):
        busy = TestDataFactory.create_ticket("T-2", status="in-progress", executor_profile_id="A")
        done = TestDataFactory.create_ticket("T-3", status="resolved", executor_profile_id="B")
        ticket_store.add_ticket(busy)
        ticket_store.add_ticket(done)
        # Stored counters say the opposite of the live counts
        executors = [
            TestDataFactory.create_executor("A", load=0),
            TestDataFactory.create_executor("B", load=9),
        ]
        assigner = ExecutorAssigner(InMemoryExecutorDirectory(executors, ticket_store=ticket_store), ticket_store)

        candidate = await assigner.select_executor(ticket, AssignExecutorParams())

        assert candidate.profile.id == "B"
        assert candidate.current_load == 0

    @pytest.mark.asyncio
    async def test_load_falls_back_through_counters(self, ticket_store):
        directory = InMemoryExecutorDirectory([])
        assigner = ExecutorAssigner(directory, ticket_store)

        open_only = TestDataFactory.create_executor("A", load=None)
        open_only.open_tickets_count = 4
        assigned_only = TestDataFactory.create_executor("B", load=None)
        assigned_only.assigned_tickets_count = 6
        neither = TestDataFactory.create_executor("C", load=None)

        assert await assigner.get_current_load(open_only) == 4
        assert await assigner.get_current_load(assigned_only) == 6
        assert await assigner.get_current_load(neither) == 0

    @pytest.mark.asyncio
    async def test_live_count_error_uses_counters(self, ticket, ticket_store):
        directory = InMemoryExecutorDirectory([TestDataFactory.create_executor("A", load=3)])
        assigner = ExecutorAssigner(directory, ticket_store)

        with patch.object(directory, "count_active_tickets", new_callable=AsyncMock) as mock_count:
            mock_count.side_effect = RuntimeError("connection reset")
            candidate = await assigner.select_executor(ticket, AssignExecutorParams())

        assert candidate.current_load == 3
        mock_count.assert_called_once_with("A", ["open", "in-progress"])

    @pytest.mark.asyncio
    async def test_assignment_metrics(self, ticket, ticket_store):
        registry = CollectorRegistry()
        metrics = MetricsCollector("rule-engine", registry)
        assigner = self.make_assigner(
            ticket_store, [TestDataFactory.create_executor("A", load=0)], metrics=metrics
        )
        empty = self.make_assigner(ticket_store, [], metrics=metrics)

        await assigner.assign(ticket, AssignExecutorParams())
        await empty.assign(ticket, AssignExecutorParams())

        assert registry.get_sample_value("executor_assignments_total", {"outcome": "assigned"}) == 1.0
        assert registry.get_sample_value("executor_assignments_total", {"outcome": "no_capacity"}) == 1.0
