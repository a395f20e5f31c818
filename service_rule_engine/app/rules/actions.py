"""
Action execution for matched rules.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Callable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from shared.errors import InvalidActionConfigError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..notifications import Notifier
from ..stores.base import TicketStore
from .assignment import ExecutorAssigner
from .conditions import ConditionEvaluator
from .models import (
    ACTION_PARAM_MODELS, PRIORITY_SCALE, ActionOutcome, ActionParams, ActionType,
    AssignExecutorParams, DueDateCalculation, EscalateParams, NotifyParams,
    Rule, RuleAction, SetDueDateParams, SetPriorityParams, SetStatusParams
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ActionExecutor:
    """Runs a matched rule's actions against a ticket.

    Actions run in ``step_order``. Errors propagate to the caller and actions
    that already ran are left in place.
    """

    def __init__(self, ticket_store: TicketStore, assigner: ExecutorAssigner, notifier: Notifier,
                 condition_evaluator: Optional[ConditionEvaluator] = None,
                 metrics: Optional[MetricsCollector] = None,
                 default_due_hours: float = 24.0,
                 clock: Callable[[], datetime] = utcnow):
        self.ticket_store = ticket_store
        self.assigner = assigner
        self.notifier = notifier
        self.condition_evaluator = condition_evaluator or ConditionEvaluator()
        self.metrics = metrics
        self.default_due_hours = default_due_hours
        self.clock = clock
        self.logger = get_logger("rule_engine.actions")

        self._handlers = {
            ActionType.ASSIGN_EXECUTOR.value: self._assign_executor,
            ActionType.SET_PRIORITY.value: self._set_priority,
            ActionType.SET_DUE_DATE.value: self._set_due_date,
            ActionType.ESCALATE.value: self._escalate,
            ActionType.NOTIFY.value: self._notify,
            ActionType.SET_STATUS.value: self._set_status,
        }

    async def execute_actions(self, rule: Rule, ticket: Dict[str, Any],
                              matched_conditions: Dict[str, Any]) -> List[ActionOutcome]:
        """Execute all actions of a rule in step order."""
        outcomes: List[ActionOutcome] = []

        for action in sorted(rule.actions, key=lambda a: a.step_order):
            if action.action_condition:
                if not self.condition_evaluator.evaluate_action_condition(action.action_condition, ticket):
                    self.logger.debug("Action gate not met", rule_id=rule.id, action_id=action.id)
                    continue

            if action.trigger_after_minutes:
                self.logger.debug(
                    "Delayed action executed immediately",
                    rule_id=rule.id,
                    action_id=action.id,
                    trigger_after_minutes=action.trigger_after_minutes
                )

            try:
                outcome = await self.execute_action(action, ticket, matched_conditions)
            except Exception as e:
                self.logger.error(
                    "Error executing action",
                    rule_id=rule.id,
                    action_id=action.id,
                    action_type=action.action_type,
                    error=str(e)
                )
                raise

            if outcome is not None:
                outcomes.append(outcome)

        return outcomes

    async def execute_action(self, action: RuleAction, ticket: Dict[str, Any],
                             matched_conditions: Dict[str, Any]) -> Optional[ActionOutcome]:
        """Execute a single action; unknown action types are skipped."""
        handler = self._handlers.get(action.action_type)
        if handler is None:
            self.logger.warning("Unknown action type", action_id=action.id, action_type=action.action_type)
            return None

        params = self.parse_params(action)
        changes = await handler(ticket, params)

        if self.metrics:
            self.metrics.record_action(action.action_type)

        return ActionOutcome(
            action_id=action.id,
            action_type=action.action_type,
            step_order=action.step_order,
            changes=changes
        )

    def parse_params(self, action: RuleAction) -> ActionParams:
        """Validate raw ``action_params`` into the typed model for the action type."""
        model = ACTION_PARAM_MODELS[action.action_type]
        try:
            return model.model_validate(action.action_params or {})
        except PydanticValidationError as e:
            raise InvalidActionConfigError(
                action.action_type,
                "Invalid action parameters",
                details={"action_id": action.id, "error": str(e)}
            )

    async def _assign_executor(self, ticket: Dict[str, Any], params: AssignExecutorParams) -> Dict[str, Any]:
        profile = await self.assigner.assign(ticket, params)
        return {"executor_profile_id": profile.id if profile else None}

    async def _set_priority(self, ticket: Dict[str, Any], params: SetPriorityParams) -> Dict[str, Any]:
        changes = {"priority": params.priority.value}
        await self.ticket_store.update_ticket(ticket["id"], changes)
        return changes

    async def _set_due_date(self, ticket: Dict[str, Any], params: SetDueDateParams) -> Dict[str, Any]:
        due_date = self.calculate_due_date(params)
        changes = {"due_date": due_date.isoformat(), "sla_due_date": due_date.isoformat()}
        await self.ticket_store.update_ticket(ticket["id"], changes)
        return changes

    def calculate_due_date(self, params: SetDueDateParams) -> datetime:
        """Due timestamp for a set_due_date action.

        Business hours are counted as plain hours.
        """
        now = self.clock()

        if params.calculation in (DueDateCalculation.HOURS_FROM_NOW, DueDateCalculation.BUSINESS_HOURS_FROM_NOW):
            return now + timedelta(hours=params.value)
        if params.calculation == DueDateCalculation.DAYS_FROM_NOW:
            return now + timedelta(days=params.value)

        return now + timedelta(hours=self.default_due_hours)

    async def _escalate(self, ticket: Dict[str, Any], params: EscalateParams) -> Dict[str, Any]:
        current = await self.ticket_store.get_ticket_by_id(ticket["id"])
        if current is None:
            return {}

        changes: Dict[str, Any] = {}
        if params.priority_level:
            scale = [p.value for p in PRIORITY_SCALE]
            current_priority = current.get("priority")
            index = scale.index(current_priority) if current_priority in scale else -1
            new_index = min(index + params.priority_level, len(scale) - 1)
            changes["priority"] = scale[new_index]
            await self.ticket_store.update_ticket(ticket["id"], changes)

        escalate_to = params.escalate_to.value if params.escalate_to else None
        self.logger.info(
            "Ticket escalated",
            ticket_id=ticket["id"],
            escalate_to=escalate_to,
            priority=changes.get("priority", current.get("priority"))
        )
        return dict(changes, escalate_to=escalate_to)

    async def _notify(self, ticket: Dict[str, Any], params: NotifyParams) -> Dict[str, Any]:
        await self.notifier.notify(ticket, params.recipients, params.template)
        return {"recipients": list(params.recipients), "template": params.template}

    async def _set_status(self, ticket: Dict[str, Any], params: SetStatusParams) -> Dict[str, Any]:
        await self.ticket_store.update_status(ticket["id"], params.status.value)
        return {"status": params.status.value}
