"""
Rule data models for the ticket rule engine.
"""

from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
import uuid

from pydantic import BaseModel, ConfigDict, Field

from shared.errors import ValidationError


class RuleType(str, Enum):
    """Canonical rule types, processed in declaration order."""
    PRIORITY = "priority"
    SLA = "sla"
    ALLOCATION = "allocation"


class TriggerEvent(str, Enum):
    """Ticket lifecycle moments that start a rule pass."""
    ON_CREATE = "on_create"
    ON_UPDATE = "on_update"
    ON_STATUS_CHANGE = "on_status_change"
    ON_MANUAL = "on_manual"


class ConditionOperator(str, Enum):
    """Rule condition operators."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    IN = "in"
    NOT_IN = "not_in"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"
    BETWEEN = "between"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    REGEX = "regex"


class LogicalOperator(str, Enum):
    """How a condition joins the running result of its group."""
    AND = "AND"
    OR = "OR"


class ActionType(str, Enum):
    """Rule action types."""
    ASSIGN_EXECUTOR = "assign_executor"
    SET_PRIORITY = "set_priority"
    SET_DUE_DATE = "set_due_date"
    ESCALATE = "escalate"
    NOTIFY = "notify"
    SET_STATUS = "set_status"


class ExecutionStatus(str, Enum):
    """Outcome of one rule evaluation against one ticket."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class TicketStatus(str, Enum):
    """Ticket workflow states."""
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority(str, Enum):
    """Ticket priorities, lowest first."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


PRIORITY_SCALE: List[TicketPriority] = [
    TicketPriority.LOW,
    TicketPriority.MEDIUM,
    TicketPriority.HIGH,
    TicketPriority.CRITICAL,
]

ACTIVE_TICKET_STATUSES = (TicketStatus.OPEN.value, TicketStatus.IN_PROGRESS.value)
TERMINAL_TICKET_STATUSES = (TicketStatus.RESOLVED.value, TicketStatus.CLOSED.value)


class AssignmentStrategy(str, Enum):
    """Executor selection strategies for assign_executor actions."""
    SKILL_MATCH = "skill_match"
    LOAD_BALANCE = "load_balance"
    ROUND_ROBIN = "round_robin"
    SPECIFIC_EXECUTOR = "specific_executor"


class DueDateCalculation(str, Enum):
    """Due date offsets for set_due_date actions."""
    HOURS_FROM_NOW = "hours_from_now"
    DAYS_FROM_NOW = "days_from_now"
    BUSINESS_HOURS_FROM_NOW = "business_hours_from_now"


class EscalationTarget(str, Enum):
    """Who an escalation is addressed to."""
    MANAGER = "manager"
    ADMIN = "admin"


class ExecutorAvailability(str, Enum):
    """Executor availability states."""
    AVAILABLE = "available"
    BUSY = "busy"
    OFFLINE = "offline"


@dataclass
class RuleCondition:
    """Rule condition."""
    id: str
    field_path: str
    operator: ConditionOperator
    value: List[str] = field(default_factory=list)
    rule_id: Optional[str] = None
    sequence: int = 0
    group_id: Optional[str] = None
    logical_operator: Optional[LogicalOperator] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for execution log snapshots."""
        return {
            "id": self.id,
            "field_path": self.field_path,
            "operator": _enum_value(self.operator),
            "value": list(self.value),
            "sequence": self.sequence,
            "group_id": self.group_id,
            "logical_operator": _enum_value(self.logical_operator),
        }


@dataclass
class RuleAction:
    """Rule action. ``action_params`` stays raw until execution."""
    id: str
    action_type: str
    action_params: Dict[str, Any] = field(default_factory=dict)
    rule_id: Optional[str] = None
    step_order: int = 0
    trigger_after_minutes: Optional[int] = None
    action_condition: Optional[str] = None


@dataclass
class Rule:
    """Ticket rule."""
    id: str
    name: str
    rule_type: str
    trigger_event: TriggerEvent
    tenant_id: Optional[str] = None
    description: Optional[str] = None
    priority_order: int = 0
    is_active: bool = True
    stop_on_match: bool = False
    max_executions: Optional[int] = None
    conditions: List[RuleCondition] = field(default_factory=list)
    actions: List[RuleAction] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rule":
        """Build a rule with its conditions and actions from a plain mapping.

        Accepts the shape rule definitions are stored in: ``rule_name`` or
        ``name``, operator and trigger strings, and nested ``conditions`` /
        ``actions`` lists. Raises ``ValidationError`` on unknown operators or
        trigger events.
        """
        try:
            rule_id = str(data.get("id") or uuid.uuid4())
            conditions = [
                RuleCondition(
                    id=str(c.get("id") or uuid.uuid4()),
                    rule_id=rule_id,
                    field_path=c["field_path"],
                    operator=ConditionOperator(c["operator"]),
                    value=[str(v) for v in (c.get("value") or [])],
                    sequence=c.get("sequence", 0),
                    group_id=c.get("group_id"),
                    logical_operator=LogicalOperator(c["logical_operator"]) if c.get("logical_operator") else None,
                )
                for c in data.get("conditions") or []
            ]
            actions = [
                RuleAction(
                    id=str(a.get("id") or uuid.uuid4()),
                    rule_id=rule_id,
                    action_type=a["action_type"],
                    action_params=dict(a.get("action_params") or {}),
                    step_order=a.get("step_order", 0),
                    trigger_after_minutes=a.get("trigger_after_minutes"),
                    action_condition=a.get("action_condition"),
                )
                for a in data.get("actions") or []
            ]
            return cls(
                id=rule_id,
                name=data.get("rule_name") or data["name"],
                rule_type=data["rule_type"],
                trigger_event=TriggerEvent(data["trigger_event"]),
                tenant_id=data.get("tenant_id"),
                description=data.get("description"),
                priority_order=data.get("priority_order", 0),
                is_active=data.get("is_active", True),
                stop_on_match=data.get("stop_on_match", False),
                max_executions=data.get("max_executions"),
                conditions=conditions,
                actions=actions,
            )
        except (KeyError, ValueError) as e:
            raise ValidationError("Invalid rule definition", details={"error": str(e)})


@dataclass
class ExecutorProfile:
    """Executor profile as returned by the executor directory."""
    id: str
    tenant_id: Optional[str] = None
    user_id: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    full_name: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    availability_status: str = ExecutorAvailability.AVAILABLE.value
    max_concurrent_tickets: Optional[int] = None
    open_tickets_count: Optional[int] = None
    assigned_tickets_count: Optional[int] = None

    @property
    def user_is_active(self) -> bool:
        return bool(self.user and self.user.get("is_active"))


@dataclass
class ExecutorCandidate:
    """Executor profile with its load computed for one assignment."""
    profile: ExecutorProfile
    current_load: int
    capacity: int  # 0 means unlimited

    @property
    def has_capacity(self) -> bool:
        return self.capacity == 0 or self.current_load < self.capacity


@dataclass
class RuleEvaluationResult:
    """Result of evaluating a rule's conditions against a ticket."""
    matched: bool
    matched_conditions: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ActionOutcome:
    """Snapshot of one executed action."""
    action_id: str
    action_type: str
    step_order: int
    changes: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ExecutionLogEntry:
    """Audit record of one rule evaluation against one ticket."""
    rule_id: str
    ticket_id: str
    execution_status: ExecutionStatus
    matched_conditions: Optional[Dict[str, Any]] = None
    actions_executed: Optional[List[Dict[str, Any]]] = None
    error_message: Optional[str] = None
    execution_time_ms: Optional[float] = None
    reason: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# Typed action parameters, one model per action type

class ActionParams(BaseModel):
    """Base for typed action parameters."""
    model_config = ConfigDict(extra="ignore", use_enum_values=False)


class AssignExecutorParams(ActionParams):
    """Parameters for assign_executor."""
    strategy: Optional[str] = Field(None, description="Selection strategy")
    executor_id: Optional[str] = Field(None, description="Executor profile for specific_executor")
    skill_ids: List[str] = Field(default_factory=list, description="Category ids or names for skill_match")


class SetPriorityParams(ActionParams):
    """Parameters for set_priority."""
    priority: TicketPriority


class SetDueDateParams(ActionParams):
    """Parameters for set_due_date."""
    calculation: Optional[DueDateCalculation] = None
    value: float = Field(0, ge=0)


class EscalateParams(ActionParams):
    """Parameters for escalate."""
    escalate_to: Optional[EscalationTarget] = None
    priority_level: Optional[int] = Field(None, ge=0)


class NotifyParams(ActionParams):
    """Parameters for notify."""
    recipients: List[str] = Field(default_factory=list)
    template: Optional[str] = None


class SetStatusParams(ActionParams):
    """Parameters for set_status."""
    status: TicketStatus


ACTION_PARAM_MODELS = {
    ActionType.ASSIGN_EXECUTOR.value: AssignExecutorParams,
    ActionType.SET_PRIORITY.value: SetPriorityParams,
    ActionType.SET_DUE_DATE.value: SetDueDateParams,
    ActionType.ESCALATE.value: EscalateParams,
    ActionType.NOTIFY.value: NotifyParams,
    ActionType.SET_STATUS.value: SetStatusParams,
}


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value
