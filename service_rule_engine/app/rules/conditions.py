"""
Condition grouping and evaluation for ticket rules.
"""

from typing import Dict, Any, List, Optional

from shared.logging import get_logger
from .fields import resolve_field_path
from .models import Rule, RuleCondition, RuleEvaluationResult, LogicalOperator
from .operators import evaluate_operator


class ConditionEvaluator:
    """Evaluates a rule's conditions against ticket data.

    Conditions sharing a ``group_id`` are folded left to right, each one
    joining the running result with its own ``logical_operator`` (AND when
    unset). Ungrouped conditions are singleton groups. Group results are
    combined with AND. Every condition is evaluated so the trace records all
    of them.
    """

    def __init__(self):
        self.logger = get_logger("rule_engine.conditions")

    def evaluate_rule(self, rule: Rule, ticket: Dict[str, Any]) -> RuleEvaluationResult:
        """Evaluate all of a rule's conditions."""
        if not rule.conditions:
            return RuleEvaluationResult(matched=True, matched_conditions={})

        matched_conditions: Dict[str, Any] = {}
        matched = True

        for group_key, conditions in self.group_conditions(rule.conditions).items():
            group_result: Optional[bool] = None

            for condition in conditions:
                field_value = resolve_field_path(condition.field_path, ticket)
                result = evaluate_operator(condition.operator, field_value, condition.value)
                matched_conditions[condition.id] = {
                    "condition": condition.to_dict(),
                    "result": result,
                    "field_value": field_value,
                }

                if group_result is None:
                    group_result = result
                elif condition.logical_operator == LogicalOperator.OR:
                    group_result = group_result or result
                else:
                    group_result = group_result and result

            self.logger.debug("Condition group evaluated", rule_id=rule.id, group=group_key, result=group_result)
            matched = matched and bool(group_result)

        return RuleEvaluationResult(matched=matched, matched_conditions=matched_conditions)

    def group_conditions(self, conditions: List[RuleCondition]) -> Dict[str, List[RuleCondition]]:
        """Group conditions by ``group_id``; ungrouped ones are keyed by their own id."""
        groups: Dict[str, List[RuleCondition]] = {}
        ungrouped: List[RuleCondition] = []

        for condition in conditions:
            if condition.group_id:
                groups.setdefault(condition.group_id, []).append(condition)
            else:
                ungrouped.append(condition)

        for group in groups.values():
            group.sort(key=lambda c: c.sequence)

        for condition in ungrouped:
            groups[condition.id] = [condition]

        return groups

    def evaluate_condition(self, condition: RuleCondition, ticket: Dict[str, Any]) -> bool:
        """Evaluate a single condition."""
        field_value = resolve_field_path(condition.field_path, ticket)
        return evaluate_operator(condition.operator, field_value, condition.value)

    def evaluate_action_condition(self, expression: str, ticket: Dict[str, Any]) -> bool:
        """Gate for actions carrying an ``action_condition``.

        No expression syntax is defined for these gates yet, so every gate
        passes.
        """
        self.logger.debug("Action condition not evaluated", expression=expression)
        return True
