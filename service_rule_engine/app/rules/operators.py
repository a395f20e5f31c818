"""
Condition operator evaluation.

Every operator except the two null checks treats a missing field value as a
non-match. String comparisons are case-insensitive; numeric comparisons skip
condition values that do not parse as numbers.
"""

import math
import operator as op
import re
from typing import Any, Callable, List, Optional, Union

from shared.logging import get_logger
from .models import ConditionOperator

logger = get_logger("rule_engine.operators")

_NUMERIC_COMPARISONS = {
    ConditionOperator.GREATER_THAN: op.gt,
    ConditionOperator.LESS_THAN: op.lt,
    ConditionOperator.GREATER_THAN_OR_EQUAL: op.ge,
    ConditionOperator.LESS_THAN_OR_EQUAL: op.le,
}


def stringify(value: Any) -> str:
    """Render a field value the way rule values are written."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_number(value: Any) -> Optional[float]:
    """Parse a finite number, returning ``None`` for anything non-numeric.

    Blank strings, digit separators and infinities are not numbers here.
    """
    if value is None:
        return None
    if isinstance(value, str) and "_" in value:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def is_empty(value: Any) -> bool:
    return value is None or value == ""


def _regex_matches(pattern: str, text: str) -> bool:
    try:
        return re.search(pattern, text, re.IGNORECASE) is not None
    except re.error:
        logger.warning("Invalid regex pattern", pattern=pattern)
        return False


def _any_numeric(field_value: Any, values: List[str], compare: Callable[[float, float], bool]) -> bool:
    number = to_number(field_value)
    if number is None:
        return False
    for candidate in values:
        bound = to_number(candidate)
        if bound is not None and compare(number, bound):
            return True
    return False


def evaluate_operator(operator: Union[ConditionOperator, str], field_value: Any, values: List[str]) -> bool:
    """Evaluate a condition operator against a resolved field value."""
    try:
        operator = ConditionOperator(operator)
    except ValueError:
        logger.warning("Unknown condition operator", operator=operator)
        return False

    if operator == ConditionOperator.IS_NULL:
        return is_empty(field_value)

    if operator == ConditionOperator.IS_NOT_NULL:
        return not is_empty(field_value)

    if field_value is None:
        return False

    field_str = stringify(field_value).lower()
    value_strs = [stringify(v).lower() for v in values]

    if operator in (ConditionOperator.EQUALS, ConditionOperator.IN):
        return field_str in value_strs

    elif operator in (ConditionOperator.NOT_EQUALS, ConditionOperator.NOT_IN):
        return field_str not in value_strs

    elif operator == ConditionOperator.CONTAINS:
        return any(v in field_str for v in value_strs)

    elif operator == ConditionOperator.NOT_CONTAINS:
        return not any(v in field_str for v in value_strs)

    elif operator == ConditionOperator.STARTS_WITH:
        return any(field_str.startswith(v) for v in value_strs)

    elif operator == ConditionOperator.ENDS_WITH:
        return any(field_str.endswith(v) for v in value_strs)

    elif operator in _NUMERIC_COMPARISONS:
        return _any_numeric(field_value, values, _NUMERIC_COMPARISONS[operator])

    elif operator == ConditionOperator.BETWEEN:
        if len(values) < 2:
            return False
        number, low, high = to_number(field_value), to_number(values[0]), to_number(values[1])
        if number is None or low is None or high is None:
            return False
        return low <= number <= high

    elif operator == ConditionOperator.REGEX:
        return any(_regex_matches(stringify(v), field_str) for v in values)

    logger.warning("Unhandled condition operator", operator=operator.value)
    return False
