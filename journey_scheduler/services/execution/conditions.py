"""Condition evaluation for conditional journey nodes.

Evaluates a ``{field, operator, value}`` predicate against the patient
context captured on the run.

Supported operators:
- >, <, >=, <=: ordering comparison
- =, ==: strict equality
- !=: strict inequality

A field path that does not resolve never matches, except under ``!=``.
"""

from typing import Dict, Any, Callable, Optional

from journey_scheduler.constants import CONDITION_OPERATORS
from journey_scheduler.core.logging import get_logger
from .models import MISSING

logger = get_logger(__name__)


# Type alias for condition dict
ConditionDict = Dict[str, Any]


def get_nested_value(data: Any, field_path: str) -> Any:
    """Get a nested value from a mapping using dot notation.

    Args:
        data: Patient context (or any nested mapping)
        field_path: Dot-separated path (e.g., "age", "demographics.age",
            "conditions.0")

    Returns:
        Value at path, or MISSING when a segment is absent, an index is
        out of range, or an intermediate value is neither a mapping nor a list

    Examples:
        >>> get_nested_value({"demographics": {"age": 65}}, "demographics.age")
        65
        >>> get_nested_value({"demographics": None}, "demographics.age")
        MISSING
    """
    if not field_path:
        return MISSING

    current = data
    for part in field_path.split('.'):
        # Handle array index
        if isinstance(current, (list, tuple)):
            if not part.isdigit() or int(part) >= len(current):
                return MISSING
            current = current[int(part)]
        elif isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return MISSING

    return current


def _strict_equals(actual: Any, target: Any) -> bool:
    if actual is MISSING:
        return False
    # booleans are not numbers here: True must not equal 1
    if isinstance(actual, bool) != isinstance(target, bool):
        return False
    return actual == target


def _safe_compare(actual: Any, target: Any, comparator: Callable[[Any, Any], bool]) -> bool:
    """Compare two values natively, False if they cannot be ordered.

    Numeric strings are compared as numbers against numbers.
    """
    if actual is MISSING or actual is None or target is None:
        return False

    try:
        return bool(comparator(actual, target))
    except TypeError:
        pass

    try:
        return bool(comparator(float(actual), float(target)))
    except (ValueError, TypeError):
        return False


_COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    '>': lambda a, b: _safe_compare(a, b, lambda x, y: x > y),
    '<': lambda a, b: _safe_compare(a, b, lambda x, y: x < y),
    '>=': lambda a, b: _safe_compare(a, b, lambda x, y: x >= y),
    '<=': lambda a, b: _safe_compare(a, b, lambda x, y: x <= y),
    '=': _strict_equals,
    '==': _strict_equals,
    '!=': lambda a, b: not _strict_equals(a, b),
}


def is_known_operator(operator: str) -> bool:
    return operator in CONDITION_OPERATORS


def evaluate_operator(operator: str, actual: Any, target: Any) -> Optional[bool]:
    """Apply ``operator``; None when the operator is not recognised."""
    comparator = _COMPARATORS.get(operator)
    if comparator is None:
        return None
    return comparator(actual, target)


def evaluate_condition(condition: ConditionDict, context: Dict[str, Any],
                       node_id: Optional[str] = None) -> bool:
    """Evaluate a conditional node predicate against patient context.

    Args:
        condition: Condition dict with field, operator, value
            {
                "field": "demographics.age",  # Context path to check
                "operator": ">=",             # Comparison operator
                "value": 65                   # Literal to compare against
            }
        context: Patient context captured on the run
        node_id: Owning node, for log context

    Returns:
        True if the condition matches. Unknown operators evaluate to False
        and are reported as a warning.
    """
    field = condition.get("field", "")
    operator = condition.get("operator", "")
    target_value = condition.get("value")

    actual_value = get_nested_value(context, field)
    result = evaluate_operator(operator, actual_value, target_value)

    if result is None:
        logger.warning("Unknown operator",
                       node_id=node_id,
                       operator=operator,
                       field=field)
        return False

    logger.debug("Condition result",
                 node_id=node_id,
                 field=field,
                 operator=operator,
                 target=target_value,
                 actual=None if actual_value is MISSING else actual_value,
                 result=result)
    return result
