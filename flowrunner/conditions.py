# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Condition Evaluator

Evaluates condition nodes of the form `field OP value`. The field is
resolved against the execution context; the compare value is taken
literally from the node configuration.

Comparison semantics are loose, matching how editors store values as
strings: "5" equals 5, None equals "".
"""

import re
from typing import Any, Callable, Dict

from flowrunner.context import ExecutionContext
from flowrunner.exceptions import NodeConfigurationError
from flowrunner.models import NodeType
from flowrunner.variable_resolver import resolve_value


NUMERIC_PATTERN = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")


def is_numeric(value: Any) -> bool:
    """Number, or a string that reads as one."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, str):
        return bool(NUMERIC_PATTERN.match(value))
    return False


def is_empty(value: Any) -> bool:
    """Emptiness: None, "", "0", 0, 0.0, False and empty collections."""
    if value is None or value is False:
        return True
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0
    if isinstance(value, str):
        return value == "" or value == "0"
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _null_equals(other: Any) -> bool:
    if other is None or other == "":
        return True
    if isinstance(other, bool):
        return other is False
    if isinstance(other, (int, float)):
        return other == 0
    if isinstance(other, (list, tuple, dict)):
        return len(other) == 0
    return False


def loose_equals(left: Any, right: Any) -> bool:
    """Equality across string/number representations."""
    if left is None:
        return _null_equals(right)
    if right is None:
        return _null_equals(left)
    if isinstance(left, bool) or isinstance(right, bool):
        return (not is_empty(left)) == (not is_empty(right))
    if is_numeric(left) and is_numeric(right):
        return float(left) == float(right)
    if isinstance(left, (dict, list)) or isinstance(right, (dict, list)):
        return left == right
    return str(left) == str(right)


def _contains(field_value: Any, compare_value: Any) -> bool:
    if not isinstance(field_value, str):
        return False
    needle = "" if compare_value is None else str(compare_value)
    return needle in field_value


def _greater_than(field_value: Any, compare_value: Any) -> bool:
    return is_numeric(field_value) and is_numeric(compare_value) and float(field_value) > float(compare_value)


def _less_than(field_value: Any, compare_value: Any) -> bool:
    return is_numeric(field_value) and is_numeric(compare_value) and float(field_value) < float(compare_value)


# Allowed operators for condition nodes
OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "equals": loose_equals,
    "not_equals": lambda field_value, compare_value: not loose_equals(field_value, compare_value),
    "contains": _contains,
    "greater_than": _greater_than,
    "less_than": _less_than,
    "exists": lambda field_value, compare_value: field_value is not None,
    "empty": lambda field_value, compare_value: is_empty(field_value),
}


def evaluate_condition(config: Dict[str, Any], context: ExecutionContext, node_id: str = "") -> Dict[str, Any]:
    """
    Evaluate a condition node configuration.

    Args:
        config: Node config with field, operator (default equals) and value
        context: Current execution context
        node_id: Node being evaluated (for error reporting)

    Returns:
        {result, field, field_value, operator, compare_value}

    Raises:
        NodeConfigurationError: If the operator is not supported
    """
    field = config.get("field", "")
    operator = config.get("operator") or "equals"
    compare_value = config.get("value", "")

    if operator not in OPERATORS:
        raise NodeConfigurationError(
            node_id,
            NodeType.CONDITION.value,
            f"Unsupported condition operator '{operator}'. "
            f"Supported: {', '.join(OPERATORS)}"
        )

    field_value = resolve_value(field, context)
    result = bool(OPERATORS[operator](field_value, compare_value))

    return {
        "result": result,
        "field": field,
        "field_value": field_value,
        "operator": operator,
        "compare_value": compare_value,
    }
