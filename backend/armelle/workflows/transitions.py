# /armelle/workflows/transitions.py

"""
Transition resolution for workflow steps.

Conditions use a tiny declarative grammar, never dynamic code evaluation:

    <dotted.path> <op> <literal>      op in == != > < >= <=
    <dotted.path> exists
    <dotted.path> not_exists

Literals are quoted strings (single or double quotes), true, false, null and
numbers in the notation numeric input is validated with (signs and a leading
or trailing dot are fine, exponents are not). Equality is strict: "1" != 1
and true != 1. Ordering operators compare numbers only (numeric strings are
coerced); anything else makes the comparison false. A path that does not
resolve never equals anything.
"""

import logging
import math
import re
from typing import Any, List, NamedTuple, Optional, Union

from armelle.models.workflow import ConditionalNext
from armelle.workflows.templates import MISSING, lookup_path
from armelle.workflows.validator import DECIMAL_PATTERN, INTEGER_PATTERN

logger = logging.getLogger(__name__)

_COMPARISON = re.compile(r"^(\w+(?:\.\w+)*)\s+(==|!=|>=|<=|>|<)\s+(.+)$")
_EXISTENCE = re.compile(r"^(\w+(?:\.\w+)*)\s+(exists|not_exists)$")


_KEYWORDS = {"true": True, "false": False, "null": None}


class ConditionSyntaxError(ValueError):
    """Raised when a condition does not follow the grammar."""


class ParsedCondition(NamedTuple):
    path: str
    operator: str
    operand: Any = None


def _parse_literal(token: str) -> Any:
    if len(token) >= 2 and token[0] == token[-1] and token[0] in ("'", '"'):
        return token[1:-1]
    if token in _KEYWORDS:
        return _KEYWORDS[token]
    # Same notation the validator accepts for numeric input ("+5", ".5", "5.")
    if INTEGER_PATTERN.match(token):
        return int(token)
    if DECIMAL_PATTERN.match(token):
        return float(token)
    raise ConditionSyntaxError(f"Invalid literal '{token}' (strings must be quoted)")


def parse_condition(expression: str) -> ParsedCondition:
    """Parse a condition string, raising ConditionSyntaxError when malformed."""
    if not isinstance(expression, str) or not expression.strip():
        raise ConditionSyntaxError("Condition cannot be empty")

    text = expression.strip()
    match = _EXISTENCE.match(text)
    if match:
        return ParsedCondition(path=match.group(1), operator=match.group(2))

    match = _COMPARISON.match(text)
    if not match:
        raise ConditionSyntaxError(f"Unsupported condition syntax: '{text}'")

    return ParsedCondition(
        path=match.group(1),
        operator=match.group(2),
        operand=_parse_literal(match.group(3).strip())
    )


def validate_condition(expression: str) -> Optional[str]:
    """Return a description of the syntax error, or None when the condition is valid."""
    try:
        parse_condition(expression)
    except ConditionSyntaxError as e:
        return str(e)
    return None


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and (INTEGER_PATTERN.match(value.strip()) or DECIMAL_PATTERN.match(value.strip())):
        number = float(value.strip())
    else:
        return None
    return None if math.isnan(number) else number


def _strict_equals(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    if type(left) is not type(right):
        return False
    return left == right


def _compare(condition: ParsedCondition, actual: Any) -> bool:
    op = condition.operator

    if op == "exists":
        return actual is not MISSING and actual is not None
    if op == "not_exists":
        return actual is MISSING or actual is None

    if op == "==":
        return actual is not MISSING and _strict_equals(actual, condition.operand)
    if op == "!=":
        return not (actual is not MISSING and _strict_equals(actual, condition.operand))

    left = _to_number(actual)
    right = _to_number(condition.operand)
    if left is None or right is None:
        return False
    if op == ">":
        return left > right
    if op == "<":
        return left < right
    if op == ">=":
        return left >= right
    return left <= right


def evaluate_condition(expression: str, variables: dict) -> bool:
    """
    Evaluate a condition against the context variables.

    Malformed conditions evaluate to False (and are logged), so a bad
    definition can never crash a turn. The registry rejects them up front.
    """
    try:
        condition = parse_condition(expression)
    except ConditionSyntaxError as e:
        logger.warning(f"Ignoring malformed transition condition: {e}")
        return False

    return _compare(condition, lookup_path(variables, condition.path))


def resolve_next(
    next_spec: Union[str, List[ConditionalNext]],
    variables: dict,
    include_default: bool = True
) -> Optional[str]:
    """
    Pick the next step id from a step's `next` declaration.

    A plain string is an unconditional target. For a conditional list the
    first entry that matches wins; catch-all entries (condition None or
    "default") always match. With include_default=False only explicit
    conditions are considered, and a plain string target yields None.

    Returns:
        The target step id (or END), or None when nothing matches
    """
    if isinstance(next_spec, str):
        return next_spec if include_default else None

    for entry in next_spec:
        if entry.is_default:
            if include_default:
                return entry.target
            continue
        if evaluate_condition(entry.condition, variables):
            return entry.target

    return None
