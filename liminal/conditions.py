"""Comparison operations used to test payload fields against expected values."""

from __future__ import annotations

import sys
from enum import Enum
from typing import Any, Callable, Optional


class ConditionOperation(Enum):
    """A supported comparison; the value is its canonical name."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    STARTS_WITH = "startswith"
    ENDS_WITH = "endswith"
    CONTAINS = "contains"
    GREATER_THAN = ">"
    GREATER_THAN_OR_EQUAL = ">="
    LESS_THAN = "<"
    LESS_THAN_OR_EQUAL = "<="


_ALIASES = {
    "==": ConditionOperation.EQUALS,
    "!=": ConditionOperation.NOT_EQUALS,
}


def parse_operation(text: str) -> Optional[ConditionOperation]:
    """Return the operation named by ``text``, or ``None`` if it is unknown."""
    if text in _ALIASES:
        return _ALIASES[text]
    try:
        return ConditionOperation(text)
    except ValueError:
        return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _json_equal(left: Any, right: Any) -> bool:
    """Strict JSON equality: booleans, integers and floats never mix."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if _is_number(left) or _is_number(right):
        if isinstance(left, int) and isinstance(right, int):
            return left == right
        if isinstance(left, float) and isinstance(right, float):
            return left == right
        return False
    if isinstance(left, dict) and isinstance(right, dict):
        return left.keys() == right.keys() and all(
            _json_equal(left[key], right[key]) for key in left
        )
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return len(left) == len(right) and all(map(_json_equal, left, right))
    return type(left) is type(right) and left == right


def _compare_numbers(
    field_value: Any, expected_value: Any, compare: Callable[[float, float], bool]
) -> bool:
    if _is_number(field_value) and _is_number(expected_value):
        return compare(float(field_value), float(expected_value))
    return False


def evaluate_condition(
    field_value: Any, operation: ConditionOperation, expected_value: Any
) -> bool:
    """Evaluate ``field_value <operation> expected_value``."""
    if operation is ConditionOperation.EQUALS:
        return _json_equal(field_value, expected_value)
    if operation is ConditionOperation.NOT_EQUALS:
        return not _json_equal(field_value, expected_value)

    if operation in (
        ConditionOperation.STARTS_WITH,
        ConditionOperation.ENDS_WITH,
        ConditionOperation.CONTAINS,
    ):
        if not (isinstance(field_value, str) and isinstance(expected_value, str)):
            return False
        if operation is ConditionOperation.STARTS_WITH:
            return field_value.startswith(expected_value)
        if operation is ConditionOperation.ENDS_WITH:
            return field_value.endswith(expected_value)
        return expected_value in field_value

    comparators: dict[ConditionOperation, Callable[[float, float], bool]] = {
        ConditionOperation.GREATER_THAN: lambda a, b: a > b,
        ConditionOperation.GREATER_THAN_OR_EQUAL: lambda a, b: a >= b,
        ConditionOperation.LESS_THAN: lambda a, b: a < b,
        ConditionOperation.LESS_THAN_OR_EQUAL: lambda a, b: a <= b,
    }
    return _compare_numbers(field_value, expected_value, comparators[operation])


def _parse_float(text: str) -> Optional[float]:
    text = text.strip()
    if not text or "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


_STRING_TESTS: tuple[tuple[str, Callable[[str, str], bool]], ...] = (
    ("startswith '", lambda value, arg: value.startswith(arg)),
    ("endswith '", lambda value, arg: value.endswith(arg)),
    ("contains '", lambda value, arg: arg in value),
    ("== '", lambda value, arg: value == arg),
    ("!= '", lambda value, arg: value != arg),
)

_NUMERIC_TESTS: tuple[tuple[str, Callable[[float, float], bool]], ...] = (
    ("> ", lambda value, arg: value > arg),
    (">= ", lambda value, arg: value >= arg),
    ("< ", lambda value, arg: value < arg),
    ("<= ", lambda value, arg: value <= arg),
    ("== ", lambda value, arg: abs(value - arg) < sys.float_info.epsilon),
    ("!= ", lambda value, arg: abs(value - arg) >= sys.float_info.epsilon),
)


def evaluate_filter_condition(field_value: Any, condition: str) -> bool:
    """Evaluate a textual condition such as ``startswith 'abc'`` or ``> 5``.

    Anything that does not match a known form evaluates to ``False``.
    """
    if isinstance(field_value, str) and condition.endswith("'"):
        for prefix, test in _STRING_TESTS:
            if condition.startswith(prefix):
                return test(field_value, condition[len(prefix):-1])

    if _is_number(field_value):
        number = float(field_value)
        for prefix, test in _NUMERIC_TESTS:
            if condition.startswith(prefix):
                threshold = _parse_float(condition[len(prefix):])
                if threshold is not None:
                    return test(number, threshold)

    if isinstance(field_value, bool):
        if condition == "== true":
            return field_value
        if condition == "== false":
            return not field_value

    return False