import pytest

from liminal.conditions import (
    ConditionOperation,
    evaluate_condition,
    evaluate_filter_condition,
    parse_operation,
)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("equals", ConditionOperation.EQUALS),
        ("==", ConditionOperation.EQUALS),
        ("not_equals", ConditionOperation.NOT_EQUALS),
        ("!=", ConditionOperation.NOT_EQUALS),
        ("startswith", ConditionOperation.STARTS_WITH),
        ("endswith", ConditionOperation.ENDS_WITH),
        ("contains", ConditionOperation.CONTAINS),
        (">", ConditionOperation.GREATER_THAN),
        (">=", ConditionOperation.GREATER_THAN_OR_EQUAL),
        ("<", ConditionOperation.LESS_THAN),
        ("<=", ConditionOperation.LESS_THAN_OR_EQUAL),
    ],
)
def test_parse_operation(text, expected):
    assert parse_operation(text) is expected


@pytest.mark.parametrize("text", ["", "EQUALS", "=", "starts_with", "=>"])
def test_parse_unknown_operation(text):
    assert parse_operation(text) is None


def test_canonical_names_round_trip():
    for operation in ConditionOperation:
        assert parse_operation(operation.value) is operation


def test_equals_is_type_strict():
    assert evaluate_condition(1, ConditionOperation.EQUALS, 1)
    assert not evaluate_condition(1, ConditionOperation.EQUALS, 1.0)
    assert not evaluate_condition(True, ConditionOperation.EQUALS, 1)
    assert not evaluate_condition("1", ConditionOperation.EQUALS, 1)
    assert evaluate_condition(None, ConditionOperation.EQUALS, None)


def test_equals_on_nested_values():
    left = {"a": [1, {"b": "x"}], "c": None}
    right = {"c": None, "a": [1, {"b": "x"}]}
    assert evaluate_condition(left, ConditionOperation.EQUALS, right)
    assert not evaluate_condition(left, ConditionOperation.EQUALS, {"a": [1]})


@pytest.mark.parametrize(
    "left, right",
    [(1, 1), (1, 1.0), ("a", "a"), ("a", "b"), (True, True), (None, 0), ([1], [1])],
)
def test_not_equals_is_complement_of_equals(left, right):
    equal = evaluate_condition(left, ConditionOperation.EQUALS, right)
    not_equal = evaluate_condition(left, ConditionOperation.NOT_EQUALS, right)
    assert equal is not not_equal


def test_string_operations():
    assert evaluate_condition("sensor/temp", ConditionOperation.STARTS_WITH, "sensor")
    assert evaluate_condition("sensor/temp", ConditionOperation.ENDS_WITH, "temp")
    assert evaluate_condition("sensor/temp", ConditionOperation.CONTAINS, "or/te")
    assert not evaluate_condition("sensor/temp", ConditionOperation.STARTS_WITH, "temp")


def test_string_operations_require_strings():
    assert not evaluate_condition(123, ConditionOperation.STARTS_WITH, "1")
    assert not evaluate_condition("123", ConditionOperation.CONTAINS, 2)


def test_numeric_comparisons_mix_ints_and_floats():
    assert evaluate_condition(10, ConditionOperation.GREATER_THAN, 9.5)
    assert evaluate_condition(10.0, ConditionOperation.GREATER_THAN_OR_EQUAL, 10)
    assert evaluate_condition(-1, ConditionOperation.LESS_THAN, 0)
    assert evaluate_condition(3, ConditionOperation.LESS_THAN_OR_EQUAL, 3)
    assert not evaluate_condition(3, ConditionOperation.LESS_THAN, 3)


def test_numeric_comparisons_reject_non_numbers():
    assert not evaluate_condition("10", ConditionOperation.GREATER_THAN, 1)
    assert not evaluate_condition(True, ConditionOperation.GREATER_THAN, 0)
    assert not evaluate_condition(None, ConditionOperation.LESS_THAN, 1)


def test_filter_string_conditions():
    assert evaluate_filter_condition("hello world", "startswith 'hello'")
    assert evaluate_filter_condition("hello world", "endswith 'world'")
    assert evaluate_filter_condition("hello world", "contains 'o w'")
    assert evaluate_filter_condition("hello", "== 'hello'")
    assert evaluate_filter_condition("hello", "!= 'other'")
    assert not evaluate_filter_condition("hello", "== 'other'")


def test_filter_numeric_conditions():
    assert evaluate_filter_condition(10, "> 5")
    assert evaluate_filter_condition(5, ">= 5")
    assert not evaluate_filter_condition(5, "> 5")
    assert evaluate_filter_condition(4.5, "< 5")
    assert evaluate_filter_condition(5.0, "<= 5")
    assert evaluate_filter_condition(3, "== 3.0")
    assert evaluate_filter_condition(3, "!= 3.5")
    assert not evaluate_filter_condition(3, "!= 3")


def test_filter_boolean_conditions():
    assert evaluate_filter_condition(True, "== true")
    assert evaluate_filter_condition(False, "== false")
    assert not evaluate_filter_condition(True, "== false")


def test_filter_type_mismatch_and_unknown_forms_are_false():
    assert not evaluate_filter_condition(10, "startswith '1'")
    assert not evaluate_filter_condition("10", "> 5")
    assert not evaluate_filter_condition(10, "> five")
    assert not evaluate_filter_condition(10, ">5")
    assert not evaluate_filter_condition(None, "== true")
    assert not evaluate_filter_condition("abc", "matches 'a'")