import math

import pytest

from liminal.expression import ExpressionError, build_context, evaluate_expression


def test_build_context_flattens_objects_and_arrays():
    payload = {"a": {"b": 1, "c": True, "d": "text"}, "arr": [2, None], "n": None}
    context = build_context(payload)
    assert context == {"a.b": 1.0, "a.c": True, "a.d": "text", "arr[0]": 2.0}
    assert isinstance(context["a.b"], float)


def test_build_context_skips_nulls():
    assert build_context({"x": None, "y": {"z": None}}) == {}


def test_commutative_addition():
    payload = {"x": 1.25, "y": 7.5}
    assert evaluate_expression(payload, "x + y") == evaluate_expression(payload, "y + x")


def test_doubling_matches_self_addition():
    payload = {"x": 3.75}
    assert evaluate_expression(payload, "x * 2.0") == evaluate_expression(payload, "x + x")


def test_mixed_int_and_float():
    assert evaluate_expression({"x": 6.0}, "x / 2") == 3.0


@pytest.mark.parametrize("value", [0.25, 2.0, 16.0, 1000.0])
def test_sqrt_alias(value):
    assert evaluate_expression({"x": value}, "sqrt(x)") == math.sqrt(value)


@pytest.mark.parametrize("value", [0.5, 10.0, 12345.0])
def test_log_is_base_ten_and_ln_is_natural(value):
    payload = {"x": value}
    assert evaluate_expression(payload, "log(x)") == math.log10(value)
    assert evaluate_expression(payload, "ln(x)") == math.log(value)


def test_abs_of_negative_field():
    assert evaluate_expression({"x": -4.5}, "abs(x)") == 4.5


def test_nested_and_array_fields():
    payload = {"accel": {"x": 1.5}, "samples": [9, 4]}
    assert evaluate_expression(payload, "accel.x * 1.0") == payload["accel"]["x"]
    assert evaluate_expression(payload, "samples[1] * 1.0") == float(payload["samples"][1])


def test_precedence_of_product_over_sum():
    payload = {"a": 2.0, "b": 3.0, "c": 5.0}
    assert evaluate_expression(payload, "a + b * c") == evaluate_expression(
        payload, "a + (b * c)"
    )
    assert evaluate_expression(payload, "a + b * c") != evaluate_expression(
        payload, "(a + b) * c"
    )


def test_power_binds_tighter_than_negation():
    payload = {"x": 3.0}
    assert evaluate_expression(payload, "-x ^ 2.0") == -evaluate_expression(
        payload, "x ^ 2.0"
    )


def test_if_function_selects_branch():
    payload = {"x": 2.5, "y": 0.5}
    assert evaluate_expression(payload, "if(x > 1.0, x, y)") == payload["x"]
    assert evaluate_expression(payload, "if(x < 1.0, x, y)") == payload["y"]


def test_float_division_by_zero_is_infinite():
    assert evaluate_expression({"x": 1.0}, "x / 0.0") == math.inf
    assert evaluate_expression({"x": -1.0}, "x / 0.0") == -math.inf


def test_integer_result_is_rejected():
    with pytest.raises(ExpressionError, match="expected a float"):
        evaluate_expression({}, "2 + 3")


def test_boolean_result_is_rejected():
    with pytest.raises(ExpressionError):
        evaluate_expression({"x": 1.0}, "x > 0.0")


def test_unknown_variable():
    with pytest.raises(ExpressionError, match="not bound"):
        evaluate_expression({"x": 1.0}, "y * 2.0")


@pytest.mark.parametrize("expression", ["x +", "(x", "x $ 2.0", "x 2.0"])
def test_syntax_errors(expression):
    with pytest.raises(ExpressionError):
        evaluate_expression({"x": 1.0}, expression)


def test_string_arithmetic_is_rejected():
    with pytest.raises(ExpressionError):
        evaluate_expression({"s": "abc"}, "s + 1.0")


def test_integer_division_by_zero():
    with pytest.raises(ExpressionError, match="Division by zero"):
        evaluate_expression({}, "1 / 0")