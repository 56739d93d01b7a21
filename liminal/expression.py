"""Arithmetic expressions evaluated over the fields of a payload."""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Callable, Mapping, NamedTuple

logger = logging.getLogger(__name__)

_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1


class ExpressionError(ValueError):
    """Raised when an expression cannot be parsed or evaluated to a float."""


def build_context(payload: Any) -> dict[str, Any]:
    """Flatten a payload into variables named by their paths.

    Objects give ``a.b`` names, arrays ``a[0]``; numbers become floats and
    nulls are left out.
    """
    context: dict[str, Any] = {}
    _add_to_context(payload, "", context)
    return context


def _add_to_context(value: Any, prefix: str, context: dict[str, Any]) -> None:
    if isinstance(value, bool) or isinstance(value, str):
        context[prefix] = value
    elif isinstance(value, (int, float)):
        context[prefix] = float(value)
    elif isinstance(value, Mapping):
        for key, item in value.items():
            _add_to_context(item, f"{prefix}.{key}" if prefix else str(key), context)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _add_to_context(item, f"{prefix}[{index}]", context)


_MATH_ALIASES = [
    (re.compile(rf"\b{re.escape(name)}\b"), replacement)
    for name, replacement in (
        ("sqrt", "math::sqrt"),
        ("sin", "math::sin"),
        ("cos", "math::cos"),
        ("tan", "math::tan"),
        ("log", "math::log10"),
        ("ln", "math::ln"),
        ("abs", "math::abs"),
        ("floor", "math::floor"),
        ("ceil", "math::ceil"),
        ("exp", "math::exp"),
    )
]


def _rewrite_math_functions(expression: str) -> str:
    for pattern, replacement in _MATH_ALIASES:
        expression = pattern.sub(replacement, expression)
    return expression


class _Token(NamedTuple):
    kind: str
    value: Any


_TOKEN_RE = re.compile(
    r"""
    (?P<num>\d+(?:\.\d*)?(?:[eE][+-]?\d+)?)
    |(?P<str>"(?:[^"\\]|\\.)*")
    |(?P<op>&&|\|\||==|!=|<=|>=|[-+*/%^<>!(),])
    |(?P<ident>(?:[^\W\d]|\[)[\w.\[\]:]*)
    """,
    re.VERBOSE,
)


def _tokenize(text: str) -> list[_Token]:
    tokens = []
    pos = 0
    while True:
        while pos < len(text) and text[pos].isspace():
            pos += 1
        if pos >= len(text):
            break
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ExpressionError(f"Unexpected character {text[pos]!r} at {pos}")
        kind = match.lastgroup
        raw = match.group()
        pos = match.end()
        if kind == "num":
            if any(ch in raw for ch in ".eE"):
                tokens.append(_Token("num", float(raw)))
            else:
                tokens.append(_Token("num", _check_int(int(raw))))
        elif kind == "str":
            tokens.append(_Token("str", re.sub(r"\\(.)", r"\1", raw[1:-1])))
        else:
            tokens.append(_Token(kind, raw))
    tokens.append(_Token("end", None))
    return tokens


def _check_int(value: int) -> int:
    if not _I64_MIN <= value <= _I64_MAX:
        raise ExpressionError("Integer overflow")
    return value


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return _is_int(value) or isinstance(value, float)


def _as_float(value: Any, what: str) -> float:
    if not _is_number(value):
        raise ExpressionError(f"Expected a number for {what}, got {value!r}")
    return float(value)


def _as_bool(value: Any, what: str) -> bool:
    if not isinstance(value, bool):
        raise ExpressionError(f"Expected a boolean for {what}, got {value!r}")
    return value


def _float_div(a: float, b: float) -> float:
    if b == 0.0:
        if a == 0.0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _float_pow(a: float, b: float) -> float:
    if a == 0.0 and b < 0.0:
        return math.inf
    try:
        return math.pow(a, b)
    except OverflowError:
        return math.inf
    except ValueError:
        return math.nan


def _arithmetic(op: str, left: Any, right: Any) -> Any:
    if op == "+" and isinstance(left, str) and isinstance(right, str):
        return left + right
    if op == "^":
        return _float_pow(_as_float(left, op), _as_float(right, op))
    if _is_int(left) and _is_int(right):
        if op == "+":
            return _check_int(left + right)
        if op == "-":
            return _check_int(left - right)
        if op == "*":
            return _check_int(left * right)
        if right == 0:
            raise ExpressionError("Division by zero")
        quotient = abs(left) // abs(right)
        if op == "/":
            return _check_int(quotient if (left < 0) == (right < 0) else -quotient)
        remainder = abs(left) % abs(right)
        return -remainder if left < 0 else remainder
    a, b = _as_float(left, op), _as_float(right, op)
    if op == "+":
        return a + b
    if op == "-":
        return a - b
    if op == "*":
        return a * b
    if op == "/":
        return _float_div(a, b)
    return math.nan if b == 0.0 else math.fmod(a, b)


def _strict_equal(left: Any, right: Any) -> bool:
    return type(left) is type(right) and left == right


def _compare(op: str, left: Any, right: Any) -> bool:
    if op == "==":
        return _strict_equal(left, right)
    if op == "!=":
        return not _strict_equal(left, right)
    if isinstance(left, str) and isinstance(right, str):
        a, b = left, right
    else:
        a, b = _as_float(left, op), _as_float(right, op)
    if op == "<":
        return a < b
    if op == ">":
        return a > b
    if op == "<=":
        return a <= b
    return a >= b


def _real(function: Callable[[float], float]) -> Callable[[float], float]:
    def wrapped(x: float) -> float:
        try:
            return function(x)
        except OverflowError:
            return math.inf
        except ValueError:
            return math.nan

    return wrapped


def _logarithm(function: Callable[[float], float]) -> Callable[[float], float]:
    def wrapped(x: float) -> float:
        if x == 0.0:
            return -math.inf
        if x < 0.0:
            return math.nan
        return function(x)

    return wrapped


def _cbrt(x: float) -> float:
    return math.copysign(abs(x) ** (1.0 / 3.0), x)


_UNARY_FLOAT: dict[str, Callable[[float], float]] = {
    "math::sqrt": _real(math.sqrt),
    "math::sin": _real(math.sin),
    "math::cos": _real(math.cos),
    "math::tan": _real(math.tan),
    "math::asin": _real(math.asin),
    "math::acos": _real(math.acos),
    "math::atan": _real(math.atan),
    "math::sinh": _real(math.sinh),
    "math::cosh": _real(math.cosh),
    "math::tanh": _real(math.tanh),
    "math::log10": _logarithm(math.log10),
    "math::log2": _logarithm(math.log2),
    "math::ln": _logarithm(math.log),
    "math::exp": _real(math.exp),
    "math::exp2": lambda x: _float_pow(2.0, x),
    "math::cbrt": _cbrt,
    "math::floor": _real(math.floor),
    "math::ceil": _real(math.ceil),
    "floor": _real(math.floor),
    "ceil": _real(math.ceil),
    "round": _real(lambda x: math.floor(abs(x) + 0.5) * math.copysign(1.0, x)),
}

_BINARY_FLOAT: dict[str, Callable[[float, float], float]] = {
    "math::pow": _float_pow,
    "math::hypot": math.hypot,
    "math::atan2": math.atan2,
    "math::log": lambda x, base: _float_div(_logarithm(math.log)(x), math.log(base))
    if base > 0.0
    else math.nan,
}


def _call(name: str, args: list[Any]) -> Any:
    if name in _UNARY_FLOAT:
        if len(args) != 1:
            raise ExpressionError(f"{name} takes 1 argument, got {len(args)}")
        return float(_UNARY_FLOAT[name](_as_float(args[0], name)))
    if name in _BINARY_FLOAT:
        if len(args) != 2:
            raise ExpressionError(f"{name} takes 2 arguments, got {len(args)}")
        return float(_BINARY_FLOAT[name](_as_float(args[0], name), _as_float(args[1], name)))
    if name == "math::abs":
        if len(args) != 1:
            raise ExpressionError(f"{name} takes 1 argument, got {len(args)}")
        value = args[0]
        if _is_int(value):
            return _check_int(abs(value))
        return abs(_as_float(value, name))
    if name in ("min", "max"):
        if not args:
            raise ExpressionError(f"{name} needs at least one argument")
        for value in args:
            _as_float(value, name)
        pick = min if name == "min" else max
        return pick(args, key=float)
    if name == "if":
        if len(args) != 3:
            raise ExpressionError(f"if takes 3 arguments, got {len(args)}")
        return args[1] if _as_bool(args[0], "if") else args[2]
    raise ExpressionError(f"Function identifier is not bound to anything: {name}")


class _Evaluator:
    """Recursive-descent parser that evaluates as it parses."""

    def __init__(self, tokens: list[_Token], context: Mapping[str, Any]) -> None:
        self._tokens = tokens
        self._pos = 0
        self._context = context

    def run(self) -> Any:
        value = self._or()
        if self._tokens[self._pos].kind != "end":
            raise ExpressionError(f"Unexpected token {self._tokens[self._pos].value!r}")
        return value

    def _accept(self, *ops: str) -> str | None:
        token = self._tokens[self._pos]
        if token.kind == "op" and token.value in ops:
            self._pos += 1
            return token.value
        return None

    def _expect(self, op: str) -> None:
        if self._accept(op) is None:
            raise ExpressionError(f"Expected {op!r}")

    def _or(self) -> Any:
        value = self._and()
        while self._accept("||"):
            right = self._and()
            value = _as_bool(value, "||") or _as_bool(right, "||")
        return value

    def _and(self) -> Any:
        value = self._comparison()
        while self._accept("&&"):
            right = self._comparison()
            value = _as_bool(value, "&&") and _as_bool(right, "&&")
        return value

    def _comparison(self) -> Any:
        value = self._sum()
        while (op := self._accept("==", "!=", "<", ">", "<=", ">=")) is not None:
            value = _compare(op, value, self._sum())
        return value

    def _sum(self) -> Any:
        value = self._product()
        while (op := self._accept("+", "-")) is not None:
            value = _arithmetic(op, value, self._product())
        return value

    def _product(self) -> Any:
        value = self._unary()
        while (op := self._accept("*", "/", "%")) is not None:
            value = _arithmetic(op, value, self._unary())
        return value

    def _unary(self) -> Any:
        if self._accept("-"):
            value = self._unary()
            if _is_int(value):
                return _check_int(-value)
            return -_as_float(value, "negation")
        if self._accept("!"):
            return not _as_bool(self._unary(), "!")
        return self._power()

    def _power(self) -> Any:
        value = self._primary()
        while self._accept("^"):
            value = _arithmetic("^", value, self._power_operand())
        return value

    def _power_operand(self) -> Any:
        if self._accept("-"):
            value = self._power_operand()
            return _check_int(-value) if _is_int(value) else -_as_float(value, "negation")
        return self._primary()

    def _primary(self) -> Any:
        token = self._tokens[self._pos]
        if token.kind in ("num", "str"):
            self._pos += 1
            return token.value
        if self._accept("("):
            value = self._or()
            self._expect(")")
            return value
        if token.kind == "ident":
            self._pos += 1
            if self._accept("("):
                return _call(token.value, self._arguments())
            if token.value == "true":
                return True
            if token.value == "false":
                return False
            if token.value not in self._context:
                raise ExpressionError(
                    f"Variable identifier is not bound to anything by context: {token.value}"
                )
            return self._context[token.value]
        if token.kind == "end":
            raise ExpressionError("Unexpected end of expression")
        raise ExpressionError(f"Unexpected token {token.value!r}")

    def _arguments(self) -> list[Any]:
        if self._accept(")"):
            return []
        args = [self._or()]
        while self._accept(","):
            args.append(self._or())
        self._expect(")")
        return args


def evaluate_expression(payload: Any, expression: str) -> float:
    """Evaluate ``expression`` with the payload's fields as variables.

    The common math functions (``sqrt``, ``sin``, ``log`` for base 10, ``ln``
    and so on) may be written without a namespace. The result must be a
    float; anything else raises ``ExpressionError``.
    """
    logger.debug("Evaluating expression: '%s'", expression)
    context = build_context(payload)
    processed = _rewrite_math_functions(expression)
    logger.debug("Processed expression: '%s'", processed)
    try:
        result = _Evaluator(_tokenize(processed), context).run()
    except ExpressionError as exc:
        logger.error("Failed to evaluate expression '%s': %s", expression, exc)
        raise ExpressionError(f"Expression evaluation failed: {exc}") from exc
    if not isinstance(result, float):
        logger.error("Expression '%s' did not produce a float: %r", expression, result)
        raise ExpressionError(
            f"Expression evaluation failed: expected a float, got {result!r}"
        )
    logger.debug("Expression '%s' evaluated to: %s", expression, result)
    return result