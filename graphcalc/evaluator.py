"""Recursive evaluator for expression trees.

Purpose
-------
Map an expression tree plus a variable lookup to one IEEE-754 double.
Operations are dispatched through a table keyed by ``(symbol, arity)``;
adding an operator means registering one handler.

Numeric semantics
-----------------
Arithmetic is carried out on ``numpy.float64`` scalars with floating-point
warnings silenced, so ``1/0`` is ``inf`` and ``sqrt(-1)`` is ``nan`` exactly as
in C. Non-finite values are ordinary results and are never raised.
Evaluation errors (:class:`~graphcalc.errors.EvaluationError`) are reserved
for unknown identifiers, unknown functions and wrong arities.

Operands of binary operators are evaluated left to right, and ``and``/``or``
evaluate both sides. The order is observable through ``rnd``, which draws
from the explicit :class:`numpy.random.Generator` carried by the evaluator.

Examples
--------
>>> from graphcalc.parsing import parse_expr
>>> evaluate(parse_expr("2 + 3*4"), {})
14.0
>>> evaluate(parse_expr("-5 % 3"), {}), evaluate(parse_expr("mod(-5, 3)"), {})
(-2.0, 1.0)
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Callable, Optional, Union

import numpy as np

from .errors import EvaluationError
from .expression import Call, Identifier, Literal, Node, calls

__all__ = [
    "Evaluator",
    "Lookup",
    "default_rng",
    "evaluate",
    "is_known_operation",
    "mapping_lookup",
]

Lookup = Callable[[str], float]

_NAN = np.float64(np.nan)
_ONE = np.float64(1.0)
_ZERO = np.float64(0.0)
_INT64_SPAN = 1 << 64
_INT64_HALF = 1 << 63
# Shift counts beyond this already saturate to 0 or inf for any double.
_MAX_SHIFT = 2200

_process_rng = np.random.default_rng()


def default_rng() -> np.random.Generator:
    """Return the process-wide generator used when none is supplied."""
    return _process_rng


def mapping_lookup(values: Mapping[str, float]) -> Lookup:
    """Build a lookup over a plain mapping of variable values."""

    def _lookup(name: str) -> float:
        try:
            return values[name]
        except KeyError:
            raise EvaluationError(f"Unknown variable: {name}") from None

    return _lookup


class Evaluator:
    """Callable that evaluates trees against one lookup and one generator.

    Parameters
    ----------
    lookup : callable
        ``lookup(name) -> float`` for free identifiers. It should raise
        :class:`EvaluationError` for unknown names.
    rng : numpy.random.Generator, optional
        Source for ``rnd``. Defaults to :func:`default_rng`.

    Notes
    -----
    Calling an ``Evaluator`` does not silence floating-point warnings by
    itself; callers sampling many points wrap the whole loop in
    ``np.errstate(all="ignore")`` once. :func:`evaluate` does this for single
    evaluations.
    """

    __slots__ = ("lookup", "rng")

    def __init__(self, lookup: Lookup, rng: Optional[np.random.Generator] = None) -> None:
        self.lookup = lookup
        self.rng = rng if rng is not None else default_rng()

    def __call__(self, node: Node) -> np.float64:
        if isinstance(node, Literal):
            if isinstance(node.value, str):
                raise EvaluationError(f"Expected a number, found text {node}")
            return np.float64(node.value)
        if isinstance(node, Identifier):
            return np.float64(self.lookup(node.name))
        handler = _HANDLERS.get((node.name, len(node.args)))
        if handler is None:
            raise EvaluationError(f"Expression not understood: {node}")
        return handler(self, node)


def evaluate(
    node: Node,
    lookup: Union[Lookup, Mapping[str, float]],
    rng: Optional[np.random.Generator] = None,
) -> float:
    """Evaluate ``node`` once and return a Python float.

    Parameters
    ----------
    node : Node
        Expression tree.
    lookup : callable or mapping
        Variable source; mappings are wrapped with :func:`mapping_lookup`.
    rng : numpy.random.Generator, optional
        Generator for ``rnd``.

    Raises
    ------
    EvaluationError
        Unknown identifier, unknown function or wrong arity.
    """
    if isinstance(lookup, Mapping):
        lookup = mapping_lookup(lookup)
    with np.errstate(all="ignore"):
        return float(Evaluator(lookup, rng)(node))


def is_known_operation(name: str, arity: int) -> bool:
    """Return True when ``name`` with ``arity`` arguments has a handler."""
    return (name, arity) in _HANDLERS


# ---------------------------------------------------------------------------
# Dispatch table
# ---------------------------------------------------------------------------

Handler = Callable[[Evaluator, Call], np.float64]
_HANDLERS: dict[tuple[str, int], Handler] = {}


def _register(*keys: tuple[str, int]) -> Callable[[Handler], Handler]:
    def _decorator(fn: Handler) -> Handler:
        for key in keys:
            _HANDLERS[key] = fn
        return fn

    return _decorator


def _unary(name: str, fn: Callable[[np.float64], np.float64]) -> None:
    _HANDLERS[(name, 1)] = lambda ev, node: np.float64(fn(ev(node.args[0])))


def _binary(name: str, fn: Callable[[np.float64, np.float64], np.float64]) -> None:
    def _handler(ev: Evaluator, node: Call) -> np.float64:
        a = ev(node.args[0])
        b = ev(node.args[1])
        return np.float64(fn(a, b))

    _HANDLERS[(name, 2)] = _handler


def _truth(value: bool) -> np.float64:
    return _ONE if value else _ZERO


def _to_int64(value: np.float64) -> Optional[int]:
    """Truncate toward zero and wrap into the signed 64-bit range."""
    if not np.isfinite(value):
        return None
    return (int(value) + _INT64_HALF) % _INT64_SPAN - _INT64_HALF


def _bitwise(fn: Callable[[int, int], int]) -> Callable[[np.float64, np.float64], np.float64]:
    def _op(a: np.float64, b: np.float64) -> np.float64:
        ia, ib = _to_int64(a), _to_int64(b)
        if ia is None or ib is None:
            return _NAN
        return np.float64(fn(ia, ib))

    return _op


def _shift(a: np.float64, count: np.float64) -> np.float64:
    if not np.isfinite(count):
        return _NAN
    n = max(-_MAX_SHIFT, min(_MAX_SHIFT, int(count)))
    return np.float64(np.ldexp(a, n))


def _complement(a: np.float64) -> np.float64:
    ia = _to_int64(a)
    return _NAN if ia is None else np.float64(~ia)


def _clamp(a: np.float64, lo: np.float64, hi: np.float64) -> np.float64:
    if a < lo:
        return lo
    if a > hi:
        return hi
    return a


def _rounded(value: np.float64) -> Optional[int]:
    if not np.isfinite(value):
        return None
    return round(float(value))


def _permutations(n: np.float64, k: np.float64) -> np.float64:
    ni, ki = _rounded(n), _rounded(k)
    if ni is None or ki is None:
        return _NAN
    if ki <= 0:
        return _ONE
    if ki > ni:
        return _ZERO
    result = 1.0
    for i in range(ki):
        result *= ni - i
        if math.isinf(result):
            break
    return np.float64(result)


def _combinations(n: np.float64, k: np.float64) -> np.float64:
    ni, ki = _rounded(n), _rounded(k)
    if ni is None or ki is None:
        return _NAN
    if ki < 0 or ki > ni:
        return _ZERO
    ki = min(ki, ni - ki)
    # Alternate multiply and divide so intermediate values stay small.
    result = 1.0
    for d in range(1, ki + 1):
        result *= ni
        ni -= 1
        result /= d
        if math.isinf(result):
            break
    return np.float64(result)


def _factorial(n: np.float64) -> np.float64:
    if np.isnan(n) or n == -np.inf:
        return _NAN
    if n == np.inf:
        return n
    if n < 0 or n != math.floor(n):
        # Domain error: reported as NaN like sqrt(-1).
        return _NAN
    if n > 170:
        return np.float64(np.inf)
    return np.float64(math.factorial(int(n)))


# -- arithmetic ---------------------------------------------------------------

_binary("+", lambda a, b: a + b)
_binary("-", lambda a, b: a - b)
_binary("*", lambda a, b: a * b)
_binary("/", lambda a, b: a / b)
_binary("%", np.fmod)
_binary("mod", np.mod)
_binary("^", np.power)
_binary("<<", _shift)
_binary(">>", lambda a, b: _shift(a, -b))

_unary("-", lambda a: -a)
_unary("+", np.abs)

# -- comparisons and logic ----------------------------------------------------

_binary(">", lambda a, b: _truth(a > b))
_binary("<", lambda a, b: _truth(a < b))
_binary(">=", lambda a, b: _truth(a >= b))
_binary("<=", lambda a, b: _truth(a <= b))
_binary("==", lambda a, b: _truth(a == b))
_binary("!=", lambda a, b: _truth(a != b))
_binary("&&", lambda a, b: b if a != 0 else _ZERO)
_binary("||", lambda a, b: b if a == 0 else _ONE)
_binary("^^", lambda a, b: _truth((a != 0) != (b != 0)))

_unary("!", lambda a: _truth(a == 0))

# -- bitwise ------------------------------------------------------------------

_binary("&", _bitwise(lambda a, b: a & b))
_binary("|", _bitwise(lambda a, b: a | b))
_binary("xor", _bitwise(lambda a, b: a ^ b))

_unary("~", _complement)

# -- functions ----------------------------------------------------------------

_unary("square", lambda a: a * a)
_unary("sqrt", np.sqrt)
_unary("sin", np.sin)
_unary("cos", np.cos)
_unary("tan", np.tan)
_unary("asin", np.arcsin)
_unary("acos", np.arccos)
_unary("atan", np.arctan)
_unary("sec", lambda a: 1 / np.cos(a))
_unary("csc", lambda a: 1 / np.sin(a))
_unary("cot", lambda a: 1 / np.tan(a))
_unary("exp", np.exp)
_unary("ln", np.log)
_unary("log", np.log10)
_unary("ceil", np.ceil)
_unary("floor", np.floor)
_unary("sign", np.sign)
_unary("abs", np.abs)
_unary("fact", _factorial)

_binary("min", np.minimum)
_binary("max", np.maximum)
_binary("atan", np.arctan2)
_binary("log", lambda a, b: np.log(a) / np.log(b))
_binary("P", _permutations)
_binary("C", _combinations)


@_register(("??", 2))
def _coalesce(ev: Evaluator, node: Call) -> np.float64:
    a = ev(node.args[0])
    if np.isfinite(a):
        return a
    return ev(node.args[1])


@_register(("?", 3))
def _conditional(ev: Evaluator, node: Call) -> np.float64:
    cond, if_true, if_false = node.args
    return ev(if_true) if ev(cond) != 0 else ev(if_false)


def _bounds(ev: Evaluator, node: Call, bounds: Node) -> tuple[np.float64, np.float64]:
    if not calls(bounds, "#tuple", 2):
        raise EvaluationError(f"Expression not understood: {node}")
    return ev(bounds.args[0]), ev(bounds.args[1])


@_register(("in", 2))
def _in_range(ev: Evaluator, node: Call) -> np.float64:
    a = ev(node.args[0])
    lo, hi = _bounds(ev, node, node.args[1])
    return _truth(lo <= a <= hi)


@_register(("clamp", 2))
def _clamp_tuple(ev: Evaluator, node: Call) -> np.float64:
    a = ev(node.args[0])
    lo, hi = _bounds(ev, node, node.args[1])
    return _clamp(a, lo, hi)


@_register(("clamp", 3))
def _clamp_args(ev: Evaluator, node: Call) -> np.float64:
    a = ev(node.args[0])
    lo = ev(node.args[1])
    hi = ev(node.args[2])
    return _clamp(a, lo, hi)


@_register(("rnd", 0))
def _random_unit(ev: Evaluator, node: Call) -> np.float64:
    return np.float64(ev.rng.random())


@_register(("rnd", 1))
def _random_below(ev: Evaluator, node: Call) -> np.float64:
    n = ev(node.args[0])
    if not np.isfinite(n):
        return _NAN
    upper = int(n)
    if upper <= 0:
        return _ZERO
    return np.float64(ev.rng.integers(upper))


@_register(("rnd", 2))
def _random_between(ev: Evaluator, node: Call) -> np.float64:
    a = ev(node.args[0])
    b = ev(node.args[1])
    if not (np.isfinite(a) and np.isfinite(b)):
        return _NAN
    lo, hi = int(a), int(b)
    if hi <= lo:
        return np.float64(lo)
    return np.float64(ev.rng.integers(lo, hi))
