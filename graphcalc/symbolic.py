"""Bridge from expression trees to SymPy, used for LaTeX titles.

Operators whose meaning matches SymPy's are mapped to SymPy objects
(arithmetic, powers, elementary functions, comparisons). The remaining
calculator-specific operators (bitwise operations, ``??``, ``in``, ternary,
truncating ``%`` and so on) become undefined functions with a readable name,
which SymPy prints as ``\\operatorname{name}``.
"""

from __future__ import annotations

import math
from typing import Callable

import sympy as sp

from .errors import EvaluationError
from .expression import Call, Identifier, Literal, Node

__all__ = ["to_latex", "to_sympy"]

_CONSTANTS: dict[str, sp.Expr] = {
    "pi": sp.pi,
    "tau": 2 * sp.pi,
    "e": sp.E,
    "phi": sp.GoldenRatio,
}

_UNARY: dict[str, Callable[[sp.Expr], sp.Expr]] = {
    "-": lambda a: -a,
    "+": sp.Abs,
    "abs": sp.Abs,
    "sqrt": sp.sqrt,
    "square": lambda a: a**2,
    "sin": sp.sin,
    "cos": sp.cos,
    "tan": sp.tan,
    "asin": sp.asin,
    "acos": sp.acos,
    "atan": sp.atan,
    "sec": sp.sec,
    "csc": sp.csc,
    "cot": sp.cot,
    "exp": sp.exp,
    "ln": sp.log,
    "log": lambda a: sp.log(a, 10),
    "ceil": sp.ceiling,
    "floor": sp.floor,
    "sign": sp.sign,
    "fact": sp.factorial,
}

_BINARY: dict[str, Callable[[sp.Expr, sp.Expr], sp.Expr]] = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": lambda a, b: a / b,
    "^": lambda a, b: a**b,
    "mod": sp.Mod,
    "min": sp.Min,
    "max": sp.Max,
    "atan": sp.atan2,
    "log": sp.log,
    "P": lambda n, k: sp.FallingFactorial(n, k),
    "C": sp.binomial,
    "<": sp.Lt,
    ">": sp.Gt,
    "<=": sp.Le,
    ">=": sp.Ge,
    "==": sp.Eq,
    "=": sp.Eq,
    "!=": sp.Ne,
}

_FUNCTION_NAMES = {
    "%": "rem",
    "&&": "and",
    "||": "or",
    "^^": "xor",
    "!": "not",
    "~": "bnot",
    "&": "band",
    "|": "bor",
    "<<": "shl",
    ">>": "shr",
    "??": "coalesce",
    "?": "ifelse",
    "in": "inrange",
    "..": "range",
    ":": "axis",
}


def _literal(value: float) -> sp.Expr:
    if math.isfinite(value) and float(value).is_integer():
        return sp.Integer(int(value))
    return sp.Float(value)


def to_sympy(node: Node, *, constants: bool = True) -> sp.Basic:
    """Convert an expression tree to a SymPy object.

    Parameters
    ----------
    node : Node
        Tree to convert; attributes are ignored.
    constants : bool
        Map ``pi``, ``tau``, ``e`` and ``phi`` to SymPy constants instead of
        plain symbols.

    Raises
    ------
    EvaluationError
        For string literals, which have no numeric meaning.
    """
    if isinstance(node, Literal):
        if isinstance(node.value, str):
            raise EvaluationError(f"Expected a number, found text {node}")
        return _literal(node.value)
    if isinstance(node, Identifier):
        if constants and node.name in _CONSTANTS:
            return _CONSTANTS[node.name]
        return sp.Symbol(node.name, real=True)

    args = [to_sympy(arg, constants=constants) for arg in node.args]
    if node.name == "#tuple":
        return sp.Tuple(*args)
    if len(args) == 1 and node.name in _UNARY:
        return _UNARY[node.name](args[0])
    if len(args) == 2 and node.name in _BINARY:
        return _BINARY[node.name](*args)
    name = _FUNCTION_NAMES.get(node.name, node.name)
    return sp.Function(name)(*args)


def to_latex(node: Node) -> str:
    """Return the LaTeX rendering of ``node`` (without ``$`` delimiters)."""
    return sp.latex(to_sympy(node))
