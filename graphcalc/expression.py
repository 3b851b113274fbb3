"""Immutable expression tree produced by :mod:`graphcalc.parsing`.

Purpose
-------
Every formula, variable assignment and range text is represented as a small
tagged tree with three node kinds:

- ``Literal``: a number (or, inside attributes, a string),
- ``Identifier``: a variable name such as ``x`` or ``pi``,
- ``Call``: an operator or function applied to an ordered argument tuple.

Operators are calls whose ``name`` is the operator token, for example
``Call("+", (a, b))`` or unary ``Call("-", (a,))``. The parser normalizes
spellings so the evaluator sees one symbol per operation:

======================  ===========
source spelling         call name
======================  ===========
``^`` / ``**``          ``^``
``&&`` / ``and``        ``&&``
``||`` / ``or``         ``||``
word ``xor``            ``^^``
``c ? a : b``           ``?`` (3 args)
``(a, b)``              ``#tuple``
======================  ===========

Attributes (``@red``, ``@3``, ``@"label"``) are rendering hints attached to
the root node of a statement; they never affect evaluation.

Nodes are frozen dataclasses; the source span is excluded from equality so
that trees built by hand compare equal to parsed ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterator, Optional, Union

from .errors import SourceSpan

__all__ = [
    "Call",
    "Identifier",
    "Literal",
    "Node",
    "calls",
    "free_identifiers",
    "iter_nodes",
    "with_attrs",
]

_OPERATOR_CHARS = set("+-*/%^<>=!&|?~.:#")


@dataclass(frozen=True)
class Literal:
    """Numeric (or string) constant."""

    value: Union[float, str]
    attrs: tuple["Node", ...] = ()
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)

    def __str__(self) -> str:
        if isinstance(self.value, str):
            return f'"{self.value}"'
        return f"{self.value:g}"


@dataclass(frozen=True)
class Identifier:
    """Reference to a named variable."""

    name: str
    attrs: tuple["Node", ...] = ()
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Call:
    """Operator or function application."""

    name: str
    args: tuple["Node", ...] = ()
    attrs: tuple["Node", ...] = ()
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)

    @property
    def is_operator(self) -> bool:
        return bool(self.name) and self.name[0] in _OPERATOR_CHARS

    def __str__(self) -> str:
        if not self.is_operator:
            return f"{self.name}({', '.join(str(a) for a in self.args)})"
        if self.name == "#tuple":
            return f"({', '.join(str(a) for a in self.args)})"
        if self.name == "?" and len(self.args) == 3:
            c, a, b = (_wrap(arg) for arg in self.args)
            return f"{c} ? {a} : {b}"
        if len(self.args) == 1:
            return f"{self.name}{_wrap(self.args[0])}"
        if len(self.args) == 2:
            return f"{_wrap(self.args[0])} {self.name} {_wrap(self.args[1])}"
        return f"{self.name}({', '.join(str(a) for a in self.args)})"


Node = Union[Literal, Identifier, Call]


def _wrap(node: Node) -> str:
    if isinstance(node, Call) and node.is_operator and node.name != "#tuple":
        return f"({node})"
    return str(node)


def calls(node: Node, name: str, arity: Optional[int] = None) -> bool:
    """Return True when ``node`` is a call to ``name`` (with ``arity`` args, if given)."""
    if not isinstance(node, Call) or node.name != name:
        return False
    return arity is None or len(node.args) == arity


def with_attrs(node: Node, attrs: tuple[Node, ...]) -> Node:
    """Return a copy of ``node`` carrying ``attrs``."""
    return replace(node, attrs=tuple(attrs))


def iter_nodes(node: Node) -> Iterator[Node]:
    """Yield ``node`` and all of its descendants (attributes excluded), depth first."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        if isinstance(current, Call):
            stack.extend(reversed(current.args))


def free_identifiers(node: Node) -> frozenset[str]:
    """Return the identifier names referenced anywhere in ``node``."""
    return frozenset(n.name for n in iter_nodes(node) if isinstance(n, Identifier))
