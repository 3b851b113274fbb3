"""Variable table, lazy resolver and the one/two-variable classifier.

Variables are entered as ``name = expr`` statements. The table keeps the
expression of each name; a :class:`Resolver` evaluates a name on demand by
evaluating its bound expression through itself, so one variable may be
defined in terms of another. ``x`` and ``y`` are injected by the sampler and
take precedence over table entries.

Cycles are rejected when the table is built. Entries that depend on neither
``x`` nor ``y`` (directly or through other entries) are evaluated once at
build time and stored as literals, so sampling does not re-evaluate them per
pixel.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Iterable, Optional

import numpy as np

from .errors import CyclicDefinitionError, EvaluationError, FormatError
from .evaluator import Evaluator
from .expression import Call, Identifier, Literal, Node, calls, free_identifiers

__all__ = [
    "INJECTED_NAMES",
    "Resolver",
    "VariableTable",
    "build_variable_table",
    "is_two_variable",
]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

INJECTED_NAMES = frozenset({"x", "y"})


class VariableTable(Mapping[str, Node]):
    """Read-only mapping from variable name to its bound expression."""

    def __init__(self, entries: Optional[Mapping[str, Node]] = None) -> None:
        self._entries: dict[str, Node] = dict(entries or {})

    def __getitem__(self, name: str) -> Node:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        body = ", ".join(f"{k}={v}" for k, v in self._entries.items())
        return f"VariableTable({body})"

    def resolver(
        self,
        values: Optional[Mapping[str, float]] = None,
        rng: Optional[np.random.Generator] = None,
        *,
        record: bool = False,
    ) -> "Resolver":
        """Return a :class:`Resolver` over this table."""
        return Resolver(self, values, rng, record=record)


class Resolver:
    """Variable lookup that evaluates table entries through itself.

    Parameters
    ----------
    table : VariableTable
        Bound expressions.
    values : mapping, optional
        Injected values (normally ``x`` and ``y``). Callers update
        :attr:`values` in place between evaluations.
    rng : numpy.random.Generator, optional
        Generator handed to the embedded :class:`~graphcalc.evaluator.Evaluator`.
    record : bool
        When True, every requested name is added to :attr:`requested`
        before it is resolved.
    """

    def __init__(
        self,
        table: Mapping[str, Node],
        values: Optional[Mapping[str, float]] = None,
        rng: Optional[np.random.Generator] = None,
        *,
        record: bool = False,
    ) -> None:
        self.table = table
        self.values: dict[str, float] = dict(values or {})
        self.requested: Optional[set[str]] = set() if record else None
        self.evaluate = Evaluator(self, rng)

    def __call__(self, name: str) -> float:
        if self.requested is not None:
            self.requested.add(name)
        if name in self.values:
            return self.values[name]
        node = self.table.get(name)
        if node is None:
            raise EvaluationError(f"Unknown variable: {name}")
        return self.evaluate(node)


def _split_assignment(node: Node) -> tuple[str, Node]:
    if not calls(node, "=", 2) or not isinstance(node.args[0], Identifier):
        raise FormatError(f"Expected 'name = value' in the variable list, got: {node}")
    target, value = node.args
    return target.name, value


def _find_cycle(entries: Mapping[str, Node]) -> Optional[tuple[str, ...]]:
    """Return one dependency cycle among ``entries`` (or None)."""
    deps = {name: sorted(free_identifiers(expr) & entries.keys()) for name, expr in entries.items()}
    state: dict[str, int] = {}  # 1 = on the current path, 2 = done
    path: list[str] = []

    def visit(name: str) -> Optional[tuple[str, ...]]:
        state[name] = 1
        path.append(name)
        for dep in deps[name]:
            mark = state.get(dep)
            if mark == 1:
                return tuple(path[path.index(dep):]) + (dep,)
            if mark is None:
                found = visit(dep)
                if found:
                    return found
        path.pop()
        state[name] = 2
        return None

    for name in entries:
        if name not in state:
            found = visit(name)
            if found:
                return found
    return None


def _constant_names(entries: Mapping[str, Node]) -> set[str]:
    """Names whose value depends on neither x/y nor an unknown identifier."""
    memo: dict[str, bool] = {}

    def is_constant(name: str) -> bool:
        if name not in memo:
            refs = free_identifiers(entries[name])
            memo[name] = all(
                ref not in INJECTED_NAMES and ref in entries and is_constant(ref) for ref in refs
            )
        return memo[name]

    return {name for name in entries if is_constant(name)}


def build_variable_table(
    assignments: Iterable[Node],
    rng: Optional[np.random.Generator] = None,
) -> VariableTable:
    """Build a :class:`VariableTable` from parsed ``name = expr`` statements.

    Parameters
    ----------
    assignments : iterable of Node
        Parsed statements, in source order. A later definition of a name
        replaces an earlier one.
    rng : numpy.random.Generator, optional
        Generator used while pre-evaluating constant entries.

    Returns
    -------
    VariableTable

    Raises
    ------
    FormatError
        If a statement is not an assignment to a plain identifier.
    CyclicDefinitionError
        If entries reference each other in a loop.
    """
    entries: dict[str, Node] = {}
    for node in assignments:
        name, value = _split_assignment(node)
        entries[name] = value

    cycle = _find_cycle(entries)
    if cycle is not None:
        raise CyclicDefinitionError(cycle)

    constants = _constant_names(entries)
    if constants:
        folded = dict(entries)
        # The resolver reads ``folded``, so later entries see earlier folds.
        resolver = Resolver(folded, rng=rng)
        with np.errstate(all="ignore"):
            for name in entries:
                if name in constants and not isinstance(entries[name], Literal):
                    try:
                        folded[name] = Literal(float(resolver(name)))
                    except EvaluationError as exc:
                        # Left lazy; the error resurfaces only if ``name`` is used.
                        logger.debug("Kept %s unevaluated: %s", name, exc)
        entries = folded
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Pre-evaluated %d constant variable(s): %s", len(constants), sorted(constants))
    return VariableTable(entries)


def is_two_variable(expr: Node, table: Mapping[str, Node]) -> bool:
    """Classify ``expr`` as a two-variable field or equation.

    Assignments and equalities (``=``/``==`` at the root) are always
    two-variable. Otherwise ``expr`` is evaluated once at ``x = y = 0`` and
    classified as two-variable iff the lookup was asked for ``y``. The dry
    run uses its own generator so that sampling draws are unaffected.
    """
    if isinstance(expr, Call) and expr.name in ("=", "==") and len(expr.args) == 2:
        return True
    resolver = Resolver(table, {"x": 0.0, "y": 0.0}, np.random.default_rng(0), record=True)
    try:
        with np.errstate(all="ignore"):
            resolver.evaluate(expr)
    except EvaluationError as exc:
        logger.debug("Dry run of %s failed during classification: %s", expr, exc)
    return "y" in resolver.requested
