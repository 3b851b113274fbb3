"""Sampling of one expression over one or two axis ranges.

A calculator is one of two dataclasses:

- :class:`OneVariableCalculator` samples ``f(x)`` at every x pixel into a
  1-D array.
- :class:`TwoVariableCalculator` samples ``f(x, y)`` over the pixel grid into
  a 2-D array indexed ``[row=y, col=x]``. Equations ``L = R`` / ``L == R``
  are rewritten to ``L - R`` and sampled at pixel corners; each cell is then
  1.0 where the curve passes through it.

Calculators are single-use: :meth:`run` fills ``results`` once and freezes
the array; sampling a moved viewport needs a new calculator.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Mapping, Optional, Union

import numpy as np

from .expression import Call, Node
from .ranges import Range
from .variables import Resolver, is_two_variable

__all__ = [
    "Calculator",
    "OneVariableCalculator",
    "TwoVariableCalculator",
    "make_calculator",
    "run_calculators",
]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

#: Root operators whose value is a truth value (rendered as a filled region).
BOOLEAN_OPERATORS = frozenset({">", "<", ">=", "<=", "!=", "&&", "||", "^^", "!", "in"})


def _already_run(calc: object) -> RuntimeError:
    return RuntimeError(f"{type(calc).__name__} has already run; create a new one to sample again.")


def _freeze(values: np.ndarray) -> np.ndarray:
    values.flags.writeable = False
    return values


@dataclass(eq=False)
class OneVariableCalculator:
    """Samples ``expr`` at ``x = lo + i*step`` for every x pixel."""

    expr: Node
    table: Mapping[str, Node]
    x_range: Range
    rng: Optional[np.random.Generator] = None
    results: Optional[np.ndarray] = field(default=None, init=False)

    @property
    def has_run(self) -> bool:
        return self.results is not None

    def run(self) -> np.ndarray:
        if self.results is not None:
            raise _already_run(self)
        lo, step = self.x_range.lo, self.x_range.step_size
        out = np.empty(self.x_range.px_count, dtype=np.float64)
        resolver = Resolver(self.table, {"x": lo}, self.rng)
        with np.errstate(all="ignore"):
            for i in range(out.size):
                resolver.values["x"] = lo + i * step
                out[i] = resolver.evaluate(self.expr)
        self.results = _freeze(out)
        return self.results

    def get_value_at(self, px: int, py: int) -> Optional[float]:
        """Sample under pixel column ``px``; None when unavailable."""
        if self.results is None or not 0 <= px < self.results.shape[0]:
            return None
        return float(self.results[px])


@dataclass(eq=False)
class TwoVariableCalculator:
    """Samples ``expr`` over the x/y pixel grid.

    Attributes
    ----------
    equation_mode : bool
        True for equations and truth-valued expressions, whose results are
        drawn as filled regions; False for scalar fields, which are drawn as
        a heat map with contour lines.
    """

    expr: Node
    table: Mapping[str, Node]
    x_range: Range
    y_range: Range
    rng: Optional[np.random.Generator] = None
    equation_mode: bool = field(default=False, init=False)
    results: Optional[np.ndarray] = field(default=None, init=False)
    _sampled: Node = field(init=False, repr=False)
    _corners: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        expr = self.expr
        if isinstance(expr, Call) and expr.name in ("=", "==") and len(expr.args) == 2:
            self._sampled = Call("-", expr.args)
            self._corners = True
            self.equation_mode = True
        else:
            self._sampled = expr
            self.equation_mode = isinstance(expr, Call) and expr.name in BOOLEAN_OPERATORS

    @property
    def has_run(self) -> bool:
        return self.results is not None

    def run(self) -> np.ndarray:
        if self.results is not None:
            raise _already_run(self)
        nx, ny = self.x_range.px_count, self.y_range.px_count
        if self._corners:
            corners = self._sample(nx + 1, ny + 1, half_step=True)
            out = _crossing_cells(corners)
        else:
            out = self._sample(nx, ny, half_step=False)
        self.results = _freeze(out)
        return self.results

    def _sample(self, cols: int, rows: int, *, half_step: bool) -> np.ndarray:
        x_step, y_step = self.x_range.step_size, self.y_range.step_size
        x0, y0 = self.x_range.lo, self.y_range.lo
        if half_step:
            x0 -= x_step / 2
            y0 -= y_step / 2
        out = np.empty((rows, cols), dtype=np.float64)
        resolver = Resolver(self.table, {"x": x0, "y": y0}, self.rng)
        values = resolver.values
        with np.errstate(all="ignore"):
            for row in range(rows):
                values["y"] = y0 + row * y_step
                for col in range(cols):
                    values["x"] = x0 + col * x_step
                    out[row, col] = resolver.evaluate(self._sampled)
        return out

    def get_value_at(self, px: int, py: int) -> Optional[float]:
        """Cell value at pixel ``(px, py)`` (py counted upward); None outside."""
        if self.results is None:
            return None
        rows, cols = self.results.shape
        if not (0 <= px < cols and 0 <= py < rows):
            return None
        return float(self.results[py, px])


Calculator = Union[OneVariableCalculator, TwoVariableCalculator]


def _crossing_cells(corners: np.ndarray) -> np.ndarray:
    """Mark cells whose corner values straddle or touch zero.

    NaN corners are ignored; a cell with four NaN corners is NaN.
    """
    stack = np.stack(
        [corners[:-1, :-1], corners[:-1, 1:], corners[1:, :-1], corners[1:, 1:]]
    )
    with np.errstate(invalid="ignore"):
        low = np.fmin.reduce(stack, axis=0)
        high = np.fmax.reduce(stack, axis=0)
        cells = ((low <= 0) & (high >= 0)).astype(np.float64)
    cells[np.isnan(stack).all(axis=0)] = np.nan
    return cells


def make_calculator(
    expr: Node,
    table: Mapping[str, Node],
    x_range: Range,
    y_range: Range,
    rng: Optional[np.random.Generator] = None,
) -> Calculator:
    """Classify ``expr`` and build the matching calculator (not yet run)."""
    if is_two_variable(expr, table):
        calc: Calculator = TwoVariableCalculator(expr, table, x_range, y_range, rng)
    else:
        calc = OneVariableCalculator(expr, table, x_range, rng)
    logger.debug("Formula %s -> %s", expr, type(calc).__name__)
    return calc


def run_calculators(calcs: list[Calculator]) -> None:
    """Run every calculator in order, logging the sampling time."""
    started = time.perf_counter()
    for calc in calcs:
        if not isinstance(calc, (OneVariableCalculator, TwoVariableCalculator)):
            raise TypeError(f"Unsupported calculator type: {type(calc).__name__}")
        calc.run()
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Sampled %d formula(s) in %.1f ms", len(calcs), (time.perf_counter() - started) * 1e3)
