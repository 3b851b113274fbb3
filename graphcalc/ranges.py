"""Axis ranges: pixel/value mapping, pan and zoom, and range-text decoding.

A :class:`Range` maps ``px_count`` pixels onto ``[lo, hi]``. Degenerate
ranges (``lo == hi`` or zero pixels) are representable; mapping through them
yields NaN or infinity instead of raising.

A :class:`GraphRange` adds what the renderer needs to draw an axis: pens,
label, tick density and whether the bounds should be detected from data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional, Union

import numpy as np

from .defaults import DEFAULT_RANGE, DEFAULT_ROUGH_LINE_COUNT
from .errors import FormatError
from .evaluator import evaluate
from .expression import Identifier, Literal, Node, calls, with_attrs
from .pens import Pen, make_pen
from .variables import Resolver

__all__ = [
    "GraphRange",
    "Range",
    "decode_graph_range",
    "format_ranges",
    "pan",
    "zoom",
]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

ArrayLike = Union[float, np.ndarray]


def _ratio(num: ArrayLike, den: ArrayLike) -> ArrayLike:
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.true_divide(num, den)


@dataclass(frozen=True)
class Range:
    """Linear map between ``px_count`` pixels and the interval ``[lo, hi]``."""

    lo: float
    hi: float
    px_count: int

    @property
    def step_size(self) -> float:
        return (self.hi - self.lo) / max(self.px_count - 1, 1)

    def value_to_px(self, value: ArrayLike) -> ArrayLike:
        """Return the (fractional) pixel position of ``value``; arrays allowed."""
        return _ratio(np.subtract(value, self.lo), np.float64(self.hi - self.lo)) * self.px_count

    def px_to_value(self, px: ArrayLike) -> ArrayLike:
        return _ratio(px, np.float64(self.px_count)) * (self.hi - self.lo) + self.lo

    def px_to_delta(self, delta_px: ArrayLike) -> ArrayLike:
        return _ratio(delta_px, np.float64(self.px_count)) * (self.hi - self.lo)

    def dragged_by(self, delta_px: float) -> "Range":
        """Shift both bounds so content follows a drag of ``delta_px`` pixels."""
        delta = float(self.px_to_delta(delta_px))
        return Range(self.lo - delta, self.hi - delta, self.px_count)

    def zoomed_by(self, ratio: float) -> "Range":
        """Scale the span by ``ratio`` around the midpoint (``ratio < 1`` zooms in)."""
        mid = (self.hi + self.lo) / 2
        half_span = (self.hi - self.lo) * ratio / 2
        return Range(mid - half_span, mid + half_span, self.px_count)


@dataclass
class GraphRange:
    """A :class:`Range` plus the metadata used to draw its axis.

    The bounds are mutable so that auto-ranging can replace them once data is
    available; :attr:`span` always holds the current :class:`Range`.
    """

    span: Range
    axis_pen: Pen = field(default_factory=make_pen)
    label: str = ""
    auto_range: bool = False
    rough_line_count: int = DEFAULT_ROUGH_LINE_COUNT
    source_text: str = ""
    line_pen: Pen = field(init=False)

    def __post_init__(self) -> None:
        self.line_pen = self.axis_pen.grid_pen()

    @classmethod
    def create(cls, lo: float, hi: float, px_count: int, **kwargs) -> "GraphRange":
        """Build a range; ``auto_range`` defaults to ``lo >= hi``."""
        kwargs.setdefault("auto_range", lo >= hi)
        return cls(Range(float(lo), float(hi), int(px_count)), **kwargs)

    @property
    def lo(self) -> float:
        return self.span.lo

    @property
    def hi(self) -> float:
        return self.span.hi

    @property
    def px_count(self) -> int:
        return self.span.px_count

    def set_bounds(self, lo: float, hi: float) -> None:
        self.span = replace(self.span, lo=float(lo), hi=float(hi))

    def set_px_count(self, px_count: int) -> None:
        self.span = replace(self.span, px_count=int(px_count))

    def value_to_px(self, value: ArrayLike) -> ArrayLike:
        return self.span.value_to_px(value)

    def px_to_value(self, px: ArrayLike) -> ArrayLike:
        return self.span.px_to_value(px)


def decode_graph_range(
    axis: str,
    node: Optional[Node],
    px_count: int,
    table: Mapping[str, Node],
    source_text: Optional[str] = None,
) -> GraphRange:
    """Decode one range statement into a :class:`GraphRange`.

    Parameters
    ----------
    axis : str
        Axis name (``"x"``, ``"y"`` or ``"z"``); a matching ``axis:`` prefix
        on the statement is ignored, case-insensitively.
    node : Node or None
        Parsed range statement. ``None`` yields ``-1..1`` flagged for
        auto-ranging.
    px_count : int
        Pixels along the axis.
    table : mapping
        Variable table used to evaluate the bounds.
    source_text : str, optional
        Statement text kept for writing the range back after pan/zoom;
        defaults to the unparsed ``node``.

    Raises
    ------
    FormatError
        If the statement is not ``lo..hi`` or ``lo - hi``.
    EvaluationError
        If a bound references an unknown name.
    """
    if node is None:
        return GraphRange.create(*DEFAULT_RANGE, px_count, auto_range=True)
    if source_text is None:
        source_text = str(node)

    if calls(node, ":", 2) and isinstance(node.args[0], Identifier) and node.args[0].name.lower() == axis.lower():
        inner = node.args[1]
        node = inner if inner.attrs or not node.attrs else with_attrs(inner, node.attrs)

    if not (calls(node, "..", 2) or calls(node, "-", 2)):
        raise FormatError(f"Invalid range for {axis}: {node}")

    lookup = Resolver(table)
    lo = evaluate(node.args[0], lookup)
    hi = evaluate(node.args[1], lookup)

    label = next((a.value for a in node.attrs if isinstance(a, Literal) and isinstance(a.value, str)), "")
    result = GraphRange.create(
        lo, hi, px_count, axis_pen=make_pen(node), label=label, source_text=source_text
    )
    for attr in node.attrs:
        if isinstance(attr, Literal) and not isinstance(attr.value, str) and float(attr.value).is_integer():
            result.rough_line_count = int(attr.value)

    logger.debug("Decoded %s range %s -> [%g, %g] over %d px", axis, node, lo, hi, px_count)
    return result


def pan(dx_px: float, dy_px: float, x_range: Range, y_range: Range) -> tuple[Range, Range]:
    """Return ranges dragged by a mouse movement; screen y grows downward."""
    return x_range.dragged_by(dx_px), y_range.dragged_by(-dy_px)


def zoom(ratio: float, x_range: Range, y_range: Range) -> tuple[Range, Range]:
    return x_range.zoomed_by(ratio), y_range.zoomed_by(ratio)


def format_ranges(x_range: Range, y_range: Range, z_text: str = "") -> str:
    """Render ranges back into range-field text, keeping the z text verbatim."""
    return f"{x_range.lo:.8g}..{x_range.hi:.8g}; {y_range.lo:.8g}..{y_range.hi:.8g}; {z_text}"
