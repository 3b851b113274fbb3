"""Pens built from statement attributes.

An identifier attribute is tried as a colour name first and as a dash style
second (``@red``, ``@dot``, ``@Transparent``). For formulas, a numeric
attribute sets the line width (``@3``).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from PIL import ImageColor

from .defaults import AXIS_COLOR, DASH_PATTERNS, GRID_LINE_ALPHA, SERIES_COLORS
from .expression import Identifier, Literal, Node

__all__ = ["Pen", "make_pen", "resolve_color", "series_color"]

RGBA = tuple[int, int, int, int]


@dataclass(frozen=True)
class Pen:
    """Line colour, width and dash style."""

    color: RGBA
    width: float = 1.0
    dash: str = "solid"

    @property
    def rgb(self) -> tuple[int, int, int]:
        return self.color[:3]

    @property
    def transparent(self) -> bool:
        return self.color[3] == 0

    def with_alpha(self, alpha: int) -> "Pen":
        return replace(self, color=(*self.rgb, alpha))

    def grid_pen(self) -> "Pen":
        """Thin translucent companion pen used for grid lines."""
        return Pen((*self.rgb, GRID_LINE_ALPHA * self.color[3] // 255), 1.0, self.dash)

    def dash_pattern(self) -> tuple[float, ...]:
        """On/off segment lengths in pixels; empty for solid lines."""
        return tuple(n * max(self.width, 1.0) for n in DASH_PATTERNS[self.dash])


def resolve_color(name: str) -> Optional[RGBA]:
    """Return the RGBA value of a colour name, or None if it is not a colour."""
    if name.lower() == "transparent":
        return (0, 0, 0, 0)
    try:
        rgb = ImageColor.getrgb(name)
    except ValueError:
        return None
    if len(rgb) == 3:
        return (*rgb, 255)
    return tuple(rgb)


def series_color(index: int) -> RGBA:
    return resolve_color(SERIES_COLORS[index % len(SERIES_COLORS)])


def make_pen(node: Optional[Node] = None, series_index: int = -1) -> Pen:
    """Build the pen for a formula (``series_index >= 0``) or an axis (``-1``).

    Parameters
    ----------
    node : Node or None
        Statement root whose attributes are inspected.
    series_index : int
        Position of the formula in the formula list, or -1 for axis pens.

    Returns
    -------
    Pen
        Width defaults to ``(series_index + 1) % 3 + 1``; the colour
        defaults to the cycling series colour (or the axis colour).
    """
    width = float((series_index + 1) % 3 + 1)
    color = series_color(series_index) if series_index > -1 else resolve_color(AXIS_COLOR)
    dash = "solid"
    attrs = node.attrs if node is not None else ()

    for attr in attrs:
        if not isinstance(attr, Identifier):
            continue
        as_color = resolve_color(attr.name)
        if as_color is not None:
            color = as_color
        elif attr.name.lower() in DASH_PATTERNS:
            dash = attr.name.lower()

    if series_index > -1:
        for attr in attrs:
            if isinstance(attr, Literal) and not isinstance(attr.value, str):
                width = float(int(attr.value))

    return Pen(color, width, dash)
