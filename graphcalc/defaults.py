"""Configuration constants and render settings.

Colour names are resolved with :func:`PIL.ImageColor.getrgb`, so any CSS
colour name (case-insensitive), ``#rrggbb`` or ``rgb()`` string is accepted
wherever a colour is configured.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

#: Constants prepended to every variable list.
PRELUDE: str = f"pi={math.pi!r};tau={math.tau!r};e={math.e!r};phi=1.6180339887498948"

#: Colours assigned to formulas in order, cycling.
SERIES_COLORS: tuple[str, ...] = (
    "darkgreen",
    "teal",
    "mediumblue",
    "mediumpurple",
    "deeppink",
    "orange",
    "brown",
    "black",
    "lawngreen",
    "darkturquoise",
    "dodgerblue",
    "fuchsia",
    "red",
    "salmon",
    "peachpuff",
)

#: Heat-map bands, low to high; adjacent bands are blended in HEAT_STEPS steps.
HEAT_BANDS: tuple[str, ...] = (
    "orange",
    "red",
    "fuchsia",
    "royalblue",
    "white",
    "goldenrod",
    "lime",
    "blue",
    "black",
)
HEAT_STEPS: int = 16

AXIS_COLOR: str = "midnightblue"
NAN_COLOR: tuple[int, int, int] = (169, 169, 169)
INFINITY_COLOR: tuple[int, int, int] = (128, 0, 128)
BACKGROUND_COLOR: tuple[int, int, int] = (255, 255, 255)

#: Dash patterns in units of the pen width (on, off, on, off, ...).
DASH_PATTERNS: dict[str, tuple[int, ...]] = {
    "solid": (),
    "dash": (3, 1),
    "dot": (1, 1),
    "dashdot": (3, 1, 1, 1),
    "dashdotdot": (3, 1, 1, 1, 1, 1),
}

#: Alpha of grid lines relative to their axis pen.
GRID_LINE_ALPHA: int = 128

DEFAULT_ROUGH_LINE_COUNT: int = 20
DEFAULT_RANGE: tuple[float, float] = (-1.0, 1.0)
#: Seed for y auto-ranging of frames that only contain functions of x.
Y_AUTO_RANGE_SEED: tuple[float, float] = (-0.5, 1.0)
#: Polyline vertices are clamped to this many pixels above/below the raster.
MAX_PIXEL_OFFSET: float = 1e7


@dataclass(frozen=True)
class RenderSettings:
    """Tunable rendering parameters passed explicitly to the renderer.

    Parameters
    ----------
    font_size : float
        Label font size in pixels.
    font_path : str or None
        TrueType font file; ``None`` uses Pillow's bundled default font.
    label_box_alpha : int
        Alpha of the white box behind labels.
    max_ticks : int
        Upper bound on grid lines per axis, guarding against degenerate
        intervals.
    """

    font_size: float = 13.0
    font_path: str | None = None
    label_box_alpha: int = 128
    max_ticks: int = 1000


DEFAULT_RENDER_SETTINGS = RenderSettings()

__all__ = [
    "AXIS_COLOR",
    "BACKGROUND_COLOR",
    "DASH_PATTERNS",
    "DEFAULT_RANGE",
    "DEFAULT_RENDER_SETTINGS",
    "DEFAULT_ROUGH_LINE_COUNT",
    "GRID_LINE_ALPHA",
    "HEAT_BANDS",
    "HEAT_STEPS",
    "INFINITY_COLOR",
    "MAX_PIXEL_OFFSET",
    "NAN_COLOR",
    "PRELUDE",
    "RenderSettings",
    "SERIES_COLORS",
    "Y_AUTO_RANGE_SEED",
]
