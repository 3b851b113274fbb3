"""Rendering primitives: heat map, filled regions, contours, grid and series.

Sample arrays are indexed with y growing upward (row 0 is the bottom of the
viewport); raster rows grow downward, so every pixel write flips rows
(``row = height - 1 - y``).

Pure helpers (:func:`heat_palette`, :func:`contour_bins`,
:func:`contour_mask`, :func:`finite_runs`, :func:`dash_segments`) carry the
numeric rules and are tested on their own; the ``draw_*`` / ``render_*``
functions apply them to a :class:`~graphcalc.raster.Raster`.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Iterator, Sequence

import numpy as np
from PIL import ImageDraw, ImageFont

from .defaults import (
    DEFAULT_RENDER_SETTINGS,
    HEAT_BANDS,
    HEAT_STEPS,
    INFINITY_COLOR,
    MAX_PIXEL_OFFSET,
    NAN_COLOR,
    RenderSettings,
)
from .grid_spacing import choose_grid_spacing, tick_values
from .pens import Pen, resolve_color
from .ranges import GraphRange, Range
from .raster import Raster

__all__ = [
    "contour_bins",
    "contour_mask",
    "dash_segments",
    "draw_grid_lines",
    "draw_series",
    "draw_text",
    "finite_runs",
    "heat_colors",
    "heat_palette",
    "load_font",
    "render_boolean",
    "render_contours",
    "render_heat_map",
]

BIN_BELOW = -2
BIN_ABOVE = 127
BIN_NAN = -3

Point = tuple[float, float]


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def heat_palette() -> np.ndarray:
    """Return the ``(N, 3)`` uint8 heat-map palette, low values first.

    Each adjacent pair of bands is blended in ``HEAT_STEPS`` integer steps,
    ``(lo*(16-i) + hi*i) >> 4``, so the palette holds
    ``(len(HEAT_BANDS) - 1) * HEAT_STEPS`` entries.
    """
    bands = [np.array(resolve_color(name)[:3], dtype=np.int64) for name in HEAT_BANDS]
    steps = np.arange(HEAT_STEPS, dtype=np.int64)[:, None]
    blocks = [
        (lo * (HEAT_STEPS - steps) + hi * steps) >> 4
        for lo, hi in zip(bands[:-1], bands[1:])
    ]
    palette = np.concatenate(blocks).astype(np.uint8)
    palette.flags.writeable = False
    return palette


def heat_colors(data: np.ndarray, z_range: Range) -> np.ndarray:
    """Map values to palette colours through ``z_range``; returns ``(..., 3)`` uint8.

    NaN positions (including those produced by a degenerate range) map to
    dark grey and infinite positions to purple.
    """
    palette = heat_palette()
    scale = Range(z_range.lo, z_range.hi, len(palette))
    with np.errstate(all="ignore"):
        index = np.asarray(scale.value_to_px(np.asarray(data, dtype=np.float64)))
        nan = np.isnan(index)
        inf = np.isinf(index)
        safe = np.where(nan | inf, 0.0, index)
        clipped = np.clip(np.trunc(safe), 0, len(palette) - 1).astype(np.intp)
    colors = palette[clipped]
    colors[nan] = NAN_COLOR
    colors[inf] = INFINITY_COLOR
    return colors


def contour_bins(
    data: np.ndarray,
    z_lo: float,
    z_hi: float,
    aligned_lo: float,
    interval: float,
) -> np.ndarray:
    """Assign every value to a contour band.

    Values below ``z_lo`` get ``BIN_BELOW``, values at or above ``z_hi`` get
    ``BIN_ABOVE`` and NaN gets ``BIN_NAN``; everything else gets
    ``floor((value - aligned_lo) / interval)``.
    """
    data = np.asarray(data, dtype=np.float64)
    with np.errstate(all="ignore"):
        bands = np.floor((data - aligned_lo) / interval)
        bands = np.where(np.isfinite(bands), bands, 0).astype(np.int64)
    bins = np.where(data < z_lo, BIN_BELOW, np.where(data >= z_hi, BIN_ABOVE, bands))
    bins[np.isnan(data)] = BIN_NAN
    return bins


def contour_mask(bins: np.ndarray) -> np.ndarray:
    """Mark cells whose band differs from the right or next-row neighbour.

    The last row and column have no neighbours and are never marked.
    """
    mask = np.zeros(bins.shape, dtype=bool)
    if bins.shape[0] < 2 or bins.shape[1] < 2:
        return mask
    here = bins[:-1, :-1]
    mask[:-1, :-1] = (here != bins[:-1, 1:]) | (here != bins[1:, :-1])
    return mask


def finite_runs(values: Sequence[float] | np.ndarray) -> list[tuple[int, int]]:
    """Return ``(start, stop)`` index pairs of maximal runs of finite values."""
    finite = np.isfinite(np.asarray(values, dtype=np.float64))
    if finite.size == 0:
        return []
    edges = np.diff(np.concatenate(([0], finite.astype(np.int8), [0])))
    starts = np.flatnonzero(edges == 1)
    stops = np.flatnonzero(edges == -1)
    return [(int(a), int(b)) for a, b in zip(starts, stops)]


def dash_segments(points: Sequence[Point], pattern: Sequence[float]) -> Iterator[list[Point]]:
    """Split a polyline into the "on" pieces of a dash pattern.

    ``pattern`` alternates on/off lengths in pixels; an empty pattern yields
    the polyline unchanged. The pattern phase carries across vertices.
    """
    if not pattern:
        yield list(points)
        return

    index = 0
    remaining = float(pattern[0])
    current: list[Point] | None = [points[0]] if points else None
    for (x0, y0), (x1, y1) in zip(points[:-1], points[1:]):
        length = float(np.hypot(x1 - x0, y1 - y0))
        pos = 0.0
        while length - pos > remaining:
            pos += remaining
            t = pos / length
            cut = (x0 + (x1 - x0) * t, y0 + (y1 - y0) * t)
            if current is not None:
                current.append(cut)
                yield current
                current = None
            else:
                current = [cut]
            index = (index + 1) % len(pattern)
            remaining = float(pattern[index])
        remaining -= length - pos
        if current is not None:
            current.append((x1, y1))
    if current is not None and len(current) > 1:
        yield current


# ---------------------------------------------------------------------------
# Raster drawing
# ---------------------------------------------------------------------------


@lru_cache(maxsize=8)
def load_font(size: float, path: str | None = None) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
    if path is not None:
        return ImageFont.truetype(path, size)
    return ImageFont.load_default(size=size)


def _flip(values: np.ndarray, height: int) -> np.ndarray:
    return values[:height][::-1]


def render_heat_map(raster: Raster, data: np.ndarray, z_range: Range) -> None:
    """Paint every cell of ``data`` with its heat colour."""
    h, w = min(raster.height, data.shape[0]), min(raster.width, data.shape[1])
    colors = heat_colors(data[:h, :w], z_range)
    raster.pixels[raster.height - h:, :w, :3] = colors[::-1]


def render_boolean(raster: Raster, data: np.ndarray, color: Sequence[int]) -> None:
    """Fill nonzero cells with ``color``; NaN cells get a muted version of it."""
    rgb = np.array(color[:3], dtype=np.int64)
    muted = (rgb // 2 + 64).astype(np.uint8)
    h, w = min(raster.height, data.shape[0]), min(raster.width, data.shape[1])
    cells = _flip(np.asarray(data)[:, :w], h)
    target = raster.pixels[raster.height - h:, :w, :3]
    target[cells != 0] = rgb.astype(np.uint8)
    target[np.isnan(cells)] = muted


def render_contours(raster: Raster, data: np.ndarray, pen: Pen, z_range: Range, aligned_lo: float, interval: float) -> None:
    """Draw contour pixels for a scalar field; a transparent pen draws nothing."""
    if pen.transparent:
        return
    bins = contour_bins(data, z_range.lo, z_range.hi, aligned_lo, interval)
    mask = contour_mask(bins)
    h, w = min(raster.height, mask.shape[0]), min(raster.width, mask.shape[1])
    flipped = _flip(mask[:, :w], h)
    raster.pixels[raster.height - h:, :w, :3][flipped] = pen.rgb


def draw_text(
    draw: ImageDraw.ImageDraw,
    text: str,
    x: float,
    y: float,
    color: Sequence[int],
    font: ImageFont.ImageFont | ImageFont.FreeTypeFont,
    h_align: str = "left",
    v_align: str = "top",
    box_alpha: int = 128,
) -> tuple[float, float]:
    """Draw haloed text on a translucent white box and return its size.

    ``h_align`` is ``"left"``, ``"center"`` or ``"right"``; ``v_align`` is
    ``"top"``, ``"center"`` or ``"bottom"``; ``(x, y)`` is the anchor point.
    """
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    width, height = right - left, bottom - top
    x = x - {"left": 0, "center": width / 2, "right": width}[h_align]
    y = y - {"top": 0, "center": height / 2, "bottom": height}[v_align]
    draw.rectangle([x, y, x + width, y + height], fill=(255, 255, 255, box_alpha))
    origin_x, origin_y = x - left, y - top
    for dx, dy in ((-1, 0), (1, 0), (0, -1), (0, 1)):
        draw.text((origin_x + dx, origin_y + dy), text, font=font, fill=(255, 255, 255, 255))
    draw.text((origin_x, origin_y), text, font=font, fill=(*color[:3], 255))
    return width, height


def _line(draw: ImageDraw.ImageDraw, points: Sequence[Point], pen: Pen) -> None:
    if pen.transparent:
        return
    width = max(int(round(pen.width)), 1)
    for piece in dash_segments(points, pen.dash_pattern()):
        if len(piece) > 1:
            draw.line(piece, fill=pen.color, width=width, joint="curve")


def draw_series(draw: ImageDraw.ImageDraw, data: np.ndarray, y_range: Range, height: int, pen: Pen) -> None:
    """Draw a function of x as polylines over its finite runs."""
    if data.size == 0 or not y_range.lo < y_range.hi or pen.transparent:
        return
    with np.errstate(all="ignore"):
        ys = height - 1 - np.asarray(y_range.value_to_px(data), dtype=np.float64)
    ys = np.where(np.isfinite(ys), np.clip(ys, -MAX_PIXEL_OFFSET, MAX_PIXEL_OFFSET), ys)
    radius = max(pen.width / 2, 0.5)
    for start, stop in finite_runs(ys):
        if stop - start == 1:
            x, y = float(start), float(ys[start])
            draw.ellipse([x - radius, y - radius, x + radius, y + radius], fill=pen.color)
        else:
            _line(draw, [(float(i), float(ys[i])) for i in range(start, stop)], pen)


def draw_grid_lines(
    draw: ImageDraw.ImageDraw,
    x_range: GraphRange,
    y_range: GraphRange,
    size: tuple[int, int],
    settings: RenderSettings = DEFAULT_RENDER_SETTINGS,
) -> None:
    """Draw grid lines, zero axes, numeric tick labels and axis labels."""
    width, height = size
    font = load_font(settings.font_size, settings.font_path)

    x_interval, x_lo = choose_grid_spacing(x_range.lo, x_range.hi, x_range.rough_line_count)
    x_ticks = tick_values(x_lo, x_range.hi, x_interval, settings.max_ticks)
    y_interval, y_lo = choose_grid_spacing(y_range.lo, y_range.hi, y_range.rough_line_count)
    y_ticks = tick_values(y_lo, y_range.hi, y_interval, settings.max_ticks)

    for value in x_ticks:
        px = float(x_range.value_to_px(value))
        _line(draw, [(px, 0), (px, height)], x_range.line_pen)
    if x_range.lo <= 0 <= x_range.hi:
        px = float(x_range.value_to_px(0.0))
        _line(draw, [(px, 0), (px, height)], x_range.axis_pen)

    for value in y_ticks:
        py = height - 1 - float(y_range.value_to_px(value))
        _line(draw, [(0, py), (width, py)], y_range.line_pen)
    if y_range.lo <= 0 <= y_range.hi:
        py = height - 1 - float(y_range.value_to_px(0.0))
        _line(draw, [(0, py), (width, py)], y_range.axis_pen)

    last_px, last_width = -1000.0, 0.0
    for value in x_ticks:
        px = float(x_range.value_to_px(value))
        if px > 20 and px - last_px > last_width:
            last_width, _ = draw_text(
                draw, f"{value:.7g}", px, height - 4, x_range.axis_pen.rgb, font,
                "center", "bottom", settings.label_box_alpha,
            )
            last_px = px

    for value in y_ticks:
        py = height - 1 - float(y_range.value_to_px(value))
        if 10 < py < height - 40:
            draw_text(
                draw, f"{value:.7g}", 4, py, y_range.axis_pen.rgb, font,
                "left", "center", settings.label_box_alpha,
            )

    if x_range.label:
        draw_text(draw, x_range.label, width - 4, height - 24, x_range.axis_pen.rgb, font,
                  "right", "bottom", settings.label_box_alpha)
    if y_range.label:
        draw_text(draw, y_range.label, 4, 4, y_range.axis_pen.rgb, font,
                  "left", "top", settings.label_box_alpha)
