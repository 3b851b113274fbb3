from __future__ import annotations

import numpy as np
import pytest

from graphcalc.defaults import INFINITY_COLOR, NAN_COLOR
from graphcalc.pens import Pen, resolve_color
from graphcalc.ranges import GraphRange, Range
from graphcalc.raster import Raster
from graphcalc.renderer import (
    BIN_ABOVE,
    BIN_BELOW,
    BIN_NAN,
    contour_bins,
    contour_mask,
    dash_segments,
    draw_grid_lines,
    draw_series,
    draw_text,
    finite_runs,
    heat_colors,
    heat_palette,
    load_font,
    render_boolean,
    render_contours,
    render_heat_map,
)

RED = Pen((255, 0, 0, 255), 1.0)
WHITE = (255, 255, 255)


def test_heat_palette_blends_named_bands() -> None:
    palette = heat_palette()
    assert palette.shape == (128, 3)
    assert palette.dtype == np.uint8
    assert tuple(palette[0]) == (255, 165, 0)
    assert tuple(palette[1]) == (255, 154, 0)
    assert tuple(palette[16]) == (255, 0, 0)
    assert tuple(palette[64]) == (255, 255, 255)
    assert tuple(palette[127]) == (0, 0, 15)
    assert not palette.flags.writeable


def test_heat_colors_handles_non_finite_values() -> None:
    data = np.array([np.nan, np.inf, -np.inf, 0.0, 10.0, 20.0, -5.0])
    colors = heat_colors(data, Range(0.0, 10.0, 0))
    palette = heat_palette()
    assert tuple(colors[0]) == NAN_COLOR
    assert tuple(colors[1]) == INFINITY_COLOR
    assert tuple(colors[2]) == INFINITY_COLOR
    assert tuple(colors[3]) == tuple(palette[0])
    assert tuple(colors[4]) == tuple(palette[127])
    assert tuple(colors[5]) == tuple(palette[127])
    assert tuple(colors[6]) == tuple(palette[0])


def test_heat_colors_with_degenerate_range() -> None:
    colors = heat_colors(np.array([5.0, 6.0]), Range(5.0, 5.0, 0))
    assert tuple(colors[0]) == NAN_COLOR
    assert tuple(colors[1]) == INFINITY_COLOR


def test_contour_bins_sentinels() -> None:
    bins = contour_bins(np.array([[-1.0, np.nan, 10.0, 11.0, 3.0]]), 0.0, 10.0, 0.0, 2.0)
    assert bins.tolist() == [[BIN_BELOW, BIN_NAN, BIN_ABOVE, BIN_ABOVE, 1]]


def test_contour_mask_marks_band_changes() -> None:
    ramp = np.tile(np.arange(10, dtype=float), (3, 1))
    mask = contour_mask(contour_bins(ramp, 0.0, 10.0, 0.0, 2.0))
    expected = np.zeros((3, 10), dtype=bool)
    expected[:2, [1, 3, 5, 7]] = True
    np.testing.assert_array_equal(mask, expected)


def test_contour_mask_ignores_diagonal_neighbour() -> None:
    field = np.add.outer(np.arange(3.0), np.arange(3.0))
    bins = contour_bins(field, 0.0, 10.0, 0.0, 2.0)
    assert bins.tolist() == [[0, 0, 1], [0, 1, 1], [1, 1, 2]]
    mask = contour_mask(bins)
    assert not mask[0, 0]
    assert mask.tolist() == [[False, True, False], [True, False, False], [False, False, False]]


def test_contour_mask_needs_two_rows_and_columns() -> None:
    assert not contour_mask(np.array([[0, 1, 2]])).any()


def test_finite_runs() -> None:
    assert finite_runs([1.0, np.nan, 2.0, 3.0, np.inf, 4.0]) == [(0, 1), (2, 4), (5, 6)]
    assert finite_runs([]) == []
    assert finite_runs([np.nan]) == []


def test_dash_segments_split_a_straight_line() -> None:
    pieces = list(dash_segments([(0.0, 0.0), (10.0, 0.0)], (3, 1)))
    assert pieces == [
        [(0.0, 0.0), pytest.approx((3.0, 0.0))],
        [pytest.approx((4.0, 0.0)), pytest.approx((7.0, 0.0))],
        [pytest.approx((8.0, 0.0)), (10.0, 0.0)],
    ]


def test_dash_phase_carries_across_vertices() -> None:
    pieces = list(dash_segments([(0.0, 0.0), (2.0, 0.0), (4.0, 0.0)], (3, 1)))
    assert pieces == [[(0.0, 0.0), (2.0, 0.0), pytest.approx((3.0, 0.0))]]


def test_solid_pattern_returns_polyline() -> None:
    points = [(0.0, 0.0), (1.0, 1.0), (2.0, 0.0)]
    assert list(dash_segments(points, ())) == [points]


def test_render_heat_map_flips_rows() -> None:
    raster = Raster(1, 2)
    render_heat_map(raster, np.array([[0.0], [10.0]]), Range(0.0, 10.0, 0))
    palette = heat_palette()
    assert tuple(raster.pixels[1, 0, :3]) == tuple(palette[0])
    assert tuple(raster.pixels[0, 0, :3]) == tuple(palette[127])


def test_render_boolean_fills_and_mutes_nan() -> None:
    raster = Raster(3, 3)
    data = np.array([[1.0, 0.0, np.nan], [0.0, 0.0, 0.0], [0.0, 0.0, 0.0]])
    render_boolean(raster, data, (255, 0, 0))
    bottom = raster.pixels[2, :, :3].tolist()
    assert bottom == [[255, 0, 0], list(WHITE), [191, 64, 64]]
    assert (raster.pixels[:2, :, :3] == 255).all()


def test_render_contours_uses_pen_color() -> None:
    raster = Raster(10, 3)
    ramp = np.tile(np.arange(10, dtype=float), (3, 1))
    render_contours(raster, ramp, RED, Range(0.0, 10.0, 0), 0.0, 2.0)
    assert tuple(raster.pixels[2, 1, :3]) == (255, 0, 0)
    assert tuple(raster.pixels[1, 3, :3]) == (255, 0, 0)
    assert tuple(raster.pixels[0, 1, :3]) == WHITE
    assert tuple(raster.pixels[2, 0, :3]) == WHITE


def test_render_contours_with_transparent_pen_draws_nothing() -> None:
    raster = Raster(10, 3)
    ramp = np.tile(np.arange(10, dtype=float), (3, 1))
    render_contours(raster, ramp, RED.with_alpha(0), Range(0.0, 10.0, 0), 0.0, 2.0)
    assert (raster.pixels == 255).all()


def test_draw_series_skips_gaps() -> None:
    raster = Raster(10, 10)
    data = np.zeros(10)
    data[5] = np.nan
    with raster.draw() as draw:
        draw_series(draw, data, Range(-1.0, 1.0, 10), 10, RED)
    row = raster.pixels[4, :, :3]
    assert tuple(row[2]) == (255, 0, 0)
    assert tuple(row[8]) == (255, 0, 0)
    assert tuple(row[5]) == WHITE


def test_draw_series_ignores_empty_data_and_flat_range() -> None:
    raster = Raster(4, 4)
    with raster.draw() as draw:
        draw_series(draw, np.array([]), Range(-1.0, 1.0, 4), 4, RED)
        draw_series(draw, np.zeros(4), Range(1.0, 1.0, 4), 4, RED)
        draw_series(draw, np.zeros(4), Range(-1.0, 1.0, 4), 4, RED.with_alpha(0))
    assert (raster.pixels == 255).all()


def test_draw_series_survives_huge_values() -> None:
    raster = Raster(4, 4)
    with raster.draw() as draw:
        draw_series(draw, np.array([0.0, 1e300, -1e300, 0.0]), Range(-1.0, 1.0, 4), 4, RED)
    assert (raster.pixels[..., 3] == 255).all()


def test_draw_text_returns_size() -> None:
    raster = Raster(80, 30)
    with raster.draw() as draw:
        width, height = draw_text(draw, "1.5", 40, 15, (0, 0, 0), load_font(13.0), "center", "center")
    assert width > 0 and height > 0
    assert (raster.pixels[..., :3] < 128).any()


def test_grid_lines_draw_axis_and_translucent_grid() -> None:
    raster = Raster(200, 100)
    x = GraphRange.create(-1, 1, 200)
    y = GraphRange.create(-1, 1, 100)
    with raster.draw() as draw:
        draw_grid_lines(draw, x, y, raster.size)
    axis = resolve_color("midnightblue")[:3]
    assert tuple(raster.pixels[30, 100, :3]) == axis
    grid = tuple(raster.pixels[30, 150, :3])
    assert grid != axis
    assert grid != WHITE


def test_grid_lines_with_transparent_pens_draw_only_labels() -> None:
    raster = Raster(200, 100)
    clear = Pen((0, 0, 0, 0))
    x = GraphRange.create(-1, 1, 200, axis_pen=clear)
    y = GraphRange.create(-1, 1, 100, axis_pen=clear)
    with raster.draw() as draw:
        draw_grid_lines(draw, x, y, raster.size)
    assert tuple(raster.pixels[30, 100, :3]) == WHITE
    assert tuple(raster.pixels[30, 150, :3]) == WHITE
