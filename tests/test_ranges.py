from __future__ import annotations

import math

import numpy as np
import pytest

from graphcalc.errors import EvaluationError, FormatError
from graphcalc.expression import Literal
from graphcalc.parsing import parse_expr
from graphcalc.pens import resolve_color
from graphcalc.ranges import GraphRange, Range, decode_graph_range, format_ranges, pan, zoom


def test_pixel_value_mapping() -> None:
    r = Range(0.0, 10.0, 10)
    assert r.value_to_px(5.0) == pytest.approx(5.0)
    assert r.px_to_value(2.0) == pytest.approx(2.0)
    assert r.px_to_delta(3.0) == pytest.approx(3.0)
    assert r.step_size == pytest.approx(10.0 / 9.0)
    np.testing.assert_allclose(r.value_to_px(np.array([0.0, 2.5, 10.0])), [0.0, 2.5, 10.0])


def test_degenerate_ranges_map_to_non_finite_values() -> None:
    flat = Range(3.0, 3.0, 10)
    assert math.isinf(flat.value_to_px(4.0))
    assert math.isnan(flat.value_to_px(3.0))
    empty = Range(0.0, 1.0, 0)
    assert not math.isfinite(empty.px_to_value(1.0))


def test_pan_moves_content_with_the_pointer() -> None:
    x, y = pan(0.0, 2.0, Range(0.0, 10.0, 10), Range(0.0, 10.0, 10))
    assert x == Range(0.0, 10.0, 10)
    assert y.lo == pytest.approx(2.0)
    assert y.hi == pytest.approx(12.0)

    x, _ = pan(5.0, 0.0, Range(-2.0, 2.0, 5), Range(-2.0, 2.0, 5))
    assert (x.lo, x.hi) == pytest.approx((-6.0, -2.0))


def test_zoom_scales_about_the_midpoint() -> None:
    x, y = zoom(0.5, Range(-2.0, 2.0, 5), Range(0.0, 4.0, 5))
    assert (x.lo, x.hi) == pytest.approx((-1.0, 1.0))
    assert (y.lo, y.hi) == pytest.approx((1.0, 3.0))
    assert x.px_count == 5


def test_format_ranges_keeps_z_text() -> None:
    text = format_ranges(Range(-1.5, 2.0, 5), Range(0.0, 1e9, 5), "z: 0..1")
    assert text == "-1.5..2; 0..1e+09; z: 0..1"


def test_graph_range_defaults() -> None:
    gr = GraphRange.create(-1, 1, 100)
    assert not gr.auto_range
    assert gr.axis_pen.color == resolve_color("midnightblue")
    assert gr.line_pen.color[3] == 128
    assert gr.line_pen.width == 1.0
    assert GraphRange.create(2, 2, 10).auto_range


def test_set_bounds_replaces_span() -> None:
    gr = GraphRange.create(0, 1, 10)
    gr.set_bounds(-3, 4)
    gr.set_px_count(20)
    assert gr.span == Range(-3.0, 4.0, 20)
    assert gr.value_to_px(0.5) == pytest.approx(10.0)


def test_decode_dot_dot_and_minus_forms() -> None:
    gr = decode_graph_range("x", parse_expr("-2..2"), 100, {})
    assert (gr.lo, gr.hi, gr.px_count) == (-2.0, 2.0, 100)
    gr = decode_graph_range("x", parse_expr("1 - 5"), 100, {})
    assert (gr.lo, gr.hi) == (1.0, 5.0)


def test_decode_strips_axis_prefix_and_reads_attributes() -> None:
    node = parse_expr('@"Time" @5 @red @dot X: 0..10', "Range")
    gr = decode_graph_range("x", node, 50, {}, source_text="kept")
    assert (gr.lo, gr.hi) == (0.0, 10.0)
    assert gr.label == "Time"
    assert gr.rough_line_count == 5
    assert gr.axis_pen.color == resolve_color("red")
    assert gr.axis_pen.dash == "dot"
    assert gr.source_text == "kept"


def test_decode_uses_variables_for_bounds() -> None:
    gr = decode_graph_range("y", parse_expr("-a..a"), 10, {"a": Literal(3.0)})
    assert (gr.lo, gr.hi) == (-3.0, 3.0)
    with pytest.raises(EvaluationError, match="Unknown variable: b"):
        decode_graph_range("y", parse_expr("0..b"), 10, {})


def test_missing_range_is_auto() -> None:
    gr = decode_graph_range("z", None, 0, {})
    assert gr.auto_range
    assert (gr.lo, gr.hi) == (-1.0, 1.0)


def test_reversed_bounds_request_auto_range() -> None:
    assert decode_graph_range("z", parse_expr("5..5"), 0, {}).auto_range
    assert not decode_graph_range("z", parse_expr("0..1"), 0, {}).auto_range


@pytest.mark.parametrize("text", ["5", "sin(1)", "z: 0..1", "1 + 2"])
def test_invalid_ranges_are_rejected(text: str) -> None:
    with pytest.raises(FormatError, match="Invalid range for x"):
        decode_graph_range("x", parse_expr(text), 10, {})


def test_transparent_axis_has_transparent_grid() -> None:
    gr = decode_graph_range("x", parse_expr("@transparent 0..1"), 10, {})
    assert gr.axis_pen.transparent
    assert gr.line_pen.transparent
