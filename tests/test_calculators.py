from __future__ import annotations

import logging

import numpy as np
import pytest

from graphcalc.calculators import (
    OneVariableCalculator,
    TwoVariableCalculator,
    make_calculator,
    run_calculators,
)
from graphcalc.parsing import parse_expr, parse_exprs
from graphcalc.ranges import Range
from graphcalc.variables import build_variable_table

SPAN = Range(-2.0, 2.0, 5)


def two(text: str, variables: str = "") -> TwoVariableCalculator:
    table = build_variable_table(parse_exprs("Variables", variables))
    calc = TwoVariableCalculator(parse_expr(text), table, SPAN, SPAN)
    calc.run()
    return calc


def test_one_variable_samples_every_pixel() -> None:
    calc = OneVariableCalculator(parse_expr("x^2"), {}, SPAN)
    assert not calc.has_run
    np.testing.assert_allclose(calc.run(), [4.0, 1.0, 0.0, 1.0, 4.0])
    assert calc.get_value_at(0, 99) == 4.0
    assert calc.get_value_at(5, 0) is None
    assert calc.get_value_at(-1, 0) is None


def test_one_variable_keeps_non_finite_samples() -> None:
    calc = OneVariableCalculator(parse_expr("1/x"), {}, SPAN)
    results = calc.run()
    assert np.isinf(results[2])
    assert results[0] == -0.5


def test_results_are_frozen_and_run_is_single_use() -> None:
    calc = OneVariableCalculator(parse_expr("x"), {}, SPAN)
    results = calc.run()
    with pytest.raises(ValueError):
        results[0] = 10.0
    with pytest.raises(RuntimeError, match="already run"):
        calc.run()


def test_two_variable_orientation_is_row_y_col_x() -> None:
    calc = two("x - y")
    assert calc.results.shape == (5, 5)
    assert calc.results[0, 4] == 4.0
    assert calc.results[4, 0] == -4.0
    assert not calc.equation_mode
    assert calc.get_value_at(4, 0) == 4.0
    assert calc.get_value_at(5, 0) is None


def test_equation_marks_crossing_cells() -> None:
    calc = two("x == 0")
    assert calc.equation_mode
    np.testing.assert_array_equal(calc.results, np.tile([0.0, 0.0, 1.0, 0.0, 0.0], (5, 1)))


def test_assignment_form_is_an_equation() -> None:
    calc = two("y = x")
    np.testing.assert_array_equal(np.diag(calc.results), np.ones(5))
    assert calc.results[0, 4] == 0.0


def test_equation_cells_with_only_nan_corners_are_nan() -> None:
    calc = two("sqrt(x) == 0")
    expected = np.tile([np.nan, np.nan, 0.0, 0.0, 0.0], (5, 1))
    np.testing.assert_array_equal(calc.results, expected)


def test_truth_valued_expression_is_drawn_as_region() -> None:
    calc = two("x > y")
    assert calc.equation_mode
    np.testing.assert_array_equal(calc.results[0], [0.0, 1.0, 1.0, 1.0, 1.0])
    np.testing.assert_array_equal(calc.results[4], np.zeros(5))


def test_variables_feed_two_variable_sampling() -> None:
    calc = two("r", "r = x^2 + y^2")
    assert calc.results[2, 2] == 0.0
    assert calc.results[0, 0] == 8.0


def test_make_calculator_dispatches_on_classification() -> None:
    table = build_variable_table([])
    assert isinstance(make_calculator(parse_expr("sin(x)"), table, SPAN, SPAN), OneVariableCalculator)
    assert isinstance(make_calculator(parse_expr("x*y"), table, SPAN, SPAN), TwoVariableCalculator)
    assert isinstance(make_calculator(parse_expr("x^2 = 1"), table, SPAN, SPAN), TwoVariableCalculator)


def test_rnd_draws_come_from_the_supplied_generator() -> None:
    first = OneVariableCalculator(parse_expr("rnd()"), {}, SPAN, np.random.default_rng(3)).run()
    second = OneVariableCalculator(parse_expr("rnd()"), {}, SPAN, np.random.default_rng(3)).run()
    np.testing.assert_array_equal(first, second)
    assert len(set(first.tolist())) == 5


def test_run_calculators_runs_all_and_logs(caplog) -> None:
    calcs = [
        OneVariableCalculator(parse_expr("x"), {}, SPAN),
        TwoVariableCalculator(parse_expr("x + y"), {}, SPAN, SPAN),
    ]
    with caplog.at_level(logging.DEBUG, logger="graphcalc.calculators"):
        run_calculators(calcs)
    assert all(c.has_run for c in calcs)
    assert "Sampled 2 formula(s)" in caplog.text


def test_run_calculators_rejects_unknown_types() -> None:
    with pytest.raises(TypeError, match="Unsupported calculator type"):
        run_calculators([object()])
