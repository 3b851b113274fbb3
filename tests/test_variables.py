from __future__ import annotations

import logging
import math

import pytest

from graphcalc.errors import CyclicDefinitionError, EvaluationError, FormatError
from graphcalc.expression import Literal
from graphcalc.parsing import parse_expr, parse_exprs
from graphcalc.variables import Resolver, build_variable_table, is_two_variable


def table_of(text: str):
    return build_variable_table(parse_exprs("Variables", text))


def test_variables_can_reference_each_other_in_any_order() -> None:
    table = table_of("b = a * 2; a = 3")
    resolver = table.resolver()
    assert resolver("b") == 6.0
    assert resolver("a") == 3.0


def test_constant_entries_are_pre_evaluated() -> None:
    table = table_of("a = 3; b = a * 2; r = sqrt(x^2 + y^2); s = r + b")
    assert table["a"] == Literal(3.0)
    assert table["b"] == Literal(6.0)
    assert not isinstance(table["r"], Literal)
    assert not isinstance(table["s"], Literal)


def test_entries_referencing_unknown_names_stay_lazy() -> None:
    table = table_of("k = q + 1")
    assert not isinstance(table["k"], Literal)
    with pytest.raises(EvaluationError, match="Unknown variable: q"):
        table.resolver()("k")


def test_later_definition_wins() -> None:
    table = table_of("a = 1; a = 2")
    assert table["a"] == Literal(2.0)
    assert len(table) == 1


def test_injected_values_take_precedence() -> None:
    table = table_of("x = 100; r = x + 1")
    resolver = Resolver(table, {"x": 2.0})
    assert resolver.evaluate(parse_expr("r")) == 3.0
    resolver.values["x"] = 5.0
    assert resolver.evaluate(parse_expr("r")) == 6.0


def test_non_finite_constants_are_kept() -> None:
    table = table_of("big = 1/0; bad = sqrt(-1)")
    assert table["big"].value == math.inf
    assert math.isnan(table["bad"].value)


@pytest.mark.parametrize("text", ["3 + 4", "a + 1 = 2", '"a" = 1'])
def test_non_assignments_are_rejected(text: str) -> None:
    with pytest.raises(FormatError, match="Expected 'name = value'"):
        table_of(text)


def test_cycles_are_reported_with_their_path() -> None:
    with pytest.raises(CyclicDefinitionError) as info:
        table_of("a = b + 1; b = a * 2")
    assert info.value.cycle == ("a", "b", "a")
    assert "a -> b -> a" in str(info.value)


def test_self_reference_is_a_cycle() -> None:
    with pytest.raises(CyclicDefinitionError):
        table_of("a = a + 1")


def test_record_tracks_requested_names() -> None:
    table = table_of("r = x + y")
    resolver = table.resolver({"x": 0.0, "y": 0.0}, record=True)
    resolver.evaluate(parse_expr("r * 2"))
    assert resolver.requested == {"r", "x", "y"}


@pytest.mark.parametrize(
    "text, expected",
    [
        ("x^2", False),
        ("sin(x) + 1", False),
        ("3", False),
        ("x + y", True),
        ("x^2 + y^2 = 1", True),
        ("x == 0", True),
        ("x && y", True),
        ("r", True),
        ("x > 1 ? y : 0", False),
    ],
)
def test_two_variable_classification(text: str, expected: bool) -> None:
    table = table_of("r = sqrt(x^2 + y^2)")
    assert is_two_variable(parse_expr(text), table) is expected


def test_classification_survives_evaluation_errors(caplog) -> None:
    table = table_of("")
    with caplog.at_level(logging.DEBUG, logger="graphcalc.variables"):
        assert is_two_variable(parse_expr("y + nosuch"), table) is True
        assert is_two_variable(parse_expr("nosuch + y"), table) is False
    assert "failed during classification" in caplog.text


def test_constants_that_fail_to_evaluate_stay_lazy() -> None:
    table = table_of("a = 2; bad = nosuch(1); worse = bad + a")
    assert table["a"] == Literal(2.0)
    assert not isinstance(table["bad"], Literal)
    assert not isinstance(table["worse"], Literal)
    with pytest.raises(EvaluationError, match="Expression not understood"):
        table.resolver()("worse")
