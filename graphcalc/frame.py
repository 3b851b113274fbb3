"""Frame preparation: three input texts to a ready-to-run :class:`OutputState`.

This is the synchronous half of a refresh. It parses all inputs, builds the
variable table and ranges, classifies every formula and allocates the target
raster. Any :class:`~graphcalc.errors.GraphCalcError` raised here aborts the
refresh before a worker is started.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from functools import lru_cache
from typing import Optional

import numpy as np

from .calculators import make_calculator
from .defaults import DEFAULT_RENDER_SETTINGS, PRELUDE, RenderSettings
from .expression import Node
from .output_state import OutputState
from .parsing import parse_exprs, split_statements
from .ranges import Range, decode_graph_range
from .raster import Raster
from .variables import VariableTable, build_variable_table

__all__ = ["build_table", "prepare_frame"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@lru_cache(maxsize=1)
def _prelude() -> tuple[Node, ...]:
    return tuple(parse_exprs("Variables", PRELUDE))


def build_table(variables: str, rng: Optional[np.random.Generator] = None) -> VariableTable:
    """Parse the variable field and build its table, prelude constants first."""
    return build_variable_table([*_prelude(), *parse_exprs("Variables", variables)], rng)


def prepare_frame(
    formulas: str,
    variables: str,
    ranges: str,
    size: tuple[int, int],
    rng: Optional[np.random.Generator] = None,
    settings: RenderSettings = DEFAULT_RENDER_SETTINGS,
) -> OutputState:
    """Build the frame for one refresh.

    Parameters
    ----------
    formulas, variables, ranges : str
        The three input fields.
    size : tuple[int, int]
        Viewport ``(width, height)`` in pixels.
    rng : numpy.random.Generator, optional
        Generator for ``rnd`` in variables and formulas.
    settings : RenderSettings
        Passed through to the output state.

    Returns
    -------
    OutputState
        Calculators not yet run, with a freshly allocated raster.

    Raises
    ------
    ParseError, FormatError, EvaluationError
        On malformed input or unknown names in variables/range bounds.
    """
    width, height = size
    exprs = parse_exprs("Formula", formulas)
    table = build_table(variables, rng)

    range_nodes = parse_exprs("Range", ranges)
    range_texts = [piece.strip() for _, piece in split_statements(ranges)]

    def _range_at(i: int) -> tuple[Optional[Node], Optional[str]]:
        if i < len(range_nodes):
            return range_nodes[i], range_texts[i]
        return None, None

    x_node, x_text = _range_at(0)
    y_node, y_text = _range_at(1)
    z_node, z_text = _range_at(2)

    x_range = decode_graph_range("x", x_node, width, table, x_text)
    if y_node is None:
        # Functions of x only get their y bounds from the data.
        y_range = replace(x_range, span=Range(x_range.lo, x_range.hi, height), auto_range=True)
    else:
        y_range = decode_graph_range("y", y_node, height, table, y_text)
    z_range = decode_graph_range("z", z_node, 0, table, z_text)

    calcs = [make_calculator(expr, table, x_range.span, y_range.span, rng) for expr in exprs]
    logger.debug(
        "Prepared frame: %d formula(s), %d variable(s), %dx%d px", len(calcs), len(table), width, height
    )
    return OutputState(calcs, x_range, y_range, z_range, Raster(width, height), settings)
