"""Top-level public API for the ``graphcalc`` package.

This module re-exports the building blocks of the graphing calculator so
users can import from a single namespace, for example:

>>> from graphcalc import GraphSession, parse_expr, evaluate  # doctest: +SKIP

It exposes both the headless session (inputs in, raster out) and the lower
level pieces (parser, evaluator, calculators, renderer helpers) for
integrations that drive the pipeline themselves.
"""

from .calculators import (
    Calculator,
    OneVariableCalculator,
    TwoVariableCalculator,
    make_calculator,
    run_calculators,
)
from .defaults import PRELUDE, RenderSettings
from .display import RasterDisplay
from .errors import (
    CyclicDefinitionError,
    EvaluationError,
    FormatError,
    GraphCalcError,
    ParseError,
    SourceSpan,
)
from .evaluator import Evaluator, evaluate, mapping_lookup
from .expression import Call, Identifier, Literal, Node
from .frame import build_table, prepare_frame
from .grid_spacing import auto_bounds, choose_grid_spacing, find_min_max, tick_values
from .output_state import OutputState
from .parsing import parse_expr, parse_exprs
from .pens import Pen, make_pen
from .ranges import GraphRange, Range, decode_graph_range, format_ranges, pan, zoom
from .raster import Raster
from .scheduler import PassResult, RefreshScheduler
from .session import GraphSession
from .symbolic import to_latex, to_sympy
from .variables import Resolver, VariableTable, build_variable_table, is_two_variable

__all__ = [
    "Calculator",
    "Call",
    "CyclicDefinitionError",
    "EvaluationError",
    "Evaluator",
    "FormatError",
    "GraphCalcError",
    "GraphRange",
    "GraphSession",
    "Identifier",
    "Literal",
    "Node",
    "OneVariableCalculator",
    "OutputState",
    "PRELUDE",
    "ParseError",
    "PassResult",
    "Pen",
    "Range",
    "Raster",
    "RasterDisplay",
    "RefreshScheduler",
    "RenderSettings",
    "Resolver",
    "SourceSpan",
    "TwoVariableCalculator",
    "VariableTable",
    "auto_bounds",
    "build_table",
    "build_variable_table",
    "choose_grid_spacing",
    "decode_graph_range",
    "evaluate",
    "find_min_max",
    "format_ranges",
    "is_two_variable",
    "make_calculator",
    "make_pen",
    "mapping_lookup",
    "pan",
    "parse_expr",
    "parse_exprs",
    "prepare_frame",
    "run_calculators",
    "tick_values",
    "to_latex",
    "to_sympy",
    "zoom",
]
