"""One frame: calculators, axis ranges and the raster they render into.

An :class:`OutputState` is built by :func:`graphcalc.frame.prepare_frame`,
handed to a worker which calls :meth:`OutputState.run`, and then kept by the
display so that mouse-over queries (:meth:`OutputState.describe_at`) read the
same samples that were drawn.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .calculators import Calculator, OneVariableCalculator, TwoVariableCalculator, run_calculators
from .defaults import DEFAULT_RENDER_SETTINGS, Y_AUTO_RANGE_SEED, RenderSettings
from .grid_spacing import choose_grid_spacing, find_min_max
from .pens import make_pen
from .ranges import GraphRange
from .raster import Raster
from .renderer import (
    draw_grid_lines,
    draw_series,
    draw_text,
    load_font,
    render_boolean,
    render_contours,
    render_heat_map,
)

__all__ = ["OutputState"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@dataclass(eq=False)
class OutputState:
    """Everything one render pass reads and writes.

    Parameters
    ----------
    calcs : list of Calculator
        Calculators in formula order; series colours follow this order.
    x_range, y_range, z_range : GraphRange
        Axis ranges. ``y_range`` and ``z_range`` may be re-bounded from the
        data during :meth:`render_all` when flagged for auto-ranging.
    raster : Raster
        Target raster, exclusively owned by the pass until it is displayed.
    settings : RenderSettings
        Font and label parameters.
    """

    calcs: list[Calculator]
    x_range: GraphRange
    y_range: GraphRange
    z_range: GraphRange
    raster: Raster
    settings: RenderSettings = DEFAULT_RENDER_SETTINGS

    def run(self) -> "OutputState":
        """Sample every calculator, then render. Returns ``self``."""
        run_calculators(self.calcs)
        self.render_all()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Rendered %d formula(s) into %r", len(self.calcs), self.raster)
        return self

    # -- rendering -----------------------------------------------------------

    def render_all(self) -> None:
        raster = self.raster
        raster.clear()
        if raster.width == 0 or raster.height == 0:
            return

        if self.y_range.auto_range and all(isinstance(c, OneVariableCalculator) for c in self.calcs):
            lo, hi = Y_AUTO_RANGE_SEED
            for calc in self.calcs:
                lo, hi = find_min_max(calc.results, lo, hi)
            self.y_range.set_bounds(lo, hi)

        heat_map = next(
            (c for c in self.calcs if isinstance(c, TwoVariableCalculator) and not c.equation_mode),
            None,
        )
        if heat_map is not None:
            self._maybe_auto_z(heat_map.results)
            render_heat_map(raster, heat_map.results, self.z_range.span)

        for index, calc in enumerate(self.calcs):
            self._render_series(calc, index)

        with raster.draw() as draw:
            draw_grid_lines(draw, self.x_range, self.y_range, raster.size, self.settings)

    def _maybe_auto_z(self, data: np.ndarray) -> None:
        if not self.z_range.auto_range:
            return
        lo, hi = find_min_max(data, math.nan, math.nan)
        if math.isnan(lo):
            lo, hi = -1.0, 1.0
        self.z_range.set_bounds(lo, hi)

    def _render_series(self, calc: Calculator, index: int) -> None:
        pen = make_pen(calc.expr, index)
        raster = self.raster
        if isinstance(calc, OneVariableCalculator):
            with raster.draw() as draw:
                draw_series(draw, calc.results, self.y_range.span, raster.height, pen)
        elif isinstance(calc, TwoVariableCalculator):
            if calc.equation_mode:
                render_boolean(raster, calc.results, pen.rgb)
                return
            self._maybe_auto_z(calc.results)
            z = self.z_range
            interval, aligned_lo = choose_grid_spacing(z.lo, z.hi, z.rough_line_count)
            render_contours(raster, calc.results, pen, z.span, aligned_lo, interval)
            if not pen.transparent:
                font = load_font(self.settings.font_size, self.settings.font_path)
                with raster.draw() as draw:
                    draw_text(
                        draw, f"Contour interval: {interval:g}", raster.width / 2, 5, pen.rgb, font,
                        "center", "top", self.settings.label_box_alpha,
                    )
        else:
            raise TypeError(f"Unsupported calculator type: {type(calc).__name__}")

    # -- queries -------------------------------------------------------------

    def describe_at(self, px: int, py: int) -> str:
        """Describe the sampled value(s) under raster pixel ``(px, py)``.

        ``py`` is a raster row (growing downward). Returns an empty string
        when a single formula has no sample there or there are no formulas.
        """
        x, y = px, self.y_range.px_count - 1 - py
        x_value = float(self.x_range.px_to_value(x))
        y_value = float(self.y_range.px_to_value(y))

        if len(self.calcs) == 1:
            calc = self.calcs[0]
            value = calc.get_value_at(x, y)
            if value is None:
                return ""
            if isinstance(calc, TwoVariableCalculator):
                return f"{value:.8g} @ ({x_value:.4g}, {y_value:.4g})"
            return f"{value:.8g} @ X = {x_value:.8g}"

        if len(self.calcs) >= 2:
            fmt = ".8g" if len(self.calcs) == 2 else ".5g"
            values = "; ".join(format(_or_nan(c.get_value_at(x, y)), fmt) for c in self.calcs)
            return f"{values} @ X = {x_value:.4g}"
        return ""


def _or_nan(value: Optional[float]) -> float:
    return math.nan if value is None else value
