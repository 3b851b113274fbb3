"""Headless graphing-calculator session.

A :class:`GraphSession` owns the three input texts (formulas, variables,
ranges) and the viewport size. :meth:`GraphSession.refresh` prepares a frame
synchronously (so input errors are reported immediately) and hands it to a
:class:`~graphcalc.scheduler.RefreshScheduler`; the finished raster lands on
:attr:`GraphSession.display`.

Examples
--------
>>> session = GraphSession("x^2", "", "-2..2", size=(5, 5))  # doctest: +SKIP
>>> session.refresh(); session.wait()                         # doctest: +SKIP
>>> session.describe_at(0, 0)                                  # doctest: +SKIP
'4 @ X = -2'
"""

from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np

from .defaults import DEFAULT_RENDER_SETTINGS, RenderSettings
from .display import RasterDisplay
from .errors import GraphCalcError
from .evaluator import evaluate
from .frame import prepare_frame
from .output_state import OutputState
from .ranges import format_ranges, pan, zoom
from .scheduler import RefreshScheduler
from .variables import Resolver

__all__ = ["GraphSession", "ZOOM_STEP"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

#: Ratio used by zoom_in/zoom_out.
ZOOM_STEP = math.sqrt(2)


def _format_value(value: float) -> str:
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


class GraphSession:
    """Input texts, viewport and display of one calculator window.

    Parameters
    ----------
    formulas, variables, ranges : str
        Initial contents of the three input fields.
    size : tuple[int, int]
        Viewport ``(width, height)`` in pixels.
    rng : numpy.random.Generator, optional
        Parent generator for ``rnd``; defaults to a fresh unseeded one. Each
        refresh spawns two children from it, one for the frame (constant
        folding and sampling on the worker) and one for the immediate result,
        so the two threads never share a generator.
    settings : RenderSettings
        Rendering parameters.
    """

    def __init__(
        self,
        formulas: str = "",
        variables: str = "",
        ranges: str = "",
        size: tuple[int, int] = (640, 480),
        *,
        rng: Optional[np.random.Generator] = None,
        settings: RenderSettings = DEFAULT_RENDER_SETTINGS,
    ) -> None:
        self.formulas = formulas
        self.variables = variables
        self.ranges = ranges
        self.size = (int(size[0]), int(size[1]))
        self.rng = rng if rng is not None else np.random.default_rng()
        self.settings = settings
        self.display = RasterDisplay()
        self.scheduler = RefreshScheduler(self.display)
        self._latest: Optional[OutputState] = None
        self._immediate = ""

    # -- inputs --------------------------------------------------------------

    def update(
        self,
        *,
        formulas: Optional[str] = None,
        variables: Optional[str] = None,
        ranges: Optional[str] = None,
        size: Optional[tuple[int, int]] = None,
        refresh: bool = True,
    ) -> bool:
        """Replace any of the inputs and (by default) refresh."""
        if formulas is not None:
            self.formulas = formulas
        if variables is not None:
            self.variables = variables
        if ranges is not None:
            self.ranges = ranges
        if size is not None:
            self.size = (int(size[0]), int(size[1]))
        return self.refresh() if refresh else False

    # -- refresh -------------------------------------------------------------

    def refresh(self) -> bool:
        """Prepare a frame from the current inputs and schedule its pass.

        Returns
        -------
        bool
            True if a frame was prepared and scheduled (started or
            coalesced), False if the inputs were rejected; in that case
            :attr:`error` holds the message and the previous image stays.
        """
        frame_rng, immediate_rng = self.rng.spawn(2)
        try:
            state = prepare_frame(
                self.formulas, self.variables, self.ranges, self.size, frame_rng, self.settings
            )
        except GraphCalcError as exc:
            logger.info("Refresh rejected: %s", exc)
            self.display.fail(exc)
            return False

        self.display.clear_error()
        self._latest = state
        self._immediate = self._evaluate_immediate(state, immediate_rng)
        self.scheduler.request(state)
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the scheduled passes are done; False on timeout."""
        return self.scheduler.wait(timeout)

    def _evaluate_immediate(self, state: OutputState, rng: np.random.Generator) -> str:
        results: list[str] = []
        for calc in state.calcs:
            try:
                value = evaluate(calc.expr, Resolver(calc.table), rng)
            except GraphCalcError as exc:
                return str(exc) if not results else ", ".join(results)
            results.append(_format_value(value))
        return ", ".join(results)

    def immediate_result(self) -> str:
        """Formulas evaluated with the variables only (no x/y).

        Values are comma-joined. If a formula cannot be evaluated this way,
        the values before it are shown, or the error message when there are
        none.
        """
        return self._immediate

    @property
    def error(self) -> Optional[str]:
        return self.display.error

    # -- navigation ----------------------------------------------------------

    def _set_ranges(self, x_range, y_range, z_text: str) -> bool:
        self.ranges = format_ranges(x_range, y_range, z_text)
        logger.debug("Ranges -> %s", self.ranges)
        return self.refresh()

    def pan(self, dx_px: float, dy_px: float) -> bool:
        """Move the viewport as if dragged by ``(dx_px, dy_px)`` screen pixels."""
        state = self._latest
        if state is None:
            return False
        x_range, y_range = pan(dx_px, dy_px, state.x_range.span, state.y_range.span)
        return self._set_ranges(x_range, y_range, state.z_range.source_text)

    def zoom(self, ratio: float) -> bool:
        """Scale both axes around their midpoints; ``ratio < 1`` zooms in."""
        state = self._latest
        if state is None:
            return False
        x_range, y_range = zoom(ratio, state.x_range.span, state.y_range.span)
        return self._set_ranges(x_range, y_range, state.z_range.source_text)

    def zoom_in(self) -> bool:
        return self.zoom(1 / ZOOM_STEP)

    def zoom_out(self) -> bool:
        return self.zoom(ZOOM_STEP)

    def describe_at(self, px: int, py: int) -> str:
        """Mouse-over text for raster pixel ``(px, py)`` of the displayed frame."""
        return self.display.describe_at(px, py)
