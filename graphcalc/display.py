"""Double-buffered holder for the displayed frame, with Pillow/Plotly views.

The display keeps the last successfully rendered :class:`OutputState` (and
its raster) until a newer one is presented, so a failed or in-flight refresh
never leaves a blank image. When a new frame is presented the previous
raster is released.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

import numpy as np
import plotly.graph_objects as go
from PIL import Image

from .output_state import OutputState
from .raster import Raster
from .symbolic import to_latex

__all__ = ["RasterDisplay"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class RasterDisplay:
    """Currently displayed frame plus the most recent error message."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state: Optional[OutputState] = None
        self._error: Optional[str] = None
        self.frame_count = 0

    @property
    def state(self) -> Optional[OutputState]:
        with self._lock:
            return self._state

    @property
    def raster(self) -> Optional[Raster]:
        with self._lock:
            return None if self._state is None else self._state.raster

    @property
    def error(self) -> Optional[str]:
        with self._lock:
            return self._error

    def present(self, state: OutputState) -> None:
        """Show ``state`` and release the raster it replaces."""
        with self._lock:
            previous, self._state = self._state, state
            self._error = None
            self.frame_count += 1
        if previous is not None and previous.raster is not state.raster:
            previous.raster.release()

    def fail(self, error: BaseException | str) -> None:
        """Record an error; the current frame stays displayed."""
        message = str(error)
        with self._lock:
            self._error = message
        logger.debug("Display keeps previous frame after error: %s", message)

    def clear_error(self) -> None:
        with self._lock:
            self._error = None

    def describe_at(self, px: int, py: int) -> str:
        state = self.state
        return "" if state is None else state.describe_at(px, py)

    # -- views ---------------------------------------------------------------

    def _snapshot(self) -> tuple[Optional[OutputState], Optional[np.ndarray], Optional[str]]:
        # Pixels are copied under the lock; present() releases the old raster
        # only after swapping it out.
        with self._lock:
            state = self._state
            pixels = None if state is None else np.array(state.raster.pixels)
            return state, pixels, self._error

    def to_array(self) -> Optional[np.ndarray]:
        """Copy of the displayed RGBA pixels, or None before the first frame."""
        return self._snapshot()[1]

    def to_image(self) -> Optional[Image.Image]:
        pixels = self._snapshot()[1]
        return None if pixels is None else Image.fromarray(pixels)

    def _title(self, state: OutputState) -> str:
        parts = []
        for calc in state.calcs:
            try:
                parts.append(f"${to_latex(calc.expr)}$")
            except Exception as exc:  # sympy may reject unusual trees
                logger.debug("No LaTeX title for %s: %s", calc.expr, exc)
                parts.append(str(calc.expr))
        return ", ".join(parts)

    def to_figure(self, *, title: bool = True, layout: Optional[Dict[str, Any]] = None) -> go.Figure:
        """Return a Plotly figure showing the displayed raster.

        Parameters
        ----------
        title : bool
            Add the formulas, rendered through SymPy as LaTeX, as the title.
        layout : dict, optional
            Extra layout fields applied last.
        """
        state, pixels, error = self._snapshot()
        fig = go.Figure()
        fig.update_layout(
            template="plotly_white",
            margin=dict(l=8, r=8, t=48 if title else 8, b=8),
            xaxis=dict(visible=False),
            yaxis=dict(visible=False, scaleanchor="x"),
        )
        if state is not None:
            fig.add_trace(go.Image(z=pixels, colormodel="rgba", hoverinfo="skip"))
            if title and state.calcs:
                fig.update_layout(title=dict(text=self._title(state)))
        if error:
            fig.add_annotation(
                text=error.replace("\n", "<br>"),
                xref="paper", yref="paper", x=0, y=1, showarrow=False,
                align="left", font=dict(color="#b91c1c", family="monospace"),
                bgcolor="rgba(255,255,255,0.8)",
            )
        if layout:
            fig.update_layout(**layout)
        return fig
