"""Nice-number grid spacing, tick enumeration and data-driven bounds.

The same interval search is used for axis grid lines and for contour
intervals: start from the power of ten at or above the span and shrink by
0.5, 0.5, 0.4 in rotation (so the mantissa cycles 5, 2.5 -> 2, 1) until
roughly the requested number of lines fits.
"""

from __future__ import annotations

import math
from typing import Iterable

import numpy as np

from .defaults import DEFAULT_RANGE, DEFAULT_ROUGH_LINE_COUNT

__all__ = ["auto_bounds", "choose_grid_spacing", "find_min_max", "tick_values"]

_RATIOS = (0.5, 0.5, 0.4)


def choose_grid_spacing(
    lo: float,
    hi: float,
    rough_lines: int = DEFAULT_ROUGH_LINE_COUNT,
) -> tuple[float, float]:
    """Pick a tick interval for ``[lo, hi]``.

    Parameters
    ----------
    lo, hi : float
        Bounds of the axis.
    rough_lines : int
        Approximate number of lines wanted.

    Returns
    -------
    tuple[float, float]
        ``(interval, aligned_lo)`` where ``aligned_lo`` is the first multiple
        of ``interval`` at or above ``lo``. A non-positive or non-finite span
        returns ``(1.0, lo)``.

    Examples
    --------
    >>> choose_grid_spacing(0, 100, 20)
    (5.0, 0.0)
    """
    dif = hi - lo
    if not math.isfinite(dif) or dif <= 0:
        return 1.0, lo

    interval = 10.0 ** math.ceil(math.log10(dif))
    estimate = 1.0
    step = 0
    while estimate < rough_lines:
        ratio = _RATIOS[step]
        step = (step + 1) % 3
        interval *= ratio
        estimate /= ratio
        if interval > dif:
            estimate = 1.0
    return interval, math.ceil(lo / interval) * interval


def tick_values(aligned_lo: float, hi: float, interval: float, max_count: int = 1000) -> list[float]:
    """Return ``aligned_lo + i*interval`` for every value not above ``hi``."""
    if not (math.isfinite(aligned_lo) and math.isfinite(hi)) or not interval > 0:
        return []
    count = min(int(math.floor((hi - aligned_lo) / interval)) + 1, max_count)
    ticks = [aligned_lo + i * interval for i in range(max(count, 0))]
    return [t for t in ticks if t <= hi]


def find_min_max(data: Iterable[float] | np.ndarray, lo: float, hi: float) -> tuple[float, float]:
    """Extend ``(lo, hi)`` to cover the finite values of ``data``.

    A NaN seed is replaced by the first finite value; NaN and infinite data
    values are ignored.
    """
    values = np.asarray(data, dtype=np.float64).ravel()
    values = values[np.isfinite(values)]
    if values.size == 0:
        return lo, hi
    data_lo, data_hi = float(values.min()), float(values.max())
    lo = data_lo if math.isnan(lo) else min(lo, data_lo)
    hi = data_hi if math.isnan(hi) else max(hi, data_hi)
    return lo, hi


def auto_bounds(data: Iterable[float] | np.ndarray) -> tuple[float, float]:
    """Finite min/max of ``data``, or the default range when there is none."""
    lo, hi = find_min_max(data, math.nan, math.nan)
    if math.isnan(lo):
        return DEFAULT_RANGE
    return lo, hi
