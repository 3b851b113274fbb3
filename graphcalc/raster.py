"""RGBA pixel buffer owned by one render pass at a time."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import numpy as np
from PIL import Image, ImageDraw

from .defaults import BACKGROUND_COLOR

__all__ = ["Raster"]


class Raster:
    """``height x width x 4`` ``uint8`` RGBA buffer with explicit release.

    Vector drawing goes through :meth:`draw`, which exposes a Pillow
    ``ImageDraw`` in blending mode and copies the result back on exit.
    A released raster raises ``RuntimeError`` on any further access.
    """

    def __init__(self, width: int, height: int) -> None:
        if width < 0 or height < 0:
            raise ValueError(f"Raster size must be non-negative, got {width}x{height}")
        self._pixels: np.ndarray | None = np.empty((height, width, 4), dtype=np.uint8)
        self.clear()

    @property
    def released(self) -> bool:
        return self._pixels is None

    @property
    def pixels(self) -> np.ndarray:
        if self._pixels is None:
            raise RuntimeError("Raster has been released")
        return self._pixels

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def release(self) -> None:
        """Drop the pixel buffer; calling twice is harmless."""
        self._pixels = None

    def clear(self, color: tuple[int, int, int] = BACKGROUND_COLOR) -> None:
        self.pixels[..., :3] = color
        self.pixels[..., 3] = 255

    @contextmanager
    def draw(self) -> Iterator[ImageDraw.ImageDraw]:
        """Yield an ``ImageDraw`` whose RGBA fills blend onto the raster."""
        pixels = self.pixels
        image = Image.fromarray(np.ascontiguousarray(pixels[..., :3]))
        yield ImageDraw.Draw(image, "RGBA")
        pixels[..., :3] = np.asarray(image)

    def to_image(self) -> Image.Image:
        """Return a Pillow copy of the current pixels."""
        return Image.fromarray(self.pixels.copy())

    def __repr__(self) -> str:
        if self.released:
            return "Raster(released)"
        return f"Raster({self.width}x{self.height})"
