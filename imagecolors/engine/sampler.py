"""Pixel sampling: keep opaque, colourful pixels and their running sums.

Fully transparent pixels and pixels with CIELAB chroma below 20 (close
to gray) are dropped. Pixels are visited row-major.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from loguru import logger

from imagecolors.core.colorutils import chroma_array
from imagecolors.core.types import Color, PixelBuffer

MINIMUM_CHROMA = 20


@dataclass(frozen=True)
class Samples:
    colors: np.ndarray  # (N, 3) int32 RGB
    sums: tuple[int, int, int] = (0, 0, 0)

    @property
    def count(self) -> int:
        return len(self.colors)

    @property
    def average(self) -> Color | None:
        """Truncated mean of all samples, None when there are none."""
        if self.count == 0:
            return None
        r, g, b = self.sums
        return Color(r // self.count, g // self.count, b // self.count)


EMPTY = Samples(colors=np.empty((0, 3), dtype=np.int32))


def _rgba_pixels(buffer: PixelBuffer) -> np.ndarray | None:
    """View the buffer as (width * height, 4) uint8, or None if malformed."""
    if buffer.is_null() or buffer.stride < buffer.width * 4:
        return None
    needed = buffer.stride * buffer.height
    if len(buffer.data) < needed:
        logger.debug('Pixel buffer too short: {} < {} bytes', len(buffer.data), needed)
        return None
    rows = np.frombuffer(buffer.data, dtype=np.uint8, count=needed).reshape(buffer.height, buffer.stride)
    return rows[:, : buffer.width * 4].reshape(-1, 4)


def sample(buffer: PixelBuffer | None) -> Samples:
    if buffer is None:
        return EMPTY
    pixels = _rgba_pixels(buffer)
    if pixels is None:
        return EMPTY

    rgb = pixels[pixels[:, 3] != 0, :3].astype(np.int32)
    if len(rgb) == 0:
        return EMPTY

    colors = rgb[chroma_array(rgb) >= MINIMUM_CHROMA]
    total = colors.sum(axis=0, dtype=np.int64)
    logger.debug('Sampled {} of {} pixels', len(colors), len(pixels))
    return Samples(colors=colors, sums=(int(total[0]), int(total[1]), int(total[2])))
