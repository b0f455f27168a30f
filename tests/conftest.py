"""Shared helpers for building small test bitmaps."""

import pytest
from imagecolors.core.types import PixelBuffer
from PIL import Image

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)
GREEN = (0, 200, 0, 255)
CLEAR = (0, 0, 0, 0)


def buffer_from_pixels(pixels: list[tuple[int, int, int, int]], width: int) -> PixelBuffer:
    height = len(pixels) // width
    image = Image.new('RGBA', (width, height))
    image.putdata(pixels)
    return PixelBuffer.from_image(image)


def solid_buffer(rgba: tuple[int, int, int, int], width: int = 4, height: int = 4) -> PixelBuffer:
    return PixelBuffer.from_image(Image.new('RGBA', (width, height), rgba))


@pytest.fixture
def red_blue() -> PixelBuffer:
    """2x2 bitmap: red, red, blue, blue."""
    return buffer_from_pixels([RED, RED, BLUE, BLUE], width=2)
