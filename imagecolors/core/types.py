"""Shared types for imagecolors: Color, PixelBuffer, PaletteSwatch, ImageData, Theme, Report."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple

from PIL import Image


class Color(NamedTuple):
    """An opaque 8-bit-per-channel sRGB colour."""

    r: int
    g: int
    b: int

    def hex(self) -> str:
        return f'#{self.r:02x}{self.g:02x}{self.b:02x}'


WHITE = Color(255, 255, 255)
BLACK = Color(0, 0, 0)


class Brightness(Enum):
    DARK = 'dark'
    LIGHT = 'light'


@dataclass(frozen=True)
class PixelBuffer:
    """A raw RGBA8 bitmap. Rows are `stride` bytes apart, pixels are R, G, B, A."""

    width: int
    height: int
    stride: int
    data: bytes

    @classmethod
    def from_image(cls, image: Image.Image) -> PixelBuffer:
        """Build a straight-alpha RGBA buffer from any Pillow image."""
        rgba = image.convert('RGBA')
        return cls(width=rgba.width, height=rgba.height, stride=rgba.width * 4, data=rgba.tobytes())

    def is_null(self) -> bool:
        return self.width <= 0 or self.height <= 0


@dataclass(frozen=True)
class PaletteSwatch:
    """One entry of a published palette."""

    ratio: float
    color: Color
    contrast_color: Color


@dataclass(frozen=True)
class ImageData:
    """The result of one palette computation.

    Published as a single unit and never mutated afterwards. An empty
    palette means no pixel survived sampling; every colour field is then None.
    """

    palette: tuple[PaletteSwatch, ...] = ()
    average: Color | None = None
    dominant: Color | None = None
    dominant_contrast: Color | None = None
    highlight: Color | None = None
    closest_to_black: Color | None = None
    closest_to_white: Color | None = None

    def is_empty(self) -> bool:
        return not self.palette


@dataclass(frozen=True)
class Theme:
    """Colours supplied by the host application's theming layer."""

    background: Color = Color(239, 240, 241)
    text: Color = Color(35, 38, 41)
    link: Color = Color(41, 128, 185)
    link_background: Color = Color(208, 227, 240)


@dataclass
class Fallbacks:
    """Per-accessor values used until the first non-empty result is published.

    A None colour falls back further to the matching Theme colour.
    """

    palette: list[PaletteSwatch] = field(default_factory=list)
    palette_brightness: Brightness = Brightness.LIGHT
    average: Color | None = None
    dominant: Color | None = None
    dominant_contrast: Color | None = None
    highlight: Color | None = None
    foreground: Color | None = None
    background: Color | None = None


@dataclass
class Report:
    """Accumulates one image's results for text/JSON output."""

    image_path: str = ''
    image_width: int = 0
    image_height: int = 0
    brightness: Brightness | None = None
    palette: list[PaletteSwatch] = field(default_factory=list)
    colors: dict[str, Color] = field(default_factory=dict)
    adjusted: bool = False

    def add(self, name: str, color: Color) -> None:
        """Record a named derived colour."""
        self.colors[name] = color
