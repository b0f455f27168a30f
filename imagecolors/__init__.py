"""imagecolors — ranked palettes and theming colours from images."""

from imagecolors.core.types import Brightness, Color, Fallbacks, ImageData, PaletteSwatch, PixelBuffer, Theme
from imagecolors.engine import generate_palette, post_process
from imagecolors.image_colors import ImageColors, SnapshotProvider

__all__ = [
    'Brightness',
    'Color',
    'Fallbacks',
    'ImageColors',
    'ImageData',
    'PaletteSwatch',
    'PixelBuffer',
    'SnapshotProvider',
    'Theme',
    'generate_palette',
    'post_process',
]
