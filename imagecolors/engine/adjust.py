"""Perceptual post-processing of derived colours against the host theme.

dominant, highlight and average are made more vibrant (HSV saturation of
at least 0.5) and their HSL lightness is walked towards a luminance band
chosen from WCAG contrast ratios:

  dark background (gray < 192):
      lower = 3 * (L_background + 0.05) - 0.05, upper = 0.95
  light background:
      lower = 4.5 * (L_text + 0.05) - 0.05,     upper = L_background

The lightness walk is a fixed-iteration heuristic, not a solver: it stops
after MAX_LIGHTNESS_STEPS steps whether or not the band was reached.
"""

import dataclasses

from imagecolors.core.colorutils import from_hsl, from_hsv, gray, luminance, to_hsl, to_hsv
from imagecolors.core.types import Color, ImageData, Theme

WCAG_NON_TEXT_CONTRAST_RATIO = 3
WCAG_TEXT_CONTRAST_RATIO = 4.5
DARK_BACKGROUND_GRAY = 192
MINIMUM_SATURATION = 0.5
LIGHTNESS_STEP = 0.03
MAX_LIGHTNESS_STEPS = 10


def luminance_bounds(background: Color, text: Color) -> tuple[float, float]:
    """Return (lower, upper) target luminance for colours shown on `background`."""
    background_lum = luminance(background)
    if gray(background) < DARK_BACKGROUND_GRAY:
        return WCAG_NON_TEXT_CONTRAST_RATIO * (background_lum + 0.05) - 0.05, 0.95
    # Light themes still prefer lighter colours, bounded by the background itself
    return WCAG_TEXT_CONTRAST_RATIO * (luminance(text) + 0.05) - 0.05, background_lum


def adjust_saturation(color: Color) -> Color:
    """Raise HSV saturation to MINIMUM_SATURATION, keeping hue and value.

    Achromatic colours have no hue and are returned unchanged.
    """
    h, s, v = to_hsv(color)
    if s == 0 or s >= MINIMUM_SATURATION:
        return color
    return from_hsv(h, MINIMUM_SATURATION, v)


def adjust_lightness(color: Color, lower: float, upper: float) -> Color:
    h, s, l = to_hsl(color)
    steps = 0
    while luminance(color) < lower and steps < MAX_LIGHTNESS_STEPS:
        steps += 1
        color = from_hsl(h, s, min(1.0, l + steps * LIGHTNESS_STEP))
    # shares the step budget with the loop above
    while luminance(color) > upper and steps < MAX_LIGHTNESS_STEPS:
        steps += 1
        color = from_hsl(h, s, max(0.0, l - steps * LIGHTNESS_STEP))
    return color


def _adjust(color: Color | None, lower: float, upper: float) -> Color | None:
    if color is None:
        return None
    return adjust_lightness(adjust_saturation(color), lower, upper)


def post_process(data: ImageData, theme: Theme) -> ImageData:
    """Return a copy of data with dominant, highlight and average adjusted for theme."""
    lower, upper = luminance_bounds(theme.background, theme.text)
    return dataclasses.replace(
        data,
        dominant=_adjust(data.dominant, lower, upper),
        highlight=_adjust(data.highlight, lower, upper),
        average=_adjust(data.average, lower, upper),
    )
