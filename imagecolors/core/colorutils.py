"""Colour-space math shared by the sampler, ranker and adjuster.

sRGB -> XYZ -> CIELAB (D65) conversion, WCAG relative luminance, Qt-style
integer gray, and HSL/HSV helpers. Scalar functions take a Color; the
`*_array` variants take an (N, 3) integer array and are used on whole images.
"""

import colorsys
import math

import numpy as np

from imagecolors.core.types import BLACK, Color

# D65 reference white, XYZ scaled to 0..100
_WHITE_X = 95.047
_WHITE_Y = 100.0
_WHITE_Z = 108.883

_EPSILON = 0.008856
_KAPPA = 903.3


def hex_to_rgb(value: str) -> Color:
    """Parse '#rrggbb', 'rrggbb' or '#rgb'. Anything else gives black."""
    h = value.strip().lstrip('#')
    if len(h) == 3:
        h = ''.join(ch * 2 for ch in h)
    if len(h) != 6:
        return BLACK
    try:
        return Color(int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16))
    except ValueError:
        return BLACK


def gray(color: Color) -> int:
    """Integer luma, same weights as Qt's qGray()."""
    return (color.r * 11 + color.g * 16 + color.b * 5) // 32


def _linearize(channel: float) -> float:
    c = channel / 255.0
    return ((c + 0.055) / 1.055) ** 2.4 if c > 0.04045 else c / 12.92


def rgb_to_xyz(color: Color) -> tuple[float, float, float]:
    r, g, b = (_linearize(c) for c in color)
    x = (r * 0.4124 + g * 0.3576 + b * 0.1805) * 100
    y = (r * 0.2126 + g * 0.7152 + b * 0.0722) * 100
    z = (r * 0.0193 + g * 0.1192 + b * 0.9505) * 100
    return x, y, z


def _lab_f(t: float) -> float:
    return t ** (1 / 3) if t > _EPSILON else (_KAPPA * t + 16) / 116


def rgb_to_lab(color: Color) -> tuple[float, float, float]:
    x, y, z = rgb_to_xyz(color)
    fx = _lab_f(x / _WHITE_X)
    fy = _lab_f(y / _WHITE_Y)
    fz = _lab_f(z / _WHITE_Z)
    return 116 * fy - 16, 500 * (fx - fy), 200 * (fy - fz)


def chroma(color: Color) -> float:
    """CIELAB chroma, sqrt(a^2 + b^2)."""
    _l, a, b = rgb_to_lab(color)
    return math.hypot(a, b)


def rgb_to_lab_array(rgb: np.ndarray) -> np.ndarray:
    """Convert an (N, 3) array of 0-255 RGB values to CIELAB."""
    norm = rgb.astype(np.float64) / 255.0
    linear = np.where(norm > 0.04045, ((norm + 0.055) / 1.055) ** 2.4, norm / 12.92)

    r, g, b = linear[:, 0], linear[:, 1], linear[:, 2]
    x = (r * 0.4124 + g * 0.3576 + b * 0.1805) * 100 / _WHITE_X
    y = (r * 0.2126 + g * 0.7152 + b * 0.0722) * 100 / _WHITE_Y
    z = (r * 0.0193 + g * 0.1192 + b * 0.9505) * 100 / _WHITE_Z

    fx = np.where(x > _EPSILON, np.cbrt(x), (_KAPPA * x + 16) / 116)
    fy = np.where(y > _EPSILON, np.cbrt(y), (_KAPPA * y + 16) / 116)
    fz = np.where(z > _EPSILON, np.cbrt(z), (_KAPPA * z + 16) / 116)

    return np.column_stack([116 * fy - 16, 500 * (fx - fy), 200 * (fy - fz)])


def chroma_array(rgb: np.ndarray) -> np.ndarray:
    lab = rgb_to_lab_array(rgb)
    return np.hypot(lab[:, 1], lab[:, 2])


def luminance(color: Color) -> float:
    """WCAG 2 relative luminance in 0..1."""

    def channel(value: int) -> float:
        c = value / 255.0
        return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4

    return 0.2126 * channel(color.r) + 0.7152 * channel(color.g) + 0.0722 * channel(color.b)


def _from_unit(r: float, g: float, b: float) -> Color:
    return Color(*(min(255, max(0, round(c * 255))) for c in (r, g, b)))


def inverted(color: Color) -> Color:
    return Color(255 - color.r, 255 - color.g, 255 - color.b)


def to_hsl(color: Color) -> tuple[float, float, float]:
    """Return (hue, saturation, lightness), all in 0..1."""
    h, l, s = colorsys.rgb_to_hls(color.r / 255, color.g / 255, color.b / 255)
    return h, s, l


def from_hsl(hue: float, saturation: float, lightness: float) -> Color:
    return _from_unit(*colorsys.hls_to_rgb(hue, lightness, saturation))


def lightness(color: Color) -> int:
    """HSL lightness on the 0..255 scale."""
    return (max(color) + min(color)) // 2


def with_lightness(color: Color, value: int) -> Color:
    """Same hue and HSL saturation, lightness set to value (0..255)."""
    h, s, _l = to_hsl(color)
    return from_hsl(h, s, min(255, max(0, value)) / 255)


def to_hsv(color: Color) -> tuple[float, float, float]:
    return colorsys.rgb_to_hsv(color.r / 255, color.g / 255, color.b / 255)


def from_hsv(hue: float, saturation: float, value: float) -> Color:
    return _from_unit(*colorsys.hsv_to_rgb(hue, saturation, value))
