"""Saliency ranking and derived colour selection.

A cluster's saliency is its population ratio times the CIELAB chroma of
its centroid, so a small but vivid cluster can outrank a large dull one.
Sorting is stable: on equal scores the cluster seen first wins.
"""

from collections.abc import Sequence

from imagecolors.core.colorutils import chroma, gray, inverted, lightness, with_lightness
from imagecolors.core.types import BLACK, WHITE, Color, ImageData, PaletteSwatch
from imagecolors.engine.clustering import MINIMUM_SQUARE_DISTANCE, Cluster, square_distance

LIGHT_CONTRAST = Color(230, 230, 230)
DARK_CONTRAST = Color(20, 20, 20)

# At or below this many clusters the palette is too small to pick a contrast from
_SMALL_PALETTE = 3
_DARK_DOMINANT_GRAY = 120
_CONTRAST_NUDGE = 20


def score(cluster: Cluster) -> float:
    return cluster.ratio * chroma(cluster.centroid)


def rank(clusters: Sequence[Cluster]) -> list[Cluster]:
    return sorted(clusters, key=score, reverse=True)


def contrast_color(color: Color, clusters: Sequence[Cluster], dominant: Color) -> Color:
    """Pick a colour that reads well on top of `color`.

    Starts from the inverse of `color` pushed to the opposite side of mid
    lightness, then prefers a real palette colour close to it.
    """
    inverse = inverted(color)
    naive = with_lightness(inverse, 128 + (128 - lightness(inverse)))

    if len(clusters) <= _SMALL_PALETTE:
        return LIGHT_CONTRAST if gray(dominant) < _DARK_DOMINANT_GRAY else DARK_CONTRAST

    nearest = min((c.centroid for c in clusters), key=lambda centroid: square_distance(naive, centroid))
    if square_distance(naive, nearest) < MINIMUM_SQUARE_DISTANCE:
        return naive

    level = lightness(nearest)
    if level > 128:
        return with_lightness(nearest, min(level + _CONTRAST_NUDGE, 255))
    return with_lightness(nearest, max(0, level - _CONTRAST_NUDGE))


def build_image_data(clusters: Sequence[Cluster], average: Color | None) -> ImageData:
    """Turn ranked clusters into the published result.

    `clusters` must already be ranked. dominant is the top cluster, highlight
    the most chromatic one, and closest_to_white / closest_to_black the
    extremes by gray level.
    """
    if not clusters:
        return ImageData(average=average)

    dominant = clusters[0].centroid
    highlight = dominant
    highlight_chroma = chroma(dominant)
    closest_to_white = BLACK
    closest_to_black = WHITE
    swatches = []

    for cluster in clusters:
        color = cluster.centroid
        contrast = contrast_color(color, clusters, dominant)
        swatches.append(PaletteSwatch(ratio=cluster.ratio, color=color, contrast_color=contrast))

        color_chroma = chroma(color)
        if color_chroma > highlight_chroma:
            highlight, highlight_chroma = color, color_chroma
        if gray(color) > gray(closest_to_white):
            closest_to_white = color
        if gray(color) < gray(closest_to_black):
            closest_to_black = color

    return ImageData(
        palette=tuple(swatches),
        average=average,
        dominant=dominant,
        dominant_contrast=swatches[0].contrast_color,
        highlight=highlight,
        closest_to_black=closest_to_black,
        closest_to_white=closest_to_white,
    )
