"""Collapse clusters that ended up too similar after refinement."""

from loguru import logger

from imagecolors.core.types import Color
from imagecolors.engine.clustering import MINIMUM_SQUARE_DISTANCE, Cluster, square_distance
from imagecolors.engine.ranking import rank


def _blend(source: Cluster, dest: Cluster) -> Color:
    weight = source.ratio / dest.ratio if dest.ratio > 0 else 1.0
    channels = (int(weight * s + (1 - weight) * d) for s, d in zip(source.centroid, dest.centroid))
    return Color(*(min(255, max(0, c)) for c in channels))


def merge_similar(clusters: list[Cluster]) -> list[Cluster]:
    """Fold each cluster into the first higher-ranked one within range.

    Clusters are ranked first, then scanned from the lowest-ranked upward.
    The absorbing cluster takes a ratio-weighted blend of both centroids and
    the sum of both ratios. Survivors are returned ranked.
    """
    ranked = rank(clusters)
    for low in range(len(ranked) - 1, 0, -1):
        source = ranked[low]
        for dest in ranked[:low]:
            if square_distance(source.centroid, dest.centroid) < MINIMUM_SQUARE_DISTANCE:
                dest.centroid = _blend(source, dest)
                dest.ratio += source.ratio
                source.alive = False
                break

    survivors = [c for c in ranked if c.alive]
    if len(survivors) != len(ranked):
        logger.debug('Merged {} similar clusters', len(ranked) - len(survivors))
    return rank(survivors)
