"""Greedy online clustering with bounded refinement.

Each sample joins the first cluster (in list order) whose centroid lies
within MINIMUM_SQUARE_DISTANCE, or starts a new cluster. Centroids are not
updated during a pass. Refinement then runs REFINEMENT_ROUNDS rounds of
"recompute centroids, reset members, reassign everything", which is an
approximate k-means where the number of clusters is discovered.

Large sample sets are split into contiguous chunks assigned on a worker
pool; each chunk builds its own clusters and a single-threaded reduce step
merges them.
"""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import Executor
from dataclasses import dataclass, field

import numpy as np
from loguru import logger

from imagecolors.core.types import Color

# Tuned constant, in square_distance units
MINIMUM_SQUARE_DISTANCE = 32000
PARALLEL_MIN_SAMPLES = 65536
REFINEMENT_ROUNDS = 5

# Samples compared against all centroids at once
_BLOCK_SIZE = 4096

_LOW_RED_WEIGHTS = np.array([2, 4, 3], dtype=np.int64)
_HIGH_RED_WEIGHTS = np.array([3, 4, 2], dtype=np.int64)


def square_distance(first: Sequence[int], second: Sequence[int]) -> int:
    """Redmean-style weighted squared RGB distance.

    The branch is on the signed red difference, so the metric is not
    symmetric for red differences of 128 or more.
    """
    dr = int(first[0]) - int(second[0])
    dg = int(first[1]) - int(second[1])
    db = int(first[2]) - int(second[2])
    if dr < 128:
        return 2 * dr * dr + 4 * dg * dg + 3 * db * db
    return 3 * dr * dr + 4 * dg * dg + 2 * db * db


def square_distances(colors: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """(N, 3) x (K, 3) -> (N, K) matrix of square_distance values."""
    diff = colors[:, None, :].astype(np.int64) - centroids[None, :, :].astype(np.int64)
    weights = np.where(diff[..., :1] < 128, _LOW_RED_WEIGHTS, _HIGH_RED_WEIGHTS)
    return (weights * diff * diff).sum(axis=-1)


@dataclass
class Cluster:
    centroid: Color
    members: list[np.ndarray] = field(default_factory=list)
    ratio: float = 0.0
    # entries in members that are reset centroids rather than samples
    seeds: int = 0
    alive: bool = True

    @property
    def size(self) -> int:
        return sum(len(m) for m in self.members)

    @property
    def sample_count(self) -> int:
        return self.size - self.seeds

    def add(self, colors: np.ndarray) -> None:
        if len(colors):
            self.members.append(colors)

    def absorb(self, other: Cluster) -> None:
        """Take over other's samples. other's slot is marked dead."""
        self.members.extend(m for m in other.members if len(m))
        self.seeds += other.seeds
        other.members = []
        other.alive = False

    def recenter(self) -> None:
        """Move the centroid to the truncated mean of the members, then reset members to it."""
        stacked = np.concatenate(self.members) if self.members else np.empty((0, 3), dtype=np.int32)
        if len(stacked):
            total = stacked.sum(axis=0, dtype=np.int64) // len(stacked)
            self.centroid = Color(int(total[0]), int(total[1]), int(total[2]))
        self.members = [np.array([self.centroid], dtype=np.int32)]
        self.seeds = 1


def position_colors(samples: np.ndarray, clusters: list[Cluster]) -> None:
    """Assign samples to clusters in order, creating clusters as needed.

    Equivalent to visiting each sample and scanning clusters front to back.
    A sample that matches none of the clusters that existed before its
    block can only match clusters created inside the block, so those are
    resolved one by one and everything else is vectorized.
    """
    for start in range(0, len(samples), _BLOCK_SIZE):
        block = samples[start : start + _BLOCK_SIZE]
        existing = len(clusters)

        if existing:
            centroids = np.array([c.centroid for c in clusters], dtype=np.int64)
            within = square_distances(block, centroids) < MINIMUM_SQUARE_DISTANCE
            matched = within.any(axis=1)
            first = within.argmax(axis=1)
            for index in np.unique(first[matched]):
                clusters[index].add(block[matched & (first == index)])
            unmatched = np.flatnonzero(~matched)
        else:
            unmatched = np.arange(len(block))

        pending: dict[int, list[int]] = {}
        for row in unmatched.tolist():
            color = block[row].tolist()
            for index in range(existing, len(clusters)):
                if square_distance(color, clusters[index].centroid) < MINIMUM_SQUARE_DISTANCE:
                    pending[index].append(row)
                    break
            else:
                clusters.append(Cluster(centroid=Color(*color)))
                pending[len(clusters) - 1] = [row]

        for index, rows in pending.items():
            clusters[index].add(block[rows])


def _chunk_bounds(count: int, parts: int) -> list[tuple[int, int]]:
    per_part = count // parts
    bounds = []
    for i in range(parts):
        end = per_part * (i + 1) if i < parts - 1 else count
        bounds.append((per_part * i, end))
    return bounds


def _assign_chunk(chunk: np.ndarray, centroids: list[Color]) -> list[Cluster]:
    local = [Cluster(centroid=c) for c in centroids]
    position_colors(chunk, local)
    return local


def merge_close_clusters(clusters: list[Cluster]) -> list[Cluster]:
    """Pairwise merge of clusters within range; the smaller one is absorbed."""
    for i, first in enumerate(clusters):
        if not first.alive:
            continue
        for second in clusters[i + 1 :]:
            if not second.alive:
                continue
            if square_distance(first.centroid, second.centroid) >= MINIMUM_SQUARE_DISTANCE:
                continue
            if second.size > first.size:
                second.absorb(first)
                break
            first.absorb(second)
    return [c for c in clusters if c.alive]


def position_colors_parallel(
    samples: np.ndarray,
    clusters: list[Cluster],
    executor: Executor | None = None,
    workers: int = 1,
) -> list[Cluster]:
    """Parallel position_colors. Returns the new cluster list.

    Falls back to the serial pass below PARALLEL_MIN_SAMPLES samples or
    without a pool. Every chunk starts from the current centroids; slot i
    of each chunk result maps back to clusters[i], newly created clusters
    are appended in chunk order, and close clusters are merged at the end.
    """
    if executor is None or workers < 2 or len(samples) <= PARALLEL_MIN_SAMPLES:
        position_colors(samples, clusters)
        return clusters

    centroids = [c.centroid for c in clusters]
    chunks = [samples[start:end] for start, end in _chunk_bounds(len(samples), workers)]
    partials = list(executor.map(_assign_chunk, chunks, [centroids] * len(chunks)))

    reduced = list(clusters)
    for partial in partials:
        for slot, local in enumerate(partial[: len(centroids)]):
            reduced[slot].members.extend(local.members)
        reduced.extend(partial[len(centroids) :])
    return merge_close_clusters(reduced)


def cluster_samples(
    samples: np.ndarray,
    executor: Executor | None = None,
    workers: int = 1,
    rounds: int = REFINEMENT_ROUNDS,
) -> list[Cluster]:
    """Cluster samples and set each cluster's population ratio.

    Ratios count real samples from the final assignment pass only, so they
    sum to 1. Clusters left without samples are dropped.
    """
    total = len(samples)
    if total == 0:
        return []

    clusters = position_colors_parallel(samples, [], executor, workers)
    logger.debug('Initial assignment: {} clusters from {} samples', len(clusters), total)

    parallel = executor is not None and workers > 1 and total > PARALLEL_MIN_SAMPLES
    for _ in range(rounds):
        if parallel:
            list(executor.map(Cluster.recenter, clusters))
        else:
            for cluster in clusters:
                cluster.recenter()
        clusters = position_colors_parallel(samples, clusters, executor, workers)

    survivors = []
    for cluster in clusters:
        count = cluster.sample_count
        if count <= 0:
            continue
        cluster.ratio = min(1.0, max(0.0, count / total))
        survivors.append(cluster)
    logger.debug('Refinement done: {} clusters', len(survivors))
    return survivors
