"""The full palette computation, from pixel buffer to ImageData.

buffer -> samples -> clusters -> merged, ranked clusters -> ImageData.
Pure function of its input; safe to run on any thread.
"""

from concurrent.futures import Executor

from loguru import logger

from imagecolors.core.types import ImageData, PixelBuffer
from imagecolors.engine.clustering import cluster_samples
from imagecolors.engine.merge import merge_similar
from imagecolors.engine.ranking import build_image_data
from imagecolors.engine.sampler import sample


def generate_palette(buffer: PixelBuffer | None, executor: Executor | None = None, workers: int = 1) -> ImageData:
    samples = sample(buffer)
    if samples.count == 0:
        logger.debug('No usable pixels, returning empty result')
        return ImageData()

    clusters = merge_similar(cluster_samples(samples.colors, executor, workers))
    logger.debug('Palette of {} colours from {} samples', len(clusters), samples.count)
    return build_image_data(clusters, samples.average)
