"""imagecolors.engine — the palette extraction algorithms.

sampler -> clustering -> merge -> ranking, plus the perceptual adjuster.
Everything here is synchronous and free of shared state.
"""

from imagecolors.engine.adjust import post_process
from imagecolors.engine.pipeline import generate_palette

__all__ = ['generate_palette', 'post_process']
