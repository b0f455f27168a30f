"""Logging setup. The library logs through loguru; the CLI configures the sink."""

import sys

from loguru import logger

LOG_FORMAT = '{time:YYYY-MM-DD HH:mm:ss} | {level} | {message} | {extra}'


def configure_logging(level: str = 'WARNING') -> None:
    """Replace loguru's default handler with a single stderr sink at `level`."""
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level.upper(), serialize=False)
