"""ImageColors — asynchronous owner of the current palette.

Holds the current source (a pixel buffer, an image file, or a snapshot
provider), runs generate_palette off the event loop, and publishes each
finished ImageData as one immutable unit.

Every request bumps a generation counter. A computation only publishes if
its generation is still current when it finishes, so a superseded
computation may run to completion but its result is dropped without a
notification.

Snapshot providers are only asked for pixels while the source is visible.
Making it visible again schedules one recompute.

Source listeners (connect_source_changed) fire as soon as set_source
accepts a different source, before any decode or computation. close()
drops whatever is still running.

Usage:

    colors = ImageColors(theme=Theme())
    colors.connect(lambda: print(colors.dominant))
    colors.set_source('cover.png')
    await colors.wait()
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import functools
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from loguru import logger
from PIL import Image

from imagecolors.core.colorutils import gray
from imagecolors.core.env import MAX_WORKERS_CAP, default_snapshot_size, default_workers
from imagecolors.core.types import (
    BLACK,
    WHITE,
    Brightness,
    Color,
    Fallbacks,
    ImageData,
    PaletteSwatch,
    PixelBuffer,
    Theme,
)
from imagecolors.engine import generate_palette, post_process

WHITE_FLOOR = 200
BLACK_CEILING = 80
MID_GRAY = 128
SNAPPED_WHITE = Color(230, 230, 230)
SNAPPED_BLACK = Color(20, 20, 20)


@runtime_checkable
class SnapshotProvider(Protocol):
    """Turns a live visual into pixels. May raise; may be asked repeatedly."""

    async def grab(self, size: tuple[int, int]) -> PixelBuffer: ...


def _load_image_file(path: Path) -> PixelBuffer:
    with Image.open(path) as image:
        return PixelBuffer.from_image(image)


class ImageColors:
    def __init__(
        self,
        theme: Theme | None = None,
        fallbacks: Fallbacks | None = None,
        workers: int | None = None,
        snapshot_size: int | None = None,
    ):
        self.theme = theme
        self.fallbacks = fallbacks or Fallbacks()
        self.snapshot_size = snapshot_size or default_snapshot_size()
        self._workers = max(1, min(MAX_WORKERS_CAP, workers or default_workers()))
        self._pool: ThreadPoolExecutor | None = None

        self._data = ImageData()
        self._generation = 0
        self._source_generation = 0
        self._task: asyncio.Task | None = None

        self._source: Any = None
        self._source_image: PixelBuffer | None = None
        self._snapshot: SnapshotProvider | None = None
        self._visible = True
        self._listeners: list[Callable[[], None]] = []
        self._source_listeners: list[Callable[[], None]] = []

    def connect(self, callback: Callable[[], None]) -> None:
        """Call callback after every successful publish."""
        self._listeners.append(callback)

    def disconnect(self, callback: Callable[[], None]) -> None:
        self._listeners.remove(callback)

    def connect_source_changed(self, callback: Callable[[], None]) -> None:
        """Call callback whenever set_source accepts a new source."""
        self._source_listeners.append(callback)

    def disconnect_source_changed(self, callback: Callable[[], None]) -> None:
        self._source_listeners.remove(callback)

    @property
    def source(self) -> Any:
        """The source as given to set_source, set as soon as it is accepted."""
        return self._source

    @property
    def source_image(self) -> PixelBuffer | None:
        return self._source_image

    def set_source(self, source: Any) -> asyncio.Task | None:
        """Accept a PixelBuffer, a Pillow image, a file path, a SnapshotProvider or None.

        Any computation in flight for the previous source is superseded.
        Image files are decoded off the event loop; a newer set_source call
        discards a decode that has not finished yet. Returns the task that
        will publish, if any.
        """
        if not isinstance(source, (type(None), PixelBuffer, Image.Image, SnapshotProvider, str, Path)):
            raise TypeError(f'Unsupported image source: {type(source).__name__}')

        self._source_generation += 1
        if source is not self._source:
            self._source = source
            for callback in list(self._source_listeners):
                callback()

        if source is None or isinstance(source, PixelBuffer):
            return self.set_source_image(source)
        if isinstance(source, Image.Image):
            return self.set_source_image(PixelBuffer.from_image(source))
        if isinstance(source, SnapshotProvider):
            return self.set_source_item(source)

        self._supersede()
        self._task = asyncio.get_running_loop().create_task(self._load_file(source, self._source_generation))
        return self._task

    async def _load_file(self, source: str | Path, source_generation: int) -> None:
        path = Path(source.removeprefix('file://')) if isinstance(source, str) else source
        loop = asyncio.get_running_loop()
        try:
            buffer = await loop.run_in_executor(None, _load_image_file, path)
        except OSError as exc:
            logger.warning('Could not load image {}: {}', path, exc)
            return
        if source_generation != self._source_generation:
            logger.debug('Dropping superseded image load {}', path)
            return
        task = self.set_source_image(buffer)
        if task is not None:
            await task

    def set_source_image(self, buffer: PixelBuffer | None) -> asyncio.Task | None:
        self._snapshot = None
        self._source_image = buffer
        return self.update()

    def set_source_item(self, provider: SnapshotProvider, visible: bool = True) -> asyncio.Task | None:
        self._snapshot = provider
        self._visible = visible
        return self.update()

    @property
    def visible(self) -> bool:
        return self._visible

    def set_visible(self, visible: bool) -> asyncio.Task | None:
        """Report visibility of a snapshot source. Becoming visible recomputes once."""
        if visible == self._visible:
            return None
        self._visible = visible
        if visible and self._snapshot is not None:
            return self.update()
        return None

    def update(self) -> asyncio.Task | None:
        """Start a new computation, superseding any in flight.

        Returns the task that will publish, or None when nothing needs to run
        (empty source published immediately, or snapshot source hidden).
        """
        generation = self._supersede()

        if self._snapshot is not None:
            if not self._visible:
                return None
            coro = self._grab_and_compute(self._snapshot, generation)
        elif self._source_image is None or self._source_image.is_null():
            self._publish(ImageData())
            return None
        else:
            coro = self._compute(self._source_image, generation)

        self._task = asyncio.get_running_loop().create_task(coro)
        return self._task

    def _supersede(self) -> int:
        """Invalidate every computation started so far and return the new generation."""
        self._generation += 1
        return self._generation

    async def wait(self) -> None:
        """Wait for the most recently started computation to finish."""
        if self._task is not None:
            await self._task

    def _executor(self) -> ThreadPoolExecutor | None:
        if self._workers < 2:
            return None
        if self._pool is None:
            self._pool = ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix='imagecolors')
        return self._pool

    async def _grab_and_compute(self, provider: SnapshotProvider, generation: int) -> None:
        try:
            buffer = await provider.grab((self.snapshot_size, self.snapshot_size))
        except Exception as exc:
            logger.warning('Snapshot failed, keeping previous palette: {}', exc)
            return
        if generation != self._generation:
            logger.debug('Dropping stale snapshot for generation {}', generation)
            return
        self._source_image = buffer
        await self._compute(buffer, generation)

    async def _compute(self, buffer: PixelBuffer, generation: int) -> None:
        if generation != self._generation:
            return
        loop = asyncio.get_running_loop()
        # The outer job runs on the loop's default executor so it never
        # competes with its own chunk jobs for a slot in the worker pool.
        job = functools.partial(generate_palette, buffer, self._executor(), self._workers)
        try:
            data = await loop.run_in_executor(None, job)
        except (RuntimeError, concurrent.futures.CancelledError) as exc:
            # close() shut the chunk pool down under a running job
            if generation == self._generation:
                raise
            logger.debug('Dropping generation {} interrupted by shutdown: {}', generation, exc)
            return

        if generation != self._generation:
            logger.debug('Dropping stale result for generation {}', generation)
            return
        if self.theme is not None and not data.is_empty():
            data = post_process(data, self.theme)
        self._publish(data)

    def _publish(self, data: ImageData) -> None:
        self._data = data
        for callback in list(self._listeners):
            callback()

    def close(self) -> None:
        """Drop any computation in flight and shut the worker pool down."""
        self._supersede()
        if self._pool is not None:
            self._pool.shutdown(wait=False, cancel_futures=True)
            self._pool = None

    @property
    def image_data(self) -> ImageData:
        return self._data

    def _theme(self) -> Theme:
        return self.theme or Theme()

    @property
    def palette(self) -> list[PaletteSwatch]:
        if self._data.is_empty():
            return list(self.fallbacks.palette)
        return list(self._data.palette)

    @property
    def palette_brightness(self) -> Brightness:
        if self._data.is_empty():
            return self.fallbacks.palette_brightness
        return Brightness.DARK if gray(self._data.dominant) < MID_GRAY else Brightness.LIGHT

    @property
    def average(self) -> Color:
        if self._data.is_empty():
            return self.fallbacks.average or self._theme().link_background
        return self._data.average

    @property
    def dominant(self) -> Color:
        if self._data.is_empty():
            return self.fallbacks.dominant or self._theme().link_background
        return self._data.dominant

    @property
    def dominant_contrast(self) -> Color:
        if self._data.is_empty():
            return self.fallbacks.dominant_contrast or self._theme().link_background
        return self._data.dominant_contrast

    @property
    def highlight(self) -> Color:
        if self._data.is_empty():
            return self.fallbacks.highlight or self._theme().link
        return self._data.highlight

    def _snapped_white(self) -> Color:
        color = self._data.closest_to_white
        return SNAPPED_WHITE if gray(color) < WHITE_FLOOR else color

    def _snapped_black(self) -> Color:
        color = self._data.closest_to_black
        return SNAPPED_BLACK if gray(color) > BLACK_CEILING else color

    @property
    def foreground(self) -> Color:
        if self._data.is_empty():
            return self.fallbacks.foreground or self._theme().text
        if self.palette_brightness is Brightness.DARK:
            return self._snapped_white()
        return self._snapped_black()

    @property
    def background(self) -> Color:
        if self._data.is_empty():
            return self.fallbacks.background or self._theme().background
        if self.palette_brightness is Brightness.DARK:
            return self._snapped_black()
        return self._snapped_white()

    @property
    def closest_to_white(self) -> Color:
        if self._data.is_empty():
            return WHITE
        return self._snapped_white()

    @property
    def closest_to_black(self) -> Color:
        if self._data.is_empty():
            return BLACK
        return self._snapped_black()
