"""Tests for imagecolors.image_colors — publishing, fallbacks, supersession, snapshot sources."""

import asyncio
import threading
from pathlib import Path

import numpy as np
import pytest
from conftest import BLUE, CLEAR, RED, buffer_from_pixels, solid_buffer
from imagecolors.core.env import MAX_WORKERS_CAP
from imagecolors.core.types import Brightness, Color, Fallbacks, PaletteSwatch, PixelBuffer, Theme
from imagecolors.engine import generate_palette, post_process
from imagecolors.image_colors import ImageColors
from PIL import Image


class Counter:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


class FakeSnapshot:
    def __init__(self, buffer: PixelBuffer | None = None, error: Exception | None = None):
        self.buffer = buffer
        self.error = error
        self.sizes: list[tuple[int, int]] = []

    async def grab(self, size: tuple[int, int]) -> PixelBuffer:
        self.sizes.append(size)
        if self.error is not None:
            raise self.error
        return self.buffer


@pytest.fixture
def colors():
    instance = ImageColors(workers=1)
    yield instance
    instance.close()


class TestFallbacks:
    def test_theme_defaults_before_first_publish(self, colors: ImageColors):
        theme = Theme()
        assert colors.palette == []
        assert colors.palette_brightness is Brightness.LIGHT
        assert colors.dominant == theme.link_background
        assert colors.average == theme.link_background
        assert colors.dominant_contrast == theme.link_background
        assert colors.highlight == theme.link
        assert colors.foreground == theme.text
        assert colors.background == theme.background
        assert colors.closest_to_white == Color(255, 255, 255)
        assert colors.closest_to_black == Color(0, 0, 0)

    def test_configured_fallbacks_win(self):
        swatch = PaletteSwatch(ratio=1.0, color=Color(1, 2, 3), contrast_color=Color(4, 5, 6))
        fallbacks = Fallbacks(
            palette=[swatch],
            palette_brightness=Brightness.DARK,
            dominant=Color(9, 9, 9),
            highlight=Color(8, 8, 8),
        )
        colors = ImageColors(fallbacks=fallbacks, workers=1)
        assert colors.palette == [swatch]
        assert colors.palette_brightness is Brightness.DARK
        assert colors.dominant == Color(9, 9, 9)
        assert colors.highlight == Color(8, 8, 8)

    def test_theme_supplies_fallbacks(self):
        theme = Theme(link=Color(1, 1, 1), text=Color(2, 2, 2))
        colors = ImageColors(theme=theme, workers=1)
        assert colors.highlight == Color(1, 1, 1)
        assert colors.foreground == Color(2, 2, 2)


class TestPublish:
    @pytest.mark.asyncio
    async def test_one_notification_per_publish(self, colors: ImageColors, red_blue: PixelBuffer):
        counter = Counter()
        colors.connect(counter)
        task = colors.set_source(red_blue)
        assert task is not None
        await task
        assert counter.calls == 1
        assert colors.image_data == generate_palette(red_blue)

    @pytest.mark.asyncio
    async def test_accessors_after_publish(self, colors: ImageColors, red_blue: PixelBuffer):
        colors.set_source(red_blue)
        await colors.wait()
        assert colors.dominant == Color(0, 0, 255)
        assert colors.highlight == Color(0, 0, 255)
        assert colors.average == Color(127, 0, 127)
        assert colors.palette_brightness is Brightness.DARK
        # closest to white is red (gray 87), snapped because it is below 200
        assert colors.closest_to_white == Color(230, 230, 230)
        assert colors.closest_to_black == Color(0, 0, 255)
        assert colors.foreground == Color(230, 230, 230)
        assert colors.background == Color(0, 0, 255)
        assert len(colors.palette) == 2

    @pytest.mark.asyncio
    async def test_light_palette_foreground_and_background(self, colors: ImageColors):
        colors.set_source(solid_buffer((255, 255, 100, 255)))
        await colors.wait()
        assert colors.palette_brightness is Brightness.LIGHT
        assert colors.closest_to_white == Color(255, 255, 100)
        assert colors.background == Color(255, 255, 100)
        # gray 230 is above the black ceiling
        assert colors.foreground == Color(20, 20, 20)
        assert colors.closest_to_black == Color(20, 20, 20)

    @pytest.mark.asyncio
    async def test_solid_dark_colour_not_snapped_to_black(self, colors: ImageColors):
        colors.set_source(solid_buffer((120, 0, 0, 255)))
        await colors.wait()
        assert colors.closest_to_black == Color(120, 0, 0)

    @pytest.mark.asyncio
    async def test_transparent_image_publishes_empty_result(self, colors: ImageColors):
        counter = Counter()
        colors.connect(counter)
        colors.set_source(solid_buffer(CLEAR))
        await colors.wait()
        assert counter.calls == 1
        assert colors.palette == []
        assert colors.dominant == Theme().link_background

    @pytest.mark.asyncio
    async def test_none_source_publishes_immediately(self, colors: ImageColors, red_blue: PixelBuffer):
        colors.set_source(red_blue)
        await colors.wait()
        counter = Counter()
        colors.connect(counter)
        assert colors.set_source(None) is None
        assert counter.calls == 1
        assert colors.image_data.is_empty()

    @pytest.mark.asyncio
    async def test_pillow_image_source(self, colors: ImageColors):
        colors.set_source(Image.new('RGB', (3, 3), (255, 0, 0)))
        await colors.wait()
        assert colors.dominant == Color(255, 0, 0)

    @pytest.mark.asyncio
    async def test_disconnect(self, colors: ImageColors, red_blue: PixelBuffer):
        counter = Counter()
        colors.connect(counter)
        colors.disconnect(counter)
        colors.set_source(red_blue)
        await colors.wait()
        assert counter.calls == 0

    def test_unsupported_source(self, colors: ImageColors):
        with pytest.raises(TypeError):
            colors.set_source(42)


class TestTheme:
    @pytest.mark.asyncio
    async def test_adjustment_applied_when_theme_attached(self, red_blue: PixelBuffer):
        theme = Theme(background=Color(30, 30, 30), text=Color(250, 250, 250))
        colors = ImageColors(theme=theme, workers=1)
        colors.set_source(red_blue)
        await colors.wait()
        expected = post_process(generate_palette(red_blue), theme)
        assert colors.image_data == expected
        assert colors.dominant == expected.dominant


class TestSupersession:
    @pytest.mark.asyncio
    async def test_second_request_wins(self, colors: ImageColors):
        counter = Counter()
        colors.connect(counter)
        first = colors.set_source(solid_buffer(RED, 64, 64))
        second = colors.set_source(solid_buffer(BLUE, 64, 64))
        await asyncio.gather(first, second)
        assert counter.calls == 1
        assert colors.dominant == Color(0, 0, 255)

    @pytest.mark.asyncio
    async def test_explicit_update_supersedes(self, colors: ImageColors, red_blue: PixelBuffer):
        counter = Counter()
        colors.connect(counter)
        initial = colors.set_source(red_blue)
        first = colors.update()
        second = colors.update()
        await asyncio.gather(initial, first, second)
        assert counter.calls == 1

    @pytest.mark.asyncio
    async def test_pending_file_load_discarded(self, colors: ImageColors, tmp_path: Path):
        path = tmp_path / 'red.png'
        Image.new('RGB', (8, 8), (255, 0, 0)).save(path)
        loading = colors.set_source(str(path))
        colors.set_source(buffer_from_pixels([BLUE] * 4, width=2))
        await loading
        await colors.wait()
        assert colors.dominant == Color(0, 0, 255)

    @pytest.mark.asyncio
    async def test_file_source_supersedes_running_buffer(self, colors: ImageColors, tmp_path: Path):
        path = tmp_path / 'blue.png'
        Image.new('RGB', (300, 300), (0, 0, 255)).save(path)
        published: list[Color] = []
        colors.connect(lambda: published.append(colors.dominant))

        earlier = colors.set_source(solid_buffer(RED, 4, 4))
        loading = colors.set_source(str(path))
        await asyncio.gather(earlier, loading)
        await colors.wait()
        assert published == [Color(0, 0, 255)]


class TestShutdown:
    @pytest.mark.asyncio
    async def test_close_during_parallel_computation(self, monkeypatch: pytest.MonkeyPatch):
        started = threading.Event()
        release = threading.Event()

        def held_generate_palette(buffer, executor, workers):
            started.set()
            release.wait(timeout=10)
            return generate_palette(buffer, executor, workers)

        monkeypatch.setattr('imagecolors.image_colors.generate_palette', held_generate_palette)
        rng = np.random.default_rng(7)
        rgba = rng.integers(0, 256, size=(400, 400, 4), dtype=np.uint8)
        rgba[..., 3] = 255
        buffer = PixelBuffer(width=400, height=400, stride=1600, data=rgba.tobytes())

        colors = ImageColors(workers=4)
        counter = Counter()
        colors.connect(counter)
        task = colors.set_source(buffer)
        await asyncio.get_running_loop().run_in_executor(None, started.wait, 10)
        colors.close()
        release.set()

        await task
        assert counter.calls == 0
        assert colors.image_data.is_empty()

    @pytest.mark.asyncio
    async def test_close_before_start_drops_result(self, red_blue: PixelBuffer):
        colors = ImageColors(workers=1)
        counter = Counter()
        colors.connect(counter)
        task = colors.set_source(red_blue)
        colors.close()
        await task
        assert counter.calls == 0


class TestWorkers:
    def test_capped(self):
        colors = ImageColors(workers=32)
        try:
            assert colors._workers == MAX_WORKERS_CAP
            assert colors._executor()._max_workers == MAX_WORKERS_CAP
        finally:
            colors.close()

    def test_single_worker_has_no_pool(self):
        assert ImageColors(workers=1)._executor() is None


class TestSourceChanged:
    @pytest.mark.asyncio
    async def test_notifies_once_per_new_source(self, colors: ImageColors, red_blue: PixelBuffer, tmp_path: Path):
        path = tmp_path / 'missing.png'
        counter = Counter()
        colors.connect_source_changed(counter)

        first = colors.set_source(red_blue)
        second = colors.set_source(red_blue)
        assert counter.calls == 1

        loading = colors.set_source(path)
        assert counter.calls == 2
        assert colors.source == path
        await asyncio.gather(first, second, loading)
        # a failed decode keeps the requested source
        assert colors.source == path

    def test_rejected_source_leaves_state(self, colors: ImageColors):
        counter = Counter()
        colors.connect_source_changed(counter)
        with pytest.raises(TypeError):
            colors.set_source(3.5)
        assert counter.calls == 0
        assert colors.source is None


class TestFileSource:
    @pytest.mark.asyncio
    async def test_loads_image_file(self, colors: ImageColors, tmp_path: Path):
        path = tmp_path / 'green.png'
        Image.new('RGB', (8, 8), (0, 200, 0)).save(path)
        colors.set_source(path)
        await colors.wait()
        assert colors.dominant == Color(0, 200, 0)
        assert colors.source == path

    @pytest.mark.asyncio
    async def test_file_url(self, colors: ImageColors, tmp_path: Path):
        path = tmp_path / 'green.png'
        Image.new('RGB', (8, 8), (0, 200, 0)).save(path)
        colors.set_source(f'file://{path}')
        await colors.wait()
        assert colors.dominant == Color(0, 200, 0)

    @pytest.mark.asyncio
    async def test_unreadable_file_keeps_previous(self, colors: ImageColors, red_blue: PixelBuffer, tmp_path: Path):
        colors.set_source(red_blue)
        await colors.wait()
        before = colors.image_data

        counter = Counter()
        colors.connect(counter)
        bad = tmp_path / 'broken.png'
        bad.write_bytes(b'not an image')
        colors.set_source(bad)
        await colors.wait()
        assert counter.calls == 0
        assert colors.image_data is before


class TestSnapshotSource:
    @pytest.mark.asyncio
    async def test_grabs_at_snapshot_size(self, red_blue: PixelBuffer):
        colors = ImageColors(workers=1, snapshot_size=64)
        provider = FakeSnapshot(red_blue)
        colors.set_source(provider)
        await colors.wait()
        assert provider.sizes == [(64, 64)]
        assert colors.dominant == Color(0, 0, 255)
        assert colors.source_image == red_blue

    @pytest.mark.asyncio
    async def test_hidden_source_not_grabbed_until_visible(self, colors: ImageColors, red_blue: PixelBuffer):
        counter = Counter()
        colors.connect(counter)
        provider = FakeSnapshot(red_blue)
        assert colors.set_source_item(provider, visible=False) is None
        assert colors.update() is None
        assert provider.sizes == []

        task = colors.set_visible(True)
        assert task is not None
        await task
        assert provider.sizes == [(128, 128)]
        assert counter.calls == 1

        assert colors.set_visible(True) is None
        assert provider.sizes == [(128, 128)]

    @pytest.mark.asyncio
    async def test_failed_snapshot_keeps_previous(self, colors: ImageColors, red_blue: PixelBuffer):
        colors.set_source(FakeSnapshot(red_blue))
        await colors.wait()
        before = colors.image_data

        counter = Counter()
        colors.connect(counter)
        colors.set_source(FakeSnapshot(error=RuntimeError('window gone')))
        await colors.wait()
        assert counter.calls == 0
        assert colors.image_data is before

    @pytest.mark.asyncio
    async def test_hiding_drops_in_flight_snapshot(self, colors: ImageColors, red_blue: PixelBuffer):
        counter = Counter()
        colors.connect(counter)
        task = colors.set_source(FakeSnapshot(red_blue))
        colors.set_visible(False)
        colors.update()
        await task
        assert counter.calls == 0

    @pytest.mark.asyncio
    async def test_snapshot_size_from_environment(self, monkeypatch: pytest.MonkeyPatch, red_blue: PixelBuffer):
        monkeypatch.setenv('IMAGECOLORS_SNAPSHOT_SIZE', '32')
        colors = ImageColors(workers=1)
        provider = FakeSnapshot(red_blue)
        colors.set_source(provider)
        await colors.wait()
        assert provider.sizes == [(32, 32)]
