"""imagecolors — Extract a ranked colour palette and theming colours from an image.

Usage: imagecolors <image> [options]

Prints the palette (colour, share of sampled pixels, contrast colour) and
the derived colours: dominant, dominant contrast, highlight, average,
foreground, background, closest to white and closest to black.

Passing --background (and optionally --text / --link) describes the host
theme; dominant, highlight and average are then adjusted to contrast with it.

Environment variables / .env loading:
  OS environment variables are always used first.
  If a variable is not set, imagecolors looks for a .env file starting from
  the current directory and walking up, stopping at the nearest .git boundary.
  Use --env-file to override the .env location explicitly.

  IMAGECOLORS_LOG_LEVEL, IMAGECOLORS_MAX_WORKERS, IMAGECOLORS_SNAPSHOT_SIZE
"""

import argparse
import asyncio
import os
import sys

from PIL import Image

from imagecolors.core.colorutils import hex_to_rgb
from imagecolors.core.env import MAX_WORKERS_CAP, Settings, load_env
from imagecolors.core.log import configure_logging
from imagecolors.core.report import format_json, format_text
from imagecolors.core.types import Color, PixelBuffer, Report, Theme
from imagecolors.image_colors import ImageColors


def _hex_color(value: str) -> Color:
    h = value.strip().lstrip('#')
    if len(h) not in (3, 6) or any(ch not in '0123456789abcdefABCDEF' for ch in h):
        raise argparse.ArgumentTypeError(f'not a hex colour: {value!r}')
    return hex_to_rgb(h)


def _build_parser() -> argparse.ArgumentParser:
    epilog = (
        'Examples:\n'
        '  imagecolors cover.png\n'
        '  imagecolors cover.png --json\n'
        '  imagecolors cover.png --background "#31363b" --text "#fcfcfc"\n'
        '  imagecolors wallpaper.jpg --workers 4\n'
    )
    parser = argparse.ArgumentParser(
        prog='imagecolors',
        description='Extract a ranked colour palette and theming colours from an image.',
        epilog=epilog,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        '--env-file',
        metavar='PATH',
        default=None,
        help='Path to .env file (default: walk up from cwd to .git boundary)',
    )
    parser.add_argument('image', help='Path to image file (anything Pillow can open)')
    parser.add_argument('-j', '--json', action='store_true', help='Output JSON instead of text')
    parser.add_argument('-b', '--background', type=_hex_color, help='Theme background colour; enables adjustment')
    parser.add_argument('-t', '--text', type=_hex_color, help='Theme text colour (default: #232629)')
    parser.add_argument('-l', '--link', type=_hex_color, help='Theme link colour (default: #2980b9)')
    parser.add_argument(
        '-w',
        '--workers',
        type=int,
        default=None,
        metavar='N',
        help=f'Clustering workers, 1..{MAX_WORKERS_CAP} (default: IMAGECOLORS_MAX_WORKERS or CPU count)',
    )
    return parser


def _theme_from_args(args: argparse.Namespace) -> Theme | None:
    if args.background is None:
        return None
    defaults = Theme()
    return Theme(
        background=args.background,
        text=args.text or defaults.text,
        link=args.link or defaults.link,
        link_background=defaults.link_background,
    )


async def _extract(buffer: PixelBuffer, theme: Theme | None, settings: Settings) -> ImageColors:
    colors = ImageColors(theme=theme, workers=settings.max_workers, snapshot_size=settings.snapshot_size)
    try:
        colors.set_source(buffer)
        await colors.wait()
    finally:
        colors.close()
    return colors


def _build_report(image_path: str, image: Image.Image, colors: ImageColors, adjusted: bool) -> Report:
    report = Report(
        image_path=image_path,
        image_width=image.width,
        image_height=image.height,
        brightness=colors.palette_brightness,
        palette=colors.palette,
        adjusted=adjusted,
    )
    report.add('dominant', colors.dominant)
    report.add('dominant_contrast', colors.dominant_contrast)
    report.add('highlight', colors.highlight)
    report.add('average', colors.average)
    report.add('foreground', colors.foreground)
    report.add('background', colors.background)
    report.add('closest_to_white', colors.closest_to_white)
    report.add('closest_to_black', colors.closest_to_black)
    return report


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    # Load .env before anything else; OS env vars always win
    env_path = load_env(env_file=args.env_file)
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    if env_path:
        print(f'imagecolors: loaded {env_path}', file=sys.stderr)

    if not os.path.isfile(args.image):
        print(f'Error: image not found: {args.image}', file=sys.stderr)
        sys.exit(1)

    if args.workers is not None:
        settings.max_workers = max(1, min(MAX_WORKERS_CAP, args.workers))
    theme = _theme_from_args(args)

    with Image.open(args.image) as image:
        buffer = PixelBuffer.from_image(image)
        colors = asyncio.run(_extract(buffer, theme, settings))
        report = _build_report(args.image, image, colors, adjusted=theme is not None)

    if args.json:
        print(format_json(report))
    else:
        print(format_text(report))


if __name__ == '__main__':
    main()
