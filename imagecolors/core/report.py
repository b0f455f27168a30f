"""Report builder — text and JSON output for imagecolors results."""

import json
from typing import Any

from imagecolors.core.types import Report


def format_text(report: Report) -> str:
    """Format report as human-readable text."""
    lines = []
    dim = f'{report.image_width}×{report.image_height}'
    lines.append(f'imagecolors: {report.image_path} ({dim})')
    lines.append('')

    if not report.palette:
        lines.append('no usable colours (empty palette, fallbacks shown)')
    else:
        lines.append(f'── palette ({len(report.palette)} colours)')
        for swatch in report.palette:
            lines.append(f'  {swatch.color.hex()}  {swatch.ratio * 100:5.1f}%  contrast {swatch.contrast_color.hex()}')
    lines.append('')

    suffix = ' (adjusted for theme)' if report.adjusted else ''
    lines.append(f'── derived{suffix}')
    if report.brightness is not None:
        lines.append(f'  brightness: {report.brightness.value}')
    for name, color in report.colors.items():
        lines.append(f'  {name:<18} {color.hex()}')
    return '\n'.join(lines)


def format_json(report: Report) -> str:
    """Format report as JSON."""
    obj: dict[str, Any] = {
        'image': report.image_path,
        'dimensions': {'width': report.image_width, 'height': report.image_height},
        'palette': [
            {'color': s.color.hex(), 'ratio': round(s.ratio, 4), 'contrast': s.contrast_color.hex()}
            for s in report.palette
        ],
        'brightness': report.brightness.value if report.brightness is not None else None,
        'colors': {name: color.hex() for name, color in report.colors.items()},
        'adjusted': report.adjusted,
    }
    return json.dumps(obj, indent=2)
