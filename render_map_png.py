#!/usr/bin/env python3
"""
Render a calibration map from an ECU image to a PNG heatmap.

Cells are coloured on a blue -> cyan -> green -> yellow -> red ramp between
the table's minimum and maximum.  With ``--compare`` every cell that differs
from the second image by more than 0.01 gets a corner marker (green for an
increase, red for a decrease).  Example:

    python render_map_png.py 964.bin --map fuel -o fuel.png --cell-size 40
"""

from __future__ import annotations

import argparse
import math
import sys
from pathlib import Path
from typing import Optional, Sequence, Tuple

from PIL import Image, ImageDraw

from ecumap import api
from ecumap.catalog import DEFAULT_PRESET, PRESETS, load_catalog
from ecumap.differ import diff
from ecumap.entities import DeltaTable, Table
from ecumap.errors import EcuMapError
from ecumap.export import load_axis, rpm_axis

COMPARE_TOLERANCE = 0.01
MARGIN_LEFT = 48
MARGIN_TOP = 28
LEGEND_WIDTH = 24


def value_to_color(value: float, low: float, high: float) -> Tuple[int, int, int]:
    normalized = (value - low) / (high - low) if high != low else 0.5
    if math.isnan(normalized):
        normalized = 0.5
    if normalized < 0.25:
        r, g, b = 0.0, normalized / 0.25, 1.0
    elif normalized < 0.5:
        t = (normalized - 0.25) / 0.25
        r, g, b = 0.0, 1.0, 1.0 - t
    elif normalized < 0.75:
        t = (normalized - 0.5) / 0.25
        r, g, b = t, 1.0, 0.0
    else:
        t = min((normalized - 0.75) / 0.25, 1.0)
        r, g, b = 1.0, 1.0 - t, 0.0
    return int(r * 255), int(g * 255), int(b * 255)


def render_png(
    table: Table,
    destination: Path,
    *,
    cell_size: int = 32,
    delta: Optional[DeltaTable] = None,
    show_values: bool = False,
) -> None:
    rows, cols = table.shape
    low, high = table.min_max()
    width = MARGIN_LEFT + cols * cell_size + LEGEND_WIDTH * 2
    height = MARGIN_TOP + rows * cell_size + 8

    image = Image.new("RGB", (width, height), (255, 255, 255))
    draw = ImageDraw.Draw(image)

    for col, rpm in enumerate(rpm_axis(cols)):
        if col % max(1, cols // 8) == 0:
            draw.text((MARGIN_LEFT + col * cell_size + 2, 4), str(rpm), fill="black")
    for row, load in enumerate(load_axis(rows)):
        draw.text((4, MARGIN_TOP + row * cell_size + cell_size // 3), f"{load}%", fill="black")

    for row in range(rows):
        for col in range(cols):
            value = table.cell(row, col)
            x0 = MARGIN_LEFT + col * cell_size
            y0 = MARGIN_TOP + row * cell_size
            box = [x0, y0, x0 + cell_size - 1, y0 + cell_size - 1]
            draw.rectangle(box, fill=value_to_color(value, low, high), outline=(64, 64, 64))
            if show_values and cell_size >= 28:
                draw.text((x0 + 2, y0 + cell_size // 3), f"{value:.1f}", fill="black")
            if delta is not None:
                change = delta.cell(row, col)
                if abs(change) > COMPARE_TOLERANCE:
                    marker = (0, 200, 0) if change > 0 else (220, 0, 0)
                    right = x0 + cell_size - 2
                    draw.polygon([(right - 6, y0 + 2), (right, y0 + 2), (right, y0 + 8)], fill=marker)

    legend_x = MARGIN_LEFT + cols * cell_size + LEGEND_WIDTH // 2
    legend_h = rows * cell_size
    for step in range(legend_h):
        # top of the legend is the maximum
        value = high - (high - low) * step / max(legend_h - 1, 1)
        draw.line(
            [(legend_x, MARGIN_TOP + step), (legend_x + LEGEND_WIDTH - 8, MARGIN_TOP + step)],
            fill=value_to_color(value, low, high),
        )

    destination.parent.mkdir(parents=True, exist_ok=True)
    image.save(destination)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render an ECU calibration map to a PNG heatmap.")
    parser.add_argument("input", type=Path, help="ECU binary image")
    parser.add_argument("-o", "--output", type=Path, help="Destination PNG (defaults to <input>_<map>.png)")
    parser.add_argument("--map", default="fuel", help="Map name or alias (default: fuel)")
    parser.add_argument("--compare", type=Path, help="Second image; mark cells that differ from it")
    parser.add_argument("--cell-size", type=int, default=32, help="Cell edge length in pixels")
    parser.add_argument("--values", action="store_true", help="Print cell values inside the cells")
    parser.add_argument("--preset", default=DEFAULT_PRESET, choices=sorted(PRESETS))
    parser.add_argument("--catalog", type=Path, help="JSON catalog override")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        catalog = load_catalog(args.preset, args.catalog)
        descriptor = catalog.select(args.map)[0]
        table = api.read_table(args.input, descriptor)
        delta = diff(table, api.read_table(args.compare, descriptor)) if args.compare else None
    except (EcuMapError, ValueError, OSError) as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1
    slug = descriptor.name.lower().replace(" ", "_").replace("/", "_")
    output = args.output or args.input.with_name(f"{args.input.stem}_{slug}.png")
    render_png(table, output, cell_size=args.cell_size, delta=delta, show_values=args.values)
    print(f"[+] {descriptor.name} heatmap written to {output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
