from __future__ import annotations

from typing import List, Sequence

from .catalog import Catalog
from .differ import diff_symbol, max_abs_delta
from .entities import DeltaTable, ScanCandidate, Table
from .export import load_axis, rpm_axis

DISPLAY_MODES = ("values", "symbols", "heatmap")
SYMBOL_LEVELS = ("░", "▒", "▓", "█")
HEATMAP_LEVELS = ("1", "2", "3", "4", "5")


def _normalized(value: float, low: float, high: float) -> float | None:
    if high == low:
        return None
    return (value - low) / (high - low)


def symbol_for_value(value: float, low: float, high: float) -> str:
    norm = _normalized(value, low, high)
    if norm is None:
        return "·"
    return SYMBOL_LEVELS[min(int(norm * 4), 3)]


def heat_level(value: float, low: float, high: float) -> str:
    norm = _normalized(value, low, high)
    if norm is None:
        return "-"
    return HEATMAP_LEVELS[min(int(norm * 5), 4)]


def _axis_header(cols: int, width: int) -> List[str]:
    header = "    RPM → |" + "".join(f"{rpm:<{width}d}" for rpm in rpm_axis(cols))
    return [header, "  Load%  |" + "-" * (cols * width)]


def render_table(table: Table, mode: str = "values") -> str:
    if mode not in DISPLAY_MODES:
        raise ValueError(f"Unknown display mode {mode!r} (choose from {', '.join(DISPLAY_MODES)})")
    descriptor = table.descriptor
    low, high = table.min_max()
    width = 7 if mode == "values" else 5
    lines = [
        f"{descriptor.name} | Offset: 0x{descriptor.offset:04X} | {table.rows}x{table.cols} | "
        f"Range: {low:.2f}-{high:.2f} {descriptor.unit}",
    ]
    if descriptor.description:
        lines.append(descriptor.description)
    lines.extend(_axis_header(table.cols, width))
    for load, row in zip(load_axis(table.rows), table.values):
        if mode == "values":
            cells = "".join(f"{value:<{width}.2f}" for value in row)
        elif mode == "symbols":
            cells = "".join((symbol_for_value(value, low, high) * 4).ljust(width) for value in row)
        else:
            cells = "".join((heat_level(value, low, high) * 2).ljust(width) for value in row)
        lines.append(f"   {load:3d} ↓ |{cells}")
    if mode == "symbols":
        lines.append("")
        lines.append("Legend: ░ Low  ▒ Med  ▓ High  █ Max")
    elif mode == "heatmap":
        lines.append("")
        lines.append("Heatmap: 1 Very Low  2 Low  3 Medium  4 High  5 Very High")
    return "\n".join(lines)


def render_delta(delta: DeltaTable) -> str:
    descriptor = delta.descriptor
    summary = delta.summary
    rows, cols = delta.shape
    unit = descriptor.unit
    lines = [
        f"Changed cells: {summary.changed_count} / {summary.total_count} "
        f"({summary.changed_ratio * 100:.1f}%)",
    ]
    if summary.mean_of_changed is None:
        lines.append("Average change: n/a (no changed cells)")
    else:
        lines.append(f"Average change: {summary.mean_of_changed:.2f} {unit}")
    if summary.max_increase is not None:
        lines.append(f"Max increase: {summary.max_increase:.2f} {unit}")
    if summary.max_decrease is not None:
        lines.append(f"Max decrease: {summary.max_decrease:.2f} {unit}")
    if not summary.changed:
        return "\n".join(lines)

    max_abs = max_abs_delta(delta)
    lines.append("")
    lines.append("Difference Map (File2 - File1):")
    lines.extend(_axis_header(cols, 6))
    for load, row in zip(load_axis(rows), delta.values):
        cells = "".join(diff_symbol(value, max_abs).ljust(6) for value in row)
        lines.append(f"   {load:3d} ↓ |{cells}")
    lines.append("")
    lines.append("Legend: ▼▼ Large Decrease  ▼ Small Decrease  ·· No Change  ▲ Small Increase  ▲▲ Large Increase")
    return "\n".join(lines)


def render_candidates(candidates: Sequence[ScanCandidate]) -> str:
    if not candidates:
        return "No potential maps found"
    lines = [f"{'Offset':<8} {'Size':<6} {'Type':<7} {'Endian':<6} {'Min':>6} {'Max':>6} {'Variance':>10}  Preview"]
    for c in candidates:
        lines.append(
            f"0x{c.offset:04X}   {f'{c.rows}x{c.cols}':<6} {c.storage.data_type:<7} "
            f"{c.storage.endianness:<6} {c.minimum:>6.0f} {c.maximum:>6.0f} {c.variance:>10.1f}  {c.preview}"
        )
    lines.append(f"Found {len(candidates)} potential map(s)")
    return "\n".join(lines)


def render_catalog(catalog: Catalog) -> str:
    lines = [f"{'Name':<24} {'Offset':<8} {'Size':<6} {'Type':<9} {'Unit':<5} Description"]
    for d in catalog.tables:
        lines.append(
            f"{d.name:<24} 0x{d.offset:04X}   {f'{d.rows}x{d.cols}':<6} {d.storage.label():<9} "
            f"{d.unit:<5} {d.description}"
        )
    if catalog.params:
        lines.append("")
        lines.append(f"{'Parameter':<24} {'Offset':<8} {'Range':<17} {'Unit':<5} Description")
        for p in catalog.params:
            span = f"{p.min_value:g}-{p.max_value:g}"
            lines.append(f"{p.name:<24} 0x{p.offset:04X}   {span:<17} {p.unit:<5} {p.description}")
    return "\n".join(lines)
