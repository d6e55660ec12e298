"""
CSV export/import of tables in physical units.

Layout written by ``export_table_csv``::

    # Main Fuel Map
    # Offset: 0x6700
    # Size: 8x16
    # Unit: ms
    <blank>
    Load\\RPM,0,500,1000,...
    0%,4.00,4.00,...
    12%,...

Axis labels are nominal: columns map linearly onto 0-8000 RPM and rows onto
0-100 % load using integer step sizes.

Values use two decimals, or as many as the descriptor's scale and bias
carry (capped at ten), so a table written here imports back to the same raw
cells.
"""

from __future__ import annotations

import csv
import re
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Tuple

from .entities import Table, TableDescriptor

RPM_SPAN = 8000
LOAD_SPAN = 100
DATA_HEADER = "Load\\RPM"
_META_RE = re.compile(r"^#\s*(Offset|Size|Unit):\s*(.*)$")
MIN_DECIMALS = 2
MAX_DECIMALS = 10


def rpm_axis(cols: int) -> List[int]:
    step = RPM_SPAN // cols
    return [col * step for col in range(cols)]


def load_axis(rows: int) -> List[int]:
    step = LOAD_SPAN // rows
    return [row * step for row in range(rows)]


def csv_filename(descriptor: TableDescriptor) -> str:
    return descriptor.name.lower().replace(" ", "_").replace("/", "_") + ".csv"


def value_decimals(descriptor: TableDescriptor) -> int:
    places = MIN_DECIMALS
    for number in (descriptor.scale, descriptor.bias):
        exponent = Decimal(repr(float(number))).as_tuple().exponent
        if isinstance(exponent, int):
            places = max(places, -exponent)
    return min(places, MAX_DECIMALS)


def export_table_csv(table: Table, destination: Path) -> Path:
    descriptor = table.descriptor
    destination.parent.mkdir(parents=True, exist_ok=True)
    places = value_decimals(descriptor)
    with destination.open("w", newline="", encoding="utf-8") as fp:
        writer = csv.writer(fp)
        writer.writerow([f"# {descriptor.name}"])
        writer.writerow([f"# Offset: 0x{descriptor.offset:04X}"])
        writer.writerow([f"# Size: {table.rows}x{table.cols}"])
        writer.writerow([f"# Unit: {descriptor.unit}"])
        writer.writerow([])
        writer.writerow([DATA_HEADER] + [str(rpm) for rpm in rpm_axis(table.cols)])
        for load, row in zip(load_axis(table.rows), table.values):
            writer.writerow([f"{load}%"] + [f"{value:.{places}f}" for value in row])
    return destination


def import_table_csv(source: Path) -> Tuple[Dict[str, str], List[List[float]]]:
    """
    Parse a file written by ``export_table_csv``.  Returns the ``# Key: value``
    metadata (plus ``name``) and the grid of physical values.
    """

    with source.open(newline="", encoding="utf-8") as fp:
        records = list(csv.reader(fp))

    metadata: Dict[str, str] = {}
    data_start = None
    for idx, record in enumerate(records):
        if not record or not record[0]:
            continue
        first = record[0].strip()
        if first.startswith(DATA_HEADER):
            data_start = idx + 1
            break
        match = _META_RE.match(first)
        if match:
            metadata[match.group(1).lower()] = match.group(2).strip()
        elif first.startswith("#") and "name" not in metadata:
            metadata["name"] = first.lstrip("#").strip()

    if data_start is None:
        raise ValueError(f"{source}: no '{DATA_HEADER}' header row found")

    values: List[List[float]] = []
    for line_no, record in enumerate(records[data_start:], start=data_start + 1):
        if not record or not any(cell.strip() for cell in record):
            continue
        try:
            values.append([float(cell) for cell in record[1:]])
        except ValueError as exc:
            raise ValueError(f"{source}:{line_no}: {exc}") from exc

    if not values:
        raise ValueError(f"{source}: table has no data rows")
    widths = {len(row) for row in values}
    if len(widths) != 1:
        raise ValueError(f"{source}: ragged rows (column counts {sorted(widths)})")
    return metadata, values
