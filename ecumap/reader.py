from __future__ import annotations

from typing import Dict, Iterable, Sequence, Tuple

from .codec import decode
from .entities import ConfigParameter, Table, TableDescriptor
from .errors import ImageBoundsError, check_region


def read_table(blob: bytes, descriptor: TableDescriptor) -> Table:
    """Decode ``descriptor`` from ``blob`` row-major; never returns a partial table."""

    check_region(descriptor.offset, descriptor.byte_size, len(blob), what=descriptor.name)
    width = descriptor.width
    rows = []
    offset = descriptor.offset
    for _row in range(descriptor.rows):
        values = []
        for _col in range(descriptor.cols):
            raw = bytes(blob[offset : offset + width])
            values.append(decode(raw, descriptor.storage, descriptor.scale, descriptor.bias))
            offset += width
        rows.append(tuple(values))
    return Table(descriptor=descriptor, values=tuple(rows))


def read_raw_cells(blob: bytes, descriptor: TableDescriptor) -> Tuple[bytes, ...]:
    check_region(descriptor.offset, descriptor.byte_size, len(blob), what=descriptor.name)
    width = descriptor.width
    return tuple(
        bytes(blob[pos : pos + width])
        for pos in range(descriptor.offset, descriptor.end, width)
    )


def read_scalar(blob: bytes, param: ConfigParameter) -> float:
    width = param.storage.width
    check_region(param.offset, width, len(blob), what=param.name)
    raw = bytes(blob[param.offset : param.offset + width])
    return decode(raw, param.storage, param.scale, param.bias)


def read_config_params(blob: bytes, params: Iterable[ConfigParameter]) -> Dict[str, float]:
    """Read every parameter that fits inside ``blob``; the rest are left out."""

    values: Dict[str, float] = {}
    for param in params:
        try:
            values[param.name] = read_scalar(blob, param)
        except ImageBoundsError:
            continue
    return values


def find_min_max(values: Sequence[Sequence[float]]) -> Tuple[float, float]:
    flat = [value for row in values for value in row]
    if not flat:
        raise ValueError("Cannot compute min/max of an empty table")
    return min(flat), max(flat)
