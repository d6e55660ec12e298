"""
Discovery pass for calibration tables whose offsets are not catalogued.

Every shape hypothesis is tried with every storage format at every
``step``-aligned offset whose window fits in the image.  A window becomes a
candidate when its decoded values span at least the width-dependent threshold
and are not all zero.  This is a similarity heuristic only: flat tables are
missed and incidental high-variance data is reported, so results are meant
for human review.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Mapping, Sequence, Tuple

import numpy as np

from .catalog import Catalog
from .entities import ScanCandidate, StorageFormat, TableDescriptor

DEFAULT_SHAPES: Tuple[Tuple[int, int], ...] = ((8, 8), (8, 16), (16, 16))
DEFAULT_FORMATS: Tuple[StorageFormat, ...] = (StorageFormat.U8, StorageFormat.U16LE, StorageFormat.U16BE)
DEFAULT_STEP = 0x40
# Minimum (max - min) spread per storage width.
RANGE_THRESHOLDS: Dict[int, float] = {1: 10, 2: 100}


def window_stats(window: bytes, storage: StorageFormat) -> Tuple[float, float, float, float]:
    """Return ``(min, max, mean, variance)`` of the decoded window (population variance)."""

    values = np.frombuffer(window, dtype=np.dtype(storage.numpy_dtype)).astype(np.float64)
    if values.size == 0:
        return 0.0, 0.0, 0.0, 0.0
    return float(values.min()), float(values.max()), float(values.mean()), float(values.var())


def format_preview(window: bytes, storage: StorageFormat) -> str:
    if storage.width == 1:
        cells = [f"{byte:02X} " for byte in window[:8]]
    else:
        values = np.frombuffer(window[:8], dtype=np.dtype(storage.numpy_dtype))
        cells = [f"{int(value) & 0xFFFF:04X} " for value in values]
    return "".join(cells) + "..."


def iter_scan(
    blob: bytes,
    shapes: Sequence[Tuple[int, int]] = DEFAULT_SHAPES,
    formats: Sequence[StorageFormat] = DEFAULT_FORMATS,
    *,
    step: int = DEFAULT_STEP,
    thresholds: Mapping[int, float] = RANGE_THRESHOLDS,
) -> Iterator[ScanCandidate]:
    if step <= 0:
        raise ValueError(f"step must be positive (got {step})")
    size = len(blob)
    view = memoryview(blob)
    for rows, cols in shapes:
        for storage in formats:
            threshold = thresholds[storage.width]
            window_len = rows * cols * storage.width
            for offset in range(0, size - window_len + 1, step):
                window = bytes(view[offset : offset + window_len])
                lo, hi, mean, variance = window_stats(window, storage)
                if hi - lo < threshold or hi <= 0:
                    continue
                yield ScanCandidate(
                    offset=offset,
                    rows=rows,
                    cols=cols,
                    storage=storage,
                    minimum=lo,
                    maximum=hi,
                    mean=mean,
                    variance=variance,
                    preview=format_preview(window, storage),
                )


def scan(
    blob: bytes,
    shapes: Sequence[Tuple[int, int]] = DEFAULT_SHAPES,
    formats: Sequence[StorageFormat] = DEFAULT_FORMATS,
    *,
    step: int = DEFAULT_STEP,
    thresholds: Mapping[int, float] = RANGE_THRESHOLDS,
) -> List[ScanCandidate]:
    """Collect every candidate in scan order (shape, then format, then offset)."""

    return list(iter_scan(blob, shapes, formats, step=step, thresholds=thresholds))


def exclude_known(candidates: Iterable[ScanCandidate], catalog: Catalog) -> List[ScanCandidate]:
    known = catalog.offsets()
    return [candidate for candidate in candidates if candidate.offset not in known]


def candidate_descriptor(candidate: ScanCandidate, name: str | None = None) -> TableDescriptor:
    """Describe a candidate in raw units so it can be read and reviewed like a table."""

    label = name or f"Candidate 0x{candidate.offset:04X}"
    return TableDescriptor(
        name=label,
        offset=candidate.offset,
        rows=candidate.rows,
        cols=candidate.cols,
        storage=candidate.storage,
        scale=1.0,
        bias=0.0,
        unit="raw",
        description=f"Scan candidate (variance: {candidate.variance:.1f})",
    )


def parse_shape(text: str) -> Tuple[int, int]:
    """Parse ``8x16`` style shape hypotheses."""

    try:
        rows_text, cols_text = text.lower().split("x", 1)
        rows, cols = int(rows_text), int(cols_text)
    except ValueError as exc:
        raise ValueError(f"Invalid shape {text!r}; expected ROWSxCOLS") from exc
    if rows <= 0 or cols <= 0:
        raise ValueError(f"Invalid shape {text!r}; dimensions must be positive")
    return rows, cols
