from __future__ import annotations

from typing import Optional, Sequence

from .entities import DeltaSummary, DeltaTable, Table
from .errors import ShapeMismatchError

LARGE_CHANGE = 0.5
SMALL_CHANGE = 0.1


def diff(table_a: Table, table_b: Table) -> DeltaTable:
    """Cell-wise ``B - A``; both tables must have the same shape."""

    if table_a.shape != table_b.shape:
        raise ShapeMismatchError(
            f"Cannot compare {table_a.rows}x{table_a.cols} with {table_b.rows}x{table_b.cols}"
        )
    values = tuple(
        tuple(b - a for a, b in zip(row_a, row_b))
        for row_a, row_b in zip(table_a.values, table_b.values)
    )
    return DeltaTable(descriptor=table_a.descriptor, values=values, summary=summarize(values))


def summarize(values: Sequence[Sequence[float]]) -> DeltaSummary:
    """
    Aggregate a delta grid.  Unchanged cells (exactly ``0.0``) are excluded
    from the mean and from both extremes; with no changed cells the mean is
    ``None`` rather than a division by zero.
    """

    total = 0
    changed = 0
    running = 0.0
    max_increase: Optional[float] = None
    max_decrease: Optional[float] = None
    for row in values:
        for delta in row:
            total += 1
            if delta == 0.0:
                continue
            changed += 1
            running += delta
            if delta > 0 and (max_increase is None or delta > max_increase):
                max_increase = delta
            if delta < 0 and (max_decrease is None or delta < max_decrease):
                max_decrease = delta
    return DeltaSummary(
        changed_count=changed,
        total_count=total,
        mean_of_changed=running / changed if changed else None,
        max_increase=max_increase,
        max_decrease=max_decrease,
    )


def max_abs_delta(delta: DeltaTable) -> float:
    return max((abs(value) for row in delta.values for value in row), default=0.0)


def diff_symbol(value: float, max_abs: float) -> str:
    """Classify a delta relative to the largest absolute change in its table."""

    if value == 0 or max_abs == 0:
        return "··"
    normalized = value / max_abs
    if normalized < -LARGE_CHANGE:
        return "▼▼"
    if normalized < -SMALL_CHANGE:
        return "▼ "
    if normalized > LARGE_CHANGE:
        return "▲▲"
    if normalized > SMALL_CHANGE:
        return "▲ "
    return "· "
