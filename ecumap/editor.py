"""
Validated mutations of an image held by an ``ImageStore``.

Every public write is all-or-nothing at call granularity: validation and
encoding run to completion before the store is touched, then the store takes
its backup, applies the whole payload and persists.  The ``plan_*`` methods
perform the validation half only and back ``--dry-run`` style callers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple

from .catalog import Catalog
from .codec import decode_raw, encode, encode_raw, round_toward_zero
from .entities import BackupHandle, ConfigParameter, TableDescriptor
from .errors import (
    CellOutOfBoundsError,
    MultiplierOutOfRangeError,
    RangeViolationError,
    ShapeMismatchError,
    check_region,
)
from .image import ImageStore
from .logging import EditJournal
from .reader import read_raw_cells

FUEL_ENRICH_MULTIPLIER = 1.05


@dataclass(frozen=True)
class EditorSettings:
    min_multiplier: float = 0.5
    max_multiplier: float = 2.0


@dataclass(frozen=True)
class EditPlan:
    operation: str
    target: str
    offset: int
    before: bytes
    after: bytes


@dataclass(frozen=True)
class EditResult:
    operation: str
    target: str
    offset: int
    before: bytes
    after: bytes
    backup: BackupHandle


class Editor:
    def __init__(
        self,
        store: ImageStore,
        *,
        settings: EditorSettings | None = None,
        journal: EditJournal | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or EditorSettings()
        self.journal = journal

    # -- validation -------------------------------------------------------

    def plan_cell(self, descriptor: TableDescriptor, row: int, col: int, value: float) -> EditPlan:
        if not (0 <= row < descriptor.rows and 0 <= col < descriptor.cols):
            raise CellOutOfBoundsError(
                f"{descriptor.name}: cell [{row},{col}] is outside "
                f"{descriptor.rows}x{descriptor.cols}"
            )
        check_region(descriptor.offset, descriptor.byte_size, len(self.store), what=descriptor.name)
        offset = descriptor.cell_offset(row, col)
        payload = encode(value, descriptor.storage, descriptor.scale, descriptor.bias)
        return EditPlan(
            operation="write-cell",
            target=f"{descriptor.name}[{row},{col}]",
            offset=offset,
            before=self.store.read(offset, len(payload)),
            after=payload,
        )

    def plan_table(self, descriptor: TableDescriptor, values: Sequence[Sequence[float]]) -> EditPlan:
        shape = (len(values), len(values[0]) if values else 0)
        if shape != descriptor.shape or any(len(row) != descriptor.cols for row in values):
            raise ShapeMismatchError(
                f"{descriptor.name}: expected {descriptor.rows}x{descriptor.cols} values, "
                f"got {shape[0]}x{shape[1]}"
            )
        check_region(descriptor.offset, descriptor.byte_size, len(self.store), what=descriptor.name)
        payload = b"".join(
            encode(value, descriptor.storage, descriptor.scale, descriptor.bias)
            for row in values
            for value in row
        )
        return EditPlan(
            operation="write-table",
            target=descriptor.name,
            offset=descriptor.offset,
            before=self.store.read(descriptor.offset, descriptor.byte_size),
            after=payload,
        )

    def plan_scale(self, descriptor: TableDescriptor, multiplier: float) -> EditPlan:
        low, high = self.settings.min_multiplier, self.settings.max_multiplier
        if not (low <= multiplier <= high):
            raise MultiplierOutOfRangeError(
                f"Multiplier {multiplier:g} is outside the safe range ({low:g}-{high:g})"
            )
        cells = read_raw_cells(self.store.data, descriptor)
        # Raw integers are scaled, not physical values; bias is left untouched.
        payload = b"".join(
            encode_raw(round_toward_zero(decode_raw(cell, descriptor.storage) * multiplier), descriptor.storage)
            for cell in cells
        )
        return EditPlan(
            operation="scale-table",
            target=f"{descriptor.name} x{multiplier:g}",
            offset=descriptor.offset,
            before=b"".join(cells),
            after=payload,
        )

    def plan_config_param(self, param: ConfigParameter, value: float) -> EditPlan:
        if not param.contains(value):
            raise RangeViolationError(
                f"{param.name}: {value:g} {param.unit} is outside "
                f"[{param.min_value:g}, {param.max_value:g}]"
            )
        plan = self.plan_cell(param.as_descriptor(), 0, 0, value)
        return EditPlan(
            operation="write-param",
            target=param.name,
            offset=plan.offset,
            before=plan.before,
            after=plan.after,
        )

    # -- mutation ---------------------------------------------------------

    def write_cell(self, descriptor: TableDescriptor, row: int, col: int, value: float) -> EditResult:
        return self.apply(self.plan_cell(descriptor, row, col, value))

    def write_table(self, descriptor: TableDescriptor, values: Sequence[Sequence[float]]) -> EditResult:
        return self.apply(self.plan_table(descriptor, values))

    def scale_table(self, descriptor: TableDescriptor, multiplier: float) -> EditResult:
        return self.apply(self.plan_scale(descriptor, multiplier))

    def write_config_param(self, param: ConfigParameter, value: float) -> EditResult:
        return self.apply(self.plan_config_param(param, value))

    def apply(self, plan: EditPlan) -> EditResult:
        backup = self.store.write(plan.offset, plan.after)
        if backup is None:
            # The store was already dirty; its earlier backup still covers this write.
            backup = self.store.backups[-1]
        self.store.persist()
        if self.journal is not None:
            self.journal.record(
                operation=plan.operation,
                target=plan.target,
                image=self.store.path,
                offset=plan.offset,
                before=plan.before,
                after=plan.after,
                backup=backup,
            )
        return EditResult(
            operation=plan.operation,
            target=plan.target,
            offset=plan.offset,
            before=plan.before,
            after=plan.after,
            backup=backup,
        )


def _fuel_enrich(editor: Editor, catalog: Catalog, value: Optional[float]) -> EditPlan:
    return editor.plan_scale(catalog.select("fuel")[0], FUEL_ENRICH_MULTIPLIER if value is None else value)


def _rev_limit(editor: Editor, catalog: Catalog, value: Optional[float]) -> EditPlan:
    if value is None:
        raise ValueError("The revlimit preset needs a target RPM value")
    return editor.plan_config_param(catalog.param("Rev Limiter"), value)


PRESETS: Dict[str, Tuple[str, Callable[[Editor, Catalog, Optional[float]], EditPlan]]] = {
    "fuel-enrich": ("+5% across the entire main fuel map", _fuel_enrich),
    "revlimit": ("Set the rev limiter to VALUE rpm", _rev_limit),
}


def plan_preset(editor: Editor, catalog: Catalog, name: str, value: float | None = None) -> EditPlan:
    try:
        _description, builder = PRESETS[name]
    except KeyError:
        known = ", ".join(sorted(PRESETS))
        raise ValueError(f"Unknown preset {name!r} (available: {known})") from None
    return builder(editor, catalog, value)


def apply_preset(editor: Editor, catalog: Catalog, name: str, value: float | None = None) -> EditResult:
    return editor.apply(plan_preset(editor, catalog, name, value))
