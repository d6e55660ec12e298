"""
Core calibration-table utilities for Motronic-style firmware images.
"""

from .catalog import DEFAULT_PRESET, PRESETS, Catalog, catalog_to_json, load_catalog
from .codec import decode, decode_raw, encode, encode_raw, round_toward_zero, to_raw
from .differ import diff, diff_symbol, summarize
from .editor import Editor, EditorSettings, EditPlan, EditResult, apply_preset, plan_preset
from .entities import (
    BackupHandle,
    ConfigParameter,
    DeltaSummary,
    DeltaTable,
    ScanCandidate,
    StorageFormat,
    Table,
    TableDescriptor,
)
from .errors import (
    CellOutOfBoundsError,
    EcuMapError,
    EncodeRangeError,
    ImageBoundsError,
    ImageIOError,
    MultiplierOutOfRangeError,
    OffsetOutOfBoundsError,
    RangeViolationError,
    ShapeMismatchError,
    TruncatedError,
    UnknownTableError,
)
from .export import export_table_csv, import_table_csv, load_axis, rpm_axis
from .image import ImageState, ImageStore, changed_ranges, find_backups, restore_backup
from .logging import EditJournal
from .reader import read_config_params, read_scalar, read_table
from .scanner import DEFAULT_FORMATS, DEFAULT_SHAPES, DEFAULT_STEP, exclude_known, scan

__all__ = [
    "DEFAULT_PRESET",
    "PRESETS",
    "Catalog",
    "catalog_to_json",
    "load_catalog",
    "decode",
    "decode_raw",
    "encode",
    "encode_raw",
    "round_toward_zero",
    "to_raw",
    "diff",
    "diff_symbol",
    "summarize",
    "Editor",
    "EditorSettings",
    "EditPlan",
    "EditResult",
    "apply_preset",
    "plan_preset",
    "BackupHandle",
    "ConfigParameter",
    "DeltaSummary",
    "DeltaTable",
    "ScanCandidate",
    "StorageFormat",
    "Table",
    "TableDescriptor",
    "CellOutOfBoundsError",
    "EcuMapError",
    "EncodeRangeError",
    "ImageBoundsError",
    "ImageIOError",
    "MultiplierOutOfRangeError",
    "OffsetOutOfBoundsError",
    "RangeViolationError",
    "ShapeMismatchError",
    "TruncatedError",
    "UnknownTableError",
    "export_table_csv",
    "import_table_csv",
    "load_axis",
    "rpm_axis",
    "ImageState",
    "ImageStore",
    "changed_ranges",
    "find_backups",
    "restore_backup",
    "EditJournal",
    "read_config_params",
    "read_scalar",
    "read_table",
    "DEFAULT_FORMATS",
    "DEFAULT_SHAPES",
    "DEFAULT_STEP",
    "exclude_known",
    "scan",
]
