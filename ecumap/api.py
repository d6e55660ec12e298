"""
Path-based entry points for presentation layers (CLI, exporters, viewers).

Reads open the image read-only and may run concurrently.  Each write call
opens its own ``ImageStore`` and therefore takes its own backup; callers that
expose these functions concurrently must serialise writes per image path.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Sequence, Tuple

from . import differ, reader, scanner
from .catalog import Catalog
from .entities import ConfigParameter, DeltaTable, ScanCandidate, StorageFormat, Table, TableDescriptor
from .editor import Editor, EditorSettings, EditResult
from .errors import ImageIOError
from .image import ImageStore
from .logging import EditJournal


def _load(path: Path) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise ImageIOError(f"Unable to read image {path}: {exc}") from exc


def list_tables(catalog: Catalog) -> List[TableDescriptor]:
    return catalog.list_tables()


def read_table(path: Path, descriptor: TableDescriptor) -> Table:
    return reader.read_table(_load(path), descriptor)


def scan(
    path: Path,
    shapes: Sequence[Tuple[int, int]] = scanner.DEFAULT_SHAPES,
    formats: Sequence[StorageFormat] = scanner.DEFAULT_FORMATS,
    *,
    step: int = scanner.DEFAULT_STEP,
) -> List[ScanCandidate]:
    return scanner.scan(_load(path), shapes, formats, step=step)


def diff_tables(path_a: Path, path_b: Path, descriptor: TableDescriptor) -> DeltaTable:
    return differ.diff(read_table(path_a, descriptor), read_table(path_b, descriptor))


def compare_images(path_a: Path, path_b: Path, catalog: Catalog, query: str = "all") -> List[DeltaTable]:
    blob_a, blob_b = _load(path_a), _load(path_b)
    return [
        differ.diff(reader.read_table(blob_a, descriptor), reader.read_table(blob_b, descriptor))
        for descriptor in catalog.select(query)
    ]


def read_config_param(path: Path, param: ConfigParameter) -> float:
    return reader.read_scalar(_load(path), param)


def read_config_params(path: Path, catalog: Catalog) -> Dict[str, float]:
    return reader.read_config_params(_load(path), catalog.params)


def open_editor(
    path: Path,
    *,
    settings: EditorSettings | None = None,
    journal: EditJournal | None = None,
) -> Editor:
    return Editor(ImageStore.open(path), settings=settings, journal=journal)


def write_cell(
    path: Path,
    descriptor: TableDescriptor,
    row: int,
    col: int,
    value: float,
    *,
    journal: EditJournal | None = None,
) -> EditResult:
    return open_editor(path, journal=journal).write_cell(descriptor, row, col, value)


def write_table(
    path: Path,
    descriptor: TableDescriptor,
    values: Sequence[Sequence[float]],
    *,
    journal: EditJournal | None = None,
) -> EditResult:
    return open_editor(path, journal=journal).write_table(descriptor, values)


def scale_table(
    path: Path,
    descriptor: TableDescriptor,
    multiplier: float,
    *,
    settings: EditorSettings | None = None,
    journal: EditJournal | None = None,
) -> EditResult:
    return open_editor(path, settings=settings, journal=journal).scale_table(descriptor, multiplier)


def write_config_param(
    path: Path,
    param: ConfigParameter,
    value: float,
    *,
    journal: EditJournal | None = None,
) -> EditResult:
    return open_editor(path, journal=journal).write_config_param(param, value)
