"""
Known calibration tables and scalar parameters for Motronic M2.1 images.

The catalog is an immutable value built once (from a preset and an optional
JSON override) and handed to every component that needs it.  Offsets were
established by scanning two stock dumps; the "candidate" entries are
high-variance regions that have not been confirmed against a datasheet.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Sequence, Tuple, TypeVar

from .entities import ConfigParameter, StorageFormat, TableDescriptor
from .errors import UnknownTableError

DEFAULT_PRESET = "m21"

T = TypeVar("T")

# Short names accepted by ``Catalog.select`` in addition to substring search.
TABLE_ALIASES: Dict[str, str] = {
    "fuel": "Main Fuel Map",
    "spark": "Ignition Timing Map",
    "ignition": "Ignition Timing Map",
    "lambda": "Lambda Target Map",
    "boost": "Boost Control Map",
    "coldstart": "Cold Start Enrichment",
}


def _map(name: str, offset: int, rows: int, cols: int, scale: float, bias: float, unit: str, description: str) -> TableDescriptor:
    return TableDescriptor(
        name=name,
        offset=offset,
        rows=rows,
        cols=cols,
        storage=StorageFormat.U8,
        scale=scale,
        bias=bias,
        unit=unit,
        description=description,
    )


_FUEL = _map("Main Fuel Map", 0x6700, 8, 16, 0.04, 0.0, "ms", "Primary fuel injection duration map")
_IGNITION = _map("Ignition Timing Map", 0x6780, 8, 16, 0.75, -24.0, "deg", "Spark advance timing map")
_LAMBDA = _map("Lambda Target Map", 0x6800, 8, 16, 0.01, 0.5, "λ", "Target air-fuel ratio map")

M21_TABLES: Tuple[TableDescriptor, ...] = (
    _FUEL,
    _IGNITION,
    _LAMBDA,
    _map("Correction Table 1", 0x60C0, 8, 8, 0.01, 0.0, "%", "Limits/correction table (variance: 100.3)"),
    _map("Fuel/Timing Trim 1", 0x6CC0, 8, 16, 0.01, 0.0, "%", "Fuel or timing trim table (variance: 260.9)"),
    _map("Correction Table 2", 0x6D00, 8, 8, 0.01, 0.0, "%", "Correction table (variance: 125.1)"),
    _map("Fuel/Timing Trim 2", 0x6EC0, 8, 16, 0.01, 0.0, "%", "Fuel or timing trim table (variance: 385.8)"),
    _map("Correction Table 3", 0x6F80, 8, 8, 0.01, 0.0, "%", "Correction table (variance: 136.3)"),
    _map("Trim Table 1", 0x7140, 8, 16, 0.01, 0.0, "%", "Trim table (variance: 196.6)"),
    _map("Trim Table 2", 0x7200, 8, 16, 0.01, 0.0, "%", "Trim table (variance: 237.1)"),
)

M21_LEGACY_TABLES: Tuple[TableDescriptor, ...] = (
    _FUEL,
    _IGNITION,
    _LAMBDA,
    _map("Boost Control Map", 0x7900, 8, 8, 0.1, 0.0, "bar", "Wastegate duty cycle / boost target"),
    _map("Cold Start Enrichment", 0x7A00, 8, 8, 0.02, 0.0, "%", "Cold start fuel enrichment multiplier"),
)

M21_PARAMS: Tuple[ConfigParameter, ...] = (
    ConfigParameter(
        name="Rev Limiter",
        offset=0x7000,
        scale=85.37,
        unit="RPM",
        description="Maximum engine RPM limit (stock 964: ~7000 RPM)",
        min_value=6000,
        max_value=7500,
    ),
    ConfigParameter(
        name="Idle Speed Target",
        offset=0x7001,
        scale=10.0,
        unit="RPM",
        description="Target idle speed (stock 964: ~820 RPM)",
        min_value=650,
        max_value=1100,
    ),
    ConfigParameter(
        name="Unknown Param 1",
        offset=0x7002,
        unit="raw",
        description="Unknown parameter at 0x7002 (stock 964: 75)",
    ),
    ConfigParameter(
        name="Unknown Param 2",
        offset=0x7003,
        unit="raw",
        description="Unknown parameter at 0x7003 (stock 964: 70)",
    ),
)

PRESETS: Dict[str, Tuple[Tuple[TableDescriptor, ...], Tuple[ConfigParameter, ...]]] = {
    "m21": (M21_TABLES, M21_PARAMS),
    "m21-legacy": (M21_LEGACY_TABLES, M21_PARAMS),
}


@dataclass(frozen=True)
class Catalog:
    tables: Tuple[TableDescriptor, ...]
    params: Tuple[ConfigParameter, ...] = ()
    name: str = "custom"

    def list_tables(self) -> List[TableDescriptor]:
        return list(self.tables)

    def list_params(self) -> List[ConfigParameter]:
        return list(self.params)

    def table(self, name: str) -> TableDescriptor:
        wanted = name.strip().lower()
        for descriptor in self.tables:
            if descriptor.name.lower() == wanted:
                return descriptor
        raise UnknownTableError(f"Unknown table: {name!r}")

    def param(self, name: str) -> ConfigParameter:
        wanted = name.strip().lower()
        for param in self.params:
            if param.name.lower() == wanted:
                return param
        raise UnknownTableError(f"Unknown parameter: {name!r}")

    def select(self, query: str) -> List[TableDescriptor]:
        """Resolve ``all``, a short alias (``fuel``, ``spark`` …) or a name fragment."""

        key = query.strip().lower()
        if key == "all":
            return list(self.tables)
        alias = TABLE_ALIASES.get(key)
        if alias is not None:
            hits = [d for d in self.tables if d.name == alias]
            if hits:
                return hits
        hits = [d for d in self.tables if key in d.name.lower()]
        if not hits:
            raise UnknownTableError(f"No table matches {query!r}")
        return hits

    def offsets(self) -> set[int]:
        return {descriptor.offset for descriptor in self.tables}


def _parse_int(value: Any) -> int:
    if isinstance(value, str):
        return int(value, 0)
    return int(value)


def descriptor_from_dict(entry: Dict[str, Any]) -> TableDescriptor:
    return TableDescriptor(
        name=str(entry["name"]),
        offset=_parse_int(entry["offset"]),
        rows=int(entry["rows"]),
        cols=int(entry["cols"]),
        storage=StorageFormat.parse(str(entry.get("storage", "uint8"))),
        scale=float(entry.get("scale", 1.0)),
        bias=float(entry.get("bias", 0.0)),
        unit=str(entry.get("unit", "")),
        description=str(entry.get("description", "")),
    )


def param_from_dict(entry: Dict[str, Any]) -> ConfigParameter:
    return ConfigParameter(
        name=str(entry["name"]),
        offset=_parse_int(entry["offset"]),
        storage=StorageFormat.parse(str(entry.get("storage", "uint8"))),
        scale=float(entry.get("scale", 1.0)),
        bias=float(entry.get("bias", 0.0)),
        unit=str(entry.get("unit", "")),
        description=str(entry.get("description", "")),
        min_value=float(entry.get("min_value", 0.0)),
        max_value=float(entry.get("max_value", 255.0)),
    )


def _entries_from_json(path: Path, key: str, entries: Any, build: Callable[[Dict[str, Any]], T]) -> Tuple[T, ...]:
    if not isinstance(entries, list):
        raise ValueError(f"{path}: '{key}' must be a JSON array")
    built = []
    for idx, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValueError(f"{path}: {key}[{idx}] must be a JSON object")
        try:
            built.append(build(entry))
        except KeyError as exc:
            raise ValueError(f"{path}: {key}[{idx}] is missing required key {exc.args[0]!r}") from exc
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{path}: {key}[{idx}]: {exc}") from exc
    return tuple(built)


def load_catalog(preset: str = DEFAULT_PRESET, path: Path | None = None) -> Catalog:
    """
    Build a catalog from ``preset``.  When ``path`` points at a JSON document,
    its ``tables`` and/or ``params`` arrays replace the preset's entries.
    """

    if preset not in PRESETS:
        known = ", ".join(sorted(PRESETS))
        raise ValueError(f"Unknown catalog preset {preset!r} (known: {known})")
    tables, params = PRESETS[preset]
    name = preset
    if path is not None:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a JSON object with 'tables'/'params'")
        if "tables" in data:
            tables = _entries_from_json(path, "tables", data["tables"], descriptor_from_dict)
        if "params" in data:
            params = _entries_from_json(path, "params", data["params"], param_from_dict)
        name = path.stem
    return Catalog(tables=tuple(tables), params=tuple(params), name=name)


def _descriptor_to_dict(descriptor: TableDescriptor) -> Dict[str, Any]:
    return {
        "name": descriptor.name,
        "offset": f"0x{descriptor.offset:04X}",
        "rows": descriptor.rows,
        "cols": descriptor.cols,
        "storage": descriptor.storage.label(),
        "scale": descriptor.scale,
        "bias": descriptor.bias,
        "unit": descriptor.unit,
        "description": descriptor.description,
    }


def _param_to_dict(param: ConfigParameter) -> Dict[str, Any]:
    return {
        "name": param.name,
        "offset": f"0x{param.offset:04X}",
        "storage": param.storage.label(),
        "scale": param.scale,
        "bias": param.bias,
        "unit": param.unit,
        "description": param.description,
        "min_value": param.min_value,
        "max_value": param.max_value,
    }


def catalog_to_json(catalog: Catalog) -> str:
    payload = {
        "tables": [_descriptor_to_dict(d) for d in catalog.tables],
        "params": [_param_to_dict(p) for p in catalog.params],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def find_overlaps(descriptors: Sequence[TableDescriptor]) -> List[Tuple[TableDescriptor, TableDescriptor]]:
    ordered = sorted(descriptors, key=lambda d: d.offset)
    overlaps: List[Tuple[TableDescriptor, TableDescriptor]] = []
    for idx, first in enumerate(ordered):
        for second in ordered[idx + 1 :]:
            if second.offset >= first.end:
                break
            overlaps.append((first, second))
    return overlaps
