from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional, Tuple


class StorageFormat(Enum):
    """Closed set of cell encodings: (data type, byte order)."""

    U8 = ("uint8", "little")
    U16LE = ("uint16", "little")
    U16BE = ("uint16", "big")
    I8 = ("int8", "little")
    I16LE = ("int16", "little")
    I16BE = ("int16", "big")

    @property
    def data_type(self) -> str:
        return self.value[0]

    @property
    def byte_order(self) -> str:
        return self.value[1]

    @property
    def width(self) -> int:
        return 1 if self.data_type.endswith("8") else 2

    @property
    def signed(self) -> bool:
        return self.data_type.startswith("int")

    @property
    def endianness(self) -> str:
        if self.width == 1:
            return "N/A"
        return "LE" if self.byte_order == "little" else "BE"

    @property
    def struct_format(self) -> str:
        code = {1: "b", 2: "h"}[self.width]
        if not self.signed:
            code = code.upper()
        return ("<" if self.byte_order == "little" else ">") + code

    @property
    def numpy_dtype(self) -> str:
        kind = "i" if self.signed else "u"
        order = "<" if self.byte_order == "little" else ">"
        return f"{order}{kind}{self.width}"

    @property
    def raw_min(self) -> int:
        return -(1 << (8 * self.width - 1)) if self.signed else 0

    @property
    def raw_max(self) -> int:
        bits = 8 * self.width
        return (1 << (bits - 1)) - 1 if self.signed else (1 << bits) - 1

    @classmethod
    def parse(cls, text: str) -> "StorageFormat":
        key = text.strip().lower().replace("_", "").replace("-", "")
        aliases = {
            "uint8": cls.U8,
            "u8": cls.U8,
            "uint16": cls.U16LE,
            "uint16le": cls.U16LE,
            "u16le": cls.U16LE,
            "uint16be": cls.U16BE,
            "u16be": cls.U16BE,
            "int8": cls.I8,
            "i8": cls.I8,
            "int16": cls.I16LE,
            "int16le": cls.I16LE,
            "i16le": cls.I16LE,
            "int16be": cls.I16BE,
            "i16be": cls.I16BE,
        }
        if key in aliases:
            return aliases[key]
        for member in cls:
            if member.name.lower() == key:
                return member
        raise ValueError(f"Unsupported storage format: {text!r}")

    def label(self) -> str:
        if self.width == 1:
            return self.data_type
        return f"{self.data_type}{self.endianness.lower()}"


@dataclass(frozen=True)
class TableDescriptor:
    name: str
    offset: int
    rows: int
    cols: int
    storage: StorageFormat = StorageFormat.U8
    scale: float = 1.0
    bias: float = 0.0
    unit: str = ""
    description: str = ""

    def __post_init__(self) -> None:
        if self.offset < 0:
            raise ValueError(f"{self.name}: offset must be non-negative (got {self.offset})")
        if self.rows <= 0 or self.cols <= 0:
            raise ValueError(f"{self.name}: dimensions must be positive (got {self.rows}x{self.cols})")
        if self.scale == 0 or not math.isfinite(self.scale):
            raise ValueError(f"{self.name}: scale must be finite and non-zero")

    @property
    def width(self) -> int:
        return self.storage.width

    @property
    def byte_order(self) -> str:
        return self.storage.byte_order

    @property
    def cell_count(self) -> int:
        return self.rows * self.cols

    @property
    def byte_size(self) -> int:
        return self.cell_count * self.width

    @property
    def end(self) -> int:
        return self.offset + self.byte_size

    @property
    def shape(self) -> Tuple[int, int]:
        return self.rows, self.cols

    def cell_offset(self, row: int, col: int) -> int:
        return self.offset + (row * self.cols + col) * self.width


@dataclass(frozen=True)
class ConfigParameter:
    """Single-cell calibration value with a mandatory valid range."""

    name: str
    offset: int
    storage: StorageFormat = StorageFormat.U8
    scale: float = 1.0
    bias: float = 0.0
    unit: str = ""
    description: str = ""
    min_value: float = 0.0
    max_value: float = 255.0

    def __post_init__(self) -> None:
        if self.min_value > self.max_value:
            raise ValueError(f"{self.name}: min_value exceeds max_value")

    def contains(self, value: float) -> bool:
        return self.min_value <= value <= self.max_value

    def as_descriptor(self) -> TableDescriptor:
        return TableDescriptor(
            name=self.name,
            offset=self.offset,
            rows=1,
            cols=1,
            storage=self.storage,
            scale=self.scale,
            bias=self.bias,
            unit=self.unit,
            description=self.description,
        )


@dataclass(frozen=True)
class Table:
    descriptor: TableDescriptor
    values: Tuple[Tuple[float, ...], ...]

    @property
    def rows(self) -> int:
        return len(self.values)

    @property
    def cols(self) -> int:
        return len(self.values[0]) if self.values else 0

    @property
    def shape(self) -> Tuple[int, int]:
        return self.rows, self.cols

    def cell(self, row: int, col: int) -> float:
        return self.values[row][col]

    def cells(self) -> Iterator[float]:
        for row in self.values:
            yield from row

    def min_max(self) -> Tuple[float, float]:
        flat = list(self.cells())
        return min(flat), max(flat)


@dataclass(frozen=True)
class ScanCandidate:
    offset: int
    rows: int
    cols: int
    storage: StorageFormat
    minimum: float
    maximum: float
    mean: float
    variance: float
    preview: str

    @property
    def byte_size(self) -> int:
        return self.rows * self.cols * self.storage.width


@dataclass(frozen=True)
class DeltaSummary:
    changed_count: int
    total_count: int
    mean_of_changed: Optional[float]
    max_increase: Optional[float]
    max_decrease: Optional[float]

    @property
    def changed(self) -> bool:
        return self.changed_count > 0

    @property
    def changed_ratio(self) -> float:
        return self.changed_count / self.total_count if self.total_count else 0.0


@dataclass(frozen=True)
class DeltaTable:
    descriptor: TableDescriptor
    values: Tuple[Tuple[float, ...], ...]
    summary: DeltaSummary

    @property
    def shape(self) -> Tuple[int, int]:
        return len(self.values), len(self.values[0]) if self.values else 0

    def cell(self, row: int, col: int) -> float:
        return self.values[row][col]


@dataclass(frozen=True)
class BackupHandle:
    path: Optional[Path]
    created_at: datetime
    size: int
    snapshot: Optional[bytes] = None
