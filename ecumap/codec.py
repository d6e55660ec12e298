from __future__ import annotations

import math
import struct

from .entities import StorageFormat
from .errors import EncodeRangeError

# Quotients this close to an integer are treated as that integer before
# truncation, so decimal scales such as 0.04 survive a decode/encode cycle.
SNAP_TOLERANCE = 1e-9


def decode_raw(raw: bytes, storage: StorageFormat) -> int:
    if len(raw) != storage.width:
        raise ValueError(f"{storage.data_type} needs {storage.width} byte(s), got {len(raw)}")
    return struct.unpack(storage.struct_format, raw)[0]


def decode(raw: bytes, storage: StorageFormat, scale: float, bias: float) -> float:
    return decode_raw(raw, storage) * scale + bias


def round_toward_zero(value: float) -> int:
    nearest = round(value)
    if abs(value - nearest) <= SNAP_TOLERANCE * max(1.0, abs(value)):
        return int(nearest)
    return math.trunc(value)


def to_raw(physical: float, storage: StorageFormat, scale: float, bias: float) -> int:
    """Inverse affine transform rounded toward zero.

    Raises ``EncodeRangeError`` when the result cannot be stored in
    ``storage``; the value is never wrapped into range.
    """

    if not math.isfinite(physical):
        raise EncodeRangeError(f"Cannot encode non-finite value {physical!r}")
    quotient = (physical - bias) / scale
    if not math.isfinite(quotient):
        raise EncodeRangeError(f"{physical!r} overflows the raw range at scale {scale!r}")
    raw = round_toward_zero(quotient)
    _check_raw(raw, storage, physical=physical)
    return raw


def encode_raw(raw: int, storage: StorageFormat) -> bytes:
    _check_raw(raw, storage)
    return struct.pack(storage.struct_format, raw)


def encode(physical: float, storage: StorageFormat, scale: float, bias: float) -> bytes:
    return encode_raw(to_raw(physical, storage, scale, bias), storage)


def _check_raw(raw: int, storage: StorageFormat, *, physical: float | None = None) -> None:
    if storage.raw_min <= raw <= storage.raw_max:
        return
    source = f" (physical {physical:g})" if physical is not None else ""
    raise EncodeRangeError(
        f"raw value {raw}{source} does not fit {storage.data_type} "
        f"[{storage.raw_min}, {storage.raw_max}]",
        raw=raw,
    )
