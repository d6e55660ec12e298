"""
Owned access to a firmware image with a backup-before-write discipline.

State per handle::

    CLEAN --write()--> BACKING_UP --backup ok--> DIRTY --persist()--> CLEAN
                            |
                            +--backup failed--> CLEAN (nothing touched)

A backup is a verbatim copy of the on-disk image written next to it as
``<image>.backup_<YYYYMMDDhhmmss>``; same-second collisions get ``_1``, ``_2``
... appended instead of replacing an earlier backup.  The sequence is not
atomic across crashes: after an interruption the live file may be partially
mutated, and the newest backup is the recovery path (see ``changed_ranges``).
Callers that share an image path between threads or processes must serialise
writers themselves.
"""

from __future__ import annotations

import os
import re
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from .entities import BackupHandle
from .errors import ImageIOError, check_region

BACKUP_MARKER = ".backup_"
BACKUP_TIMESTAMP = "%Y%m%d%H%M%S"
_BACKUP_SUFFIX_RE = re.compile(r"^\.backup_(\d{14})(?:_(\d+))?$")


class ImageState(Enum):
    CLEAN = "clean"
    BACKING_UP = "backing-up"
    DIRTY = "dirty"


class ImageStore:
    def __init__(
        self,
        data: bytes,
        path: Path | None = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._buffer = bytearray(data)
        self.path = Path(path) if path is not None else None
        self._clock = clock
        self._state = ImageState.CLEAN
        self._pending: List[Tuple[int, int]] = []
        self.backups: List[BackupHandle] = []

    @classmethod
    def open(cls, path: Path, *, clock: Callable[[], datetime] = datetime.now) -> "ImageStore":
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise ImageIOError(f"Unable to read image {path}: {exc}") from exc
        return cls(data, path, clock=clock)

    @classmethod
    def from_bytes(cls, data: bytes, *, clock: Callable[[], datetime] = datetime.now) -> "ImageStore":
        return cls(data, None, clock=clock)

    @property
    def state(self) -> ImageState:
        return self._state

    @property
    def data(self) -> bytes:
        return bytes(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    def read(self, offset: int, length: int) -> bytes:
        check_region(offset, length, len(self._buffer))
        return bytes(self._buffer[offset : offset + length])

    def create_backup(self) -> BackupHandle:
        created_at = self._clock()
        if self.path is None:
            snapshot = bytes(self._buffer)
            handle = BackupHandle(path=None, created_at=created_at, size=len(snapshot), snapshot=snapshot)
            self.backups.append(handle)
            return handle

        try:
            content = self.path.read_bytes()
        except OSError as exc:
            raise ImageIOError(f"Unable to read {self.path} for backup: {exc}") from exc

        stamp = created_at.strftime(BACKUP_TIMESTAMP)
        base = f"{self.path.name}{BACKUP_MARKER}{stamp}"
        counter = 0
        while True:
            name = base if counter == 0 else f"{base}_{counter}"
            target = self.path.with_name(name)
            try:
                with target.open("xb") as handle_fp:
                    handle_fp.write(content)
                    handle_fp.flush()
                    os.fsync(handle_fp.fileno())
            except FileExistsError:
                counter += 1
                continue
            except OSError as exc:
                # Never leave a half-written backup behind.
                target.unlink(missing_ok=True)
                raise ImageIOError(f"Unable to write backup {target}: {exc}") from exc
            break

        handle = BackupHandle(path=target, created_at=created_at, size=len(content))
        self.backups.append(handle)
        return handle

    def write(self, offset: int, payload: bytes) -> Optional[BackupHandle]:
        """
        Overwrite ``payload`` at ``offset`` in memory.  Returns the backup taken
        on the Clean -> Dirty transition (``None`` if already dirty).
        """

        check_region(offset, len(payload), len(self._buffer), what="write")
        backup: Optional[BackupHandle] = None
        if self._state is ImageState.CLEAN:
            self._state = ImageState.BACKING_UP
            try:
                backup = self.create_backup()
            except BaseException:
                self._state = ImageState.CLEAN
                raise
            self._state = ImageState.DIRTY
        self._buffer[offset : offset + len(payload)] = payload
        self._pending.append((offset, len(payload)))
        return backup

    def persist(self) -> None:
        if self._state is not ImageState.DIRTY:
            return
        if self.path is not None:
            try:
                with self.path.open("r+b") as fp:
                    for offset, length in _merge_ranges(self._pending):
                        fp.seek(offset)
                        fp.write(self._buffer[offset : offset + length])
                    fp.flush()
                    os.fsync(fp.fileno())
            except OSError as exc:
                raise ImageIOError(f"Unable to persist {self.path}: {exc}") from exc
        self._pending.clear()
        self._state = ImageState.CLEAN


def _merge_ranges(ranges: List[Tuple[int, int]]) -> List[Tuple[int, int]]:
    merged: List[Tuple[int, int]] = []
    for start, length in sorted(ranges):
        end = start + length
        if merged and start <= merged[-1][0] + merged[-1][1]:
            prev_start, prev_len = merged[-1]
            merged[-1] = (prev_start, max(prev_start + prev_len, end) - prev_start)
        else:
            merged.append((start, length))
    return merged


def backup_sort_key(path: Path) -> Tuple[str, int]:
    suffix = path.name[path.name.rfind(BACKUP_MARKER) :]
    match = _BACKUP_SUFFIX_RE.match(suffix)
    if match is None:
        return "", 0
    return match.group(1), int(match.group(2) or 0)


def find_backups(image_path: Path) -> List[Path]:
    """Return backups of ``image_path`` oldest first."""

    image_path = Path(image_path)
    prefix = image_path.name + BACKUP_MARKER
    hits = []
    if not image_path.parent.is_dir():
        return []
    # Names may hold glob metacharacters, so match on the literal prefix.
    for candidate in image_path.parent.iterdir():
        suffix = candidate.name[len(image_path.name) :]
        if candidate.name.startswith(prefix) and _BACKUP_SUFFIX_RE.match(suffix):
            hits.append(candidate)
    return sorted(hits, key=backup_sort_key)


def changed_ranges(before: bytes, after: bytes) -> List[Tuple[int, int]]:
    """Contiguous ``(offset, length)`` runs where the two buffers differ."""

    if len(before) != len(after):
        raise ValueError(f"Buffers differ in size ({len(before)} vs {len(after)} bytes)")
    runs: List[Tuple[int, int]] = []
    start: Optional[int] = None
    for idx, (a, b) in enumerate(zip(before, after)):
        if a != b:
            if start is None:
                start = idx
        elif start is not None:
            runs.append((start, idx - start))
            start = None
    if start is not None:
        runs.append((start, len(before) - start))
    return runs


def restore_backup(backup_path: Path, image_path: Path) -> BackupHandle:
    """Copy ``backup_path`` over ``image_path``; the current content is backed up first."""

    try:
        content = Path(backup_path).read_bytes()
    except OSError as exc:
        raise ImageIOError(f"Unable to read backup {backup_path}: {exc}") from exc
    store = ImageStore.open(image_path)
    if len(content) != len(store):
        raise ImageIOError(
            f"Backup {backup_path} is {len(content)} bytes but {image_path} is {len(store)} bytes"
        )
    # A freshly opened store is clean, so this write always takes a backup.
    store.write(0, content)
    store.persist()
    return store.backups[-1]
