from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List

from .entities import BackupHandle


@dataclass
class EditJournal:
    """Text journal of image mutations, appended to ``destination`` on flush."""

    destination: Path
    preview_bytes: int = 16

    def __post_init__(self) -> None:
        self._lines: List[str] = []

    def _hex(self, data: bytes) -> str:
        text = data[: self.preview_bytes].hex(" ").upper()
        if len(data) > self.preview_bytes:
            text += " …"
        return text

    def record(
        self,
        *,
        operation: str,
        target: str,
        image: Path | None,
        offset: int,
        before: bytes,
        after: bytes,
        backup: BackupHandle | None,
        note: str | None = None,
    ) -> None:
        stamp = backup.created_at if backup is not None else datetime.now()
        header = (
            f"{stamp.isoformat(timespec='seconds')} {operation} {target!r} "
            f"image={image if image is not None else '<memory>'} "
            f"off=0x{offset:04X} len={len(after)}"
        )
        if note:
            header += f" | {note}"
        self._lines.append(header)
        if backup is not None:
            self._lines.append(f"  backup={backup.path if backup.path is not None else '<snapshot>'}")
        self._lines.append(f"  before={self._hex(before)}")
        self._lines.append(f"  after ={self._hex(after)}")

    @property
    def entries(self) -> List[str]:
        return list(self._lines)

    def flush(self) -> None:
        if not self._lines:
            return
        self.destination.parent.mkdir(parents=True, exist_ok=True)
        with self.destination.open("a", encoding="utf-8") as fp:
            fp.write("\n".join(self._lines) + "\n")
        self._lines.clear()
