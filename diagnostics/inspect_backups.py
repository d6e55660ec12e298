#!/usr/bin/env python3
"""
Show what changed between an ECU image and its backups, byte by byte, and
which catalogued map or parameter each changed range falls in.  Useful after
an interrupted write, where the live file may be only partly updated.
Read-only.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

# Ensure project root on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ecumap.catalog import DEFAULT_PRESET, Catalog, load_catalog
from ecumap.image import changed_ranges, find_backups


def owner_of(catalog: Catalog, offset: int) -> str:
    for descriptor in catalog.tables:
        if descriptor.offset <= offset < descriptor.end:
            cell = (offset - descriptor.offset) // descriptor.width
            return f"{descriptor.name}[{cell // descriptor.cols},{cell % descriptor.cols}]"
    for param in catalog.params:
        if param.offset <= offset < param.offset + param.storage.width:
            return param.name
    return "(uncatalogued)"


def inspect(image: Path, catalog: Catalog, *, limit: int) -> None:
    live = image.read_bytes()
    backups = find_backups(image)
    print(f"{image.name}: size={len(live)} bytes, backups={len(backups)}")
    for backup in backups:
        content = backup.read_bytes()
        if len(content) != len(live):
            print(f"  {backup.name}: size mismatch ({len(content)} bytes)")
            continue
        runs = changed_ranges(content, live)
        print(f"  {backup.name}: {len(runs)} changed range(s)")
        shown = 0
        for offset, length in runs:
            for pos in range(offset, offset + length):
                if shown >= limit:
                    print("    ...")
                    break
                print(f"    0x{pos:06X}: {content[pos]:02X} -> {live[pos]:02X}  {owner_of(catalog, pos)}")
                shown += 1
            if shown >= limit:
                break


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compare an ECU image against its backups.")
    parser.add_argument("image", type=Path, help="Live ECU image")
    parser.add_argument("--limit", type=int, default=64, help="Maximum differing bytes to print per backup")
    parser.add_argument("--preset", default=DEFAULT_PRESET, help="Catalog preset used to name regions")
    parser.add_argument("--catalog", type=Path, help="JSON catalog override, as accepted by ecu_maps.py")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    inspect(args.image, load_catalog(args.preset, args.catalog), limit=args.limit)


if __name__ == "__main__":
    main()
