#!/usr/bin/env python3
"""
Read, scan, compare and edit calibration maps inside Motronic M2.1 dumps.

Examples:

    python ecu_maps.py list
    python ecu_maps.py show 964.bin --map fuel --display heatmap
    python ecu_maps.py scan 964.bin --unknown-only
    python ecu_maps.py diff stock.bin tuned.bin --map all
    python ecu_maps.py scale 964.bin fuel 1.05 --journal edits.log

Every write takes a timestamped ``<file>.backup_YYYYMMDDhhmmss`` copy of the
image first; ``--dry-run`` validates the edit and prints it without writing.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from ecumap import api, catalog as catalog_mod, render, scanner
from ecumap.catalog import Catalog, find_overlaps, load_catalog
from ecumap.editor import PRESETS as EDIT_PRESETS, EditPlan, Editor, EditResult, plan_preset
from ecumap.entities import StorageFormat, TableDescriptor
from ecumap.errors import EcuMapError, UnknownTableError
from ecumap.export import csv_filename, export_table_csv, import_table_csv
from ecumap.image import ImageStore, changed_ranges, find_backups
from ecumap.logging import EditJournal


def _int(text: str) -> int:
    return int(text, 0)


def resolve_table(catalog: Catalog, query: str) -> TableDescriptor:
    try:
        return catalog.table(query)
    except UnknownTableError:
        pass
    hits = catalog.select(query)
    if len(hits) > 1:
        names = ", ".join(d.name for d in hits)
        raise UnknownTableError(f"{query!r} is ambiguous: {names}")
    return hits[0]


def _describe_plan(plan: EditPlan) -> str:
    return (
        f"{plan.operation} {plan.target} at 0x{plan.offset:04X}: "
        f"{plan.before.hex(' ').upper()[:47]} -> {plan.after.hex(' ').upper()[:47]}"
    )


def _report(result: EditResult) -> None:
    backup = result.backup.path if result.backup.path is not None else "<snapshot>"
    print(f"[+] Backup created: {backup}")
    print(f"[+] {result.operation} {result.target}: {len(result.after)} byte(s) written at 0x{result.offset:04X}")


def _commit(args: argparse.Namespace, editor: Editor, plan: EditPlan) -> int:
    print(f"[i] {_describe_plan(plan)}")
    if args.dry_run:
        print("[i] DRY RUN - no changes made")
        return 0
    _report(editor.apply(plan))
    return 0


def _editor(args: argparse.Namespace, journal: EditJournal | None) -> Editor:
    return api.open_editor(args.image, journal=journal)


def cmd_list(args: argparse.Namespace, catalog: Catalog, journal: EditJournal | None) -> int:
    print(render.render_catalog(catalog))
    for first, second in find_overlaps(catalog.tables):
        print(f"[!] {first.name} overlaps {second.name}", file=sys.stderr)
    return 0


def cmd_dump_catalog(args: argparse.Namespace, catalog: Catalog, journal: EditJournal | None) -> int:
    text = catalog_mod.catalog_to_json(catalog)
    if args.output:
        args.output.write_text(text + "\n", encoding="utf-8")
        print(f"[+] Catalog written to {args.output}")
    else:
        print(text)
    return 0


def cmd_show(args: argparse.Namespace, catalog: Catalog, journal: EditJournal | None) -> int:
    failures = 0
    for idx, descriptor in enumerate(catalog.select(args.map)):
        if idx:
            print()
        try:
            table = api.read_table(args.image, descriptor)
        except EcuMapError as exc:
            print(f"[error] {descriptor.name}: {exc}", file=sys.stderr)
            failures += 1
            continue
        print(render.render_table(table, args.display))
    return 1 if failures else 0


def cmd_scan(args: argparse.Namespace, catalog: Catalog, journal: EditJournal | None) -> int:
    shapes = [scanner.parse_shape(text) for text in args.shape] if args.shape else scanner.DEFAULT_SHAPES
    formats = [StorageFormat.parse(text) for text in args.format] if args.format else scanner.DEFAULT_FORMATS
    blob_size = args.image.stat().st_size
    print(f"[+] Loaded {args.image} ({blob_size} bytes, 0x{blob_size:X})")
    candidates = api.scan(args.image, shapes, formats, step=args.step)
    if args.unknown_only:
        candidates = scanner.exclude_known(candidates, catalog)
    if args.limit is not None:
        candidates = candidates[: args.limit]
    print(render.render_candidates(candidates))
    return 0


def cmd_diff(args: argparse.Namespace, catalog: Catalog, journal: EditJournal | None) -> int:
    failures = 0
    for idx, descriptor in enumerate(catalog.select(args.map)):
        if idx:
            print()
        print(f"Comparing: {descriptor.name}")
        try:
            delta = api.diff_tables(args.image, args.other, descriptor)
        except EcuMapError as exc:
            print(f"[error] {descriptor.name}: {exc}", file=sys.stderr)
            failures += 1
            continue
        print(render.render_delta(delta))
    return 1 if failures else 0


def cmd_export(args: argparse.Namespace, catalog: Catalog, journal: EditJournal | None) -> int:
    failures = 0
    for descriptor in catalog.select(args.map):
        try:
            table = api.read_table(args.image, descriptor)
        except EcuMapError as exc:
            print(f"[!] Failed to read {descriptor.name}: {exc}", file=sys.stderr)
            failures += 1
            continue
        destination = export_table_csv(table, args.output / csv_filename(descriptor))
        print(f"[+] {descriptor.name} exported to {destination}")
    return 1 if failures else 0


def cmd_import(args: argparse.Namespace, catalog: Catalog, journal: EditJournal | None) -> int:
    metadata, values = import_table_csv(args.csv)
    query = args.map or metadata.get("name")
    if not query:
        raise UnknownTableError(f"{args.csv} does not name its table; pass --map")
    descriptor = resolve_table(catalog, query)
    editor = _editor(args, journal)
    return _commit(args, editor, editor.plan_table(descriptor, values))


def cmd_config(args: argparse.Namespace, catalog: Catalog, journal: EditJournal | None) -> int:
    values = api.read_config_params(args.image, catalog)
    for param in catalog.params:
        if param.name not in values:
            print(f"{param.name:<24} (outside image)")
            continue
        value = values[param.name]
        flag = "" if param.contains(value) else "  [!] outside valid range"
        print(f"{param.name:<24} {value:10.2f} {param.unit:<4} [{param.min_value:g}-{param.max_value:g}]{flag}")
    return 0


def cmd_set_param(args: argparse.Namespace, catalog: Catalog, journal: EditJournal | None) -> int:
    editor = _editor(args, journal)
    return _commit(args, editor, editor.plan_config_param(catalog.param(args.name), args.value))


def cmd_edit_cell(args: argparse.Namespace, catalog: Catalog, journal: EditJournal | None) -> int:
    descriptor = resolve_table(catalog, args.map)
    editor = _editor(args, journal)
    return _commit(args, editor, editor.plan_cell(descriptor, args.row, args.col, args.value))


def cmd_scale(args: argparse.Namespace, catalog: Catalog, journal: EditJournal | None) -> int:
    descriptor = resolve_table(catalog, args.map)
    editor = _editor(args, journal)
    return _commit(args, editor, editor.plan_scale(descriptor, args.multiplier))


def cmd_preset(args: argparse.Namespace, catalog: Catalog, journal: EditJournal | None) -> int:
    editor = _editor(args, journal)
    return _commit(args, editor, plan_preset(editor, catalog, args.name, args.value))


def cmd_backups(args: argparse.Namespace, catalog: Catalog, journal: EditJournal | None) -> int:
    backups = find_backups(args.image)
    if not backups:
        print(f"[i] No backups found for {args.image}")
        return 0
    live = ImageStore.open(args.image).data
    for path in backups:
        content = path.read_bytes()
        if len(content) != len(live):
            print(f"{path.name}: size differs ({len(content)} vs {len(live)} bytes)")
            continue
        runs = changed_ranges(content, live)
        changed = sum(length for _offset, length in runs)
        print(f"{path.name}: {len(runs)} changed range(s), {changed} byte(s)")
    return 0


def _add_image(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("image", type=Path, help="ECU binary image (.bin)")


def _add_dry_run(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--dry-run", action="store_true", help="Validate and print the change without writing")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Motronic M2.1 calibration map tool.")
    parser.add_argument(
        "--preset",
        default=catalog_mod.DEFAULT_PRESET,
        choices=sorted(catalog_mod.PRESETS),
        help="Catalog preset describing known map offsets (default: %(default)s)",
    )
    parser.add_argument("--catalog", type=Path, help="JSON file whose tables/params replace the preset's")
    parser.add_argument("--journal", type=Path, help="Append a record of every write to this text file")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="List catalogued maps and parameters")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("dump-catalog", help="Print the active catalog as JSON")
    p.add_argument("-o", "--output", type=Path, help="Write the JSON here instead of stdout")
    p.set_defaults(func=cmd_dump_catalog)

    p = sub.add_parser("show", help="Display maps")
    _add_image(p)
    p.add_argument("--map", default="all", help="Map name, alias (fuel, spark, lambda ...) or 'all'")
    p.add_argument("--display", default="values", choices=render.DISPLAY_MODES, help="Cell rendering")
    p.set_defaults(func=cmd_show)

    p = sub.add_parser("scan", help="Scan for uncatalogued map candidates")
    _add_image(p)
    p.add_argument("--shape", action="append", help="ROWSxCOLS hypothesis, repeatable (default 8x8, 8x16, 16x16)")
    p.add_argument("--format", action="append", help="Storage format, repeatable (uint8, uint16le, uint16be ...)")
    p.add_argument("--step", type=_int, default=scanner.DEFAULT_STEP, help="Offset step (default 0x40)")
    p.add_argument("--unknown-only", action="store_true", help="Hide candidates at catalogued offsets")
    p.add_argument("--limit", type=int, help="Print at most this many candidates")
    p.set_defaults(func=cmd_scan)

    p = sub.add_parser("diff", help="Compare maps between two images")
    _add_image(p)
    p.add_argument("other", type=Path, help="Second image; deltas are other - image")
    p.add_argument("--map", default="all", help="Map name, alias or 'all'")
    p.set_defaults(func=cmd_diff)

    p = sub.add_parser("export", help="Export maps to CSV")
    _add_image(p)
    p.add_argument("--map", default="all", help="Map name, alias or 'all'")
    p.add_argument("-o", "--output", type=Path, default=Path("exports"), help="Destination directory")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("import", help="Write a CSV table back into an image")
    _add_image(p)
    p.add_argument("csv", type=Path, help="CSV produced by 'export'")
    p.add_argument("--map", help="Target map (defaults to the name stored in the CSV)")
    _add_dry_run(p)
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("config", help="Show configuration parameters")
    _add_image(p)
    p.set_defaults(func=cmd_config)

    p = sub.add_parser("set-param", help="Write a configuration parameter (range checked)")
    _add_image(p)
    p.add_argument("name", help="Parameter name, e.g. 'Rev Limiter'")
    p.add_argument("value", type=float, help="New physical value")
    _add_dry_run(p)
    p.set_defaults(func=cmd_set_param)

    p = sub.add_parser("edit-cell", help="Write a single map cell")
    _add_image(p)
    p.add_argument("map", help="Map name or alias")
    p.add_argument("row", type=int)
    p.add_argument("col", type=int)
    p.add_argument("value", type=float, help="New physical value")
    _add_dry_run(p)
    p.set_defaults(func=cmd_edit_cell)

    p = sub.add_parser("scale", help="Multiply every cell of a map")
    _add_image(p)
    p.add_argument("map", help="Map name or alias")
    p.add_argument("multiplier", type=float, help="e.g. 1.1 for +10%%, 0.9 for -10%%")
    _add_dry_run(p)
    p.set_defaults(func=cmd_scale)

    p = sub.add_parser(
        "preset",
        help="Apply a predefined modification",
        description="Presets: " + "; ".join(f"{name}: {desc}" for name, (desc, _fn) in sorted(EDIT_PRESETS.items())),
    )
    _add_image(p)
    p.add_argument("name", choices=sorted(EDIT_PRESETS))
    p.add_argument("--value", type=float, help="Preset argument (target RPM for revlimit, multiplier for fuel-enrich)")
    _add_dry_run(p)
    p.set_defaults(func=cmd_preset)

    p = sub.add_parser("backups", help="List backups of an image and how they differ from it")
    _add_image(p)
    p.set_defaults(func=cmd_backups)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    journal = EditJournal(args.journal) if args.journal else None
    try:
        catalog = load_catalog(args.preset, args.catalog)
        return args.func(args, catalog, journal)
    except (EcuMapError, ValueError, OSError) as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1
    finally:
        if journal is not None:
            journal.flush()


if __name__ == "__main__":
    raise SystemExit(main())
