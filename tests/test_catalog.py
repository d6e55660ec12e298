import json
import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ecumap.catalog import (  # noqa: E402
    M21_TABLES,
    catalog_to_json,
    descriptor_from_dict,
    find_overlaps,
    load_catalog,
)
from ecumap.entities import StorageFormat, TableDescriptor  # noqa: E402
from ecumap.errors import UnknownTableError  # noqa: E402
from ecumap.render import render_catalog  # noqa: E402


class TestPresets(unittest.TestCase):
    def test_default_preset(self) -> None:
        catalog = load_catalog()
        self.assertEqual(len(catalog.tables), 10)
        fuel = catalog.table("main fuel map")
        self.assertEqual((fuel.offset, fuel.rows, fuel.cols, fuel.scale), (0x6700, 8, 16, 0.04))
        self.assertEqual(len(catalog.params), 4)

    def test_aliases_and_fragments(self) -> None:
        catalog = load_catalog()
        self.assertEqual([d.name for d in catalog.select("spark")], ["Ignition Timing Map"])
        self.assertEqual([d.name for d in catalog.select("FUEL")], ["Main Fuel Map"])
        self.assertEqual(len(catalog.select("trim")), 4)
        self.assertEqual(len(catalog.select("all")), 10)

    def test_alias_for_table_missing_from_preset(self) -> None:
        with self.assertRaises(UnknownTableError):
            load_catalog().select("boost")
        legacy = load_catalog("m21-legacy")
        self.assertEqual(legacy.select("boost")[0].offset, 0x7900)

    def test_unknown_names(self) -> None:
        catalog = load_catalog()
        with self.assertRaises(UnknownTableError):
            catalog.table("nitrous")
        with self.assertRaises(UnknownTableError):
            catalog.param("nitrous")
        with self.assertRaises(ValueError):
            load_catalog("m42")

    def test_known_offsets(self) -> None:
        self.assertIn(0x6780, load_catalog().offsets())

    def test_preset_overlaps(self) -> None:
        # Two unconfirmed scan candidates share 0x6D00-0x6D3F.
        pairs = [(a.name, b.name) for a, b in find_overlaps(M21_TABLES)]
        self.assertEqual(pairs, [("Fuel/Timing Trim 1", "Correction Table 2")])

    def test_render(self) -> None:
        text = render_catalog(load_catalog())
        self.assertIn("Main Fuel Map", text)
        self.assertIn("0x6700", text)
        self.assertIn("Rev Limiter", text)


class TestJsonCatalog(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_override_tables_keep_preset_params(self) -> None:
        path = self.root / "custom.json"
        path.write_text(json.dumps({
            "tables": [
                {"name": "Boost Target", "offset": "0x100", "rows": 4, "cols": 4, "storage": "uint16be", "scale": 0.01},
            ],
        }), encoding="utf-8")
        catalog = load_catalog(path=path)
        self.assertEqual(catalog.name, "custom")
        self.assertEqual(len(catalog.tables), 1)
        table = catalog.tables[0]
        self.assertEqual(table.offset, 0x100)
        self.assertIs(table.storage, StorageFormat.U16BE)
        self.assertEqual(len(catalog.params), 4)

    def test_dump_and_reload(self) -> None:
        original = load_catalog()
        path = self.root / "m21.json"
        path.write_text(catalog_to_json(original), encoding="utf-8")
        reloaded = load_catalog(path=path)
        self.assertEqual(reloaded.tables, original.tables)
        self.assertEqual(reloaded.params, original.params)

    def test_rejects_non_object(self) -> None:
        path = self.root / "bad.json"
        path.write_text("[]", encoding="utf-8")
        with self.assertRaises(ValueError):
            load_catalog(path=path)

    def test_entry_missing_required_key(self) -> None:
        path = self.root / "partial.json"
        path.write_text(json.dumps({"tables": [{"name": "x", "offset": 0, "rows": 4}]}), encoding="utf-8")
        with self.assertRaises(ValueError) as ctx:
            load_catalog(path=path)
        self.assertIn("tables[0]", str(ctx.exception))
        self.assertIn("'cols'", str(ctx.exception))

    def test_malformed_entries(self) -> None:
        cases = {
            "not_object.json": {"tables": ["fuel"]},
            "not_array.json": {"params": {"name": "Rev Limiter"}},
            "bad_offset.json": {"params": [{"name": "p", "offset": "zz"}]},
            "bad_rows.json": {"tables": [{"name": "x", "offset": 0, "rows": None, "cols": 4}]},
        }
        for name, payload in cases.items():
            path = self.root / name
            path.write_text(json.dumps(payload), encoding="utf-8")
            with self.subTest(name=name):
                with self.assertRaises(ValueError):
                    load_catalog(path=path)

    def test_invalid_json(self) -> None:
        path = self.root / "broken.json"
        path.write_text("{\"tables\": [", encoding="utf-8")
        with self.assertRaises(ValueError):
            load_catalog(path=path)

    def test_invalid_descriptor(self) -> None:
        with self.assertRaises(ValueError):
            descriptor_from_dict({"name": "x", "offset": 0, "rows": 0, "cols": 4})
        with self.assertRaises(ValueError):
            descriptor_from_dict({"name": "x", "offset": 0, "rows": 4, "cols": 4, "storage": "float"})


class TestOverlaps(unittest.TestCase):
    def test_overlapping_pair(self) -> None:
        a = TableDescriptor(name="a", offset=0, rows=8, cols=8)
        b = TableDescriptor(name="b", offset=0x20, rows=8, cols=8)
        c = TableDescriptor(name="c", offset=0x40, rows=8, cols=8)
        self.assertEqual(find_overlaps([c, b, a]), [(a, b), (b, c)])


if __name__ == "__main__":
    unittest.main()
