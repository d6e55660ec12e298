import contextlib
import io
import sys
import tempfile
import unittest
from pathlib import Path

from PIL import Image

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import render_map_png  # noqa: E402
from render_map_png import value_to_color  # noqa: E402


class TestColorRamp(unittest.TestCase):
    def test_ramp_endpoints(self) -> None:
        self.assertEqual(value_to_color(0.0, 0.0, 1.0), (0, 0, 255))
        self.assertEqual(value_to_color(0.5, 0.0, 1.0), (0, 255, 0))
        self.assertEqual(value_to_color(0.25, 0.0, 1.0), (0, 255, 255))
        self.assertEqual(value_to_color(1.0, 0.0, 1.0), (255, 0, 0))

    def test_flat_table_uses_midpoint(self) -> None:
        self.assertEqual(value_to_color(3.0, 3.0, 3.0), (0, 255, 0))


class TestRenderMapPng(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.image = self.root / "964.bin"
        blob = bytearray(0x8000)
        blob[0x6700 : 0x6700 + 128] = bytes(range(50, 178))
        self.image.write_bytes(bytes(blob))

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_writes_png(self) -> None:
        output = self.root / "fuel.png"
        with contextlib.redirect_stdout(io.StringIO()):
            code = render_map_png.main([str(self.image), "--map", "fuel", "-o", str(output), "--cell-size", "10"])
        self.assertEqual(code, 0)
        with Image.open(output) as png:
            self.assertEqual(png.format, "PNG")
            self.assertEqual(png.size, (48 + 16 * 10 + 48, 28 + 8 * 10 + 8))

    def test_compare_against_second_image(self) -> None:
        other = self.root / "tuned.bin"
        blob = bytearray(self.image.read_bytes())
        blob[0x6700] = 10
        other.write_bytes(bytes(blob))
        with contextlib.redirect_stdout(io.StringIO()):
            code = render_map_png.main([str(self.image), "--compare", str(other), "--values"])
        self.assertEqual(code, 0)
        self.assertTrue((self.root / "964_main_fuel_map.png").exists())

    def test_malformed_catalog(self) -> None:
        catalog = self.root / "partial.json"
        catalog.write_text('{"tables": [{"name": "x", "offset": 0}]}', encoding="utf-8")
        err = io.StringIO()
        with contextlib.redirect_stderr(err):
            code = render_map_png.main([str(self.image), "--catalog", str(catalog), "--map", "x"])
        self.assertEqual(code, 1)
        self.assertIn("tables[0]", err.getvalue())

    def test_unknown_map(self) -> None:
        with contextlib.redirect_stderr(io.StringIO()):
            code = render_map_png.main([str(self.image), "--map", "nitrous"])
        self.assertEqual(code, 1)


if __name__ == "__main__":
    unittest.main()
