import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ecumap.catalog import Catalog  # noqa: E402
from ecumap.entities import StorageFormat, TableDescriptor  # noqa: E402
from ecumap.reader import read_table  # noqa: E402
from ecumap.scanner import (  # noqa: E402
    candidate_descriptor,
    exclude_known,
    format_preview,
    parse_shape,
    scan,
    window_stats,
)

U8 = StorageFormat.U8
U16LE = StorageFormat.U16LE
U16BE = StorageFormat.U16BE


class TestScan(unittest.TestCase):
    def test_varied_window_is_reported(self) -> None:
        blob = bytes(10 + (i % 16) for i in range(64))
        candidates = scan(blob)
        self.assertEqual(len(candidates), 1)
        hit = candidates[0]
        self.assertEqual((hit.offset, hit.rows, hit.cols, hit.storage), (0, 8, 8, U8))
        self.assertEqual((hit.minimum, hit.maximum), (10.0, 25.0))
        self.assertAlmostEqual(hit.mean, 17.5)
        self.assertAlmostEqual(hit.variance, 21.25)
        self.assertEqual(hit.preview, "0A 0B 0C 0D 0E 0F 10 11 ...")

    def test_uniform_region_is_rejected(self) -> None:
        self.assertEqual(scan(bytes([0x05]) * 0x400), [])

    def test_all_zero_region_is_rejected(self) -> None:
        self.assertEqual(scan(bytes(0x400)), [])

    def test_range_threshold_is_inclusive(self) -> None:
        at_threshold = bytes([5] * 63 + [15])
        below = bytes([5] * 63 + [14])
        self.assertEqual(len(scan(at_threshold, [(8, 8)], [U8])), 1)
        self.assertEqual(scan(below, [(8, 8)], [U8]), [])

    def test_sixteen_bit_threshold(self) -> None:
        flat = bytes([0x10, 0x00] * 63 + [0x73, 0x00])  # spread of 99
        wide = bytes([0x10, 0x00] * 63 + [0x74, 0x00])  # spread of 100
        self.assertEqual(scan(flat, [(8, 8)], [U16LE]), [])
        self.assertEqual(len(scan(wide, [(8, 8)], [U16LE])), 1)

    def test_scan_order_is_shape_then_format_then_offset(self) -> None:
        blob = bytes(range(256))
        seen = [(c.rows, c.cols, c.storage, c.offset) for c in scan(blob)]
        expected = (
            [(8, 8, U8, off) for off in (0, 64, 128, 192)]
            + [(8, 8, U16LE, off) for off in (0, 64, 128)]
            + [(8, 8, U16BE, off) for off in (0, 64, 128)]
            + [(8, 16, U8, off) for off in (0, 64, 128)]
            + [(8, 16, U16LE, 0), (8, 16, U16BE, 0), (16, 16, U8, 0)]
        )
        self.assertEqual(seen, expected)

    def test_custom_step(self) -> None:
        blob = bytes(range(128))
        offsets = [c.offset for c in scan(blob, [(8, 8)], [U8], step=0x20)]
        self.assertEqual(offsets, [0, 32, 64])

    def test_invalid_step(self) -> None:
        with self.assertRaises(ValueError):
            scan(bytes(64), step=0)

    def test_image_smaller_than_every_window(self) -> None:
        self.assertEqual(scan(bytes(range(32))), [])


class TestScanHelpers(unittest.TestCase):
    def test_sixteen_bit_previews(self) -> None:
        window = bytes(range(16))
        self.assertEqual(format_preview(window, U16LE), "0100 0302 0504 0706 ...")
        self.assertEqual(format_preview(window, U16BE), "0001 0203 0405 0607 ...")

    def test_window_stats(self) -> None:
        lo, hi, mean, variance = window_stats(bytes([2, 4, 4, 4, 5, 5, 7, 9]), U8)
        self.assertEqual((lo, hi, mean, variance), (2.0, 9.0, 5.0, 4.0))

    def test_exclude_known(self) -> None:
        blob = bytes(range(256))
        catalog = Catalog(tables=(TableDescriptor(name="known", offset=64, rows=8, cols=8),))
        remaining = exclude_known(scan(blob, [(8, 8)], [U8]), catalog)
        self.assertEqual([c.offset for c in remaining], [0, 128, 192])

    def test_candidate_reads_back_as_raw_table(self) -> None:
        blob = bytes(range(256))
        candidate = scan(blob, [(8, 8)], [U8])[1]
        table = read_table(blob, candidate_descriptor(candidate))
        self.assertEqual(table.cell(0, 0), 64.0)
        self.assertEqual(table.descriptor.unit, "raw")

    def test_parse_shape(self) -> None:
        self.assertEqual(parse_shape("8x16"), (8, 16))
        self.assertEqual(parse_shape("16X16"), (16, 16))
        for bad in ("8", "ax8", "0x8"):
            with self.assertRaises(ValueError):
                parse_shape(bad)


if __name__ == "__main__":
    unittest.main()
