import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ecumap.differ import diff, diff_symbol, max_abs_delta, summarize  # noqa: E402
from ecumap.entities import Table, TableDescriptor  # noqa: E402
from ecumap.errors import ShapeMismatchError  # noqa: E402
from ecumap.render import render_delta  # noqa: E402


def _mk_table(values, name: str = "Main Fuel Map") -> Table:
    rows = tuple(tuple(float(v) for v in row) for row in values)
    descriptor = TableDescriptor(name=name, offset=0x6700, rows=len(rows), cols=len(rows[0]), scale=0.04, unit="ms")
    return Table(descriptor=descriptor, values=rows)


class TestDiff(unittest.TestCase):
    def test_delta_is_b_minus_a(self) -> None:
        a = _mk_table([[1, 2], [3, 4]])
        b = _mk_table([[1, 3.5], [1, 4]])
        delta = diff(a, b)
        self.assertEqual(delta.values, ((0.0, 1.5), (-2.0, 0.0)))
        self.assertEqual(delta.summary.changed_count, 2)
        self.assertEqual(delta.summary.total_count, 4)
        self.assertAlmostEqual(delta.summary.mean_of_changed, -0.25)
        self.assertEqual(delta.summary.max_increase, 1.5)
        self.assertEqual(delta.summary.max_decrease, -2.0)
        self.assertAlmostEqual(delta.summary.changed_ratio, 0.5)

    def test_swapping_inputs_negates_every_cell(self) -> None:
        a = _mk_table([[1, 2, 3], [4, 5, 6]])
        b = _mk_table([[2, 2, 1], [4, 9, 6.5]])
        forward = diff(a, b)
        backward = diff(b, a)
        for row_f, row_b in zip(forward.values, backward.values):
            for f, r in zip(row_f, row_b):
                self.assertEqual(f, -r)

    def test_identical_tables_have_no_average(self) -> None:
        a = _mk_table([[4, 4], [4, 4]])
        delta = diff(a, a)
        self.assertFalse(delta.summary.changed)
        self.assertIsNone(delta.summary.mean_of_changed)
        self.assertIsNone(delta.summary.max_increase)
        self.assertIsNone(delta.summary.max_decrease)
        self.assertIn("Average change: n/a", render_delta(delta))

    def test_only_increases(self) -> None:
        summary = summarize([[0.0, 0.2], [0.4, 0.0]])
        self.assertAlmostEqual(summary.max_increase, 0.4)
        self.assertIsNone(summary.max_decrease)
        self.assertAlmostEqual(summary.mean_of_changed, 0.3)

    def test_shape_mismatch(self) -> None:
        with self.assertRaises(ShapeMismatchError):
            diff(_mk_table([[1, 2]]), _mk_table([[1], [2]]))


class TestDiffSymbols(unittest.TestCase):
    def test_symbol_bands(self) -> None:
        self.assertEqual(diff_symbol(0.0, 2.0), "··")
        self.assertEqual(diff_symbol(1.0, 0.0), "··")
        self.assertEqual(diff_symbol(-2.0, 2.0), "▼▼")
        self.assertEqual(diff_symbol(-0.5, 2.0), "▼ ")
        self.assertEqual(diff_symbol(2.0, 2.0), "▲▲")
        self.assertEqual(diff_symbol(0.5, 2.0), "▲ ")
        self.assertEqual(diff_symbol(0.1, 2.0), "· ")

    def test_max_abs_delta(self) -> None:
        delta = diff(_mk_table([[1, 2]]), _mk_table([[4, -1]]))
        self.assertEqual(max_abs_delta(delta), 3.0)

    def test_rendered_map_marks_changes(self) -> None:
        a = _mk_table([[4.0] * 8] * 8)
        b_rows = [[4.0] * 8 for _ in range(8)]
        b_rows[2][3] = 5.0
        text = render_delta(diff(a, _mk_table(b_rows)))
        self.assertIn("Changed cells: 1 / 64", text)
        self.assertIn("▲▲", text)
        self.assertIn("Difference Map (File2 - File1):", text)


if __name__ == "__main__":
    unittest.main()
