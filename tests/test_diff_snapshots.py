"""Tests for set-of-lines diffing, new-shortage detection and the snapshot store."""

import sys
import unittest
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from shortage_fixtures import scratch_dir, shortage_line  # noqa: E402

from shortage_sync.models.registry import RegistryDocument  # noqa: E402
from shortage_sync.registry.diff import compute_lines_diff, detect_new_shortages  # noqa: E402
from shortage_sync.registry.snapshots import SnapshotStore  # noqa: E402


class TestLinesDiff(unittest.TestCase):
    def test_reordering_is_not_a_change(self):
        old = ["a", "b", "c"]
        self.assertEqual(compute_lines_diff(old, ["c", "a", "b"]), (0, 0))

    def test_added_and_removed(self):
        self.assertEqual(compute_lines_diff(["a", "b"], ["b", "c", "d"]), (2, 1))


class TestDetectNewShortages(unittest.TestCase):
    def test_new_key_is_detected(self):
        old = [shortage_line("CIS001", "Tension", start_date="2024-01-01")]
        new = old + [shortage_line("CIS002", "Rupture de stock", start_date="2024-02-01")]
        entries = detect_new_shortages(old, new)
        self.assertEqual([e.product_code for e in entries], ["CIS002"])

    def test_reordered_file_detects_nothing(self):
        old = [
            shortage_line("CIS001", "Tension", start_date="2024-01-01"),
            shortage_line("CIS002", "Rupture de stock", start_date="2024-02-01"),
        ]
        self.assertEqual(detect_new_shortages(old, list(reversed(old))), [])

    def test_same_key_with_edited_columns_is_not_new(self):
        old = [shortage_line("CIS001", "Tension", start_date="2024-01-01", end_date="")]
        new = [shortage_line("CIS001", "Tension", start_date="2024-01-01", end_date="01/06/2024")]
        self.assertEqual(detect_new_shortages(old, new), [])

    def test_new_start_date_for_known_product_is_new(self):
        old = [shortage_line("CIS001", "Tension", start_date="2024-01-01")]
        new = [shortage_line("CIS001", "Rupture de stock", start_date="2024-05-01")]
        entries = detect_new_shortages(old, new)
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].status_text, "Rupture de stock")

    def test_new_row_shadowed_by_later_unchanged_row_is_not_new(self):
        old = [shortage_line("CIS001", "Tension", start_date="2024-01-01")]
        new = [
            shortage_line("CIS001", "Rupture de stock", start_date="2024-05-01"),
            shortage_line("CIS001", "Tension", start_date="2024-01-01"),
        ]
        self.assertEqual(detect_new_shortages(old, new), [])

    def test_new_row_that_wins_is_reported_with_its_status(self):
        old = [shortage_line("CIS001", "Tension", start_date="2024-01-01")]
        new = old + [shortage_line("CIS001", "Rupture de stock", start_date="2024-05-01")]
        entries = detect_new_shortages(old, new)
        self.assertEqual([(e.product_code, e.status_text) for e in entries], [("CIS001", "Rupture de stock")])


class TestSnapshotStore(unittest.TestCase):
    def setUp(self):
        self.store = SnapshotStore.in_directory(scratch_dir())

    def _doc(self, text: str) -> RegistryDocument:
        raw = text.encode("latin-1")
        return RegistryDocument(file_key="shortage", filename="CIS_CIP_Dispo_Spec.txt", raw=raw, lines=[text])

    def test_no_previous_snapshot(self):
        self.assertIsNone(self.store.previous_lines("CIS_CIP_Dispo_Spec.txt"))

    def test_save_then_read_back(self):
        self.store.save(self._doc("CIS001\tx"))
        self.assertEqual(self.store.previous_lines("CIS_CIP_Dispo_Spec.txt"), ["CIS001\tx"])

    def test_previous_snapshot_is_backed_up_with_date(self):
        self.store.save(self._doc("first"), today=date(2024, 3, 1))
        self.store.save(self._doc("second"), today=date(2024, 3, 2))
        backup = self.store.path_for("backups") / "CIS_CIP_Dispo_Spec_2024-03-02.txt"
        self.assertTrue(backup.is_file())
        self.assertEqual(backup.read_text(encoding="latin-1"), "first")
        self.assertEqual(self.store.previous_lines("CIS_CIP_Dispo_Spec.txt"), ["second"])


if __name__ == "__main__":
    unittest.main()
