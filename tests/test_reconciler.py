"""Tests for reconciliation and the idempotent per-product upsert."""

import sys
import unittest
from datetime import date
from pathlib import Path
from unittest import mock

sys.path.insert(0, str(Path(__file__).resolve().parent))

from shortage_fixtures import catalog_line, composition_line, fresh_db, seed_product, shortage_line  # noqa: E402

from shortage_sync.db.repositories import history_repo, product_repo  # noqa: E402
from shortage_sync.models.registry import RegistryTables  # noqa: E402
from shortage_sync.models.status import ProductStatus  # noqa: E402
from shortage_sync.registry.parser import parse_catalog, parse_compositions, parse_shortages  # noqa: E402
from shortage_sync.sync.reconciler import apply_reconciliation, parse_return_date, reconcile  # noqa: E402


def _tables(catalog=None, compositions=None, shortages=None) -> RegistryTables:
    return RegistryTables(
        catalog=parse_catalog(catalog) if catalog is not None else None,
        compositions=parse_compositions(compositions) if compositions is not None else None,
        shortages=parse_shortages(shortages) if shortages is not None else None,
    )


def _run(tables: RegistryTables):
    records = reconcile(tables)
    codes = set(tables.shortages) if tables.shortages is not None else None
    return apply_reconciliation(records, codes)


class TestReconcile(unittest.TestCase):
    def test_joins_three_tables(self):
        tables = _tables(
            catalog=[catalog_line("CIS001", "DOLIPRANE 1000mg", manufacturer="OPELLA")],
            compositions=[composition_line("CIS001", "PARACÉTAMOL")],
            shortages=[shortage_line("CIS001", "Rupture de stock", end_date="15/03/2024", url="https://ansm/x")],
        )
        [record] = reconcile(tables)
        self.assertEqual(record.name, "DOLIPRANE 1000mg")
        self.assertEqual(record.active_ingredient, "PARACÉTAMOL")
        self.assertEqual(record.manufacturer, "OPELLA")
        self.assertEqual(record.status, ProductStatus.SHORTAGE)
        self.assertEqual(record.expected_return_date, date(2024, 3, 15))
        self.assertIn("https://ansm/x", record.details)

    def test_shortage_only_product_gets_synthetic_name(self):
        [record] = reconcile(_tables(catalog=[], compositions=[], shortages=[shortage_line("CIS404", "Tension")]))
        self.assertIsNone(record.name)
        self.assertEqual(record.fallback_name, "Product CIS404")
        self.assertEqual(record.status, ProductStatus.TENSION)

    def test_catalog_only_product_is_available(self):
        [record] = reconcile(_tables(catalog=[catalog_line("CIS001", "DOLIPRANE")], shortages=[]))
        self.assertEqual(record.status, ProductStatus.AVAILABLE)

    def test_no_shortage_table_leaves_status_undecided(self):
        [record] = reconcile(_tables(catalog=[catalog_line("CIS001", "DOLIPRANE")]))
        self.assertIsNone(record.status)

    def test_parse_return_date(self):
        self.assertEqual(parse_return_date("01/02/2024"), date(2024, 2, 1))
        self.assertEqual(parse_return_date("2024-02-01"), date(2024, 2, 1))
        self.assertIsNone(parse_return_date(""))
        self.assertIsNone(parse_return_date("bientôt"))


class TestApplyReconciliation(unittest.TestCase):
    def setUp(self):
        fresh_db()

    def test_scenario_shortage_then_reset(self):
        catalog = [catalog_line("CIS001", "DOLIPRANE 1000mg")]

        report = _run(_tables(catalog=catalog, shortages=[]))
        self.assertEqual(report.created, 1)
        self.assertEqual(product_repo.get_by_code("CIS001")["status"], "AVAILABLE")
        self.assertEqual(history_repo.list_for_product("CIS001"), [])

        report = _run(_tables(catalog=catalog, shortages=[shortage_line("CIS001", "rupture de stock", level="2")]))
        self.assertEqual(product_repo.get_by_code("CIS001")["status"], "SHORTAGE")
        history = history_repo.list_for_product("CIS001")
        self.assertEqual(len(history), 1)
        self.assertEqual((history[0]["previous_status"], history[0]["status"]), ("AVAILABLE", "SHORTAGE"))
        self.assertEqual(report.moved_to["SHORTAGE"], 1)

        report = _run(_tables(catalog=catalog, shortages=[]))
        self.assertEqual(product_repo.get_by_code("CIS001")["status"], "AVAILABLE")
        history = history_repo.list_for_product("CIS001")
        self.assertEqual(len(history), 2)
        self.assertEqual(history[1]["status"], "AVAILABLE")
        self.assertEqual(report.moved_to["AVAILABLE"], 1)

    def test_idempotent(self):
        tables = _tables(
            catalog=[catalog_line("CIS001", "DOLIPRANE"), catalog_line("CIS002", "ADVIL")],
            shortages=[shortage_line("CIS001", "Rupture de stock"), shortage_line("CIS003", "Tension")],
        )
        _run(tables)
        first = {code: product_repo.get_by_code(code) for code in ("CIS001", "CIS002", "CIS003")}
        history_before = sum(len(history_repo.list_for_product(c)) for c in first)

        report = _run(tables)
        second = {code: product_repo.get_by_code(code) for code in ("CIS001", "CIS002", "CIS003")}
        history_after = sum(len(history_repo.list_for_product(c)) for c in first)

        self.assertEqual(history_before, history_after)
        self.assertEqual(report.history_records, 0)
        self.assertEqual(report.unchanged, 3)
        for code in first:
            self.assertEqual(first[code]["status"], second[code]["status"])
            self.assertEqual(first[code]["name"], second[code]["name"])

    def test_reset_covers_every_stale_product(self):
        seed_product("CIS100", status="SHORTAGE")
        seed_product("CIS101", status="TENSION")
        seed_product("CIS102", status="UNKNOWN")
        _run(_tables(catalog=[], shortages=[shortage_line("CIS101", "Tension")]))
        self.assertEqual(product_repo.get_by_code("CIS100")["status"], "AVAILABLE")
        self.assertEqual(product_repo.get_by_code("CIS101")["status"], "TENSION")
        self.assertEqual(product_repo.get_by_code("CIS102")["status"], "AVAILABLE")

    def test_unavailable_shortage_file_changes_no_status(self):
        seed_product("CIS100", name="KEEP ME", status="SHORTAGE")
        report = _run(_tables(catalog=[catalog_line("CIS200", "NEW ONE")]))
        self.assertEqual(product_repo.get_by_code("CIS100")["status"], "SHORTAGE")
        self.assertEqual(product_repo.get_by_code("CIS200")["status"], "UNKNOWN")
        self.assertEqual(report.history_records, 0)

    def test_existing_metadata_is_preserved(self):
        tables = _tables(
            catalog=[catalog_line("CIS001", "DOLIPRANE 1000mg")],
            compositions=[composition_line("CIS001", "PARACÉTAMOL")],
            shortages=[],
        )
        _run(tables)
        _run(_tables(catalog=None, compositions=None, shortages=[shortage_line("CIS001", "Tension")]))
        product = product_repo.get_by_code("CIS001")
        self.assertEqual(product["name"], "DOLIPRANE 1000mg")
        self.assertEqual(product["active_ingredient"], "PARACÉTAMOL")
        self.assertEqual(product["status"], "TENSION")

    def test_malformed_catalog_line_is_not_an_error(self):
        report = _run(_tables(catalog=["CIS009\tBROKEN\tLINE", catalog_line("CIS001", "DOLIPRANE")], shortages=[]))
        self.assertIsNone(product_repo.get_by_code("CIS009"))
        self.assertEqual(report.failures, [])
        self.assertEqual(report.created, 1)

    def test_one_failing_product_does_not_stop_the_pass(self):
        tables = _tables(
            catalog=[catalog_line("CIS001", "DOLIPRANE"), catalog_line("CIS002", "ADVIL")],
            shortages=[],
        )
        real_upsert = product_repo.upsert_product

        def flaky(record, source, now=None):
            if record.product_code == "CIS001":
                raise RuntimeError("database is locked")
            return real_upsert(record, source, now)

        with mock.patch.object(product_repo, "upsert_product", side_effect=flaky):
            report = _run(tables)
        self.assertEqual(report.failures, [("CIS001", "database is locked")])
        self.assertEqual(report.error_messages, ["Error processing CIS001: database is locked"])
        self.assertIsNotNone(product_repo.get_by_code("CIS002"))


if __name__ == "__main__":
    unittest.main()
