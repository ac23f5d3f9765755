import threading
import unittest
from datetime import datetime, timedelta

from estimate_import.models.schemas import ImportRecord
from estimate_import.services.import_ledger import ImportLedger, group_key, period_start
from estimate_import.utils.exceptions import DuplicateImportError

NOW = datetime(2024, 6, 15, 12, 0, 0)


def _record(import_id, started, status="completed", file_type="BMS", user_id=None, processing_time_ms=None):
    return ImportRecord(
        import_id=import_id,
        file_type=file_type,
        status=status,
        start_time=started,
        end_time=started if status != "processing" else None,
        processing_time_ms=processing_time_ms,
        user_id=user_id,
    )


class TestImportLedger(unittest.TestCase):

    def setUp(self):
        self.ledger = ImportLedger()

    def test_start_generates_distinct_ids(self):
        first = self.ledger.start("BMS", file_name="a.xml")
        second = self.ledger.start("EMS", file_name="b.ems")

        self.assertNotEqual(first.import_id, second.import_id)
        self.assertEqual(first.status, "processing")
        self.assertEqual(len(self.ledger), 2)

    def test_caller_supplied_id_is_honoured(self):
        record = self.ledger.start("BMS", import_id="upload-1", user_id="u1")
        self.assertEqual(record.import_id, "upload-1")
        self.assertEqual(self.ledger.get("upload-1").user_id, "u1")

        with self.assertRaises(DuplicateImportError):
            self.ledger.start("EMS", import_id="upload-1")

    def test_terminal_status_is_final(self):
        record = self.ledger.start("EMS")
        failed = self.ledger.fail(record.import_id, "bad content", 12.5)

        self.assertEqual(failed.status, "failed")
        self.assertEqual(failed.error, "bad content")
        self.assertEqual(failed.processing_time_ms, 12.5)
        self.assertIsNotNone(failed.end_time)

        with self.assertRaises(ValueError):
            self.ledger.fail(record.import_id, "again")
        with self.assertRaises(KeyError):
            self.ledger.fail("missing", "nope")

    def test_record_never_replaces_an_existing_entry(self):
        record = self.ledger.start("BMS", import_id="x")
        self.ledger.fail(record.import_id, "bad content")

        with self.assertRaises(DuplicateImportError):
            self.ledger.record(_record("x", NOW, status="processing"))
        self.assertEqual(self.ledger.get("x").status, "failed")

        self.ledger.record(_record("y", NOW))
        with self.assertRaises(DuplicateImportError):
            self.ledger.record(_record("y", NOW, status="failed"))
        self.assertEqual(self.ledger.get("y").status, "completed")

    def test_processing_time_defaults_to_elapsed(self):
        record = self.ledger.start("EMS")
        failed = self.ledger.fail(record.import_id, "bad content")
        self.assertGreaterEqual(failed.processing_time_ms, 0.0)

    def test_get_and_delete(self):
        record = self.ledger.start("BMS")
        self.assertIsNone(self.ledger.get("unknown"))
        self.assertTrue(self.ledger.delete(record.import_id))
        self.assertFalse(self.ledger.delete(record.import_id))
        self.assertIsNone(self.ledger.get(record.import_id))

    def test_reads_return_copies(self):
        record = self.ledger.start("BMS", file_name="a.xml")
        fetched = self.ledger.get(record.import_id)
        fetched.file_name = "changed.xml"
        self.assertEqual(self.ledger.get(record.import_id).file_name, "a.xml")

    def test_list_is_newest_first_and_paginated(self):
        for offset in range(5):
            self.ledger.record(_record(f"imp-{offset}", NOW - timedelta(hours=offset)))

        first_page = self.ledger.list(page=1, page_size=2)
        self.assertEqual([record.import_id for record in first_page.imports], ["imp-0", "imp-1"])
        self.assertEqual(first_page.pagination.total_items, 5)
        self.assertEqual(first_page.pagination.total_pages, 3)
        self.assertTrue(first_page.pagination.has_next)
        self.assertFalse(first_page.pagination.has_prev)

        last_page = self.ledger.list(page=3, page_size=2)
        self.assertEqual([record.import_id for record in last_page.imports], ["imp-4"])
        self.assertFalse(last_page.pagination.has_next)
        self.assertTrue(last_page.pagination.has_prev)

        self.assertEqual(self.ledger.list(page=4, page_size=2).imports, [])

    def test_list_filters(self):
        self.ledger.record(_record("a", NOW, status="completed", user_id="u1"))
        self.ledger.record(_record("b", NOW, status="failed", user_id="u1"))
        self.ledger.record(_record("c", NOW, status="completed", user_id="u2"))

        completed = self.ledger.list(status="completed")
        self.assertEqual({record.import_id for record in completed.imports}, {"a", "c"})
        mine = self.ledger.list(user_id="u1", status="failed")
        self.assertEqual([record.import_id for record in mine.imports], ["b"])

    def test_list_rejects_bad_paging(self):
        with self.assertRaises(ValueError):
            self.ledger.list(page=0)
        with self.assertRaises(ValueError):
            self.ledger.list(page_size=0)

    def test_empty_ledger_pagination(self):
        page = self.ledger.list()
        self.assertEqual(page.imports, [])
        self.assertEqual(page.pagination.total_pages, 0)
        self.assertFalse(page.pagination.has_next)

    def test_statistics(self):
        self.ledger.record(_record("recent", NOW - timedelta(hours=1), processing_time_ms=100.0))
        self.ledger.record(_record("older", NOW - timedelta(days=2), status="failed", file_type="EMS"))
        self.ledger.record(_record("ancient", NOW - timedelta(days=40), processing_time_ms=900.0))

        stats = self.ledger.statistics(period="month", group_by="day", now=NOW)

        self.assertEqual(stats.total_imports, 2)
        self.assertEqual(stats.successful_imports, 1)
        self.assertEqual(stats.failed_imports, 1)
        self.assertEqual(stats.avg_processing_time_ms, 100.0)
        self.assertEqual(stats.file_types, {"BMS": 1, "EMS": 1})
        self.assertEqual(
            stats.breakdown,
            [
                {"period": "2024-06-13", "total": 1, "successful": 0, "failed": 1},
                {"period": "2024-06-15", "total": 1, "successful": 1, "failed": 0},
            ],
        )

        self.assertEqual(self.ledger.statistics(period="year", now=NOW).total_imports, 3)
        self.assertEqual(self.ledger.statistics(period="day", now=NOW).total_imports, 1)
        self.assertEqual(len(self.ledger), 3)

    def test_statistics_rejects_unknown_windows(self):
        with self.assertRaises(ValueError):
            self.ledger.statistics(period="decade")
        with self.assertRaises(ValueError):
            self.ledger.statistics(group_by="hour")

    def test_purge_older_than(self):
        self.ledger.record(_record("recent", NOW - timedelta(days=1)))
        self.ledger.record(_record("stale", NOW - timedelta(days=31)))

        self.assertEqual(self.ledger.purge_older_than(30, now=NOW), 1)
        self.assertIsNone(self.ledger.get("stale"))
        self.assertIsNotNone(self.ledger.get("recent"))
        with self.assertRaises(ValueError):
            self.ledger.purge_older_than(-1)

    def test_concurrent_starts_get_distinct_ids(self):
        ids = []
        lock = threading.Lock()

        def worker():
            for _ in range(25):
                record = self.ledger.start("BMS")
                with lock:
                    ids.append(record.import_id)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(ids), 200)
        self.assertEqual(len(set(ids)), 200)
        self.assertEqual(len(self.ledger), 200)


class TestStatisticWindows(unittest.TestCase):

    def test_period_start(self):
        self.assertEqual(period_start("day", NOW), datetime(2024, 6, 15))
        self.assertEqual(period_start("week", NOW), NOW - timedelta(days=7))
        self.assertEqual(period_start("month", datetime(2024, 3, 31)), datetime(2024, 2, 29))
        self.assertEqual(period_start("year", NOW), datetime(2023, 6, 15, 12, 0, 0))

    def test_group_key(self):
        self.assertEqual(group_key(NOW, "day"), "2024-06-15")
        self.assertEqual(group_key(NOW, "week"), "2024-W24")
        self.assertEqual(group_key(NOW, "month"), "2024-06")


if __name__ == '__main__':
    unittest.main()
