"""Tests for the SyncRun repository: single flight, stale runs, one-shot finalize, time-range queries."""

import sys
import threading
import time
import unittest
from datetime import timedelta
from pathlib import Path
from unittest import mock

sys.path.insert(0, str(Path(__file__).resolve().parent))

from shortage_fixtures import fresh_db  # noqa: E402

from shortage_sync.db.base import utcnow  # noqa: E402
from shortage_sync.db.repositories import sync_run_repo  # noqa: E402
from shortage_sync.exceptions import SyncAlreadyRunning  # noqa: E402


class TestSyncRunRepo(unittest.TestCase):
    def setUp(self):
        fresh_db()

    def test_second_start_is_refused_while_running(self):
        run_id = sync_run_repo.start_run(stale_after_seconds=3600)
        with self.assertRaises(SyncAlreadyRunning) as ctx:
            sync_run_repo.start_run(stale_after_seconds=3600)
        self.assertEqual(ctx.exception.run_id, run_id)

    def test_concurrent_starts_admit_one_run(self):
        barrier = threading.Barrier(2)
        results = []
        lookup = sync_run_repo._unfinished_runs

        def slow_lookup(session):
            # Widen the gap between the check and the insert.
            runs = lookup(session)
            time.sleep(0.3)
            return runs

        def start():
            barrier.wait()
            try:
                results.append(("ok", sync_run_repo.start_run(stale_after_seconds=3600)))
            except SyncAlreadyRunning as e:
                results.append(("running", e.run_id))

        with mock.patch.object(sync_run_repo, "_unfinished_runs", side_effect=slow_lookup):
            threads = [threading.Thread(target=start) for _ in range(2)]
            for t in threads:
                t.start()
            for t in threads:
                t.join(timeout=30)

        started = [run_id for outcome, run_id in results if outcome == "ok"]
        refused = [run_id for outcome, run_id in results if outcome == "running"]
        self.assertEqual(len(started), 1, results)
        self.assertEqual(refused, started)
        self.assertEqual(len(sync_run_repo.list_runs()), 1)

    def test_last_successful_completion(self):
        self.assertIsNone(sync_run_repo.last_successful_completion())
        now = utcnow()
        ok = sync_run_repo.start_run(stale_after_seconds=60, now=now - timedelta(hours=2))
        sync_run_repo.finalize_run(ok, success=True, completed_at=now - timedelta(hours=2))
        failed = sync_run_repo.start_run(stale_after_seconds=60, now=now - timedelta(hours=1))
        sync_run_repo.finalize_run(failed, success=False, completed_at=now - timedelta(hours=1))
        self.assertEqual(sync_run_repo.last_successful_completion(), now - timedelta(hours=2))

    def test_start_after_finalize(self):
        first = sync_run_repo.start_run(stale_after_seconds=3600)
        self.assertTrue(sync_run_repo.finalize_run(first, success=True))
        second = sync_run_repo.start_run(stale_after_seconds=3600)
        self.assertNotEqual(first, second)

    def test_stale_run_is_abandoned(self):
        old = sync_run_repo.start_run(stale_after_seconds=60, now=utcnow() - timedelta(hours=3))
        new = sync_run_repo.start_run(stale_after_seconds=60)
        abandoned = sync_run_repo.get_run(old)
        self.assertFalse(abandoned["success"])
        self.assertIsNotNone(abandoned["completed_at"])
        self.assertIn(sync_run_repo.ABANDONED_ERROR, abandoned["errors"])
        self.assertIsNone(sync_run_repo.get_run(new)["completed_at"])

    def test_finalize_only_once(self):
        run_id = sync_run_repo.start_run(stale_after_seconds=3600)
        self.assertTrue(
            sync_run_repo.finalize_run(
                run_id, success=True, products_created=3, products_updated=1,
                errors=["Error processing CIS9: boom"], summary={"change_events": 2},
            )
        )
        self.assertFalse(sync_run_repo.finalize_run(run_id, success=False))
        run = sync_run_repo.get_run(run_id)
        self.assertTrue(run["success"])
        self.assertEqual(run["products_created"], 3)
        self.assertEqual(run["errors"], ["Error processing CIS9: boom"])
        self.assertEqual(run["summary"], {"change_events": 2})

    def test_list_runs_by_time_range(self):
        now = utcnow()
        for days_ago in (10, 5, 1):
            run_id = sync_run_repo.start_run(stale_after_seconds=60, now=now - timedelta(days=days_ago))
            sync_run_repo.finalize_run(run_id, success=True, completed_at=now - timedelta(days=days_ago))
        runs = sync_run_repo.list_runs(since=now - timedelta(days=6), until=now - timedelta(days=2))
        self.assertEqual(len(runs), 1)
        self.assertEqual(len(sync_run_repo.list_runs()), 3)
        self.assertEqual(sync_run_repo.latest_run()["started_at"].date(), (now - timedelta(days=1)).date())


if __name__ == "__main__":
    unittest.main()
