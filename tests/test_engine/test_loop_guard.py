"""Unit tests for loop guard marker stores.

The same contract is checked against the in-memory and SQLite stores.
"""

import tempfile
import threading
import unittest
from pathlib import Path

from proxyroute.engine.loop_guard import MemoryLoopGuard, SQLiteLoopGuard
from proxyroute.storage.database import Database


class LoopGuardContract:
    """Shared tests; subclasses provide make_guard()."""

    def make_guard(self):
        raise NotImplementedError

    def setUp(self):
        self.guard = self.make_guard()

    def test_unmarked_session_consumes_false(self):
        self.assertFalse(self.guard.consume(1))

    def test_mark_then_consume(self):
        self.guard.mark(1)
        self.assertTrue(self.guard.is_marked(1))
        self.assertTrue(self.guard.consume(1))
        self.assertFalse(self.guard.is_marked(1))
        self.assertFalse(self.guard.consume(1))

    def test_mark_is_idempotent(self):
        self.guard.mark(1)
        self.guard.mark(1)
        self.assertEqual(len(self.guard), 1)
        self.assertTrue(self.guard.consume(1))
        self.assertFalse(self.guard.consume(1))

    def test_clear_removes_marker(self):
        self.guard.mark(5)
        self.guard.clear(5)
        self.assertFalse(self.guard.is_marked(5))
        self.assertEqual(len(self.guard), 0)

    def test_clear_without_marker_is_safe(self):
        self.guard.clear(42)
        self.assertEqual(len(self.guard), 0)

    def test_clear_after_mark_never_leaks(self):
        for session_id in range(50):
            self.guard.mark(session_id)
            self.guard.clear(session_id)
        self.assertEqual(len(self.guard), 0)

    def test_sessions_are_independent(self):
        self.guard.mark(1)
        self.guard.mark(2)
        self.assertTrue(self.guard.consume(2))
        self.assertTrue(self.guard.is_marked(1))
        self.assertEqual(len(self.guard), 1)


class TestMemoryLoopGuard(LoopGuardContract, unittest.TestCase):
    """Test suite for MemoryLoopGuard."""

    def make_guard(self):
        return MemoryLoopGuard()

    def test_concurrent_sessions(self):
        def worker(base):
            for i in range(200):
                session_id = base * 1000 + i
                self.guard.mark(session_id)
                self.assertTrue(self.guard.consume(session_id))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(self.guard), 0)


class TestSQLiteLoopGuard(LoopGuardContract, unittest.TestCase):
    """Test suite for SQLiteLoopGuard."""

    def make_guard(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = Path(self.temp_dir.name) / "markers.db"
        self.db = Database(self.db_path)
        self.db.init_db()
        return SQLiteLoopGuard(self.db)

    def tearDown(self):
        self.db.close()
        self.temp_dir.cleanup()

    def test_marker_survives_restart(self):
        self.guard.mark(7)
        self.db.close()

        reopened = Database(self.db_path)
        reopened.init_db()
        try:
            guard = SQLiteLoopGuard(reopened)
            self.assertTrue(guard.is_marked(7))
            self.assertTrue(guard.consume(7))
            self.assertFalse(guard.is_marked(7))
        finally:
            reopened.close()


if __name__ == "__main__":
    unittest.main()
