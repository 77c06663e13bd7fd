"""Unit tests for the copy-on-write policy cell."""

import unittest
from unittest.mock import MagicMock

from proxyroute.classifier.patterns import HostPattern, PathPattern
from proxyroute.core.exceptions import StorageError
from proxyroute.engine.policy import PolicyCell, PolicySnapshot


class FakeSource:
    def __init__(self, patterns, enabled=True):
        self.patterns = patterns
        self.enabled = enabled

    def get_force_list(self):
        return list(self.patterns)

    def is_enabled(self):
        return self.enabled


class TestPolicySnapshot(unittest.TestCase):
    """Test PolicySnapshot construction."""

    def test_defaults(self):
        snapshot = PolicySnapshot()
        self.assertEqual(len(snapshot), 0)
        self.assertTrue(snapshot.enabled)
        self.assertEqual(snapshot.version, 0)

    def test_build_parses_kinds_once(self):
        snapshot = PolicySnapshot.build(["example.com", "example.com/feed"])
        self.assertEqual(snapshot.patterns, (HostPattern("example.com"), PathPattern("example.com/feed")))

    def test_build_skips_invalid_patterns(self):
        snapshot = PolicySnapshot.build(["", "a.com", "  "])
        self.assertEqual([p.text for p in snapshot], ["a.com"])

    def test_snapshot_is_immutable(self):
        snapshot = PolicySnapshot.build(["a.com"])
        with self.assertRaises(AttributeError):
            snapshot.enabled = False


class TestPolicyCell(unittest.TestCase):
    """Test PolicyCell swapping and refresh."""

    def test_swap_returns_previous(self):
        first = PolicySnapshot.build(["a.com"])
        cell = PolicyCell(first)
        previous = cell.swap(PolicySnapshot.build(["b.com"]))
        self.assertIs(previous, first)
        self.assertEqual([p.text for p in cell.get()], ["b.com"])

    def test_refresh_swaps_new_snapshot(self):
        cell = PolicyCell()
        held = cell.get()

        self.assertTrue(cell.refresh_from(FakeSource(["a.com"], enabled=False)))

        self.assertIsNot(cell.get(), held)
        self.assertEqual([p.text for p in cell.get()], ["a.com"])
        self.assertFalse(cell.get().enabled)
        self.assertEqual(cell.get().version, 1)
        # A reader holding the old snapshot still sees a complete list
        self.assertEqual(len(held), 0)

    def test_refresh_failure_keeps_stale_snapshot(self):
        cell = PolicyCell()
        cell.refresh_from(FakeSource(["a.com"]))
        before = cell.get()

        source = MagicMock()
        source.get_force_list.side_effect = StorageError("db locked")
        self.assertFalse(cell.refresh_from(source))

        self.assertIs(cell.get(), before)

    def test_set_enabled_keeps_patterns(self):
        cell = PolicyCell(PolicySnapshot.build(["a.com"]))
        cell.set_enabled(False)
        self.assertFalse(cell.get().enabled)
        self.assertEqual([p.text for p in cell.get()], ["a.com"])
        self.assertEqual(cell.get().version, 1)


if __name__ == "__main__":
    unittest.main()
