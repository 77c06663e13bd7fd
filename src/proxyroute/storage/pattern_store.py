"""Persistent force list and enabled flag.

PatternStore is the only writer of the ``force_list`` and ``enabled``
settings. Every successful write notifies subscribers with the set of keys
that changed, so the redirect engine can swap in a fresh policy snapshot.
"""

import logging
from collections.abc import Callable
from typing import Optional, Union

from proxyroute.classifier.patterns import sanitize_pattern
from proxyroute.core.constants import ENABLED_KEY, FORCE_LIST_KEY
from proxyroute.core.exceptions import StorageError
from proxyroute.storage.database import Database


logger = logging.getLogger(__name__)

ChangeCallback = Callable[[frozenset[str]], None]


def dedupe(patterns: list[str]) -> list[str]:
    """Trim patterns and drop blank and repeated ones, keeping first occurrences in order."""
    seen: set[str] = set()
    result = []
    for pattern in patterns:
        pattern = pattern.strip()
        if pattern and pattern not in seen:
            seen.add(pattern)
            result.append(pattern)
    return result


class PatternStore:
    """Force list and enabled flag backed by the settings table."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self._subscribers: list[ChangeCallback] = []

    def subscribe(self, callback: ChangeCallback) -> None:
        """Register a callback invoked with the changed keys after each write."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: ChangeCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _notify(self, keys: frozenset[str]) -> None:
        for callback in list(self._subscribers):
            try:
                callback(keys)
            except Exception as e:
                logger.exception(f"Change subscriber failed for {sorted(keys)}: {e}")

    # ------------------------------------------------------------------
    # Enabled flag
    # ------------------------------------------------------------------

    def is_enabled(self) -> bool:
        """Read the enabled flag, persisting the default on first read."""
        if not self.db.has_setting(ENABLED_KEY):
            self.db.set_setting(ENABLED_KEY, True)
            return True
        return bool(self.db.get_setting(ENABLED_KEY, True))

    def set_enabled(self, enabled: bool) -> None:
        self.db.set_setting(ENABLED_KEY, bool(enabled))
        logger.info(f"Redirection {'enabled' if enabled else 'disabled'}")
        self._notify(frozenset({ENABLED_KEY}))

    # ------------------------------------------------------------------
    # Force list
    # ------------------------------------------------------------------

    def get_force_list(self) -> list[str]:
        """Read the force list.

        Raises:
            StorageError: If the stored value is not a list of strings
        """
        value = self.db.get_setting(FORCE_LIST_KEY, [])
        if not isinstance(value, list) or not all(isinstance(p, str) for p in value):
            raise StorageError(f"Stored {FORCE_LIST_KEY} is not a list of strings")
        return value

    def set_force_list(self, patterns: list[str]) -> list[str]:
        """Replace the whole force list.

        Args:
            patterns: New patterns; empty and duplicate entries are dropped

        Returns:
            The list actually stored
        """
        stored = dedupe(list(patterns))
        self.db.set_setting(FORCE_LIST_KEY, stored)
        self._notify(frozenset({FORCE_LIST_KEY}))
        return stored

    def seed(self, patterns: list[str]) -> bool:
        """Write patterns only if no force list has been stored yet.

        Returns:
            True if the seed was applied
        """
        if self.db.has_setting(FORCE_LIST_KEY):
            return False
        self.set_force_list(dedupe([p for p in map(sanitize_pattern, patterns) if p]))
        return True

    def add_pattern(self, text: str) -> Optional[str]:
        """Sanitize and append a pattern.

        Args:
            text: User-entered pattern

        Returns:
            Stored pattern, or None if it was empty or already present
        """
        pattern = sanitize_pattern(text)
        if pattern is None:
            return None

        patterns = self.get_force_list()
        if pattern in patterns:
            return None

        patterns.append(pattern)
        self.set_force_list(patterns)
        logger.info(f"Added pattern '{pattern}'")
        return pattern

    def remove_pattern(self, target: Union[int, str]) -> Optional[str]:
        """Remove a pattern by list index or by text.

        Args:
            target: Zero-based index or pattern text

        Returns:
            Removed pattern, or None if nothing matched
        """
        patterns = self.get_force_list()

        if isinstance(target, int):
            if not 0 <= target < len(patterns):
                return None
            removed = patterns.pop(target)
        else:
            pattern = sanitize_pattern(target)
            if pattern not in patterns:
                return None
            patterns.remove(pattern)
            removed = pattern

        self.set_force_list(patterns)
        logger.info(f"Removed pattern '{removed}'")
        return removed

    def edit_pattern(self, index: int, text: str) -> Optional[str]:
        """Replace the pattern at index.

        The edit is rejected when the new pattern is empty, unchanged, or
        already present elsewhere in the list.

        Returns:
            Stored pattern, or None if the edit was rejected
        """
        patterns = self.get_force_list()
        if not 0 <= index < len(patterns):
            return None

        pattern = sanitize_pattern(text)
        if pattern is None or pattern == patterns[index] or pattern in patterns:
            return None

        old = patterns[index]
        patterns[index] = pattern
        self.set_force_list(patterns)
        logger.info(f"Edited pattern '{old}' -> '{pattern}'")
        return pattern
