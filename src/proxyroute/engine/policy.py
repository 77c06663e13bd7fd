"""Copy-on-write policy state.

The engine never reads the store directly. It reads an immutable
PolicySnapshot from a PolicyCell; when the store reports a change, a new
snapshot is built and swapped in by reference, so an event being evaluated
always sees one complete list.
"""

import logging
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Optional, Protocol

from proxyroute.classifier.patterns import Pattern, parse_pattern
from proxyroute.core.exceptions import InvalidPatternError


logger = logging.getLogger(__name__)


class PolicySource(Protocol):
    """Anything that can report the force list and the enabled flag."""

    def get_force_list(self) -> list[str]: ...

    def is_enabled(self) -> bool: ...


@dataclass(frozen=True)
class PolicySnapshot:
    """Immutable view of the force list and enabled flag."""
    patterns: tuple[Pattern, ...] = ()
    enabled: bool = True
    version: int = 0

    def __iter__(self) -> Iterator[Pattern]:
        return iter(self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)

    @classmethod
    def build(cls, texts: list[str], enabled: bool = True, version: int = 0) -> "PolicySnapshot":
        """Parse pattern strings into a snapshot, skipping invalid entries."""
        patterns = []
        for text in texts:
            try:
                patterns.append(parse_pattern(text))
            except InvalidPatternError as e:
                logger.warning(f"Ignoring pattern: {e}")
        return cls(patterns=tuple(patterns), enabled=enabled, version=version)


class PolicyCell:
    """Reference cell holding the current PolicySnapshot.

    Readers call get() without locking; writers build a whole new snapshot
    and replace the reference under a lock.
    """

    def __init__(self, snapshot: Optional[PolicySnapshot] = None) -> None:
        self._snapshot = snapshot or PolicySnapshot()
        self._lock = threading.Lock()

    def get(self) -> PolicySnapshot:
        return self._snapshot

    def swap(self, snapshot: PolicySnapshot) -> PolicySnapshot:
        """Replace the current snapshot.

        Returns:
            The snapshot that was replaced
        """
        with self._lock:
            previous = self._snapshot
            self._snapshot = snapshot
        return previous

    def refresh_from(self, source: PolicySource) -> bool:
        """Rebuild the snapshot from a store.

        If the store fails, the previous snapshot stays in place.

        Args:
            source: Store providing the force list and enabled flag

        Returns:
            True if a new snapshot was swapped in
        """
        try:
            texts = source.get_force_list()
            enabled = source.is_enabled()
        except Exception as e:
            logger.error(f"Policy reload failed, keeping version {self._snapshot.version}: {e}")
            return False

        with self._lock:
            self._snapshot = PolicySnapshot.build(
                texts,
                enabled=enabled,
                version=self._snapshot.version + 1,
            )
            snapshot = self._snapshot

        logger.info(
            f"Policy v{snapshot.version} loaded: {len(snapshot)} patterns, "
            f"{'enabled' if snapshot.enabled else 'disabled'}"
        )
        return True

    def set_enabled(self, enabled: bool) -> None:
        """Swap in a copy of the current snapshot with a new enabled flag."""
        with self._lock:
            current = self._snapshot
            self._snapshot = PolicySnapshot(
                patterns=current.patterns,
                enabled=enabled,
                version=current.version + 1,
            )
