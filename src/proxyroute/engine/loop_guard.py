"""Per-session redirect markers.

A marker says "the next navigation in this session is the one we just
caused". The engine sets it right before issuing a redirect and consumes it
on the next navigation-start, so a redirect is never re-evaluated. Markers
are flags, not counters: marking twice leaves one marker.
"""

import threading
from abc import ABC, abstractmethod

from proxyroute.storage.database import Database


class LoopGuard(ABC):
    """Set/consume/clear interface shared by marker stores."""

    @abstractmethod
    def mark(self, session_id: int) -> None:
        """Set the marker for a session."""

    @abstractmethod
    def consume(self, session_id: int) -> bool:
        """Clear the marker and report whether it was set."""

    @abstractmethod
    def clear(self, session_id: int) -> None:
        """Drop the marker on session termination."""

    @abstractmethod
    def is_marked(self, session_id: int) -> bool:
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass


class MemoryLoopGuard(LoopGuard):
    """Markers kept in a lock-protected dict; lost on restart."""

    def __init__(self) -> None:
        self._markers: dict[int, bool] = {}
        self._lock = threading.Lock()

    def mark(self, session_id: int) -> None:
        with self._lock:
            self._markers[session_id] = True

    def consume(self, session_id: int) -> bool:
        with self._lock:
            return self._markers.pop(session_id, False)

    def clear(self, session_id: int) -> None:
        with self._lock:
            self._markers.pop(session_id, None)

    def is_marked(self, session_id: int) -> bool:
        with self._lock:
            return session_id in self._markers

    def __len__(self) -> int:
        with self._lock:
            return len(self._markers)


class SQLiteLoopGuard(LoopGuard):
    """Markers persisted in the session_markers table.

    Survives an engine restart between a redirect and the navigation it
    causes. Database errors propagate to the caller as DatabaseError.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    def mark(self, session_id: int) -> None:
        self.db.add_marker(session_id)

    def consume(self, session_id: int) -> bool:
        return self.db.delete_marker(session_id)

    def clear(self, session_id: int) -> None:
        self.db.delete_marker(session_id)

    def is_marked(self, session_id: int) -> bool:
        return self.db.has_marker(session_id)

    def __len__(self) -> int:
        return self.db.count_markers()
