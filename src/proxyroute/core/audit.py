"""Audit trail of redirect decisions.

Every decision the engine takes that changes where a session goes, and every
change to the policy it decides with, is appended to ``audit.log`` as one
JSON object per line:

    {"timestamp": "...", "instance_id": "host-1", "event_type": "redirect_issued",
     "session_id": 7, "details": {"target_url": "...", "reason": "to_proxy", ...}}

``session_id`` is only present on per-session events, so a single session's
history can be pulled out with one filter.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

from proxyroute.core.constants import ENABLED_KEY, AuditEventType
from proxyroute.core.exceptions import AuditLogError
from proxyroute.core.models import NavigationResult, RedirectAction, Settings


AUDIT_FILE_NAME = "audit.log"


class AuditLogger:
    """Append-only JSON Lines writer for redirect decisions.

    The typed helpers (redirect_issued, navigation_failed, ...) are what the
    engine and service call; log_event is the raw form they share.

    Example:
        >>> audit = AuditLogger.from_settings(settings, instance_id="host-1")
        >>> audit.redirect_issued(action, source_url="https://example.com/")
        >>> audit.close()
    """

    def __init__(self, instance_id: str, audit_dir: Path) -> None:
        """Open (or create) the audit log of one engine instance.

        Args:
            instance_id: Identifier of the engine process writing the log
            audit_dir: Directory holding audit.log; created if missing

        Raises:
            AuditLogError: If the directory or the log file cannot be opened
        """
        self.instance_id = instance_id
        self.audit_dir = audit_dir
        self.log_path = audit_dir / AUDIT_FILE_NAME
        self._lock = threading.Lock()

        try:
            self.audit_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise AuditLogError(f"Failed to create audit directory {audit_dir}: {e}") from e

        # Several engines may share one directory; each gets its own logger
        self._logger = logging.getLogger(f"proxyroute.audit.{instance_id}")
        self._logger.setLevel(logging.INFO)
        self._logger.propagate = False
        self._logger.handlers.clear()
        self._logger.addHandler(self._open_handler())

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        instance_id: Optional[str] = None,
    ) -> Optional["AuditLogger"]:
        """Build the logger configured by settings.audit_dir.

        Args:
            settings: Loaded settings
            instance_id: Engine identifier; a random one is generated if None

        Returns:
            AuditLogger, or None when auditing is not configured
        """
        if settings.audit_dir is None:
            return None
        return cls(instance_id or f"engine-{uuid4().hex[:8]}", settings.audit_dir)

    def _open_handler(self) -> logging.Handler:
        try:
            handler = logging.FileHandler(str(self.log_path), mode="a", encoding="utf-8")
        except OSError as e:
            raise AuditLogError(f"Failed to open audit log {self.log_path}: {e}") from e
        handler.setFormatter(logging.Formatter("%(message)s"))
        return handler

    # ------------------------------------------------------------------
    # Raw events
    # ------------------------------------------------------------------

    def log_event(
        self,
        event_type: AuditEventType,
        details: Optional[dict[str, Any]] = None,
        *,
        session_id: Optional[int] = None,
    ) -> None:
        """Append one event.

        Raises:
            AuditLogError: If the event cannot be serialized or written
        """
        event: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "instance_id": self.instance_id,
            "event_type": event_type.value,
        }
        if session_id is not None:
            event["session_id"] = session_id
        event["details"] = details or {}

        try:
            line = json.dumps(event, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise AuditLogError(f"Audit event {event_type.value} is not serializable: {e}") from e

        with self._lock:
            if not self._logger.handlers:
                raise AuditLogError(f"Audit log {self.log_path} is closed")
            self._logger.info(line)

    # ------------------------------------------------------------------
    # Decision events
    # ------------------------------------------------------------------

    def redirect_issued(self, action: RedirectAction, source_url: str, **details: Any) -> None:
        self.log_event(
            AuditEventType.REDIRECT_ISSUED,
            {
                "target_url": action.target_url,
                "reason": action.reason.value,
                "source_url": source_url,
                **details,
            },
            session_id=action.session_id,
        )

    def redirect_suppressed(self, session_id: int, url: str) -> None:
        """Record the navigation a redirect caused being let through."""
        self.log_event(AuditEventType.REDIRECT_SUPPRESSED, {"url": url}, session_id=session_id)

    def navigation_failed(self, result: NavigationResult) -> None:
        action = result.action
        self.log_event(
            AuditEventType.NAVIGATION_FAILED,
            {
                "target_url": action.target_url,
                "reason": action.reason.value,
                "error": result.error,
            },
            session_id=action.session_id,
        )

    # ------------------------------------------------------------------
    # Lifecycle and policy events
    # ------------------------------------------------------------------

    def engine_started(self, patterns: int, enabled: bool) -> None:
        self.log_event(AuditEventType.ENGINE_START, {"patterns": patterns, "enabled": enabled})

    def engine_stopped(self, heartbeat_ticks: int) -> None:
        self.log_event(AuditEventType.ENGINE_STOP, {"heartbeat_ticks": heartbeat_ticks})

    def policy_changed(self, keys: frozenset[str], version: int, patterns: int, enabled: bool) -> None:
        """Record a policy swap.

        A write that touched only the enabled flag is a feature toggle;
        anything else is a policy reload.
        """
        event_type = (
            AuditEventType.FEATURE_TOGGLE if keys == {ENABLED_KEY}
            else AuditEventType.POLICY_RELOAD
        )
        self.log_event(event_type, {
            "keys": sorted(keys),
            "version": version,
            "patterns": patterns,
            "enabled": enabled,
        })

    def close(self) -> None:
        """Flush and close the log file; later writes raise AuditLogError."""
        with self._lock:
            for handler in self._logger.handlers:
                handler.flush()
                handler.close()
            self._logger.handlers.clear()
