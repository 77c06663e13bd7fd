"""Redirect decision state machine.

RedirectDecisionEngine turns host navigation events into at most one
RedirectAction each:

- a direct URL that policy forces is sent to PROXY_PREFIX + URL
- a proxied URL whose wrapped site is not forced is unwrapped
- a failed top-level load fails over to the proxied URL

Every redirect is preceded by a loop-guard marker for the session, and the
navigation the redirect causes consumes that marker without being
evaluated. Any error while handling an event is logged and the event
becomes a no-op: navigation proceeds un-redirected.
"""

import logging
from collections.abc import Callable
from typing import Any, Optional

from proxyroute.classifier.classifier import URLClassifier, http_hostname
from proxyroute.core.audit import AuditLogger
from proxyroute.core.constants import (
    ABORTED_ERROR_CODES,
    PROXY_PREFIX,
    RedirectReason,
)
from proxyroute.core.exceptions import AuditLogError
from proxyroute.core.models import NavigationErrorEvent, NavigationEvent, RedirectAction
from proxyroute.engine.loop_guard import LoopGuard, MemoryLoopGuard
from proxyroute.engine.policy import PolicyCell


logger = logging.getLogger(__name__)


class RedirectDecisionEngine:
    """Decide which navigations to redirect through or away from the proxy."""

    def __init__(
        self,
        policy: PolicyCell,
        loop_guard: Optional[LoopGuard] = None,
        *,
        proxy_prefix: str = PROXY_PREFIX,
        aborted_error_codes: frozenset[str] = ABORTED_ERROR_CODES,
        classifier: Optional[URLClassifier] = None,
        audit: Optional[AuditLogger] = None,
    ) -> None:
        """Initialize the engine.

        Args:
            policy: Cell holding the current force list and enabled flag
            loop_guard: Marker store (in-memory if None)
            proxy_prefix: Security proxy URL namespace
            aborted_error_codes: Error codes that never trigger failover
            classifier: URLClassifier instance (creates default if None)
            audit: Optional audit logger for decisions
        """
        self.policy = policy
        self.loop_guard = loop_guard if loop_guard is not None else MemoryLoopGuard()
        self.proxy_prefix = proxy_prefix
        self.aborted_error_codes = frozenset(aborted_error_codes)
        self.classifier = classifier or URLClassifier()
        self.audit = audit

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def on_before_navigate(self, event: NavigationEvent) -> Optional[RedirectAction]:
        """Handle a navigation-start event.

        Args:
            event: Navigation about to start

        Returns:
            RedirectAction to issue, or None for no-op
        """
        try:
            return self._decide_navigation(event)
        except Exception as e:
            logger.exception(f"Navigation in session {event.session_id} left as-is: {e}")
            return None

    def on_navigation_error(self, event: NavigationErrorEvent) -> Optional[RedirectAction]:
        """Handle a failed top-level load by failing over to the proxy.

        Args:
            event: Navigation error reported by the host

        Returns:
            RedirectAction to issue, or None for no-op
        """
        try:
            return self._decide_error(event)
        except Exception as e:
            logger.exception(f"Error failover in session {event.session_id} skipped: {e}")
            return None

    def on_session_closed(self, session_id: int) -> None:
        """Drop the session's marker. Runs even when disabled."""
        try:
            self.loop_guard.clear(session_id)
        except Exception as e:
            logger.exception(f"Failed to clear marker for session {session_id}: {e}")

    def release_marker(self, session_id: int) -> None:
        """Drop a marker whose redirect the host rejected."""
        self.on_session_closed(session_id)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def _decide_navigation(self, event: NavigationEvent) -> Optional[RedirectAction]:
        if not event.is_top_level:
            return None

        snapshot = self.policy.get()
        if not snapshot.enabled:
            return None

        if self.loop_guard.consume(event.session_id):
            logger.debug(f"Session {event.session_id}: own redirect to {event.url} completed")
            self.record_audit(lambda audit: audit.redirect_suppressed(event.session_id, event.url))
            return None

        url = event.url
        if self.is_proxied(url):
            wrapped = self.unwrap(url)
            if wrapped is None:
                return None
            pattern = self.classifier.match(wrapped, snapshot)
            if pattern is not None:
                logger.debug(f"Session {event.session_id}: {wrapped} stays on proxy ('{pattern.text}')")
                return None
            logger.info(f"Session {event.session_id}: {wrapped} is not forced, bypassing proxy")
            return self._redirect(event.session_id, wrapped, RedirectReason.BYPASS_PROXY, url)

        pattern = self.classifier.match(url, snapshot)
        if pattern is None:
            return None

        logger.info(f"Session {event.session_id}: {url} forced by '{pattern.text}', redirecting to proxy")
        return self._redirect(
            event.session_id,
            self.proxy_prefix + url,
            RedirectReason.TO_PROXY,
            url,
            pattern=pattern.text,
        )

    def _decide_error(self, event: NavigationErrorEvent) -> Optional[RedirectAction]:
        if not event.is_top_level:
            return None
        if not self.policy.get().enabled:
            return None
        if http_hostname(event.url) is None or self.is_proxied(event.url):
            return None
        if event.error_code in self.aborted_error_codes:
            return None

        logger.info(f"Session {event.session_id}: load failed ({event.error_code}), failing over to proxy")
        return self._redirect(
            event.session_id,
            self.proxy_prefix + event.url,
            RedirectReason.ERROR_FAILOVER,
            event.url,
            error_code=event.error_code,
        )

    def _redirect(
        self,
        session_id: int,
        target_url: str,
        reason: RedirectReason,
        source_url: str,
        **details: Any,
    ) -> RedirectAction:
        # Marker must exist before the host sees the new navigation
        self.loop_guard.mark(session_id)
        action = RedirectAction(session_id=session_id, target_url=target_url, reason=reason)
        self.record_audit(lambda audit: audit.redirect_issued(action, source_url, **details))
        return action

    def record_audit(self, write: Callable[[AuditLogger], None]) -> None:
        """Run write against the audit logger, if any; audit failures are logged only."""
        if self.audit is None:
            return
        try:
            write(self.audit)
        except AuditLogError as e:
            logger.warning(f"Audit write failed: {e}")

    # ------------------------------------------------------------------
    # Proxy URL helpers
    # ------------------------------------------------------------------

    def is_proxied(self, url: str) -> bool:
        """Check if url is inside the proxy namespace."""
        return url.startswith(self.proxy_prefix)

    def unwrap(self, url: str) -> Optional[str]:
        """Return the site wrapped by a proxied URL.

        Args:
            url: URL starting with the proxy prefix

        Returns:
            The suffix if it is an absolute http(s) URL with a host, None
            for the proxy's own pages and for malformed suffixes
        """
        suffix = url[len(self.proxy_prefix):]
        return suffix if http_hostname(suffix) is not None else None
