"""Async event service around the redirect decision engine.

This module provides RedirectService, which the host's event source calls
into. Decisions are taken synchronously; the resulting host navigation is
started as a background task and never awaited by the event handler. The
service also follows store change notifications and runs the keep-alive
heartbeat.
"""

import asyncio
import logging
from collections import deque
from typing import Optional

from proxyroute.core.constants import DEFAULTS
from proxyroute.core.models import (
    NavigationErrorEvent,
    NavigationEvent,
    NavigationResult,
    RedirectAction,
    SessionClosedEvent,
)
from proxyroute.engine.decision import RedirectDecisionEngine
from proxyroute.host.navigator import Navigator
from proxyroute.storage.pattern_store import PatternStore


logger = logging.getLogger(__name__)


class RedirectService:
    """Feed host events to the engine and hand redirects to the navigator.

    Example:
        >>> service = RedirectService(engine, navigator, store=store)
        >>> await service.start()
        >>> service.handle_navigation(NavigationEvent(7, 0, "https://example.com/"))
        >>> await service.stop()
    """

    def __init__(
        self,
        engine: RedirectDecisionEngine,
        navigator: Navigator,
        *,
        store: Optional[PatternStore] = None,
        heartbeat_interval: float = DEFAULTS["heartbeat_interval"],
        result_history: int = DEFAULTS["result_history"],
    ) -> None:
        """Initialize the service.

        Args:
            engine: Decision engine fed by the handlers
            navigator: Host navigation API for issued redirects
            store: Pattern store to follow for policy changes
            heartbeat_interval: Seconds between keep-alive ticks
            result_history: How many recent navigation results to keep
        """
        self.engine = engine
        self.navigator = navigator
        self.store = store
        self.heartbeat_interval = heartbeat_interval
        self.heartbeat_ticks = 0
        self.results: deque[NavigationResult] = deque(maxlen=result_history)

        self._running = False
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._pending: set[asyncio.Task] = set()
        # Last redirect dispatched per session, until it completes
        self._in_flight: dict[int, RedirectAction] = {}

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True

        if self.store is not None:
            self.engine.policy.refresh_from(self.store)
            self.store.subscribe(self._on_store_changed)

        self._heartbeat_task = asyncio.create_task(self._heartbeat())
        snapshot = self.engine.policy.get()
        self.engine.record_audit(lambda audit: audit.engine_started(len(snapshot), snapshot.enabled))
        logger.info("Redirect service started")

    async def stop(self) -> None:
        self._running = False

        if self.store is not None:
            self.store.unsubscribe(self._on_store_changed)

        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass
            self._heartbeat_task = None

        await self.drain()
        await self.navigator.aclose()
        ticks = self.heartbeat_ticks
        self.engine.record_audit(lambda audit: audit.engine_stopped(ticks))
        logger.info("Redirect service stopped")

    # ------------------------------------------------------------------
    # Host events
    # ------------------------------------------------------------------

    def handle_navigation(self, event: NavigationEvent) -> Optional[RedirectAction]:
        action = self.engine.on_before_navigate(event)
        if action is not None:
            self._dispatch(action)
        return action

    def handle_error(self, event: NavigationErrorEvent) -> Optional[RedirectAction]:
        action = self.engine.on_navigation_error(event)
        if action is not None:
            self._dispatch(action)
        return action

    def handle_session_closed(self, session_id: int) -> None:
        self._in_flight.pop(session_id, None)
        self.engine.on_session_closed(session_id)

    def handle_event(
        self,
        event: NavigationEvent | NavigationErrorEvent | SessionClosedEvent,
    ) -> Optional[RedirectAction]:
        """Route any host event to its handler."""
        if isinstance(event, NavigationEvent):
            return self.handle_navigation(event)
        if isinstance(event, NavigationErrorEvent):
            return self.handle_error(event)
        self.handle_session_closed(event.session_id)
        return None

    async def drain(self) -> None:
        """Wait for every navigation started so far to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _dispatch(self, action: RedirectAction) -> None:
        self._in_flight[action.session_id] = action
        task = asyncio.create_task(self._navigate(action))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _navigate(self, action: RedirectAction) -> None:
        try:
            result = await self.navigator.navigate(action)
        except Exception as e:
            result = NavigationResult(action=action, error=f"{type(e).__name__}: {e}")

        self.results.append(result)
        latest = self._in_flight.get(action.session_id) is action
        if latest:
            del self._in_flight[action.session_id]
        if result.success:
            return

        logger.warning(
            f"Redirect of session {action.session_id} to {action.target_url} failed: {result.error}"
        )
        # Host reports no navigation for a rejected redirect, so its marker
        # must go; a newer redirect in the session owns the marker otherwise
        if latest:
            self.engine.release_marker(action.session_id)
        self.engine.record_audit(lambda audit: audit.navigation_failed(result))

    def _on_store_changed(self, keys: frozenset[str]) -> None:
        if self.store is None:
            return
        if self.engine.policy.refresh_from(self.store):
            snapshot = self.engine.policy.get()
            self.engine.record_audit(lambda audit: audit.policy_changed(
                keys, snapshot.version, len(snapshot), snapshot.enabled,
            ))

    async def _heartbeat(self) -> None:
        while self._running:
            await asyncio.sleep(self.heartbeat_interval)
            self.heartbeat_ticks += 1
            logger.debug(f"Heartbeat {self.heartbeat_ticks}")
