from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from proxyroute.core.constants import DEFAULTS, RedirectReason
from proxyroute.core.models import NavigationResult, RedirectAction


logger = logging.getLogger(__name__)


class Navigator(ABC):
    """Host navigation API: load a URL in a session's top-level frame.

    Implementations report failure through NavigationResult.error instead
    of raising, so callers can log and move on.
    """

    name: str = "base"

    @abstractmethod
    async def navigate(self, action: RedirectAction) -> NavigationResult:
        pass

    async def aclose(self) -> None:
        pass


class HttpNavigator(Navigator):
    """POST redirect actions to a host bridge endpoint as JSON."""

    name = "http"

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = DEFAULTS["navigator_timeout"],
        headers: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.endpoint = endpoint
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Content-Type": "application/json", **(headers or {})},
            transport=transport,
        )

    def format_payload(self, action: RedirectAction) -> dict[str, Any]:
        return {
            "session_id": action.session_id,
            "url": action.target_url,
            "replace": True,
            "reason": action.reason.value,
        }

    async def navigate(self, action: RedirectAction) -> NavigationResult:
        try:
            response = await self._client.post(self.endpoint, json=self.format_payload(action))
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            return NavigationResult(action=action, error=f"host returned {e.response.status_code}")
        except httpx.HTTPError as e:
            return NavigationResult(action=action, error=f"{type(e).__name__}: {e}")
        return NavigationResult(action=action)

    async def aclose(self) -> None:
        await self._client.aclose()


class RecordingNavigator(Navigator):
    """Keep redirect actions in memory instead of sending them anywhere."""

    name = "recording"

    def __init__(self, fail_sessions: Optional[set[int]] = None) -> None:
        self.actions: list[RedirectAction] = []
        self.fail_sessions = fail_sessions or set()

    async def navigate(self, action: RedirectAction) -> NavigationResult:
        if action.session_id in self.fail_sessions:
            return NavigationResult(action=action, error=f"session {action.session_id} is gone")
        self.actions.append(action)
        return NavigationResult(action=action)

    def targets(self, reason: Optional[RedirectReason] = None) -> list[str]:
        return [a.target_url for a in self.actions if reason is None or a.reason == reason]
