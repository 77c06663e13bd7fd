"""Unit tests for host navigators."""

import json
import unittest

import httpx

from proxyroute.core.constants import PROXY_PREFIX, RedirectReason
from proxyroute.core.models import RedirectAction
from proxyroute.host.navigator import HttpNavigator, RecordingNavigator


ENDPOINT = "http://127.0.0.1:9222/proxyroute/navigate"


def make_action(session_id=7, reason=RedirectReason.TO_PROXY):
    return RedirectAction(
        session_id=session_id,
        target_url=PROXY_PREFIX + "https://example.com/",
        reason=reason,
    )


class TestHttpNavigator(unittest.IsolatedAsyncioTestCase):
    """Test the JSON bridge navigator against a mock transport."""

    async def asyncSetUp(self):
        self.requests = []
        self.status = 200

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return httpx.Response(self.status, json={"ok": self.status == 200})

        self.navigator = HttpNavigator(
            ENDPOINT,
            headers={"X-Token": "secret"},
            transport=httpx.MockTransport(handler),
        )

    async def asyncTearDown(self):
        await self.navigator.aclose()

    async def test_successful_navigation(self):
        action = make_action()
        result = await self.navigator.navigate(action)

        self.assertTrue(result.success)
        self.assertIs(result.action, action)
        self.assertEqual(len(self.requests), 1)

        request = self.requests[0]
        self.assertEqual(request.method, "POST")
        self.assertEqual(str(request.url), ENDPOINT)
        self.assertEqual(request.headers["X-Token"], "secret")
        self.assertEqual(
            json.loads(request.content),
            {
                "session_id": 7,
                "url": PROXY_PREFIX + "https://example.com/",
                "replace": True,
                "reason": "to_proxy",
            },
        )

    async def test_error_status_becomes_failed_result(self):
        self.status = 500
        result = await self.navigator.navigate(make_action())

        self.assertFalse(result.success)
        self.assertEqual(result.error, "host returned 500")

    async def test_transport_error_becomes_failed_result(self):
        def broken(request):
            raise httpx.ConnectError("connection refused", request=request)

        navigator = HttpNavigator(ENDPOINT, transport=httpx.MockTransport(broken))
        try:
            result = await navigator.navigate(make_action())
        finally:
            await navigator.aclose()

        self.assertFalse(result.success)
        self.assertIn("ConnectError", result.error)
        self.assertIn("connection refused", result.error)

    def test_format_payload_reason(self):
        payload = self.navigator.format_payload(make_action(reason=RedirectReason.ERROR_FAILOVER))
        self.assertEqual(payload["reason"], "error_failover")


class TestRecordingNavigator(unittest.IsolatedAsyncioTestCase):
    """Test the in-memory navigator."""

    async def test_records_actions(self):
        navigator = RecordingNavigator()
        await navigator.navigate(make_action(1))
        await navigator.navigate(make_action(2, RedirectReason.BYPASS_PROXY))

        self.assertEqual(len(navigator.actions), 2)
        self.assertEqual(len(navigator.targets()), 2)
        self.assertEqual(len(navigator.targets(RedirectReason.BYPASS_PROXY)), 1)

    async def test_fail_sessions(self):
        navigator = RecordingNavigator(fail_sessions={3})
        result = await navigator.navigate(make_action(3))

        self.assertFalse(result.success)
        self.assertEqual(navigator.actions, [])


if __name__ == "__main__":
    unittest.main()
