"""Unit tests for recorded host event parsing."""

import tempfile
import unittest
from pathlib import Path

from proxyroute.core.exceptions import EventFormatError
from proxyroute.core.models import NavigationErrorEvent, NavigationEvent, SessionClosedEvent
from proxyroute.host.events import load_events, parse_event


class TestParseEvent(unittest.TestCase):
    """Test single event decoding."""

    def test_navigate(self):
        event = parse_event({"type": "navigate", "session_id": 1, "frame_id": 0, "url": "https://a.com/"})
        self.assertEqual(event, NavigationEvent(1, 0, "https://a.com/"))
        self.assertTrue(event.is_top_level)

    def test_error(self):
        event = parse_event({
            "type": "error",
            "session_id": 2,
            "frame_id": 5,
            "url": "https://a.com/",
            "error_code": "net::ERR_TIMED_OUT",
        })
        self.assertEqual(event, NavigationErrorEvent(2, 5, "https://a.com/", "net::ERR_TIMED_OUT"))
        self.assertFalse(event.is_top_level)

    def test_error_code_is_stringified(self):
        event = parse_event({"type": "error", "session_id": 2, "frame_id": 0, "url": "u", "error_code": -3})
        self.assertEqual(event.error_code, "-3")

    def test_closed(self):
        self.assertEqual(parse_event({"type": "closed", "session_id": 9}), SessionClosedEvent(9))

    def test_invalid_events(self):
        cases = [
            [],
            {"session_id": 1},
            {"type": "reload", "session_id": 1},
            {"type": "closed"},
            {"type": "closed", "session_id": "1"},
            {"type": "closed", "session_id": True},
            {"type": "navigate", "session_id": 1, "url": "https://a.com/"},
            {"type": "navigate", "session_id": 1, "frame_id": 0, "url": None},
            {"type": "error", "session_id": 1, "frame_id": 0, "url": "u"},
        ]
        for data in cases:
            with self.subTest(data=data):
                with self.assertRaises(EventFormatError):
                    parse_event(data)

    def test_unknown_type_message(self):
        with self.assertRaises(EventFormatError) as ctx:
            parse_event({"type": "reload", "session_id": 1})
        self.assertIn("Unknown event type", str(ctx.exception))


class TestLoadEvents(unittest.TestCase):
    """Test JSON Lines recordings."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = Path(self.temp_dir.name) / "events.jsonl"

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_load_skips_blank_and_comment_lines(self):
        self.path.write_text(
            "# recorded session\n"
            '{"type": "navigate", "session_id": 1, "frame_id": 0, "url": "https://a.com/"}\n'
            "\n"
            '{"type": "closed", "session_id": 1}\n'
        )
        events = load_events(self.path)
        self.assertEqual(events, [NavigationEvent(1, 0, "https://a.com/"), SessionClosedEvent(1)])

    def test_invalid_json_reports_line(self):
        self.path.write_text('{"type": "closed", "session_id": 1}\n{not json\n')
        with self.assertRaises(EventFormatError) as ctx:
            load_events(self.path)
        self.assertIn(":2:", str(ctx.exception))

    def test_invalid_event_reports_line(self):
        self.path.write_text('{"type": "closed"}\n')
        with self.assertRaises(EventFormatError) as ctx:
            load_events(self.path)
        self.assertIn(":1:", str(ctx.exception))

    def test_missing_file(self):
        with self.assertRaises(EventFormatError):
            load_events(self.path)


if __name__ == "__main__":
    unittest.main()
