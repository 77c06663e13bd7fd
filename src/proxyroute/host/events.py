"""Recorded host events.

A recording is a JSON Lines file, one host notification per line:

    {"type": "navigate", "session_id": 7, "frame_id": 0, "url": "https://example.com/"}
    {"type": "error", "session_id": 7, "frame_id": 0, "url": "https://site.com", "error_code": "net::ERR_TIMED_OUT"}
    {"type": "closed", "session_id": 7}

Blank lines and lines starting with ``#`` are ignored.
"""

import json
from pathlib import Path
from typing import Any, Union

from proxyroute.core.exceptions import EventFormatError
from proxyroute.core.models import NavigationErrorEvent, NavigationEvent, SessionClosedEvent


HostEvent = Union[NavigationEvent, NavigationErrorEvent, SessionClosedEvent]

EVENT_TYPES = ("navigate", "error", "closed")


def parse_event(data: Any) -> HostEvent:
    """Build a host event from a decoded JSON object.

    Raises:
        EventFormatError: If the type is unknown or a field is missing
    """
    if not isinstance(data, dict):
        raise EventFormatError(f"Event must be an object, got {type(data).__name__}")

    event_type = data.get("type")
    if event_type not in EVENT_TYPES:
        raise EventFormatError(f"Unknown event type: {event_type!r}")

    try:
        session_id = _int_field(data, "session_id")
        if event_type == "closed":
            return SessionClosedEvent(session_id=session_id)

        frame_id = _int_field(data, "frame_id")
        url = data["url"]
        if not isinstance(url, str):
            raise EventFormatError("'url' must be a string")

        if event_type == "navigate":
            return NavigationEvent(session_id=session_id, frame_id=frame_id, url=url)
        return NavigationErrorEvent(
            session_id=session_id,
            frame_id=frame_id,
            url=url,
            error_code=str(data["error_code"]),
        )
    except KeyError as e:
        raise EventFormatError(f"Missing field {e} in {event_type!r} event") from e


def load_events(path: Path) -> list[HostEvent]:
    """Read a JSON Lines recording.

    Raises:
        EventFormatError: If a line is not valid JSON or not a valid event
    """
    events = []
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        raise EventFormatError(f"Failed to read events file {path}: {e}") from e

    for lineno, line in enumerate(lines, start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            events.append(parse_event(json.loads(line)))
        except json.JSONDecodeError as e:
            raise EventFormatError(f"{path}:{lineno}: invalid JSON: {e}") from e
        except EventFormatError as e:
            raise EventFormatError(f"{path}:{lineno}: {e}") from e
    return events


def _int_field(data: dict, name: str) -> int:
    value = data[name]
    if isinstance(value, bool) or not isinstance(value, int):
        raise EventFormatError(f"'{name}' must be an integer")
    return value
