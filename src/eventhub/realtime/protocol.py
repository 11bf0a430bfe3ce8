"""Inbound message handling for realtime connections.

Learn: Clients may send two kinds of frames:
- {"type": "ping"}                         → pong
- {"type": "subscribe", "channels": [...]} → subscribed (echo)

Subscriptions are acknowledged but not enforced: every connection
receives every notification. Anything else gets an error reply and the
connection stays open. handle_message() is pure — it maps one raw frame
to one reply — so the protocol can be tested without a socket.
"""

import json
from typing import Any

from eventhub.realtime.notifications import (
    DEFAULT_CHANNELS,
    error_message,
    pong_message,
    subscribed_message,
)

INVALID_JSON = "Invalid JSON message"
UNKNOWN_TYPE = "Unknown message type"
INVALID_CHANNELS = "Invalid channels"


def handle_message(raw: str) -> dict[str, Any]:
    """Return the reply frame for one inbound text frame."""
    try:
        msg = json.loads(raw)
    except (json.JSONDecodeError, TypeError, RecursionError):
        return error_message(INVALID_JSON)

    if msg is None:
        return error_message(INVALID_JSON)
    if not isinstance(msg, dict):
        return error_message(UNKNOWN_TYPE)

    msg_type = msg.get("type")
    if msg_type == "ping":
        return pong_message()
    if msg_type == "subscribe":
        return _subscribe(msg.get("channels"))
    return error_message(UNKNOWN_TYPE)


def _subscribe(channels: Any) -> dict[str, Any]:
    if channels is None:
        return subscribed_message(DEFAULT_CHANNELS)
    if not isinstance(channels, list) or not all(isinstance(c, str) for c in channels):
        return error_message(INVALID_CHANNELS)
    return subscribed_message(channels)
