"""Inbound frame handling — one raw frame in, one reply out."""

import json
from datetime import datetime

import pytest

from eventhub.realtime.notifications import utc_timestamp
from eventhub.realtime.protocol import handle_message


def _parses(timestamp: str) -> bool:
    return isinstance(datetime.fromisoformat(timestamp.replace("Z", "+00:00")), datetime)


def test_ping_gets_pong():
    reply = handle_message(json.dumps({"type": "ping"}))
    assert reply["type"] == "pong"
    assert _parses(reply["timestamp"])


def test_subscribe_echoes_channels():
    reply = handle_message(json.dumps({"type": "subscribe", "channels": ["events"]}))
    assert reply["type"] == "subscribed"
    assert reply["channels"] == ["events"]
    assert _parses(reply["timestamp"])


def test_subscribe_without_channels_uses_defaults():
    reply = handle_message(json.dumps({"type": "subscribe"}))
    assert reply == {
        "type": "subscribed",
        "channels": ["events", "rsvps"],
        "timestamp": reply["timestamp"],
    }


def test_subscribe_empty_list_is_echoed():
    reply = handle_message(json.dumps({"type": "subscribe", "channels": []}))
    assert reply["type"] == "subscribed"
    assert reply["channels"] == []


@pytest.mark.parametrize("channels", ["events", [1, 2], {"events": True}])
def test_subscribe_invalid_channels(channels):
    reply = handle_message(json.dumps({"type": "subscribe", "channels": channels}))
    assert reply["type"] == "error"
    assert reply["message"] == "Invalid channels"


@pytest.mark.parametrize(
    "frame",
    [{"type": "bogus"}, {"no_type": True}, {"type": None}, ["ping"], "ping", 42],
)
def test_unknown_type(frame):
    reply = handle_message(json.dumps(frame))
    assert reply["type"] == "error"
    assert reply["message"] == "Unknown message type"


@pytest.mark.parametrize("raw", ["not json", "{", ""])
def test_malformed_json(raw):
    reply = handle_message(raw)
    assert reply["type"] == "error"
    assert reply["message"] == "Invalid JSON message"
    assert _parses(reply["timestamp"])


def test_deeply_nested_frame_is_malformed():
    """Nesting deep enough to exhaust the decoder is reported, not raised."""
    reply = handle_message("[" * 100000)
    assert reply["type"] == "error"
    assert reply["message"] == "Invalid JSON message"


def test_null_frame_is_malformed():
    reply = handle_message("null")
    assert reply["type"] == "error"
    assert reply["message"] == "Invalid JSON message"


def test_timestamp_format():
    moment = datetime(2026, 10, 19, 8, 30, 0, 123456)
    assert utc_timestamp(moment) == "2026-10-19T08:30:00.123Z"
