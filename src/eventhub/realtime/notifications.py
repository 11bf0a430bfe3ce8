"""Notification values and the outbound wire format.

Learn: Every frame the server sends is a JSON object with a "type" and
an ISO 8601 "timestamp". Domain notifications add "data"; the control
replies (connected/pong/subscribed/error) add their own fields.

Timestamps are UTC with millisecond precision and a trailing "Z", the
same shape browsers produce with Date.toISOString().
"""

import copy
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class NotificationKind(str, Enum):
    """Domain state changes that are pushed to clients."""

    EVENT_CREATED = "event_created"
    EVENT_UPDATED = "event_updated"
    EVENT_DELETED = "event_deleted"
    EVENT_APPROVED = "event_approved"
    RSVP_CREATED = "rsvp_created"
    RSVP_UPDATED = "rsvp_updated"


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """Format ``moment`` (default: now) as e.g. 2026-10-19T08:30:00.123Z."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


@dataclass(frozen=True)
class Notification:
    """An immutable, timestamped description of a domain change.

    The payload is deep-copied on construction so the caller can keep
    mutating its own dict without affecting what goes on the wire.
    """

    kind: NotificationKind
    payload: dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        object.__setattr__(self, "kind", NotificationKind(self.kind))
        object.__setattr__(self, "payload", copy.deepcopy(self.payload))

    def to_message(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "data": copy.deepcopy(self.payload),
            "timestamp": utc_timestamp(self.timestamp),
        }

    def to_json(self) -> str:
        return encode(self.to_message())


def encode(message: dict[str, Any]) -> str:
    """Serialize an outbound frame. Stray datetimes/UUIDs become strings."""
    return json.dumps(message, default=str)


# ─── Control replies ─────────────────────────────────────

DEFAULT_CHANNELS = ["events", "rsvps"]


def connected_message() -> dict[str, Any]:
    return {
        "type": "connected",
        "message": "WebSocket connected successfully",
        "timestamp": utc_timestamp(),
    }


def pong_message() -> dict[str, Any]:
    return {"type": "pong", "timestamp": utc_timestamp()}


def subscribed_message(channels: list[str]) -> dict[str, Any]:
    return {
        "type": "subscribed",
        "channels": list(channels),
        "timestamp": utc_timestamp(),
    }


def error_message(message: str) -> dict[str, Any]:
    return {"type": "error", "message": message, "timestamp": utc_timestamp()}
