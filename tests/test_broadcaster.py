"""Broadcaster tests — fan-out, failure isolation and pruning.

Learn: FakeConnection (conftest) records frames or raises on send, so
every failure mode of a real socket can be simulated without a network.
"""

import asyncio
import json

import pytest
from starlette.websockets import WebSocketState

from eventhub.realtime.broadcaster import Broadcaster
from eventhub.realtime.notifications import Notification, NotificationKind
from eventhub.realtime.registry import ConnectionRegistry


@pytest.fixture()
def broadcaster():
    return Broadcaster(ConnectionRegistry())


def _note(payload=None, kind=NotificationKind.EVENT_CREATED) -> Notification:
    return Notification(kind, payload if payload is not None else {"id": "e1", "title": "Launch"})


# ═══════════════════════════════════════════════════════════
# Fan-out
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_every_open_connection_receives_the_frame(broadcaster, make_connection):
    conns = [make_connection(str(i)) for i in range(3)]
    for c in conns:
        broadcaster.registry.add(c)

    report = await broadcaster.broadcast(_note())

    assert report.attempted == 3
    assert report.delivered == 3
    assert report.pruned == 0
    for c in conns:
        assert c.messages[0]["type"] == "event_created"
        assert c.messages[0]["data"] == {"id": "e1", "title": "Launch"}


@pytest.mark.asyncio
async def test_frame_is_serialized_once(broadcaster, make_connection):
    """All recipients get the identical string, timestamp included."""
    a, b = make_connection("a"), make_connection("b")
    broadcaster.registry.add(a)
    broadcaster.registry.add(b)

    await broadcaster.broadcast(_note())
    assert a.sent == b.sent


@pytest.mark.asyncio
async def test_empty_registry(broadcaster):
    report = await broadcaster.broadcast(_note())
    assert (report.attempted, report.delivered, report.pruned) == (0, 0, 0)


@pytest.mark.asyncio
async def test_payload_arrives_unchanged(broadcaster, make_connection):
    payload = {
        "id": "e1",
        "title": "Café ☕",
        "nested": {"rsvps": [{"status": "GOING"}], "empty": None},
        "approved": False,
    }
    conn = make_connection()
    broadcaster.registry.add(conn)

    await broadcaster.broadcast(_note(payload))
    assert conn.messages[0]["data"] == payload


@pytest.mark.asyncio
async def test_payload_is_copied_at_construction(broadcaster, make_connection):
    """Mutating the caller's dict after building the notification changes nothing."""
    payload = {"title": "Original", "tags": ["a"]}
    note = _note(payload)
    payload["title"] = "Changed"
    payload["tags"].append("b")

    conn = make_connection()
    broadcaster.registry.add(conn)
    await broadcaster.broadcast(note)
    assert conn.messages[0]["data"] == {"title": "Original", "tags": ["a"]}


# ═══════════════════════════════════════════════════════════
# Failure isolation + pruning
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_failing_connection_does_not_block_others(broadcaster, make_connection):
    good1 = make_connection("good1")
    bad = make_connection("bad", fail=ConnectionResetError("peer gone"))
    good2 = make_connection("good2")
    for c in (good1, bad, good2):
        broadcaster.registry.add(c)

    report = await broadcaster.broadcast(_note())

    assert report.delivered == 2
    assert report.pruned == 1
    assert len(good1.sent) == 1
    assert len(good2.sent) == 1
    assert bad not in broadcaster.registry
    assert good1 in broadcaster.registry and good2 in broadcaster.registry


@pytest.mark.asyncio
async def test_pruned_connection_not_attempted_again(broadcaster):
    attempts = []

    class Flaky:
        client_state = application_state = WebSocketState.CONNECTED

        async def send_text(self, text):
            attempts.append(text)
            raise RuntimeError("socket closed")

    flaky = Flaky()
    broadcaster.registry.add(flaky)

    await broadcaster.broadcast(_note())
    await broadcaster.broadcast(_note())
    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_closed_connection_is_pruned_without_send(broadcaster, make_connection):
    closed = make_connection("closed", closed=True)
    live = make_connection("live")
    broadcaster.registry.add(closed)
    broadcaster.registry.add(live)

    report = await broadcaster.broadcast(_note())

    assert closed.sent == []
    assert closed not in broadcaster.registry
    assert report.pruned == 1
    assert len(live.sent) == 1


@pytest.mark.asyncio
async def test_unserializable_payload_never_raises(broadcaster, make_connection):
    """A payload json can't encode (even via str) yields an empty report."""
    circular: dict = {}
    circular["self"] = circular
    conn = make_connection()
    broadcaster.registry.add(conn)

    report = await broadcaster.broadcast(_note(circular))
    assert report.attempted == 0
    assert conn.sent == []
    assert conn in broadcaster.registry


# ═══════════════════════════════════════════════════════════
# Typed entry points + publish
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_typed_entry_points(broadcaster, make_connection):
    conn = make_connection()
    broadcaster.registry.add(conn)

    broadcaster.event_created({"id": "1"})
    broadcaster.event_updated({"id": "1"})
    broadcaster.event_deleted("1")
    broadcaster.event_approved({"id": "1"})
    broadcaster.rsvp_created({"id": "r"})
    broadcaster.rsvp_updated({"id": "r"})
    await broadcaster.drain()

    assert sorted(m["type"] for m in conn.messages) == sorted(k.value for k in NotificationKind)
    deleted = next(m for m in conn.messages if m["type"] == "event_deleted")
    assert deleted["data"] == {"eventId": "1"}


@pytest.mark.asyncio
async def test_publish_returns_before_delivery(broadcaster):
    gate = asyncio.Event()

    class Slow:
        client_state = application_state = WebSocketState.CONNECTED
        sent: list = []

        async def send_text(self, text):
            await gate.wait()
            self.sent.append(text)

    slow = Slow()
    broadcaster.registry.add(slow)

    task = broadcaster.publish(_note())
    assert task is not None
    assert slow.sent == []

    gate.set()
    await broadcaster.drain()
    assert json.loads(slow.sent[0])["type"] == "event_created"


def test_publish_without_loop_is_skipped(broadcaster):
    """Outside any event loop or anyio worker thread, publish is a logged no-op."""
    assert broadcaster.publish(_note()) is None


def test_notification_kind_is_coerced():
    note = Notification("rsvp_updated", {})
    assert note.kind is NotificationKind.RSVP_UPDATED
    assert note.to_message()["type"] == "rsvp_updated"
