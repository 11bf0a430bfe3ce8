"""CLI tests — Click's CliRunner, no running server needed.

Learn: Network helpers are monkeypatched on the module, so the commands'
formatting and error paths are exercised without HTTP or websockets.
"""

import asyncio
import json

import httpx
import pytest
from click.testing import CliRunner

from eventhub import __version__
from eventhub.cli import main as cli

EVENTS = [
    {
        "id": "e1",
        "title": "Launch Party",
        "date": "2026-11-02T18:00:00",
        "location": "Rooftop",
        "organizer": {"id": "u1", "email": "org@example.com"},
        "rsvps": [{"status": "GOING"}, {"status": "MAYBE"}, {"status": "GOING"}],
    }
]


@pytest.fixture()
def runner():
    return CliRunner()


@pytest.fixture()
def fake_events(monkeypatch):
    async def _fetch(token):
        return EVENTS

    monkeypatch.setattr(cli, "_fetch_events", _fetch)


def test_version(runner):
    result = runner.invoke(cli.main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_serve_runs_uvicorn(runner, monkeypatch):
    calls = []
    monkeypatch.setattr("uvicorn.run", lambda app, **kw: calls.append((app, kw)))

    result = runner.invoke(cli.main, ["serve", "--port", "8123"])
    assert result.exit_code == 0
    assert calls == [("eventhub.main:app", {"host": "0.0.0.0", "port": 8123, "reload": False})]


def test_events_table(runner, fake_events):
    result = runner.invoke(cli.main, ["events"])
    assert result.exit_code == 0
    assert "Launch Party" in result.output
    assert "2026-11-02 18:00" in result.output
    assert "org@example.com" in result.output


def test_events_json(runner, fake_events):
    result = runner.invoke(cli.main, ["events", "--json"])
    assert result.exit_code == 0
    assert json.loads(result.output) == EVENTS


def test_events_server_unreachable(runner, monkeypatch):
    async def _fetch(token):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(cli, "_fetch_events", _fetch)
    result = runner.invoke(cli.main, ["events"])
    assert result.exit_code == 1
    assert "cannot reach" in result.output


def test_event_rows_count_going():
    rows = cli._event_rows(EVENTS)
    assert rows[0]["going"] == 2


# ═══════════════════════════════════════════════════════════
# Watch helpers
# ═══════════════════════════════════════════════════════════


@pytest.mark.parametrize(
    "kind",
    [
        "event_created",
        "event_updated",
        "event_deleted",
        "event_approved",
        "rsvp_created",
        "rsvp_updated",
    ],
)
def test_domain_notifications_trigger_refetch(kind):
    assert cli.should_refetch({"type": kind, "data": {}})


@pytest.mark.parametrize("kind", ["connected", "pong", "subscribed", "error", None])
def test_control_frames_do_not_refetch(kind):
    assert not cli.should_refetch({"type": kind})


def test_backoff_doubles_up_to_cap():
    delays = [cli.INITIAL_BACKOFF]
    for _ in range(8):
        delays.append(cli.next_backoff(delays[-1]))
    assert delays[:4] == [1.0, 2.0, 4.0, 8.0]
    assert max(delays) == cli.MAX_BACKOFF


def test_ws_url(monkeypatch):
    monkeypatch.setenv("EVENTHUB_API_URL", "https://events.example.com/")
    assert cli._ws_url(None) == "wss://events.example.com/ws"
    monkeypatch.setenv("EVENTHUB_API_URL", "http://localhost:3000")
    assert cli._ws_url("abc") == "ws://localhost:3000/ws?token=abc"


def test_on_frame_refetches_on_notification(monkeypatch):
    shown = []

    async def _show(token):
        shown.append(token)

    monkeypatch.setattr(cli, "_show_events", _show)

    asyncio.run(cli._on_frame(json.dumps({"type": "pong"}), "t"))
    asyncio.run(cli._on_frame("not json", "t"))
    assert shown == []

    asyncio.run(cli._on_frame(json.dumps({"type": "event_deleted", "data": {"eventId": "1"}}), "t"))
    assert shown == ["t"]


def test_on_frame_ignores_non_object_frames(monkeypatch):
    shown = []

    async def _show(token):
        shown.append(token)

    monkeypatch.setattr(cli, "_show_events", _show)

    for raw in ("[]", "42", "null", '"event_created"'):
        asyncio.run(cli._on_frame(raw, "t"))
    assert shown == []


# ═══════════════════════════════════════════════════════════
# Watch command
# ═══════════════════════════════════════════════════════════


class FakeSocket:
    """Minimal stand-in for a websockets client connection."""

    def __init__(self):
        self.sent = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def send(self, text):
        self.sent.append(text)

    def __aiter__(self):
        return self

    async def __anext__(self):
        raise StopAsyncIteration


@pytest.fixture()
def fake_socket(monkeypatch):
    sock = FakeSocket()
    monkeypatch.setattr(cli.websockets, "connect", lambda url: sock)
    return sock


def test_watch_without_valid_token_exits_cleanly(runner, monkeypatch, fake_socket):
    """A 401 from the event list ends the watch with an error, not a traceback."""

    async def _show(token):
        request = httpx.Request("GET", "http://localhost:3000/events")
        response = httpx.Response(
            401, json={"detail": "Authentication required"}, request=request
        )
        raise httpx.HTTPStatusError("401 Unauthorized", request=request, response=response)

    monkeypatch.setattr(cli, "_show_events", _show)

    result = runner.invoke(cli.main, ["watch", "--max-retries", "0"])
    assert result.exit_code == 1
    assert "401" in result.output
    assert "Authentication required" in result.output
    assert json.loads(fake_socket.sent[0])["type"] == "subscribe"


def test_watch_gives_up_on_unreachable_api(runner, monkeypatch, fake_socket):
    async def _show(token):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(cli, "_show_events", _show)

    result = runner.invoke(cli.main, ["watch", "--max-retries", "0"])
    assert result.exit_code == 1
    assert "Giving up after 0 retries" in result.output
