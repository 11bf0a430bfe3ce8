"""EventHub CLI — run the server, list events, watch realtime updates.

Usage:
    eventhub serve --port 3000            # Run the API + websocket server
    eventhub events                       # List approved events
    eventhub watch                        # Live event list, refreshed on every notification

`events` and `watch` talk to a running server. Set EVENTHUB_API_URL to
point elsewhere and EVENTHUB_TOKEN to an access token from /auth/login.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx
import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from eventhub import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:3000"

# Every domain notification invalidates the event list. The watcher
# refetches instead of patching its copy with the pushed payload.
REFETCH_TYPES = frozenset({
    "event_created",
    "event_updated",
    "event_deleted",
    "event_approved",
    "rsvp_created",
    "rsvp_updated",
})

INITIAL_BACKOFF = 1.0
MAX_BACKOFF = 30.0


def _api_url() -> str:
    return os.environ.get("EVENTHUB_API_URL", DEFAULT_API_URL).rstrip("/")


def _ws_url(token: Optional[str]) -> str:
    base = _api_url()
    if base.startswith("https://"):
        url = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        url = "ws://" + base[len("http://"):]
    else:
        url = base
    url += "/ws"
    if token:
        url += f"?token={token}"
    return url


def _token(token: Optional[str]) -> Optional[str]:
    return token or os.environ.get("EVENTHUB_TOKEN")


def _client(token: Optional[str]) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the EventHub backend."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(base_url=_api_url(), headers=headers, timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Falls back to a worker thread when a loop is already running
    (e.g. Click's CliRunner inside an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def should_refetch(message: dict) -> bool:
    return message.get("type") in REFETCH_TYPES


def next_backoff(delay: float) -> float:
    """Double the reconnect delay, capped at MAX_BACKOFF."""
    return min(delay * 2, MAX_BACKOFF)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "—"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _event_rows(events: list[dict]) -> list[dict]:
    rows = []
    for e in events:
        going = sum(1 for r in e.get("rsvps", []) if r.get("status") == "GOING")
        rows.append({
            "date": e["date"][:16].replace("T", " "),
            "title": e["title"],
            "location": e["location"],
            "organizer": e.get("organizer", {}).get("email", "—"),
            "going": going,
        })
    return rows


async def _fetch_events(token: Optional[str]) -> list[dict]:
    async with _client(token) as c:
        r = await c.get("/events")
        r.raise_for_status()
        return r.json()["events"]


async def _show_events(token: Optional[str]):
    events = await _fetch_events(token)
    if not events:
        click.echo("No approved events.")
        return
    _print_table(
        _event_rows(events),
        [
            ("DATE", "date", 16),
            ("TITLE", "title", 30),
            ("LOCATION", "location", 20),
            ("ORGANIZER", "organizer", 24),
            ("GOING", "going", 5),
        ],
    )


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="eventhub")
def main():
    """EventHub — event management with realtime notifications."""


# ---------------------------------------------------------------------------
# eventhub serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: EVENTHUB_HOST)")
@click.option("--port", "-p", type=int, default=None, help="Port (default: EVENTHUB_PORT)")
@click.option("--reload", is_flag=True, help="Restart on code changes (development)")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API and websocket server."""
    import uvicorn

    from eventhub.config import settings

    uvicorn.run(
        "eventhub.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# eventhub events
# ---------------------------------------------------------------------------


@main.command()
@click.option("--token", help="Access token (or set EVENTHUB_TOKEN)")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def events(token: Optional[str], as_json: bool):
    """List approved events."""
    token = _token(token)
    try:
        if as_json:
            click.echo(json.dumps(_run(_fetch_events(token)), indent=2))
        else:
            _run(_show_events(token))
    except httpx.HTTPStatusError as e:
        click.secho(f"Error: {e.response.status_code} {e.response.text}", fg="red", err=True)
        sys.exit(1)
    except httpx.HTTPError as e:
        click.secho(f"Error: cannot reach {_api_url()} ({e})", fg="red", err=True)
        sys.exit(1)


# ---------------------------------------------------------------------------
# eventhub watch
# ---------------------------------------------------------------------------


@main.command()
@click.option("--token", help="Access token (or set EVENTHUB_TOKEN)")
@click.option(
    "--max-retries",
    type=int,
    default=None,
    help="Give up after this many failed reconnects (default: never)",
)
def watch(token: Optional[str], max_retries: Optional[int]):
    """Show the event list and refresh it whenever the server pushes a change."""
    _run(_watch_impl(_token(token), max_retries))


async def _watch_impl(token: Optional[str], max_retries: Optional[int]):
    url = _ws_url(token)
    delay = INITIAL_BACKOFF
    failures = 0

    while True:
        try:
            async with websockets.connect(url) as ws:
                delay, failures = INITIAL_BACKOFF, 0
                await ws.send(json.dumps({"type": "subscribe", "channels": ["events", "rsvps"]}))
                await _show_events(token)
                async for raw in ws:
                    await _on_frame(raw, token)
        except httpx.HTTPStatusError as e:
            # Rejected credentials are fatal; only transport errors retry
            click.secho(f"Error: {e.response.status_code} {e.response.text}", fg="red", err=True)
            sys.exit(1)
        except (OSError, ConnectionClosed, InvalidHandshake, httpx.TransportError) as e:
            failures += 1
            if max_retries is not None and failures > max_retries:
                click.secho(f"Giving up after {max_retries} retries: {e}", fg="red", err=True)
                sys.exit(1)
            click.secho(f"Disconnected ({e}); retrying in {delay:.0f}s", fg="yellow", err=True)
            await asyncio.sleep(delay)
            delay = next_backoff(delay)


async def _on_frame(raw: str, token: Optional[str]):
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        click.secho(f"Ignoring non-JSON frame: {raw[:80]}", fg="yellow", err=True)
        return
    if not isinstance(message, dict):
        click.secho(f"Ignoring non-object frame: {raw[:80]}", fg="yellow", err=True)
        return

    kind = message.get("type")
    if should_refetch(message):
        click.echo()
        click.secho(f"[{message.get('timestamp', '')}] {kind}", fg="cyan")
        try:
            await _show_events(token)
        except httpx.HTTPError as e:
            click.secho(f"Refetch failed: {e}", fg="red", err=True)
    elif kind == "error":
        click.secho(f"Server error: {message.get('message')}", fg="red", err=True)
    elif kind in ("connected", "subscribed"):
        click.secho(f"{kind}: {message.get('message') or message.get('channels')}", fg="green")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
