"""Broadcaster — pushes notifications to every registered connection.

Learn: A broadcast is two-phase:
1. Send the serialized frame to a snapshot of the registry, all sockets
   concurrently. Each attempt yields a SendResult instead of raising.
2. Remove every connection whose attempt failed or that was already
   closed.

One bad socket never stops delivery to the others, and nothing here
ever raises to the route handler that triggered the broadcast.
Delivery is best-effort and at most once.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

import structlog
from anyio import from_thread
from starlette.requests import HTTPConnection

from eventhub.realtime.notifications import Notification, NotificationKind
from eventhub.realtime.registry import ConnectionRegistry, is_open

logger = structlog.get_logger()


@dataclass(frozen=True)
class SendResult:
    """Outcome of one send attempt to one connection."""

    connection: Any
    ok: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class BroadcastReport:
    kind: str
    attempted: int
    delivered: int
    pruned: int


class Broadcaster:
    """Serialize notifications and fan them out through a ConnectionRegistry.

    Learn: One instance per process, built by the app factory and kept
    on app.state. Routes get it through the get_broadcaster dependency.
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry
        self._pending: set[asyncio.Task] = set()

    # ─── Core ────────────────────────────────────────────

    async def broadcast(self, notification: Notification) -> BroadcastReport:
        """Deliver ``notification`` to every open connection, pruning dead ones."""
        kind = notification.kind.value
        try:
            text = notification.to_json()
        except (TypeError, ValueError) as e:
            logger.error("realtime.serialize_failed", kind=kind, error=str(e))
            return BroadcastReport(kind=kind, attempted=0, delivered=0, pruned=0)

        targets = self.registry.snapshot()
        results = await asyncio.gather(*(self._send(c, text) for c in targets))

        dead = [r for r in results if not r.ok]
        for result in dead:
            self.registry.remove(result.connection)
            logger.debug("realtime.pruned", kind=kind, reason=result.error)

        report = BroadcastReport(
            kind=kind,
            attempted=len(targets),
            delivered=len(targets) - len(dead),
            pruned=len(dead),
        )
        logger.info(
            "realtime.broadcast",
            kind=kind,
            delivered=report.delivered,
            pruned=report.pruned,
        )
        return report

    async def _send(self, connection: Any, text: str) -> SendResult:
        if not is_open(connection):
            return SendResult(connection, ok=False, error="connection closed")
        try:
            await connection.send_text(text)
        except Exception as e:
            # Any transport failure means the socket is unusable
            return SendResult(connection, ok=False, error=repr(e))
        return SendResult(connection, ok=True)

    # ─── Fire-and-forget ─────────────────────────────────

    def publish(self, notification: Notification) -> Optional[asyncio.Task]:
        """Schedule a broadcast and return immediately.

        From async code the broadcast becomes a task on the running loop
        (tracked so it isn't garbage-collected mid-flight). From a worker
        thread, e.g. a sync background task, it's handed to the loop via
        anyio and runs to completion before returning.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            try:
                from_thread.run(self.broadcast, notification)
            except RuntimeError:
                logger.warning(
                    "realtime.publish_skipped",
                    kind=notification.kind.value,
                    reason="no event loop",
                )
            return None

        task = loop.create_task(self.broadcast(notification))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every in-flight publish to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ─── Typed entry points ──────────────────────────────

    def event_created(self, event: dict[str, Any]) -> Optional[asyncio.Task]:
        return self.publish(Notification(NotificationKind.EVENT_CREATED, event))

    def event_updated(self, event: dict[str, Any]) -> Optional[asyncio.Task]:
        return self.publish(Notification(NotificationKind.EVENT_UPDATED, event))

    def event_deleted(self, event_id: str) -> Optional[asyncio.Task]:
        return self.publish(
            Notification(NotificationKind.EVENT_DELETED, {"eventId": str(event_id)})
        )

    def event_approved(self, event: dict[str, Any]) -> Optional[asyncio.Task]:
        return self.publish(Notification(NotificationKind.EVENT_APPROVED, event))

    def rsvp_created(self, rsvp: dict[str, Any]) -> Optional[asyncio.Task]:
        return self.publish(Notification(NotificationKind.RSVP_CREATED, rsvp))

    def rsvp_updated(self, rsvp: dict[str, Any]) -> Optional[asyncio.Task]:
        return self.publish(Notification(NotificationKind.RSVP_UPDATED, rsvp))


def get_broadcaster(conn: HTTPConnection) -> Broadcaster:
    """FastAPI dependency — the process-wide Broadcaster from app.state."""
    return conn.app.state.broadcaster
