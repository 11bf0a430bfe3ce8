"""Connection registry — the set of sockets believed to be open.

Learn: Membership is eventually consistent. A socket that died without
a clean close stays registered until the next broadcast fails to reach
it and prunes it. All mutation happens on the event loop thread, and
broadcasts iterate a snapshot, so sockets opening or closing during a
broadcast never disturb the iteration.
"""

from typing import Any

import structlog
from starlette.websockets import WebSocketState

logger = structlog.get_logger()


def is_open(connection: Any) -> bool:
    """True when both ends of the websocket still consider it connected."""
    return (
        connection.client_state == WebSocketState.CONNECTED
        and connection.application_state == WebSocketState.CONNECTED
    )


class ConnectionRegistry:
    """Tracks live realtime connections by identity."""

    def __init__(self) -> None:
        self._connections: set[Any] = set()

    def add(self, connection: Any) -> None:
        """Register ``connection``. Adding it twice keeps one membership."""
        self._connections.add(connection)
        logger.info("realtime.connected", total=len(self._connections))

    def remove(self, connection: Any) -> None:
        """Deregister ``connection``. Unknown connections are ignored."""
        if connection not in self._connections:
            return
        self._connections.discard(connection)
        logger.info("realtime.disconnected", total=len(self._connections))

    def snapshot(self) -> list[Any]:
        return list(self._connections)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection: Any) -> bool:
        return connection in self._connections
