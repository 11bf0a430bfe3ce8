"""WebSocket endpoint — realtime notifications for browser clients.

Learn: Each client connects to /ws (optionally /ws?token=JWT). The handler:
1. Authenticates the token if one is given (required when
   EVENTHUB_WS_REQUIRE_AUTH is set)
2. Accepts, registers the socket, and sends a "connected" frame
3. Answers ping/subscribe frames until the client goes away
4. Deregisters the socket on disconnect or transport failure

Broadcasts reach the socket through the registry, not through this
handler — this loop only deals with what the client sends.
"""

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from eventhub.auth.dependencies import authenticate_token
from eventhub.auth.jwt import TokenError
from eventhub.config import settings
from eventhub.realtime.notifications import connected_message, encode
from eventhub.realtime.protocol import handle_message
from eventhub.realtime.registry import is_open

logger = structlog.get_logger()
router = APIRouter()


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket):
    """Long-lived notification channel, one per browser tab."""
    # ── Authentication ──────────────────────────────────────
    token = websocket.query_params.get("token")

    if not token and settings.ws_require_auth:
        await websocket.close(code=4001, reason="Authentication required")
        return

    user_id = None
    if token:
        try:
            user_id = authenticate_token(token).user_id
        except TokenError:
            await websocket.close(code=4001, reason="Invalid or expired token")
            return

    # ── Connection accepted ─────────────────────────────────
    registry = websocket.app.state.broadcaster.registry
    await websocket.accept()
    registry.add(websocket)
    log = logger.bind(user_id=user_id)

    try:
        await websocket.send_text(encode(connected_message()))
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            await websocket.send_text(encode(handle_message(_frame_text(message))))
    except WebSocketDisconnect:
        log.debug("realtime.client_closed")
    except RuntimeError as e:
        # Starlette raises RuntimeError when the transport is already gone
        log.warning("realtime.transport_error", error=str(e))
    finally:
        registry.remove(websocket)
        if is_open(websocket):
            try:
                await websocket.close()
            except (RuntimeError, OSError):
                pass  # transport went away mid-close


def _frame_text(message: dict) -> str:
    """Text of an inbound frame. Binary frames are decoded as UTF-8."""
    if message.get("text") is not None:
        return message["text"]
    return (message.get("bytes") or b"").decode("utf-8", errors="replace")
