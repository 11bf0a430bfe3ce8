"""Health and service-info endpoints.

Learn: /health verifies the database is reachable and reports how many
realtime clients are connected. /api describes where things live.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub import __version__
from eventhub.db.engine import get_db
from eventhub.realtime.broadcaster import Broadcaster, get_broadcaster

router = APIRouter()


@router.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    status = "healthy" if checks["database"] == "ok" else "degraded"
    return {
        "status": status,
        **checks,
        "connections": len(broadcaster.registry),
    }


@router.get("/api")
async def api_info():
    return {
        "message": "EventHub API",
        "version": __version__,
        "documentation": "/docs",
        "websocket": "/ws",
    }
