"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. The realtime registry and broadcaster are built here, one per
app, and stored on app.state; routes and the websocket endpoint reach
them through dependencies instead of a module-level global.
Lifespan manages startup/shutdown (draining broadcasts, the DB engine).
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from eventhub import __version__
from eventhub.api import api_router
from eventhub.config import settings
from eventhub.realtime.broadcaster import Broadcaster
from eventhub.realtime.registry import ConnectionRegistry

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs
    at shutdown. In-flight broadcasts get to finish before the DB
    engine goes away.
    """
    logger.info(
        "eventhub.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    yield

    logger.info("eventhub.shutdown", connections=len(app.state.broadcaster.registry))
    await app.state.broadcaster.drain()

    from eventhub.db.engine import engine
    await engine.dispose()


async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("eventhub.unhandled_error", path=request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="EventHub",
        description="Event management with authentication, roles, RSVPs and realtime updates",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.broadcaster = Broadcaster(ConnectionRegistry())

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → CORS → handler

    from eventhub.middleware.request_id import RequestIdMiddleware
    from eventhub.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(Exception, unhandled_error)

    app.include_router(api_router)

    from eventhub.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: eventhub.main:app)
app = create_app()
