"""Test fixtures — a fresh in-memory database and app per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI + aiosqlite:

1. EVENTHUB_DATABASE_URL is pointed at SQLite before eventhub is imported,
   so nothing ever tries to reach PostgreSQL.
2. Each test gets its own engine on a single shared in-memory connection
   (StaticPool) with the schema created from the ORM models.
3. Each test gets its own app from create_app(), so the realtime
   registry starts empty and get_db is overridden on that app only.

When the test ends the engine is disposed and the database vanishes.
"""

import os

os.environ["EVENTHUB_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["EVENTHUB_SENDGRID_API_KEY"] = ""

import json
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from starlette.testclient import TestClient
from starlette.websockets import WebSocketState

from eventhub.auth.jwt import create_access_token
from eventhub.auth.password import hash_password
from eventhub.db.engine import engine_options, get_db
from eventhub.db.models import Base, User
from eventhub.main import create_app

TEST_DB_URL = "sqlite+aiosqlite://"

# Every user made by make_user shares this password
PASSWORD = "secret-password"
_PASSWORD_HASH = hash_password(PASSWORD)


def make_engine():
    return create_async_engine(TEST_DB_URL, **engine_options(TEST_DB_URL))


async def create_schema(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def override_db(app, engine) -> async_sessionmaker:
    """Route the app's get_db dependency to ``engine``."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def _get_db():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    return factory


def auth_headers(user: User) -> dict:
    token = create_access_token(str(user.id), user.email, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture()
async def engine():
    engine = make_engine()
    await create_schema(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def app(engine):
    app = create_app()
    app.state.session_factory = override_db(app, engine)
    yield app
    await app.state.broadcaster.drain()
    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(app):
    """Unauthenticated HTTP client; pass auth_headers(user) per request."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture()
async def db_session(app):
    async with app.state.session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def make_user(app):
    """Factory: insert a user with the given role and return it.

    Learn: Users are written straight to the database instead of going
    through /auth/signup, so tests that only need "an organizer" don't
    pay for a bcrypt hash each time.
    """

    async def _make(role: str = "ATTENDEE", email: str | None = None) -> User:
        async with app.state.session_factory() as session:
            user = User(
                email=email or f"{role.lower()}-{uuid.uuid4().hex[:8]}@example.com",
                password_hash=_PASSWORD_HASH,
                role=role,
            )
            session.add(user)
            await session.commit()
            return user

    return _make


@pytest.fixture()
def auth():
    """Callable fixture: auth(user) → Authorization header dict."""
    return auth_headers


@pytest.fixture()
def password():
    return PASSWORD


# ─── Realtime doubles ───────────────────────────────────


class FakeConnection:
    """Stands in for a Starlette WebSocket on the broadcast path.

    Records every frame it is sent. ``fail`` makes send_text raise it;
    ``closed`` makes the connection look already disconnected.
    """

    def __init__(self, name: str = "conn", fail: Exception | None = None, closed: bool = False):
        self.name = name
        self.fail = fail
        self.sent: list[str] = []
        state = WebSocketState.DISCONNECTED if closed else WebSocketState.CONNECTED
        self.client_state = state
        self.application_state = state

    async def send_text(self, text: str) -> None:
        if self.fail is not None:
            raise self.fail
        self.sent.append(text)

    @property
    def messages(self) -> list[dict]:
        return [json.loads(t) for t in self.sent]

    def __repr__(self) -> str:
        return f"FakeConnection({self.name!r})"


@pytest.fixture()
def make_connection():
    return FakeConnection


@pytest_asyncio.fixture()
async def listener(app):
    """A fake realtime client registered with the app's broadcaster."""
    conn = FakeConnection("listener")
    app.state.broadcaster.registry.add(conn)
    return conn


@pytest.fixture()
def live_client():
    """Sync TestClient for websocket tests.

    Learn: Inside the `with` block HTTP requests and websocket sessions
    share the TestClient's portal event loop, so a broadcast triggered by
    an HTTP request reaches a socket opened by the same test. The schema
    is created on that loop too.
    """
    app = create_app()
    engine = make_engine()
    override_db(app, engine)
    with TestClient(app) as client:
        client.portal.call(create_schema, engine)
        yield client
        client.portal.call(engine.dispose)
