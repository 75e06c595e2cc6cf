"""
Test infrastructure for linkshare.

Strategy
--------
- SQLite in-memory via aiosqlite, so no Postgres is needed in CI.
- StaticPool makes every async task share the one in-memory connection;
  a second connection would see an empty database.
- The app's get_db dependency is overridden so every request uses the
  test session factory.
- Tables are created before and dropped after each test.
- Redis is disabled (cache._redis = None); the FeedCache treats that
  as a permanent miss, so the real database path is always exercised.
  Tests about caching request ``fake_redis``, an in-memory stand-in.
- Each AsyncClient keeps its own cookie jar, i.e. its own login session.
"""
import fnmatch
import re

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from linkshare.cache import cache
from linkshare.database import Base, get_db
from linkshare.main import app
from linkshare.middleware import install_query_counter

# ---------------------------------------------------------------------------
# Test database engine — SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Dependency override — replace production get_db with the test session factory
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    cache._redis = None
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


class FakeRedis:
    """In-memory stand-in for the redis.asyncio calls FeedCache makes."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value

    async def scan_iter(self, match="*"):
        for key in list(self.store):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)

    async def aclose(self):
        pass


@pytest_asyncio.fixture
async def fake_redis(setup_db) -> FakeRedis:
    """Plug an in-memory Redis into the feed cache for one test."""
    fake = FakeRedis()
    cache._redis = fake
    yield fake
    cache._redis = None


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live AsyncSession for seeding data and asserting ORM state."""
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def client_factory():
    """
    Return a callable that opens a fresh AsyncClient (fresh cookie jar)
    against the app.  All clients are closed at teardown.
    """
    clients: list[AsyncClient] = []

    def _make() -> AsyncClient:
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.aclose()


@pytest_asyncio.fixture
async def async_client(client_factory) -> AsyncClient:
    """An anonymous client (no session cookie yet)."""
    return client_factory()


@pytest.fixture
def login(client_factory):
    """
    Return ``await login("alice")``: registers ``alice@example.com`` with
    password ``secret-<name>`` and returns a client logged in as her.
    """

    async def _login(name: str, password: str | None = None) -> AsyncClient:
        client = client_factory()
        password = password or f"secret-{name}"
        email = f"{name}@example.com"
        resp = await client.post(
            "/register", data={"username": name, "email": email, "password": password}
        )
        assert resp.status_code == 303
        resp = await client.post("/login", data={"email": email, "password": password})
        assert resp.status_code == 303
        assert resp.headers["location"] == "/dashboard"
        return client

    return _login


def post_id_from_html(html: str, title: str) -> int:
    """Find the id of the post titled *title* on a rendered dashboard."""
    match = re.search(
        r'id="post-(\d+)">\s*<h3><a [^>]*>' + re.escape(title) + "</a>",
        html,
    )
    assert match, f"post {title!r} not on the page"
    return int(match.group(1))


@pytest.fixture
def share(post_id_from_dashboard):
    """
    Return ``await share(client, title, category)``: posts a link as the
    client's user and returns the new post's id.
    """

    async def _share(client: AsyncClient, title: str, category: str = "Python") -> int:
        resp = await client.post(
            "/post-link",
            data={"title": title, "link": "https://example.com/" + title.replace(" ", "-"), "category": category},
        )
        assert resp.status_code == 303
        return await post_id_from_dashboard(client, title)

    return _share


@pytest.fixture
def post_id_from_dashboard():
    async def _find(client: AsyncClient, title: str) -> int:
        resp = await client.get("/dashboard")
        assert resp.status_code == 200
        return post_id_from_html(resp.text, title)

    return _find
