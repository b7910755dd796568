"""
Test infrastructure for the Articles API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- The app's get_db dependency is overridden so every test-time request uses
  the test session factory rather than the production one.
- All tables are created fresh before each test and dropped after, giving
  each test a clean isolated state without needing transactions or truncation.
- The cache store is injected through the get_cache_store dependency.
  ``async_client`` uses a NullCacheStore (caching disabled);
  ``cached_client`` uses a RedisCacheStore over ``FakeRedis``, an in-memory
  stand-in for the handful of redis.asyncio commands the store issues.
"""
from __future__ import annotations

import time

import pytest
import pytest_asyncio
import redis.asyncio as redis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from article_api.cache import NullCacheStore, RedisCacheStore
from article_api.database import Base, get_db
from article_api.dependencies import get_cache_store
from article_api.main import app

# ---------------------------------------------------------------------------
# Test database engine — SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

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
# In-memory Redis double
# ---------------------------------------------------------------------------

class FakeRedis:
    """
    Implements the subset of ``redis.asyncio.Redis`` used by RedisCacheStore
    with ``decode_responses=True`` semantics.  Set ``fail = True`` to make
    every command raise ``redis.ConnectionError``.
    """

    def __init__(self) -> None:
        self.values: dict[str, tuple[str, float | None]] = {}
        self.sets: dict[str, set[str]] = {}
        self.fail = False
        self.closed = False

    def _check(self) -> None:
        if self.fail:
            raise redis.ConnectionError("connection refused")

    async def ping(self) -> bool:
        self._check()
        return True

    async def get(self, key: str) -> str | None:
        self._check()
        entry = self.values.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self.values[key]
            return None
        return value

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._check()
        self.values[key] = (value, time.monotonic() + ex if ex else None)
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self.values.pop(key, None) is not None:
                removed += 1
            if self.sets.pop(key, None) is not None:
                removed += 1
        return removed

    async def sadd(self, key: str, *members: str) -> int:
        self._check()
        bucket = self.sets.setdefault(key, set())
        before = len(bucket)
        bucket.update(members)
        return len(bucket) - before

    async def smembers(self, key: str) -> set[str]:
        self._check()
        return set(self.sets.get(key, set()))

    async def aclose(self) -> None:
        self.closed = True

    def ttl_of(self, key: str) -> float | None:
        """Seconds left on *key* (test helper, not a Redis command)."""
        _, expires_at = self.values[key]
        return None if expires_at is None else expires_at - time.monotonic()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that need to interact with the
    database directly (e.g. seeding data, asserting ORM state).
    """
    async with async_session_test() as session:
        yield session


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache_store(fake_redis: FakeRedis) -> RedisCacheStore:
    return RedisCacheStore(fake_redis)


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """
    Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport
    with caching disabled, so every read exercises the database path.
    """
    app.dependency_overrides[get_cache_store] = NullCacheStore
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.pop(get_cache_store, None)


@pytest_asyncio.fixture
async def cached_client(cache_store: RedisCacheStore) -> AsyncClient:
    """Like ``async_client`` but backed by a RedisCacheStore over FakeRedis."""
    app.dependency_overrides[get_cache_store] = lambda: cache_store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.pop(get_cache_store, None)


@pytest.fixture
def make_user():
    """
    Return a coroutine that registers a user through the API, logs in and
    yields ``(user_id, headers)`` with a bearer token ready for writes.
    """

    async def _make_user(client: AsyncClient, email: str, password: str = "s3cret-pass"):
        resp = await client.post("/api/v1/auth/register", json={
            "email": email,
            "password": password,
        })
        assert resp.status_code == 201, resp.text
        user_id = resp.json()["id"]

        resp = await client.post("/api/v1/auth/login", json={
            "email": email,
            "password": password,
        })
        assert resp.status_code == 200, resp.text
        token = resp.json()["access_token"]
        return user_id, {"Authorization": f"Bearer {token}"}

    return _make_user
