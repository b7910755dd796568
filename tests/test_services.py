"""
Direct service-layer tests — exercises business logic without HTTP overhead.

These tests call service functions directly with a database session, giving
accurate coverage of the repository query paths, ownership checks and the
cache interaction of each write.
"""
import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from article_api.cache import CacheStore, NullCacheStore
from article_api.cache_keys import LIST_REGISTRY_KEY, ListQuery, item_key
from article_api.exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
)
from article_api.models import Article, User
from article_api.repository import ArticleRepository
from article_api.schemas import ArticleCreate, ArticleUpdate, LoginRequest, RegisterRequest
from article_api.security import hash_password
from article_api.services import article_service, auth_service


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _create_user(db: AsyncSession, email: str = "svc@example.com") -> User:
    user = User(email=email, password=hash_password("password-1"), name="Service User")
    db.add(user)
    await db.flush()
    return user


# ---------------------------------------------------------------------------
# article_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_articles_empty(db_session: AsyncSession):
    result = await article_service.list_articles(db_session, NullCacheStore(), ListQuery())
    assert result == {"items": [], "meta": {"page": 1, "limit": 10, "total": 0}}


@pytest.mark.asyncio
async def test_create_article_via_service(db_session: AsyncSession):
    user = await _create_user(db_session)
    data = ArticleCreate(
        title="Service Test Article",
        description="Direct service test content",
        published_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
    )

    result = await article_service.create_article(db_session, NullCacheStore(), str(user.id), data)

    assert result["title"] == "Service Test Article"
    assert result["author_id"] == str(user.id)
    assert result["author"]["email"] == "svc@example.com"
    assert "password" not in result["author"]


@pytest.mark.asyncio
async def test_create_article_does_not_cache_write_response(
    db_session: AsyncSession, cache_store, fake_redis
):
    user = await _create_user(db_session)
    await article_service.list_articles(db_session, cache_store, ListQuery())

    result = await article_service.create_article(
        db_session, cache_store, str(user.id), ArticleCreate(title="Fresh entry")
    )

    assert result["title"] == "Fresh entry"
    assert item_key(result["id"]) not in fake_redis.values
    assert LIST_REGISTRY_KEY not in fake_redis.sets
    fetched = await article_service.get_article(db_session, cache_store, result["id"])
    assert fetched["title"] == "Fresh entry"


@pytest.mark.asyncio
async def test_get_article_not_found(db_session: AsyncSession):
    with pytest.raises(NotFoundError):
        await article_service.get_article(db_session, NullCacheStore(), str(uuid.uuid4()))


@pytest.mark.asyncio
async def test_update_article_via_service(db_session: AsyncSession, cache_store):
    user = await _create_user(db_session)
    created = await article_service.create_article(
        db_session, cache_store, str(user.id), ArticleCreate(title="Before update")
    )
    await article_service.list_articles(db_session, cache_store, ListQuery())

    updated = await article_service.update_article(
        db_session, cache_store, str(user.id), created["id"], ArticleUpdate(title="After update")
    )

    assert updated["title"] == "After update"
    assert await cache_store.get(item_key(created["id"])) is None
    assert await cache_store.get_set_members(LIST_REGISTRY_KEY) == []
    fetched = await article_service.get_article(db_session, cache_store, created["id"])
    assert fetched["title"] == "After update"


@pytest.mark.asyncio
async def test_forbidden_update_skips_mutation_and_invalidation(db_session: AsyncSession):
    owner = await _create_user(db_session, "owner@example.com")
    intruder = await _create_user(db_session, "intruder@example.com")
    created = await article_service.create_article(
        db_session, NullCacheStore(), str(owner.id), ArticleCreate(title="Protected")
    )

    store = AsyncMock(spec=CacheStore)
    with pytest.raises(ForbiddenError):
        await article_service.update_article(
            db_session, store, str(intruder.id), created["id"], ArticleUpdate(title="Defaced")
        )

    store.get_set_members.assert_not_awaited()
    store.delete_many.assert_not_awaited()
    store.delete.assert_not_awaited()
    article = await ArticleRepository(db_session).get(created["id"])
    assert article.title == "Protected"


@pytest.mark.asyncio
async def test_update_missing_article_raises_not_found(db_session: AsyncSession):
    user = await _create_user(db_session)
    store = AsyncMock(spec=CacheStore)
    with pytest.raises(NotFoundError):
        await article_service.update_article(
            db_session, store, str(user.id), str(uuid.uuid4()), ArticleUpdate(title="Nope")
        )
    store.delete.assert_not_awaited()


@pytest.mark.asyncio
async def test_delete_article_via_service(db_session: AsyncSession, cache_store, fake_redis):
    user = await _create_user(db_session)
    created = await article_service.create_article(
        db_session, cache_store, str(user.id), ArticleCreate(title="Short-lived")
    )

    await article_service.delete_article(db_session, cache_store, str(user.id), created["id"])

    assert item_key(created["id"]) not in fake_redis.values
    with pytest.raises(NotFoundError):
        await article_service.get_article(db_session, cache_store, created["id"])


@pytest.mark.asyncio
async def test_forbidden_delete_keeps_article(db_session: AsyncSession):
    owner = await _create_user(db_session, "holder@example.com")
    other = await _create_user(db_session, "other@example.com")
    created = await article_service.create_article(
        db_session, NullCacheStore(), str(owner.id), ArticleCreate(title="Still here")
    )

    store = AsyncMock(spec=CacheStore)
    with pytest.raises(ForbiddenError):
        await article_service.delete_article(db_session, store, str(other.id), created["id"])

    store.delete.assert_not_awaited()
    assert await ArticleRepository(db_session).get(created["id"]) is not None


def _failing_commit() -> AsyncMock:
    return AsyncMock(side_effect=OperationalError("COMMIT", {}, Exception("database is locked")))


@pytest.mark.asyncio
async def test_rolled_back_create_is_never_cached(
    db_session: AsyncSession, cache_store, fake_redis, monkeypatch
):
    user = await _create_user(db_session)
    monkeypatch.setattr(db_session, "commit", _failing_commit())

    with pytest.raises(OperationalError):
        await article_service.create_article(
            db_session, cache_store, str(user.id), ArticleCreate(title="Phantom")
        )
    await db_session.rollback()

    assert not any(key.startswith("articles:item:") for key in fake_redis.values)
    result = await article_service.list_articles(db_session, cache_store, ListQuery())
    assert result["meta"]["total"] == 0


@pytest.mark.asyncio
async def test_rolled_back_create_is_not_found_afterwards(
    db_session: AsyncSession, cache_store, monkeypatch
):
    user = await _create_user(db_session)
    await db_session.commit()
    monkeypatch.setattr(db_session, "commit", _failing_commit())

    with pytest.raises(OperationalError):
        await article_service.create_article(
            db_session, cache_store, str(user.id), ArticleCreate(title="Phantom")
        )
    article_ids = [
        str(obj.id) for obj in db_session.identity_map.values() if isinstance(obj, Article)
    ]
    await db_session.rollback()

    assert article_ids
    for article_id in article_ids:
        with pytest.raises(NotFoundError):
            await article_service.get_article(db_session, cache_store, article_id)


@pytest.mark.asyncio
async def test_rolled_back_update_keeps_cached_and_stored_article(
    db_session: AsyncSession, cache_store, monkeypatch
):
    user = await _create_user(db_session)
    created = await article_service.create_article(
        db_session, cache_store, str(user.id), ArticleCreate(title="Original")
    )
    await article_service.get_article(db_session, cache_store, created["id"])
    await article_service.list_articles(db_session, cache_store, ListQuery())
    monkeypatch.setattr(db_session, "commit", _failing_commit())

    with pytest.raises(OperationalError):
        await article_service.update_article(
            db_session, cache_store, str(user.id), created["id"], ArticleUpdate(title="Never saved")
        )
    await db_session.rollback()

    assert (await cache_store.get(item_key(created["id"])))["title"] == "Original"
    assert await cache_store.get_set_members(LIST_REGISTRY_KEY) != []
    article = await ArticleRepository(db_session).get(created["id"])
    assert article.title == "Original"


@pytest.mark.asyncio
async def test_list_filters_by_unknown_author_returns_nothing(db_session: AsyncSession):
    user = await _create_user(db_session)
    await article_service.create_article(
        db_session, NullCacheStore(), str(user.id), ArticleCreate(title="Someone's post")
    )
    result = await article_service.list_articles(
        db_session, NullCacheStore(), ListQuery(author_id=str(uuid.uuid4()))
    )
    assert result["meta"]["total"] == 0


# ---------------------------------------------------------------------------
# auth_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_register_and_login_via_service(db_session: AsyncSession):
    profile = await auth_service.register(
        db_session, RegisterRequest(email="svc-auth@example.com", password="password-1")
    )
    assert profile["email"] == "svc-auth@example.com"

    tokens = await auth_service.login(
        db_session, LoginRequest(email="svc-auth@example.com", password="password-1")
    )
    assert tokens["token_type"] == "bearer"
    assert tokens["access_token"]


@pytest.mark.asyncio
async def test_register_duplicate_raises_conflict(db_session: AsyncSession):
    await _create_user(db_session, "taken@example.com")
    with pytest.raises(ConflictError):
        await auth_service.register(
            db_session, RegisterRequest(email="taken@example.com", password="password-1")
        )


@pytest.mark.asyncio
async def test_login_wrong_password_raises(db_session: AsyncSession):
    await _create_user(db_session, "locked@example.com")
    with pytest.raises(AuthenticationError):
        await auth_service.login(
            db_session, LoginRequest(email="locked@example.com", password="password-2")
        )


@pytest.mark.asyncio
async def test_get_profile_unknown_user(db_session: AsyncSession):
    with pytest.raises(NotFoundError):
        await auth_service.get_profile(db_session, str(uuid.uuid4()))
