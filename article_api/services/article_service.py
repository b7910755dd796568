"""
Article service — business logic for the Article aggregate.

Design notes
------------
- Reads go through ``QueryResultCache`` (Redis → fallback to DB).  The
  cache store is injected per call; when Redis is absent it is a
  ``NullCacheStore`` and every read hits the database.
- Ownership checks always run against the row loaded from the database,
  never against a cached payload.
- Every successful write commits and only then invalidates the article's
  item entry together with all cached list pages, so the cache never
  holds a row that could still be rolled back.  A rejected write (not
  found / forbidden) touches neither the table nor the cache.
- Write responses are built from a fresh read of the committed row and
  are not written to the cache; the next read repopulates it.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from article_api.cache import CacheStore
from article_api.cache_keys import ListQuery
from article_api.config import settings
from article_api.exceptions import ForbiddenError, NotFoundError
from article_api.models import Article
from article_api.query_cache import QueryResultCache
from article_api.repository import ArticleRepository, serialize_article
from article_api.schemas import ArticleCreate, ArticleUpdate

logger = logging.getLogger(__name__)


def _query_cache(repo: ArticleRepository, store: CacheStore) -> QueryResultCache:
    return QueryResultCache(
        store,
        repo,
        item_ttl=settings.CACHE_TTL_DETAIL,
        list_ttl=settings.CACHE_TTL_LIST,
    )


async def _load_owned(repo: ArticleRepository, author_id: str, article_id: str) -> Article:
    article = await repo.get(article_id)
    if article is None:
        raise NotFoundError("Article not found")
    if str(article.author_id) != str(author_id):
        raise ForbiddenError("You are not allowed to modify this article")
    return article


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def list_articles(db: AsyncSession, store: CacheStore, query: ListQuery) -> dict:
    """Return one page of articles plus ``meta`` (page, limit, total)."""
    repo = ArticleRepository(db)
    return await _query_cache(repo, store).get_list(query)


async def get_article(db: AsyncSession, store: CacheStore, article_id: str) -> dict:
    """Return the article with its author's public profile, or raise NotFoundError."""
    repo = ArticleRepository(db)
    return await _query_cache(repo, store).get_item(article_id)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def _committed_view(repo: ArticleRepository, article_id) -> dict:
    article = await repo.get(article_id)
    return serialize_article(article)


async def create_article(
    db: AsyncSession, store: CacheStore, author_id: str, data: ArticleCreate
) -> dict:
    repo = ArticleRepository(db)
    article = await repo.insert(author_id, data.model_dump())
    await db.commit()
    logger.info("Article %s created by %s", article.id, author_id)

    await _query_cache(repo, store).invalidate(article.id)
    return await _committed_view(repo, article.id)


async def update_article(
    db: AsyncSession,
    store: CacheStore,
    author_id: str,
    article_id: str,
    data: ArticleUpdate,
) -> dict:
    """
    Apply the fields explicitly present in *data* to the article.

    Raises NotFoundError for an unknown id and ForbiddenError when
    *author_id* does not own the article.
    """
    repo = ArticleRepository(db)
    article = await _load_owned(repo, author_id, article_id)

    await repo.apply_update(article, data.model_dump(exclude_unset=True))
    await db.commit()
    logger.info("Article %s updated by %s", article.id, author_id)

    await _query_cache(repo, store).invalidate(article.id)
    return await _committed_view(repo, article.id)


async def delete_article(
    db: AsyncSession, store: CacheStore, author_id: str, article_id: str
) -> None:
    repo = ArticleRepository(db)
    article = await _load_owned(repo, author_id, article_id)
    deleted_id = article.id

    await repo.remove(article)
    await db.commit()
    logger.info("Article %s deleted by %s", deleted_id, author_id)

    await _query_cache(repo, store).invalidate(deleted_id)
