"""
Relational data source for articles.

``find_by_id`` and ``find_page`` return plain JSON-ready dicts (the shape
that goes into the cache); the write helpers work on ORM instances and
flush but never commit; the article service commits before it invalidates.
"""
import uuid
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from article_api.cache_keys import ListQuery, escape_like
from article_api.models import Article, User


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def serialize_user(user: User) -> dict:
    """Public profile of *user*; the password hash is never included."""
    return {
        "id": str(user.id),
        "email": user.email,
        "name": user.name,
        "created_at": _isoformat(user.created_at),
        "updated_at": _isoformat(user.updated_at),
    }


def serialize_article(article: Article) -> dict:
    return {
        "id": str(article.id),
        "title": article.title,
        "description": article.description,
        "published_at": _isoformat(article.published_at),
        "author_id": str(article.author_id),
        "author": serialize_user(article.author) if article.author else None,
        "created_at": _isoformat(article.created_at),
        "updated_at": _isoformat(article.updated_at),
    }


def parse_uuid(value) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

class ArticleRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, article_id) -> Article | None:
        """Return the ORM instance (author eager-loaded), or None."""
        pk = parse_uuid(article_id)
        if pk is None:
            return None
        q = (
            select(Article)
            .where(Article.id == pk)
            .options(joinedload(Article.author))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(q)
        return result.unique().scalar_one_or_none()

    async def find_by_id(self, entity_id: str) -> dict | None:
        article = await self.get(entity_id)
        if article is None:
            return None
        return serialize_article(article)

    async def find_page(self, query: ListQuery) -> tuple[list[dict], int]:
        """
        Return one page of articles matching *query* and the total match
        count ignoring pagination.

        Ordering is ``published_at`` newest first with unpublished
        articles last, then ``created_at`` newest first.
        """
        conditions = []
        if query.author_id:
            author_id = parse_uuid(query.author_id)
            if author_id is None:
                return [], 0
            conditions.append(Article.author_id == author_id)
        if query.published_from:
            conditions.append(Article.published_at >= query.published_from)
        if query.published_to:
            conditions.append(Article.published_at <= query.published_to)
        if query.search:
            pattern = f"%{escape_like(query.search)}%"
            conditions.append(
                or_(
                    Article.title.ilike(pattern, escape="\\"),
                    Article.description.ilike(pattern, escape="\\"),
                )
            )

        count_q = select(func.count()).select_from(Article).where(*conditions)
        total: int = (await self.db.execute(count_q)).scalar_one()

        articles_q = (
            select(Article)
            .where(*conditions)
            .options(joinedload(Article.author))
            .order_by(Article.published_at.desc().nulls_last(), Article.created_at.desc())
            .offset(query.offset)
            .limit(query.limit)
        )
        result = await self.db.execute(articles_q)
        articles = result.unique().scalars().all()
        return [serialize_article(a) for a in articles], total

    async def insert(self, author_id, fields: dict) -> Article:
        article = Article(author_id=parse_uuid(author_id), **fields)
        self.db.add(article)
        await self.db.flush()
        return article

    async def apply_update(self, article: Article, changes: dict) -> Article:
        for field, value in changes.items():
            setattr(article, field, value)
        await self.db.flush()
        return article

    async def remove(self, article: Article) -> None:
        await self.db.delete(article)
        await self.db.flush()
