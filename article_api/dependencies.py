import uuid
from datetime import datetime

from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from article_api.cache import CacheStore, NullCacheStore
from article_api.cache_keys import ListQuery
from article_api.config import settings
from article_api.exceptions import AuthenticationError
from article_api.security import decode_access_token

_http_bearer = HTTPBearer(auto_error=False)


class ListArticlesParams:
    """
    Reusable FastAPI dependency that parses and validates the article
    list query string.

    Usage in a router::

        @router.get("/articles")
        async def list_articles(params: ListArticlesParams = Depends()):
            query = params.to_query()

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    limit:
        Number of items per page, clamped to ``settings.MAX_PAGE_SIZE``
        regardless of the value supplied by the caller.
    author_id, published_from, published_to, search:
        Optional filters; see ``ListQuery``.
    """

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number (1-based)."),
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=settings.MAX_PAGE_SIZE,
            description="Number of items returned per page.",
        ),
        author_id: uuid.UUID | None = Query(None, description="Only articles by this author."),
        published_from: datetime | None = Query(
            None, description="Inclusive lower bound on published_at (ISO-8601)."
        ),
        published_to: datetime | None = Query(
            None, description="Inclusive upper bound on published_at (ISO-8601)."
        ),
        search: str | None = Query(
            None,
            max_length=255,
            description="Case-insensitive match against title and description.",
        ),
    ) -> None:
        self.page = page
        self.limit = limit
        self.author_id = author_id
        self.published_from = published_from
        self.published_to = published_to
        self.search = search

    def to_query(self) -> ListQuery:
        return ListQuery(
            page=self.page,
            limit=self.limit,
            author_id=self.author_id,
            published_from=self.published_from,
            published_to=self.published_to,
            search=self.search,
        )


def get_cache_store(request: Request) -> CacheStore:
    """Return the process-wide store opened in the lifespan handler."""
    store = getattr(request.app.state, "cache_store", None)
    return store if store is not None else NullCacheStore()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_http_bearer),
) -> dict:
    """Return the verified token claims; ``sub`` is the user id."""
    if credentials is None:
        raise AuthenticationError("Missing bearer token")
    try:
        return decode_access_token(credentials.credentials)
    except ValueError as exc:
        raise AuthenticationError("Invalid or expired token") from exc
