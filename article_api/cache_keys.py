"""
Cache key builders for the article read path.

Item keys are derived from the article id alone.  List keys encode the
page, the page size and a SHA-256 digest of the canonical filter mapping,
so two queries that differ only in how they were constructed share one
entry while any real difference in filters yields a different key.
"""
import hashlib
import json
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from article_api.config import settings

ITEM_PREFIX = "articles:item"
LIST_PREFIX = "articles:list"

# Set of every live list key; lets invalidation find them without SCAN.
LIST_REGISTRY_KEY = f"{LIST_PREFIX}:keys"


class ListQuery(BaseModel):
    """
    Normalised description of one article list request.

    Attributes
    ----------
    page:
        1-based page number.
    limit:
        Page size, clamped to ``settings.MAX_PAGE_SIZE``.
    author_id:
        Restrict to articles owned by this user.
    published_from / published_to:
        Inclusive bounds on ``published_at``, held in UTC.
    search:
        Case-insensitive substring matched against title and description.
        Surrounding whitespace is stripped; blank means no search.
    """

    model_config = ConfigDict(frozen=True)

    page: int = Field(1, ge=1)
    limit: int = Field(default_factory=lambda: settings.DEFAULT_PAGE_SIZE, ge=1)
    author_id: str | None = None
    published_from: datetime | None = None
    published_to: datetime | None = None
    search: str | None = None

    @field_validator("limit")
    @classmethod
    def _clamp_limit(cls, value: int) -> int:
        return min(value, settings.MAX_PAGE_SIZE)

    @field_validator("author_id", mode="before")
    @classmethod
    def _author_id_as_str(cls, value):
        if value is None:
            return None
        # canonical lower-case form when the value is a valid UUID
        try:
            return str(uuid.UUID(str(value)))
        except ValueError:
            return value

    @field_validator("published_from", "published_to")
    @classmethod
    def _to_utc(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @field_validator("search")
    @classmethod
    def _strip_search(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @property
    def offset(self) -> int:
        """SQL OFFSET value computed from the current page and page size."""
        return (self.page - 1) * self.limit

    def filters(self) -> dict:
        """Return every filter, absent ones as None, datetimes as ISO-8601."""
        return {
            "author_id": self.author_id,
            "published_from": _isoformat(self.published_from),
            "published_to": _isoformat(self.published_to),
            "search": self.search,
        }


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def item_key(entity_id) -> str:
    """Cache key for a single article."""
    return f"{ITEM_PREFIX}:{entity_id}"


def list_key(query: ListQuery) -> str:
    """Cache key for one page of a filtered article list."""
    canonical = json.dumps(query.filters(), sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{LIST_PREFIX}:{query.page}:{query.limit}:{digest}"


def escape_like(text: str) -> str:
    """Escape LIKE metacharacters so *text* matches literally with ESCAPE '\\'."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
