"""
Read-through cache for the article read path.

``QueryResultCache`` sits between the service layer and a ``DataSource``.
Reads check the store first and fall back to the source on a miss,
writing the result back with a TTL.  List entries are additionally
recorded in a registry set so ``invalidate`` can drop every list page
after a write without scanning the keyspace.

There is no locking.  Two concurrent misses for the same key both query
the source and the last write wins.  A list key registered after an
invalidation has read the registry survives until its TTL expires.
"""
import logging
from typing import Protocol

from article_api.cache import CacheStore
from article_api.cache_keys import LIST_REGISTRY_KEY, ListQuery, item_key, list_key
from article_api.exceptions import NotFoundError

logger = logging.getLogger(__name__)


class DataSource(Protocol):
    """Authoritative reads the cache falls back to."""

    async def find_by_id(self, entity_id: str) -> dict | None:
        ...

    async def find_page(self, query: ListQuery) -> tuple[list[dict], int]:
        ...


class QueryResultCache:
    def __init__(
        self,
        store: CacheStore,
        source: DataSource,
        item_ttl: int,
        list_ttl: int,
    ) -> None:
        self.store = store
        self.source = source
        self.item_ttl = item_ttl
        self.list_ttl = list_ttl

    async def get_item(self, entity_id) -> dict:
        """
        Return the fully materialised entity for *entity_id*.

        Raises NotFoundError when the source has no such entity; nothing
        is cached in that case.
        """
        key = item_key(entity_id)
        cached = await self.store.get(key)
        if cached is not None:
            return cached

        item = await self.source.find_by_id(str(entity_id))
        if item is None:
            raise NotFoundError("Article not found")

        await self.store.set(key, item, self.item_ttl)
        return item

    async def get_list(self, query: ListQuery) -> dict:
        """Return ``{"items": [...], "meta": {"page", "limit", "total"}}``."""
        key = list_key(query)
        cached = await self.store.get(key)
        if cached is not None:
            return cached

        items, total = await self.source.find_page(query)
        result = {
            "items": items,
            "meta": {"page": query.page, "limit": query.limit, "total": total},
        }
        await self.store.set(key, result, self.list_ttl)
        await self.store.add_to_set(LIST_REGISTRY_KEY, key)
        return result

    async def invalidate(self, entity_id) -> None:
        """
        Drop every tracked list entry, the registry itself and the item
        entry for *entity_id*.

        Each step is independent; a failing store only skips that step.
        """
        list_keys = await self.store.get_set_members(LIST_REGISTRY_KEY)
        if list_keys:
            await self.store.delete_many(list_keys)
        await self.store.delete(LIST_REGISTRY_KEY)
        await self.store.delete(item_key(entity_id))
        logger.debug(
            "Invalidated article %s and %d list page(s)", entity_id, len(list_keys)
        )
