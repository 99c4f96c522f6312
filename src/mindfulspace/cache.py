"""Query cache and the read/mutate contract consumed by UI code.

Reads are idempotent and memoized per query key. A successful write drops
every cached read whose key starts with the written collection's name, so the
next read reflects the mutation. Failed writes leave the cache untouched.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Mapping, Optional, Tuple

from .models import Entity
from .store import EntityStore

logger = logging.getLogger(__name__)

QueryKey = Tuple[Hashable, ...]


class QueryCache:
    def __init__(self):
        self._results: Dict[QueryKey, Any] = {}
        self._inflight: Dict[QueryKey, asyncio.Future] = {}

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._results

    async def fetch(self, key: QueryKey, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        """Returns the cached result for ``key``, calling ``fetcher`` on a miss.

        Concurrent misses on the same key share a single fetch.
        """
        if key in self._results:
            return self._results[key]
        if key in self._inflight:
            return await asyncio.shield(self._inflight[key])

        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await fetcher()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved so an unawaited failure is not reported.
            future.exception()
            raise
        else:
            # A write may have invalidated this key while the fetch ran.
            if self._inflight.get(key) is future:
                self._results[key] = result
            future.set_result(result)
            return result
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]

    def invalidate(self, prefix: Hashable):
        """Drops every cached or in-flight read whose key starts with ``prefix``."""
        for store in (self._results, self._inflight):
            for key in [k for k in store if k and k[0] == prefix]:
                del store[key]
        logger.debug("Invalidated queries for %s", prefix)

    def clear(self):
        self._results.clear()
        self._inflight.clear()


class SyncClient:
    """Entity reads and writes routed through a ``QueryCache``."""

    def __init__(self, entities: EntityStore, cache: Optional[QueryCache] = None):
        self.entities = entities
        self.cache = cache if cache is not None else QueryCache()

    async def list(self, name: str, order_by: Optional[str] = None) -> List[Entity]:
        collection = self.entities.collection(name)
        return await self.cache.fetch(
            (name, "list", order_by), lambda: collection.list(order_by)
        )

    async def create(self, name: str, data: Mapping[str, Any]) -> Entity:
        entity = await self.entities.collection(name).create(data)
        self.cache.invalidate(name)
        return entity

    async def update(
        self, name: str, entity_id: str, data: Mapping[str, Any]
    ) -> Optional[Entity]:
        entity = await self.entities.collection(name).update(entity_id, data)
        self.cache.invalidate(name)
        return entity
