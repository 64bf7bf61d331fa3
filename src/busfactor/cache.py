"""
Knowledge graph memoization.

Caching is optional and never affects results. Keys combine the
organization, the analysis window and a hash of the requested domain set.
"""

import hashlib
import json
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import date

import redis.asyncio as redis
from redis.exceptions import RedisError
import structlog

from src.busfactor.models import KnowledgeDomain, KnowledgeGraph
from src.config import settings

logger = structlog.get_logger()


def make_cache_key(
    organization_id: str,
    lookback_days: int,
    window_end: date,
    min_activity_threshold: float,
    include_external_domains: bool,
    custom_domains: list[KnowledgeDomain] | None = None,
) -> str:
    """Build a stable cache key for a graph build.

    Custom domains are hashed by their full definition, so two sets sharing
    ids but not keywords or process links get different keys.
    """
    if custom_domains:
        definitions = sorted(json.dumps(d.to_dict(), sort_keys=True) for d in custom_domains)
        domain_hash = hashlib.sha256("\n".join(definitions).encode()).hexdigest()[:16]
    else:
        domain_hash = "discovered"
    external = "ext" if include_external_domains else "int"
    return (
        f"{organization_id}:{lookback_days}d:{window_end.isoformat()}:"
        f"{min_activity_threshold:g}:{external}:{domain_hash}"
    )


class GraphCache(ABC):
    """Injectable cache for built knowledge graphs."""

    @abstractmethod
    async def get(self, key: str) -> KnowledgeGraph | None:
        pass

    @abstractmethod
    async def set(self, key: str, graph: KnowledgeGraph) -> None:
        pass

    @abstractmethod
    async def invalidate(self, organization_id: str | None = None) -> int:
        """Drop entries for one organization (or all). Returns entries removed."""
        pass


class InMemoryGraphCache(GraphCache):
    """Process-local cache with TTL expiry and LRU eviction."""

    def __init__(self, ttl_seconds: int | None = None, max_entries: int | None = None):
        self.ttl = settings.busfactor_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.max_entries = (
            settings.busfactor_cache_max_entries if max_entries is None else max_entries
        )
        self._entries: OrderedDict[str, tuple[float, KnowledgeGraph]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> KnowledgeGraph | None:
        entry = self._entries.get(key)
        if entry is None:
            return None

        created_at, graph = entry
        if time.monotonic() - created_at > self.ttl:
            del self._entries[key]
            return None

        self._entries.move_to_end(key)
        return graph

    async def set(self, key: str, graph: KnowledgeGraph) -> None:
        self._entries[key] = (time.monotonic(), graph)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Graph cache entry evicted", key=evicted)

    async def invalidate(self, organization_id: str | None = None) -> int:
        if organization_id is None:
            removed = len(self._entries)
            self._entries.clear()
            return removed

        prefix = f"{organization_id}:"
        keys = [k for k in self._entries if k.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)


class RedisGraphCache(GraphCache):
    """Shared cache storing serialized graphs in Redis with a TTL.

    Redis failures are logged and treated as cache misses.
    """

    KEY_PREFIX = "busfactor:graph:"

    def __init__(self, client: redis.Redis, ttl_seconds: int | None = None):
        self._client = client
        self.ttl = settings.busfactor_cache_ttl_seconds if ttl_seconds is None else ttl_seconds

    @classmethod
    def from_url(cls, url: str | None = None, ttl_seconds: int | None = None) -> "RedisGraphCache":
        client = redis.from_url(
            url or settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        return cls(client, ttl_seconds)

    def _key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}{key}"

    async def get(self, key: str) -> KnowledgeGraph | None:
        try:
            data = await self._client.get(self._key(key))
        except RedisError as e:
            logger.warning("Graph cache read failed", key=key, error=str(e))
            return None

        if not data:
            return None
        return KnowledgeGraph.from_dict(json.loads(data))

    async def set(self, key: str, graph: KnowledgeGraph) -> None:
        try:
            await self._client.setex(self._key(key), self.ttl, json.dumps(graph.to_dict()))
        except RedisError as e:
            logger.warning("Graph cache write failed", key=key, error=str(e))

    async def invalidate(self, organization_id: str | None = None) -> int:
        pattern = f"{self.KEY_PREFIX}{organization_id}:*" if organization_id else f"{self.KEY_PREFIX}*"
        removed = 0
        try:
            async for key in self._client.scan_iter(match=pattern):
                removed += await self._client.delete(key)
        except RedisError as e:
            logger.warning("Graph cache invalidation failed", pattern=pattern, error=str(e))
        return removed

    async def close(self) -> None:
        await self._client.close()
