"""Unit tests for knowledge graph caching."""

import json
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.busfactor.cache import InMemoryGraphCache, RedisGraphCache, make_cache_key
from src.busfactor.models import (
    ContributionFactor,
    ContributionType,
    DomainExpertise,
    DomainType,
    KnowledgeDependency,
    KnowledgeDomain,
    KnowledgeGraph,
    KnowledgeType,
    PersonKnowledge,
)
from src.config import settings


@pytest.fixture
def graph() -> KnowledgeGraph:
    domain = KnowledgeDomain(
        id="process:p1", name="Payroll", type=DomainType.PROCESS, related_process_ids=["p1"]
    )
    return KnowledgeGraph(
        domains=[domain],
        experts=[
            PersonKnowledge(
                person_id="alice",
                email="alice@example.com",
                domains=[
                    DomainExpertise(
                        domain_id=domain.id,
                        domain_name=domain.name,
                        expertise_score=64.0,
                        is_unique_expert=True,
                        is_primary_expert=True,
                        contribution_factors=[
                            ContributionFactor(
                                ContributionType.PROCESS_PARTICIPATION, 0.8, 40, "Participated"
                            )
                        ],
                    )
                ],
                overall_knowledge_score=64.0,
                unique_knowledge_count=1,
            )
        ],
        dependencies=[
            KnowledgeDependency(domain.id, "alice", 1.0, 0.0, KnowledgeType.TACIT)
        ],
        organization_coverage=0.4,
        single_points_of_failure=["alice"],
    )


class TestMakeCacheKey:
    """Tests for cache key construction."""

    @staticmethod
    def topic(domain_id: str, *keywords: str) -> KnowledgeDomain:
        return KnowledgeDomain(
            id=domain_id, name=domain_id, type=DomainType.TOPIC, keywords=list(keywords)
        )

    def test_discovered_domains(self):
        key = make_cache_key("org-1", 180, date(2026, 6, 1), 5.0, False)
        assert key == "org-1:180d:2026-06-01:5:int:discovered"

    def test_custom_domain_order_irrelevant(self):
        a, b = self.topic("a", "alpha"), self.topic("b", "beta")
        first = make_cache_key("org-1", 90, date(2026, 6, 1), 3.0, True, [b, a])
        second = make_cache_key("org-1", 90, date(2026, 6, 1), 3.0, True, [a, b])
        assert first == second
        assert ":ext:" in first

    def test_same_id_different_keywords(self):
        kubernetes = make_cache_key(
            "org-1", 180, date(2026, 6, 1), 5.0, False, [self.topic("custom:x", "kubernetes")]
        )
        payroll = make_cache_key(
            "org-1", 180, date(2026, 6, 1), 5.0, False, [self.topic("custom:x", "payroll")]
        )
        assert kubernetes != payroll

    def test_same_id_different_type(self):
        topic = self.topic("custom:x", "payroll")
        process = KnowledgeDomain(
            id="custom:x", name="custom:x", type=DomainType.PROCESS, related_process_ids=["p1"]
        )
        assert make_cache_key("org-1", 180, date(2026, 6, 1), 5.0, False, [topic]) != (
            make_cache_key("org-1", 180, date(2026, 6, 1), 5.0, False, [process])
        )

    def test_threshold_changes_key(self):
        assert make_cache_key("org-1", 180, date(2026, 6, 1), 5.0, False) != make_cache_key(
            "org-1", 180, date(2026, 6, 1), 3.0, False
        )


class TestInMemoryGraphCache:
    """Tests for the process-local cache."""

    @pytest.mark.asyncio
    async def test_get_set(self, graph):
        cache = InMemoryGraphCache(ttl_seconds=60, max_entries=2)

        await cache.set("org-1:a", graph)

        assert await cache.get("org-1:a") is graph
        assert await cache.get("org-1:b") is None

    @pytest.mark.asyncio
    async def test_ttl_expiry(self, graph):
        cache = InMemoryGraphCache(ttl_seconds=60, max_entries=2)

        with patch("src.busfactor.cache.time.monotonic", return_value=1000.0):
            await cache.set("org-1:a", graph)
        with patch("src.busfactor.cache.time.monotonic", return_value=1061.0):
            assert await cache.get("org-1:a") is None

        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_explicit_zero_ttl_is_kept(self, graph):
        cache = InMemoryGraphCache(ttl_seconds=0, max_entries=2)

        with patch("src.busfactor.cache.time.monotonic", return_value=1000.0):
            await cache.set("org-1:a", graph)
        with patch("src.busfactor.cache.time.monotonic", return_value=1000.5):
            assert await cache.get("org-1:a") is None

        assert cache.ttl == 0

    @pytest.mark.asyncio
    async def test_explicit_zero_entries_stores_nothing(self, graph):
        cache = InMemoryGraphCache(ttl_seconds=60, max_entries=0)

        await cache.set("org-1:a", graph)

        assert len(cache) == 0

    def test_defaults_from_settings(self):
        cache = InMemoryGraphCache()

        assert cache.ttl == settings.busfactor_cache_ttl_seconds
        assert cache.max_entries == settings.busfactor_cache_max_entries

    @pytest.mark.asyncio
    async def test_lru_eviction(self, graph):
        cache = InMemoryGraphCache(ttl_seconds=60, max_entries=2)

        await cache.set("org-1:a", graph)
        await cache.set("org-1:b", graph)
        await cache.get("org-1:a")
        await cache.set("org-1:c", graph)

        assert await cache.get("org-1:b") is None
        assert await cache.get("org-1:a") is graph
        assert len(cache) == 2

    @pytest.mark.asyncio
    async def test_invalidate_by_organization(self, graph):
        cache = InMemoryGraphCache(ttl_seconds=60, max_entries=8)
        await cache.set("org-1:a", graph)
        await cache.set("org-1:b", graph)
        await cache.set("org-2:a", graph)

        assert await cache.invalidate("org-1") == 2
        assert await cache.get("org-2:a") is graph
        assert await cache.invalidate() == 1


class TestRedisGraphCache:
    """Tests for the shared Redis cache."""

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.get = AsyncMock(return_value=None)
        client.setex = AsyncMock()
        client.delete = AsyncMock(return_value=1)
        client.close = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_round_trip(self, client, graph):
        cache = RedisGraphCache(client, ttl_seconds=120)

        await cache.set("org-1:a", graph)

        key, ttl, payload = client.setex.call_args.args
        assert key == "busfactor:graph:org-1:a"
        assert ttl == 120

        client.get = AsyncMock(return_value=payload)
        restored = await cache.get("org-1:a")

        assert restored == graph
        assert json.loads(payload)["singlePointsOfFailure"] == ["alice"]

    @pytest.mark.asyncio
    async def test_redis_errors_are_misses(self, client, graph):
        client.get = AsyncMock(side_effect=RedisConnectionError("down"))
        client.setex = AsyncMock(side_effect=RedisConnectionError("down"))
        cache = RedisGraphCache(client, ttl_seconds=120)

        await cache.set("org-1:a", graph)

        assert await cache.get("org-1:a") is None

    def test_explicit_zero_ttl_is_kept(self, client):
        assert RedisGraphCache(client, ttl_seconds=0).ttl == 0
        assert RedisGraphCache(client).ttl == settings.busfactor_cache_ttl_seconds

    @pytest.mark.asyncio
    async def test_invalidate(self, client):
        async def scan_iter(match):
            assert match == "busfactor:graph:org-1:*"
            for key in ("busfactor:graph:org-1:a", "busfactor:graph:org-1:b"):
                yield key

        client.scan_iter = scan_iter
        cache = RedisGraphCache(client, ttl_seconds=120)

        assert await cache.invalidate("org-1") == 2
