import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

from qdrant_client import AsyncQdrantClient

from app.models.allergen import CacheEntry, DataKind, is_cache_expired
from app.service.semantic_cache import SemanticCache, composite_key, _point_id


class TestSemanticCache:

    @pytest.fixture
    def qdrant(self):
        return AsyncQdrantClient(location=":memory:")

    @pytest.fixture
    def cache(self, qdrant, constant_embedder):
        return SemanticCache(qdrant, constant_embedder, collection_name="test_cache")

    def test_composite_key_normalizes(self):
        assert composite_key("  Limonene ", DataKind.SIDE_EFFECTS) == "side_effects:limonene"
        assert composite_key("LIMONENE", DataKind.OXIDATION_PRODUCTS) == "oxidation_products:limonene"

    @pytest.mark.asyncio
    async def test_put_then_get_returns_raw_text(self, cache):
        await cache.put("Limonene", DataKind.SIDE_EFFECTS, "EFFECT: Dermatitis\nSEVERITY: MILD")

        result = await cache.get("limonene ", DataKind.SIDE_EFFECTS)

        assert result == "EFFECT: Dermatitis\nSEVERITY: MILD"

    @pytest.mark.asyncio
    async def test_near_miss_name_is_not_a_hit(self, cache):
        # identical vectors for every key: similarity alone would match anything
        await cache.put("Limonene", DataKind.SIDE_EFFECTS, "limonene effects")
        await cache.put("Linalool", DataKind.SIDE_EFFECTS, "linalool effects")

        assert await cache.get("Linalene", DataKind.SIDE_EFFECTS) is None
        assert await cache.get("Linalool", DataKind.SIDE_EFFECTS) == "linalool effects"
        assert await cache.get("Limonene", DataKind.SIDE_EFFECTS) == "limonene effects"

    @pytest.mark.asyncio
    async def test_kinds_are_kept_apart(self, cache):
        await cache.put("Limonene", DataKind.SIDE_EFFECTS, "effects")

        assert await cache.get("Limonene", DataKind.OXIDATION_PRODUCTS) is None

    @pytest.mark.asyncio
    async def test_put_twice_overwrites(self, cache, qdrant):
        await cache.put("Limonene", DataKind.SIDE_EFFECTS, "old")
        await cache.put("Limonene", DataKind.SIDE_EFFECTS, "new")

        assert await cache.get("Limonene", DataKind.SIDE_EFFECTS) == "new"
        count = await qdrant.count(collection_name="test_cache", exact=True)
        assert count.count == 1

    @pytest.mark.asyncio
    async def test_get_entry_exposes_metadata(self, cache):
        await cache.put("Limonene", DataKind.SIDE_EFFECTS, "raw")

        entry = await cache.get_entry("Limonene", DataKind.SIDE_EFFECTS)

        assert isinstance(entry, CacheEntry)
        assert entry.cache_key == "side_effects:limonene"
        assert entry.original_key == "Limonene"
        assert entry.ttl_days == 30
        assert entry.kind == DataKind.SIDE_EFFECTS
        assert not entry.is_expired()

    @pytest.mark.asyncio
    async def test_stale_entry_served_unless_ignored(self, qdrant, constant_embedder):
        cache = SemanticCache(qdrant, constant_embedder, collection_name="test_cache")
        await cache.put("Limonene", DataKind.SIDE_EFFECTS, "raw")
        old = (datetime.now() - timedelta(days=45)).isoformat()
        await qdrant.set_payload(
            collection_name="test_cache",
            payload={"cached_at": old},
            points=[_point_id("side_effects:limonene")],
        )

        assert await cache.get("Limonene", DataKind.SIDE_EFFECTS) == "raw"

        strict = SemanticCache(qdrant, constant_embedder, collection_name="test_cache", ignore_stale=True)
        assert await strict.get("Limonene", DataKind.SIDE_EFFECTS) is None

    @pytest.mark.asyncio
    async def test_invalidate_removes_entry(self, cache):
        await cache.put("Limonene", DataKind.SIDE_EFFECTS, "raw")

        await cache.invalidate("Limonene", DataKind.SIDE_EFFECTS)

        assert await cache.get("Limonene", DataKind.SIDE_EFFECTS) is None

    @pytest.mark.asyncio
    async def test_stats_counts_entries(self, cache):
        await cache.put("Limonene", DataKind.SIDE_EFFECTS, "a")
        await cache.put("Limonene", DataKind.OXIDATION_PRODUCTS, "b")

        stats = await cache.stats()

        assert stats["collection"] == "test_cache"
        assert stats["entries"] == 2
        assert stats["similarity_threshold"] == 0.5
        assert stats["top_k"] == 10

    @pytest.mark.asyncio
    async def test_similar_embedder_still_requires_exact_key(self, qdrant, character_embedder):
        cache = SemanticCache(qdrant, character_embedder, collection_name="char_cache")
        await cache.put("Linalool", DataKind.SIDE_EFFECTS, "linalool effects")

        assert await cache.get("Linalene", DataKind.SIDE_EFFECTS) is None
        assert await cache.get("LINALOOL", DataKind.SIDE_EFFECTS) == "linalool effects"

    @pytest.mark.asyncio
    async def test_index_failure_is_a_miss(self, constant_embedder):
        client = AsyncMock()
        client.collection_exists.return_value = True
        client.query_points.side_effect = Exception("connection refused")
        client.upsert.side_effect = Exception("connection refused")
        cache = SemanticCache(client, constant_embedder)

        await cache.put("Limonene", DataKind.SIDE_EFFECTS, "raw")
        assert await cache.get("Limonene", DataKind.SIDE_EFFECTS) is None


class TestCacheExpiry:

    def test_within_ttl(self):
        now = datetime(2024, 3, 31)
        assert not is_cache_expired(datetime(2024, 3, 2), 30, now)

    def test_past_ttl(self):
        now = datetime(2024, 3, 31)
        assert is_cache_expired(datetime(2024, 2, 1), 30, now)
