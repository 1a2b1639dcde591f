"""
Semantic cache - tier 2 of the allergen knowledge cache.

Raw generative-search responses are stored in a vector index keyed by a
composite key ("{kind}:{normalized name}"). Similarity search only narrows the
candidates; a hit requires the stored cache_key to equal the computed one, so
chemicals with similar embeddings ("Linalool" / "Linalene") never answer for
each other.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol
import asyncio
import logging
import uuid

from qdrant_client import AsyncQdrantClient, models
from qdrant_client.models import PointStruct

from ..core.config import (
    SEMANTIC_CACHE_COLLECTION, SEMANTIC_CACHE_TOP_K, SEMANTIC_CACHE_SIMILARITY_THRESHOLD,
    SEMANTIC_CACHE_TTL_DAYS, SEMANTIC_CACHE_IGNORE_STALE
)
from ..core.exceptions import CacheUnavailable
from ..core.vector_store import ensure_collection
from ..models.allergen import CacheEntry, DataKind

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    dimension: int

    def embed(self, text: str) -> List[float]:
        ...


def composite_key(subject_key: str, kind: DataKind) -> str:
    """Type-prefixed, trimmed, lowercased key used as the equality test."""
    return f"{kind.value}:{subject_key.strip().lower()}"


def _point_id(cache_key: str) -> str:
    # one point per key, so a repeated put overwrites (last write wins)
    return str(uuid.uuid5(uuid.NAMESPACE_URL, cache_key))


def _strip_key_prefix(content: str, cache_key: str) -> str:
    newline_index = content.find("\n")
    if newline_index > 0 and content[:newline_index] == cache_key:
        return content[newline_index + 1:]
    return content


def _parse_cached_at(value: Any) -> datetime:
    try:
        return datetime.fromisoformat(str(value))
    except (TypeError, ValueError):
        logger.warning(f"Could not parse cache timestamp: {value}")
        # unparseable timestamps count as expired
        return datetime.min


class SemanticCache:
    """Vector-indexed cache of raw search responses with exact-key verification."""

    def __init__(
        self,
        client: AsyncQdrantClient,
        embedder: Embedder,
        collection_name: str = SEMANTIC_CACHE_COLLECTION,
        top_k: int = SEMANTIC_CACHE_TOP_K,
        similarity_threshold: float = SEMANTIC_CACHE_SIMILARITY_THRESHOLD,
        ttl_days: int = SEMANTIC_CACHE_TTL_DAYS,
        ignore_stale: bool = SEMANTIC_CACHE_IGNORE_STALE,
    ):
        self.client = client
        self.embedder = embedder
        self.collection_name = collection_name
        self.top_k = top_k
        self.similarity_threshold = similarity_threshold
        self.ttl_days = ttl_days
        self.ignore_stale = ignore_stale
        self._collection_ready = False
        self._collection_lock = asyncio.Lock()

    async def _ensure_collection(self) -> None:
        if self._collection_ready:
            return
        async with self._collection_lock:
            if not self._collection_ready:
                await ensure_collection(self.client, self.collection_name, self.embedder.dimension)
                self._collection_ready = True

    async def _candidates(self, cache_key: str) -> List[models.ScoredPoint]:
        try:
            await self._ensure_collection()
            vector = await asyncio.to_thread(self.embedder.embed, cache_key)
            response = await self.client.query_points(
                collection_name=self.collection_name,
                query=vector,
                limit=self.top_k,
                score_threshold=self.similarity_threshold,
                with_payload=True,
            )
        except Exception as e:
            raise CacheUnavailable(f"Vector index query failed for {cache_key}: {e}") from e
        return response.points

    async def get_entry(self, subject_key: str, kind: DataKind) -> Optional[CacheEntry]:
        """
        Find the stored entry for a subject, or None.

        Args:
            subject_key: Chemical name (any case / surrounding whitespace)
            kind: Data kind the entry was stored under

        Returns:
            CacheEntry with the key prefix stripped from its content, or None on
            a miss or when the index is unavailable
        """
        cache_key = composite_key(subject_key, kind)
        try:
            candidates = await self._candidates(cache_key)
        except CacheUnavailable as e:
            logger.error(f"Semantic cache unavailable, treating as miss: {e}")
            return None

        for point in candidates:
            payload = point.payload or {}
            if payload.get("cache_key") != cache_key:
                continue
            logger.info(f"Semantic cache hit for: {subject_key} (type: {kind.value}, score={point.score:.3f})")
            return CacheEntry(
                cache_key=cache_key,
                original_key=payload.get("original_key"),
                content=_strip_key_prefix(payload.get("content", ""), cache_key),
                cached_at=_parse_cached_at(payload.get("cached_at")),
                ttl_days=int(payload.get("ttl_days", self.ttl_days)),
                kind=kind,
            )

        logger.info(f"Semantic cache miss for: {subject_key} (type: {kind.value}, {len(candidates)} candidates rejected)")
        return None

    async def get(self, subject_key: str, kind: DataKind) -> Optional[str]:
        entry = await self.get_entry(subject_key, kind)
        if entry is None:
            return None
        if self.ignore_stale and entry.is_expired():
            logger.info(f"Semantic cache entry for {subject_key} is older than {entry.ttl_days} days, ignoring")
            return None
        return entry.content

    async def put(self, subject_key: str, kind: DataKind, raw_text: str) -> None:
        """Store a raw response. Failures are logged and swallowed."""
        cache_key = composite_key(subject_key, kind)
        payload = {
            "cache_key": cache_key,
            "original_key": subject_key,
            "cached_at": datetime.now().isoformat(),
            "type": kind.value,
            "ttl_days": self.ttl_days,
            "content": f"{cache_key}\n{raw_text}",
        }
        try:
            await self._ensure_collection()
            vector = await asyncio.to_thread(self.embedder.embed, cache_key)
            await self.client.upsert(
                collection_name=self.collection_name,
                points=[PointStruct(id=_point_id(cache_key), vector=vector, payload=payload)],
            )
            logger.info(f"Cached data for: {subject_key} (type: {kind.value})")
        except Exception as e:
            logger.error(f"Error caching data for: {subject_key} (type: {kind.value}): {e}")

    async def invalidate(self, subject_key: str, kind: DataKind) -> None:
        cache_key = composite_key(subject_key, kind)
        try:
            await self._ensure_collection()
            await self.client.delete(
                collection_name=self.collection_name,
                points_selector=models.PointIdsList(points=[_point_id(cache_key)]),
            )
            logger.info(f"Invalidated semantic cache for: {subject_key} (type: {kind.value})")
        except Exception as e:
            logger.warning(f"Could not invalidate {cache_key}: {e}")

    async def stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "collection": self.collection_name,
            "ttl_days": self.ttl_days,
            "similarity_threshold": self.similarity_threshold,
            "top_k": self.top_k,
            "ignore_stale": self.ignore_stale,
        }
        try:
            await self._ensure_collection()
            result = await self.client.count(collection_name=self.collection_name, exact=True)
            stats["entries"] = result.count
        except Exception as e:
            logger.warning(f"Could not count semantic cache entries: {e}")
            stats["entries"] = None
        return stats
