import logging
from typing import Optional

from qdrant_client import AsyncQdrantClient, models
from qdrant_client.models import Distance, VectorParams

from .config import QDRANT_URL, QDRANT_API_KEY

logger = logging.getLogger(__name__)


def create_qdrant_client(url: str = QDRANT_URL, api_key: Optional[str] = QDRANT_API_KEY) -> AsyncQdrantClient:
    """Build an async Qdrant client; ':memory:' gives a process-local index."""
    if url == ":memory:":
        logger.info("Using in-memory Qdrant index")
        return AsyncQdrantClient(location=":memory:")
    logger.info(f"Connecting to Qdrant at {url}")
    return AsyncQdrantClient(url=url, api_key=api_key, timeout=30)


async def ensure_collection(client: AsyncQdrantClient, collection_name: str, vector_size: int) -> None:
    """
    Create the cache collection with cosine distance and a keyword index on cache_key.

    Idempotent - an existing collection is left untouched.
    """
    if await client.collection_exists(collection_name):
        logger.debug(f"Collection {collection_name} already exists")
        return

    await client.create_collection(
        collection_name=collection_name,
        vectors_config=VectorParams(size=vector_size, distance=Distance.COSINE),
    )
    await client.create_payload_index(
        collection_name=collection_name,
        field_name="cache_key",
        field_schema=models.PayloadSchemaType.KEYWORD,
    )
    logger.info(f"Created collection {collection_name} (dim={vector_size})")
