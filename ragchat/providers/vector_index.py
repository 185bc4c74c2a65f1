"""Pinecone-backed vector index.

The Pinecone data-plane client is synchronous; calls are pushed to a worker
thread so request handlers stay non-blocking.
"""

import asyncio
import logging
from collections.abc import Sequence

from pinecone import Pinecone

from ragchat.models.schemas import VectorMatch, VectorRecord

logger = logging.getLogger(__name__)

UPSERT_BATCH_SIZE = 100


class PineconeVectorIndex:
    """Upsert and nearest-neighbor query against a named Pinecone index."""

    def __init__(self, api_key: str, index_name: str) -> None:
        self._client = Pinecone(api_key=api_key)
        self._index = self._client.Index(index_name)
        self.index_name = index_name
        logger.info(f"Connected to Pinecone index: {index_name}")

    async def upsert(self, records: Sequence[VectorRecord]) -> int:
        """Write records in batches; existing ids are overwritten.

        Returns:
            Number of records acknowledged by the index.
        """
        upserted = 0
        for start in range(0, len(records), UPSERT_BATCH_SIZE):
            batch = [record.to_index() for record in records[start : start + UPSERT_BATCH_SIZE]]
            response = await asyncio.to_thread(self._index.upsert, vectors=batch)
            upserted += _upserted_count(response, len(batch))
        return upserted

    async def query(
        self, vector: Sequence[float], top_k: int, include_metadata: bool = True
    ) -> list[VectorMatch]:
        response = await asyncio.to_thread(
            self._index.query,
            vector=list(vector),
            top_k=top_k,
            include_metadata=include_metadata,
        )
        return [
            VectorMatch(
                id=match.id,
                score=match.score if match.score is not None else 0.0,
                metadata=dict(match.metadata or {}),
            )
            for match in response.matches
        ]


def _upserted_count(response: object, fallback: int) -> int:
    count = getattr(response, "upserted_count", None)
    return count if isinstance(count, int) else fallback
