"""Context retrieval for augmented prompts."""

import asyncio
import logging

from ragchat.models.schemas import VectorMatch
from ragchat.providers.base import EmbeddingProvider, VectorIndex
from ragchat.relay.errors import EmptyContextError, RetrievalFailure

logger = logging.getLogger(__name__)


class Retriever:
    """Embeds a question and fetches the closest stored chunks.

    Attributes:
        top_k: Number of matches requested from the index.
        timeout: Seconds allowed for embedding and query together.
        allow_empty: Return an empty result instead of raising on zero matches.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        index: VectorIndex,
        top_k: int = 5,
        timeout: float = 15.0,
        allow_empty: bool = False,
    ) -> None:
        self._embedder = embedder
        self._index = index
        self.top_k = top_k
        self.timeout = timeout
        self.allow_empty = allow_empty

    async def retrieve(self, question: str) -> list[VectorMatch]:
        """Return matches for `question` in similarity rank order.

        Raises:
            RetrievalFailure: Embedding or query failed or timed out.
            EmptyContextError: No matches and empty context is not allowed.
        """
        try:
            async with asyncio.timeout(self.timeout):
                vector = await self._embed(question)
                matches = await self._query(vector)
        except TimeoutError as e:
            logger.error(f"Retrieval timed out after {self.timeout}s")
            raise RetrievalFailure(
                f"Retrieval timed out after {self.timeout}s", timed_out=True
            ) from e

        if not matches and not self.allow_empty:
            logger.warning("Retrieval returned no matches")
            raise EmptyContextError("No matching context found for the question")

        logger.info(f"Retrieved {len(matches)} matches")
        return matches

    async def _embed(self, question: str) -> list[float]:
        try:
            return await self._embedder.embed(question)
        except Exception as e:
            logger.error(f"Query embedding failed: {e}")
            raise RetrievalFailure(f"Query embedding failed: {e}") from e

    async def _query(self, vector: list[float]) -> list[VectorMatch]:
        try:
            return await self._index.query(vector, top_k=self.top_k, include_metadata=True)
        except Exception as e:
            logger.error(f"Vector index query failed: {e}")
            raise RetrievalFailure(f"Vector index query failed: {e}") from e
