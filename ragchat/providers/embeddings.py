"""OpenAI embedding provider."""

import logging
from collections.abc import Sequence

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

EMBED_BATCH_SIZE = 100


class OpenAIEmbeddingProvider:
    """Maps text to fixed-length vectors through the OpenAI embeddings API."""

    def __init__(self, client: AsyncOpenAI, model: str) -> None:
        self._client = client
        self._model = model

    async def embed(self, text: str) -> list[float]:
        response = await self._client.embeddings.create(model=self._model, input=text)
        return list(response.data[0].embedding)

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed many texts, preserving input order across API batches."""
        vectors: list[list[float]] = []
        for start in range(0, len(texts), EMBED_BATCH_SIZE):
            batch = list(texts[start : start + EMBED_BATCH_SIZE])
            response = await self._client.embeddings.create(model=self._model, input=batch)
            # The API may return items out of order; `index` is authoritative.
            ordered = sorted(response.data, key=lambda item: item.index)
            vectors.extend(list(item.embedding) for item in ordered)
            logger.debug(f"Embedded batch of {len(batch)} texts (offset {start})")
        return vectors
