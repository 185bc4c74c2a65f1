"""Collaborator contracts the relay and ingestion depend on.

The relay only talks to these protocols, so tests can hand it in-memory
substitutes instead of the hosted services.
"""

from collections.abc import AsyncIterator, Sequence
from typing import Protocol

from ragchat.models.schemas import ChatMessage, VectorMatch, VectorRecord


class EmbeddingProvider(Protocol):
    async def embed(self, text: str) -> list[float]: ...

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]: ...


class VectorIndex(Protocol):
    async def upsert(self, records: Sequence[VectorRecord]) -> int: ...

    async def query(
        self, vector: Sequence[float], top_k: int, include_metadata: bool = True
    ) -> list[VectorMatch]: ...


class CompletionProvider(Protocol):
    def stream_complete(
        self, messages: Sequence[ChatMessage], model: str
    ) -> AsyncIterator[str]:
        """Yield text deltas in emission order.

        Implementations are async generators; closing them early must release
        the upstream stream.
        """
        ...
