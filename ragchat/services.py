"""Process-scoped provider handles.

Built once when the server or the ingestion CLI starts, shared read-mostly
by every request, and closed at shutdown.
"""

import logging
from dataclasses import dataclass

from openai import AsyncOpenAI

from ragchat.config import Settings
from ragchat.providers.base import CompletionProvider, EmbeddingProvider, VectorIndex
from ragchat.providers.completion import OpenAICompletionProvider
from ragchat.providers.embeddings import OpenAIEmbeddingProvider
from ragchat.providers.vector_index import PineconeVectorIndex
from ragchat.relay.retrieval import Retriever
from ragchat.relay.service import RelayService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Provider clients plus the settings they were built from."""

    settings: Settings
    completion: CompletionProvider
    embedder: EmbeddingProvider | None = None
    index: VectorIndex | None = None
    openai_client: AsyncOpenAI | None = None

    @classmethod
    def from_settings(cls, settings: Settings, *, with_index: bool | None = None) -> "Services":
        """Create the OpenAI and Pinecone clients.

        Args:
            settings: Loaded configuration.
            with_index: Connect to Pinecone. Defaults to `retrieval_enabled`.

        Raises:
            ValueError: Pinecone is needed but PINECONE_API_KEY is unset.
        """
        client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.request_timeout,
            max_retries=0,
        )
        completion = OpenAICompletionProvider(
            client,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
        )
        embedder = OpenAIEmbeddingProvider(client, settings.embedding_model)

        index = None
        if settings.retrieval_enabled if with_index is None else with_index:
            index = PineconeVectorIndex(settings.require_pinecone(), settings.index_name)

        logger.info(
            f"Providers ready: model={settings.model_name}, "
            f"embedding={settings.embedding_model}, index={settings.index_name if index else None}"
        )
        return cls(
            settings=settings,
            completion=completion,
            embedder=embedder,
            index=index,
            openai_client=client,
        )

    def build_relay(self) -> RelayService:
        settings = self.settings
        retriever = None
        if settings.retrieval_enabled:
            if self.embedder is None or self.index is None:
                raise ValueError("Retrieval is enabled but no embedder or index is configured")
            retriever = Retriever(
                self.embedder,
                self.index,
                top_k=settings.retrieval_top_k,
                timeout=settings.retrieval_timeout,
                allow_empty=settings.allow_empty_context,
            )
        return RelayService(
            self.completion,
            model=settings.model_name,
            system_prompt=settings.system_prompt,
            retriever=retriever,
            completion_timeout=settings.completion_timeout,
        )

    async def aclose(self) -> None:
        if self.openai_client is not None:
            await self.openai_client.close()
            logger.info("Closed OpenAI client")
