"""Bindings to the hosted services ragchat delegates to.

Responsibilities:
    - Embedding text with the OpenAI embeddings API
    - Upserting and querying vectors in Pinecone
    - Streaming chat completions from the OpenAI chat API

Each binding satisfies a small protocol from providers.base so the relay
never depends on a concrete SDK.
"""

from ragchat.providers.base import CompletionProvider, EmbeddingProvider, VectorIndex
from ragchat.providers.completion import OpenAICompletionProvider
from ragchat.providers.embeddings import OpenAIEmbeddingProvider
from ragchat.providers.vector_index import PineconeVectorIndex

__all__ = [
    "CompletionProvider",
    "EmbeddingProvider",
    "OpenAICompletionProvider",
    "OpenAIEmbeddingProvider",
    "PineconeVectorIndex",
    "VectorIndex",
]
