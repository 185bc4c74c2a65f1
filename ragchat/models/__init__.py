"""Pydantic models shared by the API, relay, ingestion and UI.

Provides type safety, validation, and automatic OpenAPI documentation.

Models:
    - Role: Closed set of conversation roles
    - ChatMessage: Individual message in a conversation
    - Chunk: Slice of a source document used for embedding
    - VectorRecord: Embedding plus metadata stored in the index
    - VectorMatch: Nearest-neighbor hit returned by an index query
    - IngestionResult: Summary of a document ingestion run
"""

from ragchat.models.schemas import (
    ChatMessage,
    Chunk,
    IngestionResult,
    Role,
    VectorMatch,
    VectorRecord,
)

__all__ = [
    "ChatMessage",
    "Chunk",
    "IngestionResult",
    "Role",
    "VectorMatch",
    "VectorRecord",
]
