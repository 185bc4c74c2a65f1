"""Ingestion of PDF documents into the vector index.

Responsibilities:
    - Token-bounded chunking with overlap (LangChain splitter + tiktoken)
    - Sanitizing chunk text before embedding
    - Batched embedding and idempotent upsert by deterministic record id
    - The `ragchat-ingest` command line entry point
"""

from ragchat.ingest.chunker import TokenChunker, token_length
from ragchat.ingest.pipeline import (
    IngestionError,
    IngestionPipeline,
    record_id,
    sanitize_for_embedding,
    source_key,
    source_slug,
)

__all__ = [
    "IngestionError",
    "IngestionPipeline",
    "TokenChunker",
    "record_id",
    "sanitize_for_embedding",
    "source_key",
    "source_slug",
    "token_length",
]
