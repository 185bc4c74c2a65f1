"""Document ingestion: PDF -> chunks -> embeddings -> vector records.

Record ids are derived from the document name and chunk position, so
re-ingesting the same file with the same chunking settings overwrites the
previous vectors instead of duplicating them. A short hash of the exact
name keeps ids of distinct documents apart even when their slugs match.
"""

import hashlib
import logging
import re
from pathlib import Path

from ragchat.ingest.chunker import TokenChunker
from ragchat.models.schemas import Chunk, IngestionResult, VectorRecord
from ragchat.parsing.pdf_parser import PDFDocument, load_pdf
from ragchat.providers.base import EmbeddingProvider, VectorIndex

logger = logging.getLogger(__name__)

_UNSAFE_FOR_EMBEDDING = re.compile(r"[^a-zA-Z0-9 .,?!]")
_SLUG = re.compile(r"[^a-z0-9]+")


class IngestionError(Exception):
    """Raised when a document yields nothing that can be embedded."""


def source_slug(source: str) -> str:
    """ASCII id prefix for a document, e.g. 'Market Report.pdf' -> 'market-report'."""
    slug = _SLUG.sub("-", Path(source).stem.lower()).strip("-")
    return slug or "document"


def source_key(source: str) -> str:
    """Readable slug plus the first 8 hex digits of the name's SHA-1."""
    digest = hashlib.sha1(source.encode("utf-8")).hexdigest()[:8]
    return f"{source_slug(source)}-{digest}"


def record_id(source: str, index: int) -> str:
    return f"{source_key(source)}-{index}"


def sanitize_for_embedding(text: str) -> str:
    return _UNSAFE_FOR_EMBEDDING.sub("", text)


class IngestionPipeline:
    """Populates the vector index from PDF documents.

    Runs as a one-shot administrative job, never on the request path.
    """

    def __init__(
        self,
        chunker: TokenChunker,
        embedder: EmbeddingProvider,
        index: VectorIndex,
    ) -> None:
        self._chunker = chunker
        self._embedder = embedder
        self._index = index

    def prepare(self, document: PDFDocument) -> list[Chunk]:
        """Chunk a document and drop chunks with no text.

        Raises:
            IngestionError: Nothing in the document is embeddable.
        """
        chunks = [chunk for chunk in self._chunker.split_document(document) if chunk.text.strip()]
        if not chunks:
            raise IngestionError("No valid text data to embed.")
        return chunks

    async def ingest_document(self, document: PDFDocument) -> IngestionResult:
        """Embed and upsert every chunk of an already parsed document."""
        chunks = self.prepare(document)

        inputs = []
        for chunk in chunks:
            sanitized = sanitize_for_embedding(chunk.text)
            inputs.append(sanitized if sanitized.strip() else chunk.text)
        vectors = await self._embedder.embed_batch(inputs)
        if len(vectors) != len(chunks):
            raise IngestionError(
                f"Embedding provider returned {len(vectors)} vectors for {len(chunks)} chunks"
            )
        logger.info(f"Generated {len(vectors)} document embeddings")

        records = [
            VectorRecord(
                id=record_id(chunk.source, chunk.index),
                values=vector,
                metadata={"text": chunk.text, "source": chunk.source, "page": chunk.page},
            )
            for chunk, vector in zip(chunks, vectors, strict=True)
        ]
        upserted = await self._index.upsert(records)
        logger.info(f"Upserted {upserted} vectors for {document.source}")

        return IngestionResult(
            source=document.source,
            pages=document.page_count,
            chunks=len(chunks),
            upserted=upserted,
            record_ids=[record.id for record in records],
        )

    async def ingest_path(self, path: str | Path) -> IngestionResult:
        return await self.ingest_document(load_pdf(path))
