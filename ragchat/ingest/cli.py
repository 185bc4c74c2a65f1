"""Command line entry point for populating the vector index.

Usage:
    ragchat-ingest path/to/document.pdf
    ragchat-ingest path/to/document.pdf --index other-index
    ragchat-ingest path/to/document.pdf --dry-run

Prints a JSON summary and exits non-zero on failure.
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from ragchat.config import Settings, get_settings
from ragchat.ingest.chunker import TokenChunker, token_length
from ragchat.ingest.pipeline import IngestionError, IngestionPipeline
from ragchat.parsing.pdf_parser import PDFParseError, load_pdf
from ragchat.services import Services

logger = logging.getLogger(__name__)


def build_chunker(settings: Settings) -> TokenChunker:
    return TokenChunker(
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
        length_function=token_length(settings.tokenizer_encoding),
    )


def build_pipeline(services: Services) -> IngestionPipeline:
    if services.embedder is None or services.index is None:
        raise ValueError("Ingestion needs both an embedding provider and a vector index")
    return IngestionPipeline(build_chunker(services.settings), services.embedder, services.index)


async def run(path: str, settings: Settings, dry_run: bool = False) -> dict:
    if dry_run:
        document = load_pdf(path)
        chunks = build_chunker(settings).split_document(document)
        return {"status": "dry-run", "source": document.source, "pages": document.page_count, "chunks": len(chunks)}

    services = Services.from_settings(settings, with_index=True)
    try:
        result = await build_pipeline(services).ingest_path(path)
    finally:
        await services.aclose()
    return {"status": "ok", **result.model_dump(exclude={"record_ids"})}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest a PDF into the Pinecone index")
    parser.add_argument("path", help="Path to the PDF to ingest")
    parser.add_argument("--index", help="Override PINECONE_INDEX")
    parser.add_argument("--chunk-size", type=int, help="Override CHUNK_SIZE")
    parser.add_argument("--chunk-overlap", type=int, help="Override CHUNK_OVERLAP")
    parser.add_argument("--dry-run", action="store_true", help="Parse and chunk only")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    args = parse_args(argv)

    overrides = {
        key: value
        for key, value in {
            "index_name": args.index,
            "chunk_size": args.chunk_size,
            "chunk_overlap": args.chunk_overlap,
        }.items()
        if value is not None
    }

    try:
        settings = Settings.model_validate({**get_settings().model_dump(), **overrides})
        summary = asyncio.run(run(args.path, settings, dry_run=args.dry_run))
    except (PDFParseError, IngestionError, ValueError) as e:
        logger.error(f"Ingestion failed: {e}")
        print(json.dumps({"status": "error", "message": str(e)}))
        return 1
    except Exception as e:
        logger.exception(f"Unhandled error during ingestion: {e}")
        print(json.dumps({"status": "error", "message": str(e)}))
        return 2

    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
