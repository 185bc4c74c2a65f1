"""Token-bounded chunking of document pages.

Splitting is delegated to LangChain's RecursiveCharacterTextSplitter; this
module only supplies the length function and carries page metadata onto
each chunk.
"""

import logging
from collections.abc import Callable

import tiktoken
from langchain_text_splitters import RecursiveCharacterTextSplitter

from ragchat.models.schemas import Chunk
from ragchat.parsing.pdf_parser import PDFDocument

logger = logging.getLogger(__name__)

LengthFunction = Callable[[str], int]


def token_length(encoding_name: str = "p50k_base") -> LengthFunction:
    """Build a length function that counts tiktoken tokens."""
    encoding = tiktoken.get_encoding(encoding_name)

    def _length(text: str) -> int:
        return len(encoding.encode(text, disallowed_special=()))

    return _length


class TokenChunker:
    """Splits documents into ordered, overlapping chunks.

    Attributes:
        chunk_size: Maximum chunk length as measured by `length_function`.
        chunk_overlap: Length shared by consecutive chunks.
    """

    def __init__(
        self,
        chunk_size: int = 2000,
        chunk_overlap: int = 100,
        length_function: LengthFunction | None = None,
    ) -> None:
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self._splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            length_function=length_function or token_length(),
        )

    def split_document(self, document: PDFDocument) -> list[Chunk]:
        """Chunk every page in order; chunk indexes run across the whole document."""
        chunks: list[Chunk] = []
        for page in document.pages:
            if not page.text.strip():
                continue
            for text in self._splitter.split_text(page.text):
                chunks.append(
                    Chunk(text=text, source=document.source, page=page.number, index=len(chunks))
                )
        logger.info(f"Split {document.source} into {len(chunks)} chunks")
        return chunks
