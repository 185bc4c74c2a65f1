"""PDF parsing module using pypdf.

Reads a PDF from disk or bytes and returns its text page by page, so chunks
can carry the page they came from.
"""

import io
import logging
from pathlib import Path

from pydantic import BaseModel, Field
from pypdf import PdfReader
from pypdf.errors import PdfReadError

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB
PDF_MAGIC_BYTES = b"%PDF"


class PDFPage(BaseModel):
    """Text of one page; `number` is 1-based."""

    number: int = Field(ge=1)
    text: str


class PDFDocument(BaseModel):
    """Extracted content of a PDF file.

    Attributes:
        source: Identifier of the document (file name for disk loads).
        pages: Per-page text, including pages with no extractable text.
    """

    source: str
    pages: list[PDFPage]

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def text(self) -> str:
        return "\n\n".join(page.text for page in self.pages if page.text)


class PDFParseError(Exception):
    """Raised when a PDF cannot be read."""


def _check_header(file_content: bytes) -> None:
    if not file_content:
        raise PDFParseError("Empty file provided")

    if len(file_content) > MAX_FILE_SIZE:
        size_mb = len(file_content) / (1024 * 1024)
        raise PDFParseError(
            f"File size ({size_mb:.1f}MB) exceeds maximum allowed "
            f"({MAX_FILE_SIZE // (1024 * 1024)}MB)"
        )

    if not file_content.lstrip()[:10].startswith(PDF_MAGIC_BYTES):
        raise PDFParseError("Invalid PDF: file does not start with PDF header")


def parse_pdf(file_content: bytes, source: str = "document") -> PDFDocument:
    """Extract per-page text from PDF bytes.

    Pages whose text cannot be extracted are kept with empty text so page
    numbers stay aligned with the original document.

    Args:
        file_content: Raw bytes of the PDF file.
        source: Identifier recorded on the result.

    Raises:
        PDFParseError: If the file is empty, too large, not a PDF or corrupt.
    """
    _check_header(file_content)

    try:
        reader = PdfReader(io.BytesIO(file_content))
        page_count = len(reader.pages)
    except PdfReadError as e:
        raise PDFParseError(f"Corrupt or invalid PDF: {e}") from e
    except Exception as e:
        raise PDFParseError(f"Failed to read PDF: {e}") from e

    if page_count == 0:
        raise PDFParseError("PDF contains no pages")

    pages: list[PDFPage] = []
    for number, page in enumerate(reader.pages, start=1):
        try:
            text = page.extract_text() or ""
        except Exception as e:
            logger.warning(f"Failed to extract text from page {number} of {source}: {e}")
            text = ""
        pages.append(PDFPage(number=number, text=text))

    if not any(page.text.strip() for page in pages):
        logger.warning(f"{source} contains no extractable text (may be scanned/image-based)")

    return PDFDocument(source=source, pages=pages)


def load_pdf(path: str | Path) -> PDFDocument:
    """Read and parse a PDF file from disk.

    Raises:
        PDFParseError: If the file is missing or cannot be parsed.
    """
    pdf_path = Path(path)
    logger.info(f"Loading PDF from path: {pdf_path}")
    try:
        content = pdf_path.read_bytes()
    except OSError as e:
        raise PDFParseError(f"Cannot read {pdf_path}: {e}") from e

    document = parse_pdf(content, source=pdf_path.name)
    logger.info(f"Loaded {pdf_path.name}: {document.page_count} pages")
    return document
