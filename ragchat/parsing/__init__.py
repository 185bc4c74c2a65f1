"""PDF parsing utilities for document ingestion.

Responsibilities:
    - PDF validation and per-page text extraction with pypdf
    - Loading documents from disk for the ingestion pipeline
"""

from ragchat.parsing.pdf_parser import (
    PDFDocument,
    PDFPage,
    PDFParseError,
    load_pdf,
    parse_pdf,
)

__all__ = ["PDFDocument", "PDFPage", "PDFParseError", "load_pdf", "parse_pdf"]
