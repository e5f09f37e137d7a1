"""Plain-text extraction from uploaded CV documents (PDF, DOCX/DOC, TXT)."""

from __future__ import annotations

import logging
import re
from io import BytesIO

from cv_screener.errors import (
    CorruptDocumentError,
    EmptyDocumentError,
    NoTextContentError,
    UnsupportedFormatError,
)
from cv_screener.models.job import DocumentFormat

logger = logging.getLogger(__name__)

# BOM, zero-width spaces/joiners, soft hyphen, word joiner
_ARTIFACTS = re.compile(r"[\u200b\u200c\u200d\u00ad\u2060\ufeff]")


def extract_text(data: bytes, fmt: DocumentFormat) -> str:
    """Extract plain text from a document blob of the given format.

    Raises:
        UnsupportedFormatError: ``fmt`` is not a known DocumentFormat.
        EmptyDocumentError: the blob has no bytes.
        CorruptDocumentError: the blob cannot be parsed as ``fmt``.
        NoTextContentError: parsing worked but produced only whitespace
            (e.g. a scanned, image-only PDF).
    """
    if not isinstance(fmt, DocumentFormat):
        raise UnsupportedFormatError(fmt)
    if not data:
        raise EmptyDocumentError()

    logger.info("Extracting text from %s document (%d bytes)", fmt.value, len(data))
    if fmt is DocumentFormat.PDF:
        raw = _extract_pdf(data)
    elif fmt in (DocumentFormat.DOCX, DocumentFormat.DOC):
        raw = _extract_docx(data)
    else:
        raw = _extract_plain_text(data)

    text = clean_text(raw)
    if not text:
        raise NoTextContentError(_NO_TEXT_MESSAGES[fmt])

    logger.info("Extracted %d characters from %s document", len(text), fmt.value)
    return text


_NO_TEXT_MESSAGES = {
    DocumentFormat.PDF: "PDF contains no extractable text. It may be a scanned image or empty.",
    DocumentFormat.DOCX: "Document contains no extractable text",
    DocumentFormat.DOC: "Document contains no extractable text",
    DocumentFormat.PLAIN_TEXT: "Text file is empty",
}


def clean_text(text: str) -> str:
    """Remove invisible unicode artifacts and excess blank lines."""
    text = _ARTIFACTS.sub("", text)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = [line.rstrip() for line in text.split("\n")]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _extract_pdf(data: bytes) -> str:
    import fitz  # pymupdf

    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as exc:
        raise CorruptDocumentError(f"Invalid or corrupted PDF file: {exc}") from exc

    try:
        if doc.needs_pass:
            raise CorruptDocumentError("PDF is password-protected")
        return "\n".join(page.get_text() for page in doc)
    except CorruptDocumentError:
        raise
    except Exception as exc:
        raise CorruptDocumentError(f"Failed to extract text from PDF: {exc}") from exc
    finally:
        doc.close()


def _extract_docx(data: bytes) -> str:
    from docx import Document

    try:
        doc = Document(BytesIO(data))
    except Exception as exc:
        # Legacy binary .doc files are not OOXML packages and land here too.
        raise CorruptDocumentError(
            f"Failed to extract text from document: {exc}"
        ) from exc

    parts = [p.text for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                parts.append(" | ".join(cells))
    return "\n".join(parts)


def _extract_plain_text(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise CorruptDocumentError(
            f"Failed to read text file: not valid UTF-8 ({exc.reason})"
        ) from exc
