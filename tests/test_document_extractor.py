"""Tests for document text extraction."""

import pytest

from cv_screener.errors import (
    CorruptDocumentError,
    EmptyDocumentError,
    ExtractionError,
    NoTextContentError,
    UnsupportedFormatError,
)
from cv_screener.models.job import DocumentFormat
from cv_screener.parsers.document_extractor import clean_text, extract_text


class TestPlainText:
    def test_reads_utf8(self):
        text = extract_text("Jöhn Døe\nIngeniør".encode("utf-8"), DocumentFormat.PLAIN_TEXT)
        assert text == "Jöhn Døe\nIngeniør"

    def test_strips_bom(self):
        text = extract_text("\ufeffHello CV".encode("utf-8"), DocumentFormat.PLAIN_TEXT)
        assert text == "Hello CV"

    def test_whitespace_only_is_no_text(self):
        with pytest.raises(NoTextContentError, match="empty"):
            extract_text(b"   \n  ", DocumentFormat.PLAIN_TEXT)

    def test_invalid_utf8_is_corrupt(self):
        with pytest.raises(CorruptDocumentError, match="UTF-8"):
            extract_text(b"\xff\xfe\x00bad", DocumentFormat.PLAIN_TEXT)


class TestPdf:
    def test_extracts_text(self, make_pdf, sample_cv_lines):
        text = extract_text(make_pdf(sample_cv_lines), DocumentFormat.PDF)
        assert "John Doe" in text
        assert "Acme Corp" in text

    def test_image_only_pdf_has_no_text(self, make_pdf):
        with pytest.raises(NoTextContentError, match="scanned image"):
            extract_text(make_pdf([]), DocumentFormat.PDF)

    def test_garbage_is_extraction_error(self):
        with pytest.raises(ExtractionError):
            extract_text(b"definitely not a pdf document", DocumentFormat.PDF)


class TestWordDocuments:
    def test_extracts_docx_paragraphs(self, make_docx, sample_cv_lines):
        text = extract_text(make_docx(sample_cv_lines), DocumentFormat.DOCX)
        assert "Software Engineer" in text
        assert "Kubernetes" in text

    def test_extracts_docx_tables(self):
        from io import BytesIO

        from docx import Document

        doc = Document()
        table = doc.add_table(rows=1, cols=2)
        table.rows[0].cells[0].text = "Skills"
        table.rows[0].cells[1].text = "Python"
        buffer = BytesIO()
        doc.save(buffer)

        assert "Skills | Python" in extract_text(buffer.getvalue(), DocumentFormat.DOCX)

    def test_blank_docx_has_no_text(self, make_docx):
        with pytest.raises(NoTextContentError):
            extract_text(make_docx(["", "   "]), DocumentFormat.DOCX)

    def test_corrupt_docx(self):
        with pytest.raises(CorruptDocumentError):
            extract_text(b"PK\x03\x04 broken zip", DocumentFormat.DOCX)

    def test_legacy_binary_doc_is_corrupt(self):
        ole_header = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 512
        with pytest.raises(CorruptDocumentError):
            extract_text(ole_header, DocumentFormat.DOC)


class TestValidation:
    def test_empty_blob(self):
        with pytest.raises(EmptyDocumentError):
            extract_text(b"", DocumentFormat.PDF)

    def test_unsupported_format(self):
        with pytest.raises(UnsupportedFormatError):
            extract_text(b"data", "image/png")


class TestCleanText:
    def test_removes_unicode_artifacts(self):
        assert clean_text("Hello\u200bWorld\u00ad!") == "HelloWorld!"

    def test_collapses_blank_lines_and_trailing_space(self):
        assert clean_text("a  \r\n\r\n\r\n\r\nb") == "a\n\nb"
