"""Tests for text extraction from uploads."""

import io

import pytest
from pypdf import PdfWriter

from ingestion_service.domain.exceptions import ExtractionFailedError, UnsupportedFileTypeError
from ingestion_service.domain.extraction import (
    TextExtractionService,
    is_supported_content_type,
    normalize_content_type,
)


def _blank_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


class TestContentTypes:
    def test_normalize_splits_parameters(self):
        media_type, params = normalize_content_type("Text/Plain; charset=\"latin-1\"")
        assert media_type == "text/plain"
        assert params == {"charset": "latin-1"}

    @pytest.mark.parametrize(
        "content_type,supported",
        [
            ("application/pdf", True),
            ("text/plain", True),
            ("text/markdown; charset=utf-8", True),
            ("application/vnd.openxmlformats-officedocument.wordprocessingml.document", False),
            ("image/png", False),
            ("", False),
        ],
    )
    def test_supported_types(self, content_type, supported):
        assert is_supported_content_type(content_type) is supported


class TestExtraction:
    def test_plain_text_decodes_with_charset(self):
        extractor = TextExtractionService()
        text = extractor.extract("notes.txt", "café".encode("latin-1"), "text/plain; charset=latin-1")
        assert text == "café"

    def test_invalid_bytes_are_replaced(self):
        extractor = TextExtractionService()
        text = extractor.extract("notes.txt", b"ok \xff", "text/plain")
        assert text.startswith("ok ")

    def test_blank_pdf_extracts_no_text(self):
        extractor = TextExtractionService()
        text = extractor.extract("blank.pdf", _blank_pdf(), "application/pdf")
        assert text.strip() == ""

    def test_corrupt_pdf_raises_extraction_failed(self):
        extractor = TextExtractionService()
        with pytest.raises(ExtractionFailedError) as exc_info:
            extractor.extract("broken.pdf", b"not a pdf", "application/pdf")
        assert exc_info.value.error_code == "EXTRACTION_FAILED"

    def test_unsupported_type_raises(self):
        extractor = TextExtractionService()
        with pytest.raises(UnsupportedFileTypeError):
            extractor.extract("photo.png", b"\x89PNG", "image/png")
