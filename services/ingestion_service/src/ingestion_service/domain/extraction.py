from __future__ import annotations

import io

import structlog
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from ingestion_service.domain.exceptions import (
    ExtractionFailedError,
    UnsupportedFileTypeError,
)
from ingestion_service.domain.interfaces import TextExtractorPort

logger = structlog.get_logger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


def normalize_content_type(content_type: str) -> tuple[str, dict[str, str]]:
    """Split ``text/plain; charset=latin-1`` into media type and parameters."""
    media_type, _, raw_params = (content_type or "").partition(";")
    params: dict[str, str] = {}
    for part in raw_params.split(";"):
        key, sep, value = part.partition("=")
        if sep:
            params[key.strip().lower()] = value.strip().strip('"')
    return media_type.strip().lower(), params


def is_supported_content_type(content_type: str) -> bool:
    media_type, _ = normalize_content_type(content_type)
    return media_type == PDF_CONTENT_TYPE or media_type.startswith("text/")


class TextExtractionService(TextExtractorPort):
    """Extracts plain text from PDF and text/* uploads."""

    def extract_from_pdf(self, filename: str, content: bytes) -> str:
        try:
            reader = PdfReader(io.BytesIO(content))
            if reader.is_encrypted:
                raise ExtractionFailedError(filename, "PDF is encrypted")
            pages = [page.extract_text() or "" for page in reader.pages]
        except (PyPdfError, ValueError, KeyError, TypeError) as exc:
            logger.warning("extraction.pdf.failed", filename=filename, error=str(exc))
            raise ExtractionFailedError(filename, str(exc) or type(exc).__name__) from exc
        return "\n\n".join(pages)

    def extract_from_text(self, content: bytes | str, charset: str = "utf-8") -> str:
        if isinstance(content, str):
            return content
        try:
            return content.decode(charset, errors="replace")
        except LookupError:
            return content.decode("utf-8", errors="replace")

    def extract(self, filename: str, content: bytes | str, content_type: str) -> str:
        media_type, params = normalize_content_type(content_type)

        if media_type == PDF_CONTENT_TYPE:
            if isinstance(content, str):
                raise ExtractionFailedError(filename, "PDF content must be raw bytes")
            return self.extract_from_pdf(filename, content)
        if media_type.startswith("text/"):
            return self.extract_from_text(content, params.get("charset", "utf-8"))

        raise UnsupportedFileTypeError(content_type)
