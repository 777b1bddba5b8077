from __future__ import annotations

from typing import Any


class IngestionError(Exception):
    def __init__(self, message: str, error_code: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class UnsupportedFileTypeError(IngestionError):
    def __init__(self, content_type: str) -> None:
        super().__init__(
            message=f"Content type '{content_type}' is not supported. Only PDF and text files are allowed.",
            error_code="UNSUPPORTED_FILE_TYPE",
            details={"content_type": content_type},
        )


class ExtractionFailedError(IngestionError):
    def __init__(self, filename: str, detail: str) -> None:
        super().__init__(
            message=f"Could not extract text from '{filename}': {detail}",
            error_code="EXTRACTION_FAILED",
        )


class EmptyDocumentError(IngestionError):
    def __init__(self, filename: str) -> None:
        super().__init__(
            message=f"Document '{filename}' contains no extractable text.",
            error_code="EMPTY_DOCUMENT",
        )


class DocumentTooLargeError(IngestionError):
    def __init__(self, size_bytes: int, limit_bytes: int) -> None:
        super().__init__(
            message=f"Document is {size_bytes} bytes; the limit is {limit_bytes} bytes.",
            error_code="DOCUMENT_TOO_LARGE",
            details={"size_bytes": size_bytes, "limit_bytes": limit_bytes},
        )


class StorageError(IngestionError):
    def __init__(self, detail: str) -> None:
        super().__init__(
            message=f"Storage operation failed: {detail}",
            error_code="STORAGE_ERROR",
        )
