from __future__ import annotations

from typing import Any

from fastapi import HTTPException
from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    service: str
    version: str


class ErrorResponse(BaseModel):
    """Body of every non-2xx response; ``error_code`` is the stable machine-readable key."""

    model_config = ConfigDict(frozen=True)

    error_code: str
    message: str
    correlation_id: str | None = None
    details: dict[str, Any] | None = None

    @classmethod
    def from_exception(cls, exc: Exception, correlation_id: str | None, **details: Any) -> ErrorResponse:
        merged = {**(getattr(exc, "details", None) or {}), **details}
        return cls(
            error_code=getattr(exc, "error_code", "INTERNAL_ERROR"),
            message=str(exc),
            correlation_id=correlation_id,
            details=merged or None,
        )

    def to_http_exception(self, status_code: int) -> HTTPException:
        return HTTPException(status_code=status_code, detail=self.model_dump())
