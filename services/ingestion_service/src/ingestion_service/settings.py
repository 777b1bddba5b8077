from __future__ import annotations

from pydantic import Field
from shared.config.base import BaseServiceSettings


class Settings(BaseServiceSettings):
    service_name: str = "ingestion_service"

    max_document_size_mb: int = Field(default=50, ge=1, le=500)
    chunk_size_chars: int = Field(default=1000, ge=100, le=8000)
    chunk_overlap_chars: int = Field(default=200, ge=0, le=2000)
    embedding_tokens_per_chunk: int = Field(default=250, ge=0)
    verify_embedding_dimensions: bool = Field(default=False)
