from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class DocumentChunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunk_index: int = Field(ge=0)
    content: str
    start: int = Field(ge=0)
    end: int = Field(ge=0)


class IngestionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: int | None
    agent_id: int
    filename: str
    chunk_count: int
    tokens_charged: int
    embedding_model: str


class DocumentUploadResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: int | None
    filename: str
    chunk_count: int
    tokens_charged: int
    remaining_tokens: int | None = None
    correlation_id: str


class DocumentsDeletedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    agent_id: int
    deleted_count: int
