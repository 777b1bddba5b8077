from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TrainingDocument(BaseModel):
    """One persisted document row.

    Only the first chunk's embedding is stored as the searchable document
    embedding; the rest are kept in ``metadata["chunk_embeddings"]``.
    """

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    agent_id: int
    file_name: str
    file_type: str
    content: str
    chunks: list[str]
    embedding: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def chunk_embeddings(self) -> list[list[float]]:
        return [self.embedding, *self.metadata.get("chunk_embeddings", [])]


class RetrievedChunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: int
    chunk_index: int
    content: str
    similarity: float = Field(ge=-1.0, le=1.0)
