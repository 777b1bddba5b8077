from __future__ import annotations

from abc import ABC, abstractmethod

from shared.schemas.documents import TrainingDocument


class TrainingDataRepositoryPort(ABC):
    @abstractmethod
    async def save(self, document: TrainingDocument) -> TrainingDocument:
        """Persist one document row in a single write. Returns it with its id."""

    @abstractmethod
    async def delete_for_agent(self, agent_id: int) -> int:
        """Remove every document owned by an agent. Returns the row count."""


class TextExtractorPort(ABC):
    @abstractmethod
    def extract(self, filename: str, content: bytes | str, content_type: str) -> str:
        """Return plain text for a supported content type."""
