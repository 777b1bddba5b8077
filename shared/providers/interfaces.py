from __future__ import annotations

from abc import ABC, abstractmethod


class EmbeddingProviderPort(ABC):
    @property
    @abstractmethod
    def model(self) -> str:
        """Identifier of the embedding model in use."""

    @abstractmethod
    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts in a single provider request."""

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Embed one text."""
