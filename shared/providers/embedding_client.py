from __future__ import annotations

import openai
import structlog
from openai import AsyncOpenAI

from shared.providers.exceptions import ProviderNotConfiguredError
from shared.providers.interfaces import EmbeddingProviderPort
from shared.providers.openai_client import translate_openai_error

logger = structlog.get_logger(__name__)


class EmbeddingClient(EmbeddingProviderPort):
    def __init__(
        self,
        client: AsyncOpenAI | None,
        model: str,
        dimensions: int,
    ) -> None:
        self._client = client
        self._model = model
        self._dimensions = dimensions

    @property
    def model(self) -> str:
        return self._model

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        if self._client is None:
            raise ProviderNotConfiguredError("openai")

        kwargs: dict[str, object] = {"input": texts, "model": self._model}
        if self._model.startswith("text-embedding-3"):
            kwargs["dimensions"] = self._dimensions

        try:
            response = await self._client.embeddings.create(**kwargs)
        except openai.OpenAIError as exc:
            logger.error(
                "embedding.batch.failed",
                count=len(texts),
                model=self._model,
                error=str(exc),
            )
            raise translate_openai_error(exc) from exc

        embeddings = [item.embedding for item in response.data]

        logger.debug(
            "embedding.batch.completed",
            count=len(texts),
            model=self._model,
            total_tokens=response.usage.total_tokens if response.usage else 0,
        )
        return embeddings

    async def embed_single(self, text: str) -> list[float]:
        results = await self.embed_texts([text])
        return results[0]

    async def validate_dimensions(self) -> bool:
        """Check the configured model still yields the stored vector size."""
        vector = await self.embed_single("dimension probe")
        return len(vector) == self._dimensions
