from __future__ import annotations

import openai
import structlog
from openai import AsyncOpenAI

from agent_service.domain.interfaces import ImageProviderPort
from shared.providers.exceptions import ProviderError, ProviderNotConfiguredError
from shared.providers.openai_client import translate_openai_error

logger = structlog.get_logger(__name__)


class ImageClient(ImageProviderPort):
    def __init__(self, client: AsyncOpenAI | None, model: str, size: str = "1024x1024") -> None:
        self._client = client
        self._model = model
        self._size = size

    @property
    def model(self) -> str:
        return self._model

    async def generate_image(self, prompt: str) -> tuple[str, str | None]:
        if self._client is None:
            raise ProviderNotConfiguredError("openai")

        try:
            response = await self._client.images.generate(
                model=self._model,
                prompt=prompt,
                size=self._size,
                n=1,
            )
        except openai.OpenAIError as exc:
            logger.error("image.generate.failed", model=self._model, error=str(exc))
            raise translate_openai_error(exc) from exc

        if not response.data or not response.data[0].url:
            raise ProviderError("Image provider returned no image URL", provider="openai")

        image = response.data[0]
        logger.info("image.generate.completed", model=self._model)
        return image.url, image.revised_prompt
