from __future__ import annotations

import anthropic
import openai
import structlog
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from agent_service.domain.interfaces import CompletionProviderPort
from agent_service.domain.models import Completion
from shared.providers.exceptions import (
    ProviderError,
    ProviderNotConfiguredError,
    ProviderQuotaExceededError,
)
from shared.providers.openai_client import translate_openai_error
from shared.schemas.agents import ModelProvider

logger = structlog.get_logger(__name__)

# Agents store marketing names; the Anthropic API wants dated model ids.
ANTHROPIC_MODEL_IDS = {
    "claude-3.5-sonnet": "claude-3-5-sonnet-latest",
    "claude-3.7-sonnet": "claude-3-7-sonnet-latest",
}
ANTHROPIC_MAX_TEMPERATURE = 1.0


def create_anthropic_client(api_key: str) -> AsyncAnthropic | None:
    if not api_key:
        logger.warning("anthropic.client.not_configured")
        return None
    return AsyncAnthropic(api_key=api_key)


def translate_anthropic_error(exc: anthropic.APIError) -> ProviderError:
    if isinstance(exc, anthropic.RateLimitError):
        return ProviderQuotaExceededError("anthropic", str(exc))
    # Exhausted prepaid credit is reported as a 400 with a billing message.
    if isinstance(exc, anthropic.BadRequestError) and "credit balance" in str(exc).lower():
        return ProviderQuotaExceededError("anthropic", str(exc))
    return ProviderError(f"Anthropic request failed: {exc}", provider="anthropic")


class CompletionClient(CompletionProviderPort):
    """Routes a completion to the agent's provider."""

    def __init__(
        self,
        openai_client: AsyncOpenAI | None,
        anthropic_client: AsyncAnthropic | None,
    ) -> None:
        self._openai = openai_client
        self._anthropic = anthropic_client

    async def complete(
        self,
        provider: ModelProvider,
        model: str,
        system_prompt: str,
        context_block: str,
        user_message: str,
        temperature: float,
        max_tokens: int,
    ) -> Completion:
        if provider == ModelProvider.ANTHROPIC:
            return await self._complete_anthropic(
                model, system_prompt, context_block, user_message, temperature, max_tokens
            )
        return await self._complete_openai(
            model, system_prompt, context_block, user_message, temperature, max_tokens
        )

    async def _complete_openai(
        self,
        model: str,
        system_prompt: str,
        context_block: str,
        user_message: str,
        temperature: float,
        max_tokens: int,
    ) -> Completion:
        if self._openai is None:
            raise ProviderNotConfiguredError("openai")

        messages = [{"role": "system", "content": system_prompt}]
        if context_block:
            messages.append({"role": "system", "content": context_block})
        messages.append({"role": "user", "content": user_message})

        try:
            response = await self._openai.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.OpenAIError as exc:
            logger.error("completion.openai.failed", model=model, error=str(exc))
            raise translate_openai_error(exc) from exc

        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""
        logger.debug(
            "completion.openai.completed",
            model=model,
            prompt_tokens=response.usage.prompt_tokens if response.usage else 0,
            completion_tokens=response.usage.completion_tokens if response.usage else 0,
        )
        return Completion(text=text, model=model)

    async def _complete_anthropic(
        self,
        model: str,
        system_prompt: str,
        context_block: str,
        user_message: str,
        temperature: float,
        max_tokens: int,
    ) -> Completion:
        if self._anthropic is None:
            raise ProviderNotConfiguredError("anthropic")

        system = f"{system_prompt}\n\n{context_block}" if context_block else system_prompt
        model_id = ANTHROPIC_MODEL_IDS.get(model, model)

        try:
            response = await self._anthropic.messages.create(
                model=model_id,
                system=system,
                messages=[{"role": "user", "content": user_message}],
                temperature=min(temperature, ANTHROPIC_MAX_TEMPERATURE),
                max_tokens=max_tokens,
            )
        except anthropic.APIError as exc:
            logger.error("completion.anthropic.failed", model=model_id, error=str(exc))
            raise translate_anthropic_error(exc) from exc

        text = "".join(block.text for block in response.content if block.type == "text")
        logger.debug(
            "completion.anthropic.completed",
            model=model_id,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return Completion(text=text, model=model)
