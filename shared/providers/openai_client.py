from __future__ import annotations

import openai
import structlog
from openai import AsyncAzureOpenAI, AsyncOpenAI

from shared.config.base import BaseServiceSettings
from shared.providers.exceptions import ProviderError, ProviderQuotaExceededError

logger = structlog.get_logger(__name__)


def create_openai_client(settings: BaseServiceSettings) -> AsyncOpenAI | None:
    """Build the OpenAI client, or None when no credentials are configured."""
    api_key = settings.openai_api_key.get_secret_value()
    if not api_key:
        logger.warning("openai.client.not_configured")
        return None

    if settings.azure_openai_endpoint:
        return AsyncAzureOpenAI(
            azure_endpoint=settings.azure_openai_endpoint,
            api_key=api_key,
            api_version=settings.azure_openai_api_version,
        )
    return AsyncOpenAI(api_key=api_key)


def translate_openai_error(exc: openai.OpenAIError) -> ProviderError:
    """Map SDK errors onto the provider error taxonomy.

    Rate limits and exhausted billing (``insufficient_quota`` arrives as a 429,
    some gateways answer 402) both mean the platform account is out of credit.
    """
    if isinstance(exc, openai.RateLimitError):
        return ProviderQuotaExceededError("openai", str(exc))
    if isinstance(exc, openai.APIStatusError) and exc.status_code == 402:
        return ProviderQuotaExceededError("openai", str(exc))
    return ProviderError(f"OpenAI request failed: {exc}", provider="openai")
