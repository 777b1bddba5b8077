from __future__ import annotations

PROVIDER_QUOTA_REMEDIATION = (
    "The upstream AI provider account is out of credit or rate limited. "
    "This is not your token balance; please try again later or contact support."
)


class ProviderError(Exception):
    def __init__(self, message: str, error_code: str = "PROVIDER_ERROR", provider: str = "openai") -> None:
        super().__init__(message)
        self.error_code = error_code
        self.provider = provider


class ProviderQuotaExceededError(ProviderError):
    """The upstream provider account (not the user) is out of credit."""

    def __init__(self, provider: str, detail: str = "") -> None:
        super().__init__(
            message=f"Provider '{provider}' quota exceeded: {detail}".rstrip(": "),
            error_code="PROVIDER_QUOTA_EXCEEDED",
            provider=provider,
        )
        self.remediation = PROVIDER_QUOTA_REMEDIATION


class ProviderNotConfiguredError(ProviderError):
    def __init__(self, provider: str) -> None:
        super().__init__(
            message=f"No API credentials configured for provider '{provider}'.",
            error_code="PROVIDER_NOT_CONFIGURED",
            provider=provider,
        )
