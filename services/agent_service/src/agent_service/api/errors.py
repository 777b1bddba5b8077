from __future__ import annotations

from fastapi import HTTPException

from agent_service.domain.exceptions import (
    AgentNotAvailableError,
    AgentNotFoundError,
    ChatError,
    SessionNotFoundError,
)
from shared.metering.exceptions import (
    AvatarLimitExceededError,
    MessageTooLargeError,
    MeteringError,
    MissingIdentityError,
    QuotaExceededError,
)
from shared.providers.exceptions import (
    ProviderError,
    ProviderNotConfiguredError,
    ProviderQuotaExceededError,
)
from shared.schemas.base import ErrorResponse

_STATUS_BY_TYPE: list[tuple[type[Exception], int]] = [
    (MissingIdentityError, 401),
    (QuotaExceededError, 402),
    (AvatarLimitExceededError, 402),
    (AgentNotAvailableError, 403),
    (AgentNotFoundError, 404),
    (SessionNotFoundError, 404),
    (MessageTooLargeError, 413),
    (ProviderQuotaExceededError, 503),
    (ProviderNotConfiguredError, 503),
    (ProviderError, 502),
]

DomainError = ChatError | MeteringError | ProviderError


def status_for(exc: Exception) -> int:
    for exc_type, status_code in _STATUS_BY_TYPE:
        if isinstance(exc, exc_type):
            return status_code
    return 500


def to_http_error(exc: DomainError, correlation_id: str) -> HTTPException:
    extra = {"remediation": exc.remediation} if isinstance(exc, ProviderQuotaExceededError) else {}
    body = ErrorResponse.from_exception(exc, correlation_id, **extra)
    return body.to_http_exception(status_for(exc))
