from __future__ import annotations

from typing import Any

UPGRADE_HINT = "Upgrade to the Pro plan or wait for your monthly usage to reset."


class MeteringError(Exception):
    def __init__(
        self,
        message: str,
        error_code: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class MissingIdentityError(MeteringError):
    def __init__(self) -> None:
        super().__init__(
            message="An authenticated user id is required for metered operations.",
            error_code="MISSING_IDENTITY",
        )


class QuotaExceededError(MeteringError):
    def __init__(self, tokens_used: int, tokens_limit: int, plan_type: str, reset_date: str) -> None:
        super().__init__(
            message=f"Monthly token limit reached ({tokens_used}/{tokens_limit}).",
            error_code="QUOTA_EXCEEDED",
            details={
                "tokens_used": tokens_used,
                "tokens_limit": tokens_limit,
                "remaining_tokens": max(0, tokens_limit - tokens_used),
                "plan_type": plan_type,
                "reset_date": reset_date,
                "remediation": UPGRADE_HINT,
            },
        )


class MessageTooLargeError(MeteringError):
    def __init__(self, estimated_tokens: int, tokens_used: int, tokens_limit: int, plan_type: str) -> None:
        super().__init__(
            message=(
                f"Message needs ~{estimated_tokens} tokens but only "
                f"{max(0, tokens_limit - tokens_used)} remain this period."
            ),
            error_code="MESSAGE_TOO_LARGE",
            details={
                "estimated_tokens": estimated_tokens,
                "tokens_used": tokens_used,
                "tokens_limit": tokens_limit,
                "remaining_tokens": max(0, tokens_limit - tokens_used),
                "plan_type": plan_type,
                "remediation": "Send a shorter message or upgrade to the Pro plan.",
            },
        )


class AvatarLimitExceededError(MeteringError):
    def __init__(self, avatars_generated: int, avatars_limit: int, plan_type: str) -> None:
        super().__init__(
            message=f"Monthly avatar generation limit reached ({avatars_generated}/{avatars_limit}).",
            error_code="AVATAR_LIMIT_EXCEEDED",
            details={
                "avatars_generated": avatars_generated,
                "avatars_limit": avatars_limit,
                "plan_type": plan_type,
                "remediation": UPGRADE_HINT,
            },
        )


class UsageStorageError(MeteringError):
    def __init__(self, detail: str) -> None:
        super().__init__(
            message=f"Usage storage operation failed: {detail}",
            error_code="STORAGE_ERROR",
        )
