from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PlanType(StrEnum):
    FREE = "free"
    PRO = "pro"


class OperationType(StrEnum):
    CHAT = "chat"
    AVATAR_GENERATION = "avatar_generation"
    DOCUMENT_EMBEDDING = "document_embedding"


class UsagePeriod(BaseModel):
    """Monthly quota window for one user."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    user_id: str
    period_start: datetime
    period_end: datetime
    tokens_used: int = Field(default=0, ge=0)
    tokens_limit: int = Field(ge=0)
    message_count: int = Field(default=0, ge=0)
    plan_type: PlanType = PlanType.FREE
    avatars_generated: int = Field(default=0, ge=0)
    avatars_limit: int = Field(ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _check_bounds(self) -> "UsagePeriod":
        if self.period_end <= self.period_start:
            raise ValueError("period_end must be after period_start")
        return self

    @property
    def remaining_tokens(self) -> int:
        return max(0, self.tokens_limit - self.tokens_used)

    def is_current(self, now: datetime) -> bool:
        return self.period_end > now


class TokenUsageRecord(BaseModel):
    """Append-only audit line for one metered operation."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    tokens_used: int = Field(ge=0)
    model_used: str
    operation_type: OperationType
    session_id: int | None = None
    agent_id: int | None = None
    message_id: int | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class UsageSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    period: UsagePeriod
    remaining_tokens: int
    usage_percentage: float
    has_exceeded: bool
    formatted_usage: str
    formatted_limit: str
    formatted_remaining: str
    reset_date: datetime
    avatars_remaining: int
