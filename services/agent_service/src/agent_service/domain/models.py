from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from shared.metering.models import PlanType

T = TypeVar("T")


class TitleState(StrEnum):
    DEFAULT = "default"
    GENERATED = "generated"


class MessageRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class ReplySource(StrEnum):
    MODEL = "model"
    FALLBACK = "fallback"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatSession(BaseModel):
    """A conversation between one user (or guest visitor) and one agent."""

    model_config = ConfigDict(frozen=True)

    id: int
    agent_id: int
    user_id: str | None = None
    visitor_id: str | None = None
    title: str
    title_state: TitleState = TitleState.DEFAULT
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def belongs_to(self, agent_id: int, user_id: str | None, visitor_id: str | None) -> bool:
        if self.agent_id != agent_id:
            return False
        if user_id:
            return self.user_id == user_id
        return self.user_id is None and visitor_id is not None and self.visitor_id == visitor_id


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    session_id: int
    role: MessageRole
    content: str
    created_at: datetime = Field(default_factory=_utcnow)


class SessionSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    title_state: TitleState
    agent_id: int
    agent_name: str
    agent_expertise: str | None = None
    created_at: datetime
    updated_at: datetime


class Completion(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    model: str


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Outcome of one fallible pipeline stage: a value or the error that replaced it."""

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "StageResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Exception) -> "StageResult[T]":
        return cls(error=error)


class ChatTurnResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: int
    assistant_reply: str
    tokens_charged: int
    remaining_tokens: int | None
    reply_source: ReplySource
    context_chunk_count: int
    user_message_id: int
    assistant_message_id: int
    session_title: str


class ChatRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    agent_id: int
    message: str = Field(min_length=1, max_length=32_000)
    session_id: int | None = None


class ChatResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: int
    correlation_id: str
    reply: str
    reply_source: ReplySource
    tokens_charged: int
    remaining_tokens: int | None
    context_chunk_count: int
    session_title: str


class RenameSessionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1, max_length=200)


class AvatarRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt: str = Field(min_length=1, max_length=1000)
    agent_id: int | None = None


class AvatarResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    image_url: str
    revised_prompt: str | None = None
    tokens_charged: int
    avatars_remaining: int


class PlanChangeRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    plan_type: PlanType
