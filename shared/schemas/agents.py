from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ModelProvider(StrEnum):
    OPENAI = "OpenAI"
    ANTHROPIC = "Anthropic"


class AgentVisibility(StrEnum):
    PUBLIC = "public"
    PRIVATE = "private"


class AgentProfile(BaseModel):
    """Read-only view of an Agent; the agents table is owned elsewhere."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    topic_expertise: str | None = None
    system_prompt: str | None = None
    model_provider: ModelProvider = ModelProvider.OPENAI
    model_version: str | None = None
    temperature: int | None = Field(default=None, ge=0, le=100)
    visibility: AgentVisibility = AgentVisibility.PUBLIC
    creator_id: str | None = None

    @property
    def is_public(self) -> bool:
        return self.visibility == AgentVisibility.PUBLIC
