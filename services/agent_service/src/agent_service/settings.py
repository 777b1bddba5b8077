from __future__ import annotations

from pydantic import Field
from shared.config.base import BaseServiceSettings


class Settings(BaseServiceSettings):
    service_name: str = "agent_service"

    retrieval_max_results: int = Field(default=5, ge=1, le=50)
    retrieval_similarity_threshold: float = Field(default=0.5, ge=-1.0, le=1.0)

    default_chat_model: str = Field(default="gpt-4o-mini")
    max_completion_tokens: int = Field(default=1024, ge=1)
    title_model: str = Field(default="gpt-4o-mini")
    image_model: str = Field(default="dall-e-3")
    image_size: str = Field(default="1024x1024")
