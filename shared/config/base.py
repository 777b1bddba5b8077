from __future__ import annotations

from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseServiceSettings(BaseSettings):
    """Settings shared by the ingestion and agent services.

    Read from the environment (and ``.env`` when present). ``database_url`` has
    no default, so a service refuses to start without one. Provider keys may be
    empty; calls to an unconfigured provider fail with PROVIDER_NOT_CONFIGURED.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    service_name: str = Field(..., description="Service identifier bound to every log entry")
    service_port: int = Field(default=8000, ge=1024, le=65535)
    app_version: str = Field(default="0.1.0")
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = Field(default="INFO")
    # Console log rendering instead of JSON lines.
    debug: bool = Field(default=False)
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    database_url: SecretStr = Field(..., description="postgresql+asyncpg DSN")
    db_pool_size: int = Field(default=10, ge=1, le=100)
    db_max_overflow: int = Field(default=20, ge=0, le=200)

    # Azure OpenAI is used when azure_openai_endpoint is set.
    openai_api_key: SecretStr = Field(default=SecretStr(""))
    azure_openai_endpoint: str = Field(default="")
    azure_openai_api_version: str = Field(default="2024-08-01-preview")
    anthropic_api_key: SecretStr = Field(default=SecretStr(""))

    # Both services must agree on these or stored vectors become unsearchable.
    embedding_model: str = Field(default="text-embedding-3-small")
    embedding_dimensions: int = Field(default=1536, ge=1)

    @field_validator("log_level")
    @classmethod
    def _normalise_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level
