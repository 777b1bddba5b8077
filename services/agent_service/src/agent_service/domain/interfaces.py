from __future__ import annotations

from abc import ABC, abstractmethod

from agent_service.domain.models import ChatMessage, ChatSession, Completion, MessageRole, SessionSummary, TitleState
from shared.schemas.agents import AgentProfile, ModelProvider
from shared.schemas.documents import RetrievedChunk


class AgentRepositoryPort(ABC):
    @abstractmethod
    async def get_agent(self, agent_id: int) -> AgentProfile | None: ...


class ContentSearchPort(ABC):
    @abstractmethod
    async def match_agent_content(
        self,
        query_embedding: list[float],
        similarity_threshold: float,
        max_results: int,
        agent_id: int,
    ) -> list[RetrievedChunk]: ...


class ChatRepositoryPort(ABC):
    @abstractmethod
    async def get_session(self, session_id: int) -> ChatSession | None: ...

    @abstractmethod
    async def create_session(
        self,
        agent_id: int,
        title: str,
        user_id: str | None = None,
        visitor_id: str | None = None,
    ) -> ChatSession: ...

    @abstractmethod
    async def list_sessions(self, user_id: str) -> list[SessionSummary]: ...

    @abstractmethod
    async def add_message(self, session_id: int, role: MessageRole, content: str) -> ChatMessage: ...

    @abstractmethod
    async def list_messages(self, session_id: int) -> list[ChatMessage]: ...

    @abstractmethod
    async def update_title(self, session_id: int, title: str, title_state: TitleState) -> ChatSession: ...

    @abstractmethod
    async def delete_session(self, session_id: int) -> None:
        """Delete the session and its messages."""


class CompletionProviderPort(ABC):
    @abstractmethod
    async def complete(
        self,
        provider: ModelProvider,
        model: str,
        system_prompt: str,
        context_block: str,
        user_message: str,
        temperature: float,
        max_tokens: int,
    ) -> Completion: ...


class ImageProviderPort(ABC):
    @abstractmethod
    async def generate_image(self, prompt: str) -> tuple[str, str | None]:
        """Return the image URL and the provider's revised prompt, if any."""

    @property
    @abstractmethod
    def model(self) -> str: ...
