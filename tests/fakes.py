"""In-memory implementations of the storage and provider ports."""

from __future__ import annotations

import itertools
import math
from datetime import datetime, timezone

from agent_service.domain.interfaces import (
    AgentRepositoryPort,
    ChatRepositoryPort,
    CompletionProviderPort,
    ContentSearchPort,
    ImageProviderPort,
)
from agent_service.domain.models import (
    ChatMessage,
    ChatSession,
    Completion,
    MessageRole,
    SessionSummary,
    TitleState,
)
from ingestion_service.domain.interfaces import TrainingDataRepositoryPort
from shared.metering.interfaces import UsageRepositoryPort
from shared.metering.models import TokenUsageRecord, UsagePeriod
from shared.providers.interfaces import EmbeddingProviderPort
from shared.schemas.agents import AgentProfile, ModelProvider
from shared.schemas.documents import RetrievedChunk, TrainingDocument


def cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class InMemoryUsageRepository(UsageRepositoryPort):
    def __init__(self) -> None:
        self.periods: dict[int, UsagePeriod] = {}
        self.records: list[TokenUsageRecord] = []
        self._ids = itertools.count(1)

    async def get_current_period(self, user_id: str, now: datetime) -> UsagePeriod | None:
        candidates = [p for p in self.periods.values() if p.user_id == user_id and p.period_end > now]
        if not candidates:
            return None
        return max(candidates, key=lambda p: (p.period_start, p.id))

    async def create_period(self, period: UsagePeriod) -> UsagePeriod:
        stored = period.model_copy(update={"id": next(self._ids)})
        self.periods[stored.id] = stored
        return stored

    async def end_period(self, period_id: int, ended_at: datetime) -> None:
        period = self.periods[period_id]
        self.periods[period_id] = period.model_copy(update={"period_end": ended_at})

    async def increment_usage(self, period_id: int, tokens: int, messages: int = 0, avatars: int = 0) -> UsagePeriod:
        period = self.periods[period_id]
        updated = period.model_copy(
            update={
                "tokens_used": period.tokens_used + tokens,
                "message_count": period.message_count + messages,
                "avatars_generated": period.avatars_generated + avatars,
            }
        )
        self.periods[period_id] = updated
        return updated

    async def append_records(self, records: list[TokenUsageRecord]) -> None:
        self.records.extend(records)

    async def delete_records_for_session(self, session_id: int) -> int:
        before = len(self.records)
        self.records = [r for r in self.records if r.session_id != session_id]
        return before - len(self.records)


class InMemoryTrainingDataRepository(TrainingDataRepositoryPort):
    def __init__(self) -> None:
        self.documents: list[TrainingDocument] = []
        self.save_calls = 0
        self._ids = itertools.count(1)

    async def save(self, document: TrainingDocument) -> TrainingDocument:
        self.save_calls += 1
        stored = document.model_copy(update={"id": next(self._ids)})
        self.documents.append(stored)
        return stored

    async def delete_for_agent(self, agent_id: int) -> int:
        before = len(self.documents)
        self.documents = [d for d in self.documents if d.agent_id != agent_id]
        return before - len(self.documents)


class FakeEmbeddings(EmbeddingProviderPort):
    """Bag-of-letters vectors: texts sharing letters point the same way."""

    def __init__(self, dimensions: int = 26, error: Exception | None = None) -> None:
        self.dimensions = dimensions
        self.error = error
        self.calls: list[list[str]] = []

    @property
    def model(self) -> str:
        return "fake-embedding"

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.error is not None:
            raise self.error
        return [self._vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed_texts([text]))[0]

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self.dimensions
        for ch in text.lower():
            if "a" <= ch <= "z":
                vector[(ord(ch) - ord("a")) % self.dimensions] += 1.0
        if not any(vector):
            vector[0] = 1.0
        return vector


class InMemoryContentSearch(ContentSearchPort):
    """Document-level cosine search over saved training documents."""

    def __init__(self, repository: InMemoryTrainingDataRepository, error: Exception | None = None) -> None:
        self._repository = repository
        self.error = error
        self.calls = 0

    async def match_agent_content(
        self,
        query_embedding: list[float],
        similarity_threshold: float,
        max_results: int,
        agent_id: int,
    ) -> list[RetrievedChunk]:
        self.calls += 1
        if self.error is not None:
            raise self.error

        hits: list[RetrievedChunk] = []
        for document in self._repository.documents:
            if document.agent_id != agent_id:
                continue
            similarity = cosine(query_embedding, document.embedding)
            if similarity < similarity_threshold:
                continue
            for index, content in enumerate(document.chunks):
                hits.append(
                    RetrievedChunk(
                        document_id=document.id,
                        chunk_index=index,
                        content=content,
                        similarity=max(-1.0, min(1.0, similarity)),
                    )
                )
        hits.sort(key=lambda c: (-c.similarity, c.document_id, c.chunk_index))
        return hits[:max_results]


class StaticContentSearch(ContentSearchPort):
    def __init__(self, chunks: list[RetrievedChunk]) -> None:
        self.chunks = chunks

    async def match_agent_content(
        self,
        query_embedding: list[float],
        similarity_threshold: float,
        max_results: int,
        agent_id: int,
    ) -> list[RetrievedChunk]:
        return list(self.chunks)


class InMemoryAgentRepository(AgentRepositoryPort):
    def __init__(self, *agents: AgentProfile) -> None:
        self.agents = {a.id: a for a in agents}

    async def get_agent(self, agent_id: int) -> AgentProfile | None:
        return self.agents.get(agent_id)


class InMemoryChatRepository(ChatRepositoryPort):
    def __init__(self, agents: InMemoryAgentRepository) -> None:
        self._agents = agents
        self.sessions: dict[int, ChatSession] = {}
        self.messages: list[ChatMessage] = []
        self._session_ids = itertools.count(1)
        self._message_ids = itertools.count(1)

    async def get_session(self, session_id: int) -> ChatSession | None:
        return self.sessions.get(session_id)

    async def create_session(
        self,
        agent_id: int,
        title: str,
        user_id: str | None = None,
        visitor_id: str | None = None,
    ) -> ChatSession:
        session = ChatSession(
            id=next(self._session_ids),
            agent_id=agent_id,
            user_id=user_id,
            visitor_id=visitor_id,
            title=title,
        )
        self.sessions[session.id] = session
        return session

    async def list_sessions(self, user_id: str) -> list[SessionSummary]:
        summaries = []
        for s in self.sessions.values():
            if s.user_id != user_id:
                continue
            agent = self._agents.agents[s.agent_id]
            summaries.append(
                SessionSummary(
                    id=s.id,
                    title=s.title,
                    title_state=s.title_state,
                    agent_id=s.agent_id,
                    agent_name=agent.name,
                    agent_expertise=agent.topic_expertise,
                    created_at=s.created_at,
                    updated_at=s.updated_at,
                )
            )
        return summaries

    async def add_message(self, session_id: int, role: MessageRole, content: str) -> ChatMessage:
        message = ChatMessage(id=next(self._message_ids), session_id=session_id, role=role, content=content)
        self.messages.append(message)
        session = self.sessions[session_id]
        self.sessions[session_id] = session.model_copy(update={"updated_at": datetime.now(timezone.utc)})
        return message

    async def list_messages(self, session_id: int) -> list[ChatMessage]:
        return [m for m in self.messages if m.session_id == session_id]

    async def update_title(self, session_id: int, title: str, title_state: TitleState) -> ChatSession:
        session = self.sessions[session_id].model_copy(update={"title": title, "title_state": title_state})
        self.sessions[session_id] = session
        return session

    async def delete_session(self, session_id: int) -> None:
        self.sessions.pop(session_id, None)
        self.messages = [m for m in self.messages if m.session_id != session_id]


class FakeCompletionProvider(CompletionProviderPort):
    """Answers chat prompts with ``reply`` and title prompts with ``title``."""

    def __init__(
        self,
        reply: str = "Here is what I know.",
        title: str = "Friendly Greeting",
        error: Exception | None = None,
        title_error: Exception | None = None,
    ) -> None:
        self.reply = reply
        self.title = title
        self.error = error
        self.title_error = title_error
        self.calls: list[dict] = []

    @property
    def chat_calls(self) -> list[dict]:
        return [c for c in self.calls if c["context_block"]]

    @property
    def title_calls(self) -> list[dict]:
        return [c for c in self.calls if not c["context_block"]]

    async def complete(
        self,
        provider: ModelProvider,
        model: str,
        system_prompt: str,
        context_block: str,
        user_message: str,
        temperature: float,
        max_tokens: int,
    ) -> Completion:
        call = {
            "provider": provider,
            "model": model,
            "system_prompt": system_prompt,
            "context_block": context_block,
            "user_message": user_message,
            "temperature": temperature,
        }
        self.calls.append(call)

        if not context_block:
            if self.title_error is not None:
                raise self.title_error
            return Completion(text=self.title, model=model)

        if self.error is not None:
            raise self.error
        return Completion(text=self.reply, model=model)


class FakeImageProvider(ImageProviderPort):
    def __init__(self, url: str = "https://images.example/avatar.png", error: Exception | None = None) -> None:
        self.url = url
        self.error = error
        self.prompts: list[str] = []

    @property
    def model(self) -> str:
        return "dall-e-3"

    async def generate_image(self, prompt: str) -> tuple[str, str | None]:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.url, None
