from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker

from agent_service.domain.exceptions import SessionNotFoundError, StorageError
from agent_service.domain.interfaces import AgentRepositoryPort, ChatRepositoryPort
from agent_service.domain.models import (
    ChatMessage,
    ChatSession,
    MessageRole,
    SessionSummary,
    TitleState,
)
from shared.schemas.agents import AgentProfile

logger = structlog.get_logger(__name__)

_SESSION_COLUMNS = "id, agent_id, user_id, visitor_id, title, title_state, created_at, updated_at"


class _PostgresRepository:
    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )

    async def _fetch_all(self, sql: Any, params: Mapping[str, Any], commit: bool = False) -> list[Mapping[str, Any]]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(sql, params)
                rows = list(result.mappings().all()) if result.returns_rows else []
                if commit:
                    await session.commit()
        except SQLAlchemyError as exc:
            logger.error("repository.chat.query_failed", error=str(exc))
            raise StorageError(str(exc)) from exc
        return rows

    async def _fetch_one(self, sql: Any, params: Mapping[str, Any], commit: bool = False) -> Mapping[str, Any] | None:
        rows = await self._fetch_all(sql, params, commit=commit)
        return rows[0] if rows else None


class PostgresAgentRepository(_PostgresRepository, AgentRepositoryPort):
    async def get_agent(self, agent_id: int) -> AgentProfile | None:
        sql = text("""
            SELECT id, name, topic_expertise, system_prompt, model_provider,
                   model_version, temperature, visibility, creator_id
            FROM agents
            WHERE id = :id
        """)
        row = await self._fetch_one(sql, {"id": agent_id})
        return AgentProfile(**row) if row else None


class PostgresChatRepository(_PostgresRepository, ChatRepositoryPort):
    """chat_sessions / chat_messages tables."""

    async def get_session(self, session_id: int) -> ChatSession | None:
        sql = text(f"SELECT {_SESSION_COLUMNS} FROM chat_sessions WHERE id = :id")
        row = await self._fetch_one(sql, {"id": session_id})
        return ChatSession(**row) if row else None

    async def create_session(
        self,
        agent_id: int,
        title: str,
        user_id: str | None = None,
        visitor_id: str | None = None,
    ) -> ChatSession:
        sql = text(f"""
            INSERT INTO chat_sessions (agent_id, user_id, visitor_id, title, title_state)
            VALUES (:agent_id, :user_id, :visitor_id, :title, :title_state)
            RETURNING {_SESSION_COLUMNS}
        """)
        row = await self._fetch_one(
            sql,
            {
                "agent_id": agent_id,
                "user_id": user_id,
                "visitor_id": visitor_id,
                "title": title,
                "title_state": TitleState.DEFAULT.value,
            },
            commit=True,
        )
        return ChatSession(**row)

    async def list_sessions(self, user_id: str) -> list[SessionSummary]:
        sql = text("""
            SELECT s.id, s.title, s.title_state, s.agent_id, s.created_at, s.updated_at,
                   a.name AS agent_name, a.topic_expertise AS agent_expertise
            FROM chat_sessions s
            JOIN agents a ON a.id = s.agent_id
            WHERE s.user_id = :user_id
            ORDER BY s.updated_at DESC
        """)
        rows = await self._fetch_all(sql, {"user_id": user_id})
        return [SessionSummary(**row) for row in rows]

    async def add_message(self, session_id: int, role: MessageRole, content: str) -> ChatMessage:
        sql = text("""
            WITH inserted AS (
                INSERT INTO chat_messages (session_id, role, content)
                VALUES (:session_id, :role, :content)
                RETURNING id, session_id, role, content, created_at
            ), touched AS (
                UPDATE chat_sessions SET updated_at = now() WHERE id = :session_id
            )
            SELECT * FROM inserted
        """)
        row = await self._fetch_one(
            sql,
            {"session_id": session_id, "role": role.value, "content": content},
            commit=True,
        )
        return ChatMessage(**row)

    async def list_messages(self, session_id: int) -> list[ChatMessage]:
        sql = text("""
            SELECT id, session_id, role, content, created_at
            FROM chat_messages
            WHERE session_id = :session_id
            ORDER BY created_at ASC, id ASC
        """)
        rows = await self._fetch_all(sql, {"session_id": session_id})
        return [ChatMessage(**row) for row in rows]

    async def update_title(self, session_id: int, title: str, title_state: TitleState) -> ChatSession:
        sql = text(f"""
            UPDATE chat_sessions
            SET title = :title, title_state = :title_state, updated_at = now()
            WHERE id = :id
            RETURNING {_SESSION_COLUMNS}
        """)
        row = await self._fetch_one(
            sql,
            {"id": session_id, "title": title, "title_state": title_state.value},
            commit=True,
        )
        if row is None:
            raise SessionNotFoundError(session_id)
        return ChatSession(**row)

    async def delete_session(self, session_id: int) -> None:
        try:
            async with self._session_factory() as session:
                await session.execute(
                    text("DELETE FROM chat_messages WHERE session_id = :id"), {"id": session_id}
                )
                await session.execute(
                    text("DELETE FROM chat_sessions WHERE id = :id"), {"id": session_id}
                )
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("repository.chat.delete_failed", session_id=session_id, error=str(exc))
            raise StorageError(str(exc)) from exc
        logger.info("repository.chat.session_deleted", session_id=session_id)
