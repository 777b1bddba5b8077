from __future__ import annotations

from typing import Any

import structlog

from agent_service.domain.exceptions import SessionNotFoundError
from agent_service.domain.interfaces import ChatRepositoryPort, ImageProviderPort
from agent_service.domain.models import (
    AvatarResult,
    ChatMessage,
    ChatSession,
    ChatTurnResult,
    SessionSummary,
    TitleState,
)
from agent_service.graph.state import ChatTurnState, initial_state
from shared.metering import pricing
from shared.metering.exceptions import MissingIdentityError
from shared.metering.service import MeteringService

logger = structlog.get_logger(__name__)

AVATAR_PROMPT_TEMPLATE = (
    "Professional avatar for an AI agent. {prompt}. "
    "Centered, high quality, detailed, modern style."
)


class ChatService:
    """Runs one chat turn through the compiled turn graph.

    Quota, identity and agent errors raised while preparing the turn propagate
    unchanged; retrieval and completion failures degrade inside the graph.
    """

    def __init__(self, graph: Any) -> None:
        self._graph = graph

    async def handle_chat_turn(
        self,
        agent_id: int,
        user_id: str | None,
        session_id: int | None,
        message: str,
        visitor_id: str | None = None,
        correlation_id: str = "",
    ) -> ChatTurnResult:
        state = initial_state(
            correlation_id=correlation_id,
            agent_id=agent_id,
            message=message,
            user_id=user_id,
            visitor_id=visitor_id,
            session_id=session_id,
        )
        final: ChatTurnState = await self._graph.ainvoke(state)

        retrieval = final["retrieval"]
        context_chunk_count = len(retrieval.value) if retrieval is not None and retrieval.ok else 0

        logger.info(
            "chat.turn.completed",
            agent_id=agent_id,
            session_id=final["session"].id,
            reply_source=final["reply_source"],
            tokens_charged=final["tokens_charged"],
            context_chunk_count=context_chunk_count,
        )

        return ChatTurnResult(
            session_id=final["session"].id,
            assistant_reply=final["reply"],
            tokens_charged=final["tokens_charged"],
            remaining_tokens=final["remaining_tokens"],
            reply_source=final["reply_source"],
            context_chunk_count=context_chunk_count,
            user_message_id=final["user_message"].id,
            assistant_message_id=final["assistant_message"].id,
            session_title=final["session"].title,
        )


class SessionService:
    def __init__(self, chats: ChatRepositoryPort, metering: MeteringService) -> None:
        self._chats = chats
        self._metering = metering

    async def list_sessions(self, user_id: str | None) -> list[SessionSummary]:
        if not user_id:
            raise MissingIdentityError()
        sessions = await self._chats.list_sessions(user_id)
        return sorted(sessions, key=lambda s: (s.updated_at, s.id), reverse=True)

    async def list_messages(self, user_id: str | None, session_id: int) -> list[ChatMessage]:
        await self._owned_session(user_id, session_id)
        messages = await self._chats.list_messages(session_id)
        return sorted(messages, key=lambda m: (m.created_at, m.id))

    async def rename_session(self, user_id: str | None, session_id: int, title: str) -> ChatSession:
        await self._owned_session(user_id, session_id)
        # A manual title counts as generated so the turn graph never overwrites it.
        session = await self._chats.update_title(session_id, title.strip(), TitleState.GENERATED)
        logger.info("chat.session.renamed", session_id=session_id)
        return session

    async def delete_session(self, user_id: str | None, session_id: int) -> None:
        await self._owned_session(user_id, session_id)
        removed = await self._metering.delete_session_records(session_id)
        await self._chats.delete_session(session_id)
        logger.info("chat.session.deleted", session_id=session_id, usage_records_removed=removed)

    async def _owned_session(self, user_id: str | None, session_id: int) -> ChatSession:
        if not user_id:
            raise MissingIdentityError()
        session = await self._chats.get_session(session_id)
        if session is None or session.user_id != user_id:
            raise SessionNotFoundError(session_id)
        return session


class AvatarService:
    def __init__(self, images: ImageProviderPort, metering: MeteringService) -> None:
        self._images = images
        self._metering = metering

    async def generate_avatar(
        self,
        user_id: str | None,
        prompt: str,
        agent_id: int | None = None,
    ) -> AvatarResult:
        await self._metering.check_avatar_quota(user_id)

        image_url, revised_prompt = await self._images.generate_image(
            AVATAR_PROMPT_TEMPLATE.format(prompt=prompt.strip().rstrip("."))
        )
        period = await self._metering.record_avatar_generation(
            user_id=user_id,
            model=self._images.model,
            agent_id=agent_id,
        )

        return AvatarResult(
            image_url=image_url,
            revised_prompt=revised_prompt,
            tokens_charged=pricing.AVATAR_GENERATION_COST,
            avatars_remaining=max(0, period.avatars_limit - period.avatars_generated),
        )
