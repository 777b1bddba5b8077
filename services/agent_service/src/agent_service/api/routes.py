from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Header, Response

from agent_service.api.dependencies import (
    get_avatar_service,
    get_chat_service,
    get_correlation_id,
    get_metering_service,
    get_session_service,
    get_settings,
)
from agent_service.api.errors import to_http_error
from agent_service.domain.exceptions import ChatError
from agent_service.domain.models import (
    AvatarRequest,
    AvatarResult,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ChatSession,
    ChatTurnResult,
    PlanChangeRequest,
    RenameSessionRequest,
    SessionSummary,
)
from agent_service.domain.services import AvatarService, ChatService, SessionService
from agent_service.settings import Settings
from shared.metering.exceptions import MeteringError
from shared.metering.models import UsagePeriod, UsageSummary
from shared.metering.service import MeteringService
from shared.providers.exceptions import ProviderError
from shared.schemas.base import HealthResponse

logger = structlog.get_logger(__name__)
router = APIRouter()


def _chat_response(result: ChatTurnResult, correlation_id: str) -> ChatResponse:
    return ChatResponse(
        session_id=result.session_id,
        correlation_id=correlation_id,
        reply=result.assistant_reply,
        reply_source=result.reply_source,
        tokens_charged=result.tokens_charged,
        remaining_tokens=result.remaining_tokens,
        context_chunk_count=result.context_chunk_count,
        session_title=result.session_title,
    )


@router.get("/health", response_model=HealthResponse, tags=["ops"])
async def health(settings: Settings = Depends(get_settings)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        service=settings.service_name,
        version=settings.app_version,
    )


@router.post("/chat", response_model=ChatResponse, tags=["chat"])
async def chat(
    body: ChatRequest,
    x_user_id: str | None = Header(default=None),
    correlation_id: str = Depends(get_correlation_id),
    service: ChatService = Depends(get_chat_service),
) -> ChatResponse:
    log = logger.bind(correlation_id=correlation_id, agent_id=body.agent_id)
    log.info("chat.request.received", message_length=len(body.message), session_id=body.session_id)

    try:
        result = await service.handle_chat_turn(
            agent_id=body.agent_id,
            user_id=x_user_id,
            session_id=body.session_id,
            message=body.message,
            correlation_id=correlation_id,
        )
    except (ChatError, MeteringError, ProviderError) as exc:
        log.info("chat.request.rejected", error_code=exc.error_code)
        raise to_http_error(exc, correlation_id) from exc

    return _chat_response(result, correlation_id)


@router.post("/chat/embed", response_model=ChatResponse, tags=["chat"])
async def chat_embed(
    body: ChatRequest,
    x_visitor_id: str | None = Header(default=None),
    correlation_id: str = Depends(get_correlation_id),
    service: ChatService = Depends(get_chat_service),
) -> ChatResponse:
    """Guest chat from the embeddable widget. Not metered."""
    try:
        result = await service.handle_chat_turn(
            agent_id=body.agent_id,
            user_id=None,
            session_id=body.session_id,
            message=body.message,
            visitor_id=x_visitor_id,
            correlation_id=correlation_id,
        )
    except (ChatError, MeteringError, ProviderError) as exc:
        raise to_http_error(exc, correlation_id) from exc

    return _chat_response(result, correlation_id)


@router.get("/chat/sessions", response_model=list[SessionSummary], tags=["sessions"])
async def list_sessions(
    x_user_id: str | None = Header(default=None),
    correlation_id: str = Depends(get_correlation_id),
    service: SessionService = Depends(get_session_service),
) -> list[SessionSummary]:
    try:
        return await service.list_sessions(x_user_id)
    except (ChatError, MeteringError) as exc:
        raise to_http_error(exc, correlation_id) from exc


@router.get(
    "/chat/sessions/{session_id}/messages",
    response_model=list[ChatMessage],
    tags=["sessions"],
)
async def list_messages(
    session_id: int,
    x_user_id: str | None = Header(default=None),
    correlation_id: str = Depends(get_correlation_id),
    service: SessionService = Depends(get_session_service),
) -> list[ChatMessage]:
    try:
        return await service.list_messages(x_user_id, session_id)
    except (ChatError, MeteringError) as exc:
        raise to_http_error(exc, correlation_id) from exc


@router.patch("/chat/sessions/{session_id}", response_model=ChatSession, tags=["sessions"])
async def rename_session(
    session_id: int,
    body: RenameSessionRequest,
    x_user_id: str | None = Header(default=None),
    correlation_id: str = Depends(get_correlation_id),
    service: SessionService = Depends(get_session_service),
) -> ChatSession:
    try:
        return await service.rename_session(x_user_id, session_id, body.title)
    except (ChatError, MeteringError) as exc:
        raise to_http_error(exc, correlation_id) from exc


@router.delete("/chat/sessions/{session_id}", status_code=204, tags=["sessions"])
async def delete_session(
    session_id: int,
    x_user_id: str | None = Header(default=None),
    correlation_id: str = Depends(get_correlation_id),
    service: SessionService = Depends(get_session_service),
) -> Response:
    try:
        await service.delete_session(x_user_id, session_id)
    except (ChatError, MeteringError) as exc:
        raise to_http_error(exc, correlation_id) from exc
    return Response(status_code=204)


@router.post("/avatars", response_model=AvatarResult, tags=["avatars"])
async def generate_avatar(
    body: AvatarRequest,
    x_user_id: str | None = Header(default=None),
    correlation_id: str = Depends(get_correlation_id),
    service: AvatarService = Depends(get_avatar_service),
) -> AvatarResult:
    try:
        return await service.generate_avatar(x_user_id, body.prompt, agent_id=body.agent_id)
    except (MeteringError, ProviderError) as exc:
        logger.info("avatar.request.rejected", error_code=exc.error_code)
        raise to_http_error(exc, correlation_id) from exc


@router.get("/usage", response_model=UsageSummary, tags=["usage"])
async def usage(
    x_user_id: str | None = Header(default=None),
    correlation_id: str = Depends(get_correlation_id),
    metering: MeteringService = Depends(get_metering_service),
) -> UsageSummary:
    try:
        return await metering.usage_summary(x_user_id)
    except MeteringError as exc:
        raise to_http_error(exc, correlation_id) from exc


@router.post("/usage/plan", response_model=UsagePeriod, tags=["usage"])
async def change_plan(
    body: PlanChangeRequest,
    x_user_id: str | None = Header(default=None),
    correlation_id: str = Depends(get_correlation_id),
    metering: MeteringService = Depends(get_metering_service),
) -> UsagePeriod:
    try:
        return await metering.change_plan(x_user_id, body.plan_type)
    except MeteringError as exc:
        raise to_http_error(exc, correlation_id) from exc
