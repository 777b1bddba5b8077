from __future__ import annotations

from fastapi import Request

from agent_service.domain.services import AvatarService, ChatService, SessionService
from agent_service.settings import Settings
from shared.logging.middleware import get_correlation_id
from shared.metering.service import MeteringService

__all__ = [
    "get_avatar_service",
    "get_chat_service",
    "get_correlation_id",
    "get_metering_service",
    "get_session_service",
    "get_settings",
]


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_metering_service(request: Request) -> MeteringService:
    return request.app.state.metering


def get_chat_service(request: Request) -> ChatService:
    return ChatService(graph=request.app.state.graph)


def get_session_service(request: Request) -> SessionService:
    return SessionService(chats=request.app.state.chats, metering=request.app.state.metering)


def get_avatar_service(request: Request) -> AvatarService:
    return AvatarService(images=request.app.state.images, metering=request.app.state.metering)
