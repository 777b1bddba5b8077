from __future__ import annotations

from enum import StrEnum
from typing import TypedDict

from agent_service.domain.models import ChatMessage, ChatSession, Completion, ReplySource, StageResult
from shared.schemas.agents import AgentProfile
from shared.schemas.documents import RetrievedChunk


class ChatStep(StrEnum):
    INIT = "init"
    PREPARE = "prepare"
    RESOLVE_SESSION = "resolve_session"
    STORE_USER_MESSAGE = "store_user_message"
    RETRIEVE = "retrieve_context"
    SYNTHESIZE = "synthesize"
    FALLBACK = "apply_fallback"
    STORE_ASSISTANT_MESSAGE = "store_assistant_message"
    RECORD_USAGE = "record_usage"
    GENERATE_TITLE = "generate_title"
    DONE = "done"


class ChatTurnState(TypedDict):
    # Identity
    correlation_id: str
    agent_id: int
    user_id: str | None
    visitor_id: str | None

    # Input
    message: str
    requested_session_id: int | None

    # Prepare
    agent: AgentProfile | None
    metered: bool
    model: str
    estimated_input_tokens: int

    # Session
    session: ChatSession | None
    session_created: bool
    user_message: ChatMessage | None

    # Retrieval
    retrieval: StageResult[list[RetrievedChunk]] | None

    # Synthesis
    completion: StageResult[Completion] | None
    reply: str | None
    reply_source: ReplySource | None
    assistant_message: ChatMessage | None

    # Metering
    tokens_charged: int
    remaining_tokens: int | None

    # Title
    title: StageResult[str] | None

    # Control
    current_step: str


def initial_state(
    correlation_id: str,
    agent_id: int,
    message: str,
    user_id: str | None = None,
    visitor_id: str | None = None,
    session_id: int | None = None,
) -> ChatTurnState:
    return {
        "correlation_id": correlation_id,
        "agent_id": agent_id,
        "user_id": user_id,
        "visitor_id": visitor_id,
        "message": message,
        "requested_session_id": session_id,
        "agent": None,
        "metered": False,
        "model": "",
        "estimated_input_tokens": 0,
        "session": None,
        "session_created": False,
        "user_message": None,
        "retrieval": None,
        "completion": None,
        "reply": None,
        "reply_source": None,
        "assistant_message": None,
        "tokens_charged": 0,
        "remaining_tokens": None,
        "title": None,
        "current_step": ChatStep.INIT,
    }
