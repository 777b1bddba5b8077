from __future__ import annotations

import structlog

from agent_service.domain import prompts
from agent_service.domain.exceptions import (
    AgentNotAvailableError,
    AgentNotFoundError,
    CompletionError,
    RetrievalError,
    StorageError,
)
from agent_service.domain.interfaces import AgentRepositoryPort, ChatRepositoryPort, CompletionProviderPort
from agent_service.domain.models import MessageRole, ReplySource, StageResult, TitleState
from agent_service.domain.retrieval import RetrievalService
from agent_service.graph.state import ChatStep, ChatTurnState
from agent_service.settings import Settings
from shared.metering import pricing
from shared.metering.exceptions import MissingIdentityError
from shared.metering.service import MeteringService
from shared.providers.exceptions import ProviderError
from shared.schemas.agents import ModelProvider

logger = structlog.get_logger(__name__)

TITLE_TEMPERATURE = 0.3
TITLE_MAX_TOKENS = 20


async def node_prepare(
    state: ChatTurnState,
    agents: AgentRepositoryPort,
    metering: MeteringService,
    settings: Settings,
) -> ChatTurnState:
    """Load the agent and gate the turn. Errors raised here abort with nothing persisted."""
    log = logger.bind(correlation_id=state["correlation_id"], agent_id=state["agent_id"])

    agent = await agents.get_agent(state["agent_id"])
    if agent is None:
        raise AgentNotFoundError(state["agent_id"])

    model = agent.model_version or settings.default_chat_model

    if state["user_id"]:
        _, estimated_input = await metering.check_chat_quota(state["user_id"], state["message"], model)
        metered = True
    elif state["visitor_id"]:
        if not agent.is_public:
            raise AgentNotAvailableError(agent.id)
        estimated_input = pricing.estimate_tokens(state["message"], model)
        metered = False
    else:
        raise MissingIdentityError()

    log.info("chat.turn.prepared", model=model, metered=metered, estimated_input_tokens=estimated_input)

    return {
        **state,
        "agent": agent,
        "metered": metered,
        "model": model,
        "estimated_input_tokens": estimated_input,
        "current_step": ChatStep.RESOLVE_SESSION,
    }


async def node_resolve_session(state: ChatTurnState, chats: ChatRepositoryPort) -> ChatTurnState:
    agent = state["agent"]
    requested = state["requested_session_id"]

    if requested is not None:
        session = await chats.get_session(requested)
        if session is not None and session.belongs_to(agent.id, state["user_id"], state["visitor_id"]):
            return {
                **state,
                "session": session,
                "session_created": False,
                "current_step": ChatStep.STORE_USER_MESSAGE,
            }
        logger.info("chat.session.not_reusable", requested_session_id=requested)

    guest = not state["metered"]
    session = await chats.create_session(
        agent_id=agent.id,
        title=prompts.session_title(agent, guest=guest),
        user_id=state["user_id"],
        visitor_id=state["visitor_id"] if guest else None,
    )
    logger.info("chat.session.created", session_id=session.id, guest=guest)

    return {
        **state,
        "session": session,
        "session_created": True,
        "current_step": ChatStep.STORE_USER_MESSAGE,
    }


async def node_store_user_message(state: ChatTurnState, chats: ChatRepositoryPort) -> ChatTurnState:
    message = await chats.add_message(state["session"].id, MessageRole.USER, state["message"])
    return {**state, "user_message": message, "current_step": ChatStep.RETRIEVE}


async def node_retrieve_context(state: ChatTurnState, retrieval: RetrievalService) -> ChatTurnState:
    try:
        chunks = await retrieval.retrieve(state["agent"].id, state["message"])
        result = StageResult.success(chunks)
    except RetrievalError as exc:
        logger.warning("chat.retrieval.degraded", session_id=state["session"].id, error=str(exc))
        result = StageResult.failure(exc)

    return {**state, "retrieval": result, "current_step": ChatStep.SYNTHESIZE}


async def node_synthesize(
    state: ChatTurnState,
    completions: CompletionProviderPort,
    settings: Settings,
) -> ChatTurnState:
    agent = state["agent"]
    log = logger.bind(session_id=state["session"].id, model=state["model"])

    retrieval = state["retrieval"]
    chunks = retrieval.value if retrieval is not None and retrieval.ok else []

    try:
        completion = await completions.complete(
            provider=agent.model_provider,
            model=state["model"],
            system_prompt=prompts.build_system_prompt(agent),
            context_block=prompts.build_context_block(chunks or []),
            user_message=state["message"],
            temperature=prompts.map_temperature(agent.temperature),
            max_tokens=settings.max_completion_tokens,
        )
        if not completion.text.strip():
            raise CompletionError("provider returned an empty reply")
        result = StageResult.success(completion)
        log.info("chat.synthesis.completed", reply_length=len(completion.text), context_chunks=len(chunks or []))
    except (ProviderError, CompletionError) as exc:
        log.warning("chat.synthesis.failed", error_code=exc.error_code, error=str(exc))
        result = StageResult.failure(exc)

    return {**state, "completion": result, "current_step": ChatStep.FALLBACK}


def node_apply_fallback(state: ChatTurnState) -> ChatTurnState:
    """Single place deciding the reply: the model's if it succeeded, else a template."""
    completion = state["completion"]
    if completion is not None and completion.ok:
        reply, source = completion.value.text, ReplySource.MODEL
    else:
        reply, source = prompts.fallback_reply(state["agent"], state["message"]), ReplySource.FALLBACK

    return {
        **state,
        "reply": reply,
        "reply_source": source,
        "current_step": ChatStep.STORE_ASSISTANT_MESSAGE,
    }


async def node_store_assistant_message(state: ChatTurnState, chats: ChatRepositoryPort) -> ChatTurnState:
    message = await chats.add_message(state["session"].id, MessageRole.ASSISTANT, state["reply"])
    output_tokens = pricing.estimate_tokens(state["reply"], state["model"])
    return {
        **state,
        "assistant_message": message,
        "tokens_charged": state["estimated_input_tokens"] + output_tokens if state["metered"] else 0,
        "current_step": ChatStep.RECORD_USAGE if state["metered"] else ChatStep.DONE,
    }


async def node_record_usage(state: ChatTurnState, metering: MeteringService) -> ChatTurnState:
    output_tokens = state["tokens_charged"] - state["estimated_input_tokens"]
    period = await metering.record_chat_usage(
        user_id=state["user_id"],
        model=state["model"],
        input_tokens=state["estimated_input_tokens"],
        output_tokens=output_tokens,
        session_id=state["session"].id,
        agent_id=state["agent"].id,
        user_message_id=state["user_message"].id,
        assistant_message_id=state["assistant_message"].id,
    )
    return {
        **state,
        "remaining_tokens": period.remaining_tokens,
        "current_step": (
            ChatStep.GENERATE_TITLE
            if state["session"].title_state == TitleState.DEFAULT
            else ChatStep.DONE
        ),
    }


async def node_generate_title(
    state: ChatTurnState,
    completions: CompletionProviderPort,
    chats: ChatRepositoryPort,
    settings: Settings,
) -> ChatTurnState:
    session = state["session"]
    log = logger.bind(session_id=session.id)

    first_message = state["message"]
    try:
        if not state["session_created"]:
            history = await chats.list_messages(session.id)
            first_message = next(
                (m.content for m in history if m.role == MessageRole.USER),
                state["message"],
            )

        completion = await completions.complete(
            provider=ModelProvider.OPENAI,
            model=settings.title_model,
            system_prompt=prompts.TITLE_SYSTEM_PROMPT,
            context_block="",
            user_message=first_message,
            temperature=TITLE_TEMPERATURE,
            max_tokens=TITLE_MAX_TOKENS,
        )
        title = prompts.clean_title(completion.text)
        if not title:
            raise CompletionError("provider returned an empty title")
        session = await chats.update_title(session.id, title, TitleState.GENERATED)
        result = StageResult.success(title)
        log.info("chat.title.generated", title=title)
    except (ProviderError, CompletionError, StorageError) as exc:
        log.warning("chat.title.failed", error=str(exc))
        result = StageResult.failure(exc)

    return {**state, "session": session, "title": result, "current_step": ChatStep.DONE}
