from __future__ import annotations

from functools import partial

from langgraph.graph import END, START, StateGraph

from agent_service.domain.interfaces import AgentRepositoryPort, ChatRepositoryPort, CompletionProviderPort
from agent_service.domain.models import TitleState
from agent_service.domain.retrieval import RetrievalService
from agent_service.graph.nodes import (
    node_apply_fallback,
    node_generate_title,
    node_prepare,
    node_record_usage,
    node_resolve_session,
    node_retrieve_context,
    node_store_assistant_message,
    node_store_user_message,
    node_synthesize,
)
from agent_service.graph.state import ChatStep, ChatTurnState
from agent_service.settings import Settings
from shared.metering.service import MeteringService


def needs_title(state: ChatTurnState) -> bool:
    session = state["session"]
    return state["metered"] and session is not None and session.title_state == TitleState.DEFAULT


def route_after_assistant_message(state: ChatTurnState) -> str:
    if state["metered"]:
        return ChatStep.RECORD_USAGE
    return END


def route_after_usage(state: ChatTurnState) -> str:
    return ChatStep.GENERATE_TITLE if needs_title(state) else END


def build_graph(
    settings: Settings,
    agents: AgentRepositoryPort,
    chats: ChatRepositoryPort,
    metering: MeteringService,
    retrieval: RetrievalService,
    completions: CompletionProviderPort,
):
    graph = StateGraph(ChatTurnState)

    graph.add_node(
        ChatStep.PREPARE,
        partial(node_prepare, agents=agents, metering=metering, settings=settings),
    )
    graph.add_node(ChatStep.RESOLVE_SESSION, partial(node_resolve_session, chats=chats))
    graph.add_node(ChatStep.STORE_USER_MESSAGE, partial(node_store_user_message, chats=chats))
    graph.add_node(ChatStep.RETRIEVE, partial(node_retrieve_context, retrieval=retrieval))
    graph.add_node(
        ChatStep.SYNTHESIZE,
        partial(node_synthesize, completions=completions, settings=settings),
    )
    graph.add_node(ChatStep.FALLBACK, node_apply_fallback)
    graph.add_node(ChatStep.STORE_ASSISTANT_MESSAGE, partial(node_store_assistant_message, chats=chats))
    graph.add_node(ChatStep.RECORD_USAGE, partial(node_record_usage, metering=metering))
    graph.add_node(
        ChatStep.GENERATE_TITLE,
        partial(node_generate_title, completions=completions, chats=chats, settings=settings),
    )

    graph.add_edge(START, ChatStep.PREPARE)
    graph.add_edge(ChatStep.PREPARE, ChatStep.RESOLVE_SESSION)
    graph.add_edge(ChatStep.RESOLVE_SESSION, ChatStep.STORE_USER_MESSAGE)
    graph.add_edge(ChatStep.STORE_USER_MESSAGE, ChatStep.RETRIEVE)
    graph.add_edge(ChatStep.RETRIEVE, ChatStep.SYNTHESIZE)
    graph.add_edge(ChatStep.SYNTHESIZE, ChatStep.FALLBACK)
    graph.add_edge(ChatStep.FALLBACK, ChatStep.STORE_ASSISTANT_MESSAGE)
    graph.add_conditional_edges(ChatStep.STORE_ASSISTANT_MESSAGE, route_after_assistant_message)
    graph.add_conditional_edges(ChatStep.RECORD_USAGE, route_after_usage)
    graph.add_edge(ChatStep.GENERATE_TITLE, END)

    return graph.compile()
