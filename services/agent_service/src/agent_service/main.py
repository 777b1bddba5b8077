from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import create_async_engine

from agent_service.api.routes import router
from agent_service.domain.retrieval import RetrievalService
from agent_service.graph.builder import build_graph
from agent_service.infrastructure.completion_client import CompletionClient, create_anthropic_client
from agent_service.infrastructure.image_client import ImageClient
from agent_service.infrastructure.pgvector_repo import PgVectorContentSearch
from agent_service.infrastructure.repository import PostgresAgentRepository, PostgresChatRepository
from agent_service.settings import Settings
from shared.logging.config import configure_logging
from shared.logging.middleware import CorrelationIdMiddleware
from shared.metering.repository import PostgresUsageRepository
from shared.metering.service import MeteringService
from shared.providers.embedding_client import EmbeddingClient
from shared.providers.openai_client import create_openai_client

settings = Settings()
configure_logging(settings.service_name, settings.log_level, json_logs=not settings.debug)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("service.starting", version=settings.app_version, environment=settings.environment)

    engine = create_async_engine(
        settings.database_url.get_secret_value(),
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
    )
    openai_client = create_openai_client(settings)
    anthropic_client = create_anthropic_client(settings.anthropic_api_key.get_secret_value())

    chats = PostgresChatRepository(engine)
    metering = MeteringService(PostgresUsageRepository(engine))
    retrieval = RetrievalService(
        embeddings=EmbeddingClient(
            client=openai_client,
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
        ),
        search=PgVectorContentSearch(engine),
        similarity_threshold=settings.retrieval_similarity_threshold,
        max_results=settings.retrieval_max_results,
    )
    graph = build_graph(
        settings=settings,
        agents=PostgresAgentRepository(engine),
        chats=chats,
        metering=metering,
        retrieval=retrieval,
        completions=CompletionClient(openai_client, anthropic_client),
    )

    app.state.settings = settings
    app.state.graph = graph
    app.state.chats = chats
    app.state.metering = metering
    app.state.images = ImageClient(openai_client, model=settings.image_model, size=settings.image_size)

    logger.info("service.ready", graph_nodes=list(graph.nodes.keys()))
    yield

    if openai_client is not None:
        await openai_client.close()
    if anthropic_client is not None:
        await anthropic_client.close()
    await engine.dispose()
    logger.info("service.stopped")


app = FastAPI(
    title="Agent Service",
    description="Grounded chat over agent training data with per-user token metering.",
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIdMiddleware)
app.include_router(router)
