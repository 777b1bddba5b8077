from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import create_async_engine

from ingestion_service.api.routes import router
from ingestion_service.infrastructure.repository import PostgresTrainingDataRepository
from ingestion_service.settings import Settings
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
    logger.info(
        "service.starting",
        version=settings.app_version,
        environment=settings.environment,
        embedding_model=settings.embedding_model,
    )

    engine = create_async_engine(
        settings.database_url.get_secret_value(),
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
    )
    embeddings = EmbeddingClient(
        client=create_openai_client(settings),
        model=settings.embedding_model,
        dimensions=settings.embedding_dimensions,
    )

    if settings.verify_embedding_dimensions:
        if not await embeddings.validate_dimensions():
            logger.critical(
                "service.startup.failed",
                component="embedding_client",
                error="embedding dimension mismatch",
                expected_dimensions=settings.embedding_dimensions,
            )
            await engine.dispose()
            raise RuntimeError(
                f"{settings.embedding_model} does not produce "
                f"{settings.embedding_dimensions}-dimensional vectors"
            )

    app.state.settings = settings
    app.state.repository = PostgresTrainingDataRepository(engine)
    app.state.metering = MeteringService(PostgresUsageRepository(engine))
    app.state.embeddings = embeddings

    logger.info("service.ready", port=settings.service_port)
    yield

    await engine.dispose()
    logger.info("service.stopped")


app = FastAPI(
    title="Ingestion Service",
    description="Extracts, chunks and embeds agent training documents.",
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_methods=["POST", "GET", "DELETE"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIdMiddleware)
app.include_router(router)
