from __future__ import annotations

import json

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker

from ingestion_service.domain.exceptions import StorageError
from ingestion_service.domain.interfaces import TrainingDataRepositoryPort
from shared.schemas.documents import TrainingDocument

logger = structlog.get_logger(__name__)


def to_vector_literal(values: list[float]) -> str:
    return "[" + ",".join(str(v) for v in values) + "]"


class PostgresTrainingDataRepository(TrainingDataRepositoryPort):
    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )

    async def save(self, document: TrainingDocument) -> TrainingDocument:
        sql = text("""
            INSERT INTO agent_training_data (
                agent_id, file_name, file_type, content,
                chunks, embedding, status, metadata, created_at
            ) VALUES (
                :agent_id, :file_name, :file_type, :content,
                :chunks, CAST(:embedding AS vector), 'processed',
                CAST(:metadata AS jsonb), :created_at
            )
            RETURNING id
        """)

        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    sql,
                    {
                        "agent_id": document.agent_id,
                        "file_name": document.file_name,
                        "file_type": document.file_type,
                        "content": document.content,
                        "chunks": document.chunks,
                        "embedding": to_vector_literal(document.embedding),
                        "metadata": json.dumps(document.metadata),
                        "created_at": document.created_at,
                    },
                )
                document_id = result.scalar_one()
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error(
                "repository.document.save_failed",
                agent_id=document.agent_id,
                file_name=document.file_name,
                error=str(exc),
            )
            raise StorageError(str(exc)) from exc

        logger.debug(
            "repository.document.saved",
            document_id=document_id,
            agent_id=document.agent_id,
            chunk_count=len(document.chunks),
        )
        return document.model_copy(update={"id": document_id})

    async def delete_for_agent(self, agent_id: int) -> int:
        sql = text("DELETE FROM agent_training_data WHERE agent_id = :agent_id")
        try:
            async with self._session_factory() as session:
                result = await session.execute(sql, {"agent_id": agent_id})
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("repository.document.delete_failed", agent_id=agent_id, error=str(exc))
            raise StorageError(str(exc)) from exc
        return result.rowcount or 0
