from __future__ import annotations

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker

from agent_service.domain.exceptions import RetrievalError
from agent_service.domain.interfaces import ContentSearchPort
from shared.schemas.documents import RetrievedChunk

logger = structlog.get_logger(__name__)


def to_vector_literal(values: list[float]) -> str:
    return "[" + ",".join(str(v) for v in values) + "]"


class PgVectorContentSearch(ContentSearchPort):
    """Cosine search over agent_training_data.

    Each row holds one document-level embedding, so every chunk of a matching
    document shares that document's similarity.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )

    async def match_agent_content(
        self,
        query_embedding: list[float],
        similarity_threshold: float,
        max_results: int,
        agent_id: int,
    ) -> list[RetrievedChunk]:
        sql = text("""
            WITH matches AS (
                SELECT
                    atd.id AS document_id,
                    atd.chunks,
                    1 - (atd.embedding <=> CAST(:embedding AS vector)) AS similarity
                FROM agent_training_data atd
                WHERE atd.agent_id = :agent_id
                  AND atd.embedding IS NOT NULL
                  AND 1 - (atd.embedding <=> CAST(:embedding AS vector)) >= :threshold
            )
            SELECT
                m.document_id,
                c.ordinality - 1 AS chunk_index,
                c.content,
                m.similarity
            FROM matches m
            CROSS JOIN LATERAL unnest(m.chunks) WITH ORDINALITY AS c(content, ordinality)
            ORDER BY m.similarity DESC, m.document_id, c.ordinality
            LIMIT :max_results
        """)

        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    sql,
                    {
                        "embedding": to_vector_literal(query_embedding),
                        "agent_id": agent_id,
                        "threshold": similarity_threshold,
                        "max_results": max_results,
                    },
                )
                rows = result.mappings().all()
        except SQLAlchemyError as exc:
            logger.error("retrieval.similarity_search.failed", agent_id=agent_id, error=str(exc))
            raise RetrievalError(str(exc)) from exc

        chunks = [
            RetrievedChunk(
                document_id=row["document_id"],
                chunk_index=row["chunk_index"],
                content=row["content"],
                similarity=min(1.0, max(-1.0, float(row["similarity"]))),
            )
            for row in rows
        ]

        logger.debug(
            "retrieval.similarity_search.completed",
            agent_id=agent_id,
            chunk_count=len(chunks),
        )
        return chunks
