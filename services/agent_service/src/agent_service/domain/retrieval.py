from __future__ import annotations

import structlog

from agent_service.domain.exceptions import RetrievalError
from agent_service.domain.interfaces import ContentSearchPort
from shared.providers.interfaces import EmbeddingProviderPort
from shared.schemas.documents import RetrievedChunk

logger = structlog.get_logger(__name__)


class RetrievalService:
    """Embeds a query and returns the agent's closest chunks.

    Store results are re-checked here so the threshold, ordering and cap hold
    regardless of the backing search implementation.
    """

    def __init__(
        self,
        embeddings: EmbeddingProviderPort,
        search: ContentSearchPort,
        similarity_threshold: float = 0.5,
        max_results: int = 5,
    ) -> None:
        self._embeddings = embeddings
        self._search = search
        self._similarity_threshold = similarity_threshold
        self._max_results = max_results

    async def retrieve(self, agent_id: int, query: str) -> list[RetrievedChunk]:
        try:
            query_embedding = await self._embeddings.embed_single(query)
            raw = await self._search.match_agent_content(
                query_embedding=query_embedding,
                similarity_threshold=self._similarity_threshold,
                max_results=self._max_results,
                agent_id=agent_id,
            )
        except RetrievalError:
            raise
        except Exception as exc:
            logger.warning("retrieval.failed", agent_id=agent_id, error=str(exc))
            raise RetrievalError(str(exc)) from exc

        chunks = rank_chunks(raw, self._similarity_threshold, self._max_results)
        logger.info(
            "retrieval.completed",
            agent_id=agent_id,
            candidate_count=len(raw),
            chunk_count=len(chunks),
            top_similarity=chunks[0].similarity if chunks else None,
        )
        return chunks


def rank_chunks(
    chunks: list[RetrievedChunk],
    similarity_threshold: float,
    max_results: int,
) -> list[RetrievedChunk]:
    kept = [c for c in chunks if c.similarity >= similarity_threshold]
    kept.sort(key=lambda c: (-c.similarity, c.document_id, c.chunk_index))
    return kept[:max_results]
