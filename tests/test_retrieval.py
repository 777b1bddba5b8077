"""Tests for similarity retrieval and context assembly."""

import pytest

from agent_service.domain import prompts
from agent_service.domain.exceptions import RetrievalError
from agent_service.domain.retrieval import RetrievalService, rank_chunks
from shared.providers.exceptions import ProviderQuotaExceededError
from shared.schemas.documents import RetrievedChunk, TrainingDocument
from tests.fakes import FakeEmbeddings, InMemoryContentSearch, StaticContentSearch


def _chunk(document_id: int, index: int, similarity: float) -> RetrievedChunk:
    return RetrievedChunk(
        document_id=document_id,
        chunk_index=index,
        content=f"doc{document_id}-chunk{index}",
        similarity=similarity,
    )


class TestRankChunks:
    def test_drops_below_threshold_and_sorts(self):
        chunks = [_chunk(1, 0, 0.4), _chunk(2, 0, 0.9), _chunk(3, 1, 0.6), _chunk(3, 0, 0.6)]

        ranked = rank_chunks(chunks, similarity_threshold=0.5, max_results=5)

        assert [(c.document_id, c.chunk_index) for c in ranked] == [(2, 0), (3, 0), (3, 1)]
        assert all(c.similarity >= 0.5 for c in ranked)

    def test_caps_results(self):
        chunks = [_chunk(1, i, 0.8) for i in range(10)]
        assert len(rank_chunks(chunks, 0.5, 5)) == 5

    def test_threshold_is_inclusive(self):
        assert len(rank_chunks([_chunk(1, 0, 0.5)], 0.5, 5)) == 1


class TestRetrievalService:
    @pytest.mark.asyncio
    async def test_revalidates_store_results(self):
        search = StaticContentSearch([_chunk(1, 0, 0.2), _chunk(1, 1, 0.7)])
        service = RetrievalService(FakeEmbeddings(), search, similarity_threshold=0.5, max_results=5)

        chunks = await service.retrieve(agent_id=1, query="anything")

        assert [c.chunk_index for c in chunks] == [1]

    @pytest.mark.asyncio
    async def test_only_returns_the_agents_content(self, training_repo):
        embeddings = FakeEmbeddings()
        vector = (await embeddings.embed_texts(["python"]))[0]
        for agent_id in (1, 2):
            await training_repo.save(
                TrainingDocument(
                    agent_id=agent_id,
                    file_name="a.txt",
                    file_type="text/plain",
                    content="python",
                    chunks=[f"agent {agent_id} python"],
                    embedding=vector,
                )
            )
        service = RetrievalService(embeddings, InMemoryContentSearch(training_repo))

        chunks = await service.retrieve(agent_id=2, query="python")

        assert [c.content for c in chunks] == ["agent 2 python"]
        assert chunks[0].similarity == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_embedding_failure_becomes_retrieval_error(self, training_repo):
        service = RetrievalService(
            FakeEmbeddings(error=ProviderQuotaExceededError("openai")),
            InMemoryContentSearch(training_repo),
        )
        with pytest.raises(RetrievalError):
            await service.retrieve(agent_id=1, query="hello")

    @pytest.mark.asyncio
    async def test_search_failure_becomes_retrieval_error(self, training_repo):
        service = RetrievalService(
            FakeEmbeddings(),
            InMemoryContentSearch(training_repo, error=RetrievalError("connection refused")),
        )
        with pytest.raises(RetrievalError):
            await service.retrieve(agent_id=1, query="hello")


class TestContextBlock:
    def test_empty_context_is_explicit(self):
        assert prompts.build_context_block([]) == "CONTEXT: (none relevant)"

    def test_chunks_joined_with_separator(self):
        block = prompts.build_context_block([_chunk(1, 0, 0.9), _chunk(1, 1, 0.9)])
        assert block == "CONTEXT:\ndoc1-chunk0\n\n---\n\ndoc1-chunk1"
