from __future__ import annotations

import structlog

from ingestion_service.domain.chunking import ChunkingService
from ingestion_service.domain.exceptions import (
    DocumentTooLargeError,
    EmptyDocumentError,
    UnsupportedFileTypeError,
)
from ingestion_service.domain.extraction import is_supported_content_type
from ingestion_service.domain.interfaces import TextExtractorPort, TrainingDataRepositoryPort
from ingestion_service.domain.models import IngestionResult
from shared.providers.exceptions import ProviderError
from shared.providers.interfaces import EmbeddingProviderPort
from shared.schemas.documents import TrainingDocument

logger = structlog.get_logger(__name__)

MAX_FILE_SIZE_BYTES = 50 * 1024 * 1024  # 50 MB
EMBEDDING_TOKENS_PER_CHUNK = 250  # ~1000 chars at 4 chars/token


class IngestionService:
    """Turns an uploaded file into one embedded, searchable document row.

    Every step runs before the single repository write, so a failure at any
    point leaves nothing behind. Cost is reported to the caller; deducting it
    from the user's usage period is the caller's job.
    """

    def __init__(
        self,
        repository: TrainingDataRepositoryPort,
        embeddings: EmbeddingProviderPort,
        extractor: TextExtractorPort,
        chunker: ChunkingService,
        tokens_per_chunk: int = EMBEDDING_TOKENS_PER_CHUNK,
        max_file_size_bytes: int = MAX_FILE_SIZE_BYTES,
    ) -> None:
        self._repository = repository
        self._embeddings = embeddings
        self._extractor = extractor
        self._chunker = chunker
        self._tokens_per_chunk = tokens_per_chunk
        self._max_file_size_bytes = max_file_size_bytes

    async def ingest_document(
        self,
        agent_id: int,
        filename: str,
        content: bytes | str,
        content_type: str,
        user_id: str | None = None,
    ) -> IngestionResult:
        log = logger.bind(
            agent_id=agent_id,
            filename=filename,
            content_type=content_type,
            user_id=user_id,
        )

        if not is_supported_content_type(content_type):
            log.warning("ingestion.rejected.unsupported_type")
            raise UnsupportedFileTypeError(content_type)

        size_bytes = len(content.encode("utf-8")) if isinstance(content, str) else len(content)
        if size_bytes > self._max_file_size_bytes:
            log.warning(
                "ingestion.rejected.file_too_large",
                size_bytes=size_bytes,
                limit_bytes=self._max_file_size_bytes,
            )
            raise DocumentTooLargeError(size_bytes, self._max_file_size_bytes)

        # Stored content and chunk offsets both refer to this stripped text.
        text = self._extractor.extract(filename, content, content_type).strip()
        if not text:
            log.warning("ingestion.rejected.empty_document")
            raise EmptyDocumentError(filename)

        chunks = self._chunker.chunk_text(text)
        chunk_texts = [c.content for c in chunks]

        vectors = await self._embeddings.embed_texts(chunk_texts)
        if len(vectors) != len(chunk_texts):
            log.error(
                "ingestion.embedding.count_mismatch",
                vector_count=len(vectors),
                chunk_count=len(chunk_texts),
            )
            raise ProviderError(
                f"Embedding provider returned {len(vectors)} vectors for {len(chunk_texts)} chunks"
            )

        document = TrainingDocument(
            agent_id=agent_id,
            file_name=filename,
            file_type=content_type,
            content=text,
            chunks=chunk_texts,
            embedding=vectors[0],
            metadata={
                "file_name": filename,
                "file_type": content_type,
                "chunk_count": len(chunk_texts),
                "chunk_size": self._chunker.chunk_size,
                "chunk_overlap": self._chunker.overlap,
                "embedding_model": self._embeddings.model,
                "chunk_embeddings": vectors[1:],
            },
        )
        stored = await self._repository.save(document)

        tokens_charged = len(chunk_texts) * self._tokens_per_chunk
        log.info(
            "ingestion.document.stored",
            document_id=stored.id,
            char_count=len(text),
            chunk_count=len(chunk_texts),
            tokens_charged=tokens_charged,
        )

        return IngestionResult(
            document_id=stored.id,
            agent_id=agent_id,
            filename=filename,
            chunk_count=len(chunk_texts),
            tokens_charged=tokens_charged,
            embedding_model=self._embeddings.model,
        )

    async def delete_agent_documents(self, agent_id: int) -> int:
        deleted = await self._repository.delete_for_agent(agent_id)
        logger.info("ingestion.documents.deleted", agent_id=agent_id, deleted_count=deleted)
        return deleted
