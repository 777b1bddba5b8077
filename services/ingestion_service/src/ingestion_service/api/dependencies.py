from __future__ import annotations

from fastapi import Request

from ingestion_service.domain.chunking import ChunkingService
from ingestion_service.domain.extraction import TextExtractionService
from ingestion_service.domain.services import IngestionService
from ingestion_service.settings import Settings
from shared.metering.service import MeteringService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_metering_service(request: Request) -> MeteringService:
    return request.app.state.metering


def get_ingestion_service(request: Request) -> IngestionService:
    settings: Settings = request.app.state.settings
    return IngestionService(
        repository=request.app.state.repository,
        embeddings=request.app.state.embeddings,
        extractor=TextExtractionService(),
        chunker=ChunkingService(
            chunk_size_chars=settings.chunk_size_chars,
            overlap_chars=settings.chunk_overlap_chars,
        ),
        tokens_per_chunk=settings.embedding_tokens_per_chunk,
        max_file_size_bytes=settings.max_document_size_mb * 1024 * 1024,
    )
