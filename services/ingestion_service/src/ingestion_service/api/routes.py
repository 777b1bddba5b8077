from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, File, Header, Request, UploadFile

from ingestion_service.api.dependencies import (
    get_ingestion_service,
    get_metering_service,
    get_settings,
)
from ingestion_service.domain.exceptions import (
    DocumentTooLargeError,
    EmptyDocumentError,
    ExtractionFailedError,
    IngestionError,
    UnsupportedFileTypeError,
)
from ingestion_service.domain.models import DocumentsDeletedResponse, DocumentUploadResponse
from ingestion_service.domain.services import IngestionService
from ingestion_service.settings import Settings
from shared.logging.config import bind_request_context
from shared.logging.middleware import get_correlation_id
from shared.metering.exceptions import MeteringError, MissingIdentityError
from shared.metering.service import MeteringService
from shared.providers.exceptions import ProviderError, ProviderQuotaExceededError
from shared.schemas.base import ErrorResponse, HealthResponse

logger = structlog.get_logger(__name__)
router = APIRouter()

_INGESTION_STATUS: dict[type[IngestionError], int] = {
    UnsupportedFileTypeError: 415,
    DocumentTooLargeError: 413,
    ExtractionFailedError: 422,
    EmptyDocumentError: 422,
}


@router.get("/health", response_model=HealthResponse, tags=["ops"])
async def health(settings: Settings = Depends(get_settings)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        service=settings.service_name,
        version=settings.app_version,
    )


@router.post(
    "/agents/{agent_id}/documents",
    response_model=DocumentUploadResponse,
    status_code=201,
    tags=["ingestion"],
)
async def upload_document(
    request: Request,
    agent_id: int,
    file: UploadFile = File(...),
    x_user_id: str | None = Header(default=None),
    service: IngestionService = Depends(get_ingestion_service),
    metering: MeteringService = Depends(get_metering_service),
) -> DocumentUploadResponse:
    correlation_id = get_correlation_id(request)
    bind_request_context(agent_id=agent_id)

    log = logger.bind(
        correlation_id=correlation_id,
        filename=file.filename,
        agent_id=agent_id,
    )
    log.info("ingestion.request.received")

    if not x_user_id:
        exc = MissingIdentityError()
        log.info("ingestion.request.rejected", error_code=exc.error_code)
        raise ErrorResponse.from_exception(exc, correlation_id).to_http_exception(401)

    content = await file.read()

    try:
        result = await service.ingest_document(
            agent_id=agent_id,
            filename=file.filename or "unknown",
            content=content,
            content_type=file.content_type or "application/octet-stream",
            user_id=x_user_id,
        )
    except ProviderQuotaExceededError as exc:
        log.error("ingestion.request.provider_quota", error=str(exc))
        body = ErrorResponse.from_exception(exc, correlation_id, remediation=exc.remediation)
        raise body.to_http_exception(503) from exc
    except ProviderError as exc:
        log.error("ingestion.request.provider_failed", error=str(exc))
        raise ErrorResponse.from_exception(exc, correlation_id).to_http_exception(502) from exc
    except IngestionError as exc:
        status_code = _INGESTION_STATUS.get(type(exc), 500)
        if status_code == 500:
            log.error("ingestion.request.failed", error_code=exc.error_code, error=str(exc))
        raise ErrorResponse.from_exception(exc, correlation_id).to_http_exception(status_code) from exc

    remaining_tokens: int | None = None
    if result.tokens_charged:
        try:
            period = await metering.record_document_embedding(
                user_id=x_user_id,
                agent_id=agent_id,
                tokens=result.tokens_charged,
                model=result.embedding_model,
            )
            remaining_tokens = period.remaining_tokens
        except MeteringError as exc:
            # The document is already stored; usage is under-counted rather
            # than failing an upload that succeeded.
            log.error(
                "ingestion.metering.failed",
                error_code=exc.error_code,
                tokens_charged=result.tokens_charged,
                error=str(exc),
            )

    return DocumentUploadResponse(
        document_id=result.document_id,
        filename=result.filename,
        chunk_count=result.chunk_count,
        tokens_charged=result.tokens_charged,
        remaining_tokens=remaining_tokens,
        correlation_id=correlation_id,
    )


@router.delete(
    "/agents/{agent_id}/documents",
    response_model=DocumentsDeletedResponse,
    tags=["ingestion"],
)
async def delete_agent_documents(
    request: Request,
    agent_id: int,
    service: IngestionService = Depends(get_ingestion_service),
) -> DocumentsDeletedResponse:
    correlation_id = get_correlation_id(request)
    bind_request_context(agent_id=agent_id)

    try:
        deleted = await service.delete_agent_documents(agent_id)
    except IngestionError as exc:
        raise ErrorResponse.from_exception(exc, correlation_id).to_http_exception(500) from exc

    return DocumentsDeletedResponse(agent_id=agent_id, deleted_count=deleted)
