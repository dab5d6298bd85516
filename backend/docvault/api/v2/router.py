from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import PlainTextResponse

from docvault.api.v2.dependencies import (
    provide_dispatcher,
    provide_file_service,
    provide_image_recognition,
    provide_image_strategy,
    provide_query_service,
    provide_result_archive,
    provide_storage,
    provide_store,
)
from docvault.api.v2.schemas.file import FileDetailResponse
from docvault.api.v2.schemas.job import (
    EngineStatusResponse,
    ImageOcrRequest,
    ImageOcrResponse,
    JobDetailResponse,
    JobListResponse,
    JobStatusResponse,
    JobSubmitRequest,
    JobSubmitResponse,
    ResultSaveRequest,
)
from docvault.application.services import (
    ExtractionDispatcher,
    ExtractionQueryService,
    FileApplicationService,
    ImageRecognitionService,
    ResultArchiveService,
)
from docvault.core.config import get_settings
from docvault.domain.errors import (
    EngineUnavailableError,
    FileRecordNotFound,
    InvalidLanguageError,
    ResultNotAvailableError,
    StoreUnavailableError,
)
from docvault.domain.models import ExtractionJobRecord, FileRecord
from docvault.infra.db.store import DatabaseStore
from docvault.infra.ports.ocr import ExtractionStrategy
from docvault.infra.ports.storage import StoragePort

router = APIRouter(prefix="/v2", tags=["v2"])


def _file_response(row: FileRecord, storage: StoragePort) -> FileDetailResponse:
    return FileDetailResponse(
        fileId=row.file_id,
        name=row.name,
        contentType=row.content_type,
        extension=row.extension,
        mimeType=row.mime_type,
        size=row.size_bytes,
        url=storage.build_url(row.storage_ref),
        createdAt=row.created_at,
    )


def _job_response(row: ExtractionJobRecord) -> JobDetailResponse:
    return JobDetailResponse(
        jobId=row.job_id,
        fileId=row.file_id,
        status=row.status,
        text=row.text,
        confidence=row.confidence,
        pageCount=row.page_count,
        processingTimeMs=row.processing_time_ms,
        error=row.error,
        language=row.language,
        metadata=row.metadata,
        createdAt=row.created_at,
        updatedAt=row.updated_at,
    )


@router.post("/files", response_model=FileDetailResponse)
async def upload_file(
    file: UploadFile = File(...),
    service: FileApplicationService = Depends(provide_file_service),
    storage: StoragePort = Depends(provide_storage),
):
    payload = await file.read()
    row = service.upload(filename=file.filename, mime_type=file.content_type, payload=payload)
    return _file_response(row, storage)


@router.get("/files/{fileId}", response_model=FileDetailResponse)
async def get_file(
    fileId: str,
    store: DatabaseStore = Depends(provide_store),
    storage: StoragePort = Depends(provide_storage),
):
    row = store.get_file(fileId)
    if row is None:
        raise HTTPException(status_code=404, detail="File not found")
    return _file_response(row, storage)


@router.post("/ocr/jobs", response_model=JobSubmitResponse)
async def submit_ocr_job(
    body: JobSubmitRequest,
    dispatcher: ExtractionDispatcher = Depends(provide_dispatcher),
):
    try:
        job = dispatcher.submit(file_id=body.fileId, language=body.language)
    except FileRecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidLanguageError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    return JobSubmitResponse(jobId=job.job_id, fileId=job.file_id, status=job.status)


@router.get("/ocr/jobs/{jobId}", response_model=JobDetailResponse)
async def get_ocr_job(jobId: str, service: ExtractionQueryService = Depends(provide_query_service)):
    row = service.get_job(jobId)
    if row is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return _job_response(row)


@router.get("/ocr/status", response_model=JobStatusResponse)
async def get_ocr_status(
    fileId: str = Query(..., min_length=1),
    service: ExtractionQueryService = Depends(provide_query_service),
):
    view = service.status_for_file(fileId)
    job = view.job
    if job is None:
        return JobStatusResponse(status=view.status, message=view.message, progress=view.progress)

    return JobStatusResponse(
        status=view.status,
        message=view.message,
        progress=view.progress,
        stalled=view.stalled,
        jobId=job.job_id,
        error=job.error,
        pageCount=job.page_count,
        confidence=job.confidence,
        processingTimeMs=job.processing_time_ms,
        hasText=bool(job.text),
        createdAt=job.created_at,
        updatedAt=job.updated_at,
    )


@router.get("/ocr/result", response_model=JobDetailResponse)
async def get_ocr_result(
    fileId: str = Query(..., min_length=1),
    service: ExtractionQueryService = Depends(provide_query_service),
):
    row = service.get_result(fileId)
    if row is None:
        raise HTTPException(status_code=404, detail="OCR result not found")
    return _job_response(row)


@router.get("/ocr/result/export", response_class=PlainTextResponse)
async def export_ocr_result(
    fileId: str = Query(..., min_length=1),
    service: ExtractionQueryService = Depends(provide_query_service),
    store: DatabaseStore = Depends(provide_store),
):
    row = service.get_result(fileId)
    if row is None:
        raise HTTPException(status_code=404, detail="OCR result not found")
    if row.status != "completed":
        raise HTTPException(status_code=409, detail=f"OCR result is not available (status={row.status})")

    source = store.get_file(fileId)
    stem = source.name.rsplit(".", 1)[0] if source and source.name else fileId
    return PlainTextResponse(
        row.text,
        headers={"Content-Disposition": f'attachment; filename="{stem}-ocr.txt"'},
    )


@router.post("/ocr/result/save", response_model=FileDetailResponse)
async def save_ocr_result(
    body: ResultSaveRequest,
    service: ResultArchiveService = Depends(provide_result_archive),
    storage: StoragePort = Depends(provide_storage),
):
    try:
        row = service.save_as_file(file_id=body.fileId, file_name=body.fileName)
    except ResultNotAvailableError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _file_response(row, storage)


@router.post("/ocr/process-image", response_model=ImageOcrResponse)
def process_image(
    body: ImageOcrRequest,
    service: ImageRecognitionService = Depends(provide_image_recognition),
):
    # Sync handler: FastAPI runs it in the threadpool while the engine works.
    try:
        output = service.recognize(image=body.image, language=body.language)
    except InvalidLanguageError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except EngineUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=f"OCR processing failed: {exc}") from exc

    return ImageOcrResponse(
        text=output.text,
        confidence=output.confidence,
        source=output.method,
        pageCount=output.page_count,
    )


@router.get("/ocr/engine", response_model=EngineStatusResponse)
async def get_ocr_engine(strategy: ExtractionStrategy = Depends(provide_image_strategy)):
    backend = get_settings().ocr_backend
    try:
        version = strategy.probe()
    except EngineUnavailableError as exc:
        return EngineStatusResponse(backend=backend, method=strategy.method_name, available=False, error=str(exc))
    return EngineStatusResponse(backend=backend, method=strategy.method_name, available=True, version=version)


@router.get("/admin/ocr-jobs", response_model=JobListResponse)
async def list_ocr_jobs(
    limit: int = Query(default=20, ge=1, le=200),
    status: str | None = Query(default=None),
    service: ExtractionQueryService = Depends(provide_query_service),
):
    rows = service.list_recent(limit=limit, status=status)
    return JobListResponse(jobs=[_job_response(row) for row in rows], count=len(rows))
