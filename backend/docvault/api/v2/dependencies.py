from __future__ import annotations

from functools import lru_cache

from docvault.application.lifecycle import ExtractionLifecycleManager
from docvault.application.runner import BackgroundRunner
from docvault.application.services import (
    ExtractionDispatcher,
    ExtractionQueryService,
    FileApplicationService,
    ImageRecognitionService,
    ResultArchiveService,
)
from docvault.core.config import get_settings
from docvault.domain.models import ContentKind
from docvault.infra.db.store import DatabaseStore
from docvault.infra.ocr.mock import MockImageStrategy
from docvault.infra.ocr.pdf_text import PdfTextStrategy
from docvault.infra.ocr.tesseract import TesseractCLIStrategy, configure_tesseract_cmd
from docvault.infra.ports.ocr import ExtractionStrategy
from docvault.infra.ports.storage import StoragePort
from docvault.infra.storage.local import LocalFileStorage
from docvault.infra.tempfiles import TempFileFactory


@lru_cache(maxsize=1)
def get_store() -> DatabaseStore:
    return DatabaseStore()


@lru_cache(maxsize=1)
def get_storage() -> StoragePort:
    settings = get_settings()
    if settings.storage_backend != "local":
        raise RuntimeError(f"Unsupported DOCVAULT_STORAGE_BACKEND={settings.storage_backend!r}; only 'local' is available")
    return LocalFileStorage(base_dir=settings.upload_dir)


@lru_cache(maxsize=1)
def get_temp_files() -> TempFileFactory:
    return TempFileFactory(get_settings().work_dir)


@lru_cache(maxsize=1)
def get_image_strategy() -> ExtractionStrategy:
    settings = get_settings()
    if settings.ocr_backend == "mock":
        return MockImageStrategy()
    if settings.ocr_backend == "tesseract":
        configure_tesseract_cmd(settings.tesseract_cmd)
        return TesseractCLIStrategy(temp_files=get_temp_files(), timeout_seconds=settings.ocr_timeout_seconds)
    raise RuntimeError(f"Unsupported DOCVAULT_OCR_BACKEND={settings.ocr_backend!r}; use 'tesseract' or 'mock'")


@lru_cache(maxsize=1)
def get_runner() -> BackgroundRunner:
    settings = get_settings()
    return BackgroundRunner(max_workers=settings.max_inflight_jobs, synchronous=settings.sync_processing)


def get_lifecycle_manager() -> ExtractionLifecycleManager:
    store = get_store()
    return ExtractionLifecycleManager(
        files=store,
        jobs=store,
        storage=get_storage(),
        strategies={
            ContentKind.NATIVE_DOCUMENT: PdfTextStrategy(),
            ContentKind.IMAGE: get_image_strategy(),
        },
    )


def get_dispatcher() -> ExtractionDispatcher:
    store = get_store()
    return ExtractionDispatcher(
        files=store,
        jobs=store,
        lifecycle=get_lifecycle_manager(),
        runner=get_runner(),
        default_language=get_settings().ocr_lang,
    )


def get_query_service() -> ExtractionQueryService:
    return ExtractionQueryService(jobs=get_store(), stale_after_seconds=get_settings().job_stale_after_seconds)


def get_file_service() -> FileApplicationService:
    return FileApplicationService(store=get_store(), storage=get_storage())


def get_result_archive() -> ResultArchiveService:
    return ResultArchiveService(jobs=get_store(), uploads=get_file_service())


def get_image_recognition() -> ImageRecognitionService:
    return ImageRecognitionService(strategy=get_image_strategy(), default_language=get_settings().ocr_lang)


def clear_caches() -> None:
    runner = get_runner() if get_runner.cache_info().currsize else None
    for factory in (get_store, get_storage, get_temp_files, get_image_strategy, get_runner):
        factory.cache_clear()
    if runner is not None:
        runner.shutdown(wait=False)


async def provide_store() -> DatabaseStore:
    return get_store()


async def provide_file_service() -> FileApplicationService:
    return get_file_service()


async def provide_dispatcher() -> ExtractionDispatcher:
    return get_dispatcher()


async def provide_query_service() -> ExtractionQueryService:
    return get_query_service()


async def provide_image_strategy() -> ExtractionStrategy:
    return get_image_strategy()


async def provide_storage() -> StoragePort:
    return get_storage()


async def provide_result_archive() -> ResultArchiveService:
    return get_result_archive()


async def provide_image_recognition() -> ImageRecognitionService:
    return get_image_recognition()
