from __future__ import annotations

import base64
import binascii
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from docvault.application.lifecycle import ExtractionLifecycleManager, FileCatalogPort, JobStorePort
from docvault.application.runner import BackgroundRunner
from docvault.domain.errors import (
    DocvaultError,
    DuplicateJobError,
    FileRecordNotFound,
    InvalidImageError,
    InvalidLanguageError,
    ResultNotAvailableError,
    StoreUnavailableError,
)
from docvault.domain.models import ExtractionJobRecord, FileRecord, categorize_filename
from docvault.infra.ports.ocr import ExtractionStrategy, StrategyOutput
from docvault.infra.ports.storage import StoragePort
from docvault.utils.ids import new_public_id

logger = logging.getLogger(__name__)

_LANGUAGE_PATTERN = re.compile(r"^[A-Za-z0-9_]+(\+[A-Za-z0-9_]+)*$")
_DATA_URL_PREFIX = re.compile(r"^data:[^,]*;base64,", re.IGNORECASE)

# Typical extraction time used for the progress estimate.
_EXPECTED_RUN_SECONDS = 30.0

_STATUS_MESSAGES = {
    "pending": "OCR processing has not started yet",
    "processing": "OCR processing is in progress",
    "completed": "OCR processing completed successfully",
    "failed": "OCR processing failed",
}


def resolve_language(language: str | None, default: str) -> str:
    """Return the tesseract language string to pass, e.g. ``kor+eng``."""
    value = (language or "").strip()
    if not value:
        return default
    if not _LANGUAGE_PATTERN.match(value):
        raise InvalidLanguageError(f"Invalid OCR language code: {value!r}")
    return value


class FileWriterPort(Protocol):
    def create_file(
        self,
        *,
        file_id: str,
        name: str,
        content_type: str,
        extension: str,
        mime_type: str | None,
        size_bytes: int,
        storage_ref: str,
    ) -> FileRecord:
        ...


class JobReaderPort(Protocol):
    def find_job_by_file_id(self, file_id: str) -> ExtractionJobRecord | None:
        ...

    def get_job(self, job_id: str) -> ExtractionJobRecord | None:
        ...

    def list_recent_jobs(self, *, limit: int = 20, status: str | None = None) -> list[ExtractionJobRecord]:
        ...


class FileApplicationService:
    def __init__(self, *, store: FileWriterPort, storage: StoragePort):
        self.store = store
        self.storage = storage

    def upload(self, *, filename: str | None, mime_type: str | None, payload: bytes) -> FileRecord:
        name = (filename or "").strip() or "untitled"
        content_type, extension = categorize_filename(name)
        file_id = new_public_id("file_")
        key = f"{file_id}/source.{extension or 'bin'}"

        self.storage.save_bytes(key, payload, mime_type)
        record = self.store.create_file(
            file_id=file_id,
            name=name,
            content_type=content_type,
            extension=extension,
            mime_type=mime_type,
            size_bytes=len(payload),
            storage_ref=key,
        )
        logger.info("Stored file %s (%s, %d bytes)", file_id, content_type, len(payload))
        return record


class ExtractionDispatcher:
    """Creates or resets the job for a file and hands the run to the background runner."""

    def __init__(
        self,
        *,
        files: FileCatalogPort,
        jobs: JobStorePort,
        lifecycle: ExtractionLifecycleManager,
        runner: BackgroundRunner,
        default_language: str = "eng",
    ):
        self.files = files
        self.jobs = jobs
        self.lifecycle = lifecycle
        self.runner = runner
        self.default_language = default_language

    def resolve_language(self, language: str | None) -> str:
        return resolve_language(language, self.default_language)

    def submit(self, *, file_id: str, language: str | None = None) -> ExtractionJobRecord:
        lang = self.resolve_language(language)
        run_token = new_public_id("run_")

        try:
            file = self.files.get_file(file_id)
            if file is None:
                raise FileRecordNotFound(file_id)
            job = self._create_or_reset(file=file, language=lang, run_token=run_token)
        except DocvaultError:
            raise
        except Exception as exc:
            logger.exception("Job store write failed for file %s", file_id)
            raise StoreUnavailableError(f"Could not record extraction job for file {file_id}") from exc

        logger.info("Dispatching job %s for file %s (lang=%s)", job.job_id, file_id, lang)
        self.runner.submit(
            self.lifecycle.run,
            job_id=job.job_id,
            file_id=file_id,
            language=lang,
            run_token=run_token,
        )
        return job

    @staticmethod
    def _initial_metadata(file: FileRecord, language: str) -> dict[str, Any]:
        return {
            "initializing": True,
            "fileSize": file.size_bytes,
            "extension": file.extension,
            "language": language,
        }

    def _create_or_reset(self, *, file: FileRecord, language: str, run_token: str) -> ExtractionJobRecord:
        metadata = self._initial_metadata(file, language)
        existing = self.jobs.find_job_by_file_id(file.file_id)
        if existing is None:
            try:
                return self.jobs.create_job(
                    file_id=file.file_id,
                    language=language,
                    run_token=run_token,
                    metadata=metadata,
                )
            except DuplicateJobError:
                # Lost the insert race; reuse the winner's row.
                existing = self.jobs.find_job_by_file_id(file.file_id)
                if existing is None:
                    raise StoreUnavailableError(f"Extraction job for file {file.file_id} could not be resolved")

        reset = self.jobs.update_job(
            existing.job_id,
            {
                "status": "processing",
                "text": "",
                "confidence": 0,
                "page_count": 0,
                "processing_time_ms": 0,
                "error": None,
                "language": language,
                "run_token": run_token,
                "metadata": metadata,
            },
        )
        if reset is None:
            raise StoreUnavailableError(f"Extraction job {existing.job_id} disappeared during reset")
        return reset


class ResultArchiveService:
    """Stores a completed extraction's text back into the vault as a new ``.txt`` file."""

    def __init__(self, *, jobs: JobReaderPort, uploads: FileApplicationService):
        self.jobs = jobs
        self.uploads = uploads

    def save_as_file(self, *, file_id: str, file_name: str) -> FileRecord:
        job = self.jobs.find_job_by_file_id(file_id)
        if job is None or job.status != "completed" or not job.text:
            raise ResultNotAvailableError("OCR result not found or processing not complete")

        name = file_name.strip() or file_id
        record = self.uploads.upload(
            filename=f"{name}.txt",
            mime_type="text/plain",
            payload=job.text.encode("utf-8"),
        )
        logger.info("Saved OCR text of file %s as file %s", file_id, record.file_id)
        return record


def decode_image_payload(image: str) -> bytes:
    raw = _DATA_URL_PREFIX.sub("", image.strip(), count=1)
    try:
        payload = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidImageError("Image data is not valid base64") from exc
    if not payload:
        raise InvalidImageError("Image data is empty")
    return payload


class ImageRecognitionService:
    """Runs the image strategy inline on a base64 payload; nothing is stored."""

    def __init__(self, *, strategy: ExtractionStrategy, default_language: str = "eng"):
        self.strategy = strategy
        self.default_language = default_language

    def recognize(self, *, image: str, language: str | None = None) -> StrategyOutput:
        lang = resolve_language(language, self.default_language)
        payload = decode_image_payload(image)
        started = time.monotonic()
        output = self.strategy.extract(payload, language=lang)
        logger.info(
            "Inline OCR via %s: %d bytes, %d chars in %.2fs",
            output.method,
            len(payload),
            len(output.text),
            time.monotonic() - started,
        )
        return output


@dataclass
class JobStatusView:
    status: str
    message: str
    progress: int
    stalled: bool = False
    job: ExtractionJobRecord | None = None


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ExtractionQueryService:
    def __init__(
        self,
        *,
        jobs: JobReaderPort,
        stale_after_seconds: int = 60,
        clock: Callable[[], datetime] | None = None,
    ):
        self.jobs = jobs
        self.stale_after_seconds = stale_after_seconds
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def get_job(self, job_id: str) -> ExtractionJobRecord | None:
        return self.jobs.get_job(job_id)

    def get_result(self, file_id: str) -> ExtractionJobRecord | None:
        return self.jobs.find_job_by_file_id(file_id)

    def list_recent(self, *, limit: int = 20, status: str | None = None) -> list[ExtractionJobRecord]:
        return self.jobs.list_recent_jobs(limit=limit, status=status)

    def status_for_file(self, file_id: str) -> JobStatusView:
        job = self.jobs.find_job_by_file_id(file_id)
        if job is None:
            return JobStatusView(status="pending", message=_STATUS_MESSAGES["pending"], progress=0)
        return self.describe(job)

    def describe(self, job: ExtractionJobRecord) -> JobStatusView:
        message = _STATUS_MESSAGES.get(job.status, "Unknown status")
        if job.status == "completed":
            return JobStatusView(status=job.status, message=message, progress=100, job=job)
        if job.is_terminal:
            return JobStatusView(status=job.status, message=message, progress=0, job=job)

        started = _parse_timestamp(job.updated_at) or _parse_timestamp(job.created_at)
        elapsed = (self.clock() - started).total_seconds() if started else 0.0
        progress = int(round(min(95.0, max(10.0, elapsed / _EXPECTED_RUN_SECONDS * 100))))

        stalled = self.stale_after_seconds > 0 and elapsed > self.stale_after_seconds
        if stalled:
            message = "OCR processing is taking longer than expected."
        return JobStatusView(status=job.status, message=message, progress=progress, stalled=stalled, job=job)
