from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol

from docvault.domain.errors import FileRecordNotFound, UnsupportedContentError
from docvault.domain.models import ContentKind, ExtractionJobRecord, FileRecord, classify_content
from docvault.infra.ports.ocr import ExtractionStrategy, StrategyOutput
from docvault.infra.ports.storage import StoragePort

logger = logging.getLogger(__name__)


class FileCatalogPort(Protocol):
    def get_file(self, file_id: str) -> FileRecord | None:
        ...


class JobStorePort(Protocol):
    def find_job_by_file_id(self, file_id: str) -> ExtractionJobRecord | None:
        ...

    def create_job(
        self,
        *,
        file_id: str,
        language: str,
        run_token: str,
        metadata: dict[str, Any] | None = None,
    ) -> ExtractionJobRecord:
        ...

    def update_job(
        self,
        job_id: str,
        fields: dict[str, Any],
        *,
        expected_run_token: str | None = None,
    ) -> ExtractionJobRecord | None:
        ...


def _elapsed_ms(started: float) -> int:
    return int(round((time.monotonic() - started) * 1000))


class ExtractionLifecycleManager:
    """Drives one extraction run from ``processing`` to a terminal state.

    Every failure after the job record exists is written into the record;
    ``run`` itself never raises.
    """

    def __init__(
        self,
        *,
        files: FileCatalogPort,
        jobs: JobStorePort,
        storage: StoragePort,
        strategies: Mapping[ContentKind, ExtractionStrategy],
    ):
        self.files = files
        self.jobs = jobs
        self.storage = storage
        self.strategies = dict(strategies)

    def select_strategy(self, file: FileRecord) -> ExtractionStrategy:
        kind = classify_content(file.content_type, file.extension)
        strategy = self.strategies.get(kind)
        if kind is ContentKind.UNSUPPORTED or strategy is None:
            raise UnsupportedContentError(f"Unsupported file type for OCR: {file.content_type}")
        return strategy

    def run(self, *, job_id: str, file_id: str, language: str, run_token: str | None = None) -> None:
        started = time.monotonic()
        file: FileRecord | None = None
        strategy: ExtractionStrategy | None = None

        try:
            file = self.files.get_file(file_id)
            if file is None:
                raise FileRecordNotFound(file_id)
            strategy = self.select_strategy(file)
            payload = self.storage.download_bytes(file.storage_ref)
            logger.info(
                "Running %s on file %s (%d bytes, lang=%s) for job %s",
                strategy.method_name,
                file_id,
                len(payload),
                language,
                job_id,
            )
            output = strategy.extract(payload, language=language)
        except Exception as exc:
            elapsed_ms = _elapsed_ms(started)
            logger.exception("Extraction failed for job %s (file %s)", job_id, file_id)
            fields = self._failed_fields(
                exc=exc,
                file=file,
                strategy=strategy,
                language=language,
                elapsed_ms=elapsed_ms,
            )
        else:
            elapsed_ms = _elapsed_ms(started)
            logger.info(
                "Extraction completed for job %s: %d pages, %d chars in %d ms",
                job_id,
                output.page_count,
                len(output.text),
                elapsed_ms,
            )
            fields = self._completed_fields(
                output=output,
                file=file,
                language=language,
                elapsed_ms=elapsed_ms,
            )

        self._write_terminal(job_id=job_id, file_id=file_id, run_token=run_token, fields=fields)

    @staticmethod
    def _base_metadata(file: FileRecord | None, language: str) -> dict[str, Any]:
        return {
            "extension": file.extension if file else "",
            "fileSize": file.size_bytes if file else 0,
            "mimeType": (file.mime_type or "") if file else "",
            "language": language,
            "processingDate": datetime.now(timezone.utc).isoformat(),
        }

    def _completed_fields(
        self,
        *,
        output: StrategyOutput,
        file: FileRecord | None,
        language: str,
        elapsed_ms: int,
    ) -> dict[str, Any]:
        metadata = self._base_metadata(file, language)
        metadata["processingMethod"] = output.method
        return {
            "status": "completed",
            "text": output.text,
            "confidence": max(0, min(100, int(output.confidence))),
            "page_count": max(0, int(output.page_count)),
            "processing_time_ms": elapsed_ms,
            "error": None,
            "metadata": metadata,
        }

    def _failed_fields(
        self,
        *,
        exc: Exception,
        file: FileRecord | None,
        strategy: ExtractionStrategy | None,
        language: str,
        elapsed_ms: int,
    ) -> dict[str, Any]:
        message = str(exc) or type(exc).__name__
        metadata = self._base_metadata(file, language)
        metadata["processingMethod"] = strategy.method_name if strategy else None
        metadata["error"] = message
        metadata["errorType"] = type(exc).__name__
        return {
            "status": "failed",
            # Stored as text too so clients that only render text still see the reason.
            "text": f"OCR processing failed: {message}",
            "confidence": 0,
            "page_count": 0,
            "processing_time_ms": elapsed_ms,
            "error": message,
            "metadata": metadata,
        }

    def _write_terminal(
        self,
        *,
        job_id: str,
        file_id: str,
        run_token: str | None,
        fields: dict[str, Any],
    ) -> None:
        try:
            current = self.jobs.find_job_by_file_id(file_id)
            if current is None:
                logger.error("Job for file %s vanished before the final write (job %s)", file_id, job_id)
                return
            if current.job_id != job_id:
                logger.warning("Job for file %s is now %s, writing there instead of %s", file_id, current.job_id, job_id)

            updated = self.jobs.update_job(current.job_id, fields, expected_run_token=run_token)
            if updated is None:
                logger.info("Dropping stale %s result for job %s; a newer run owns it", fields["status"], current.job_id)
                return
            logger.info("Job %s finished with status %s", updated.job_id, updated.status)
        except Exception:
            # Nothing else to fall back to; the job stays in processing.
            logger.exception("Final write failed for job %s (file %s)", job_id, file_id)
