from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import desc, select, update
from sqlalchemy.exc import IntegrityError

from docvault.domain.errors import DuplicateJobError
from docvault.domain.models import ExtractionJobRecord, FileRecord
from docvault.infra.db.models import ExtractionJobRow, FileRow
from docvault.infra.db.session import get_session_factory
from docvault.utils.ids import new_public_id

# Record field name -> mapped attribute on ExtractionJobRow.
_JOB_FIELDS: dict[str, str] = {
    "status": "status",
    "text": "text",
    "confidence": "confidence",
    "page_count": "page_count",
    "processing_time_ms": "processing_time_ms",
    "error": "error_message",
    "language": "language",
    "run_token": "run_token",
    "metadata": "metadata_json",
}


def _isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        # SQLite drops tzinfo; values are written in UTC.
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class DatabaseStore:
    """Persistence layer for file records and extraction jobs."""

    def __init__(self):
        self._session_factory = get_session_factory()

    @staticmethod
    def _to_file_record(row: FileRow) -> FileRecord:
        return FileRecord(
            file_id=row.public_id,
            name=row.name,
            content_type=row.content_type,
            extension=row.extension,
            mime_type=row.mime_type,
            size_bytes=row.size_bytes,
            storage_ref=row.storage_ref,
            created_at=_isoformat(row.created_at),
        )

    @staticmethod
    def _to_job_record(row: ExtractionJobRow) -> ExtractionJobRecord:
        return ExtractionJobRecord(
            job_id=row.public_id,
            file_id=row.file_id,
            status=row.status,  # type: ignore[arg-type]
            text=row.text or "",
            confidence=row.confidence or 0,
            page_count=row.page_count or 0,
            processing_time_ms=row.processing_time_ms or 0,
            error=row.error_message,
            language=row.language,
            run_token=row.run_token,
            metadata=dict(row.metadata_json or {}),
            created_at=_isoformat(row.created_at),
            updated_at=_isoformat(row.updated_at),
        )

    # -- file collaborator -------------------------------------------------

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
        with self._session_factory() as db:
            row = FileRow(
                public_id=file_id,
                name=name,
                content_type=content_type,
                extension=extension,
                mime_type=mime_type,
                size_bytes=size_bytes,
                storage_ref=storage_ref,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return self._to_file_record(row)

    def get_file(self, file_id: str) -> FileRecord | None:
        with self._session_factory() as db:
            row = db.execute(select(FileRow).where(FileRow.public_id == file_id)).scalar_one_or_none()
            if row is None:
                return None
            return self._to_file_record(row)

    # -- job store -----------------------------------------------------------

    def find_job_by_file_id(self, file_id: str) -> ExtractionJobRecord | None:
        with self._session_factory() as db:
            row = (
                db.execute(select(ExtractionJobRow).where(ExtractionJobRow.file_id == file_id))
                .scalar_one_or_none()
            )
            if row is None:
                return None
            return self._to_job_record(row)

    def create_job(
        self,
        *,
        file_id: str,
        language: str,
        run_token: str,
        metadata: dict[str, Any] | None = None,
    ) -> ExtractionJobRecord:
        now = datetime.now(timezone.utc)
        with self._session_factory() as db:
            row = ExtractionJobRow(
                public_id=new_public_id("job_"),
                file_id=file_id,
                status="processing",
                text="",
                confidence=0,
                page_count=0,
                processing_time_ms=0,
                error_message=None,
                language=language,
                run_token=run_token,
                metadata_json=dict(metadata or {}),
                created_at=now,
                updated_at=now,
            )
            db.add(row)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise DuplicateJobError(f"Extraction job already exists for file {file_id}") from exc
            db.refresh(row)
            return self._to_job_record(row)

    def update_job(
        self,
        job_id: str,
        fields: dict[str, Any],
        *,
        expected_run_token: str | None = None,
    ) -> ExtractionJobRecord | None:
        """Apply ``fields`` to a job by id.

        When ``expected_run_token`` is given the write only lands if the row
        still carries that token. Returns ``None`` when nothing was updated.
        """
        unknown = set(fields) - set(_JOB_FIELDS)
        if unknown:
            raise ValueError(f"Unknown job fields: {sorted(unknown)}")

        values: dict[Any, Any] = {getattr(ExtractionJobRow, _JOB_FIELDS[key]): value for key, value in fields.items()}
        values[ExtractionJobRow.updated_at] = datetime.now(timezone.utc)

        stmt = update(ExtractionJobRow).where(ExtractionJobRow.public_id == job_id)
        if expected_run_token is not None:
            stmt = stmt.where(ExtractionJobRow.run_token == expected_run_token)

        with self._session_factory() as db:
            result = db.execute(stmt.values(values))
            if result.rowcount == 0:
                db.rollback()
                return None
            db.commit()

            row = db.execute(select(ExtractionJobRow).where(ExtractionJobRow.public_id == job_id)).scalar_one()
            return self._to_job_record(row)

    def get_job(self, job_id: str) -> ExtractionJobRecord | None:
        with self._session_factory() as db:
            row = db.execute(select(ExtractionJobRow).where(ExtractionJobRow.public_id == job_id)).scalar_one_or_none()
            if row is None:
                return None
            return self._to_job_record(row)

    def list_recent_jobs(self, *, limit: int = 20, status: str | None = None) -> list[ExtractionJobRecord]:
        with self._session_factory() as db:
            stmt = select(ExtractionJobRow)
            if status:
                stmt = stmt.where(ExtractionJobRow.status == status)
            stmt = stmt.order_by(desc(ExtractionJobRow.created_at), desc(ExtractionJobRow.id)).limit(limit)
            rows = db.execute(stmt).scalars().all()
            return [self._to_job_record(row) for row in rows]
