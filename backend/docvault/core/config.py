from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _load_dotenv() -> None:
    if os.getenv("DOCVAULT_SKIP_DOTENV") == "1":
        return

    env_path = Path(__file__).resolve().parents[2] / ".env"
    if not env_path.exists():
        return

    from dotenv import load_dotenv

    load_dotenv(env_path, override=True)


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_non_negative_int(value: str | None, default: int = 0) -> int:
    if value is None:
        return default
    raw = value.strip()
    if not raw:
        return default
    try:
        return max(0, int(raw))
    except ValueError:
        return default


def _parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


@dataclass(frozen=True)
class Settings:
    env: str
    app_name: str
    cors_origins: list[str]
    upload_dir: Path
    work_dir: Path
    database_url: str | None
    storage_backend: str
    ocr_backend: str
    tesseract_cmd: str
    ocr_lang: str
    ocr_timeout_seconds: int
    max_inflight_jobs: int
    job_stale_after_seconds: int
    sync_processing: bool
    host: str
    port: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    _load_dotenv()

    env = os.getenv("DOCVAULT_ENV", "development")
    cors = os.getenv("DOCVAULT_CORS_ORIGINS", "http://localhost:3000")
    upload_dir = Path(os.getenv("DOCVAULT_UPLOAD_DIR", "backend/uploads"))
    work_dir = Path(os.getenv("DOCVAULT_WORK_DIR") or tempfile.gettempdir())
    storage_backend = os.getenv("DOCVAULT_STORAGE_BACKEND", "local").lower()
    ocr_backend = os.getenv("DOCVAULT_OCR_BACKEND", "tesseract").strip().lower() or "tesseract"
    tesseract_cmd = os.getenv("DOCVAULT_TESSERACT_CMD", "tesseract").strip() or "tesseract"
    ocr_lang = os.getenv("DOCVAULT_OCR_LANG", "eng").strip() or "eng"
    ocr_timeout_seconds = _parse_non_negative_int(os.getenv("DOCVAULT_OCR_TIMEOUT_SECONDS"), default=120)
    max_inflight_jobs = _parse_non_negative_int(os.getenv("DOCVAULT_MAX_INFLIGHT_JOBS"), default=4) or 4
    job_stale_after_seconds = _parse_non_negative_int(os.getenv("DOCVAULT_JOB_STALE_AFTER_SECONDS"), default=60)
    sync_processing = _parse_bool(os.getenv("DOCVAULT_SYNC_PROCESSING"), default=False)
    host = os.getenv("DOCVAULT_HOST", "127.0.0.1").strip() or "127.0.0.1"
    port = _parse_non_negative_int(os.getenv("DOCVAULT_PORT"), default=8000) or 8000

    return Settings(
        env=env,
        app_name="Docvault OCR API",
        cors_origins=_split_csv(cors),
        upload_dir=upload_dir,
        work_dir=work_dir,
        database_url=os.getenv("DATABASE_URL") or None,
        storage_backend=storage_backend,
        ocr_backend=ocr_backend,
        tesseract_cmd=tesseract_cmd,
        ocr_lang=ocr_lang,
        ocr_timeout_seconds=ocr_timeout_seconds,
        max_inflight_jobs=max_inflight_jobs,
        job_stale_after_seconds=job_stale_after_seconds,
        sync_processing=sync_processing,
        host=host,
        port=port,
    )
