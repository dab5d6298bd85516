from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

JobStatus = Literal["processing", "completed", "failed"]
FileCategory = Literal["image", "video", "audio", "document", "other"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})

_CATEGORY_EXTENSIONS: dict[str, frozenset[str]] = {
    "image": frozenset({"jpg", "jpeg", "png", "gif", "svg", "webp"}),
    "video": frozenset({"mp4", "webm", "mov", "avi"}),
    "audio": frozenset({"mp3", "wav", "ogg"}),
    "document": frozenset({"pdf", "doc", "docx", "txt", "xls", "xlsx", "ppt", "pptx"}),
}


class ContentKind(str, Enum):
    NATIVE_DOCUMENT = "native_document"
    IMAGE = "image"
    UNSUPPORTED = "unsupported"


def categorize_filename(filename: str | None) -> tuple[FileCategory, str]:
    """Return ``(category, extension)`` for an uploaded file name."""
    name = (filename or "").strip()
    extension = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    for category, extensions in _CATEGORY_EXTENSIONS.items():
        if extension in extensions:
            return category, extension  # type: ignore[return-value]
    return "other", extension


def classify_content(content_type: str | None, extension: str | None) -> ContentKind:
    category = (content_type or "").strip().lower()
    ext = (extension or "").strip().lower().lstrip(".")
    if category == "document" and ext == "pdf":
        return ContentKind.NATIVE_DOCUMENT
    if category == "image":
        return ContentKind.IMAGE
    return ContentKind.UNSUPPORTED


@dataclass
class FileRecord:
    file_id: str
    name: str
    content_type: str
    extension: str
    mime_type: str | None
    size_bytes: int
    storage_ref: str
    created_at: str | None = None


@dataclass
class ExtractionJobRecord:
    job_id: str
    file_id: str
    status: JobStatus
    text: str = ""
    confidence: int = 0
    page_count: int = 0
    processing_time_ms: int = 0
    error: str | None = None
    language: str | None = None
    run_token: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
