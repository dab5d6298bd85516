from typing import Any

from pydantic import BaseModel, Field


class JobSubmitRequest(BaseModel):
    fileId: str = Field(min_length=1)
    language: str | None = None


class JobSubmitResponse(BaseModel):
    jobId: str
    fileId: str
    status: str


class JobDetailResponse(BaseModel):
    jobId: str
    fileId: str
    status: str
    text: str = ""
    confidence: int = 0
    pageCount: int = 0
    processingTimeMs: int = 0
    error: str | None = None
    language: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    createdAt: str | None = None
    updatedAt: str | None = None


class JobStatusResponse(BaseModel):
    status: str
    message: str
    progress: int
    stalled: bool = False
    jobId: str | None = None
    error: str | None = None
    pageCount: int = 0
    confidence: int = 0
    processingTimeMs: int = 0
    hasText: bool = False
    createdAt: str | None = None
    updatedAt: str | None = None


class JobListResponse(BaseModel):
    jobs: list[JobDetailResponse]
    count: int


class EngineStatusResponse(BaseModel):
    backend: str
    method: str
    available: bool
    version: str | None = None
    error: str | None = None


class ResultSaveRequest(BaseModel):
    fileId: str = Field(min_length=1)
    fileName: str = Field(min_length=1)


class ImageOcrRequest(BaseModel):
    image: str = Field(min_length=1, description="Base64 image bytes, optionally as a data URL")
    language: str | None = None


class ImageOcrResponse(BaseModel):
    text: str
    confidence: int
    source: str
    pageCount: int = 1
