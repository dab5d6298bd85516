"""Error types raised by the extraction pipeline."""

from __future__ import annotations


class DocvaultError(Exception):
    """Base class for expected pipeline errors."""


class FileRecordNotFound(DocvaultError):
    def __init__(self, file_id: str):
        super().__init__(f"File not found: {file_id}")
        self.file_id = file_id


class InvalidLanguageError(DocvaultError, ValueError):
    pass


class StoreUnavailableError(DocvaultError):
    pass


class DuplicateJobError(DocvaultError):
    """Another writer created the job for this file first."""


class UnsupportedContentError(DocvaultError):
    pass


class EngineUnavailableError(DocvaultError):
    pass


class ResultNotAvailableError(DocvaultError):
    """The file has no completed extraction text yet."""


class InvalidImageError(DocvaultError, ValueError):
    pass
