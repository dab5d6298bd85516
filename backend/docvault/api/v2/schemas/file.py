from pydantic import BaseModel


class FileDetailResponse(BaseModel):
    fileId: str
    name: str
    contentType: str
    extension: str
    mimeType: str | None = None
    size: int
    url: str
    createdAt: str | None = None
