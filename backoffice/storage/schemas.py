"""Upload API request / response models."""


from typing import Optional

from pydantic import BaseModel, Field


class PresignRequest(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=255)
    content_type: str = Field(..., min_length=1, max_length=100)
    size_bytes: int = Field(..., gt=0)
    folder: Optional[str] = Field(None, max_length=50, description="e.g. material-requests, assets")


class PresignResponse(BaseModel):
    key: str
    upload_url: str
    method: str = "PUT"
    headers: dict[str, str]
    expires_in: int


class DownloadUrlResponse(BaseModel):
    key: str
    url: str
    expires_in: int
