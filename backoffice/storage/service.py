"""Upload key layout, validation and provider selection."""

import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Optional

from slugify import slugify

from backoffice.common.constants import UserRole
from backoffice.common.exceptions import (
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from backoffice.config import settings
from backoffice.organization.models import User
from backoffice.storage.blob_provider import BlobStorageProvider
from backoffice.storage.local_provider import LocalStorageProvider
from backoffice.storage.provider import StorageProvider
from backoffice.storage.schemas import DownloadUrlResponse, PresignRequest, PresignResponse

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES: frozenset[str] = frozenset({
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "text/csv",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
})

KEY_ROOT = "uploads"


def get_storage() -> StorageProvider:
    """FastAPI dependency: the provider named by ``STORAGE_BACKEND``."""
    if settings.STORAGE_BACKEND == "blob":
        return BlobStorageProvider()
    return LocalStorageProvider()


def tenant_prefix(business_unit_id: Optional[uuid.UUID]) -> str:
    return f"{KEY_ROOT}/{business_unit_id or 'shared'}/"


def build_key(
    business_unit_id: Optional[uuid.UUID],
    file_name: str,
    folder: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> str:
    """``uploads/{bu}/{folder}/{YYYY}/{MM}/{uuid}_{slug}{ext}``"""
    now = now or datetime.now(timezone.utc)
    stem, ext = os.path.splitext(file_name)
    safe_name = slugify(stem) or "file"
    safe_folder = slugify(folder or "files") or "files"
    return (
        f"{tenant_prefix(business_unit_id)}{safe_folder}/{now:%Y}/{now:%m}/"
        f"{uuid.uuid4().hex}_{safe_name}{ext.lower()}"
    )


def validate_upload(content_type: str, size_bytes: int) -> None:
    errors: dict[str, list[str]] = {}
    if content_type.lower() not in ALLOWED_CONTENT_TYPES:
        errors["content_type"] = [f"Content type '{content_type}' is not allowed."]
    max_bytes = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024
    if size_bytes > max_bytes:
        errors["size_bytes"] = [f"File exceeds the {settings.MAX_UPLOAD_SIZE_MB} MB limit."]
    if errors:
        raise ValidationException(errors)


class UploadService:

    @staticmethod
    def presign(storage: StorageProvider, user: User, data: PresignRequest) -> PresignResponse:
        validate_upload(data.content_type, data.size_bytes)
        key = build_key(user.business_unit_id, data.file_name, data.folder)
        expires = settings.UPLOAD_URL_EXPIRY_SECONDS
        url = storage.generate_upload_url(key, data.content_type, expires)
        logger.info("Issued %s upload URL for %s to %s", storage.name, key, user.employee_id)
        return PresignResponse(
            key=key,
            upload_url=url,
            headers=storage.upload_headers(data.content_type),
            expires_in=expires,
        )

    @staticmethod
    def download_url(storage: StorageProvider, user: User, key: str) -> DownloadUrlResponse:
        key = key.lstrip("/")
        if not key.startswith(f"{KEY_ROOT}/") or ".." in key.split("/"):
            raise ValidationException({"key": ["Unknown upload key."]})
        if user.role != UserRole.ADMIN and not (
            key.startswith(tenant_prefix(user.business_unit_id))
            or key.startswith(tenant_prefix(None))
        ):
            raise ForbiddenException("You do not have access to this file.")

        expires = settings.UPLOAD_URL_EXPIRY_SECONDS
        url = storage.get_download_url(key, expires) if storage.exists(key) else None
        if url is None:
            raise NotFoundException("Upload", key)
        return DownloadUrlResponse(key=key, url=url, expires_in=expires)
