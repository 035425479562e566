"""Uploads router — presigned upload / download URLs.

The ``/local`` routes are the byte endpoints of the local provider; the
signed token in the query string authenticates them.
"""


import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import FileResponse, Response
from starlette.concurrency import run_in_threadpool

from backoffice.auth.dependencies import get_current_user
from backoffice.common.exceptions import (
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from backoffice.common.rate_limit import PRESIGN_RATE_LIMIT, limiter
from backoffice.config import settings
from backoffice.organization.models import User
from backoffice.storage.local_provider import LocalStorageProvider
from backoffice.storage.provider import StorageProvider
from backoffice.storage.schemas import DownloadUrlResponse, PresignRequest, PresignResponse
from backoffice.storage.service import UploadService, get_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["uploads"])


@router.post("/presign", response_model=PresignResponse)
@limiter.limit(PRESIGN_RATE_LIMIT)
async def presign_upload(
    request: Request,
    body: PresignRequest,
    user: User = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    return await run_in_threadpool(UploadService.presign, storage, user, body)


@router.get("/download-url", response_model=DownloadUrlResponse)
async def download_url(
    key: str = Query(..., min_length=1),
    user: User = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    return await run_in_threadpool(UploadService.download_url, storage, user, key)


# ── Local provider byte endpoints ───────────────────────────────────

def _local(storage: StorageProvider) -> LocalStorageProvider:
    if not isinstance(storage, LocalStorageProvider):
        raise NotFoundException("Route", "local storage")
    return storage


@router.put("/local/{key:path}", status_code=201)
async def local_upload(
    key: str,
    request: Request,
    token: str = Query(...),
    storage: StorageProvider = Depends(get_storage),
):
    local = _local(storage)
    if not local.verify_token(token, key, "write"):
        raise ForbiddenException("Upload URL is invalid or has expired.")
    body = await request.body()
    if len(body) > settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024:
        raise ValidationException({"file": [f"File exceeds the {settings.MAX_UPLOAD_SIZE_MB} MB limit."]})
    try:
        size = await run_in_threadpool(local.write, key, body)
    except ValueError as exc:
        raise ValidationException({"key": [str(exc)]})
    return Response(status_code=201, headers={"X-Stored-Bytes": str(size)})


@router.get("/local/{key:path}")
async def local_download(
    key: str,
    token: str = Query(...),
    storage: StorageProvider = Depends(get_storage),
):
    local = _local(storage)
    if not local.verify_token(token, key, "read"):
        raise ForbiddenException("Download URL is invalid or has expired.")
    if not local.exists(key):
        raise NotFoundException("Upload", key)
    return FileResponse(local.path_for(key))
