"""Legacy migration export API.

Read-only JSON dumps consumed by the legacy importer. Guarded by a static
bearer token (``LEGACY_MIGRATION_API_TOKEN``, else ``CRON_SECRET``) rather
than user sessions; errors are plain ``{"error": ...}`` bodies.
"""


import logging
import secrets
import uuid
from typing import Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.common.rate_limit import EXPORT_RATE_LIMIT, limiter
from backoffice.config import settings
from backoffice.database import get_db
from backoffice.legacy_export.service import LegacyExportService, parse_scope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["migration"])

MISSING_SCOPE = "Missing scope. Provide businessUnitId or companyId query param."


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def check_migration_token(request: Request) -> Optional[JSONResponse]:
    configured = settings.migration_token
    if not configured:
        return _error(500, "Legacy migration token is not configured on the server.")

    header = request.headers.get("authorization")
    if not header or not header.startswith("Bearer "):
        return _error(401, "Missing Bearer token.")

    supplied = header[len("Bearer "):].strip()
    if not secrets.compare_digest(supplied.encode(), configured.encode()):
        logger.warning(
            "Rejected migration export call from %s",
            request.client.host if request.client else "?",
        )
        return _error(401, "Invalid migration token.")
    return None


def resolve_scope(request: Request) -> Optional[str]:
    for param in ("businessUnitId", "companyId"):
        value = (request.query_params.get(param) or "").strip()
        if value:
            return value
    return None


async def _export(
    request: Request,
    db: AsyncSession,
    loader: Callable[[AsyncSession, uuid.UUID], Awaitable[list]],
    label: str,
):
    denied = check_migration_token(request)
    if denied is not None:
        return denied
    scope = resolve_scope(request)
    if scope is None:
        return _error(400, MISSING_SCOPE)
    scope_id = parse_scope(scope)
    if scope_id is None:
        return {"data": []}
    try:
        data = await loader(db, scope_id)
    except Exception as exc:
        logger.exception("Migration %s export failed", label)
        return _error(500, str(exc) or f"Unknown error exporting {label}.")
    logger.info("Exported %d %s for scope %s", len(data), label, scope)
    return {"data": data}


@router.get("/employees")
@limiter.limit(EXPORT_RATE_LIMIT)
async def export_employees(request: Request, db: AsyncSession = Depends(get_db)):
    return await _export(request, db, LegacyExportService.employees, "employees")


@router.get("/leave-balances")
@limiter.limit(EXPORT_RATE_LIMIT)
async def export_leave_balances(request: Request, db: AsyncSession = Depends(get_db)):
    return await _export(request, db, LegacyExportService.leave_balances, "leave balances")


@router.get("/leave-requests")
@limiter.limit(EXPORT_RATE_LIMIT)
async def export_leave_requests(request: Request, db: AsyncSession = Depends(get_db)):
    return await _export(request, db, LegacyExportService.leave_requests, "leave requests")


@router.get("/overtime-requests")
@limiter.limit(EXPORT_RATE_LIMIT)
async def export_overtime_requests(request: Request, db: AsyncSession = Depends(get_db)):
    return await _export(
        request, db, LegacyExportService.overtime_requests, "overtime requests",
    )


@router.get("/material-requests")
@limiter.limit(EXPORT_RATE_LIMIT)
async def export_material_requests(request: Request, db: AsyncSession = Depends(get_db)):
    return await _export(
        request, db, LegacyExportService.material_requests, "material requests",
    )
