"""Cron and scheduler endpoints.

``/cron/*`` is called by an external scheduler and is guarded by the
``CRON_SECRET`` bearer token. Without a configured secret, GET stays open
but POST still needs a bearer header. Responses use plain
``{"error": ...}`` bodies so cron services can log them as-is.
"""


import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.assets.models import Asset
from backoffice.auth.dependencies import require_role
from backoffice.auth.service import cleanup_expired_sessions
from backoffice.common.constants import UserRole
from backoffice.config import settings
from backoffice.database import get_db
from backoffice.depreciation.models import DepreciationExecution, DepreciationSchedule
from backoffice.depreciation.scheduler import run_due_schedules, run_schedules
from backoffice.depreciation.schemas import TriggerRequest
from backoffice.depreciation.service import ScheduleService, today
from backoffice.organization.models import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["cron"])


def _unauthorized(request: Request) -> Optional[JSONResponse]:
    """401 response for a cron call that fails the bearer check.

    With ``CRON_SECRET`` set every call must present it. Without one, GET is
    open for platform schedulers but POST still needs a Bearer header.
    """
    supplied = request.headers.get("authorization", "")
    secret = settings.CRON_SECRET
    if secret:
        allowed = secrets.compare_digest(supplied.encode(), f"Bearer {secret}".encode())
    else:
        allowed = request.method != "POST" or supplied.startswith("Bearer ")
    if not allowed:
        logger.warning("Rejected cron call from %s", request.client.host if request.client else "?")
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})
    return None


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ── Cron ────────────────────────────────────────────────────────────

@router.api_route("/cron/depreciation", methods=["GET", "POST"])
async def cron_depreciation(request: Request, db: AsyncSession = Depends(get_db)):
    """Run every depreciation schedule due today."""
    denied = _unauthorized(request)
    if denied is not None:
        return denied
    try:
        results = await run_due_schedules(db)
    except Exception as exc:
        logger.exception("Depreciation cron failed")
        return JSONResponse(
            status_code=500,
            content={"error": "Cron job failed", "details": str(exc)},
        )
    return {
        "success": True,
        "message": f"Processed {len(results)} schedules",
        "results": results,
        "executed_at": _now_iso(),
    }


@router.post("/cron/session-cleanup")
async def cron_session_cleanup(request: Request, db: AsyncSession = Depends(get_db)):
    denied = _unauthorized(request)
    if denied is not None:
        return denied
    removed = await cleanup_expired_sessions(db)
    return {"success": True, "deleted": removed, "executed_at": _now_iso()}


# ── Manual trigger ──────────────────────────────────────────────────

@router.post("/admin/depreciation/trigger")
async def trigger_depreciation(
    body: Optional[TriggerRequest] = None,
    user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Run the cron job now; with ``schedule_id`` run that schedule regardless of its day."""
    schedule_id: Optional[uuid.UUID] = body.schedule_id if body else None
    if schedule_id is not None:
        schedule = await ScheduleService.get_schedule(db, schedule_id)
        results = await run_schedules(db, [schedule], today(), executed_by=user.id)
    else:
        results = await run_due_schedules(db)
    logger.info("Depreciation triggered manually by %s", user.employee_id)
    return {
        "success": True,
        "message": "Depreciation schedules triggered manually",
        "results": results,
        "triggered_by": user.name,
        "triggered_at": _now_iso(),
    }


# ── Health ──────────────────────────────────────────────────────────

@router.get("/health/depreciation")
async def depreciation_health(db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(text("SELECT 1"))
        active_schedules = (
            await db.execute(
                select(func.count(DepreciationSchedule.id))
                .where(DepreciationSchedule.is_active.is_(True))
            )
        ).scalar_one()
        recent_executions = (
            await db.execute(
                select(func.count(DepreciationExecution.id)).where(
                    DepreciationExecution.created_at
                    >= datetime.now(timezone.utc) - timedelta(days=7)
                )
            )
        ).scalar_one()
        assets_ready = (
            await db.execute(
                select(func.count(Asset.id)).where(
                    Asset.is_active.is_(True),
                    Asset.depreciation_method.is_not(None),
                    Asset.is_fully_depreciated.is_(False),
                )
            )
        ).scalar_one()
    except Exception as exc:
        logger.exception("Depreciation health check failed")
        return JSONResponse(
            status_code=500,
            content={"status": "unhealthy", "timestamp": _now_iso(), "error": str(exc)},
        )

    return {
        "status": "healthy",
        "timestamp": _now_iso(),
        "database": "connected",
        "scheduler": {
            "active_schedules": active_schedules,
            "recent_executions": recent_executions,
            "assets_ready": assets_ready,
        },
    }
