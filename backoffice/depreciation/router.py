"""Depreciation router — manual calculation, preview, schedules and executions."""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.auth.dependencies import (
    ensure_business_unit_access,
    get_current_user,
    require_role,
)
from backoffice.common.constants import ExecutionStatus, UserRole
from backoffice.common.pagination import PaginationParams
from backoffice.database import get_db
from backoffice.depreciation.schemas import (
    BatchCalculateRequest,
    CalculateAssetRequest,
    DepreciationRecordOut,
    DepreciationSummary,
    ExecutionDetail,
    PreviewResult,
    ScheduleCreate,
    ScheduleOut,
    ScheduleUpdate,
)
from backoffice.depreciation.service import (
    DepreciationService,
    ExecutionService,
    ScheduleService,
)
from backoffice.organization.models import User

router = APIRouter(prefix="", tags=["depreciation"])

_accounting = require_role(UserRole.ACCTG)


# ── Manual calculation ──────────────────────────────────────────────

@router.post("/assets/{asset_id}/calculate", response_model=DepreciationRecordOut, status_code=201)
async def calculate_asset(
    asset_id: uuid.UUID,
    body: CalculateAssetRequest,
    user: User = Depends(_accounting),
    db: AsyncSession = Depends(get_db),
):
    asset = await DepreciationService.load_asset(db, asset_id)
    ensure_business_unit_access(user, asset.business_unit_id)
    return await DepreciationService.calculate_asset(db, asset, body, user)


@router.get("/assets/{asset_id}/history", response_model=list[DepreciationRecordOut])
async def asset_depreciation_history(
    asset_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    asset = await DepreciationService.load_asset(db, asset_id)
    ensure_business_unit_access(user, asset.business_unit_id)
    return await DepreciationService.asset_history(db, asset_id)


@router.post("/batch", response_model=ExecutionDetail, status_code=201)
async def calculate_batch(
    body: BatchCalculateRequest,
    user: User = Depends(_accounting),
    db: AsyncSession = Depends(get_db),
):
    """Depreciate every due asset of a business unit (month end only)."""
    ensure_business_unit_access(user, body.business_unit_id)
    return await DepreciationService.calculate_batch(db, body, user)


@router.get("/preview", response_model=PreviewResult)
async def preview_depreciation(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    calculation_date: Optional[date] = Query(None),
    category_id: Optional[uuid.UUID] = Query(None),
    user: User = Depends(_accounting),
    db: AsyncSession = Depends(get_db),
):
    bu_id = business_unit_id or user.business_unit_id
    ensure_business_unit_access(user, bu_id)
    return await DepreciationService.preview(db, bu_id, calculation_date, category_id=category_id)


@router.get("/summary", response_model=DepreciationSummary)
async def depreciation_summary(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bu_id = business_unit_id or user.business_unit_id
    ensure_business_unit_access(user, bu_id)
    return await DepreciationService.summary(db, bu_id)


# ── Schedules ───────────────────────────────────────────────────────

@router.get("/schedules", response_model=list[ScheduleOut])
async def list_schedules(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    include_inactive: bool = Query(True),
    user: User = Depends(_accounting),
    db: AsyncSession = Depends(get_db),
):
    bu_id = business_unit_id or user.business_unit_id
    ensure_business_unit_access(user, bu_id)
    return await ScheduleService.list_schedules(db, bu_id, include_inactive=include_inactive)


@router.post("/schedules", response_model=ScheduleOut, status_code=201)
async def create_schedule(
    body: ScheduleCreate,
    user: User = Depends(_accounting),
    db: AsyncSession = Depends(get_db),
):
    ensure_business_unit_access(user, body.business_unit_id)
    return await ScheduleService.create_schedule(db, body, user)


@router.get("/schedules/{schedule_id}", response_model=ScheduleOut)
async def get_schedule(
    schedule_id: uuid.UUID,
    user: User = Depends(_accounting),
    db: AsyncSession = Depends(get_db),
):
    schedule = await ScheduleService.get_schedule(db, schedule_id)
    ensure_business_unit_access(user, schedule.business_unit_id)
    return schedule


@router.patch("/schedules/{schedule_id}", response_model=ScheduleOut)
async def update_schedule(
    schedule_id: uuid.UUID,
    body: ScheduleUpdate,
    user: User = Depends(_accounting),
    db: AsyncSession = Depends(get_db),
):
    schedule = await ScheduleService.get_schedule(db, schedule_id)
    ensure_business_unit_access(user, schedule.business_unit_id)
    return await ScheduleService.update_schedule(db, schedule, body, user)


@router.post("/schedules/{schedule_id}/toggle", response_model=ScheduleOut)
async def toggle_schedule(
    schedule_id: uuid.UUID,
    user: User = Depends(_accounting),
    db: AsyncSession = Depends(get_db),
):
    schedule = await ScheduleService.get_schedule(db, schedule_id)
    ensure_business_unit_access(user, schedule.business_unit_id)
    return await ScheduleService.toggle_schedule(db, schedule, user)


@router.delete("/schedules/{schedule_id}", status_code=204)
async def delete_schedule(
    schedule_id: uuid.UUID,
    user: User = Depends(_accounting),
    db: AsyncSession = Depends(get_db),
):
    schedule = await ScheduleService.get_schedule(db, schedule_id)
    ensure_business_unit_access(user, schedule.business_unit_id)
    await ScheduleService.delete_schedule(db, schedule, user)


# ── Executions ──────────────────────────────────────────────────────

@router.get("/executions")
async def list_executions(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    schedule_id: Optional[uuid.UUID] = Query(None),
    status: Optional[ExecutionStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(_accounting),
    db: AsyncSession = Depends(get_db),
):
    bu_id = business_unit_id or user.business_unit_id
    ensure_business_unit_access(user, bu_id)
    result = await ExecutionService.list_executions(
        db, bu_id, pagination, schedule_id=schedule_id, status=status,
    )
    return result.to_json()


@router.get("/executions/{execution_id}", response_model=ExecutionDetail)
async def get_execution(
    execution_id: uuid.UUID,
    user: User = Depends(_accounting),
    db: AsyncSession = Depends(get_db),
):
    execution = await ExecutionService.get_execution(db, execution_id)
    ensure_business_unit_access(user, execution.business_unit_id)
    return execution
