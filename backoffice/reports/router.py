"""Report router — depreciation, damaged/loss and deployment reports.

Readable by any user of the business unit, like the asset records they
summarise.
"""


import uuid
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.auth.dependencies import ensure_business_unit_access, get_current_user
from backoffice.common.constants import AssetStatus, DeploymentStatus, DepreciationMethod
from backoffice.database import get_db
from backoffice.depreciation.service import today
from backoffice.organization.models import User
from backoffice.reports.schemas import (
    DamagedLossReport,
    DeploymentReportRow,
    DeploymentSummary,
    DepreciationAssetRow,
    DepreciationSummary,
)
from backoffice.reports.service import ReportService, day_end, day_start

router = APIRouter(prefix="", tags=["reports"])


def _scope(user: User, business_unit_id: Optional[uuid.UUID]) -> uuid.UUID:
    bu_id = business_unit_id or user.business_unit_id
    ensure_business_unit_access(user, bu_id)
    return bu_id


def asset_filters(
    category_id: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    depreciation_method: Optional[DepreciationMethod] = Query(None),
    status: Optional[AssetStatus] = Query(None),
    is_fully_depreciated: Optional[bool] = Query(None),
    purchased_from: Optional[date] = Query(None),
    purchased_to: Optional[date] = Query(None),
) -> dict[str, Any]:
    return {
        "category_id": category_id,
        "department_id": department_id,
        "depreciation_method": depreciation_method,
        "status": status,
        "is_fully_depreciated": is_fully_depreciated,
        "purchase_date__from": purchased_from,
        "purchase_date__to": purchased_to,
    }


def deployment_filters(
    employee_id: Optional[uuid.UUID] = Query(None),
    status: Optional[DeploymentStatus] = Query(None),
    deployed_from: Optional[date] = Query(None),
    deployed_to: Optional[date] = Query(None),
) -> dict[str, Any]:
    return {
        "employee_id": employee_id,
        "status": status,
        "deployed_date__from": day_start(deployed_from),
        "deployed_date__to": day_end(deployed_to),
    }


# ── Depreciation ────────────────────────────────────────────────────

@router.get("/depreciation/summary", response_model=DepreciationSummary)
async def depreciation_summary(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    period_start: Optional[date] = Query(None),
    period_end: Optional[date] = Query(None),
    as_of: Optional[date] = Query(None),
    filters: dict = Depends(asset_filters),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ReportService.depreciation_summary(
        db,
        _scope(user, business_unit_id),
        filters,
        as_of=as_of or today(),
        period_start=period_start,
        period_end=period_end,
    )


@router.get("/depreciation/assets", response_model=list[DepreciationAssetRow])
async def depreciation_assets(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    filters: dict = Depends(asset_filters),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ReportService.depreciation_assets(db, _scope(user, business_unit_id), filters)


# ── Damaged / lost ──────────────────────────────────────────────────

@router.get("/damaged-loss", response_model=DamagedLossReport)
async def damaged_loss(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    category_id: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    purchased_from: Optional[date] = Query(None),
    purchased_to: Optional[date] = Query(None),
    include_disposed: bool = Query(False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    filters = {
        "category_id": category_id,
        "department_id": department_id,
        "purchase_date__from": purchased_from,
        "purchase_date__to": purchased_to,
    }
    return await ReportService.damaged_loss(
        db, _scope(user, business_unit_id), filters, include_disposed=include_disposed,
    )


# ── Deployments ─────────────────────────────────────────────────────

@router.get("/deployments", response_model=list[DeploymentReportRow])
async def deployments(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    category_id: Optional[uuid.UUID] = Query(None),
    include_returned: bool = Query(False),
    filters: dict = Depends(deployment_filters),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ReportService.deployments(
        db,
        _scope(user, business_unit_id),
        filters,
        department_id=department_id,
        category_id=category_id,
        include_returned=include_returned,
    )


@router.get("/deployments/summary", response_model=DeploymentSummary)
async def deployment_summary(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    category_id: Optional[uuid.UUID] = Query(None),
    filters: dict = Depends(deployment_filters),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ReportService.deployment_summary(
        db,
        _scope(user, business_unit_id),
        filters,
        department_id=department_id,
        category_id=category_id,
    )
