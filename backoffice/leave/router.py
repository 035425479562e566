"""Leave router — leave types, requests, balances and replenishment.

All endpoints require authentication; type/balance administration is HR-only.
Approvals are served by the approvals router.
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.auth.dependencies import (
    ensure_business_unit_access,
    get_current_user,
    require_role,
)
from backoffice.common.constants import RequestStatus, UserRole
from backoffice.common.pagination import PaginationParams
from backoffice.database import get_db
from backoffice.leave.schemas import (
    InitializeBalancesRequest,
    LeaveBalanceOut,
    LeaveBalanceUpsert,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveRequestUpdate,
    LeaveTypeCreate,
    LeaveTypeOut,
    LeaveTypeUpdate,
    ReplenishRequest,
    ReplenishResult,
)
from backoffice.leave.service import LeaveService, current_year
from backoffice.organization.models import User

router = APIRouter(prefix="", tags=["leave"])


# ── Leave types ─────────────────────────────────────────────────────

@router.get("/types", response_model=list[LeaveTypeOut])
async def list_leave_types(
    include_inactive: bool = Query(False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_leave_types(db, include_inactive=include_inactive)


@router.post("/types", response_model=LeaveTypeOut, status_code=201)
async def create_leave_type(
    body: LeaveTypeCreate,
    user: User = Depends(require_role(UserRole.HR)),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.create_leave_type(db, body, actor_id=user.id)


@router.patch("/types/{leave_type_id}", response_model=LeaveTypeOut)
async def update_leave_type(
    leave_type_id: uuid.UUID,
    body: LeaveTypeUpdate,
    user: User = Depends(require_role(UserRole.HR)),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.update_leave_type(db, leave_type_id, body, actor_id=user.id)


# ── Requests ────────────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
async def submit_leave(
    body: LeaveRequestCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submit a leave request; it starts in PENDING_MANAGER."""
    return await LeaveService.submit_leave(db, user, body)


@router.get("/requests")
async def my_leave_requests(
    status: Optional[RequestStatus] = Query(None),
    year: Optional[int] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The authenticated user's leave requests, newest first."""
    result = await LeaveService.list_my_requests(
        db, user.id, pagination, status=status, year=year,
    )
    return result.to_json()


@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_leave_request(
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_request(db, request_id, user)


@router.patch("/requests/{request_id}", response_model=LeaveRequestOut)
async def update_leave_request(
    request_id: uuid.UUID,
    body: LeaveRequestUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.update_leave(db, request_id, user, body)


@router.post("/requests/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_leave_request(
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.cancel_leave(db, request_id, user)


# ── Balances ────────────────────────────────────────────────────────

@router.get("/balances", response_model=list[LeaveBalanceOut])
async def my_balances(
    year: Optional[int] = Query(None, description="Leave year; defaults to current year"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_balances(db, user.id, year or current_year())


@router.get("/balances/business-unit", response_model=list[LeaveBalanceOut])
async def business_unit_balances(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    year: Optional[int] = Query(None),
    user: User = Depends(require_role(UserRole.HR)),
    db: AsyncSession = Depends(get_db),
):
    bu_id = business_unit_id or user.business_unit_id
    ensure_business_unit_access(user, bu_id)
    return await LeaveService.list_business_unit_balances(db, bu_id, year or current_year())


@router.put("/balances", response_model=LeaveBalanceOut)
async def upsert_balance(
    body: LeaveBalanceUpsert,
    user: User = Depends(require_role(UserRole.HR)),
    db: AsyncSession = Depends(get_db),
):
    target = await db.get(User, body.user_id)
    if target is not None:
        ensure_business_unit_access(user, target.business_unit_id)
    balance = await LeaveService.upsert_balance(db, body, actor_id=user.id)
    balances = await LeaveService.get_balances(db, balance.user_id, balance.year)
    return next(b for b in balances if b.id == balance.id)


@router.post("/balances/initialize")
async def initialize_balances(
    body: InitializeBalancesRequest,
    user: User = Depends(require_role(UserRole.HR)),
    db: AsyncSession = Depends(get_db),
):
    ensure_business_unit_access(user, body.business_unit_id)
    return await LeaveService.initialize_balances(
        db, body.business_unit_id, body.year, actor_id=user.id,
    )


@router.post("/balances/replenish/preview", response_model=ReplenishResult)
async def preview_replenish(
    body: ReplenishRequest,
    user: User = Depends(require_role(UserRole.HR)),
    db: AsyncSession = Depends(get_db),
):
    ensure_business_unit_access(user, body.business_unit_id)
    return await LeaveService.preview_replenish(db, body)


@router.post("/balances/replenish", response_model=ReplenishResult)
async def replenish(
    body: ReplenishRequest,
    user: User = Depends(require_role(UserRole.HR)),
    db: AsyncSession = Depends(get_db),
):
    ensure_business_unit_access(user, body.business_unit_id)
    return await LeaveService.replenish(db, body, actor_id=user.id)
