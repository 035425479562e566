"""Overtime router — submit, edit, cancel and view overtime requests."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.auth.dependencies import get_current_user
from backoffice.common.constants import RequestStatus
from backoffice.common.pagination import PaginationParams
from backoffice.database import get_db
from backoffice.organization.models import User
from backoffice.overtime.schemas import (
    OvertimeRequestCreate,
    OvertimeRequestOut,
    OvertimeRequestUpdate,
)
from backoffice.overtime.service import OvertimeService

router = APIRouter(prefix="", tags=["overtime"])


@router.post("/requests", response_model=OvertimeRequestOut, status_code=201)
async def submit_overtime(
    body: OvertimeRequestCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await OvertimeService.submit_overtime(db, user, body)


@router.get("/requests")
async def my_overtime_requests(
    status: Optional[RequestStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await OvertimeService.list_my_requests(db, user.id, pagination, status=status)
    return result.to_json()


@router.get("/requests/{request_id}", response_model=OvertimeRequestOut)
async def get_overtime_request(
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await OvertimeService.get_request(db, request_id, user)


@router.patch("/requests/{request_id}", response_model=OvertimeRequestOut)
async def update_overtime_request(
    request_id: uuid.UUID,
    body: OvertimeRequestUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await OvertimeService.update_overtime(db, request_id, user, body)


@router.post("/requests/{request_id}/cancel", response_model=OvertimeRequestOut)
async def cancel_overtime_request(
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await OvertimeService.cancel_overtime(db, request_id, user)
