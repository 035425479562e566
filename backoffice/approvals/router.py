"""Approvals router — manager/HR queues and decisions for leave and overtime."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.approvals.schemas import ApproveBody, RejectBody
from backoffice.approvals.service import ApprovalService
from backoffice.approvals.workflow import ApprovalAction
from backoffice.auth.dependencies import require_role
from backoffice.common.constants import UserRole
from backoffice.database import get_db
from backoffice.leave.schemas import LeaveRequestOut
from backoffice.organization.models import User
from backoffice.overtime.schemas import OvertimeRequestOut

router = APIRouter(prefix="", tags=["approvals"])

_approver = require_role(UserRole.MANAGER, UserRole.HR)


# ── Queues ──────────────────────────────────────────────────────────

@router.get("/leave/pending", response_model=list[LeaveRequestOut])
async def pending_leave(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    user: User = Depends(_approver),
    db: AsyncSession = Depends(get_db),
):
    return await ApprovalService.pending_leave(db, user, business_unit_id)


@router.get("/overtime/pending", response_model=list[OvertimeRequestOut])
async def pending_overtime(
    business_unit_id: Optional[uuid.UUID] = Query(None),
    user: User = Depends(_approver),
    db: AsyncSession = Depends(get_db),
):
    return await ApprovalService.pending_overtime(db, user, business_unit_id)


@router.get("/history")
async def approval_history(
    user: User = Depends(_approver),
    db: AsyncSession = Depends(get_db),
):
    history = await ApprovalService.history(db, user)
    return {
        key: [item.model_dump(mode="json") for item in items]
        for key, items in history.items()
    }


# ── Leave decisions ─────────────────────────────────────────────────

@router.post("/leave/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_leave(
    request_id: uuid.UUID,
    body: ApproveBody,
    user: User = Depends(_approver),
    db: AsyncSession = Depends(get_db),
):
    """Manager stage forwards to HR; HR stage approves and deducts the balance."""
    return await ApprovalService.decide_leave(
        db, request_id, user, ApprovalAction.APPROVE, body.comments,
    )


@router.post("/leave/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_leave(
    request_id: uuid.UUID,
    body: RejectBody,
    user: User = Depends(_approver),
    db: AsyncSession = Depends(get_db),
):
    return await ApprovalService.decide_leave(
        db, request_id, user, ApprovalAction.REJECT, body.comments,
    )


# ── Overtime decisions ──────────────────────────────────────────────

@router.post("/overtime/{request_id}/approve", response_model=OvertimeRequestOut)
async def approve_overtime(
    request_id: uuid.UUID,
    body: ApproveBody,
    user: User = Depends(_approver),
    db: AsyncSession = Depends(get_db),
):
    return await ApprovalService.decide_overtime(
        db, request_id, user, ApprovalAction.APPROVE, body.comments,
    )


@router.post("/overtime/{request_id}/reject", response_model=OvertimeRequestOut)
async def reject_overtime(
    request_id: uuid.UUID,
    body: RejectBody,
    user: User = Depends(_approver),
    db: AsyncSession = Depends(get_db),
):
    return await ApprovalService.decide_overtime(
        db, request_id, user, ApprovalAction.REJECT, body.comments,
    )
