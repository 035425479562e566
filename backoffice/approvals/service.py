"""Approval service — manager/HR decisions on leave and overtime requests.

Transitions come from :mod:`backoffice.approvals.workflow`; this layer loads
rows, applies the stage's action fields, deducts leave balances on final
approval and writes the audit trail.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.approvals.workflow import (
    ApprovalAction,
    ApprovalStage,
    Transition,
    ensure_can_approve,
    next_transition,
)
from backoffice.common.audit import create_audit_entry
from backoffice.common.constants import RequestStatus, UserRole
from backoffice.common.exceptions import ValidationException
from backoffice.leave.models import LeaveRequest
from backoffice.leave.schemas import LeaveRequestOut
from backoffice.leave.service import LeaveService, leave_days
from backoffice.organization.models import User
from backoffice.overtime.models import OvertimeRequest
from backoffice.overtime.schemas import OvertimeRequestOut
from backoffice.overtime.service import OvertimeService

logger = logging.getLogger(__name__)

ApprovableRequest = Union[LeaveRequest, OvertimeRequest]


def _apply_transition(
    req: ApprovableRequest,
    transition: Transition,
    actor_id: uuid.UUID,
    comments: Optional[str],
) -> None:
    now = datetime.now(timezone.utc)
    req.status = transition.to_status
    if transition.stage == ApprovalStage.MANAGER:
        req.manager_action_by = actor_id
        req.manager_action_at = now
        req.manager_comments = comments
        if transition.to_status == RequestStatus.REJECTED:
            req.hr_action_by = None
            req.hr_action_at = None
            req.hr_comments = None
    else:
        req.hr_action_by = actor_id
        req.hr_action_at = now
        req.hr_comments = comments


class ApprovalService:

    # ─────────────────────────────────────────────────────────────────
    # Core transition
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _act(
        db: AsyncSession,
        req: ApprovableRequest,
        entity_type: str,
        actor: User,
        action: ApprovalAction,
        comments: Optional[str],
    ) -> Transition:
        if action == ApprovalAction.REJECT and not (comments and comments.strip()):
            raise ValidationException(
                {"comments": ["Comments are required when rejecting a request."]},
            )

        requester = req.user
        ensure_can_approve(actor.role, actor.business_unit_id, requester.business_unit_id)
        transition = next_transition(
            actor_id=actor.id,
            actor_role=actor.role,
            requester_approver_id=requester.approver_id,
            status=req.status,
            action=action,
        )
        _apply_transition(req, transition, actor.id, comments.strip() if comments else None)
        await db.flush()

        await create_audit_entry(
            db,
            action=action.value.lower(),
            entity_type=entity_type,
            entity_id=req.id,
            actor_id=actor.id,
            business_unit_id=requester.business_unit_id,
            old_values={"status": transition.from_status.value},
            new_values={
                "status": transition.to_status.value,
                "stage": transition.stage.value,
                "comments": comments,
            },
        )
        logger.info(
            "%s %s %s by %s: %s → %s",
            entity_type, req.id, action.value.lower(), actor.employee_id,
            transition.from_status.value, transition.to_status.value,
        )
        return transition

    @staticmethod
    async def _deduct_leave_balance(db: AsyncSession, req: LeaveRequest) -> None:
        """Charge an approved leave against the start-date year's balance."""
        days = leave_days(req.start_date, req.end_date, req.session)
        year = req.start_date.year
        balance = await LeaveService.find_balance(db, req.user_id, req.leave_type_id, year)
        if balance is None:
            logger.error(
                "No leave balance for user %s, leave type %s, year %d; "
                "skipping deduction for request %s",
                req.user_id, req.leave_type_id, year, req.id,
            )
            return
        if balance.remaining_days < days:
            logger.warning(
                "Insufficient leave balance for user %s (remaining %s, requested %s); "
                "deducting anyway for request %s",
                req.user_id, balance.remaining_days, days, req.id,
            )
        balance.used_days = balance.used_days + days
        await db.flush()

    # ─────────────────────────────────────────────────────────────────
    # Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def decide_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: User,
        action: ApprovalAction,
        comments: Optional[str] = None,
    ) -> LeaveRequestOut:
        req = await LeaveService.load_request(db, request_id)
        transition = await ApprovalService._act(
            db, req, "leave_request", actor, action, comments,
        )
        if transition.to_status == RequestStatus.APPROVED:
            await ApprovalService._deduct_leave_balance(db, req)
        return LeaveService.build_request_response(req)

    # ─────────────────────────────────────────────────────────────────
    # Overtime
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def decide_overtime(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: User,
        action: ApprovalAction,
        comments: Optional[str] = None,
    ) -> OvertimeRequestOut:
        req = await OvertimeService.load_request(db, request_id)
        await ApprovalService._act(db, req, "overtime_request", actor, action, comments)
        return OvertimeService.build_response(req)

    # ─────────────────────────────────────────────────────────────────
    # Queues
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _pending_filter(model, actor: User, business_unit_id: Optional[uuid.UUID]):
        """WHERE clauses for the requests waiting on *actor*."""
        if actor.role == UserRole.MANAGER:
            return [
                model.status == RequestStatus.PENDING_MANAGER,
                User.approver_id == actor.id,
            ]
        clauses = []
        if actor.role == UserRole.HR:
            clauses.append(model.status == RequestStatus.PENDING_HR)
            clauses.append(User.business_unit_id == (business_unit_id or actor.business_unit_id))
        else:
            clauses.append(
                model.status.in_([RequestStatus.PENDING_MANAGER, RequestStatus.PENDING_HR]),
            )
            if business_unit_id is not None:
                clauses.append(User.business_unit_id == business_unit_id)
        return clauses

    @staticmethod
    async def pending_leave(
        db: AsyncSession,
        actor: User,
        business_unit_id: Optional[uuid.UUID] = None,
    ) -> list[LeaveRequestOut]:
        result = await db.execute(
            select(LeaveRequest)
            .join(User, LeaveRequest.user_id == User.id)
            .where(*ApprovalService._pending_filter(LeaveRequest, actor, business_unit_id))
            .options(selectinload(LeaveRequest.user), selectinload(LeaveRequest.leave_type))
            .order_by(LeaveRequest.created_at.asc())
        )
        return [LeaveService.build_request_response(r) for r in result.scalars().all()]

    @staticmethod
    async def pending_overtime(
        db: AsyncSession,
        actor: User,
        business_unit_id: Optional[uuid.UUID] = None,
    ) -> list[OvertimeRequestOut]:
        result = await db.execute(
            select(OvertimeRequest)
            .join(User, OvertimeRequest.user_id == User.id)
            .where(*ApprovalService._pending_filter(OvertimeRequest, actor, business_unit_id))
            .options(selectinload(OvertimeRequest.user))
            .order_by(OvertimeRequest.created_at.asc())
        )
        return [OvertimeService.build_response(r) for r in result.scalars().all()]

    @staticmethod
    async def history(db: AsyncSession, actor: User) -> dict[str, list]:
        """Requests the actor has acted on at either stage, newest first."""
        leave_result = await db.execute(
            select(LeaveRequest)
            .where(
                or_(
                    LeaveRequest.manager_action_by == actor.id,
                    LeaveRequest.hr_action_by == actor.id,
                )
            )
            .options(selectinload(LeaveRequest.user), selectinload(LeaveRequest.leave_type))
            .order_by(LeaveRequest.updated_at.desc())
        )
        overtime_result = await db.execute(
            select(OvertimeRequest)
            .where(
                or_(
                    OvertimeRequest.manager_action_by == actor.id,
                    OvertimeRequest.hr_action_by == actor.id,
                )
            )
            .options(selectinload(OvertimeRequest.user))
            .order_by(OvertimeRequest.updated_at.desc())
        )
        return {
            "leave": [
                LeaveService.build_request_response(r) for r in leave_result.scalars().all()
            ],
            "overtime": [
                OvertimeService.build_response(r) for r in overtime_result.scalars().all()
            ],
        }
