"""Overtime service layer — submit, edit, cancel and list overtime requests."""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.common.audit import create_audit_entry
from backoffice.common.constants import PENDING_STATUSES, RequestStatus, UserRole
from backoffice.common.exceptions import (
    BusinessRuleException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from backoffice.common.models import as_utc, model_snapshot
from backoffice.common.pagination import PaginatedResponse, PaginationParams, paginate
from backoffice.leave.schemas import EmployeeBrief
from backoffice.organization.models import User
from backoffice.overtime.models import OvertimeRequest
from backoffice.overtime.schemas import (
    OvertimeRequestCreate,
    OvertimeRequestOut,
    OvertimeRequestUpdate,
)


class OvertimeService:

    @staticmethod
    def build_response(req: OvertimeRequest) -> OvertimeRequestOut:
        out = OvertimeRequestOut.model_validate(req)
        out.employee = EmployeeBrief.model_validate(req.user)
        return out

    @staticmethod
    async def load_request(db: AsyncSession, request_id: uuid.UUID) -> OvertimeRequest:
        result = await db.execute(
            select(OvertimeRequest)
            .where(OvertimeRequest.id == request_id)
            .options(selectinload(OvertimeRequest.user))
            .execution_options(populate_existing=True)
        )
        req = result.scalars().first()
        if req is None:
            raise NotFoundException("OvertimeRequest", str(request_id))
        return req

    @staticmethod
    async def submit_overtime(
        db: AsyncSession,
        user: User,
        data: OvertimeRequestCreate,
    ) -> OvertimeRequestOut:
        if data.start_time >= data.end_time:
            raise ValidationException({"end_time": ["End time must be after start time."]})

        req = OvertimeRequest(
            user_id=user.id,
            start_time=data.start_time,
            end_time=data.end_time,
            reason=data.reason,
            status=RequestStatus.PENDING_MANAGER,
        )
        db.add(req)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="overtime_request",
            entity_id=req.id,
            actor_id=user.id,
            business_unit_id=user.business_unit_id,
            new_values=model_snapshot(req),
        )
        req = await OvertimeService.load_request(db, req.id)
        return OvertimeService.build_response(req)

    @staticmethod
    async def update_overtime(
        db: AsyncSession,
        request_id: uuid.UUID,
        user: User,
        data: OvertimeRequestUpdate,
    ) -> OvertimeRequestOut:
        req = await OvertimeService.load_request(db, request_id)
        if req.user_id != user.id:
            raise ForbiddenException("You can only edit your own overtime requests.")
        if req.status not in PENDING_STATUSES or req.manager_action_at is not None:
            raise BusinessRuleException(
                "Overtime request can no longer be edited once a manager has acted on it.",
            )

        changes = data.model_dump(exclude_unset=True)
        start = changes.get("start_time", req.start_time)
        end = changes.get("end_time", req.end_time)
        if as_utc(start) >= as_utc(end):
            raise ValidationException({"end_time": ["End time must be after start time."]})

        old_values = model_snapshot(req, changes.keys())
        for field, value in changes.items():
            setattr(req, field, value)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="overtime_request",
            entity_id=req.id,
            actor_id=user.id,
            business_unit_id=user.business_unit_id,
            old_values=old_values,
            new_values=data.model_dump(mode="json", exclude_unset=True),
        )
        req = await OvertimeService.load_request(db, req.id)
        return OvertimeService.build_response(req)

    @staticmethod
    async def cancel_overtime(
        db: AsyncSession,
        request_id: uuid.UUID,
        user: User,
    ) -> OvertimeRequestOut:
        req = await OvertimeService.load_request(db, request_id)
        if req.user_id != user.id:
            raise ForbiddenException("You can only cancel your own overtime requests.")
        if req.status not in PENDING_STATUSES:
            raise BusinessRuleException(
                f"Only pending requests can be cancelled (current: {req.status.value}).",
            )

        old_status = req.status.value
        req.status = RequestStatus.CANCELLED
        await db.flush()

        await create_audit_entry(
            db,
            action="cancel",
            entity_type="overtime_request",
            entity_id=req.id,
            actor_id=user.id,
            business_unit_id=user.business_unit_id,
            old_values={"status": old_status},
            new_values={"status": RequestStatus.CANCELLED.value},
        )
        return OvertimeService.build_response(req)

    @staticmethod
    async def list_my_requests(
        db: AsyncSession,
        user_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        status: Optional[RequestStatus] = None,
    ) -> PaginatedResponse:
        query = (
            select(OvertimeRequest)
            .where(OvertimeRequest.user_id == user_id)
            .options(selectinload(OvertimeRequest.user))
            .order_by(OvertimeRequest.start_time.desc())
        )
        if status is not None:
            query = query.where(OvertimeRequest.status == status)
        return await paginate(
            db, query, pagination,
            model=OvertimeRequest,
            transform=OvertimeService.build_response,
        )

    @staticmethod
    async def get_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        viewer: User,
    ) -> OvertimeRequestOut:
        req = await OvertimeService.load_request(db, request_id)
        owner = req.user
        allowed = (
            viewer.role == UserRole.ADMIN
            or owner.id == viewer.id
            or owner.approver_id == viewer.id
            or (viewer.role == UserRole.HR and owner.business_unit_id == viewer.business_unit_id)
        )
        if not allowed:
            raise ForbiddenException("You do not have access to this overtime request.")
        return OvertimeService.build_response(req)
