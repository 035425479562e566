"""Read-only dumps of one business unit's records for the legacy importer."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.leave.models import LeaveBalance, LeaveRequest
from backoffice.legacy_export.schemas import (
    DepartmentRef,
    EmployeeExport,
    ExportRow,
    LeaveBalanceExport,
    LeaveRequestExport,
    MaterialRequestExport,
    MaterialRequestItemExport,
    OvertimeRequestExport,
)
from backoffice.material_requests.models import MaterialRequest
from backoffice.organization.models import User
from backoffice.overtime.models import OvertimeRequest


def parse_scope(raw: Optional[str]) -> Optional[uuid.UUID]:
    """Scope ids that are not UUIDs cannot match any business unit."""
    try:
        return uuid.UUID(raw) if raw else None
    except ValueError:
        return None


def _number(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _dump(rows: Iterable[ExportRow]) -> list[dict[str, Any]]:
    return [row.model_dump(mode="json", by_alias=True) for row in rows]


async def _actors(db: AsyncSession, ids: Iterable[Optional[uuid.UUID]]) -> dict[uuid.UUID, User]:
    wanted = {i for i in ids if i is not None}
    if not wanted:
        return {}
    result = await db.execute(select(User).where(User.id.in_(wanted)))
    return {user.id: user for user in result.scalars().all()}


def _who(actors: dict[uuid.UUID, User], user_id: Optional[uuid.UUID]) -> tuple[str, str]:
    actor = actors.get(user_id) if user_id is not None else None
    return (actor.employee_id, actor.name) if actor is not None else ("", "")


def _approval_trail(actors: dict[uuid.UUID, User], row: Any) -> dict[str, Any]:
    manager_id, manager_name = _who(actors, row.manager_action_by)
    hr_id, hr_name = _who(actors, row.hr_action_by)
    return {
        "manager_action_at": row.manager_action_at,
        "manager_comments": row.manager_comments,
        "manager_employee_id": manager_id,
        "manager_name": manager_name,
        "hr_action_at": row.hr_action_at,
        "hr_comments": row.hr_comments,
        "hr_employee_id": hr_id,
        "hr_name": hr_name,
    }


class LegacyExportService:

    @staticmethod
    async def employees(db: AsyncSession, scope_id: uuid.UUID) -> list[dict]:
        result = await db.execute(
            select(User)
            .where(User.business_unit_id == scope_id)
            .options(selectinload(User.department))
            .order_by(User.employee_id)
        )
        return _dump(
            EmployeeExport(
                id=user.id,
                employee_id=user.employee_id,
                name=user.name,
                email=user.email,
                password_hash=user.password_hash,
                role=user.role.value,
                classification=user.classification,
                is_active=user.is_active if user.is_active is not None else True,
                hire_date=user.hire_date,
                created_at=user.created_at,
                updated_at=user.updated_at,
                department_id=user.department.id if user.department else None,
                department_name=user.department.name if user.department else None,
            )
            for user in result.scalars().all()
        )

    @staticmethod
    async def leave_balances(db: AsyncSession, scope_id: uuid.UUID) -> list[dict]:
        result = await db.execute(
            select(LeaveBalance)
            .join(User, LeaveBalance.user_id == User.id)
            .where(User.business_unit_id == scope_id)
            .options(selectinload(LeaveBalance.user), selectinload(LeaveBalance.leave_type))
            .order_by(LeaveBalance.year, LeaveBalance.created_at)
        )
        return _dump(
            LeaveBalanceExport(
                id=row.id,
                employee_id=row.user.employee_id,
                employee_name=row.user.name,
                leave_type_id=row.leave_type.id,
                leave_type_name=row.leave_type.name,
                year=row.year,
                allocated_days=_number(row.allocated_days) or 0,
                used_days=_number(row.used_days) or 0,
                created_at=row.created_at,
                updated_at=row.updated_at,
            )
            for row in result.scalars().all()
        )

    @staticmethod
    async def leave_requests(db: AsyncSession, scope_id: uuid.UUID) -> list[dict]:
        result = await db.execute(
            select(LeaveRequest)
            .join(User, LeaveRequest.user_id == User.id)
            .where(User.business_unit_id == scope_id)
            .options(selectinload(LeaveRequest.user), selectinload(LeaveRequest.leave_type))
            .order_by(LeaveRequest.created_at)
        )
        rows = result.scalars().all()
        actors = await _actors(
            db, [r.manager_action_by for r in rows] + [r.hr_action_by for r in rows],
        )
        return _dump(
            LeaveRequestExport(
                id=row.id,
                employee_id=row.user.employee_id,
                employee_name=row.user.name,
                leave_type_id=row.leave_type.id,
                leave_type_name=row.leave_type.name,
                start_date=row.start_date,
                end_date=row.end_date,
                reason=row.reason,
                status=row.status.value,
                session=row.session.value,
                created_at=row.created_at,
                updated_at=row.updated_at,
                **_approval_trail(actors, row),
            )
            for row in rows
        )

    @staticmethod
    async def overtime_requests(db: AsyncSession, scope_id: uuid.UUID) -> list[dict]:
        result = await db.execute(
            select(OvertimeRequest)
            .join(User, OvertimeRequest.user_id == User.id)
            .where(User.business_unit_id == scope_id)
            .options(selectinload(OvertimeRequest.user))
            .order_by(OvertimeRequest.created_at)
        )
        rows = result.scalars().all()
        actors = await _actors(
            db, [r.manager_action_by for r in rows] + [r.hr_action_by for r in rows],
        )
        return _dump(
            OvertimeRequestExport(
                id=row.id,
                employee_id=row.user.employee_id,
                employee_name=row.user.name,
                start_time=row.start_time,
                end_time=row.end_time,
                overtime_date=row.start_time,
                reason=row.reason,
                status=row.status.value,
                created_at=row.created_at,
                updated_at=row.updated_at,
                **_approval_trail(actors, row),
            )
            for row in rows
        )

    @staticmethod
    async def material_requests(db: AsyncSession, scope_id: uuid.UUID) -> list[dict]:
        result = await db.execute(
            select(MaterialRequest)
            .where(MaterialRequest.business_unit_id == scope_id)
            .options(
                selectinload(MaterialRequest.items),
                selectinload(MaterialRequest.department),
                selectinload(MaterialRequest.requested_by),
            )
            .order_by(MaterialRequest.created_at)
        )
        rows = result.scalars().all()
        actors = await _actors(db, [
            actor_id
            for r in rows
            for actor_id in (
                r.reviewer_id, r.rec_approver_id, r.final_approver_id,
                r.served_by, r.processed_by, r.acknowledged_by_id,
            )
        ])

        exported = []
        for row in rows:
            people: dict[str, str] = {}
            for prefix, user_id in (
                ("reviewer", row.reviewer_id),
                ("rec_approver", row.rec_approver_id),
                ("final_approver", row.final_approver_id),
                ("served_by", row.served_by),
                ("processed_by", row.processed_by),
                ("acknowledged_by", row.acknowledged_by_id),
            ):
                people[f"{prefix}_employee_id"], people[f"{prefix}_name"] = _who(actors, user_id)

            exported.append(MaterialRequestExport(
                id=row.id,
                doc_no=row.doc_no,
                series=row.series,
                request_type=row.type.value,
                status=row.status.value,
                date_prepared=row.date_prepared,
                date_required=row.date_required,
                date_approved=row.date_approved,
                date_posted=row.date_posted,
                date_received=row.date_received,
                date_revised=row.date_revised,
                created_at=row.created_at,
                updated_at=row.updated_at,
                charge_to=row.charge_to,
                bldg_code=row.bldg_code,
                purpose=row.purpose,
                remarks=row.remarks,
                deliver_to=row.deliver_to,
                is_store_use=row.is_store_use,
                freight=_number(row.freight) or 0,
                discount=_number(row.discount) or 0,
                total=_number(row.total) or 0,
                confirmation_no=row.confirmation_no,
                supplier_bp_code=row.supplier_bp_code,
                supplier_name=row.supplier_name,
                purchase_order_number=row.purchase_order_number,
                processed_at=row.processed_at,
                served_at=row.served_at,
                served_notes=row.served_notes,
                acknowledged_at=row.acknowledged_at,
                review_status=row.review_status.value if row.review_status else None,
                reviewed_at=row.reviewed_at,
                review_remarks=row.review_remarks,
                rec_approval_status=(
                    row.rec_approval_status.value if row.rec_approval_status else None
                ),
                rec_approval_date=row.rec_approval_date,
                rec_approval_remarks=row.rec_approval_remarks,
                final_approval_status=(
                    row.final_approval_status.value if row.final_approval_status else None
                ),
                final_approval_date=row.final_approval_date,
                final_approval_remarks=row.final_approval_remarks,
                requested_by_employee_id=row.requested_by.employee_id,
                requested_by_name=row.requested_by.name,
                department=DepartmentRef(
                    id=row.department.id if row.department else None,
                    code=row.department.code if row.department else None,
                    name=row.department.name if row.department else None,
                ),
                items=[
                    MaterialRequestItemExport(
                        id=item.id,
                        item_code=item.item_code,
                        description=item.description,
                        uom=item.uom,
                        quantity=_number(item.quantity) or 0,
                        quantity_served=_number(item.quantity_served) or 0,
                        unit_price=_number(item.unit_price),
                        line_total=_number(item.total_price),
                        remarks=item.remarks,
                    )
                    for item in row.items
                ],
                **people,
            ))
        return _dump(exported)
