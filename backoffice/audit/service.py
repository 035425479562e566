"""Read-side queries over the immutable audit trail."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.audit.schemas import AuditLogOut
from backoffice.common.audit import AuditTrail
from backoffice.common.exceptions import NotFoundException
from backoffice.common.filters import apply_filters
from backoffice.common.pagination import PaginatedResponse, PaginationParams, build_meta
from backoffice.organization.models import User


def _base_query():
    return (
        select(
            AuditTrail,
            User.employee_id.label("actor_employee_id"),
            User.name.label("actor_name"),
        )
        .outerjoin(User, AuditTrail.actor_id == User.id)
    )


def _to_out(row: Any) -> AuditLogOut:
    entry: AuditTrail = row[0]
    return AuditLogOut(
        id=entry.id,
        action=entry.action,
        entity_type=entry.entity_type,
        entity_id=entry.entity_id,
        business_unit_id=entry.business_unit_id,
        actor_id=entry.actor_id,
        actor_employee_id=row.actor_employee_id,
        actor_name=row.actor_name,
        old_values=entry.old_values,
        new_values=entry.new_values,
        ip_address=str(entry.ip_address) if entry.ip_address is not None else None,
        user_agent=entry.user_agent,
        created_at=entry.created_at,
    )


class AuditLogService:

    @staticmethod
    async def list_entries(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
        action: Optional[str] = None,
        actor_id: Optional[uuid.UUID] = None,
        business_unit_id: Optional[uuid.UUID] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> PaginatedResponse:
        query = apply_filters(_base_query(), AuditTrail, {
            "entity_type": entity_type,
            "entity_id": entity_id,
            "action": action,
            "actor_id": actor_id,
            "business_unit_id": business_unit_id,
            "created_at__from": date_from,
            "created_at__to": date_to,
        })

        count_q = select(func.count()).select_from(query.subquery())
        total = (await db.execute(count_q)).scalar_one()

        descending = not (pagination.sort or "").startswith("created_at")
        order = AuditTrail.created_at.desc() if descending else AuditTrail.created_at.asc()
        rows = (
            await db.execute(
                query.order_by(order)
                .offset(pagination.offset)
                .limit(pagination.page_size)
            )
        ).all()
        return PaginatedResponse(
            data=[_to_out(row) for row in rows],
            meta=build_meta(pagination.page, pagination.page_size, total),
        )

    @staticmethod
    async def get_entry(db: AsyncSession, entry_id: uuid.UUID) -> AuditLogOut:
        row = (await db.execute(_base_query().where(AuditTrail.id == entry_id))).first()
        if row is None:
            raise NotFoundException("AuditTrail", str(entry_id))
        return _to_out(row)
