"""Audit log router — ADMIN-only browsing of recorded changes."""


import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.audit.schemas import AuditLogOut
from backoffice.audit.service import AuditLogService
from backoffice.auth.dependencies import require_role
from backoffice.common.constants import UserRole
from backoffice.common.pagination import PaginationParams
from backoffice.database import get_db
from backoffice.organization.models import User

router = APIRouter(prefix="", tags=["audit"])

_admin = require_role(UserRole.ADMIN)


@router.get("")
async def list_audit_logs(
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[uuid.UUID] = Query(None),
    action: Optional[str] = Query(None),
    actor_id: Optional[uuid.UUID] = Query(None),
    business_unit_id: Optional[uuid.UUID] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await AuditLogService.list_entries(
        db, pagination,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        business_unit_id=business_unit_id,
        date_from=date_from,
        date_to=date_to,
    )
    return result.to_json()


@router.get("/{entry_id}", response_model=AuditLogOut)
async def get_audit_log(
    entry_id: uuid.UUID,
    user: User = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    return await AuditLogService.get_entry(db, entry_id)
