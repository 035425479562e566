"""Audit log read models."""


import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class AuditLogOut(BaseModel):
    id: uuid.UUID
    action: str
    entity_type: str
    entity_id: uuid.UUID
    business_unit_id: Optional[uuid.UUID] = None
    actor_id: Optional[uuid.UUID] = None
    actor_employee_id: Optional[str] = None
    actor_name: Optional[str] = None
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
