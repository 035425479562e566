"""Overtime module Pydantic v2 schemas."""


import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from backoffice.common.constants import RequestStatus
from backoffice.leave.schemas import EmployeeBrief


class OvertimeRequestCreate(BaseModel):
    start_time: datetime
    end_time: datetime
    reason: str = Field(..., min_length=1, max_length=2000)

    @model_validator(mode="after")
    def _check_times(self) -> "OvertimeRequestCreate":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class OvertimeRequestUpdate(BaseModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    reason: Optional[str] = Field(None, min_length=1, max_length=2000)


class OvertimeRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    start_time: datetime
    end_time: datetime
    total_hours: Decimal
    reason: str
    status: RequestStatus
    manager_action_by: Optional[uuid.UUID] = None
    manager_action_at: Optional[datetime] = None
    manager_comments: Optional[str] = None
    hr_action_by: Optional[uuid.UUID] = None
    hr_action_at: Optional[datetime] = None
    hr_comments: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    employee: Optional[EmployeeBrief] = None
