"""Leave module Pydantic v2 schemas — request / response models."""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from backoffice.common.constants import LeaveSession, RequestStatus


# ═════════════════════════════════════════════════════════════════════
# Shared / embedded
# ═════════════════════════════════════════════════════════════════════


class EmployeeBrief(BaseModel):
    """Minimal employee info embedded in leave responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: str
    name: str


class LeaveTypeBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str


# ═════════════════════════════════════════════════════════════════════
# Leave types
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    default_allocated_days: Decimal = Field(Decimal("0"), ge=0)


class LeaveTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    default_allocated_days: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None


class LeaveTypeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    default_allocated_days: Decimal
    is_active: bool


# ═════════════════════════════════════════════════════════════════════
# Balances
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    allocated_days: Decimal
    used_days: Decimal
    remaining_days: Decimal
    leave_type: Optional[LeaveTypeBrief] = None
    employee: Optional[EmployeeBrief] = None


class LeaveBalanceUpsert(BaseModel):
    """Create or adjust one user's balance for a leave type and year."""

    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int = Field(..., ge=2000, le=2100)
    allocated_days: Decimal = Field(..., ge=0)
    used_days: Optional[Decimal] = Field(None, ge=0)


class InitializeBalancesRequest(BaseModel):
    business_unit_id: uuid.UUID
    year: int = Field(..., ge=2000, le=2100)


class ReplenishRequest(BaseModel):
    business_unit_id: uuid.UUID
    from_year: int = Field(..., ge=2000, le=2100)
    to_year: int = Field(..., ge=2000, le=2100)
    acknowledge_excess: bool = False

    @model_validator(mode="after")
    def _check_years(self) -> "ReplenishRequest":
        if self.to_year <= self.from_year:
            raise ValueError("to_year must be after from_year")
        return self


class ReplenishRow(BaseModel):
    user_id: uuid.UUID
    employee_id: str
    employee_name: str
    leave_type_id: uuid.UUID
    leave_type_name: str
    remaining_days: Decimal
    carry_over: Decimal
    new_allocation: Decimal
    exceeds_guideline: bool


class ReplenishResult(BaseModel):
    from_year: int
    to_year: int
    created: int
    rows: list[ReplenishRow]
    excess_count: int


# ═════════════════════════════════════════════════════════════════════
# Leave requests
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    session: LeaveSession = LeaveSession.FULL_DAY
    reason: str = Field(..., min_length=1, max_length=2000)

    @model_validator(mode="after")
    def _check_dates(self) -> "LeaveRequestCreate":
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self


class LeaveRequestUpdate(BaseModel):
    leave_type_id: Optional[uuid.UUID] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    session: Optional[LeaveSession] = None
    reason: Optional[str] = Field(None, min_length=1, max_length=2000)


class LeaveRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    session: LeaveSession
    reason: str
    status: RequestStatus
    days: Decimal = Decimal("0")
    manager_action_by: Optional[uuid.UUID] = None
    manager_action_at: Optional[datetime] = None
    manager_comments: Optional[str] = None
    hr_action_by: Optional[uuid.UUID] = None
    hr_action_at: Optional[datetime] = None
    hr_comments: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    employee: Optional[EmployeeBrief] = None
    leave_type: Optional[LeaveTypeBrief] = None
