"""Depreciation module Pydantic v2 schemas."""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from backoffice.common.constants import (
    DepreciationMethod,
    ExecutionAssetStatus,
    ExecutionStatus,
    ScheduleType,
)


# ═════════════════════════════════════════════════════════════════════
# Manual calculation
# ═════════════════════════════════════════════════════════════════════


class CalculateAssetRequest(BaseModel):
    calculation_date: Optional[date] = None
    units_in_period: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


class BatchCalculateRequest(BaseModel):
    business_unit_id: uuid.UUID
    calculation_date: Optional[date] = None
    category_id: Optional[uuid.UUID] = None
    override: bool = False


class DepreciationRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    asset_id: uuid.UUID
    depreciation_date: date
    period_start_date: date
    period_end_date: date
    book_value_start: Decimal
    depreciation_amount: Decimal
    book_value_end: Decimal
    accumulated_depreciation: Decimal
    method: DepreciationMethod
    calculation_basis: Optional[dict] = None
    units_in_period: Optional[int] = None
    is_adjustment: bool = False
    notes: Optional[str] = None
    calculated_by: Optional[uuid.UUID] = None
    created_at: datetime


class PreviewRow(BaseModel):
    asset_id: uuid.UUID
    item_code: str
    description: str
    category: str
    method: DepreciationMethod
    book_value: Decimal
    depreciation_amount: Decimal
    book_value_after: Decimal
    will_be_fully_depreciated: bool


class PreviewResult(BaseModel):
    calculation_date: date
    assets: list[PreviewRow]
    total_amount: Decimal
    by_category: dict[str, Decimal]
    by_method: dict[str, Decimal]


class DepreciationSummary(BaseModel):
    business_unit_id: uuid.UUID
    total_assets: int
    depreciable_assets: int
    fully_depreciated_assets: int
    total_cost: Decimal
    total_book_value: Decimal
    total_accumulated_depreciation: Decimal
    depreciation_this_month: Decimal


# ═════════════════════════════════════════════════════════════════════
# Schedules
# ═════════════════════════════════════════════════════════════════════


class ScheduleCreate(BaseModel):
    business_unit_id: uuid.UUID
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    schedule_type: ScheduleType = ScheduleType.MONTHLY
    execution_day: int = Field(30, ge=1, le=31)
    include_categories: Optional[list[uuid.UUID]] = None
    exclude_categories: Optional[list[uuid.UUID]] = None


class ScheduleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    schedule_type: Optional[ScheduleType] = None
    execution_day: Optional[int] = Field(None, ge=1, le=31)
    include_categories: Optional[list[uuid.UUID]] = None
    exclude_categories: Optional[list[uuid.UUID]] = None


class ScheduleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    business_unit_id: uuid.UUID
    name: str
    description: Optional[str] = None
    schedule_type: ScheduleType
    execution_day: int
    is_active: bool
    include_categories: Optional[list[uuid.UUID]] = None
    exclude_categories: Optional[list[uuid.UUID]] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Executions
# ═════════════════════════════════════════════════════════════════════


class ExecutionAssetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    asset_id: uuid.UUID
    depreciation_record_id: Optional[uuid.UUID] = None
    status: ExecutionAssetStatus
    depreciation_amount: Decimal
    book_value_before: Optional[Decimal] = None
    book_value_after: Optional[Decimal] = None
    error_message: Optional[str] = None
    calculation_details: Optional[dict] = None


class ExecutionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    schedule_id: Optional[uuid.UUID] = None
    business_unit_id: uuid.UUID
    execution_date: date
    scheduled_date: date
    status: ExecutionStatus
    total_assets_processed: int
    successful_calculations: int
    failed_calculations: int
    skipped_calculations: int
    total_depreciation_amount: Decimal
    execution_duration_ms: Optional[int] = None
    error_message: Optional[str] = None
    execution_summary: Optional[dict] = None
    executed_by: Optional[uuid.UUID] = None
    completed_at: Optional[datetime] = None
    created_at: datetime


class ExecutionDetail(ExecutionOut):
    assets: list[ExecutionAssetOut] = []


class TriggerRequest(BaseModel):
    schedule_id: Optional[uuid.UUID] = None
