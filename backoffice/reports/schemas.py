"""Report response schemas — depreciation, damaged/loss and deployments."""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict

from backoffice.assets.schemas import AssetHistoryOut, CategoryBrief, OrgRef
from backoffice.common.constants import (
    AssetStatus,
    DeploymentStatus,
    DepreciationMethod,
    DisposalMethod,
    DisposalReason,
)
from backoffice.leave.schemas import EmployeeBrief


# ═════════════════════════════════════════════════════════════════════
# Depreciation
# ═════════════════════════════════════════════════════════════════════


class DepreciationAssetRow(BaseModel):
    """One asset on the net book value / depreciation schedule report."""

    id: uuid.UUID
    item_code: str
    description: str
    status: AssetStatus
    category: Optional[CategoryBrief] = None
    department: Optional[OrgRef] = None
    purchase_date: Optional[date] = None
    purchase_price: Decimal
    salvage_value: Decimal
    depreciation_method: Optional[DepreciationMethod] = None
    useful_life_months: Optional[int] = None
    monthly_depreciation: Optional[Decimal] = None
    depreciation_start_date: Optional[date] = None
    current_book_value: Decimal
    accumulated_depreciation: Decimal
    last_depreciation_date: Optional[date] = None
    next_depreciation_date: Optional[date] = None
    is_fully_depreciated: bool
    remaining_book_value: Decimal
    total_depreciation_to_date: Decimal
    remaining_useful_life_months: Optional[int] = None
    depreciation_rate: Decimal
    projected_full_depreciation_date: Optional[date] = None
    assigned_employee: Optional[EmployeeBrief] = None


class DepreciationTotals(BaseModel):
    total_assets: int
    total_purchase_value: Decimal
    total_current_book_value: Decimal
    total_accumulated_depreciation: Decimal
    depreciation_expense: Decimal
    fully_depreciated_count: int
    nearing_full_depreciation_count: int


class DepreciationBreakdown(BaseModel):
    key: str
    name: str
    asset_count: int
    purchase_value: Decimal
    current_book_value: Decimal
    accumulated_depreciation: Decimal
    depreciation_rate: Decimal


class MonthlyDepreciation(BaseModel):
    month: str
    depreciation_amount: Decimal
    asset_count: int


class DepreciationSummary(BaseModel):
    totals: DepreciationTotals
    by_category: list[DepreciationBreakdown]
    by_method: list[DepreciationBreakdown]
    by_department: list[DepreciationBreakdown]
    monthly_trend: list[MonthlyDepreciation]


# ═════════════════════════════════════════════════════════════════════
# Damaged / lost / disposed
# ═════════════════════════════════════════════════════════════════════


class DisposalInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    disposal_date: date
    reason: DisposalReason
    disposal_method: DisposalMethod
    disposal_value: Decimal
    book_value_at_disposal: Decimal
    gain_loss: Decimal


class DamagedLossRow(BaseModel):
    id: uuid.UUID
    item_code: str
    description: str
    serial_number: Optional[str] = None
    status: AssetStatus
    is_active: bool
    category: Optional[CategoryBrief] = None
    department: Optional[OrgRef] = None
    purchase_date: Optional[date] = None
    purchase_price: Optional[Decimal] = None
    current_book_value: Optional[Decimal] = None
    disposal: Optional[DisposalInfo] = None
    last_history: Optional[AssetHistoryOut] = None


class DamagedLossReport(BaseModel):
    rows: list[DamagedLossRow]
    damaged_count: int
    lost_count: int
    disposed_count: int
    total_book_value: Decimal


# ═════════════════════════════════════════════════════════════════════
# Deployments
# ═════════════════════════════════════════════════════════════════════


class DeployedAssetBrief(BaseModel):
    id: uuid.UUID
    item_code: str
    description: str
    category: Optional[CategoryBrief] = None
    current_book_value: Optional[Decimal] = None
    purchase_price: Optional[Decimal] = None


class DeploymentReportRow(BaseModel):
    id: uuid.UUID
    transmittal_number: str
    status: DeploymentStatus
    deployed_date: Optional[datetime] = None
    expected_return_date: Optional[date] = None
    returned_date: Optional[datetime] = None
    deployment_condition: Optional[str] = None
    return_condition: Optional[str] = None
    asset: DeployedAssetBrief
    employee: EmployeeBrief
    department: Optional[OrgRef] = None


class CountByName(BaseModel):
    name: str
    count: int


class DeploymentSummary(BaseModel):
    total_deployments: int
    active_deployments: int
    returned_deployments: int
    pending_approval: int
    total_asset_value: Decimal
    average_deployment_days: Optional[Decimal] = None
    by_department: list[CountByName]
    by_category: list[CountByName]
