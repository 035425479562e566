"""Asset module Pydantic v2 schemas — categories, assets and lifecycle actions."""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from backoffice.common.constants import (
    AssetCondition,
    AssetHistoryAction,
    AssetStatus,
    DeploymentStatus,
    DepreciationMethod,
    DepreciationPeriod,
    DisposalMethod,
    DisposalReason,
    RetirementMethod,
    RetirementReason,
)
from backoffice.leave.schemas import EmployeeBrief


# ═════════════════════════════════════════════════════════════════════
# Categories
# ═════════════════════════════════════════════════════════════════════


class AssetCategoryCreate(BaseModel):
    business_unit_id: uuid.UUID
    name: str = Field(..., min_length=1, max_length=200)
    code: str = Field(..., min_length=1, max_length=20)
    description: Optional[str] = None
    asset_gl_id: Optional[uuid.UUID] = None
    depreciation_expense_gl_id: Optional[uuid.UUID] = None
    accumulated_depreciation_gl_id: Optional[uuid.UUID] = None


class AssetCategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    description: Optional[str] = None
    asset_gl_id: Optional[uuid.UUID] = None
    depreciation_expense_gl_id: Optional[uuid.UUID] = None
    accumulated_depreciation_gl_id: Optional[uuid.UUID] = None


class AssetCategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    business_unit_id: uuid.UUID
    name: str
    code: str
    description: Optional[str] = None
    asset_gl_id: Optional[uuid.UUID] = None
    depreciation_expense_gl_id: Optional[uuid.UUID] = None
    accumulated_depreciation_gl_id: Optional[uuid.UUID] = None
    is_active: bool
    asset_count: int = 0


class OrgRef(BaseModel):
    """Business unit or department reference embedded in asset views."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str


class CategoryBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    code: str


# ═════════════════════════════════════════════════════════════════════
# Assets
# ═════════════════════════════════════════════════════════════════════


class _DepreciationSetup(BaseModel):
    depreciation_method: Optional[DepreciationMethod] = None
    useful_life_years: Optional[int] = Field(None, ge=0)
    useful_life_months: Optional[int] = Field(None, ge=0)
    salvage_value: Optional[Decimal] = Field(None, ge=0)
    depreciation_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    total_expected_units: Optional[int] = Field(None, gt=0)
    depreciation_start_date: Optional[date] = None
    depreciation_period: Optional[DepreciationPeriod] = None


class AssetCreate(_DepreciationSetup):
    business_unit_id: uuid.UUID
    category_id: uuid.UUID
    item_code: Optional[str] = Field(None, min_length=1, max_length=50)
    description: str = Field(..., min_length=1)
    serial_number: Optional[str] = None
    model_number: Optional[str] = None
    brand: Optional[str] = None
    department_id: Optional[uuid.UUID] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    purchase_date: Optional[date] = None
    purchase_price: Optional[Decimal] = Field(None, ge=0)
    warranty_expiry: Optional[date] = None


class AssetUpdate(_DepreciationSetup):
    description: Optional[str] = Field(None, min_length=1)
    serial_number: Optional[str] = None
    model_number: Optional[str] = None
    brand: Optional[str] = None
    category_id: Optional[uuid.UUID] = None
    department_id: Optional[uuid.UUID] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    purchase_date: Optional[date] = None
    purchase_price: Optional[Decimal] = Field(None, ge=0)
    warranty_expiry: Optional[date] = None


class AssetStatusChange(BaseModel):
    status: AssetStatus
    notes: Optional[str] = None


class AssetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    item_code: str
    description: str
    serial_number: Optional[str] = None
    model_number: Optional[str] = None
    brand: Optional[str] = None
    category_id: uuid.UUID
    business_unit_id: uuid.UUID
    department_id: Optional[uuid.UUID] = None
    status: AssetStatus
    location: Optional[str] = None
    notes: Optional[str] = None
    purchase_date: Optional[date] = None
    purchase_price: Optional[Decimal] = None
    warranty_expiry: Optional[date] = None
    currently_assigned_to: Optional[uuid.UUID] = None
    last_assigned_date: Optional[datetime] = None
    is_active: bool

    depreciation_method: Optional[DepreciationMethod] = None
    useful_life_years: Optional[int] = None
    useful_life_months: Optional[int] = None
    salvage_value: Optional[Decimal] = None
    monthly_depreciation: Optional[Decimal] = None
    depreciation_rate: Optional[Decimal] = None
    total_expected_units: Optional[int] = None
    current_units: Optional[int] = None
    depreciation_start_date: Optional[date] = None
    current_book_value: Optional[Decimal] = None
    accumulated_depreciation: Decimal = Decimal("0")
    last_depreciation_date: Optional[date] = None
    next_depreciation_date: Optional[date] = None
    is_fully_depreciated: bool = False
    depreciation_period: Optional[DepreciationPeriod] = None

    category: Optional[CategoryBrief] = None
    created_at: datetime
    updated_at: datetime


class AssetHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    asset_id: uuid.UUID
    action: AssetHistoryAction
    notes: Optional[str] = None
    previous_value: Optional[str] = None
    new_value: Optional[str] = None
    performed_by: Optional[uuid.UUID] = None
    details: Optional[dict] = None
    created_at: datetime


class AssetDetail(AssetOut):
    history: list[AssetHistoryOut] = []


# ═════════════════════════════════════════════════════════════════════
# Deployments
# ═════════════════════════════════════════════════════════════════════


class DeployAssetsRequest(BaseModel):
    business_unit_id: uuid.UUID
    asset_ids: list[uuid.UUID] = Field(..., min_length=1)
    employee_id: uuid.UUID
    expected_return_date: Optional[date] = None
    deployment_notes: Optional[str] = None
    deployment_condition: Optional[str] = None
    requires_accounting_approval: bool = False


class DeploymentDecision(BaseModel):
    notes: Optional[str] = None


class DeploymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    asset_id: uuid.UUID
    employee_id: uuid.UUID
    business_unit_id: uuid.UUID
    transmittal_number: str
    deployed_date: Optional[datetime] = None
    expected_return_date: Optional[date] = None
    returned_date: Optional[datetime] = None
    status: DeploymentStatus
    deployment_notes: Optional[str] = None
    return_notes: Optional[str] = None
    deployment_condition: Optional[str] = None
    return_condition: Optional[str] = None
    accounting_approver_id: Optional[uuid.UUID] = None
    accounting_approved_at: Optional[datetime] = None
    accounting_notes: Optional[str] = None
    employee: Optional[EmployeeBrief] = None
    created_at: datetime


class PublicAssetOut(AssetOut):
    """Unauthenticated asset view (e.g. behind a printed asset tag)."""

    business_unit: Optional[OrgRef] = None
    department: Optional[OrgRef] = None
    current_deployment: Optional[DeploymentOut] = None
    recent_history: list[AssetHistoryOut] = []


class DeployResult(BaseModel):
    transmittal_number: str
    deployments: list[DeploymentOut]


class ReturnAssetsRequest(BaseModel):
    business_unit_id: uuid.UUID
    asset_ids: list[uuid.UUID] = Field(..., min_length=1)
    returned_date: Optional[datetime] = None
    return_condition: Optional[AssetCondition] = None
    return_notes: Optional[str] = None


class TransferAssetsRequest(BaseModel):
    business_unit_id: uuid.UUID
    asset_ids: list[uuid.UUID] = Field(..., min_length=1)
    transfer_type: Literal["EMPLOYEE", "BUSINESS_UNIT"]
    to_employee_id: Optional[uuid.UUID] = None
    to_business_unit_id: Optional[uuid.UUID] = None
    transfer_date: Optional[datetime] = None
    reason: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def _target_required(self):
        if self.transfer_type == "EMPLOYEE" and self.to_employee_id is None:
            raise ValueError("to_employee_id is required for an employee transfer")
        if self.transfer_type == "BUSINESS_UNIT":
            if self.to_business_unit_id is None:
                raise ValueError("to_business_unit_id is required for a business unit transfer")
            if self.to_business_unit_id == self.business_unit_id:
                raise ValueError("Target business unit must differ from the source")
        return self


class TransferResult(BaseModel):
    transmittal_number: str
    transferred: int


# ═════════════════════════════════════════════════════════════════════
# Disposal / retirement
# ═════════════════════════════════════════════════════════════════════


class DisposeAssetsRequest(BaseModel):
    business_unit_id: uuid.UUID
    asset_ids: list[uuid.UUID] = Field(..., min_length=1)
    disposal_date: date
    disposal_method: DisposalMethod
    disposal_reason: DisposalReason
    disposal_location: Optional[str] = None
    disposal_value: Decimal = Field(Decimal("0"), ge=0)
    disposal_cost: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = None
    approved_by: Optional[uuid.UUID] = None


class DisposalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    asset_id: uuid.UUID
    business_unit_id: uuid.UUID
    disposal_date: date
    reason: DisposalReason
    disposal_method: DisposalMethod
    disposal_location: Optional[str] = None
    disposal_value: Decimal
    disposal_cost: Decimal
    net_disposal_value: Decimal
    book_value_at_disposal: Decimal
    gain_loss: Decimal
    notes: Optional[str] = None
    approved_by: Optional[uuid.UUID] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime


class DisposeResult(BaseModel):
    disposals: list[DisposalOut]
    total_gain_loss: Decimal


class RetireAssetsRequest(BaseModel):
    business_unit_id: uuid.UUID
    asset_ids: list[uuid.UUID] = Field(..., min_length=1)
    retirement_date: date
    reason: RetirementReason
    retirement_method: RetirementMethod
    condition: Optional[AssetCondition] = None
    replacement_asset_id: Optional[uuid.UUID] = None
    disposal_planned: bool = False
    disposal_date: Optional[date] = None
    notes: Optional[str] = None
    approved_by: Optional[uuid.UUID] = None


class RetirementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    asset_id: uuid.UUID
    business_unit_id: uuid.UUID
    retirement_date: date
    reason: RetirementReason
    retirement_method: RetirementMethod
    condition: Optional[AssetCondition] = None
    replacement_asset_id: Optional[uuid.UUID] = None
    disposal_planned: bool
    disposal_date: Optional[date] = None
    notes: Optional[str] = None
    approved_by: Optional[uuid.UUID] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime


class RetireResult(BaseModel):
    retirements: list[RetirementOut]
    deployments_closed: int
