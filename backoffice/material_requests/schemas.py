"""Material request Pydantic v2 schemas."""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from backoffice.common.constants import ApprovalStatus, MRSRequestStatus, RequestType
from backoffice.leave.schemas import EmployeeBrief


class DepartmentBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str


# ═════════════════════════════════════════════════════════════════════
# Items
# ═════════════════════════════════════════════════════════════════════


class MaterialRequestItemIn(BaseModel):
    item_code: Optional[str] = Field(None, max_length=50)
    description: str = Field(..., min_length=1)
    uom: str = Field(..., min_length=1, max_length=20)
    quantity: Decimal = Field(..., gt=0)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    remarks: Optional[str] = None


class MaterialRequestItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    item_code: Optional[str] = None
    description: str
    uom: str
    quantity: Decimal
    unit_price: Optional[Decimal] = None
    total_price: Optional[Decimal] = None
    quantity_served: Decimal
    remarks: Optional[str] = None


# ═════════════════════════════════════════════════════════════════════
# Requests
# ═════════════════════════════════════════════════════════════════════


class MaterialRequestCreate(BaseModel):
    business_unit_id: uuid.UUID
    department_id: Optional[uuid.UUID] = None
    series: str = Field(..., min_length=1, max_length=10)
    type: RequestType
    date_prepared: date
    date_required: date
    charge_to: Optional[str] = Field(None, max_length=200)
    bldg_code: Optional[str] = Field(None, max_length=50)
    purpose: Optional[str] = None
    remarks: Optional[str] = None
    deliver_to: Optional[str] = Field(None, max_length=200)
    is_store_use: bool = False
    freight: Decimal = Field(Decimal("0"), ge=0)
    discount: Decimal = Field(Decimal("0"), ge=0)
    reviewer_id: Optional[uuid.UUID] = None
    rec_approver_id: Optional[uuid.UUID] = None
    final_approver_id: Optional[uuid.UUID] = None
    items: list[MaterialRequestItemIn] = Field(..., min_length=1)


class MaterialRequestUpdate(BaseModel):
    """Partial update; ``items`` replaces the whole item list when given."""

    department_id: Optional[uuid.UUID] = None
    type: Optional[RequestType] = None
    date_prepared: Optional[date] = None
    date_required: Optional[date] = None
    charge_to: Optional[str] = Field(None, max_length=200)
    bldg_code: Optional[str] = Field(None, max_length=50)
    purpose: Optional[str] = None
    remarks: Optional[str] = None
    deliver_to: Optional[str] = Field(None, max_length=200)
    is_store_use: Optional[bool] = None
    freight: Optional[Decimal] = Field(None, ge=0)
    discount: Optional[Decimal] = Field(None, ge=0)
    reviewer_id: Optional[uuid.UUID] = None
    rec_approver_id: Optional[uuid.UUID] = None
    final_approver_id: Optional[uuid.UUID] = None
    items: Optional[list[MaterialRequestItemIn]] = Field(None, min_length=1)

    @field_validator(
        "type", "date_prepared", "date_required", "is_store_use",
        "freight", "discount", "items",
        mode="before",
    )
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but cannot be null")
        return v


class MaterialRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    doc_no: str
    series: str
    type: RequestType
    status: MRSRequestStatus
    business_unit_id: uuid.UUID
    department_id: Optional[uuid.UUID] = None
    requested_by_id: uuid.UUID

    date_prepared: date
    date_required: date
    date_approved: Optional[datetime] = None
    date_posted: Optional[datetime] = None
    date_received: Optional[datetime] = None
    date_revised: Optional[datetime] = None

    charge_to: Optional[str] = None
    bldg_code: Optional[str] = None
    purpose: Optional[str] = None
    remarks: Optional[str] = None
    deliver_to: Optional[str] = None
    is_store_use: bool
    freight: Decimal
    discount: Decimal
    total: Decimal

    reviewer_id: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    review_status: Optional[ApprovalStatus] = None
    review_remarks: Optional[str] = None

    rec_approver_id: Optional[uuid.UUID] = None
    rec_approval_status: Optional[ApprovalStatus] = None
    rec_approval_date: Optional[datetime] = None
    rec_approval_remarks: Optional[str] = None

    final_approver_id: Optional[uuid.UUID] = None
    final_approval_status: Optional[ApprovalStatus] = None
    final_approval_date: Optional[datetime] = None
    final_approval_remarks: Optional[str] = None

    served_at: Optional[datetime] = None
    served_by: Optional[uuid.UUID] = None
    served_notes: Optional[str] = None
    supplier_bp_code: Optional[str] = None
    supplier_name: Optional[str] = None
    purchase_order_number: Optional[str] = None

    confirmation_no: Optional[str] = None
    processed_by: Optional[uuid.UUID] = None
    processed_at: Optional[datetime] = None

    acknowledged_at: Optional[datetime] = None
    acknowledged_by_id: Optional[uuid.UUID] = None

    created_at: datetime
    updated_at: datetime

    requested_by: Optional[EmployeeBrief] = None
    department: Optional[DepartmentBrief] = None
    items: list[MaterialRequestItemOut] = []


class NextDocumentNumber(BaseModel):
    series: str
    doc_no: str


# ═════════════════════════════════════════════════════════════════════
# Workflow actions
# ═════════════════════════════════════════════════════════════════════


class ReviewAction(BaseModel):
    decision: Literal["APPROVE", "REQUEST_EDIT", "REJECT"]
    remarks: Optional[str] = None

    @model_validator(mode="after")
    def _remarks_for_send_back(self) -> "ReviewAction":
        if self.decision != "APPROVE" and not (self.remarks or "").strip():
            raise ValueError("Remarks are required when a request is sent back or rejected.")
        return self


class ApproveAction(BaseModel):
    remarks: Optional[str] = None


class DisapproveAction(BaseModel):
    remarks: str = Field(..., min_length=1)


class ServeRequest(BaseModel):
    served_quantities: dict[uuid.UUID, Decimal] = Field(..., min_length=1)
    served_notes: Optional[str] = None
    supplier_bp_code: Optional[str] = Field(None, max_length=50)
    supplier_name: Optional[str] = Field(None, max_length=200)
    purchase_order_number: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def _positive_quantities(self) -> "ServeRequest":
        if any(qty <= 0 for qty in self.served_quantities.values()):
            raise ValueError("Served quantities must be greater than zero.")
        return self


class PostRequest(BaseModel):
    confirmation_no: Optional[str] = Field(None, max_length=50)


class AcknowledgementRequest(BaseModel):
    signature_data: str = Field(..., min_length=1)
