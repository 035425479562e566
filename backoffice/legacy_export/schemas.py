"""Row shapes of the legacy migration export (camelCase on the wire)."""


import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ExportRow(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EmployeeExport(ExportRow):
    id: uuid.UUID
    employee_id: str
    name: str
    email: Optional[str] = None
    password_hash: Optional[str] = None
    role: str
    classification: Optional[str] = None
    is_active: bool = True
    hire_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime
    department_id: Optional[uuid.UUID] = None
    department_name: Optional[str] = None


class LeaveBalanceExport(ExportRow):
    id: uuid.UUID
    employee_id: str
    employee_name: str
    leave_type_id: uuid.UUID
    leave_type_name: str
    year: int
    allocated_days: float
    used_days: float
    created_at: datetime
    updated_at: datetime


class _ApprovalTrail(ExportRow):
    manager_action_at: Optional[datetime] = None
    manager_comments: Optional[str] = None
    manager_employee_id: str = ""
    manager_name: str = ""
    hr_action_at: Optional[datetime] = None
    hr_comments: Optional[str] = None
    hr_employee_id: str = ""
    hr_name: str = ""


class LeaveRequestExport(_ApprovalTrail):
    id: uuid.UUID
    employee_id: str
    employee_name: str
    leave_type_id: uuid.UUID
    leave_type_name: str
    start_date: date
    end_date: date
    reason: str
    status: str
    session: str
    created_at: datetime
    updated_at: datetime


class OvertimeRequestExport(_ApprovalTrail):
    id: uuid.UUID
    employee_id: str
    employee_name: str
    start_time: datetime
    end_time: datetime
    overtime_date: datetime
    reason: str
    status: str
    created_at: datetime
    updated_at: datetime


class DepartmentRef(ExportRow):
    id: Optional[uuid.UUID] = None
    code: Optional[str] = None
    name: Optional[str] = None


class MaterialRequestItemExport(ExportRow):
    id: uuid.UUID
    item_code: Optional[str] = None
    description: str
    uom: str
    quantity: float
    quantity_served: float
    unit_price: Optional[float] = None
    line_total: Optional[float] = None
    remarks: Optional[str] = None


class MaterialRequestExport(ExportRow):
    id: uuid.UUID
    doc_no: str
    series: str
    request_type: str
    status: str
    date_prepared: date
    date_required: date
    date_approved: Optional[datetime] = None
    date_posted: Optional[datetime] = None
    date_received: Optional[datetime] = None
    date_revised: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    charge_to: Optional[str] = None
    bldg_code: Optional[str] = None
    purpose: Optional[str] = None
    remarks: Optional[str] = None
    deliver_to: Optional[str] = None
    is_store_use: bool
    freight: float = 0
    discount: float = 0
    total: float = 0
    confirmation_no: Optional[str] = None
    supplier_bp_code: Optional[str] = Field(None, alias="supplierBPCode")
    supplier_name: Optional[str] = None
    purchase_order_number: Optional[str] = None
    processed_at: Optional[datetime] = None
    served_at: Optional[datetime] = None
    served_notes: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    review_status: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_remarks: Optional[str] = None
    rec_approval_status: Optional[str] = None
    rec_approval_date: Optional[datetime] = None
    rec_approval_remarks: Optional[str] = None
    final_approval_status: Optional[str] = None
    final_approval_date: Optional[datetime] = None
    final_approval_remarks: Optional[str] = None
    requested_by_employee_id: str
    requested_by_name: str
    reviewer_employee_id: str = ""
    reviewer_name: str = ""
    rec_approver_employee_id: str = ""
    rec_approver_name: str = ""
    final_approver_employee_id: str = ""
    final_approver_name: str = ""
    served_by_employee_id: str = ""
    served_by_name: str = ""
    processed_by_employee_id: str = ""
    processed_by_name: str = ""
    acknowledged_by_employee_id: str = ""
    acknowledged_by_name: str = ""
    department: DepartmentRef
    items: list[MaterialRequestItemExport] = []
