"""Organization Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update  → request bodies (write)
  - *Response          → response bodies (read)
  - *Brief             → compact read representations
"""


import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from backoffice.common.constants import ApproverType, GLAccountType, UserRole


# ═════════════════════════════════════════════════════════════════════
# Business unit
# ═════════════════════════════════════════════════════════════════════


class BusinessUnitCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None


class BusinessUnitUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class BusinessUnitResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class DepartmentCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    business_unit_id: uuid.UUID


class DepartmentUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class DepartmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    description: Optional[str] = None
    business_unit_id: uuid.UUID
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# User
# ═════════════════════════════════════════════════════════════════════


class UserCreate(BaseModel):
    employee_id: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    password: str = Field(..., min_length=8)
    role: UserRole = UserRole.USER
    classification: Optional[str] = None
    business_unit_id: uuid.UUID
    department_id: Optional[uuid.UUID] = None
    approver_id: Optional[uuid.UUID] = None
    is_acctg: bool = False
    is_purchaser: bool = False
    hire_date: Optional[date] = None


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    classification: Optional[str] = None
    department_id: Optional[uuid.UUID] = None
    approver_id: Optional[uuid.UUID] = None
    is_acctg: Optional[bool] = None
    is_purchaser: Optional[bool] = None
    hire_date: Optional[date] = None
    terminate_date: Optional[date] = None
    is_active: Optional[bool] = None


class PasswordReset(BaseModel):
    new_password: str = Field(..., min_length=8)


class UserBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: str
    name: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: str
    name: str
    email: Optional[str] = None
    role: UserRole
    classification: Optional[str] = None
    business_unit_id: Optional[uuid.UUID] = None
    department_id: Optional[uuid.UUID] = None
    approver_id: Optional[uuid.UUID] = None
    is_acctg: bool
    is_purchaser: bool
    hire_date: Optional[date] = None
    terminate_date: Optional[date] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Department approvers
# ═════════════════════════════════════════════════════════════════════


class DepartmentApproverAssign(BaseModel):
    department_id: uuid.UUID
    employee_id: uuid.UUID
    approver_types: list[ApproverType] = Field(..., min_length=1)


class DepartmentApproverResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    department_id: uuid.UUID
    employee_id: uuid.UUID
    approver_type: ApproverType
    is_active: bool
    employee: Optional[UserBrief] = None
    created_at: datetime


# ═════════════════════════════════════════════════════════════════════
# GL accounts
# ═════════════════════════════════════════════════════════════════════


class GLAccountCreate(BaseModel):
    account_code: str = Field(..., min_length=1, max_length=50)
    account_name: str = Field(..., min_length=1, max_length=200)
    account_type: GLAccountType
    description: Optional[str] = None


class GLAccountUpdate(BaseModel):
    account_name: Optional[str] = Field(None, min_length=1, max_length=200)
    account_type: Optional[GLAccountType] = None
    description: Optional[str] = None


class GLAccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    account_code: str
    account_name: str
    account_type: GLAccountType
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
