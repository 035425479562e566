"""Auth Pydantic schemas for request / response validation."""


import uuid
from typing import Optional

from pydantic import BaseModel, Field


# ── Requests ────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    employee_id: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str


# ── Embedded / Shared ──────────────────────────────────────────────

class UserInfo(BaseModel):
    id: uuid.UUID
    employee_id: str
    name: str
    email: Optional[str] = None
    role: str
    business_unit_id: Optional[uuid.UUID] = None
    department_id: Optional[uuid.UUID] = None
    is_acctg: bool = False
    is_purchaser: bool = False


class OrgBrief(BaseModel):
    id: uuid.UUID
    code: str
    name: str


# ── Responses ───────────────────────────────────────────────────────

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserInfo


class RefreshResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class MeResponse(UserInfo):
    permissions: list[str]
    business_unit: Optional[OrgBrief] = None
    department: Optional[OrgBrief] = None
    direct_reports_count: int
