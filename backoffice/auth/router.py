"""Auth router — credential login, token refresh, logout, current user profile."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.auth.dependencies import extract_bearer, get_current_user, hash_token
from backoffice.auth.schemas import (
    LoginRequest,
    MeResponse,
    OrgBrief,
    RefreshRequest,
    RefreshResponse,
    TokenResponse,
    UserInfo,
)
from backoffice.auth.service import (
    authenticate,
    create_session,
    refresh_access_token,
    revoke_session,
)
from backoffice.common.audit import create_audit_entry, request_context
from backoffice.common.constants import PERMISSIONS
from backoffice.common.rate_limit import LOGIN_RATE_LIMIT, limiter
from backoffice.database import get_db
from backoffice.organization.models import User

router = APIRouter(prefix="", tags=["auth"])


def _user_info(user: User) -> UserInfo:
    return UserInfo(
        id=user.id,
        employee_id=user.employee_id,
        name=user.name,
        email=user.email,
        role=user.role.value,
        business_unit_id=user.business_unit_id,
        department_id=user.department_id,
        is_acctg=user.is_acctg,
        is_purchaser=user.is_purchaser,
    )


# ── POST /login — employee ID + password ────────────────────────────

@router.post("/login", response_model=TokenResponse)
@limiter.limit(LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    user = await authenticate(db, body.employee_id, body.password)

    ctx = request_context(request)
    access_token, refresh_token, expires_in = await create_session(
        db, user, ctx["ip_address"], ctx["user_agent"],
    )

    await create_audit_entry(
        db,
        action="login",
        entity_type="user_session",
        entity_id=user.id,
        actor_id=user.id,
        business_unit_id=user.business_unit_id,
        new_values={"ip": ctx["ip_address"], "user_agent": ctx["user_agent"]},
        **ctx,
    )

    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=expires_in,
        user=_user_info(user),
    )


# ── POST /refresh — rotate the token pair ──────────────────────────

@router.post("/refresh", response_model=RefreshResponse)
async def refresh_token(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    access_token, new_refresh, expires_in = await refresh_access_token(
        db, body.refresh_token,
    )
    return RefreshResponse(
        access_token=access_token,
        refresh_token=new_refresh,
        expires_in=expires_in,
    )


# ── POST /logout — revoke current session ──────────────────────────

@router.post("/logout")
async def logout(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await revoke_session(db, hash_token(extract_bearer(request)))

    await create_audit_entry(
        db,
        action="logout",
        entity_type="user_session",
        entity_id=user.id,
        actor_id=user.id,
        business_unit_id=user.business_unit_id,
        **request_context(request),
    )
    return {"message": "Logged out successfully"}


# ── GET /me — current user profile ─────────────────────────────────

@router.get("/me", response_model=MeResponse)
async def me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(func.count()).select_from(User).where(
            User.approver_id == user.id,
            User.is_active.is_(True),
        ),
    )
    direct_reports_count = result.scalar() or 0

    bu = user.business_unit
    dept = user.department
    return MeResponse(
        **_user_info(user).model_dump(),
        permissions=PERMISSIONS.get(user.role, []),
        business_unit=OrgBrief(id=bu.id, code=bu.code, name=bu.name) if bu else None,
        department=OrgBrief(id=dept.id, code=dept.code, name=dept.name) if dept else None,
        direct_reports_count=direct_reports_count,
    )
