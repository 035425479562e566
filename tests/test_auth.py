"""Auth module tests — credential login, JWT, sessions, RBAC, tenant scoping."""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone

from jose import jwt
from sqlalchemy import select

from backoffice.auth.dependencies import ensure_business_unit_access, has_role
from backoffice.auth.models import UserSession
from backoffice.common.constants import PERMISSIONS, UserRole
from backoffice.common.exceptions import ForbiddenException
from backoffice.config import settings
from tests.conftest import (
    TestSessionFactory,
    create_access_token,
    headers_for,
    make_user,
)


async def _login(client, employee_id: str, password: str):
    return await client.post(
        "/api/v1/auth/login",
        json={"employee_id": employee_id, "password": password},
    )


# ── Login ───────────────────────────────────────────────────────────


async def test_login_returns_token_pair(client, db, business_unit):
    user = await make_user(
        db, business_unit_id=business_unit.id, employee_id="E-100", password="s3cret-pass",
    )
    resp = await _login(client, "E-100", "s3cret-pass")
    assert resp.status_code == 200
    data = resp.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["id"] == str(user.id)
    assert data["user"]["business_unit_id"] == str(business_unit.id)

    payload = jwt.decode(
        data["access_token"], settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM],
    )
    assert payload["sub"] == str(user.id)
    assert payload["role"] == UserRole.USER.value
    assert payload["type"] == "access"


async def test_login_wrong_password(client, db, business_unit):
    await make_user(
        db, business_unit_id=business_unit.id, employee_id="E-101", password="right-pass",
    )
    resp = await _login(client, "E-101", "wrong-pass")
    assert resp.status_code == 401


async def test_login_unknown_employee(client):
    resp = await _login(client, "NOPE", "whatever")
    assert resp.status_code == 401


async def test_login_inactive_user_rejected(client, db, business_unit):
    await make_user(
        db,
        business_unit_id=business_unit.id,
        employee_id="E-102",
        password="s3cret-pass",
        is_active=False,
    )
    resp = await _login(client, "E-102", "s3cret-pass")
    assert resp.status_code == 401


async def test_login_persists_session(client, db, business_unit):
    user = await make_user(
        db, business_unit_id=business_unit.id, employee_id="E-103", password="s3cret-pass",
    )
    resp = await _login(client, "E-103", "s3cret-pass")
    token = resp.json()["access_token"]

    async with TestSessionFactory() as session:
        result = await session.execute(
            select(UserSession).where(UserSession.user_id == user.id),
        )
        sessions = result.scalars().all()
    assert len(sessions) == 1
    assert sessions[0].token_hash == hashlib.sha256(token.encode()).hexdigest()


# ── Tokens and sessions ─────────────────────────────────────────────


async def test_expired_token_rejected(client, db, employee):
    expired = create_access_token(employee.id, expired=True)
    db.add(
        UserSession(
            user_id=employee.id,
            token_hash=hashlib.sha256(expired.encode()).hexdigest(),
            expires_at=datetime.now(timezone.utc) - timedelta(hours=1),
        )
    )
    await db.commit()

    resp = await client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {expired}"},
    )
    assert resp.status_code == 401


async def test_token_without_session_rejected(client, employee):
    token = create_access_token(employee.id)
    resp = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


async def test_missing_authorization_header(client):
    resp = await client.get("/api/v1/auth/me")
    assert resp.status_code == 401


async def test_refresh_rotates_tokens(client, db, business_unit):
    await make_user(
        db, business_unit_id=business_unit.id, employee_id="E-104", password="s3cret-pass",
    )
    login = (await _login(client, "E-104", "s3cret-pass")).json()

    resp = await client.post(
        "/api/v1/auth/refresh", json={"refresh_token": login["refresh_token"]},
    )
    assert resp.status_code == 200
    assert resp.json()["refresh_token"] != login["refresh_token"]


async def test_refresh_token_reuse_revokes_all_sessions(client, db, business_unit):
    user = await make_user(
        db, business_unit_id=business_unit.id, employee_id="E-105", password="s3cret-pass",
    )
    login = (await _login(client, "E-105", "s3cret-pass")).json()
    first = await client.post(
        "/api/v1/auth/refresh", json={"refresh_token": login["refresh_token"]},
    )
    assert first.status_code == 200

    reused = await client.post(
        "/api/v1/auth/refresh", json={"refresh_token": login["refresh_token"]},
    )
    assert reused.status_code == 403

    async with TestSessionFactory() as session:
        result = await session.execute(
            select(UserSession).where(
                UserSession.user_id == user.id, UserSession.is_revoked.is_(False),
            ),
        )
        assert result.scalars().all() == []


async def test_logout_revokes_session(client, auth_headers):
    resp = await client.post("/api/v1/auth/logout", headers=auth_headers)
    assert resp.status_code == 200

    resp = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert resp.status_code == 401


async def test_me_returns_profile_and_permissions(client, db, employee, auth_headers):
    await make_user(
        db,
        business_unit_id=employee.business_unit_id,
        name="Direct Report",
        approver_id=employee.id,
    )
    resp = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["employee_id"] == employee.employee_id
    assert data["business_unit"]["code"] == "HQ"
    assert data["department"]["code"] == "OPS"
    assert data["direct_reports_count"] == 1
    assert data["permissions"] == PERMISSIONS[UserRole.USER]


# ── RBAC / scoping ──────────────────────────────────────────────────


async def test_admin_satisfies_every_role(db, admin_user, employee):
    assert has_role(admin_user, UserRole.HR)
    assert has_role(admin_user, UserRole.ACCTG)
    assert not has_role(employee, UserRole.HR)


async def test_role_requirement_blocks_low_role(client, auth_headers):
    resp = await client.post(
        "/api/v1/business-units",
        json={"code": "NEW", "name": "New Unit"},
        headers=auth_headers,
    )
    assert resp.status_code == 403


async def test_business_unit_scoping(db, employee, admin_user, other_business_unit):
    ensure_business_unit_access(employee, employee.business_unit_id)
    ensure_business_unit_access(admin_user, other_business_unit.id)
    try:
        ensure_business_unit_access(employee, other_business_unit.id)
    except ForbiddenException:
        pass
    else:
        raise AssertionError("cross-tenant access should be refused")


async def test_deactivated_user_token_rejected(client, db, business_unit):
    user = await make_user(db, business_unit_id=business_unit.id)
    headers = await headers_for(db, user)
    user.is_active = False
    await db.commit()

    resp = await client.get("/api/v1/auth/me", headers=headers)
    assert resp.status_code == 401


async def test_cron_session_cleanup_removes_dead_sessions(client, db, employee, auth_headers):
    now = datetime.now(timezone.utc)
    db.add_all([
        UserSession(
            user_id=employee.id,
            token_hash=hashlib.sha256(b"expired").hexdigest(),
            expires_at=now - timedelta(hours=1),
            is_revoked=False,
        ),
        UserSession(
            user_id=employee.id,
            token_hash=hashlib.sha256(b"revoked").hexdigest(),
            expires_at=now + timedelta(hours=1),
            is_revoked=True,
        ),
    ])
    await db.commit()

    denied = await client.post("/api/v1/cron/session-cleanup")
    assert denied.status_code == 401

    resp = await client.post(
        "/api/v1/cron/session-cleanup",
        headers={"Authorization": "Bearer test-cron-secret"},
    )
    assert resp.status_code == 200
    assert resp.json()["deleted"] == 2

    still_valid = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert still_valid.status_code == 200
