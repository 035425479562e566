"""Organization admin tests — business units, departments, users, approvers, GL accounts."""

from __future__ import annotations

from sqlalchemy import select

from backoffice.auth.models import UserSession
from backoffice.common.audit import AuditTrail
from backoffice.common.constants import ApproverType, UserRole
from backoffice.organization.service import DepartmentApproverService
from tests.conftest import TestSessionFactory, headers_for, make_department, make_user


# ── Business units ──────────────────────────────────────────────────


async def test_admin_creates_business_unit(client, admin_headers):
    resp = await client.post(
        "/api/v1/business-units",
        json={"code": "WH", "name": "Warehouse"},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    assert resp.json()["code"] == "WH"

    dup = await client.post(
        "/api/v1/business-units",
        json={"code": "WH", "name": "Another"},
        headers=admin_headers,
    )
    assert dup.status_code == 409


async def test_non_admin_sees_only_own_business_unit(
    client, auth_headers, business_unit, other_business_unit,
):
    resp = await client.get("/api/v1/business-units", headers=auth_headers)
    assert resp.status_code == 200
    assert [bu["id"] for bu in resp.json()["data"]] == [str(business_unit.id)]


async def test_deactivate_business_unit_is_audited(client, db, admin_headers, other_business_unit):
    resp = await client.delete(
        f"/api/v1/business-units/{other_business_unit.id}", headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False

    async with TestSessionFactory() as session:
        entries = (await session.execute(
            select(AuditTrail).where(AuditTrail.entity_id == other_business_unit.id),
        )).scalars().all()
    assert [e.action for e in entries] == ["deactivate"]


# ── Departments ─────────────────────────────────────────────────────


async def test_manager_creates_department_in_own_unit(client, db, business_unit):
    manager = await make_user(db, business_unit_id=business_unit.id, role=UserRole.MANAGER)
    headers = await headers_for(db, manager)

    resp = await client.post(
        "/api/v1/departments",
        json={"code": "FIN", "name": "Finance", "business_unit_id": str(business_unit.id)},
        headers=headers,
    )
    assert resp.status_code == 201

    listing = await client.get("/api/v1/departments", headers=headers)
    assert "FIN" in [d["code"] for d in listing.json()["data"]]


async def test_manager_cannot_create_department_elsewhere(
    client, db, business_unit, other_business_unit,
):
    manager = await make_user(db, business_unit_id=business_unit.id, role=UserRole.MANAGER)
    headers = await headers_for(db, manager)

    resp = await client.post(
        "/api/v1/departments",
        json={"code": "FIN", "name": "Finance", "business_unit_id": str(other_business_unit.id)},
        headers=headers,
    )
    assert resp.status_code == 403


# ── Users ───────────────────────────────────────────────────────────


async def test_hr_creates_user_and_user_can_log_in(client, db, business_unit, department):
    hr = await make_user(db, business_unit_id=business_unit.id, role=UserRole.HR)
    headers = await headers_for(db, hr)

    resp = await client.post(
        "/api/v1/users",
        json={
            "employee_id": "E-900",
            "name": "New Hire",
            "email": "new.hire@example.com",
            "password": "welcome-123",
            "business_unit_id": str(business_unit.id),
            "department_id": str(department.id),
        },
        headers=headers,
    )
    assert resp.status_code == 201
    assert "password_hash" not in resp.json()

    login = await client.post(
        "/api/v1/auth/login", json={"employee_id": "E-900", "password": "welcome-123"},
    )
    assert login.status_code == 200


async def test_duplicate_employee_id_conflicts(client, db, admin_headers, business_unit, employee):
    resp = await client.post(
        "/api/v1/users",
        json={
            "employee_id": employee.employee_id,
            "name": "Clone",
            "password": "welcome-123",
            "business_unit_id": str(business_unit.id),
        },
        headers=admin_headers,
    )
    assert resp.status_code == 409


async def test_department_must_belong_to_users_unit(
    client, db, admin_headers, business_unit, other_business_unit,
):
    foreign_dept = await make_department(db, other_business_unit.id, code="XD")
    resp = await client.post(
        "/api/v1/users",
        json={
            "employee_id": "E-901",
            "name": "Misplaced",
            "password": "welcome-123",
            "business_unit_id": str(business_unit.id),
            "department_id": str(foreign_dept.id),
        },
        headers=admin_headers,
    )
    assert resp.status_code == 400


async def test_user_search(client, db, admin_headers, business_unit):
    await make_user(db, business_unit_id=business_unit.id, name="Rosa Reyes")
    await make_user(db, business_unit_id=business_unit.id, name="Ben Cruz")

    resp = await client.get(
        "/api/v1/users",
        params={"search": "reyes", "business_unit_id": str(business_unit.id)},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert [u["name"] for u in resp.json()["data"]] == ["Rosa Reyes"]
    assert resp.json()["meta"]["total"] == 1


async def test_deactivating_user_revokes_sessions(client, db, admin_headers, employee):
    await headers_for(db, employee)
    resp = await client.delete(f"/api/v1/users/{employee.id}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False

    async with TestSessionFactory() as session:
        open_sessions = (await session.execute(
            select(UserSession).where(
                UserSession.user_id == employee.id, UserSession.is_revoked.is_(False),
            ),
        )).scalars().all()
    assert open_sessions == []


async def test_user_cannot_be_own_approver(client, admin_headers, employee):
    resp = await client.patch(
        f"/api/v1/users/{employee.id}",
        json={"approver_id": str(employee.id)},
        headers=admin_headers,
    )
    assert resp.status_code == 400


# ── Department approvers ────────────────────────────────────────────


async def test_assign_and_lookup_department_approvers(
    client, db, admin_headers, department, employee,
):
    resp = await client.post(
        "/api/v1/department-approvers",
        json={
            "department_id": str(department.id),
            "employee_id": str(employee.id),
            "approver_types": ["RECOMMENDING", "FINAL"],
        },
        headers=admin_headers,
    )
    assert resp.status_code == 201
    assert len(resp.json()["data"]) == 2

    again = await client.post(
        "/api/v1/department-approvers",
        json={
            "department_id": str(department.id),
            "employee_id": str(employee.id),
            "approver_types": ["FINAL"],
        },
        headers=admin_headers,
    )
    assert again.status_code == 409

    lookup = await client.get(
        "/api/v1/department-approvers/lookup",
        params={"department_id": str(department.id), "approver_type": "FINAL"},
        headers=admin_headers,
    )
    assert [u["id"] for u in lookup.json()["data"]] == [str(employee.id)]


async def test_toggled_approver_no_longer_counts(client, db, admin_headers, department, employee):
    resp = await client.post(
        "/api/v1/department-approvers",
        json={
            "department_id": str(department.id),
            "employee_id": str(employee.id),
            "approver_types": ["RECOMMENDING"],
        },
        headers=admin_headers,
    )
    approver_id = resp.json()["data"][0]["id"]

    toggled = await client.patch(
        f"/api/v1/department-approvers/{approver_id}/toggle", headers=admin_headers,
    )
    assert toggled.json()["is_active"] is False

    async with TestSessionFactory() as session:
        assert not await DepartmentApproverService.is_department_approver(
            session, department.id, employee.id, ApproverType.RECOMMENDING,
        )


# ── GL accounts ─────────────────────────────────────────────────────


async def test_gl_account_lifecycle(client, db, business_unit):
    accountant = await make_user(db, business_unit_id=business_unit.id, role=UserRole.ACCTG)
    headers = await headers_for(db, accountant)

    created = await client.post(
        "/api/v1/gl-accounts",
        json={"account_code": "1500", "account_name": "Equipment", "account_type": "ASSET"},
        headers=headers,
    )
    assert created.status_code == 201
    account_id = created.json()["id"]

    toggled = await client.patch(f"/api/v1/gl-accounts/{account_id}/toggle", headers=headers)
    assert toggled.json()["is_active"] is False

    active = await client.get("/api/v1/gl-accounts", headers=headers)
    assert active.json()["data"] == []


async def test_plain_user_cannot_create_gl_account(client, auth_headers):
    resp = await client.post(
        "/api/v1/gl-accounts",
        json={"account_code": "1500", "account_name": "Equipment", "account_type": "ASSET"},
        headers=auth_headers,
    )
    assert resp.status_code == 403
