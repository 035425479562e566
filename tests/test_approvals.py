"""Approval workflow tests — manager then HR, rejections, queues, balance deduction."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select

from backoffice.approvals.workflow import (
    ApprovalAction,
    ApprovalStage,
    next_transition,
)
from backoffice.common.constants import RequestStatus, UserRole
from backoffice.common.exceptions import BusinessRuleException, ForbiddenException
from backoffice.leave.models import LeaveBalance, LeaveType
from tests.conftest import TestSessionFactory, headers_for, make_user


@pytest.fixture
async def manager(db, business_unit, employee):
    mgr = await make_user(
        db, business_unit_id=business_unit.id, role=UserRole.MANAGER, name="Mona Manager",
    )
    employee.approver_id = mgr.id
    await db.commit()
    return mgr


@pytest.fixture
async def manager_headers(db, manager):
    return await headers_for(db, manager)


@pytest.fixture
async def hr_headers(db, business_unit):
    hr = await make_user(db, business_unit_id=business_unit.id, role=UserRole.HR, name="Hal HR")
    return await headers_for(db, hr)


@pytest.fixture
async def vacation(db):
    lt = LeaveType(name="Vacation Leave", default_allocated_days=Decimal("15"))
    db.add(lt)
    await db.commit()
    return lt


async def _submit_leave(client, headers, leave_type, start="2025-06-02", end="2025-06-04"):
    resp = await client.post(
        "/api/v1/leave/requests",
        json={
            "leave_type_id": str(leave_type.id),
            "start_date": start,
            "end_date": end,
            "reason": "Rest",
        },
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.json()["id"]


async def _submit_overtime(client, headers):
    resp = await client.post(
        "/api/v1/overtime/requests",
        json={
            "start_time": "2025-06-02T18:00:00+00:00",
            "end_time": "2025-06-02T20:00:00+00:00",
            "reason": "Inventory count",
        },
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.json()["id"]


# ═════════════════════════════════════════════════════════════════════
# Workflow rules
# ═════════════════════════════════════════════════════════════════════


class TestWorkflow:

    def test_manager_approval_forwards_to_hr(self):
        mgr = uuid.uuid4()
        t = next_transition(
            actor_id=mgr,
            actor_role=UserRole.MANAGER,
            requester_approver_id=mgr,
            status=RequestStatus.PENDING_MANAGER,
            action=ApprovalAction.APPROVE,
        )
        assert t.stage == ApprovalStage.MANAGER
        assert t.to_status == RequestStatus.PENDING_HR

    def test_manager_of_someone_else_is_refused(self):
        with pytest.raises(ForbiddenException):
            next_transition(
                actor_id=uuid.uuid4(),
                actor_role=UserRole.MANAGER,
                requester_approver_id=uuid.uuid4(),
                status=RequestStatus.PENDING_MANAGER,
                action=ApprovalAction.APPROVE,
            )

    def test_hr_cannot_act_before_manager(self):
        with pytest.raises(BusinessRuleException):
            next_transition(
                actor_id=uuid.uuid4(),
                actor_role=UserRole.HR,
                requester_approver_id=None,
                status=RequestStatus.PENDING_MANAGER,
                action=ApprovalAction.APPROVE,
            )

    def test_admin_acts_at_either_stage(self):
        admin = uuid.uuid4()
        first = next_transition(
            actor_id=admin,
            actor_role=UserRole.ADMIN,
            requester_approver_id=None,
            status=RequestStatus.PENDING_MANAGER,
            action=ApprovalAction.APPROVE,
        )
        second = next_transition(
            actor_id=admin,
            actor_role=UserRole.ADMIN,
            requester_approver_id=None,
            status=RequestStatus.PENDING_HR,
            action=ApprovalAction.REJECT,
        )
        assert first.to_status == RequestStatus.PENDING_HR
        assert (second.stage, second.to_status) == (ApprovalStage.HR, RequestStatus.REJECTED)

    def test_finished_request_cannot_be_decided(self):
        with pytest.raises(BusinessRuleException):
            next_transition(
                actor_id=uuid.uuid4(),
                actor_role=UserRole.ADMIN,
                requester_approver_id=None,
                status=RequestStatus.APPROVED,
                action=ApprovalAction.APPROVE,
            )


# ═════════════════════════════════════════════════════════════════════
# Leave approvals
# ═════════════════════════════════════════════════════════════════════


async def test_two_stage_approval_deducts_balance(
    client, db, employee, auth_headers, manager, manager_headers, hr_headers, vacation,
):
    db.add(
        LeaveBalance(
            user_id=employee.id,
            leave_type_id=vacation.id,
            year=2025,
            allocated_days=Decimal("15"),
            used_days=Decimal("2"),
        )
    )
    await db.commit()
    request_id = await _submit_leave(client, auth_headers, vacation)

    by_manager = await client.post(
        f"/api/v1/approvals/leave/{request_id}/approve",
        json={"comments": "Enjoy"},
        headers=manager_headers,
    )
    assert by_manager.status_code == 200
    assert by_manager.json()["status"] == "PENDING_HR"
    assert by_manager.json()["manager_action_by"] == str(manager.id)

    by_hr = await client.post(
        f"/api/v1/approvals/leave/{request_id}/approve", json={}, headers=hr_headers,
    )
    assert by_hr.status_code == 200
    assert by_hr.json()["status"] == "APPROVED"

    async with TestSessionFactory() as session:
        used = await session.scalar(
            select(LeaveBalance.used_days).where(LeaveBalance.user_id == employee.id),
        )
    assert used == Decimal("5")


async def test_approval_without_balance_still_approves(
    client, auth_headers, manager_headers, hr_headers, vacation,
):
    request_id = await _submit_leave(client, auth_headers, vacation)
    await client.post(
        f"/api/v1/approvals/leave/{request_id}/approve", json={}, headers=manager_headers,
    )
    resp = await client.post(
        f"/api/v1/approvals/leave/{request_id}/approve", json={}, headers=hr_headers,
    )
    assert resp.json()["status"] == "APPROVED"


async def test_short_balance_is_still_deducted(
    client, db, employee, auth_headers, manager_headers, hr_headers, vacation,
):
    db.add(
        LeaveBalance(
            user_id=employee.id,
            leave_type_id=vacation.id,
            year=2025,
            allocated_days=Decimal("2"),
            used_days=Decimal("1"),
        )
    )
    await db.commit()
    request_id = await _submit_leave(client, auth_headers, vacation)

    await client.post(
        f"/api/v1/approvals/leave/{request_id}/approve", json={}, headers=manager_headers,
    )
    resp = await client.post(
        f"/api/v1/approvals/leave/{request_id}/approve", json={}, headers=hr_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "APPROVED"

    async with TestSessionFactory() as session:
        balance = await session.scalar(
            select(LeaveBalance).where(LeaveBalance.user_id == employee.id),
        )
    assert balance.used_days == Decimal("4")
    assert balance.used_days > balance.allocated_days


async def test_hr_cannot_skip_manager_stage(client, auth_headers, manager, hr_headers, vacation):
    request_id = await _submit_leave(client, auth_headers, vacation)
    resp = await client.post(
        f"/api/v1/approvals/leave/{request_id}/approve", json={}, headers=hr_headers,
    )
    assert resp.status_code == 400


async def test_unrelated_manager_is_refused(client, db, business_unit, auth_headers, manager, vacation):
    request_id = await _submit_leave(client, auth_headers, vacation)
    other = await make_user(db, business_unit_id=business_unit.id, role=UserRole.MANAGER)

    resp = await client.post(
        f"/api/v1/approvals/leave/{request_id}/approve",
        json={},
        headers=await headers_for(db, other),
    )
    assert resp.status_code == 403


async def test_manager_from_other_unit_is_refused(
    client, db, employee, other_business_unit, auth_headers, vacation,
):
    outsider = await make_user(
        db, business_unit_id=other_business_unit.id, role=UserRole.MANAGER,
    )
    employee.approver_id = outsider.id
    await db.commit()
    request_id = await _submit_leave(client, auth_headers, vacation)

    resp = await client.post(
        f"/api/v1/approvals/leave/{request_id}/approve",
        json={},
        headers=await headers_for(db, outsider),
    )
    assert resp.status_code == 403


async def test_plain_user_cannot_approve(client, auth_headers, vacation):
    request_id = await _submit_leave(client, auth_headers, vacation)
    resp = await client.post(
        f"/api/v1/approvals/leave/{request_id}/approve", json={}, headers=auth_headers,
    )
    assert resp.status_code == 403


async def test_reject_requires_comments(client, auth_headers, manager_headers, vacation):
    request_id = await _submit_leave(client, auth_headers, vacation)

    blank = await client.post(
        f"/api/v1/approvals/leave/{request_id}/reject",
        json={"comments": "   "},
        headers=manager_headers,
    )
    assert blank.status_code == 422

    resp = await client.post(
        f"/api/v1/approvals/leave/{request_id}/reject",
        json={"comments": "Peak season"},
        headers=manager_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "REJECTED"
    assert resp.json()["manager_comments"] == "Peak season"


async def test_edit_locked_after_manager_action(client, auth_headers, manager_headers, vacation):
    request_id = await _submit_leave(client, auth_headers, vacation)
    await client.post(
        f"/api/v1/approvals/leave/{request_id}/approve", json={}, headers=manager_headers,
    )
    resp = await client.patch(
        f"/api/v1/leave/requests/{request_id}", json={"reason": "Changed"}, headers=auth_headers,
    )
    assert resp.status_code == 400


# ═════════════════════════════════════════════════════════════════════
# Queues and history
# ═════════════════════════════════════════════════════════════════════


async def test_pending_queues_follow_stage(
    client, auth_headers, manager_headers, hr_headers, vacation,
):
    request_id = await _submit_leave(client, auth_headers, vacation)

    mgr_queue = await client.get("/api/v1/approvals/leave/pending", headers=manager_headers)
    hr_queue = await client.get("/api/v1/approvals/leave/pending", headers=hr_headers)
    assert [r["id"] for r in mgr_queue.json()] == [request_id]
    assert hr_queue.json() == []

    await client.post(
        f"/api/v1/approvals/leave/{request_id}/approve", json={}, headers=manager_headers,
    )

    mgr_queue = await client.get("/api/v1/approvals/leave/pending", headers=manager_headers)
    hr_queue = await client.get("/api/v1/approvals/leave/pending", headers=hr_headers)
    assert mgr_queue.json() == []
    assert [r["id"] for r in hr_queue.json()] == [request_id]


async def test_overtime_flow_and_history(client, auth_headers, manager_headers, hr_headers):
    request_id = await _submit_overtime(client, auth_headers)

    queue = await client.get("/api/v1/approvals/overtime/pending", headers=manager_headers)
    assert [r["id"] for r in queue.json()] == [request_id]

    await client.post(
        f"/api/v1/approvals/overtime/{request_id}/approve", json={}, headers=manager_headers,
    )
    rejected = await client.post(
        f"/api/v1/approvals/overtime/{request_id}/reject",
        json={"comments": "Not budgeted"},
        headers=hr_headers,
    )
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "REJECTED"
    assert rejected.json()["hr_comments"] == "Not budgeted"

    history = await client.get("/api/v1/approvals/history", headers=manager_headers)
    assert [r["id"] for r in history.json()["overtime"]] == [request_id]
    assert history.json()["leave"] == []
