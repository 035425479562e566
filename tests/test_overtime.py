"""Overtime request tests."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from backoffice.overtime.models import overtime_hours
from tests.conftest import headers_for, make_user


def _body(**overrides) -> dict:
    body = {
        "start_time": "2025-05-02T18:00:00+00:00",
        "end_time": "2025-05-02T21:30:00+00:00",
        "reason": "Month-end closing",
    }
    body.update(overrides)
    return body


def test_overtime_hours_rounds_to_two_places():
    start = datetime(2025, 5, 2, 18, 0, tzinfo=timezone.utc)
    end = datetime(2025, 5, 2, 19, 20, tzinfo=timezone.utc)
    assert overtime_hours(start, end) == Decimal("1.33")


async def test_submit_overtime(client, employee, auth_headers):
    resp = await client.post("/api/v1/overtime/requests", json=_body(), headers=auth_headers)
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "PENDING_MANAGER"
    assert Decimal(data["total_hours"]) == Decimal("3.5")
    assert data["employee"]["employee_id"] == employee.employee_id


async def test_end_must_follow_start(client, auth_headers):
    resp = await client.post(
        "/api/v1/overtime/requests",
        json=_body(end_time="2025-05-02T17:00:00+00:00"),
        headers=auth_headers,
    )
    assert resp.status_code == 422


async def test_edit_recomputes_hours(client, auth_headers):
    created = (await client.post(
        "/api/v1/overtime/requests", json=_body(), headers=auth_headers,
    )).json()

    resp = await client.patch(
        f"/api/v1/overtime/requests/{created['id']}",
        json={"end_time": "2025-05-02T22:00:00+00:00"},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    assert Decimal(resp.json()["total_hours"]) == 4


async def test_edit_rejects_inverted_range(client, auth_headers):
    created = (await client.post(
        "/api/v1/overtime/requests", json=_body(), headers=auth_headers,
    )).json()

    resp = await client.patch(
        f"/api/v1/overtime/requests/{created['id']}",
        json={"start_time": "2025-05-02T23:00:00+00:00"},
        headers=auth_headers,
    )
    assert resp.status_code == 422


async def test_cancel_and_list(client, auth_headers):
    created = (await client.post(
        "/api/v1/overtime/requests", json=_body(), headers=auth_headers,
    )).json()
    cancelled = await client.post(
        f"/api/v1/overtime/requests/{created['id']}/cancel", headers=auth_headers,
    )
    assert cancelled.json()["status"] == "CANCELLED"

    pending = await client.get(
        "/api/v1/overtime/requests", params={"status": "PENDING_MANAGER"}, headers=auth_headers,
    )
    assert pending.json()["data"] == []

    everything = await client.get("/api/v1/overtime/requests", headers=auth_headers)
    assert everything.json()["meta"]["total"] == 1


async def test_other_user_cannot_cancel(client, db, business_unit, auth_headers):
    created = (await client.post(
        "/api/v1/overtime/requests", json=_body(), headers=auth_headers,
    )).json()
    stranger = await make_user(db, business_unit_id=business_unit.id, name="Stranger")

    resp = await client.post(
        f"/api/v1/overtime/requests/{created['id']}/cancel",
        headers=await headers_for(db, stranger),
    )
    assert resp.status_code == 403
