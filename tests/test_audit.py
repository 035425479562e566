"""Audit log browsing."""

from __future__ import annotations

import uuid


async def _material_request(client, headers, business_unit, department) -> dict:
    resp = await client.post(
        "/api/v1/material-requests",
        json={
            "business_unit_id": str(business_unit.id),
            "department_id": str(department.id),
            "series": "MRS",
            "type": "ITEM",
            "date_prepared": "2025-08-01",
            "date_required": "2025-08-05",
            "items": [{"description": "Printer ink", "uom": "pc", "quantity": "4"}],
        },
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.json()


async def test_changes_are_recorded_with_actor(
    client, employee, auth_headers, admin_headers, business_unit, department,
):
    req = await _material_request(client, auth_headers, business_unit, department)
    await client.patch(
        f"/api/v1/material-requests/{req['id']}",
        json={"purpose": "Front desk printer"},
        headers=auth_headers,
    )

    resp = await client.get(
        "/api/v1/audit-logs",
        params={"entity_type": "material_request", "entity_id": req["id"]},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    entries = resp.json()["data"]
    assert resp.json()["meta"]["total"] == 2
    assert [e["action"] for e in entries] == ["update", "create"]
    assert entries[0]["actor_employee_id"] == employee.employee_id
    assert entries[0]["actor_name"] == employee.name
    assert entries[0]["new_values"]["purpose"] == "Front desk printer"
    assert entries[1]["new_values"]["doc_no"] == req["doc_no"]

    single = await client.get(f"/api/v1/audit-logs/{entries[1]['id']}", headers=admin_headers)
    assert single.json()["business_unit_id"] == str(business_unit.id)


async def test_filter_by_action(client, auth_headers, admin_headers, business_unit, department):
    req = await _material_request(client, auth_headers, business_unit, department)
    await client.delete(f"/api/v1/material-requests/{req['id']}", headers=auth_headers)

    resp = await client.get(
        "/api/v1/audit-logs", params={"action": "delete"}, headers=admin_headers,
    )
    [entry] = resp.json()["data"]
    assert entry["entity_id"] == req["id"]
    assert entry["old_values"]["doc_no"] == req["doc_no"]


async def test_admin_only(client, auth_headers):
    resp = await client.get("/api/v1/audit-logs", headers=auth_headers)
    assert resp.status_code == 403


async def test_unknown_entry(client, admin_headers):
    resp = await client.get(f"/api/v1/audit-logs/{uuid.uuid4()}", headers=admin_headers)
    assert resp.status_code == 404
