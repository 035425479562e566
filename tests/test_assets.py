"""Asset tests — categories, records, deployment, return, transfer, disposal, retirement."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select

from backoffice.assets.models import AssetDeployment, AssetHistory
from backoffice.common.constants import AssetHistoryAction, UserRole
from tests.conftest import TestSessionFactory, headers_for, make_user


@pytest.fixture
async def acctg_headers(db, business_unit):
    accountant = await make_user(
        db, business_unit_id=business_unit.id, role=UserRole.ACCTG, name="Cora Accounting",
    )
    return await headers_for(db, accountant)


@pytest.fixture
async def category(client, business_unit, acctg_headers):
    resp = await client.post(
        "/api/v1/assets/categories",
        json={"business_unit_id": str(business_unit.id), "name": "IT Equipment", "code": "it"},
        headers=acctg_headers,
    )
    assert resp.status_code == 201
    return resp.json()


async def _create_asset(client, headers, business_unit, category, **extra) -> dict:
    body = {
        "business_unit_id": str(business_unit.id),
        "category_id": category["id"],
        "description": "Laptop",
        "purchase_date": "2025-01-10",
        "purchase_price": "60000.00",
    }
    body.update(extra)
    resp = await client.post("/api/v1/assets", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _deploy(client, headers, business_unit, asset_ids, employee, **extra):
    return await client.post(
        "/api/v1/assets/deploy",
        json={
            "business_unit_id": str(business_unit.id),
            "asset_ids": [str(i) for i in asset_ids],
            "employee_id": str(employee.id),
            **extra,
        },
        headers=headers,
    )


# ═════════════════════════════════════════════════════════════════════
# Categories and records
# ═════════════════════════════════════════════════════════════════════


class TestCategories:

    async def test_code_is_upper_cased_and_unique(self, client, business_unit, acctg_headers, category):
        assert category["code"] == "IT"
        dup = await client.post(
            "/api/v1/assets/categories",
            json={"business_unit_id": str(business_unit.id), "name": "Other", "code": "IT"},
            headers=acctg_headers,
        )
        assert dup.status_code == 409

    async def test_category_with_assets_cannot_be_deleted(
        self, client, business_unit, acctg_headers, category,
    ):
        await _create_asset(client, acctg_headers, business_unit, category)
        resp = await client.delete(
            f"/api/v1/assets/categories/{category['id']}", headers=acctg_headers,
        )
        assert resp.status_code == 400

        listing = await client.get("/api/v1/assets/categories", headers=acctg_headers)
        assert listing.json()[0]["asset_count"] == 1

    async def test_plain_user_cannot_create_category(self, client, business_unit, auth_headers):
        resp = await client.post(
            "/api/v1/assets/categories",
            json={"business_unit_id": str(business_unit.id), "name": "X", "code": "X"},
            headers=auth_headers,
        )
        assert resp.status_code == 403


class TestAssetRecords:

    async def test_item_codes_follow_category_sequence(
        self, client, business_unit, acctg_headers, category,
    ):
        first = await _create_asset(client, acctg_headers, business_unit, category)
        second = await _create_asset(client, acctg_headers, business_unit, category)
        assert (first["item_code"], second["item_code"]) == ("IT001", "IT002")
        assert first["status"] == "AVAILABLE"
        assert Decimal(first["current_book_value"]) == Decimal("60000")

    async def test_straight_line_setup_derives_monthly_amount(
        self, client, business_unit, acctg_headers, category,
    ):
        asset = await _create_asset(
            client, acctg_headers, business_unit, category,
            depreciation_method="STRAIGHT_LINE",
            useful_life_years=5,
            salvage_value="0",
        )
        assert asset["useful_life_months"] == 60
        assert Decimal(asset["monthly_depreciation"]) == Decimal("1000")
        assert asset["depreciation_start_date"] == "2025-01-10"

    async def test_duplicate_item_code_conflicts(self, client, business_unit, acctg_headers, category):
        await _create_asset(client, acctg_headers, business_unit, category, item_code="LAP-1")
        resp = await client.post(
            "/api/v1/assets",
            json={
                "business_unit_id": str(business_unit.id),
                "category_id": category["id"],
                "description": "Another",
                "item_code": "LAP-1",
            },
            headers=acctg_headers,
        )
        assert resp.status_code == 409

    async def test_search_and_detail_history(self, client, business_unit, acctg_headers, category, auth_headers):
        asset = await _create_asset(
            client, acctg_headers, business_unit, category, serial_number="SN-42",
        )
        await _create_asset(client, acctg_headers, business_unit, category, description="Monitor")

        found = await client.get("/api/v1/assets", params={"search": "SN-42"}, headers=auth_headers)
        assert [a["id"] for a in found.json()["data"]] == [asset["id"]]

        detail = await client.get(f"/api/v1/assets/{asset['id']}", headers=auth_headers)
        assert [h["action"] for h in detail.json()["history"]] == ["CREATED"]

    async def test_status_change_rules(self, client, business_unit, acctg_headers, category):
        asset = await _create_asset(client, acctg_headers, business_unit, category)
        ok = await client.post(
            f"/api/v1/assets/{asset['id']}/status",
            json={"status": "IN_MAINTENANCE", "notes": "Battery swap"},
            headers=acctg_headers,
        )
        assert ok.json()["status"] == "IN_MAINTENANCE"

        via_action_only = await client.post(
            f"/api/v1/assets/{asset['id']}/status",
            json={"status": "DISPOSED"},
            headers=acctg_headers,
        )
        assert via_action_only.status_code == 400

    async def test_other_unit_cannot_read_asset(
        self, client, db, business_unit, other_business_unit, acctg_headers, category,
    ):
        asset = await _create_asset(client, acctg_headers, business_unit, category)
        outsider = await make_user(db, business_unit_id=other_business_unit.id)
        resp = await client.get(
            f"/api/v1/assets/{asset['id']}", headers=await headers_for(db, outsider),
        )
        assert resp.status_code == 403


# ═════════════════════════════════════════════════════════════════════
# Deployment lifecycle
# ═════════════════════════════════════════════════════════════════════


class TestDeployment:

    async def test_deploy_then_return_damaged(
        self, client, business_unit, acctg_headers, category, employee,
    ):
        a1 = await _create_asset(client, acctg_headers, business_unit, category)
        a2 = await _create_asset(client, acctg_headers, business_unit, category)

        resp = await _deploy(client, acctg_headers, business_unit, [a1["id"], a2["id"]], employee)
        assert resp.status_code == 201
        result = resp.json()
        assert result["transmittal_number"].startswith("HQ-")
        assert [d["transmittal_number"] for d in result["deployments"]] == [
            f"{result['transmittal_number']}-01",
            f"{result['transmittal_number']}-02",
        ]

        again = await _deploy(client, acctg_headers, business_unit, [a1["id"]], employee)
        assert again.status_code == 400

        returned = await client.post(
            "/api/v1/assets/return",
            json={
                "business_unit_id": str(business_unit.id),
                "asset_ids": [a1["id"]],
                "return_condition": "DAMAGED",
            },
            headers=acctg_headers,
        )
        assert returned.status_code == 200
        assert returned.json()[0]["status"] == "RETURNED"

        asset = (await client.get(f"/api/v1/assets/{a1['id']}", headers=acctg_headers)).json()
        assert asset["status"] == "DAMAGED"
        assert asset["currently_assigned_to"] is None

    async def test_deployment_awaiting_approval_keeps_asset_available(
        self, client, business_unit, acctg_headers, category, employee,
    ):
        asset = await _create_asset(client, acctg_headers, business_unit, category)
        resp = await _deploy(
            client, acctg_headers, business_unit, [asset["id"]], employee,
            requires_accounting_approval=True,
        )
        deployment = resp.json()["deployments"][0]
        assert deployment["status"] == "PENDING_ACCOUNTING_APPROVAL"
        current = (await client.get(f"/api/v1/assets/{asset['id']}", headers=acctg_headers)).json()
        assert current["status"] == "AVAILABLE"

        approved = await client.post(
            f"/api/v1/assets/deployments/{deployment['id']}/approve",
            json={"notes": "ok"},
            headers=acctg_headers,
        )
        assert approved.json()["status"] == "DEPLOYED"
        current = (await client.get(f"/api/v1/assets/{asset['id']}", headers=acctg_headers)).json()
        assert current["status"] == "DEPLOYED"
        assert current["currently_assigned_to"] == str(employee.id)

    async def test_rejected_deployment_is_cancelled(
        self, client, business_unit, acctg_headers, category, employee,
    ):
        asset = await _create_asset(client, acctg_headers, business_unit, category)
        resp = await _deploy(
            client, acctg_headers, business_unit, [asset["id"]], employee,
            requires_accounting_approval=True,
        )
        deployment_id = resp.json()["deployments"][0]["id"]
        rejected = await client.post(
            f"/api/v1/assets/deployments/{deployment_id}/reject",
            json={"notes": "No budget"},
            headers=acctg_headers,
        )
        assert rejected.json()["status"] == "CANCELLED"

        second = await client.post(
            f"/api/v1/assets/deployments/{deployment_id}/approve", json={}, headers=acctg_headers,
        )
        assert second.status_code == 400

    async def test_return_of_undeployed_asset_fails(
        self, client, business_unit, acctg_headers, category,
    ):
        asset = await _create_asset(client, acctg_headers, business_unit, category)
        resp = await client.post(
            "/api/v1/assets/return",
            json={"business_unit_id": str(business_unit.id), "asset_ids": [asset["id"]]},
            headers=acctg_headers,
        )
        assert resp.status_code == 400

    async def test_deployed_asset_cannot_be_deleted(
        self, client, business_unit, acctg_headers, category, employee,
    ):
        asset = await _create_asset(client, acctg_headers, business_unit, category)
        await _deploy(client, acctg_headers, business_unit, [asset["id"]], employee)
        resp = await client.delete(f"/api/v1/assets/{asset['id']}", headers=acctg_headers)
        assert resp.status_code == 400


class TestTransfers:

    async def test_transfer_to_employee(
        self, client, db, business_unit, acctg_headers, category, employee,
    ):
        asset = await _create_asset(client, acctg_headers, business_unit, category)
        await _deploy(client, acctg_headers, business_unit, [asset["id"]], employee)
        colleague = await make_user(db, business_unit_id=business_unit.id, name="Cole League")

        resp = await client.post(
            "/api/v1/assets/transfer",
            json={
                "business_unit_id": str(business_unit.id),
                "asset_ids": [asset["id"]],
                "transfer_type": "EMPLOYEE",
                "to_employee_id": str(colleague.id),
                "reason": "Role change",
            },
            headers=acctg_headers,
        )
        assert resp.status_code == 200
        assert "-TXFEMP-" in resp.json()["transmittal_number"]

        async with TestSessionFactory() as session:
            rows = (await session.execute(
                select(AssetDeployment)
                .where(AssetDeployment.asset_id == uuid.UUID(asset["id"]))
                .order_by(AssetDeployment.created_at)
            )).scalars().all()
        assert [(d.employee_id, d.status.value) for d in rows] == [
            (employee.id, "RETURNED"),
            (colleague.id, "DEPLOYED"),
        ]

    async def test_transfer_to_other_business_unit(
        self, client, business_unit, other_business_unit, acctg_headers, category, employee,
    ):
        asset = await _create_asset(client, acctg_headers, business_unit, category)
        await _deploy(client, acctg_headers, business_unit, [asset["id"]], employee)

        resp = await client.post(
            "/api/v1/assets/transfer",
            json={
                "business_unit_id": str(business_unit.id),
                "asset_ids": [asset["id"]],
                "transfer_type": "BUSINESS_UNIT",
                "to_business_unit_id": str(other_business_unit.id),
                "reason": "Branch opening",
            },
            headers=acctg_headers,
        )
        assert resp.status_code == 200
        assert "-TXFBU-" in resp.json()["transmittal_number"]

        async with TestSessionFactory() as session:
            history = (await session.execute(
                select(AssetHistory).where(
                    AssetHistory.action == AssetHistoryAction.TRANSFERRED,
                ),
            )).scalars().all()
        assert {h.business_unit_id for h in history} == {business_unit.id, other_business_unit.id}

    async def test_transfer_target_must_differ(self, client, business_unit, acctg_headers):
        resp = await client.post(
            "/api/v1/assets/transfer",
            json={
                "business_unit_id": str(business_unit.id),
                "asset_ids": [str(business_unit.id)],
                "transfer_type": "BUSINESS_UNIT",
                "to_business_unit_id": str(business_unit.id),
                "reason": "Nowhere",
            },
            headers=acctg_headers,
        )
        assert resp.status_code == 422


# ═════════════════════════════════════════════════════════════════════
# Disposal / retirement
# ═════════════════════════════════════════════════════════════════════


class TestDecommission:

    async def test_disposal_records_gain_loss(self, client, business_unit, acctg_headers, category):
        a1 = await _create_asset(client, acctg_headers, business_unit, category, purchase_price="1000")
        a2 = await _create_asset(client, acctg_headers, business_unit, category, purchase_price="300")

        resp = await client.post(
            "/api/v1/assets/dispose",
            json={
                "business_unit_id": str(business_unit.id),
                "asset_ids": [a1["id"], a2["id"]],
                "disposal_date": "2025-07-01",
                "disposal_method": "SALE",
                "disposal_reason": "SOLD",
                "disposal_value": "500",
                "disposal_cost": "100",
            },
            headers=acctg_headers,
        )
        assert resp.status_code == 200
        gains = sorted(Decimal(d["gain_loss"]) for d in resp.json()["disposals"])
        assert gains == [Decimal("-600"), Decimal("100")]
        assert Decimal(resp.json()["total_gain_loss"]) == Decimal("-500")

        again = await client.post(
            "/api/v1/assets/dispose",
            json={
                "business_unit_id": str(business_unit.id),
                "asset_ids": [a1["id"]],
                "disposal_date": "2025-07-02",
                "disposal_method": "SCRAP",
                "disposal_reason": "SCRAPPED",
            },
            headers=acctg_headers,
        )
        assert again.status_code == 400

    async def test_deployed_asset_must_be_returned_before_disposal(
        self, client, business_unit, acctg_headers, category, employee,
    ):
        asset = await _create_asset(client, acctg_headers, business_unit, category)
        await _deploy(client, acctg_headers, business_unit, [asset["id"]], employee)
        resp = await client.post(
            "/api/v1/assets/dispose",
            json={
                "business_unit_id": str(business_unit.id),
                "asset_ids": [asset["id"]],
                "disposal_date": "2025-07-01",
                "disposal_method": "SCRAP",
                "disposal_reason": "SCRAPPED",
            },
            headers=acctg_headers,
        )
        assert resp.status_code == 400

    async def test_retirement_closes_open_deployment(
        self, client, business_unit, acctg_headers, category, employee,
    ):
        asset = await _create_asset(client, acctg_headers, business_unit, category)
        await _deploy(client, acctg_headers, business_unit, [asset["id"]], employee)

        body = {
            "business_unit_id": str(business_unit.id),
            "asset_ids": [asset["id"]],
            "retirement_date": "2025-08-01",
            "reason": "OBSOLETE",
            "retirement_method": "NORMAL_RETIREMENT",
        }
        resp = await client.post("/api/v1/assets/retire", json=body, headers=acctg_headers)
        assert resp.status_code == 200
        assert resp.json()["deployments_closed"] == 1

        current = (await client.get(f"/api/v1/assets/{asset['id']}", headers=acctg_headers)).json()
        assert current["status"] == "RETIRED"

        again = await client.post("/api/v1/assets/retire", json=body, headers=acctg_headers)
        assert again.status_code == 400

        listing = await client.get("/api/v1/assets/retirements", headers=acctg_headers)
        assert listing.json()["meta"]["total"] == 1
