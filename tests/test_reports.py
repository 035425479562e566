"""Report tests — depreciation summary and schedule, damaged/loss, deployments, public lookup."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from backoffice.assets.models import (
    Asset,
    AssetCategory,
    AssetDepreciation,
    AssetDeployment,
    AssetDisposal,
    AssetHistory,
)
from backoffice.common.constants import (
    AssetHistoryAction,
    AssetStatus,
    DeploymentStatus,
    DepreciationMethod,
    DisposalMethod,
    DisposalReason,
)
from tests.conftest import headers_for, make_department, make_user


def _at(day: str) -> datetime:
    return datetime.fromisoformat(day).replace(tzinfo=timezone.utc)


async def _category(db, business_unit, name, code) -> AssetCategory:
    category = AssetCategory(business_unit_id=business_unit.id, name=name, code=code)
    db.add(category)
    await db.commit()
    return category


async def _asset(db, business_unit, category, item_code, description, **extra) -> Asset:
    asset = Asset(
        item_code=item_code,
        description=description,
        category_id=category.id,
        business_unit_id=business_unit.id,
        **extra,
    )
    db.add(asset)
    await db.commit()
    return asset


def _charge(asset: Asset, on: str, amount: str) -> AssetDepreciation:
    day = date.fromisoformat(on)
    return AssetDepreciation(
        asset_id=asset.id,
        depreciation_date=day,
        period_start_date=day.replace(day=1),
        period_end_date=day,
        book_value_start=Decimal("0"),
        depreciation_amount=Decimal(amount),
        book_value_end=Decimal("0"),
        accumulated_depreciation=Decimal("0"),
        method=DepreciationMethod.STRAIGHT_LINE,
    )


def _deployment(asset, employee, number, status, deployed=None, returned=None) -> AssetDeployment:
    return AssetDeployment(
        asset_id=asset.id,
        employee_id=employee.id,
        business_unit_id=asset.business_unit_id,
        transmittal_number=number,
        status=status,
        deployed_date=_at(deployed) if deployed else None,
        returned_date=_at(returned) if returned else None,
    )


@pytest.fixture
async def vehicles(db, business_unit):
    return await _category(db, business_unit, "Vehicles", "VEH")


@pytest.fixture
async def computers(db, business_unit):
    return await _category(db, business_unit, "Computers", "IT")


@pytest.fixture
async def finance_clerk(db, business_unit):
    finance = await make_department(db, business_unit.id, code="FIN", name="Finance")
    return await make_user(
        db, business_unit_id=business_unit.id, department_id=finance.id, name="Fay Finance",
    )


# ═════════════════════════════════════════════════════════════════════
# Depreciation
# ═════════════════════════════════════════════════════════════════════


@pytest.fixture
async def book(db, business_unit, other_business_unit, department, employee, vehicles, computers):
    van = await _asset(
        db, business_unit, vehicles, "VEH001", "Delivery van",
        department_id=department.id,
        purchase_date=date(2024, 10, 1),
        purchase_price=Decimal("12000"),
        salvage_value=Decimal("0"),
        depreciation_method=DepreciationMethod.STRAIGHT_LINE,
        useful_life_months=12,
        monthly_depreciation=Decimal("1000"),
        current_book_value=Decimal("4000"),
        accumulated_depreciation=Decimal("8000"),
        next_depreciation_date=date(2025, 7, 31),
    )
    laptop = await _asset(
        db, business_unit, computers, "IT001", "Laptop",
        purchase_price=Decimal("60000"),
        salvage_value=Decimal("0"),
        depreciation_method=DepreciationMethod.STRAIGHT_LINE,
        monthly_depreciation=Decimal("1000"),
        current_book_value=Decimal("30000"),
        accumulated_depreciation=Decimal("30000"),
        next_depreciation_date=date(2025, 7, 31),
    )
    await _asset(
        db, business_unit, computers, "IT002", "Old desktop",
        purchase_price=Decimal("20000"),
        depreciation_method=DepreciationMethod.STRAIGHT_LINE,
        monthly_depreciation=Decimal("500"),
        current_book_value=Decimal("0"),
        accumulated_depreciation=Decimal("20000"),
        is_fully_depreciated=True,
    )
    await _asset(
        db, business_unit, computers, "IT003", "Spare monitor",
        purchase_price=Decimal("5000"),
    )
    await _asset(
        db, business_unit, vehicles, "VEH002", "Retired truck",
        purchase_price=Decimal("99999"), is_active=False,
    )
    elsewhere = await _category(db, other_business_unit, "Vehicles", "VEH")
    await _asset(
        db, other_business_unit, elsewhere, "BR-VEH001", "Branch van",
        purchase_price=Decimal("50000"),
    )

    db.add_all([
        _charge(van, "2025-05-31", "1000"),
        _charge(van, "2025-06-30", "1000"),
        _charge(laptop, "2025-06-30", "1000"),
        _charge(laptop, "2024-01-31", "1000"),
        _deployment(van, employee, "HQ-TXF-1", DeploymentStatus.DEPLOYED, deployed="2025-02-01"),
    ])
    await db.commit()
    return {"van": van, "laptop": laptop}


class TestDepreciationReports:

    async def test_summary_totals_and_breakdowns(self, client, auth_headers, book):
        resp = await client.get(
            "/api/v1/reports/depreciation/summary",
            params={"as_of": "2025-06-30", "period_start": "2025-06-01", "period_end": "2025-06-30"},
            headers=auth_headers,
        )
        assert resp.status_code == 200, resp.text
        body = resp.json()

        totals = body["totals"]
        assert totals["total_assets"] == 4
        assert Decimal(totals["total_purchase_value"]) == Decimal("97000")
        assert Decimal(totals["total_current_book_value"]) == Decimal("39000")
        assert Decimal(totals["total_accumulated_depreciation"]) == Decimal("58000")
        assert Decimal(totals["depreciation_expense"]) == Decimal("2000")
        assert totals["fully_depreciated_count"] == 1
        assert totals["nearing_full_depreciation_count"] == 1

        by_category = {row["name"]: row for row in body["by_category"]}
        assert by_category["Computers"]["asset_count"] == 3
        assert Decimal(by_category["Computers"]["depreciation_rate"]) == Decimal("58.82")
        assert Decimal(by_category["Vehicles"]["depreciation_rate"]) == Decimal("66.67")

        assert [(r["key"], r["asset_count"]) for r in body["by_method"]] == [
            ("NONE", 1), ("STRAIGHT_LINE", 3),
        ]
        assert [(r["name"], r["asset_count"]) for r in body["by_department"]] == [
            ("Operations", 1), ("Unassigned", 3),
        ]

    async def test_monthly_trend_covers_twelve_months(self, client, auth_headers, book):
        resp = await client.get(
            "/api/v1/reports/depreciation/summary",
            params={"as_of": "2025-06-15"},
            headers=auth_headers,
        )
        body = resp.json()
        trend = body["monthly_trend"]
        assert [m["month"] for m in (trend[0], trend[-1])] == ["2024-07", "2025-06"]
        assert len(trend) == 12

        months = {m["month"]: m for m in trend}
        assert Decimal(months["2025-06"]["depreciation_amount"]) == Decimal("2000")
        assert months["2025-06"]["asset_count"] == 2
        assert months["2025-05"]["asset_count"] == 1
        assert Decimal(months["2024-12"]["depreciation_amount"]) == Decimal("0")

        # No period given: every posted charge counts
        assert Decimal(body["totals"]["depreciation_expense"]) == Decimal("4000")

    async def test_asset_schedule_rows(self, client, auth_headers, book):
        resp = await client.get("/api/v1/reports/depreciation/assets", headers=auth_headers)
        assert resp.status_code == 200
        rows = resp.json()
        assert [r["item_code"] for r in rows] == ["IT001", "IT002", "IT003", "VEH001"]

        van = rows[-1]
        assert van["remaining_useful_life_months"] == 4
        assert van["projected_full_depreciation_date"] == "2025-11-30"
        assert Decimal(van["remaining_book_value"]) == Decimal("4000")
        assert Decimal(van["total_depreciation_to_date"]) == Decimal("8000")
        assert Decimal(van["depreciation_rate"]) == Decimal("66.67")
        assert van["department"]["name"] == "Operations"
        assert van["assigned_employee"]["name"] == "Eli Employee"

        desktop, monitor = rows[1], rows[2]
        assert desktop["remaining_useful_life_months"] == 0
        assert desktop["projected_full_depreciation_date"] is None
        assert monitor["depreciation_method"] is None
        assert Decimal(monitor["current_book_value"]) == Decimal("5000")
        assert monitor["remaining_useful_life_months"] is None

    async def test_schedule_filters(self, client, auth_headers, book, vehicles):
        by_category = await client.get(
            "/api/v1/reports/depreciation/assets",
            params={"category_id": str(vehicles.id)},
            headers=auth_headers,
        )
        written_off = await client.get(
            "/api/v1/reports/depreciation/assets",
            params={"is_fully_depreciated": "true"},
            headers=auth_headers,
        )
        by_method = await client.get(
            "/api/v1/reports/depreciation/assets",
            params={"depreciation_method": "STRAIGHT_LINE"},
            headers=auth_headers,
        )
        by_purchase = await client.get(
            "/api/v1/reports/depreciation/assets",
            params={"purchased_from": "2024-09-01", "purchased_to": "2024-12-31"},
            headers=auth_headers,
        )
        assert [r["item_code"] for r in by_category.json()] == ["VEH001"]
        assert [r["item_code"] for r in written_off.json()] == ["IT002"]
        assert len(by_method.json()) == 3
        assert [r["item_code"] for r in by_purchase.json()] == ["VEH001"]

    async def test_other_business_unit_is_refused(
        self, client, db, other_business_unit, business_unit, book,
    ):
        outsider = await make_user(db, business_unit_id=other_business_unit.id)
        headers = await headers_for(db, outsider)

        own = await client.get("/api/v1/reports/depreciation/assets", headers=headers)
        foreign = await client.get(
            "/api/v1/reports/depreciation/assets",
            params={"business_unit_id": str(business_unit.id)},
            headers=headers,
        )
        assert [r["item_code"] for r in own.json()] == ["BR-VEH001"]
        assert foreign.status_code == 403

    async def test_admin_reads_any_business_unit(
        self, client, admin_headers, other_business_unit, book,
    ):
        resp = await client.get(
            "/api/v1/reports/depreciation/summary",
            params={"business_unit_id": str(other_business_unit.id)},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["totals"]["total_assets"] == 1

    async def test_requires_login(self, client):
        resp = await client.get("/api/v1/reports/depreciation/summary")
        assert resp.status_code == 401


# ═════════════════════════════════════════════════════════════════════
# Damaged / lost
# ═════════════════════════════════════════════════════════════════════


@pytest.fixture
async def incidents(db, business_unit, department, computers):
    await _asset(
        db, business_unit, computers, "IT010", "Cracked tablet",
        status=AssetStatus.DAMAGED, department_id=department.id,
        purchase_price=Decimal("15000"), current_book_value=Decimal("9000"),
    )
    projector = await _asset(
        db, business_unit, computers, "IT011", "Missing projector",
        status=AssetStatus.LOST, purchase_price=Decimal("30000"),
    )
    printer = await _asset(
        db, business_unit, computers, "IT012", "Scrapped printer",
        status=AssetStatus.DISPOSED, is_active=False,
        purchase_price=Decimal("8000"), current_book_value=Decimal("500"),
    )
    await _asset(db, business_unit, computers, "IT013", "Working scanner")

    db.add_all([
        AssetHistory(
            asset_id=projector.id,
            action=AssetHistoryAction.CREATED,
            created_at=_at("2025-01-05"),
        ),
        AssetHistory(
            asset_id=projector.id,
            action=AssetHistoryAction.STATUS_CHANGED,
            notes="Reported missing after site visit",
            previous_value="AVAILABLE",
            new_value="LOST",
            created_at=_at("2025-05-20"),
        ),
        AssetDisposal(
            asset_id=printer.id,
            business_unit_id=business_unit.id,
            disposal_date=date(2025, 4, 30),
            reason=DisposalReason.SCRAPPED,
            disposal_method=DisposalMethod.SCRAP,
            disposal_value=Decimal("200"),
            book_value_at_disposal=Decimal("500"),
            gain_loss=Decimal("-300"),
        ),
    ])
    await db.commit()


class TestDamagedLossReport:

    async def test_damaged_and_lost_only_by_default(self, client, auth_headers, incidents):
        resp = await client.get("/api/v1/reports/damaged-loss", headers=auth_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert [r["item_code"] for r in body["rows"]] == ["IT010", "IT011"]
        assert (body["damaged_count"], body["lost_count"], body["disposed_count"]) == (1, 1, 0)
        assert Decimal(body["total_book_value"]) == Decimal("39000")

        tablet, projector = body["rows"]
        assert tablet["department"]["name"] == "Operations"
        assert tablet["last_history"] is None
        assert projector["last_history"]["action"] == "STATUS_CHANGED"
        assert projector["last_history"]["new_value"] == "LOST"

    async def test_disposed_assets_on_request(self, client, auth_headers, incidents):
        resp = await client.get(
            "/api/v1/reports/damaged-loss",
            params={"include_disposed": "true"},
            headers=auth_headers,
        )
        body = resp.json()
        assert [r["item_code"] for r in body["rows"]] == ["IT010", "IT011", "IT012"]
        assert body["disposed_count"] == 1

        printer = body["rows"][-1]
        assert printer["is_active"] is False
        assert printer["disposal"]["reason"] == "SCRAPPED"
        assert Decimal(printer["disposal"]["gain_loss"]) == Decimal("-300")

    async def test_department_filter(self, client, auth_headers, department, incidents):
        resp = await client.get(
            "/api/v1/reports/damaged-loss",
            params={"department_id": str(department.id)},
            headers=auth_headers,
        )
        assert [r["item_code"] for r in resp.json()["rows"]] == ["IT010"]


# ═════════════════════════════════════════════════════════════════════
# Deployments
# ═════════════════════════════════════════════════════════════════════


@pytest.fixture
async def handouts(db, business_unit, employee, finance_clerk, vehicles, computers):
    laptop = await _asset(
        db, business_unit, computers, "IT020", "Laptop", purchase_price=Decimal("60000"),
    )
    van = await _asset(
        db, business_unit, vehicles, "VEH020", "Service van", purchase_price=Decimal("12000"),
    )
    phone = await _asset(
        db, business_unit, computers, "IT021", "Phone", purchase_price=Decimal("15000"),
    )
    db.add_all([
        _deployment(laptop, employee, "TR-1", DeploymentStatus.DEPLOYED, deployed="2025-03-01"),
        _deployment(van, finance_clerk, "TR-2", DeploymentStatus.DEPLOYED, deployed="2025-04-01"),
        _deployment(
            phone, employee, "TR-3", DeploymentStatus.RETURNED,
            deployed="2025-01-01", returned="2025-01-31",
        ),
        _deployment(phone, finance_clerk, "TR-4", DeploymentStatus.PENDING_ACCOUNTING_APPROVAL),
    ])
    await db.commit()


class TestDeploymentReports:

    async def _numbers(self, client, headers, **params) -> list[str]:
        resp = await client.get("/api/v1/reports/deployments", params=params, headers=headers)
        assert resp.status_code == 200, resp.text
        return [r["transmittal_number"] for r in resp.json()]

    async def test_grouped_by_department_then_employee(self, client, auth_headers, handouts):
        assert await self._numbers(client, auth_headers) == ["TR-2", "TR-4", "TR-1"]
        assert await self._numbers(client, auth_headers, include_returned="true") == [
            "TR-2", "TR-4", "TR-1", "TR-3",
        ]

    async def test_row_content(self, client, auth_headers, handouts):
        resp = await client.get("/api/v1/reports/deployments", headers=auth_headers)
        van = resp.json()[0]
        assert van["employee"]["name"] == "Fay Finance"
        assert van["department"]["code"] == "FIN"
        assert van["asset"]["item_code"] == "VEH020"
        assert van["asset"]["category"]["name"] == "Vehicles"

    async def test_filters(self, client, auth_headers, handouts, finance_clerk, vehicles):
        assert await self._numbers(
            client, auth_headers, deployed_from="2025-02-15", deployed_to="2025-03-31",
        ) == ["TR-1"]
        assert await self._numbers(
            client, auth_headers, department_id=str(finance_clerk.department_id),
        ) == ["TR-2", "TR-4"]
        assert await self._numbers(
            client, auth_headers, category_id=str(vehicles.id),
        ) == ["TR-2"]
        assert await self._numbers(client, auth_headers, status="RETURNED") == ["TR-3"]

    async def test_summary(self, client, auth_headers, handouts):
        resp = await client.get("/api/v1/reports/deployments/summary", headers=auth_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["total_deployments"] == 4
        assert body["active_deployments"] == 2
        assert body["returned_deployments"] == 1
        assert body["pending_approval"] == 1
        assert Decimal(body["total_asset_value"]) == Decimal("102000")
        assert Decimal(body["average_deployment_days"]) == Decimal("30")
        assert body["by_department"] == [
            {"name": "Finance", "count": 2}, {"name": "Operations", "count": 2},
        ]
        assert body["by_category"] == [
            {"name": "Computers", "count": 3}, {"name": "Vehicles", "count": 1},
        ]

    async def test_summary_without_returns_has_no_average(
        self, client, db, auth_headers, business_unit, computers, employee,
    ):
        tablet = await _asset(db, business_unit, computers, "IT030", "Tablet")
        db.add(_deployment(tablet, employee, "TR-9", DeploymentStatus.DEPLOYED, deployed="2025-05-01"))
        await db.commit()

        resp = await client.get("/api/v1/reports/deployments/summary", headers=auth_headers)
        assert resp.json()["average_deployment_days"] is None
        assert Decimal(resp.json()["total_asset_value"]) == Decimal("0")


# ═════════════════════════════════════════════════════════════════════
# Public asset lookup
# ═════════════════════════════════════════════════════════════════════


class TestPublicAssetLookup:

    async def test_details_without_login(
        self, client, db, business_unit, department, employee, computers,
    ):
        laptop = await _asset(
            db, business_unit, computers, "IT040", "Laptop",
            department_id=department.id, status=AssetStatus.DEPLOYED,
        )
        start = _at("2025-01-01")
        db.add_all([
            AssetHistory(
                asset_id=laptop.id,
                action=AssetHistoryAction.UPDATED,
                notes=f"Edit {i}",
                created_at=start + timedelta(days=i),
            )
            for i in range(25)
        ])
        db.add_all([
            _deployment(laptop, employee, "TR-40", DeploymentStatus.RETURNED,
                        deployed="2025-01-02", returned="2025-02-01"),
            _deployment(laptop, employee, "TR-41", DeploymentStatus.DEPLOYED, deployed="2025-03-01"),
        ])
        await db.commit()

        resp = await client.get(f"/api/v1/public/assets/{laptop.id}")
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["item_code"] == "IT040"
        assert body["category"]["code"] == "IT"
        assert body["business_unit"]["code"] == "HQ"
        assert body["department"]["name"] == "Operations"
        assert body["current_deployment"]["transmittal_number"] == "TR-41"
        assert body["current_deployment"]["employee"]["name"] == "Eli Employee"
        assert len(body["recent_history"]) == 20
        assert body["recent_history"][0]["notes"] == "Edit 24"

    async def test_returned_asset_has_no_holder(
        self, client, db, business_unit, employee, computers,
    ):
        phone = await _asset(db, business_unit, computers, "IT041", "Phone")
        db.add(_deployment(phone, employee, "TR-50", DeploymentStatus.RETURNED,
                           deployed="2025-01-02", returned="2025-02-01"))
        await db.commit()

        resp = await client.get(f"/api/v1/public/assets/{phone.id}")
        assert resp.json()["current_deployment"] is None
        assert resp.json()["recent_history"] == []

    async def test_unknown_asset(self, client):
        resp = await client.get(f"/api/v1/public/assets/{uuid.uuid4()}")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Asset not found"}
