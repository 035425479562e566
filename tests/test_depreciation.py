"""Depreciation service tests — manual and batch runs, schedules, cron endpoints."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from backoffice.common.constants import ScheduleType, UserRole
from backoffice.config import settings
from backoffice.depreciation import service as depreciation_service
from backoffice.depreciation.scheduler import effective_execution_day, is_schedule_due
from backoffice.depreciation.service import today
from tests.conftest import headers_for, make_user

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


@pytest.fixture
async def acctg_headers(db, business_unit):
    accountant = await make_user(db, business_unit_id=business_unit.id, role=UserRole.ACCTG)
    return await headers_for(db, accountant)


@pytest.fixture
async def category(client, business_unit, acctg_headers):
    resp = await client.post(
        "/api/v1/assets/categories",
        json={"business_unit_id": str(business_unit.id), "name": "Vehicles", "code": "VEH"},
        headers=acctg_headers,
    )
    return resp.json()


async def _asset(client, headers, business_unit, category, **extra) -> dict:
    body = {
        "business_unit_id": str(business_unit.id),
        "category_id": category["id"],
        "description": "Delivery van",
        "purchase_date": "2025-01-10",
        "purchase_price": "12000",
        "depreciation_method": "STRAIGHT_LINE",
        "useful_life_years": 1,
    }
    body.update(extra)
    resp = await client.post("/api/v1/assets", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _schedule(client, headers, business_unit, **extra) -> dict:
    body = {
        "business_unit_id": str(business_unit.id),
        "name": "Monthly run",
        "execution_day": today().day,
        **extra,
    }
    resp = await client.post("/api/v1/depreciation/schedules", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ═════════════════════════════════════════════════════════════════════
# Schedule due rules
# ═════════════════════════════════════════════════════════════════════


class TestScheduleDue:

    def _schedule(self, **overrides):
        values = dict(is_active=True, execution_day=15, schedule_type=ScheduleType.MONTHLY)
        values.update(overrides)
        return SimpleNamespace(**values)

    def test_monthly_on_execution_day(self):
        assert is_schedule_due(self._schedule(), date(2025, 4, 15))
        assert not is_schedule_due(self._schedule(), date(2025, 4, 16))

    def test_day_past_month_length_runs_on_last_day(self):
        assert effective_execution_day(31, date(2025, 2, 10)) == 28
        assert is_schedule_due(self._schedule(execution_day=31), date(2025, 2, 28))
        assert is_schedule_due(self._schedule(execution_day=31), date(2025, 4, 30))

    def test_quarterly_and_annual_months(self):
        quarterly = self._schedule(schedule_type=ScheduleType.QUARTERLY)
        annual = self._schedule(schedule_type=ScheduleType.ANNUALLY)
        assert is_schedule_due(quarterly, date(2025, 6, 15))
        assert not is_schedule_due(quarterly, date(2025, 5, 15))
        assert is_schedule_due(annual, date(2025, 12, 15))
        assert not is_schedule_due(annual, date(2025, 6, 15))

    def test_inactive_never_due(self):
        assert not is_schedule_due(self._schedule(is_active=False), date(2025, 4, 15))


# ═════════════════════════════════════════════════════════════════════
# Manual calculation
# ═════════════════════════════════════════════════════════════════════


class TestManualCalculation:

    async def test_calculate_once_per_period(self, client, business_unit, acctg_headers, category):
        asset = await _asset(client, acctg_headers, business_unit, category)

        first = await client.post(
            f"/api/v1/depreciation/assets/{asset['id']}/calculate",
            json={"calculation_date": "2025-02-28"},
            headers=acctg_headers,
        )
        assert first.status_code == 201
        assert Decimal(first.json()["depreciation_amount"]) == Decimal("1000")
        assert Decimal(first.json()["book_value_end"]) == Decimal("11000")
        assert first.json()["period_start_date"] == "2025-02-01"

        again = await client.post(
            f"/api/v1/depreciation/assets/{asset['id']}/calculate",
            json={"calculation_date": "2025-02-28"},
            headers=acctg_headers,
        )
        assert again.status_code == 400

        refreshed = (await client.get(f"/api/v1/assets/{asset['id']}", headers=acctg_headers)).json()
        assert Decimal(refreshed["accumulated_depreciation"]) == Decimal("1000")
        assert refreshed["next_depreciation_date"] == "2025-03-28"

        history = await client.get(
            f"/api/v1/depreciation/assets/{asset['id']}/history", headers=acctg_headers,
        )
        assert len(history.json()) == 1

    async def test_asset_without_setup_rejected(self, client, business_unit, acctg_headers, category):
        asset = await _asset(
            client, acctg_headers, business_unit, category, depreciation_method=None,
        )
        resp = await client.post(
            f"/api/v1/depreciation/assets/{asset['id']}/calculate",
            json={"calculation_date": "2025-02-28"},
            headers=acctg_headers,
        )
        assert resp.status_code == 400


# ═════════════════════════════════════════════════════════════════════
# Batch runs
# ═════════════════════════════════════════════════════════════════════


class TestBatch:

    async def test_batch_at_month_end(self, client, business_unit, acctg_headers, category):
        due = await _asset(client, acctg_headers, business_unit, category)
        future = await _asset(
            client, acctg_headers, business_unit, category, purchase_date="2025-09-01",
        )
        no_price = await _asset(
            client, acctg_headers, business_unit, category, purchase_price=None,
        )

        resp = await client.post(
            "/api/v1/depreciation/batch",
            json={"business_unit_id": str(business_unit.id), "calculation_date": "2025-06-30"},
            headers=acctg_headers,
        )
        assert resp.status_code == 201
        execution = resp.json()
        assert execution["status"] == "COMPLETED"
        assert execution["schedule_id"] is None
        assert execution["total_assets_processed"] == 3
        assert execution["successful_calculations"] == 1
        assert execution["skipped_calculations"] == 2
        assert Decimal(execution["total_depreciation_amount"]) == Decimal("1000")

        by_asset = {row["asset_id"]: row["status"] for row in execution["assets"]}
        assert by_asset == {
            due["id"]: "SUCCESS",
            future["id"]: "SKIPPED",
            no_price["id"]: "NO_SETUP",
        }

    async def test_batch_refused_mid_month(self, client, business_unit, acctg_headers):
        resp = await client.post(
            "/api/v1/depreciation/batch",
            json={"business_unit_id": str(business_unit.id), "calculation_date": "2025-06-15"},
            headers=acctg_headers,
        )
        assert resp.status_code == 400

    async def test_only_admin_may_override(self, client, business_unit, acctg_headers, admin_headers):
        body = {
            "business_unit_id": str(business_unit.id),
            "calculation_date": "2025-06-15",
            "override": True,
        }
        denied = await client.post("/api/v1/depreciation/batch", json=body, headers=acctg_headers)
        assert denied.status_code == 403

        allowed = await client.post("/api/v1/depreciation/batch", json=body, headers=admin_headers)
        assert allowed.status_code == 201

    async def test_preview_writes_nothing(self, client, business_unit, acctg_headers, category):
        asset = await _asset(client, acctg_headers, business_unit, category)
        resp = await client.get(
            "/api/v1/depreciation/preview",
            params={"calculation_date": "2025-06-30"},
            headers=acctg_headers,
        )
        assert resp.status_code == 200
        preview = resp.json()
        assert [row["asset_id"] for row in preview["assets"]] == [asset["id"]]
        assert Decimal(preview["by_category"]["Vehicles"]) == Decimal("1000")

        summary = await client.get("/api/v1/depreciation/summary", headers=acctg_headers)
        assert Decimal(summary.json()["total_accumulated_depreciation"]) == 0
        assert summary.json()["depreciable_assets"] == 1


# ═════════════════════════════════════════════════════════════════════
# Schedules and cron
# ═════════════════════════════════════════════════════════════════════


class TestSchedulesAndCron:

    async def test_schedule_crud(self, client, business_unit, acctg_headers):
        schedule = await _schedule(client, acctg_headers, business_unit, execution_day=31)
        assert schedule["schedule_type"] == "MONTHLY"

        patched = await client.patch(
            f"/api/v1/depreciation/schedules/{schedule['id']}",
            json={"schedule_type": "QUARTERLY"},
            headers=acctg_headers,
        )
        assert patched.json()["schedule_type"] == "QUARTERLY"

        toggled = await client.post(
            f"/api/v1/depreciation/schedules/{schedule['id']}/toggle", headers=acctg_headers,
        )
        assert toggled.json()["is_active"] is False

        deleted = await client.delete(
            f"/api/v1/depreciation/schedules/{schedule['id']}", headers=acctg_headers,
        )
        assert deleted.status_code == 204

    async def test_execution_day_validated(self, client, business_unit, acctg_headers):
        resp = await client.post(
            "/api/v1/depreciation/schedules",
            json={"business_unit_id": str(business_unit.id), "name": "Bad", "execution_day": 32},
            headers=acctg_headers,
        )
        assert resp.status_code == 422

    async def test_cron_requires_secret(self, client):
        resp = await client.post("/api/v1/cron/depreciation")
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized"}

        garbled = await client.get(
            "/api/v1/cron/depreciation",
            headers={"Authorization": "Bearer café".encode("utf-8")},
        )
        assert garbled.status_code == 401
        assert garbled.json() == {"error": "Unauthorized"}

    async def test_cron_post_needs_bearer_without_secret(self, client, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", None)

        anonymous = await client.post("/api/v1/cron/depreciation")
        assert anonymous.status_code == 401
        cleanup = await client.post("/api/v1/cron/session-cleanup")
        assert cleanup.status_code == 401

        scheduled = await client.get("/api/v1/cron/depreciation")
        assert scheduled.status_code == 200
        manual = await client.post(
            "/api/v1/cron/depreciation", headers={"Authorization": "Bearer any"},
        )
        assert manual.status_code == 200

    async def test_cron_runs_due_schedule_once_per_day(
        self, client, business_unit, acctg_headers, category,
    ):
        await _asset(client, acctg_headers, business_unit, category)
        schedule = await _schedule(client, acctg_headers, business_unit)

        first = await client.post("/api/v1/cron/depreciation", headers=CRON_HEADERS)
        assert first.status_code == 200
        [result] = first.json()["results"]
        assert result["schedule_id"] == schedule["id"]
        assert result["status"] == "success"
        assert result["assets_processed"] == 1

        second = await client.get("/api/v1/cron/depreciation", headers=CRON_HEADERS)
        assert second.json()["results"][0]["status"] == "skipped"

        executions = await client.get(
            "/api/v1/depreciation/executions",
            params={"schedule_id": schedule["id"]},
            headers=acctg_headers,
        )
        assert executions.json()["meta"]["total"] == 1

        in_use = await client.delete(
            f"/api/v1/depreciation/schedules/{schedule['id']}", headers=acctg_headers,
        )
        assert in_use.status_code == 400

    async def test_cron_ignores_schedules_not_due(self, client, business_unit, acctg_headers):
        not_today = 1 if today().day != 1 else 2
        await _schedule(client, acctg_headers, business_unit, execution_day=not_today)
        resp = await client.post("/api/v1/cron/depreciation", headers=CRON_HEADERS)
        assert resp.json()["results"] == []

    async def test_admin_trigger_runs_named_schedule(
        self, client, business_unit, acctg_headers, admin_headers, category,
    ):
        await _asset(client, acctg_headers, business_unit, category)
        not_today = 1 if today().day != 1 else 2
        schedule = await _schedule(client, acctg_headers, business_unit, execution_day=not_today)

        resp = await client.post(
            "/api/v1/admin/depreciation/trigger",
            json={"schedule_id": schedule["id"]},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["results"][0]["status"] == "success"

        denied = await client.post(
            "/api/v1/admin/depreciation/trigger", json={}, headers=acctg_headers,
        )
        assert denied.status_code == 403

    async def test_depreciation_health(self, client):
        resp = await client.get("/api/v1/health/depreciation")
        assert resp.status_code == 200
        assert resp.json()["scheduler"]["active_schedules"] == 0


# ═════════════════════════════════════════════════════════════════════
# Failures and category filters
# ═════════════════════════════════════════════════════════════════════


BATCH_DATE = "2025-06-30"


async def _batch(client, headers, business_unit):
    resp = await client.post(
        "/api/v1/depreciation/batch",
        json={"business_unit_id": str(business_unit.id), "calculation_date": BATCH_DATE},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestExecutionFailures:

    async def test_database_error_fails_only_that_asset(
        self, client, business_unit, acctg_headers, category, monkeypatch,
    ):
        van = await _asset(client, acctg_headers, business_unit, category)
        forklift = await _asset(
            client, acctg_headers, business_unit, category, description="Forklift",
        )
        real_apply = depreciation_service.apply_depreciation

        def apply_without_asset_link(db, asset, *args, **kwargs):
            record = real_apply(db, asset, *args, **kwargs)
            if asset.description == "Forklift":
                record.asset_id = None
            return record

        monkeypatch.setattr(depreciation_service, "apply_depreciation", apply_without_asset_link)

        execution = await _batch(client, acctg_headers, business_unit)
        assert execution["status"] == "COMPLETED"
        assert execution["successful_calculations"] == 1
        assert execution["failed_calculations"] == 1
        assert Decimal(execution["total_depreciation_amount"]) == Decimal("1000")

        rows = {row["asset_id"]: row for row in execution["assets"]}
        assert rows[van["id"]]["status"] == "SUCCESS"
        assert rows[forklift["id"]]["status"] == "FAILED"
        assert rows[forklift["id"]]["error_message"]

        untouched = (
            await client.get(f"/api/v1/assets/{forklift['id']}", headers=acctg_headers)
        ).json()
        assert Decimal(untouched["accumulated_depreciation"]) == Decimal("0")
        history = await client.get(
            f"/api/v1/depreciation/assets/{forklift['id']}/history", headers=acctg_headers,
        )
        assert history.json() == []

    async def test_execution_fails_when_every_asset_fails(
        self, client, business_unit, acctg_headers, category, monkeypatch,
    ):
        asset = await _asset(client, acctg_headers, business_unit, category)

        def broken_calculation(*args, **kwargs):
            raise ValueError("useful life is corrupt")

        monkeypatch.setattr(depreciation_service, "calculate_depreciation", broken_calculation)

        execution = await _batch(client, acctg_headers, business_unit)
        assert execution["status"] == "FAILED"
        assert execution["successful_calculations"] == 0
        assert execution["failed_calculations"] == 1
        assert execution["error_message"]
        [row] = execution["assets"]
        assert row["asset_id"] == asset["id"]
        assert row["status"] == "FAILED"
        assert row["error_message"] == "useful life is corrupt"

    async def test_failed_run_is_recorded_and_later_schedules_still_run(
        self, client, business_unit, acctg_headers, category, monkeypatch,
    ):
        asset = await _asset(client, acctg_headers, business_unit, category)
        broken = await _schedule(client, acctg_headers, business_unit, name="A nightly")
        healthy = await _schedule(client, acctg_headers, business_unit, name="B nightly")
        real_finish = depreciation_service._finish_execution

        def finish_without_unit(execution, *args):
            real_finish(execution, *args)
            if str(execution.schedule_id) == broken["id"]:
                execution.business_unit_id = None

        monkeypatch.setattr(depreciation_service, "_finish_execution", finish_without_unit)

        resp = await client.post("/api/v1/cron/depreciation", headers=CRON_HEADERS)
        assert resp.status_code == 200
        first, second = resp.json()["results"]
        assert first["schedule_id"] == broken["id"]
        assert first["status"] == "error"
        assert first["execution_status"] == "FAILED"
        assert second["schedule_id"] == healthy["id"]
        assert second["status"] == "success"
        assert second["assets_processed"] == 1

        executions = await client.get(
            "/api/v1/depreciation/executions",
            params={"schedule_id": broken["id"]},
            headers=acctg_headers,
        )
        [failed] = executions.json()["data"]
        assert failed["status"] == "FAILED"
        assert failed["error_message"]
        assert failed["total_assets_processed"] == 0

        history = await client.get(
            f"/api/v1/depreciation/assets/{asset['id']}/history", headers=acctg_headers,
        )
        assert len(history.json()) == 1


class TestScheduleCategoryFilters:

    async def test_include_and_exclude_categories(
        self, client, business_unit, acctg_headers, category,
    ):
        tools = (
            await client.post(
                "/api/v1/assets/categories",
                json={"business_unit_id": str(business_unit.id), "name": "Tools", "code": "TLS"},
                headers=acctg_headers,
            )
        ).json()
        van = await _asset(client, acctg_headers, business_unit, category)
        drill = await _asset(client, acctg_headers, business_unit, tools, description="Drill")

        await _schedule(
            client, acctg_headers, business_unit,
            name="A vehicles only", include_categories=[category["id"]],
        )
        await _schedule(
            client, acctg_headers, business_unit,
            name="B all but vehicles", exclude_categories=[category["id"]],
        )

        resp = await client.post("/api/v1/cron/depreciation", headers=CRON_HEADERS)
        included, excluded = resp.json()["results"]
        assert included["assets_processed"] == 1
        assert excluded["assets_processed"] == 1

        async def assets_of(result):
            detail = await client.get(
                f"/api/v1/depreciation/executions/{result['execution_id']}",
                headers=acctg_headers,
            )
            return [row["asset_id"] for row in detail.json()["assets"]]

        assert await assets_of(included) == [van["id"]]
        assert await assets_of(excluded) == [drill["id"]]
