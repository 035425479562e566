"""Tests for common utilities — filters, pagination, snapshots, audit, errors."""

from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.common.audit import AuditTrail, create_audit_entry
from backoffice.common.constants import UserRole
from backoffice.common.filters import _get_column, apply_filters, apply_search, apply_sorting
from backoffice.common.models import model_snapshot
from backoffice.common.pagination import PaginationParams, build_meta, paginate
from backoffice.config import settings
from backoffice.organization.models import User
from tests.conftest import make_business_unit, make_user


def _params(page: int = 1, page_size: int = 50, sort=None) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size, sort=sort)


async def _seed_users(db: AsyncSession, names: list[str], **kwargs) -> list[User]:
    bu = await make_business_unit(db)
    return [
        await make_user(db, business_unit_id=bu.id, name=name, **kwargs)
        for name in names
    ]


# ═════════════════════════════════════════════════════════════════════
# FILTER TESTS
# ═════════════════════════════════════════════════════════════════════


class TestApplyFilters:

    async def test_filter_by_equality(self, db: AsyncSession):
        bu = await make_business_unit(db)
        await make_user(db, business_unit_id=bu.id, role=UserRole.HR, name="Hana")
        await make_user(db, business_unit_id=bu.id, name="Uma")

        query = apply_filters(select(User), User, {"role": UserRole.HR})
        users = (await db.execute(query)).scalars().all()
        assert [u.name for u in users] == ["Hana"]

    async def test_filter_none_values_skipped(self, db: AsyncSession):
        await _seed_users(db, ["A", "B"])
        query = apply_filters(select(User), User, {"role": None, "name": None})
        assert len((await db.execute(query)).scalars().all()) == 2

    async def test_filter_by_ilike(self, db: AsyncSession):
        await _seed_users(db, ["Maria Santos", "Jose Rizal"])
        query = apply_filters(select(User), User, {"name__ilike": "santos"})
        users = (await db.execute(query)).scalars().all()
        assert [u.name for u in users] == ["Maria Santos"]

    async def test_filter_by_in(self, db: AsyncSession):
        users = await _seed_users(db, ["A", "B", "C"])
        wanted = [users[0].id, users[2].id]
        query = apply_filters(select(User), User, {"id__in": wanted})
        found = {u.id for u in (await db.execute(query)).scalars().all()}
        assert found == set(wanted)

    async def test_filter_not_equal_and_isnull(self, db: AsyncSession):
        bu = await make_business_unit(db)
        await make_user(db, business_unit_id=bu.id, role=UserRole.HR, name="Hana")
        await make_user(db, name="Floating")

        not_hr = apply_filters(select(User), User, {"role__ne": UserRole.HR})
        unassigned = apply_filters(select(User), User, {"business_unit_id__isnull": True})
        assert [u.name for u in (await db.execute(not_hr)).scalars().all()] == ["Floating"]
        assert [u.name for u in (await db.execute(unassigned)).scalars().all()] == ["Floating"]

    async def test_filter_nonexistent_column_ignored(self, db: AsyncSession):
        await _seed_users(db, ["A"])
        query = apply_filters(select(User), User, {"bogus": "x"})
        assert len((await db.execute(query)).scalars().all()) == 1


class TestApplySortingAndSearch:

    async def test_sort_ascending_and_descending(self, db: AsyncSession):
        await _seed_users(db, ["Charlie", "Alice", "Bob"])

        asc = (await db.execute(apply_sorting(select(User), User, "name"))).scalars().all()
        desc = (await db.execute(apply_sorting(select(User), User, "-name"))).scalars().all()
        assert [u.name for u in asc] == ["Alice", "Bob", "Charlie"]
        assert [u.name for u in desc] == ["Charlie", "Bob", "Alice"]

    async def test_sort_by_several_keys(self, db: AsyncSession):
        bu = await make_business_unit(db)
        await make_user(db, business_unit_id=bu.id, role=UserRole.USER, name="Zed")
        await make_user(db, business_unit_id=bu.id, role=UserRole.HR, name="Yara")
        await make_user(db, business_unit_id=bu.id, role=UserRole.USER, name="Abe")

        query = apply_sorting(select(User), User, "role, -name")
        assert [u.name for u in (await db.execute(query)).scalars().all()] == ["Yara", "Zed", "Abe"]

    def test_sort_unknown_column_is_noop(self):
        query = select(User)
        assert apply_sorting(query, User, "nonexistent_field") is query
        assert apply_sorting(query, User, None) is query

    async def test_search_across_columns(self, db: AsyncSession):
        users = await _seed_users(db, ["Alpha", "Beta"])
        query = apply_search(select(User), User, users[1].employee_id, ["name", "employee_id"])
        found = (await db.execute(query)).scalars().all()
        assert [u.name for u in found] == ["Beta"]

    def test_blank_search_is_noop(self):
        query = select(User)
        assert apply_search(query, User, "   ", ["name"]) is query

    def test_get_column(self):
        assert _get_column(User, "name") is not None
        assert _get_column(User, "totally_fake_column") is None


# ═════════════════════════════════════════════════════════════════════
# PAGINATION
# ═════════════════════════════════════════════════════════════════════


class TestPagination:

    async def test_paginate_first_page(self, db: AsyncSession):
        await _seed_users(db, [f"P{i}" for i in range(5)])
        result = await paginate(db, select(User), _params(page_size=3, sort="-name"), model=User)
        assert [u.name for u in result.data] == ["P4", "P3", "P2"]
        assert result.meta.total == 5
        assert result.meta.total_pages == 2
        assert result.meta.has_next is True
        assert result.meta.has_prev is False

    async def test_paginate_last_page_with_transform(self, db: AsyncSession):
        await _seed_users(db, [f"Q{i}" for i in range(5)])
        result = await paginate(
            db, select(User), _params(page=2, page_size=3, sort="name"),
            model=User, transform=lambda u: u.name,
        )
        assert result.data == ["Q3", "Q4"]
        assert result.meta.has_next is False
        assert result.meta.has_prev is True

    def test_build_meta_empty(self):
        meta = build_meta(1, 50, 0)
        assert meta.total_pages == 0
        assert meta.has_next is False


# ═════════════════════════════════════════════════════════════════════
# SNAPSHOTS / AUDIT
# ═════════════════════════════════════════════════════════════════════


class TestAudit:

    async def test_model_snapshot_is_json_safe(self, db: AsyncSession):
        users = await _seed_users(db, ["Snap"])
        snap = model_snapshot(users[0], ["id", "role", "hire_date", "name"])
        assert snap == {
            "id": str(users[0].id),
            "role": "USER",
            "hire_date": "2024-01-15",
            "name": "Snap",
        }

    async def test_create_audit_entry(self, db: AsyncSession):
        users = await _seed_users(db, ["Actor"])
        entity_id = uuid.uuid4()
        await create_audit_entry(
            db,
            action="update",
            entity_type="asset",
            entity_id=entity_id,
            actor_id=users[0].id,
            business_unit_id=users[0].business_unit_id,
            old_values={"price": str(Decimal("10.00"))},
            new_values={"price": "12.00"},
            ip_address="10.0.0.1",
        )
        await db.commit()

        row = (await db.execute(select(AuditTrail))).scalars().one()
        assert row.entity_id == entity_id
        assert row.action == "update"
        assert row.new_values == {"price": "12.00"}
        assert row.business_unit_id == users[0].business_unit_id


# ═════════════════════════════════════════════════════════════════════
# ERROR FORMAT
# ═════════════════════════════════════════════════════════════════════


async def test_not_found_is_problem_json(client, admin_headers):
    resp = await client.get(f"/api/v1/business-units/{uuid.uuid4()}", headers=admin_headers)
    assert resp.status_code == 404
    body = resp.json()
    assert body["status"] == 404
    assert body["title"] == "BusinessUnit Not Found"
    assert resp.headers["content-type"].startswith("application/problem+json")


async def test_request_validation_errors_listed_by_field(client, admin_headers):
    resp = await client.post("/api/v1/business-units", json={"name": "x"}, headers=admin_headers)
    assert resp.status_code == 422
    assert "code" in resp.json()["errors"]


async def test_health_check(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def _peer_request(headers, peer="10.0.0.5"):
    from starlette.requests import Request

    return Request({
        "type": "http",
        "headers": [(k.encode(), v.encode()) for k, v in headers.items()],
        "client": (peer, 4321),
    })


def test_rate_limit_key_ignores_forwarded_header_from_clients():
    from backoffice.common.rate_limit import client_key

    spoofed = _peer_request({"x-forwarded-for": "203.0.113.9"}, peer="198.51.100.7")
    assert client_key(spoofed) == "198.51.100.7"
    assert client_key(_peer_request({})) == "10.0.0.5"


def test_rate_limit_key_reads_forwarded_header_behind_trusted_proxy(monkeypatch):
    from backoffice.common.rate_limit import client_key

    monkeypatch.setattr(settings, "TRUSTED_PROXIES", "10.0.0.5, 10.0.0.6")
    forwarded = _peer_request({"x-forwarded-for": "1.2.3.4, 203.0.113.9, 10.0.0.6"})
    assert client_key(forwarded) == "203.0.113.9"
    assert client_key(_peer_request({})) == "10.0.0.5"
