"""Shared test fixtures — async DB, client, auth helpers, factories.

Reusable across all test modules (auth, organization, leave, assets, etc.).
Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test secrets before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("LEGACY_MIGRATION_API_TOKEN", "test-migration-token")

import hashlib
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from backoffice.common.constants import UserRole
from backoffice.config import settings
from backoffice.database import Base, get_db
from backoffice.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
# (e.g. User → LeaveBalance, Asset → AssetDepreciation, etc.)
import backoffice.auth.models  # noqa: F401
import backoffice.organization.models  # noqa: F401
import backoffice.leave.models  # noqa: F401
import backoffice.overtime.models  # noqa: F401
import backoffice.assets.models  # noqa: F401
import backoffice.depreciation.models  # noqa: F401
import backoffice.material_requests.models  # noqa: F401
import backoffice.common.audit  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT/BLOB ───────────

from sqlalchemy.dialects.postgresql import INET, JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(INET, "sqlite")
def _inet_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Register PG-compatible functions for SQLite
@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() and uuid_generate_v4() as SQLite custom functions."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    dbapi_conn.create_function(
        "uuid_generate_v4", 0, lambda: str(uuid.uuid4()),
    )

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from backoffice.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

async def make_business_unit(
    db: AsyncSession,
    *,
    code: Optional[str] = None,
    name: str = "Head Office",
):
    from backoffice.organization.models import BusinessUnit

    bu = BusinessUnit(code=code or f"BU{uuid.uuid4().hex[:6].upper()}", name=name)
    db.add(bu)
    await db.commit()
    return bu


async def make_department(
    db: AsyncSession,
    business_unit_id: uuid.UUID,
    *,
    code: Optional[str] = None,
    name: str = "Operations",
):
    from backoffice.organization.models import Department

    dept = Department(
        code=code or f"D{uuid.uuid4().hex[:5].upper()}",
        name=name,
        business_unit_id=business_unit_id,
    )
    db.add(dept)
    await db.commit()
    return dept


async def make_user(
    db: AsyncSession,
    *,
    business_unit_id: Optional[uuid.UUID] = None,
    role: UserRole = UserRole.USER,
    name: str = "Test User",
    employee_id: Optional[str] = None,
    password: Optional[str] = None,
    **extra,
):
    from backoffice.auth.service import hash_password
    from backoffice.organization.models import User

    user = User(
        employee_id=employee_id or f"EMP-{uuid.uuid4().hex[:6].upper()}",
        name=name,
        role=role,
        business_unit_id=business_unit_id,
        password_hash=hash_password(password) if password else None,
        hire_date=date(2024, 1, 15),
        **extra,
    )
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def business_unit(db):
    return await make_business_unit(db, code="HQ", name="Head Office")


@pytest.fixture
async def other_business_unit(db):
    return await make_business_unit(db, code="BR1", name="Branch One")


@pytest.fixture
async def department(db, business_unit):
    return await make_department(db, business_unit.id, code="OPS", name="Operations")


@pytest.fixture
async def admin_user(db, business_unit):
    return await make_user(
        db, business_unit_id=business_unit.id, role=UserRole.ADMIN, name="Ada Admin",
    )


@pytest.fixture
async def employee(db, business_unit, department):
    return await make_user(
        db,
        business_unit_id=business_unit.id,
        department_id=department.id,
        name="Eli Employee",
    )


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    user_id: uuid.UUID,
    role: UserRole = UserRole.USER,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS)
    payload = {
        "sub": str(user_id),
        "role": role.value,
        "type": "access",
        "jti": uuid.uuid4().hex,
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


async def headers_for(db: AsyncSession, user) -> dict[str, str]:
    """Return Bearer auth headers with a valid session persisted in the DB."""
    from backoffice.auth.models import UserSession

    token = create_access_token(user.id, user.role)
    db.add(
        UserSession(
            user_id=user.id,
            token_hash=hashlib.sha256(token.encode()).hexdigest(),
            expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
            is_revoked=False,
        )
    )
    await db.commit()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def admin_headers(db, admin_user) -> dict[str, str]:
    return await headers_for(db, admin_user)


@pytest.fixture
async def auth_headers(db, employee) -> dict[str, str]:
    return await headers_for(db, employee)
