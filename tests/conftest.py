"""Shared test fixtures: async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from orghr.auth.service import issue_session
from orghr.common.constants import AccrualMethod, EmployeeStatus, UserRole
from orghr.database import Base, get_db
from orghr.main import create_app

# Import ALL model modules so every table is registered on Base.metadata
import orghr.auth.models  # noqa: F401
import orghr.common.audit  # noqa: F401
import orghr.comp_off.models  # noqa: F401
import orghr.leave.models  # noqa: F401
import orghr.notifications.models  # noqa: F401
import orghr.organizations.models  # noqa: F401
import orghr.time_entries.models  # noqa: F401

from orghr.auth.models import AppUser
from orghr.leave.models import LeavePolicy
from orghr.organizations.models import Employee, Organization

# ── SQLite compat: compile PG-specific types to TEXT/CHAR ───────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
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


@event.listens_for(engine.sync_engine, "connect")
def _enable_sqlite_fks(dbapi_conn, connection_record):
    """SQLite ignores FOREIGN KEY clauses unless asked."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


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
    """Clear slowapi counters so per-route limits do not leak across tests."""
    from orghr.common.rate_limit import limiter

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

async def make_organization(db: AsyncSession, *, name: str = "Acme Corp") -> Organization:
    org = Organization(id=uuid.uuid4(), name=name, is_active=True)
    db.add(org)
    await db.flush()
    return org


async def make_employee(
    db: AsyncSession,
    organization_id: uuid.UUID,
    *,
    first_name: str = "Test",
    last_name: str = "User",
    status: EmployeeStatus = EmployeeStatus.active,
) -> Employee:
    employee = Employee(
        id=uuid.uuid4(),
        organization_id=organization_id,
        employee_code=f"E-{uuid.uuid4().hex[:6].upper()}",
        first_name=first_name,
        last_name=last_name,
        email=f"{first_name.lower()}.{uuid.uuid4().hex[:6]}@example.com",
        designation="Engineer",
        status=status,
    )
    db.add(employee)
    await db.flush()
    return employee


async def make_user(
    db: AsyncSession,
    *,
    role: UserRole = UserRole.employee,
    organization_id: uuid.UUID | None = None,
    employee_id: uuid.UUID | None = None,
) -> AppUser:
    user = AppUser(
        id=uuid.uuid4(),
        organization_id=organization_id,
        employee_id=employee_id,
        email=f"{role.value}.{uuid.uuid4().hex[:8]}@example.com",
        role=role,
        is_active=True,
    )
    db.add(user)
    await db.flush()
    return user


async def make_policy(
    db: AsyncSession,
    organization_id: uuid.UUID,
    *,
    code: str = "CL",
    display_name: str = "Casual Leave",
    annual_quota: Decimal = Decimal("12"),
    accrual_method: AccrualMethod = AccrualMethod.yearly,
    allow_negative_balance: bool = False,
    is_active: bool = True,
) -> LeavePolicy:
    now = datetime.now(timezone.utc)
    policy = LeavePolicy(
        id=uuid.uuid4(),
        organization_id=organization_id,
        code=code,
        display_name=display_name,
        annual_quota=annual_quota,
        accrual_method=accrual_method,
        allow_negative_balance=allow_negative_balance,
        is_active=is_active,
        created_at=now,
        updated_at=now,
    )
    db.add(policy)
    await db.flush()
    return policy


async def bearer(db: AsyncSession, user: AppUser) -> dict[str, str]:
    """Persist a session for *user* and return its Authorization header."""
    token = await issue_session(db, user)
    await db.commit()
    return {"Authorization": f"Bearer {token}"}


# ── Seeded tenant ───────────────────────────────────────────────────

@pytest.fixture
async def org(db) -> Organization:
    organization = await make_organization(db)
    await db.commit()
    return organization


@pytest.fixture
async def other_org(db) -> Organization:
    organization = await make_organization(db, name="Globex")
    await db.commit()
    return organization


@pytest.fixture
async def employee(db, org) -> Employee:
    emp = await make_employee(db, org.id, first_name="Asha", last_name="Rao")
    await db.commit()
    return emp


@pytest.fixture
async def employee_user(db, org, employee) -> AppUser:
    user = await make_user(
        db, role=UserRole.employee, organization_id=org.id, employee_id=employee.id,
    )
    await db.commit()
    return user


@pytest.fixture
async def admin_user(db, org) -> AppUser:
    user = await make_user(db, role=UserRole.org_admin, organization_id=org.id)
    await db.commit()
    return user


@pytest.fixture
async def casual_leave(db, org) -> LeavePolicy:
    policy = await make_policy(db, org.id)
    await db.commit()
    return policy


@pytest.fixture
async def comp_off_policy(db, org) -> LeavePolicy:
    policy = await make_policy(
        db,
        org.id,
        code="COMP_OFF",
        display_name="Compensatory Off",
        annual_quota=Decimal("0"),
        accrual_method=AccrualMethod.none,
    )
    await db.commit()
    return policy


# ── Auth helpers ────────────────────────────────────────────────────

@pytest.fixture
async def employee_headers(db, employee_user) -> dict[str, str]:
    return await bearer(db, employee_user)


@pytest.fixture
async def admin_headers(db, admin_user) -> dict[str, str]:
    return await bearer(db, admin_user)
