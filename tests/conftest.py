"""Shared test fixtures — async DB, client, clock, identity headers, factories.

Reusable across all test modules (calendar, attendance, leave, balance, ...).
Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from timesheet.common.actor import Actor
from timesheet.common.clock import FixedClock, get_clock
from timesheet.common.constants import EmploymentType, UserRole
from timesheet.database import Base, get_db
from timesheet.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module foreign keys
# (e.g. AttendanceRecord → LeaveRequest, Notification → Employee)
import timesheet.common.audit  # noqa: F401
import timesheet.employees.models  # noqa: F401
import timesheet.holidays.models  # noqa: F401
import timesheet.leave.models  # noqa: F401
import timesheet.attendance.models  # noqa: F401
import timesheet.notifications.models  # noqa: F401

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
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() as a SQLite custom function."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
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
    from timesheet.common.rate_limit import limiter

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


# ── Clock ───────────────────────────────────────────────────────────

# Monday 2025-06-09, 09:00 local: before every 10:00 cut-off that day
DEFAULT_NOW = datetime(2025, 6, 9, 9, 0)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(DEFAULT_NOW)


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app(clock):
    """Create a fresh app instance with DB and clock dependencies overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    application.dependency_overrides[get_clock] = lambda: clock
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

def _make_employee(
    *,
    full_name: str = "Test User",
    email: Optional[str] = None,
    designation: Optional[str] = "Engineer",
    employment_type: Optional[EmploymentType] = EmploymentType.full_timer,
    joining_date: Optional[date] = date(2024, 1, 5),
    conversion_date: Optional[date] = None,
    manager_id: Optional[uuid.UUID] = None,
) -> dict:
    code = uuid.uuid4().hex[:6].upper()
    return dict(
        id=uuid.uuid4(),
        employee_code=f"TS-{code}",
        full_name=full_name,
        email=email or f"user.{code.lower()}@example.com",
        designation=designation,
        employment_type=employment_type,
        joining_date=joining_date,
        conversion_date=conversion_date,
        manager_id=manager_id,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )


async def _seed_employee(db: AsyncSession, **kwargs):
    from timesheet.employees.models import Employee

    employee = Employee(**_make_employee(**kwargs))
    db.add(employee)
    await db.flush()
    return employee


@pytest.fixture
async def manager(db):
    """A manager with no manager of their own."""
    return await _seed_employee(db, full_name="Team Manager", designation="Engineering Manager")


@pytest.fixture
async def employee(db, manager):
    """A full-timer reporting to ``manager``."""
    return await _seed_employee(db, full_name="Test Employee", manager_id=manager.id)


# ── Identity helpers ────────────────────────────────────────────────

def _headers(employee_id: uuid.UUID, role: UserRole = UserRole.employee) -> dict[str, str]:
    return {"X-Employee-Id": str(employee_id), "X-Role": role.value}


def _actor(employee_id: uuid.UUID, role: UserRole = UserRole.employee) -> Actor:
    return Actor(employee_id=employee_id, role=role)
