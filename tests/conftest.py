"""Pytest fixtures for workforce engine tests."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from workforce_engine.database import create_engine, create_schema, make_session_factory
from workforce_engine.models import (
    EmploymentType,
    Site,
    UserRole,
    Worker,
    WorkRecord,
)

# In-memory SQLite keeps service tests fast; SQLAlchemy hooks give it real savepoints
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ORG_A = UUID("00000000-0000-0000-0000-00000000000a")
ORG_B = UUID("00000000-0000-0000-0000-00000000000b")


class TickingClock:
    """Deterministic clock that advances one second per reading."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(seconds=1)
        return value

    def today(self) -> date:
        return self.current.date()


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock(datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture
async def engine():
    """Create a fresh schema per test."""
    engine = create_engine(TEST_DATABASE_URL)
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    factory = make_session_factory(engine)
    async with factory() as session:
        yield session
        await session.rollback()


async def add_site(
    session: AsyncSession,
    name: str = "Riverside Tower",
    organization_id: UUID | None = ORG_A,
    **fields,
) -> Site:
    site = Site(id=uuid4(), name=name, organization_id=organization_id, **fields)
    session.add(site)
    await session.flush()
    return site


async def add_worker(
    session: AsyncSession,
    full_name: str = "Kim Minjun",
    organization_id: UUID | None = ORG_A,
    employment_type: EmploymentType | None = EmploymentType.FREELANCER,
    daily_wage: Decimal | None = Decimal("160000"),
    role: UserRole = UserRole.WORKER,
) -> Worker:
    worker = Worker(
        id=uuid4(),
        full_name=full_name,
        email=f"{full_name.lower().replace(' ', '.')}@example.com",
        role=role.value,
        employment_type=employment_type.value if employment_type else None,
        daily_wage=daily_wage,
        organization_id=organization_id,
    )
    session.add(worker)
    await session.flush()
    return worker


async def add_work(
    session: AsyncSession,
    worker: Worker,
    site: Site,
    work_date: date,
    labor_hours: str,
    hourly_rate: str | None = None,
) -> WorkRecord:
    record = WorkRecord(
        id=uuid4(),
        worker_id=worker.id,
        site_id=site.id,
        work_date=work_date,
        labor_hours=Decimal(labor_hours),
        overtime_hours=max(Decimal("0"), Decimal(labor_hours) - Decimal("8")),
        hourly_rate=Decimal(hourly_rate) if hourly_rate is not None else None,
    )
    session.add(record)
    await session.flush()
    return record
