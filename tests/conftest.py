"""Pytest fixtures for payroll engine tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hris_payroll.api.app import create_app
from hris_payroll.api.dependencies import get_payroll_config, get_session_factory
from hris_payroll.config import PayrollConfig
from hris_payroll.database import make_session_factory
from hris_payroll.models import (
    Base,
    Compensation,
    ContributionTierModel,
    Department,
    Employee,
    Holiday,
    LateDeductionPolicyModel,
    Organization,
    TaxBracketModel,
    TimeEntry,
    WorkScheduleModel,
)

# In-memory SQLite shared across sessions of one test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

PERIOD_START = date(2024, 1, 1)
PERIOD_END = date(2024, 1, 15)


@pytest_asyncio.fixture
async def engine():
    """Create a fresh test database per test."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@dataclass
class SeededOrganization:
    """Handles to the rows created by the seeded_org fixture."""

    organization: Organization
    department: Department
    employees: list[Employee]
    compensations: list[Compensation] = field(default_factory=list)

    @property
    def organization_id(self) -> UUID:
        return self.organization.organization_id

    @property
    def alice(self) -> Employee:
        return self.employees[0]

    @property
    def bob(self) -> Employee:
        return self.employees[1]


def add_time_entry(
    session: AsyncSession,
    employee: Employee,
    work_date: date,
    clock_in: time,
    clock_out: time | None,
) -> TimeEntry:
    clock_in_at = datetime.combine(work_date, clock_in)
    clock_out_at = None
    if clock_out is not None:
        clock_out_at = datetime.combine(work_date, clock_out)
        if clock_out_at <= clock_in_at:
            clock_out_at += timedelta(days=1)
    entry = TimeEntry(
        employee_id=employee.employee_id,
        organization_id=employee.organization_id,
        work_date=work_date,
        clock_in_at=clock_in_at,
        clock_out_at=clock_out_at,
        status="CLOSED" if clock_out is not None else "OPEN",
    )
    session.add(entry)
    return entry


@pytest_asyncio.fixture
async def seeded_org(session: AsyncSession) -> SeededOrganization:
    """An organization with two monthly-rated employees and statutory tables.

    Alice (Engineering) works every weekday of Jan 1-15 2024 except Jan 3,
    clocking in 15 minutes late on Jan 2. Bob has no department and works
    every weekday on time. Jan 1 is a regular holiday.
    """
    org = Organization(name="Acme Manila")
    session.add(org)
    await session.flush()

    dept = Department(organization_id=org.organization_id, name="Engineering")
    session.add(dept)
    await session.flush()

    alice = Employee(
        organization_id=org.organization_id,
        department_id=dept.department_id,
        employee_number="EMP001",
        first_name="Alice",
        last_name="Santos",
        hire_date=date(2023, 1, 1),
    )
    bob = Employee(
        organization_id=org.organization_id,
        employee_number="EMP002",
        first_name="Bob",
        last_name="Reyes",
        hire_date=date(2023, 1, 1),
    )
    session.add_all([alice, bob])
    await session.flush()

    seeded = SeededOrganization(organization=org, department=dept, employees=[alice, bob])
    for emp in (alice, bob):
        comp = Compensation(
            employee_id=emp.employee_id,
            organization_id=org.organization_id,
            base_salary=Decimal("22000.00"),
            effective_date=date(2023, 1, 1),
        )
        comp.work_schedule = WorkScheduleModel(
            schedule_type="FIXED",
            default_start=time(9, 0),
            default_end=time(18, 0),
            monthly_rate=Decimal("22000.00"),
        )
        session.add(comp)
        seeded.compensations.append(comp)

    session.add_all([
        LateDeductionPolicyModel(
            organization_id=org.organization_id,
            name="Standard tardiness",
            policy_type="LATE",
            deduction_method="FIXED_AMOUNT",
            fixed_amount=Decimal("100.00"),
            grace_period_minutes=5,
            minimum_late_minutes=1,
            effective_date=date(2023, 1, 1),
        ),
        LateDeductionPolicyModel(
            organization_id=org.organization_id,
            name="Unpaid absence",
            policy_type="UNDERTIME",
            deduction_method="PERCENTAGE",
            percentage_rate=Decimal("100"),
            effective_date=date(2023, 1, 1),
        ),
        TaxBracketModel(
            organization_id=org.organization_id,
            min_salary=Decimal("0"),
            max_salary=Decimal("20833"),
            base_tax=Decimal("0"),
            rate=Decimal("0"),
            effective_from=date(2023, 1, 1),
        ),
        TaxBracketModel(
            organization_id=org.organization_id,
            min_salary=Decimal("20833"),
            max_salary=None,
            base_tax=Decimal("0"),
            rate=Decimal("0.15"),
            effective_from=date(2023, 1, 1),
        ),
        ContributionTierModel(
            organization_id=org.organization_id,
            kind="SSS",
            min_salary=Decimal("0"),
            employee_rate=Decimal("0.045"),
            employer_rate=Decimal("0.095"),
            salary_cap=Decimal("30000"),
            effective_from=date(2023, 1, 1),
        ),
        ContributionTierModel(
            organization_id=org.organization_id,
            kind="PHILHEALTH",
            min_salary=Decimal("0"),
            employee_rate=Decimal("0.025"),
            employer_rate=Decimal("0.025"),
            salary_cap=Decimal("100000"),
            effective_from=date(2023, 1, 1),
        ),
        ContributionTierModel(
            organization_id=org.organization_id,
            kind="PAGIBIG",
            min_salary=Decimal("0"),
            employee_rate=Decimal("0.02"),
            employer_rate=Decimal("0.02"),
            max_employee_contribution=Decimal("200"),
            effective_from=date(2023, 1, 1),
        ),
        Holiday(
            organization_id=org.organization_id,
            holiday_date=date(2024, 1, 1),
            name="New Year's Day",
            holiday_type="REGULAR",
        ),
    ])

    day = PERIOD_START
    while day <= PERIOD_END:
        if day.weekday() < 5 and day != date(2024, 1, 1):
            if day == date(2024, 1, 2):
                add_time_entry(session, alice, day, time(9, 15), time(18, 15))
            elif day != date(2024, 1, 3):
                add_time_entry(session, alice, day, time(9, 0), time(17, 0))
            add_time_entry(session, bob, day, time(9, 0), time(17, 0))
        day += timedelta(days=1)

    await session.commit()
    return seeded


@pytest_asyncio.fixture
async def db(session_factory, seeded_org) -> AsyncGenerator[AsyncSession, None]:
    """A fresh session opened after the seed data is committed."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the API, bound to the test database."""
    app = create_app()
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_payroll_config] = lambda: PayrollConfig(batch_concurrency=1)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
