"""Tests for concurrent organization-wide batch runs."""

import asyncio
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import func, select

from hris_payroll.config import PayrollConfig
from hris_payroll.models import Payroll
from hris_payroll.services import PayrollService
from hris_payroll.services.batch import EmployeeRunStatus, PayrollBatchRunner

PERIOD_START = date(2024, 1, 1)
PERIOD_END = date(2024, 1, 15)


class FakeSession:
    """Stands in for an AsyncSession when compute_payroll is patched out."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def commit(self):
        pass

    async def rollback(self):
        pass


@dataclass
class FakePayroll:
    payroll_id: UUID = field(default_factory=uuid4)
    net_pay: Decimal = Decimal("1000.00")
    warnings: list = field(default_factory=list)


class TestBatchRunAgainstDatabase:
    async def test_all_employees_succeed(self, session_factory, seeded_org):
        runner = PayrollBatchRunner(session_factory, PayrollConfig(batch_concurrency=1))

        result = await runner.run(seeded_org.organization_id, PERIOD_START, PERIOD_END)

        assert len(result.succeeded) == 2
        assert result.failed == []
        net_by_employee = {o.employee_id: o.net_pay for o in result.outcomes}
        assert net_by_employee[seeded_org.bob.employee_id] == Decimal("9200.00")

        async with session_factory() as session:
            rows = (await session.execute(select(Payroll))).scalars().all()
        assert {p.status for p in rows} == {"COMPUTED"}
        assert {p.employee_id for p in rows} == {e.employee_id for e in seeded_org.employees}

    async def test_failure_is_isolated(self, session_factory, seeded_org):
        runner = PayrollBatchRunner(session_factory, PayrollConfig(batch_concurrency=1))
        missing = uuid4()

        result = await runner.run(
            seeded_org.organization_id,
            PERIOD_START,
            PERIOD_END,
            employee_ids=[seeded_org.bob.employee_id, missing],
        )

        assert [o.employee_id for o in result.succeeded] == [seeded_org.bob.employee_id]
        assert [o.employee_id for o in result.failed] == [missing]
        assert result.failed[0].error.startswith("NotFoundError")

        async with session_factory() as session:
            assert await session.scalar(select(func.count()).select_from(Payroll)) == 1

    async def test_department_filter(self, session_factory, seeded_org):
        runner = PayrollBatchRunner(session_factory, PayrollConfig(batch_concurrency=1))

        result = await runner.run(
            seeded_org.organization_id,
            PERIOD_START,
            PERIOD_END,
            department_id=seeded_org.department.department_id,
        )

        assert [o.employee_id for o in result.outcomes] == [seeded_org.alice.employee_id]
        assert result.outcomes[0].status == EmployeeRunStatus.SUCCEEDED

    async def test_preview_batch_writes_nothing(self, session_factory, seeded_org):
        runner = PayrollBatchRunner(session_factory, PayrollConfig(batch_concurrency=1))

        result = await runner.run(
            seeded_org.organization_id, PERIOD_START, PERIOD_END, persist=False
        )

        assert len(result.succeeded) == 2
        assert all(o.payroll_id is None for o in result.outcomes)
        async with session_factory() as session:
            assert await session.scalar(select(func.count()).select_from(Payroll)) == 0


class TestBatchScheduling:
    async def test_concurrency_is_bounded(self, monkeypatch):
        running = 0
        peak = 0

        async def fake_compute(self, employee_id, *args, **kwargs):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return FakePayroll()

        monkeypatch.setattr(PayrollService, "compute_payroll", fake_compute)
        runner = PayrollBatchRunner(FakeSession, PayrollConfig(batch_concurrency=2))

        result = await runner.run(
            uuid4(), PERIOD_START, PERIOD_END, employee_ids=[uuid4() for _ in range(6)]
        )

        assert len(result.succeeded) == 6
        assert peak == 2

    async def test_cancel_before_start(self, monkeypatch):
        calls = []

        async def fake_compute(self, employee_id, *args, **kwargs):
            calls.append(employee_id)
            return FakePayroll()

        monkeypatch.setattr(PayrollService, "compute_payroll", fake_compute)
        cancel = asyncio.Event()
        cancel.set()
        runner = PayrollBatchRunner(FakeSession, PayrollConfig(batch_concurrency=2))

        result = await runner.run(
            uuid4(),
            PERIOD_START,
            PERIOD_END,
            employee_ids=[uuid4() for _ in range(3)],
            cancel_event=cancel,
        )

        assert len(result.cancelled) == 3
        assert calls == []

    async def test_cancel_mid_run_lets_started_work_finish(self, monkeypatch):
        cancel = asyncio.Event()
        calls = []

        async def fake_compute(self, employee_id, *args, **kwargs):
            calls.append(employee_id)
            cancel.set()
            await asyncio.sleep(0)
            return FakePayroll()

        monkeypatch.setattr(PayrollService, "compute_payroll", fake_compute)
        runner = PayrollBatchRunner(FakeSession, PayrollConfig(batch_concurrency=1))
        ids = [uuid4() for _ in range(4)]

        result = await runner.run(
            uuid4(), PERIOD_START, PERIOD_END, employee_ids=ids, cancel_event=cancel
        )

        assert [o.employee_id for o in result.succeeded] == [ids[0]]
        assert len(result.cancelled) == 3
        assert calls == [ids[0]]

    async def test_empty_batch(self):
        runner = PayrollBatchRunner(FakeSession)

        result = await runner.run(uuid4(), PERIOD_START, PERIOD_END, employee_ids=[])

        assert result.outcomes == []
