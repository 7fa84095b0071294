"""Organization-wide payroll batch runs."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hris_payroll.config import PayrollConfig
from hris_payroll.services.payroll_service import PayrollService
from hris_payroll.services.repository import PayrollRepository

logger = logging.getLogger(__name__)


class EmployeeRunStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class EmployeeRunOutcome:
    """What happened to one employee in a batch run."""

    employee_id: UUID
    status: EmployeeRunStatus
    payroll_id: UUID | None = None
    net_pay: Decimal | None = None
    warnings: int = 0
    error: str | None = None


@dataclass
class BatchRunResult:
    organization_id: UUID
    period_start: date
    period_end: date
    outcomes: list[EmployeeRunOutcome] = field(default_factory=list)

    def _with(self, status: EmployeeRunStatus) -> list[EmployeeRunOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def succeeded(self) -> list[EmployeeRunOutcome]:
        return self._with(EmployeeRunStatus.SUCCEEDED)

    @property
    def failed(self) -> list[EmployeeRunOutcome]:
        return self._with(EmployeeRunStatus.FAILED)

    @property
    def cancelled(self) -> list[EmployeeRunOutcome]:
        return self._with(EmployeeRunStatus.CANCELLED)


class PayrollBatchRunner:
    """Computes payroll for many employees concurrently.

    Each employee runs in its own session and transaction, so one failure
    never rolls back another employee's committed payroll. Concurrency is
    bounded by config.batch_concurrency. Setting the cancel event stops new
    employees from starting; those already running finish and commit.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: PayrollConfig | None = None,
    ):
        self.session_factory = session_factory
        self.config = config or PayrollConfig()

    async def run(
        self,
        organization_id: UUID,
        period_start: date,
        period_end: date,
        employee_ids: list[UUID] | None = None,
        department_id: UUID | None = None,
        persist: bool = True,
        cancel_event: asyncio.Event | None = None,
    ) -> BatchRunResult:
        if employee_ids is None:
            async with self.session_factory() as session:
                employee_ids = await PayrollRepository(session).list_active_employee_ids(
                    organization_id, department_id
                )

        cancel_event = cancel_event or asyncio.Event()
        semaphore = asyncio.Semaphore(max(1, self.config.batch_concurrency))

        tasks = [
            asyncio.create_task(
                self._run_one(
                    employee_id,
                    organization_id,
                    period_start,
                    period_end,
                    department_id,
                    persist,
                    semaphore,
                    cancel_event,
                )
            )
            for employee_id in employee_ids
        ]
        outcomes = await asyncio.gather(*tasks) if tasks else []

        result = BatchRunResult(
            organization_id=organization_id,
            period_start=period_start,
            period_end=period_end,
            outcomes=list(outcomes),
        )
        logger.info(
            "Batch run for organization %s (%s..%s): %d succeeded, %d failed, %d cancelled",
            organization_id,
            period_start,
            period_end,
            len(result.succeeded),
            len(result.failed),
            len(result.cancelled),
        )
        return result

    async def _run_one(
        self,
        employee_id: UUID,
        organization_id: UUID,
        period_start: date,
        period_end: date,
        department_id: UUID | None,
        persist: bool,
        semaphore: asyncio.Semaphore,
        cancel_event: asyncio.Event,
    ) -> EmployeeRunOutcome:
        async with semaphore:
            if cancel_event.is_set():
                return EmployeeRunOutcome(employee_id, EmployeeRunStatus.CANCELLED)

            async with self.session_factory() as session:
                try:
                    service = PayrollService(session, self.config)
                    payroll = await service.compute_payroll(
                        employee_id,
                        organization_id,
                        period_start,
                        period_end,
                        persist_data=persist,
                        department_id=department_id,
                    )
                    await session.commit()
                except Exception as exc:
                    await session.rollback()
                    logger.exception(
                        "Payroll computation failed for employee %s (%s..%s)",
                        employee_id,
                        period_start,
                        period_end,
                    )
                    return EmployeeRunOutcome(
                        employee_id,
                        EmployeeRunStatus.FAILED,
                        error=f"{type(exc).__name__}: {exc}",
                    )

            return EmployeeRunOutcome(
                employee_id,
                EmployeeRunStatus.SUCCEEDED,
                payroll_id=payroll.payroll_id,
                net_pay=payroll.net_pay,
                warnings=len(payroll.warnings),
            )
