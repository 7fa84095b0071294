"""Payroll period service - generation, status changes and deletion."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hris_payroll.calculators.periods import PeriodWindow, generate_periods, validate_period
from hris_payroll.calculators.types import PeriodType, Weekday
from hris_payroll.errors import NotFoundError, StateConflictError
from hris_payroll.models import Payroll, PayrollPeriod
from hris_payroll.services.audit import record_audit
from hris_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollStatus,
    PeriodStateMachine,
    PeriodStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class PeriodGenerationResult:
    """Periods written by a generation request, plus windows that were skipped."""

    periods: list[PayrollPeriod] = field(default_factory=list)
    created: int = 0
    updated: int = 0
    skipped: list[PeriodWindow] = field(default_factory=list)


class PeriodService:
    """Service for payroll periods (cutoffs)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_period(
        self,
        payroll_period_id: UUID,
        organization_id: UUID | None = None,
    ) -> PayrollPeriod:
        query = select(PayrollPeriod).where(PayrollPeriod.payroll_period_id == payroll_period_id)
        if organization_id is not None:
            query = query.where(PayrollPeriod.organization_id == organization_id)
        result = await self.session.execute(query)
        period = result.scalar_one_or_none()
        if period is None:
            raise NotFoundError("PayrollPeriod", payroll_period_id)
        return period

    async def generate_payroll_periods(
        self,
        organization_id: UUID,
        period_type: PeriodType | str,
        start_date: date,
        end_date: date,
        pay_day_offset: int = 5,
        week_start: Weekday | str = Weekday.MONDAY,
    ) -> PeriodGenerationResult:
        """Generate and upsert periods for a date range.

        An exact (organization, start, end) match is updated in place while it
        is still PENDING. Windows overlapping an existing, differently bounded
        period are skipped and reported.

        Raises:
            ValidationError: Invalid range or offset.
        """
        windows = generate_periods(period_type, start_date, end_date, pay_day_offset, week_start)
        if not windows:
            return PeriodGenerationResult()

        result = await self.session.execute(
            select(PayrollPeriod).where(
                PayrollPeriod.organization_id == organization_id,
                PayrollPeriod.start_date <= windows[-1].end_date,
                PayrollPeriod.end_date >= windows[0].start_date,
            )
        )
        existing = list(result.scalars().all())
        by_range = {(p.start_date, p.end_date): p for p in existing}

        outcome = PeriodGenerationResult()
        for window in windows:
            validate_period(window.start_date, window.end_date, window.pay_date, window.period_number)

            match = by_range.get((window.start_date, window.end_date))
            if match is not None:
                if match.status == PeriodStatus.PENDING:
                    match.pay_date = window.pay_date
                    match.period_type = window.period_type.value
                    outcome.updated += 1
                outcome.periods.append(match)
                continue

            if any(window.overlaps(p.start_date, p.end_date) for p in existing):
                logger.warning(
                    "Skipping %s period %s..%s for organization %s: overlaps an existing period",
                    window.period_type.value,
                    window.start_date,
                    window.end_date,
                    organization_id,
                )
                outcome.skipped.append(window)
                continue

            period = PayrollPeriod(
                organization_id=organization_id,
                period_type=window.period_type.value,
                start_date=window.start_date,
                end_date=window.end_date,
                pay_date=window.pay_date,
                year=window.year,
                month=window.month,
                period_number=window.period_number,
                status=PeriodStatus.PENDING.value,
            )
            self.session.add(period)
            existing.append(period)
            outcome.periods.append(period)
            outcome.created += 1

        await self.session.flush()
        logger.info(
            "Generated periods for organization %s: %d created, %d updated, %d skipped",
            organization_id,
            outcome.created,
            outcome.updated,
            len(outcome.skipped),
        )
        return outcome

    async def transition_period(
        self,
        payroll_period_id: UUID,
        target_status: PeriodStatus | str,
        organization_id: UUID | None = None,
        actor_user_id: UUID | None = None,
    ) -> PayrollPeriod:
        """Change a period's status with an optimistic status check."""
        period = await self.get_period(payroll_period_id, organization_id)
        target = PeriodStatus(target_status)
        from_status = period.status
        PeriodStateMachine.validate_transition(from_status, target)

        result = await self.session.execute(
            update(PayrollPeriod)
            .where(
                PayrollPeriod.payroll_period_id == payroll_period_id,
                PayrollPeriod.status == from_status,
            )
            .values(status=target.value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidTransitionError(
                from_status, target, "period was modified by another transaction"
            )
        await self.session.refresh(period, attribute_names=["status", "updated_at"])

        await record_audit(
            self.session,
            entity_type="payroll_period",
            entity_id=payroll_period_id,
            action=f"status_change:{from_status}:{target.value}",
            organization_id=period.organization_id,
            actor_user_id=actor_user_id,
        )
        logger.info("Period %s transitioned %s -> %s", payroll_period_id, from_status, target.value)
        return period

    async def delete_period(
        self,
        payroll_period_id: UUID,
        organization_id: UUID | None = None,
        actor_user_id: UUID | None = None,
    ) -> None:
        """Delete a period.

        Raises:
            NotFoundError: Unknown period.
            StateConflictError: A non-voided payroll references the period.
        """
        period = await self.get_period(payroll_period_id, organization_id)

        live = await self.session.scalar(
            select(func.count())
            .select_from(Payroll)
            .where(
                Payroll.organization_id == period.organization_id,
                (Payroll.payroll_period_id == payroll_period_id)
                | (
                    (Payroll.period_start == period.start_date)
                    & (Payroll.period_end == period.end_date)
                ),
                Payroll.status != PayrollStatus.VOIDED.value,
            )
        )
        if live:
            raise StateConflictError(
                f"Period {payroll_period_id} has {live} payroll record(s) that are not voided",
                current_status=period.status,
            )

        # Voided payrolls keep their dates but lose the reference
        await self.session.execute(
            update(Payroll)
            .where(Payroll.payroll_period_id == payroll_period_id)
            .values(payroll_period_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.session.delete(period)
        await record_audit(
            self.session,
            entity_type="payroll_period",
            entity_id=payroll_period_id,
            action="deleted",
            organization_id=period.organization_id,
            actor_user_id=actor_user_id,
            details={"start_date": period.start_date.isoformat(), "end_date": period.end_date.isoformat()},
        )
        await self.session.flush()
        logger.info("Deleted period %s", payroll_period_id)
