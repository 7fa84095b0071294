"""Payroll service - computes, persists and transitions payroll records."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hris_payroll.calculators.engine import CalculationResult, PayrollCalculator
from hris_payroll.calculators.late_policy import LateDeductionPolicy, select_policy
from hris_payroll.calculators.line_builder import LineItemBuilder
from hris_payroll.calculators.types import CalculationWarning, PolicyType
from hris_payroll.calculators.work_schedule import ScheduleResolver
from hris_payroll.config import PayrollConfig
from hris_payroll.errors import NotFoundError, StateConflictError, ValidationError
from hris_payroll.models import Payroll, PayrollLineItem
from hris_payroll.services.audit import record_audit
from hris_payroll.services.repository import PayrollRepository
from hris_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollStateMachine,
    PayrollStatus,
)

logger = logging.getLogger(__name__)

# Timestamp column stamped on entry to each status
_STATUS_TIMESTAMPS = {
    PayrollStatus.APPROVED: "approved_at",
    PayrollStatus.RELEASED: "released_at",
    PayrollStatus.VOIDED: "voided_at",
}


@dataclass
class ApplicablePolicies:
    """What rules apply to an employee on a date (for display)."""

    employee_id: UUID
    organization_id: UUID
    on_date: date
    schedule_type: str | None = None
    expected_clock_in: time | None = None
    grace_period_minutes: int | None = None
    required_work_minutes: int | None = None
    allow_late_deduction: bool | None = None
    late_policy: LateDeductionPolicy | None = None
    undertime_policy: LateDeductionPolicy | None = None
    warnings: list[CalculationWarning] = field(default_factory=list)


@dataclass
class BulkResult:
    """Outcome of an all-or-nothing bulk operation."""

    action: str
    count: int
    payroll_ids: list[UUID]
    reason: str


class PayrollService:
    """Service for the payroll record lifecycle.

    Operations:
    - compute_payroll: preview (DRAFT, not persisted) or persist (COMPUTED)
    - get_applicable_policies: schedule and deduction rules in force on a date
    - transition_payroll: optimistic single-record status change
    - bulk_transition / bulk_recompute: atomic batch operations
    """

    def __init__(self, session: AsyncSession, config: PayrollConfig | None = None):
        self.session = session
        self.config = config or PayrollConfig()
        self.repository = PayrollRepository(session)
        self.calculator = PayrollCalculator(self.config)

    async def get_payroll(
        self,
        payroll_id: UUID,
        organization_id: UUID | None = None,
    ) -> Payroll:
        """Load a payroll with its line items.

        Raises:
            NotFoundError: Unknown id, or it belongs to another organization.
        """
        query = (
            select(Payroll)
            .where(Payroll.payroll_id == payroll_id)
            .options(selectinload(Payroll.line_items))
        )
        if organization_id is not None:
            query = query.where(Payroll.organization_id == organization_id)
        result = await self.session.execute(query)
        payroll = result.scalar_one_or_none()
        if payroll is None:
            raise NotFoundError("Payroll", payroll_id)
        return payroll

    async def find_live_payroll(
        self,
        employee_id: UUID,
        period_start: date,
        period_end: date,
    ) -> Payroll | None:
        """The non-voided payroll for an employee and period, if any."""
        result = await self.session.execute(
            select(Payroll)
            .where(
                Payroll.employee_id == employee_id,
                Payroll.period_start == period_start,
                Payroll.period_end == period_end,
                Payroll.status != PayrollStatus.VOIDED.value,
            )
            .options(selectinload(Payroll.line_items))
        )
        return result.scalar_one_or_none()

    # ===== Computation =====

    async def calculate(
        self,
        employee_id: UUID,
        organization_id: UUID,
        period_start: date,
        period_end: date,
        department_id: UUID | None = None,
    ) -> CalculationResult:
        """Run the calculator for one employee without touching any payroll row.

        Raises:
            ValidationError: Inverted period, or the employee is outside the department.
            NotFoundError: Unknown employee.
            ConfigurationMissingError: No work schedule resolves on any day.
        """
        if period_start > period_end:
            raise ValidationError(
                "Invalid payroll period",
                {"period_end": "must not be before period_start"},
            )

        employee = await self.repository.get_employee(employee_id, organization_id)
        if department_id is not None and employee.department_id != department_id:
            raise ValidationError(
                "Employee is not in the requested department",
                {"department_id": f"employee {employee_id} belongs to another department"},
            )

        inputs = await self.repository.build_inputs(
            [employee_id], organization_id, period_start, period_end
        )
        return self.calculator.calculate(inputs[employee_id])

    async def compute_payroll(
        self,
        employee_id: UUID,
        organization_id: UUID,
        period_start: date,
        period_end: date,
        persist_data: bool = False,
        department_id: UUID | None = None,
        actor_user_id: UUID | None = None,
    ) -> Payroll:
        """Compute one employee's payroll for a period.

        With persist_data=False the same computation runs and a transient
        DRAFT payroll is returned; nothing is written. With persist_data=True
        the live record is created or its line items replaced, in COMPUTED.

        Raises:
            StateConflictError: The live record is APPROVED or RELEASED.
        """
        result = await self.calculate(
            employee_id, organization_id, period_start, period_end, department_id
        )

        if not persist_data:
            payroll = Payroll(
                organization_id=organization_id,
                employee_id=employee_id,
                period_start=period_start,
                period_end=period_end,
                status=PayrollStatus.DRAFT.value,
            )
            self._apply_result(payroll, result)
            return payroll

        return await self._persist_result(result, actor_user_id)

    async def _persist_result(
        self,
        result: CalculationResult,
        actor_user_id: UUID | None = None,
    ) -> Payroll:
        payroll = await self.find_live_payroll(
            result.employee_id, result.period_start, result.period_end
        )
        action = "computed"

        if payroll is None:
            period = await self.repository.find_period(
                result.organization_id, result.period_start, result.period_end
            )
            payroll = Payroll(
                organization_id=result.organization_id,
                employee_id=result.employee_id,
                payroll_period_id=period.payroll_period_id if period else None,
                period_start=result.period_start,
                period_end=result.period_end,
                status=PayrollStatus.COMPUTED.value,
            )
            self.session.add(payroll)
        else:
            if not PayrollStateMachine.can_recompute(payroll.status):
                raise StateConflictError(
                    f"Payroll {payroll.payroll_id} is {payroll.status}; void it before recomputing",
                    current_status=payroll.status,
                    target_status=PayrollStatus.COMPUTED.value,
                )
            if payroll.status == PayrollStatus.DRAFT:
                PayrollStateMachine.validate_transition(payroll.status, PayrollStatus.COMPUTED)
            payroll.status = PayrollStatus.COMPUTED.value
            action = "recomputed"

        self._apply_result(payroll, result)
        await self.session.flush()

        await record_audit(
            self.session,
            entity_type="payroll",
            entity_id=payroll.payroll_id,
            action=action,
            organization_id=payroll.organization_id,
            actor_user_id=actor_user_id,
            details={
                "calculation_id": str(result.calculation_id),
                "gross_pay": str(result.gross_pay),
                "net_pay": str(result.net_pay),
            },
        )
        logger.info(
            "Payroll %s %s for employee %s (%s..%s): net %s",
            payroll.payroll_id,
            action,
            result.employee_id,
            result.period_start,
            result.period_end,
            result.net_pay,
        )
        return payroll

    def _apply_result(self, payroll: Payroll, result: CalculationResult) -> None:
        """Copy totals, fingerprints and line items from a calculation result."""
        payroll.gross_pay = result.gross_pay
        payroll.total_deductions = result.total_deductions
        payroll.net_pay = result.net_pay
        payroll.taxable_income = result.taxable_income
        payroll.employer_contributions = result.employer_contributions
        payroll.calculation_id = result.calculation_id
        payroll.inputs_fingerprint = result.inputs_fingerprint
        payroll.rules_fingerprint = result.rules_fingerprint
        payroll.engine_version = self.config.engine_version
        payroll.warnings = [w.to_dict() for w in result.warnings]
        payroll.attendance_summary = asdict(result.totals)
        payroll.computed_at = datetime.now()
        payroll.line_items = [
            PayrollLineItem(
                organization_id=result.organization_id,
                employee_id=result.employee_id,
                sequence=i,
                category=line.category.value,
                line_type=line.line_type,
                hours=line.hours,
                rate=line.rate,
                amount=line.amount,
                is_taxable=line.is_taxable,
                source_id=line.source_id,
                explanation=line.explanation,
                line_hash=LineItemBuilder.compute_line_hash(line),
            )
            for i, line in enumerate(result.lines)
        ]

    # ===== Applicable rules =====

    async def get_applicable_policies(
        self,
        employee_id: UUID,
        organization_id: UUID,
        on_date: date,
    ) -> ApplicablePolicies:
        """Resolve the schedule and late/absence policies in force on a date."""
        await self.repository.get_employee(employee_id, organization_id)
        compensations = await self.repository.load_compensations([employee_id], on_date, on_date)
        policies, policy_warnings = await self.repository.load_policies(
            organization_id, on_date, on_date
        )

        summary = ApplicablePolicies(
            employee_id=employee_id,
            organization_id=organization_id,
            on_date=on_date,
        )
        summary.warnings.extend(policy_warnings)

        resolver = ScheduleResolver(
            employee_id=employee_id,
            compensations=compensations.get(employee_id, []),
            organization_id=organization_id,
            working_days_per_month=self.config.working_days_per_month,
            hours_per_day=self.config.hours_per_day,
        )
        resolved = resolver.try_resolve(on_date)
        if resolved is None:
            summary.warnings.append(
                CalculationWarning(
                    code="SCHEDULE_MISSING",
                    message=f"No work schedule resolves for employee {employee_id}",
                    on_date=on_date,
                )
            )
        else:
            schedule = resolved.schedule
            summary.schedule_type = schedule.schedule_type.value
            summary.expected_clock_in = schedule.shift.expected_clock_in()
            summary.grace_period_minutes = schedule.grace_period_minutes
            summary.required_work_minutes = schedule.required_work_minutes
            summary.allow_late_deduction = schedule.allow_late_deduction

        late = select_policy(policies, PolicyType.LATE, on_date)
        undertime = select_policy(policies, PolicyType.UNDERTIME, on_date)
        summary.late_policy = late.policy
        summary.undertime_policy = undertime.policy
        summary.warnings.extend(w for w in (late.warning, undertime.warning) if w is not None)
        return summary

    # ===== Transitions =====

    async def transition_payroll(
        self,
        payroll_id: UUID,
        target_status: PayrollStatus | str,
        reason: str | None = None,
        actor_user_id: UUID | None = None,
        organization_id: UUID | None = None,
    ) -> Payroll:
        """Move a payroll to a new status.

        The write is conditional on the status read, so two concurrent
        transitions of the same record cannot both succeed.

        Raises:
            NotFoundError: Unknown payroll.
            StateConflictError: Transition not allowed, reason missing for a
                void, or the record changed underneath us.
        """
        payroll = await self.get_payroll(payroll_id, organization_id)
        await self._transition(payroll, PayrollStatus(target_status), reason, actor_user_id)
        return payroll

    async def _transition(
        self,
        payroll: Payroll,
        target: PayrollStatus,
        reason: str | None,
        actor_user_id: UUID | None,
    ) -> None:
        from_status = payroll.status
        PayrollStateMachine.validate_transition(from_status, target, reason)

        values: dict[str, Any] = {"status": target.value, "updated_at": datetime.now()}
        stamp = _STATUS_TIMESTAMPS.get(target)
        if stamp:
            values[stamp] = datetime.now()
        if target == PayrollStatus.VOIDED:
            values["void_reason"] = reason

        result = await self.session.execute(
            update(Payroll)
            .where(
                Payroll.payroll_id == payroll.payroll_id,
                Payroll.status == from_status,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidTransitionError(
                from_status, target, "payroll was modified by another transaction"
            )
        await self.session.refresh(payroll, attribute_names=list(values))

        await record_audit(
            self.session,
            entity_type="payroll",
            entity_id=payroll.payroll_id,
            action=f"status_change:{from_status}:{target.value}",
            organization_id=payroll.organization_id,
            actor_user_id=actor_user_id,
            details={
                "previous_status": from_status,
                "new_status": target.value,
                "reason": reason,
            },
        )
        logger.info(
            "Payroll %s transitioned %s -> %s",
            payroll.payroll_id,
            from_status,
            target.value,
        )

    async def _load_many(
        self,
        payroll_ids: Sequence[UUID],
        organization_id: UUID | None,
    ) -> list[Payroll]:
        """Load every payroll or raise NotFoundError before any change is made."""
        query = (
            select(Payroll)
            .where(Payroll.payroll_id.in_(payroll_ids))
            .options(selectinload(Payroll.line_items))
        )
        if organization_id is not None:
            query = query.where(Payroll.organization_id == organization_id)
        result = await self.session.execute(query)
        found = {p.payroll_id: p for p in result.scalars().all()}
        missing = [pid for pid in payroll_ids if pid not in found]
        if missing:
            raise NotFoundError("Payroll", missing[0])
        return [found[pid] for pid in dict.fromkeys(payroll_ids)]

    async def bulk_transition(
        self,
        payroll_ids: Sequence[UUID],
        target_status: PayrollStatus | str,
        reason: str,
        actor_user_id: UUID | None = None,
        organization_id: UUID | None = None,
    ) -> BulkResult:
        """Transition many payrolls; either all move or none do.

        Raises:
            ValidationError: Empty id list or blank reason.
            NotFoundError: Any id is unknown.
            StateConflictError: Any payroll cannot make the transition.
        """
        _require_batch(payroll_ids, reason)
        target = PayrollStatus(target_status)
        payrolls = await self._load_many(payroll_ids, organization_id)

        # Reject the whole batch up front if any record cannot move
        for payroll in payrolls:
            PayrollStateMachine.validate_transition(payroll.status, target, reason)

        async with self.session.begin_nested():
            for payroll in payrolls:
                await self._transition(payroll, target, reason, actor_user_id)

            ids = [p.payroll_id for p in payrolls]
            await record_audit(
                self.session,
                entity_type="payroll_batch",
                entity_id=ids[0],
                action=f"bulk_transition:{target.value}",
                organization_id=payrolls[0].organization_id,
                actor_user_id=actor_user_id,
                details={"reason": reason, "count": len(ids), "payroll_ids": [str(i) for i in ids]},
            )

        logger.info("Bulk transition of %d payrolls to %s: %s", len(ids), target.value, reason)
        return BulkResult(
            action=f"transition:{target.value}",
            count=len(ids),
            payroll_ids=ids,
            reason=reason,
        )

    async def bulk_recompute(
        self,
        payroll_ids: Sequence[UUID],
        reason: str,
        actor_user_id: UUID | None = None,
        organization_id: UUID | None = None,
    ) -> BulkResult:
        """Recompute many DRAFT/COMPUTED payrolls; either all update or none do.

        Raises:
            ValidationError: Empty id list or blank reason.
            NotFoundError: Any id is unknown.
            StateConflictError: Any payroll is past COMPUTED.
        """
        _require_batch(payroll_ids, reason)
        payrolls = await self._load_many(payroll_ids, organization_id)

        for payroll in payrolls:
            if not PayrollStateMachine.can_recompute(payroll.status):
                raise StateConflictError(
                    f"Payroll {payroll.payroll_id} is {payroll.status}; void it before recomputing",
                    current_status=payroll.status,
                    target_status=PayrollStatus.COMPUTED.value,
                )

        async with self.session.begin_nested():
            for payroll in payrolls:
                result = await self.calculate(
                    payroll.employee_id,
                    payroll.organization_id,
                    payroll.period_start,
                    payroll.period_end,
                )
                await self._persist_result(result, actor_user_id)

            ids = [p.payroll_id for p in payrolls]
            await record_audit(
                self.session,
                entity_type="payroll_batch",
                entity_id=ids[0],
                action="bulk_recompute",
                organization_id=payrolls[0].organization_id,
                actor_user_id=actor_user_id,
                details={"reason": reason, "count": len(ids), "payroll_ids": [str(i) for i in ids]},
            )

        logger.info("Bulk recompute of %d payrolls: %s", len(ids), reason)
        return BulkResult(action="recompute", count=len(ids), payroll_ids=ids, reason=reason)


def _require_batch(ids: Sequence[UUID], reason: str | None) -> None:
    errors: dict[str, str] = {}
    if not ids:
        errors["payroll_ids"] = "at least one id is required"
    if not reason or not reason.strip():
        errors["reason"] = "a reason is required for audit"
    if errors:
        raise ValidationError("Invalid bulk request", errors)
