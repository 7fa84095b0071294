"""Compensation service - atomic bulk updates."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hris_payroll.errors import NotFoundError, ValidationError
from hris_payroll.models import Compensation
from hris_payroll.services.audit import record_audit
from hris_payroll.services.repository import schedule_from_model

logger = logging.getLogger(__name__)

_SCHEDULE_RATE_FIELDS = ("monthly_rate", "daily_rate", "hourly_rate")


@dataclass
class CompensationUpdate:
    """Requested change to one compensation record."""

    compensation_id: UUID
    base_salary: Decimal | None = None
    monthly_rate: Decimal | None = None
    daily_rate: Decimal | None = None
    hourly_rate: Decimal | None = None
    is_active: bool | None = None


@dataclass
class BulkCompensationResult:
    count: int
    compensation_ids: list[UUID]
    effective_date: date | None
    reason: str


class CompensationService:
    """Service for compensation records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def bulk_update_compensation(
        self,
        updates: Sequence[CompensationUpdate],
        effective_date: date | None,
        reason: str,
        organization_id: UUID | None = None,
        actor_user_id: UUID | None = None,
    ) -> BulkCompensationResult:
        """Apply many compensation updates in one savepoint.

        Every id is resolved and every value validated before anything is
        written, and the writes share one savepoint, so the batch is all or
        nothing.

        Raises:
            ValidationError: Empty batch, blank reason, or an invalid value.
            NotFoundError: Any id is unknown (or outside the organization).
        """
        errors: dict[str, str] = {}
        if not updates:
            errors["updates"] = "at least one update is required"
        if not reason or not reason.strip():
            errors["reason"] = "a reason is required for audit"
        for i, upd in enumerate(updates):
            if upd.base_salary is not None and upd.base_salary < 0:
                errors[f"updates[{i}].base_salary"] = "cannot be negative"
            for name in _SCHEDULE_RATE_FIELDS:
                value = getattr(upd, name)
                if value is not None and value <= 0:
                    errors[f"updates[{i}].{name}"] = "must be positive"
            if sum(getattr(upd, n) is not None for n in _SCHEDULE_RATE_FIELDS) > 1:
                errors[f"updates[{i}]"] = "set at most one of monthly_rate, daily_rate, hourly_rate"
        if errors:
            raise ValidationError("Invalid bulk compensation update", errors)

        ids = [u.compensation_id for u in updates]
        query = (
            select(Compensation)
            .where(Compensation.compensation_id.in_(ids))
            .options(selectinload(Compensation.work_schedule))
        )
        if organization_id is not None:
            query = query.where(Compensation.organization_id == organization_id)
        result = await self.session.execute(query)
        found = {c.compensation_id: c for c in result.scalars().all()}
        for compensation_id in ids:
            if compensation_id not in found:
                raise NotFoundError("Compensation", compensation_id)

        async with self.session.begin_nested():
            for upd in updates:
                compensation = found[upd.compensation_id]
                if upd.base_salary is not None:
                    compensation.base_salary = upd.base_salary
                if upd.is_active is not None:
                    compensation.is_active = upd.is_active
                if effective_date is not None:
                    compensation.effective_date = effective_date
                compensation.reason = reason

                schedule = compensation.work_schedule
                rates = {n: getattr(upd, n) for n in _SCHEDULE_RATE_FIELDS if getattr(upd, n)}
                if rates and schedule is None:
                    raise ValidationError(
                        "Compensation has no work schedule",
                        {str(upd.compensation_id): "rate fields need a work schedule"},
                    )
                if rates:
                    # The new rate becomes the single authoritative one
                    for name in _SCHEDULE_RATE_FIELDS:
                        setattr(schedule, name, rates.get(name))
                    schedule.is_monthly_rate = "monthly_rate" in rates
                    schedule_from_model(schedule)

            await self.session.flush()
            await record_audit(
                self.session,
                entity_type="compensation_batch",
                entity_id=ids[0],
                action="bulk_update",
                organization_id=organization_id,
                actor_user_id=actor_user_id,
                details={
                    "reason": reason,
                    "count": len(ids),
                    "compensation_ids": [str(i) for i in ids],
                    "effective_date": effective_date.isoformat() if effective_date else None,
                },
            )

        logger.info("Bulk compensation update: %d records (%s)", len(ids), reason)
        return BulkCompensationResult(
            count=len(ids),
            compensation_ids=ids,
            effective_date=effective_date,
            reason=reason,
        )
