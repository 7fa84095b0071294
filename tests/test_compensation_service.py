"""Tests for bulk compensation updates."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from hris_payroll.errors import NotFoundError, ValidationError
from hris_payroll.models import AuditEvent, Compensation
from hris_payroll.services import CompensationService, PayrollService
from hris_payroll.services.compensation_service import CompensationUpdate


async def load(db, compensation_id) -> Compensation:
    return (
        await db.execute(select(Compensation).where(Compensation.compensation_id == compensation_id))
    ).scalar_one()


class TestBulkUpdateCompensation:
    async def test_updates_every_record(self, db, seeded_org):
        ids = [c.compensation_id for c in seeded_org.compensations]

        result = await CompensationService(db).bulk_update_compensation(
            [CompensationUpdate(compensation_id=i, base_salary=Decimal("25000")) for i in ids],
            effective_date=date(2024, 1, 1),
            reason="Annual increase",
            organization_id=seeded_org.organization_id,
        )

        assert result.count == 2
        for compensation_id in ids:
            row = await load(db, compensation_id)
            assert row.base_salary == Decimal("25000")
            assert row.effective_date == date(2024, 1, 1)
            assert row.reason == "Annual increase"

        actions = (await db.execute(select(AuditEvent.action))).scalars().all()
        assert actions == ["bulk_update"]

    async def test_new_rate_is_used_by_next_computation(self, db, seeded_org):
        bob_compensation = seeded_org.compensations[1]

        await CompensationService(db).bulk_update_compensation(
            [CompensationUpdate(compensation_id=bob_compensation.compensation_id, monthly_rate=Decimal("26400"))],
            effective_date=None,
            reason="Promotion",
        )
        payroll = await PayrollService(db).compute_payroll(
            seeded_org.bob.employee_id,
            seeded_org.organization_id,
            date(2024, 1, 1),
            date(2024, 1, 15),
        )

        # 26400 / 22 / 8 = 150 per hour, 80 hours worked
        assert payroll.gross_pay == Decimal("12000.00")

    async def test_invalid_values_reject_whole_batch(self, db, seeded_org):
        first, second = seeded_org.compensations

        with pytest.raises(ValidationError) as exc_info:
            await CompensationService(db).bulk_update_compensation(
                [
                    CompensationUpdate(compensation_id=first.compensation_id, base_salary=Decimal("30000")),
                    CompensationUpdate(
                        compensation_id=second.compensation_id,
                        monthly_rate=Decimal("30000"),
                        daily_rate=Decimal("1000"),
                    ),
                ],
                effective_date=None,
                reason="Adjustment",
            )

        assert "updates[1]" in exc_info.value.field_errors
        assert (await load(db, first.compensation_id)).base_salary == Decimal("22000.00")

    async def test_negative_salary_rejected(self, db, seeded_org):
        with pytest.raises(ValidationError) as exc_info:
            await CompensationService(db).bulk_update_compensation(
                [CompensationUpdate(seeded_org.compensations[0].compensation_id, base_salary=Decimal("-1"))],
                effective_date=None,
                reason="Typo",
            )

        assert exc_info.value.field_errors == {"updates[0].base_salary": "cannot be negative"}

    async def test_reason_required(self, db, seeded_org):
        with pytest.raises(ValidationError):
            await CompensationService(db).bulk_update_compensation(
                [CompensationUpdate(seeded_org.compensations[0].compensation_id, base_salary=Decimal("1"))],
                effective_date=None,
                reason="",
            )

    async def test_unknown_id_rejects_whole_batch(self, db, seeded_org):
        first = seeded_org.compensations[0]

        with pytest.raises(NotFoundError):
            await CompensationService(db).bulk_update_compensation(
                [
                    CompensationUpdate(first.compensation_id, base_salary=Decimal("30000")),
                    CompensationUpdate(uuid4(), base_salary=Decimal("30000")),
                ],
                effective_date=None,
                reason="Adjustment",
            )

        assert (await load(db, first.compensation_id)).base_salary == Decimal("22000.00")

    async def test_other_organization_ids_not_found(self, db, seeded_org):
        with pytest.raises(NotFoundError):
            await CompensationService(db).bulk_update_compensation(
                [CompensationUpdate(seeded_org.compensations[0].compensation_id, base_salary=Decimal("1"))],
                effective_date=None,
                reason="Adjustment",
                organization_id=uuid4(),
            )
