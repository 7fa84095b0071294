"""Overtime request service - filing, approval and rejection."""

from __future__ import annotations

import logging
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hris_payroll.errors import NotFoundError, StateConflictError, ValidationError
from hris_payroll.models import Employee, OvertimeRequest
from hris_payroll.services.audit import record_audit

logger = logging.getLogger(__name__)

MAX_REQUEST_MINUTES = 24 * 60


class OvertimeService:
    """Service for overtime requests.

    Only APPROVED requests count toward payable overtime, and only when
    PayrollConfig.require_overtime_approval is on.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_request(
        self,
        overtime_request_id: UUID,
        organization_id: UUID | None = None,
    ) -> OvertimeRequest:
        query = select(OvertimeRequest).where(
            OvertimeRequest.overtime_request_id == overtime_request_id
        )
        if organization_id is not None:
            query = query.where(OvertimeRequest.organization_id == organization_id)
        request = (await self.session.execute(query)).scalar_one_or_none()
        if request is None:
            raise NotFoundError("OvertimeRequest", overtime_request_id)
        return request

    async def request_overtime(
        self,
        employee_id: UUID,
        organization_id: UUID,
        work_date: date,
        requested_minutes: int,
        reason: str | None = None,
        actor_user_id: UUID | None = None,
    ) -> OvertimeRequest:
        """File a PENDING overtime request.

        Raises:
            ValidationError: Minutes outside 1..1440.
            NotFoundError: Unknown employee, or one of another organization.
        """
        if not 1 <= requested_minutes <= MAX_REQUEST_MINUTES:
            raise ValidationError(
                "Invalid overtime request",
                {"requested_minutes": f"must be between 1 and {MAX_REQUEST_MINUTES}"},
            )
        employee = await self.session.get(Employee, employee_id)
        if employee is None or employee.organization_id != organization_id:
            raise NotFoundError("Employee", employee_id)

        request = OvertimeRequest(
            employee_id=employee_id,
            organization_id=organization_id,
            work_date=work_date,
            requested_minutes=requested_minutes,
            reason=reason,
            status="PENDING",
            approved_minutes=None,
            approved_by_user_id=None,
            approved_at=None,
        )
        self.session.add(request)
        await self.session.flush()

        await record_audit(
            self.session,
            entity_type="overtime_request",
            entity_id=request.overtime_request_id,
            action="create",
            organization_id=organization_id,
            actor_user_id=actor_user_id,
            details={"work_date": str(work_date), "requested_minutes": requested_minutes},
        )
        logger.info(
            "Overtime request %s filed for employee %s on %s (%d min)",
            request.overtime_request_id,
            employee_id,
            work_date,
            requested_minutes,
        )
        return request

    async def approve_overtime(
        self,
        overtime_request_id: UUID,
        approved_minutes: int | None = None,
        organization_id: UUID | None = None,
        actor_user_id: UUID | None = None,
    ) -> OvertimeRequest:
        """Approve a PENDING request, in full or for fewer minutes.

        Raises:
            NotFoundError: Unknown request.
            StateConflictError: The request is no longer PENDING.
            ValidationError: Approved minutes negative or above the request.
        """
        request = await self.get_request(overtime_request_id, organization_id)
        self._require_pending(request, "APPROVED")

        if approved_minutes is None:
            approved_minutes = request.requested_minutes
        if not 0 <= approved_minutes <= request.requested_minutes:
            raise ValidationError(
                "Invalid overtime approval",
                {"approved_minutes": f"must be between 0 and {request.requested_minutes}"},
            )

        request.status = "APPROVED"
        request.approved_minutes = approved_minutes
        request.approved_by_user_id = actor_user_id
        request.approved_at = datetime.now()
        await self.session.flush()

        await record_audit(
            self.session,
            entity_type="overtime_request",
            entity_id=overtime_request_id,
            action="status_change:PENDING:APPROVED",
            organization_id=request.organization_id,
            actor_user_id=actor_user_id,
            details={"approved_minutes": approved_minutes},
        )
        logger.info(
            "Overtime request %s approved for %d of %d min",
            overtime_request_id,
            approved_minutes,
            request.requested_minutes,
        )
        return request

    async def reject_overtime(
        self,
        overtime_request_id: UUID,
        reason: str | None = None,
        organization_id: UUID | None = None,
        actor_user_id: UUID | None = None,
    ) -> OvertimeRequest:
        request = await self.get_request(overtime_request_id, organization_id)
        self._require_pending(request, "REJECTED")

        request.status = "REJECTED"
        request.approved_minutes = None
        await self.session.flush()

        await record_audit(
            self.session,
            entity_type="overtime_request",
            entity_id=overtime_request_id,
            action="status_change:PENDING:REJECTED",
            organization_id=request.organization_id,
            actor_user_id=actor_user_id,
            details={"reason": reason},
        )
        logger.info("Overtime request %s rejected", overtime_request_id)
        return request

    @staticmethod
    def _require_pending(request: OvertimeRequest, target: str) -> None:
        if request.status != "PENDING":
            raise StateConflictError(
                f"Overtime request is {request.status}; only PENDING requests can be decided",
                current_status=request.status,
                target_status=target,
            )
