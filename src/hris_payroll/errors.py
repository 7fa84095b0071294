"""Error taxonomy shared by calculators, services and the API layer."""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID


class PayrollError(Exception):
    """Base class for all payroll engine errors."""


class ValidationError(PayrollError):
    """Raised when input is malformed. Rejected before any computation."""

    def __init__(self, message: str, field_errors: dict[str, str] | None = None):
        self.message = message
        self.field_errors = field_errors or {}
        if self.field_errors:
            details = "; ".join(f"{k}: {v}" for k, v in sorted(self.field_errors.items()))
            message = f"{message} ({details})"
        super().__init__(message)


class ConfigurationMissingError(PayrollError):
    """Raised when no policy or contribution tier applies to an organization on a date.

    Calculators catch this and turn it into a warning on the result; it must
    never abort a payroll run.
    """

    def __init__(
        self,
        component: str,
        organization_id: UUID | None,
        on_date: date,
        detail: str | None = None,
    ):
        self.component = component
        self.organization_id = organization_id
        self.on_date = on_date
        self.detail = detail
        msg = f"No {component} configuration for organization {organization_id} on {on_date}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class NotFoundError(PayrollError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class StateConflictError(PayrollError):
    """Raised when an operation conflicts with the current state of a record."""

    def __init__(
        self,
        message: str,
        current_status: str | None = None,
        target_status: str | None = None,
    ):
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(message)
