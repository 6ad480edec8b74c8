"""
Error correction domain types (``payroll_kernel.domain.correction``).

Responsibility
--------------
Pure value objects for the error-correction workflow: the correction
lifecycle state machine, error types, the enumeration of correctable
fields, requests, previews and DTOs.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``CORRECTION_TRANSITIONS`` defines the only valid status transitions.
  Terminal states have no outgoing edges, so processed implies approved.
* ``CorrectableField`` is closed: correction data naming anything else is
  rejected, never silently dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from payroll_kernel.domain.record import PayrollSnapshot


# =========================================================================
# Correction Status Lifecycle
# =========================================================================


class CorrectionStatus(str, Enum):
    """Error correction lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"
    CANCELLED = "cancelled"


CORRECTION_TRANSITIONS: dict[CorrectionStatus, frozenset[CorrectionStatus]] = {
    CorrectionStatus.PENDING: frozenset({
        CorrectionStatus.APPROVED,
        CorrectionStatus.REJECTED,
        CorrectionStatus.CANCELLED,
    }),
    CorrectionStatus.APPROVED: frozenset({
        CorrectionStatus.PROCESSED,
        CorrectionStatus.CANCELLED,
    }),
    CorrectionStatus.REJECTED: frozenset(),
    CorrectionStatus.PROCESSED: frozenset(),
    CorrectionStatus.CANCELLED: frozenset(),
}

TERMINAL_CORRECTION_STATUSES: frozenset[CorrectionStatus] = frozenset({
    CorrectionStatus.REJECTED,
    CorrectionStatus.PROCESSED,
    CorrectionStatus.CANCELLED,
})


def can_transition(current: CorrectionStatus, target: CorrectionStatus) -> bool:
    return target in CORRECTION_TRANSITIONS.get(current, frozenset())


# =========================================================================
# Error types and correctable fields
# =========================================================================


class PayrollErrorType(str, Enum):
    """What kind of mistake a correction repairs."""

    CALCULATION_ERROR = "calculation_error"
    DATA_ENTRY_ERROR = "data_entry_error"
    ALLOWANCE_ERROR = "allowance_error"
    DEDUCTION_ERROR = "deduction_error"
    OVERTIME_ERROR = "overtime_error"
    OTHER = "other"


class CorrectableField(str, Enum):
    """Payroll record fields a correction may override."""

    BASIC_SALARY = "BasicSalary"
    OVERTIME_AMOUNT = "OvertimeAmount"
    TOTAL_ALLOWANCES = "TotalAllowances"
    TOTAL_DEDUCTIONS = "TotalDeductions"
    GROSS_SALARY = "GrossSalary"
    NET_SALARY = "NetSalary"

    @property
    def attribute(self) -> str:
        """Snapshot / ORM attribute name, e.g. ``basic_salary``."""
        return _FIELD_ATTRIBUTES[self]

    @property
    def is_derived(self) -> bool:
        return self in (CorrectableField.GROSS_SALARY, CorrectableField.NET_SALARY)

    @classmethod
    def lookup(cls, key: str) -> CorrectableField | None:
        """Case-insensitive match on the field name or its attribute name."""
        return _FIELD_LOOKUP.get(key.replace("_", "").casefold())


_FIELD_ATTRIBUTES: dict[CorrectableField, str] = {
    CorrectableField.BASIC_SALARY: "basic_salary",
    CorrectableField.OVERTIME_AMOUNT: "overtime_amount",
    CorrectableField.TOTAL_ALLOWANCES: "total_allowances",
    CorrectableField.TOTAL_DEDUCTIONS: "total_deductions",
    CorrectableField.GROSS_SALARY: "gross_salary",
    CorrectableField.NET_SALARY: "net_salary",
}

_FIELD_LOOKUP: dict[str, CorrectableField] = {
    f.value.casefold(): f for f in CorrectableField
}

# Fields each error type must touch (at least one of).  Types absent here
# accept any correctable field.
REQUIRED_FIELDS_BY_ERROR_TYPE: dict[PayrollErrorType, frozenset[CorrectableField]] = {
    PayrollErrorType.CALCULATION_ERROR: frozenset({
        CorrectableField.BASIC_SALARY,
        CorrectableField.GROSS_SALARY,
        CorrectableField.NET_SALARY,
    }),
    PayrollErrorType.ALLOWANCE_ERROR: frozenset({CorrectableField.TOTAL_ALLOWANCES}),
    PayrollErrorType.DEDUCTION_ERROR: frozenset({CorrectableField.TOTAL_DEDUCTIONS}),
    PayrollErrorType.OVERTIME_ERROR: frozenset({CorrectableField.OVERTIME_AMOUNT}),
}


# =========================================================================
# Requests, previews, DTOs
# =========================================================================


@dataclass(frozen=True)
class ErrorCorrectionRequest:
    """A proposed correction as submitted by a user."""

    payroll_record_id: UUID
    error_type: PayrollErrorType | str
    correction_data: dict[str, Any]
    requested_by: int
    reason: str
    description: str = ""
    notes: str | None = None


@dataclass(frozen=True)
class FieldChange:
    """One requested field change and its monetary impact."""

    field: CorrectableField
    old_value: Decimal
    new_value: Decimal

    @property
    def impact(self) -> Decimal:
        return self.new_value - self.old_value

    def to_dict(self) -> dict[str, str]:
        return {
            "field": self.field.value,
            "old": str(self.old_value),
            "new": str(self.new_value),
            "impact": str(self.impact),
        }


@dataclass(frozen=True)
class CorrectionPreview:
    """What the record would look like if the correction were processed now."""

    original: PayrollSnapshot
    corrected: PayrollSnapshot
    changes: tuple[FieldChange, ...]


@dataclass(frozen=True)
class PayrollErrorCorrectionDTO:
    """Read-only view of a persisted error correction."""

    id: UUID
    payroll_record_id: UUID
    error_type: PayrollErrorType
    correction_data: dict[str, Decimal]
    status: CorrectionStatus
    original_values: PayrollSnapshot
    corrected_values: PayrollSnapshot | None
    requested_by: int
    requested_at: datetime
    reason: str
    description: str = ""
    notes: str | None = None
    approved_by: int | None = None
    approved_at: datetime | None = None
    approval_notes: str | None = None
    rejected_by: int | None = None
    rejected_at: datetime | None = None
    processed_by: int | None = None
    processed_at: datetime | None = None
    cancelled_by: int | None = None
    cancelled_at: datetime | None = None
    resolution_reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_CORRECTION_STATUSES


@dataclass(frozen=True)
class CorrectionResult:
    """Returned by correction creation: the stored correction and its preview."""

    correction: PayrollErrorCorrectionDTO
    preview: CorrectionPreview

    @property
    def changes(self) -> tuple[FieldChange, ...]:
        return self.preview.changes
