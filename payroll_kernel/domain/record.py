"""
Payroll record domain types (``payroll_kernel.domain.record``).

Responsibility
--------------
Record lifecycle states and the frozen snapshot/DTO shapes that downstream
consumers (payslips, reports) read.  Consumers never touch ORM rows.

Invariants enforced
-------------------
* ``RECORD_TRANSITIONS`` is the only source of allowed record status moves:
  calculated -> approved, and nothing out of approved.
* ``PayrollSnapshot.to_dict()`` renders decimals as strings so JSON columns
  round-trip them exactly.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class PayrollRecordStatus(str, Enum):
    """Payroll record lifecycle states."""

    CALCULATED = "calculated"
    APPROVED = "approved"


RECORD_TRANSITIONS: dict[PayrollRecordStatus, frozenset[PayrollRecordStatus]] = {
    PayrollRecordStatus.CALCULATED: frozenset({PayrollRecordStatus.APPROVED}),
    PayrollRecordStatus.APPROVED: frozenset(),
}


def _decimal_map(values: dict[str, Any] | None) -> dict[str, Decimal]:
    return {k: Decimal(str(v)) for k, v in (values or {}).items()}


@dataclass(frozen=True)
class PayrollSnapshot:
    """
    The monetary state of a payroll record at one moment.

    Used for correction ``original_values`` / ``corrected_values``, for
    previews, and for audit old/new values.
    """

    basic_salary: Decimal
    overtime_amount: Decimal
    total_allowances: Decimal
    total_deductions: Decimal
    gross_salary: Decimal
    net_salary: Decimal
    currency: str
    exchange_rate: Decimal | None = None
    allowance_breakdown: dict[str, Decimal] = field(default_factory=dict)
    deduction_breakdown: dict[str, Decimal] = field(default_factory=dict)

    def recomputed(self) -> PayrollSnapshot:
        """Copy with gross and net derived from the component fields."""
        gross = self.basic_salary + self.total_allowances + self.overtime_amount
        return replace(self, gross_salary=gross, net_salary=gross - self.total_deductions)

    @property
    def is_balanced(self) -> bool:
        return (
            self.gross_salary
            == self.basic_salary + self.total_allowances + self.overtime_amount
            and self.net_salary == self.gross_salary - self.total_deductions
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "basic_salary": str(self.basic_salary),
            "overtime_amount": str(self.overtime_amount),
            "total_allowances": str(self.total_allowances),
            "total_deductions": str(self.total_deductions),
            "gross_salary": str(self.gross_salary),
            "net_salary": str(self.net_salary),
            "currency": self.currency,
            "exchange_rate": (
                str(self.exchange_rate) if self.exchange_rate is not None else None
            ),
            "allowance_breakdown": {k: str(v) for k, v in self.allowance_breakdown.items()},
            "deduction_breakdown": {k: str(v) for k, v in self.deduction_breakdown.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PayrollSnapshot:
        rate = data.get("exchange_rate")
        return cls(
            basic_salary=Decimal(data["basic_salary"]),
            overtime_amount=Decimal(data["overtime_amount"]),
            total_allowances=Decimal(data["total_allowances"]),
            total_deductions=Decimal(data["total_deductions"]),
            gross_salary=Decimal(data["gross_salary"]),
            net_salary=Decimal(data["net_salary"]),
            currency=data["currency"],
            exchange_rate=Decimal(rate) if rate is not None else None,
            allowance_breakdown=_decimal_map(data.get("allowance_breakdown")),
            deduction_breakdown=_decimal_map(data.get("deduction_breakdown")),
        )


@dataclass(frozen=True)
class PayrollRecordDTO:
    """Read-only view of a persisted payroll record."""

    id: UUID
    employee_id: int
    branch_id: int
    year: int
    month: int
    period_start: date
    period_end: date
    status: PayrollRecordStatus
    snapshot: PayrollSnapshot
    custom_calculations: dict[str, Decimal]
    overtime_hours: Decimal
    errors: tuple[str, ...]
    calculated_by: int
    approved_by: int | None = None
    approved_at: datetime | None = None
    approval_notes: str | None = None
    version: int = 1

    # Convenience accessors for the most-read amounts
    @property
    def basic_salary(self) -> Decimal:
        return self.snapshot.basic_salary

    @property
    def gross_salary(self) -> Decimal:
        return self.snapshot.gross_salary

    @property
    def net_salary(self) -> Decimal:
        return self.snapshot.net_salary
