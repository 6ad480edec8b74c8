"""
Payroll calculation domain types (``payroll_kernel.domain.calculation``).

Responsibility
--------------
Pure value objects flowing through a payroll calculation: the employee
profile read from the directory, attendance facts, the evaluation context
handed to the formula engine, the calculation request and the calculation
result.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``PayrollCalculationResult.gross_salary`` equals ``basic_salary +
  total_allowances + overtime_amount`` and ``net_salary`` equals
  ``gross_salary - total_deductions``.  ``build()`` derives both; the
  constructor is not meant to be called with hand-computed totals.
* All monetary values are ``Decimal``; nothing here rounds.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from payroll_kernel.exceptions import InvalidDateRangeError, InvalidPeriodError

ZERO = Decimal("0")


def round_money(amount: Decimal, places: int = 2) -> Decimal:
    """Round for display (payslips, reports).  Never used by the engine."""
    return amount.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


# =========================================================================
# Directory and attendance facts
# =========================================================================


class AttendanceStatus(str, Enum):
    """Daily attendance status as reported by the attendance provider."""

    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    ON_BREAK = "on_break"
    HALF_DAY = "half_day"
    ON_LEAVE = "on_leave"


@dataclass(frozen=True)
class AttendanceRecord:
    """One day of attendance; overtime_duration is in hours."""

    employee_id: int
    date: date
    status: AttendanceStatus
    overtime_duration: Decimal = ZERO


@dataclass(frozen=True)
class EmployeeProfile:
    """
    Compensation baseline and placement of one employee.

    ``currency`` and ``overtime_rate`` left as ``None`` fall back to the
    configured defaults.
    """

    employee_id: int
    branch_id: int
    organization_id: int
    basic_salary: Decimal
    currency: str | None = None
    overtime_rate: Decimal | None = None
    department: str | None = None
    designation: str | None = None
    is_active: bool = True
    full_name: str = ""


# =========================================================================
# Context and request
# =========================================================================


@dataclass(frozen=True)
class FormulaEvaluationContext:
    """Everything a formula may read for one employee and one period."""

    employee_id: int
    branch_id: int
    organization_id: int
    period_start: date
    period_end: date
    basic_salary: Decimal
    overtime_hours: Decimal
    working_days: int
    actual_working_days: int
    absent_days: int
    leave_days: int
    custom_values: dict[str, Decimal] = field(default_factory=dict)
    currency: str = "USD"
    overtime_rate: Decimal = Decimal("1.5")
    department: str | None = None
    designation: str | None = None

    @property
    def days_in_month(self) -> int:
        return calendar.monthrange(self.period_start.year, self.period_start.month)[1]

    def variables(self) -> dict[str, Decimal]:
        """Named numeric inputs available to formula expressions."""
        return {
            "basic_salary": self.basic_salary,
            "overtime_hours": self.overtime_hours,
            "working_days": Decimal(self.working_days),
            "actual_working_days": Decimal(self.actual_working_days),
            "absent_days": Decimal(self.absent_days),
            "leave_days": Decimal(self.leave_days),
            "days_in_month": Decimal(self.days_in_month),
        }


@dataclass(frozen=True)
class PayrollCalculationRequest:
    """Calculate (and possibly persist) payroll for one employee and period."""

    employee_id: int
    period_start: date
    period_end: date
    year: int
    month: int
    custom_values: dict[str, Any] = field(default_factory=dict)
    include_custom_formulas: bool = True

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise InvalidPeriodError(self.year, self.month)
        if self.period_start > self.period_end:
            raise InvalidDateRangeError(self.period_start, self.period_end)

    @classmethod
    def for_month(
        cls,
        employee_id: int,
        year: int,
        month: int,
        *,
        custom_values: dict[str, Any] | None = None,
        include_custom_formulas: bool = True,
    ) -> PayrollCalculationRequest:
        """Request covering the whole calendar month."""
        if not 1 <= month <= 12:
            raise InvalidPeriodError(year, month)
        last_day = calendar.monthrange(year, month)[1]
        return cls(
            employee_id=employee_id,
            period_start=date(year, month, 1),
            period_end=date(year, month, last_day),
            year=year,
            month=month,
            custom_values=dict(custom_values or {}),
            include_custom_formulas=include_custom_formulas,
        )


# =========================================================================
# Result
# =========================================================================


@dataclass(frozen=True)
class PayrollCalculationResult:
    """Outcome of one payroll calculation."""

    employee_id: int
    basic_salary: Decimal
    overtime_amount: Decimal
    allowance_breakdown: dict[str, Decimal]
    deduction_breakdown: dict[str, Decimal]
    custom_calculations: dict[str, Decimal]
    total_allowances: Decimal
    total_deductions: Decimal
    gross_salary: Decimal
    net_salary: Decimal
    currency: str
    exchange_rate: Decimal | None = None
    errors: tuple[str, ...] = ()
    period_start: date | None = None
    period_end: date | None = None
    overtime_hours: Decimal = ZERO

    @classmethod
    def build(
        cls,
        *,
        employee_id: int,
        basic_salary: Decimal,
        overtime_amount: Decimal,
        currency: str,
        allowance_breakdown: dict[str, Decimal] | None = None,
        deduction_breakdown: dict[str, Decimal] | None = None,
        custom_calculations: dict[str, Decimal] | None = None,
        exchange_rate: Decimal | None = None,
        errors: tuple[str, ...] = (),
        period_start: date | None = None,
        period_end: date | None = None,
        overtime_hours: Decimal = ZERO,
    ) -> PayrollCalculationResult:
        """Build a result with totals, gross and net derived from the parts."""
        allowances = dict(allowance_breakdown or {})
        deductions = dict(deduction_breakdown or {})
        total_allowances = sum(allowances.values(), ZERO)
        total_deductions = sum(deductions.values(), ZERO)
        gross = basic_salary + total_allowances + overtime_amount
        net = gross - total_deductions
        return cls(
            employee_id=employee_id,
            basic_salary=basic_salary,
            overtime_amount=overtime_amount,
            allowance_breakdown=allowances,
            deduction_breakdown=deductions,
            custom_calculations=dict(custom_calculations or {}),
            total_allowances=total_allowances,
            total_deductions=total_deductions,
            gross_salary=gross,
            net_salary=net,
            currency=currency,
            exchange_rate=exchange_rate,
            errors=errors,
            period_start=period_start,
            period_end=period_end,
            overtime_hours=overtime_hours,
        )

    def with_errors(self, *messages: str) -> PayrollCalculationResult:
        return replace(self, errors=self.errors + tuple(messages))

    @property
    def is_balanced(self) -> bool:
        """True when gross and net agree with their defining formulas."""
        return (
            self.gross_salary
            == self.basic_salary + self.total_allowances + self.overtime_amount
            and self.net_salary == self.gross_salary - self.total_deductions
        )
