"""
FormulaEvaluationContextBuilder -- assembles calculation inputs.

Responsibility:
    Reads one employee's profile and attendance for a period through the
    EmployeeDirectory and AttendanceProvider contracts and produces the
    FormulaEvaluationContext the calculator consumes.

Architecture position:
    Kernel > Services -- read-only shell around ``payroll_engines.attendance``.

Failure modes:
    - EmployeeNotFoundError if the directory has no such employee.
    - InvalidDateRangeError if period_start > period_end.
    - InvalidCustomValueError if a custom value is not numeric.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from payroll_engines.attendance import summarize_attendance
from payroll_kernel.domain.calculation import EmployeeProfile, FormulaEvaluationContext
from payroll_kernel.domain.providers import AttendanceProvider, EmployeeDirectory
from payroll_kernel.exceptions import (
    EmployeeNotFoundError,
    InvalidCustomValueError,
    InvalidDateRangeError,
)
from payroll_kernel.logging_config import get_logger

logger = get_logger("services.context_builder")

DEFAULT_OVERTIME_RATE = Decimal("1.5")


def coerce_custom_values(values: Mapping[str, Any] | None) -> dict[str, Decimal]:
    """Custom inputs as Decimals, read through their string form."""
    coerced: dict[str, Decimal] = {}
    for key, value in (values or {}).items():
        if isinstance(value, bool) or value is None:
            raise InvalidCustomValueError(key, value)
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidCustomValueError(key, value) from None
        if not amount.is_finite():
            raise InvalidCustomValueError(key, value)
        coerced[key] = amount
    return coerced


class FormulaEvaluationContextBuilder:
    """
    Builds evaluation contexts.  No side effects.

    Contract:
        The returned context reflects only attendance dated within
        [period_start, period_end].
    """

    def __init__(
        self,
        directory: EmployeeDirectory,
        attendance: AttendanceProvider,
        default_currency: str = "USD",
        default_overtime_rate: Decimal = DEFAULT_OVERTIME_RATE,
    ):
        self._directory = directory
        self._attendance = attendance
        self._default_currency = default_currency
        self._default_overtime_rate = default_overtime_rate

    def get_employee(self, employee_id: int) -> EmployeeProfile:
        employee = self._directory.get_employee(employee_id)
        if employee is None:
            raise EmployeeNotFoundError(employee_id)
        return employee

    def build_context(
        self,
        employee_id: int,
        period_start: date,
        period_end: date,
        custom_values: Mapping[str, Any] | None = None,
    ) -> FormulaEvaluationContext:
        if period_start > period_end:
            raise InvalidDateRangeError(period_start, period_end)

        employee = self.get_employee(employee_id)
        custom = coerce_custom_values(custom_values)
        records = self._attendance.get_attendance_in_range(employee_id, period_start, period_end)
        summary = summarize_attendance(records, period_start, period_end)

        logger.debug(
            "context_built",
            extra={
                "employee_id": employee_id,
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
                "working_days": summary.working_days,
                "actual_working_days": summary.actual_working_days,
                "overtime_hours": str(summary.overtime_hours),
            },
        )

        return FormulaEvaluationContext(
            employee_id=employee.employee_id,
            branch_id=employee.branch_id,
            organization_id=employee.organization_id,
            period_start=period_start,
            period_end=period_end,
            basic_salary=employee.basic_salary,
            overtime_hours=summary.overtime_hours,
            working_days=summary.working_days,
            actual_working_days=summary.actual_working_days,
            absent_days=summary.absent_days,
            leave_days=summary.leave_days,
            custom_values=custom,
            currency=employee.currency or self._default_currency,
            overtime_rate=(
                employee.overtime_rate
                if employee.overtime_rate is not None
                else self._default_overtime_rate
            ),
            department=employee.department,
            designation=employee.designation,
        )
