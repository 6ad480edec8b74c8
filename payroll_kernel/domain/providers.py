"""
Contracts for the collaborators the payroll kernel reads from.

Employee master data, attendance storage, formula storage, rule evaluation
and currency rates all live outside the kernel.  Services depend only on
these protocols; ``payroll_services`` ships reference implementations.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import Protocol, runtime_checkable

from payroll_kernel.domain.calculation import (
    AttendanceRecord,
    EmployeeProfile,
    FormulaEvaluationContext,
)
from payroll_kernel.domain.formula import PayrollFormula


@runtime_checkable
class EmployeeDirectory(Protocol):
    def get_employee(self, employee_id: int) -> EmployeeProfile | None: ...

    def list_active_employees(self, branch_id: int) -> Sequence[EmployeeProfile]: ...


@runtime_checkable
class AttendanceProvider(Protocol):
    def get_attendance_in_range(
        self, employee_id: int, start: date, end: date
    ) -> Sequence[AttendanceRecord]: ...


@runtime_checkable
class FormulaSource(Protocol):
    def get_active_formulas(
        self, organization_id: int, branch_id: int
    ) -> Sequence[PayrollFormula]: ...


@runtime_checkable
class FormulaEngine(Protocol):
    """
    Strategy interface for rule evaluation.

    ``evaluate_all_formulas`` returns one decimal per applicable formula,
    keyed by formula name.  Failures raise ``FormulaEvaluationError``.
    """

    def evaluate_all_formulas(
        self,
        context: FormulaEvaluationContext,
        formulas: Sequence[PayrollFormula],
    ) -> dict[str, Decimal]: ...

    def calculate_overtime_amount(
        self, hours: Decimal, basic_salary: Decimal, rate: Decimal
    ) -> Decimal: ...


@runtime_checkable
class CurrencyRateProvider(Protocol):
    def get_exchange_rate(self, from_currency: str, to_currency: str) -> Decimal: ...
