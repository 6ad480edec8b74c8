"""
In-process employee directory, attendance and formula sources.

Reference implementations of the provider contracts, used for wiring and
tests.  Production deployments supply adapters over their HR and time
systems.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date

from payroll_kernel.domain.calculation import AttendanceRecord, EmployeeProfile
from payroll_kernel.domain.formula import PayrollFormula


class InMemoryEmployeeDirectory:
    """Employees keyed by id."""

    def __init__(self, employees: Iterable[EmployeeProfile] = ()):
        self._employees: dict[int, EmployeeProfile] = {}
        for employee in employees:
            self.add(employee)

    def add(self, employee: EmployeeProfile) -> None:
        self._employees[employee.employee_id] = employee

    def get_employee(self, employee_id: int) -> EmployeeProfile | None:
        return self._employees.get(employee_id)

    def list_active_employees(self, branch_id: int) -> Sequence[EmployeeProfile]:
        return sorted(
            (
                e for e in self._employees.values()
                if e.branch_id == branch_id and e.is_active
            ),
            key=lambda e: e.employee_id,
        )


class InMemoryAttendanceProvider:
    """Attendance records grouped per employee."""

    def __init__(self, records: Iterable[AttendanceRecord] = ()):
        self._records: dict[int, list[AttendanceRecord]] = defaultdict(list)
        for record in records:
            self.add(record)

    def add(self, record: AttendanceRecord) -> None:
        self._records[record.employee_id].append(record)

    def get_attendance_in_range(
        self, employee_id: int, start: date, end: date
    ) -> Sequence[AttendanceRecord]:
        return sorted(
            (r for r in self._records.get(employee_id, ()) if start <= r.date <= end),
            key=lambda r: r.date,
        )


class StaticFormulaSource:
    """A fixed formula list, typically ``PayrollSettings.formulas``."""

    def __init__(self, formulas: Iterable[PayrollFormula] = ()):
        self._formulas = tuple(formulas)

    def get_active_formulas(
        self, organization_id: int, branch_id: int
    ) -> Sequence[PayrollFormula]:
        return tuple(
            f for f in self._formulas
            if f.is_active
            and (f.organization_id is None or f.organization_id == organization_id)
            and (f.branch_id is None or f.branch_id == branch_id)
        )
