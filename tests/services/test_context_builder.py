"""Tests for FormulaEvaluationContextBuilder."""

from datetime import date
from decimal import Decimal

import pytest

from payroll_kernel.domain.calculation import EmployeeProfile
from payroll_kernel.exceptions import (
    EmployeeNotFoundError,
    InvalidCustomValueError,
    InvalidDateRangeError,
)
from payroll_kernel.services.context_builder import (
    FormulaEvaluationContextBuilder,
    coerce_custom_values,
)
from payroll_services.directory import InMemoryEmployeeDirectory

EMPLOYEE_ID = 7
JAN_START = date(2025, 1, 1)
JAN_END = date(2025, 1, 31)


@pytest.fixture
def builder(directory, attendance):
    return FormulaEvaluationContextBuilder(directory, attendance)


class TestBuildContext:

    def test_reference_employee_january(self, builder):
        context = builder.build_context(EMPLOYEE_ID, JAN_START, JAN_END)

        assert context.employee_id == EMPLOYEE_ID
        assert context.branch_id == 1
        assert context.organization_id == 1
        assert context.basic_salary == Decimal("3000")
        assert context.overtime_hours == Decimal("10")
        assert context.working_days == 23
        assert context.actual_working_days == 2
        assert context.absent_days == 1
        assert context.leave_days == 1
        assert context.currency == "USD"
        assert context.overtime_rate == Decimal("1.5")
        assert context.department == "Engineering"

    def test_custom_values_are_decimals(self, builder):
        context = builder.build_context(
            EMPLOYEE_ID, JAN_START, JAN_END, {"bonus": "250.50", "units": 3}
        )
        assert context.custom_values == {"bonus": Decimal("250.50"), "units": Decimal("3")}

    def test_defaults_fill_missing_profile_fields(self, attendance):
        directory = InMemoryEmployeeDirectory([
            EmployeeProfile(employee_id=8, branch_id=1, organization_id=1,
                            basic_salary=Decimal("1000")),
        ])
        builder = FormulaEvaluationContextBuilder(
            directory, attendance, default_currency="EUR", default_overtime_rate=Decimal("2")
        )
        context = builder.build_context(8, JAN_START, JAN_END)

        assert context.currency == "EUR"
        assert context.overtime_rate == Decimal("2")
        assert context.overtime_hours == Decimal("0")

    def test_unknown_employee(self, builder):
        with pytest.raises(EmployeeNotFoundError) as exc_info:
            builder.build_context(999, JAN_START, JAN_END)
        assert exc_info.value.employee_id == 999

    def test_reversed_range_checked_before_employee(self, builder):
        with pytest.raises(InvalidDateRangeError):
            builder.build_context(999, JAN_END, JAN_START)


class TestCoerceCustomValues:

    def test_none_is_empty(self):
        assert coerce_custom_values(None) == {}

    @pytest.mark.parametrize("value", ["abc", None, False, "nan", float("inf")])
    def test_non_numeric_rejected(self, value):
        with pytest.raises(InvalidCustomValueError) as exc_info:
            coerce_custom_values({"bonus": value})
        assert exc_info.value.key == "bonus"

    def test_float_goes_through_string(self):
        assert coerce_custom_values({"rate": 0.1}) == {"rate": Decimal("0.1")}
