"""Tests for correction parsing and override arithmetic."""

from decimal import Decimal

import pytest

from payroll_engines.correction import (
    ADJUSTMENT_LINE,
    apply_overrides,
    compute_changes,
    parse_correction_data,
    parse_error_type,
    preview_correction,
    serialize_overrides,
)
from payroll_kernel.domain.correction import CorrectableField, PayrollErrorType
from payroll_kernel.domain.record import PayrollSnapshot
from payroll_kernel.exceptions import (
    CorrectionValidationError,
    DerivedFieldMismatchError,
    EmptyCorrectionDataError,
    InvalidCorrectionValueError,
    UnknownCorrectionFieldError,
    UnsupportedErrorTypeError,
)


@pytest.fixture
def snapshot():
    return PayrollSnapshot(
        basic_salary=Decimal("3000"),
        overtime_amount=Decimal("281.25"),
        total_allowances=Decimal("300"),
        total_deductions=Decimal("150"),
        gross_salary=Decimal("3581.25"),
        net_salary=Decimal("3431.25"),
        currency="USD",
        allowance_breakdown={"housing": Decimal("300")},
        deduction_breakdown={"pension": Decimal("150")},
    )


class TestParseErrorType:

    @pytest.mark.parametrize("raw", [
        "CalculationError",
        "calculation_error",
        "CALCULATION_ERROR",
        PayrollErrorType.CALCULATION_ERROR,
    ])
    def test_spellings(self, raw):
        assert parse_error_type(raw) is PayrollErrorType.CALCULATION_ERROR

    def test_unknown(self):
        with pytest.raises(UnsupportedErrorTypeError):
            parse_error_type("TypoError")


class TestParseCorrectionData:

    def test_valid_data(self):
        overrides = parse_correction_data("CalculationError", {"BasicSalary": "3200"})
        assert overrides == {CorrectableField.BASIC_SALARY: Decimal("3200")}

    def test_attribute_spelling_accepted(self):
        overrides = parse_correction_data("OvertimeError", {"overtime_amount": 300})
        assert overrides == {CorrectableField.OVERTIME_AMOUNT: Decimal("300")}

    def test_empty_data_rejected(self):
        with pytest.raises(EmptyCorrectionDataError):
            parse_correction_data("CalculationError", {})

    def test_unknown_keys_reported_together(self):
        with pytest.raises(UnknownCorrectionFieldError) as exc_info:
            parse_correction_data(
                "CalculationError",
                {"BasicSalary": "3200", "Bonus": "1", "Commission": "2"},
            )
        assert sorted(exc_info.value.fields) == ["Bonus", "Commission"]

    @pytest.mark.parametrize("value", ["abc", None, True, "NaN", "Infinity", ""])
    def test_non_numeric_value_rejected(self, value):
        with pytest.raises(InvalidCorrectionValueError):
            parse_correction_data("CalculationError", {"BasicSalary": value})

    def test_same_field_twice_rejected(self):
        with pytest.raises(CorrectionValidationError):
            parse_correction_data(
                "CalculationError", {"BasicSalary": "1", "basic_salary": "2"}
            )

    def test_error_type_requires_its_field(self):
        with pytest.raises(CorrectionValidationError, match="TotalAllowances"):
            parse_correction_data("AllowanceError", {"BasicSalary": "3200"})

    def test_other_accepts_any_field(self):
        overrides = parse_correction_data("Other", {"TotalDeductions": "10"})
        assert overrides == {CorrectableField.TOTAL_DEDUCTIONS: Decimal("10")}

    def test_serialize_uses_canonical_names(self):
        overrides = parse_correction_data(
            "DataEntryError", {"net_salary": "1", "basic_salary": "2.50"}
        )
        assert serialize_overrides(overrides) == {"BasicSalary": "2.50", "NetSalary": "1"}


class TestApplyOverrides:

    def test_basic_salary_override_recomputes_totals(self, snapshot):
        corrected = apply_overrides(
            snapshot, {CorrectableField.BASIC_SALARY: Decimal("3200")}
        )

        assert corrected.basic_salary == Decimal("3200")
        assert corrected.gross_salary == Decimal("3781.25")
        assert corrected.net_salary == Decimal("3631.25")
        assert corrected.is_balanced

    def test_allowance_total_override_adds_adjustment_line(self, snapshot):
        corrected = apply_overrides(
            snapshot, {CorrectableField.TOTAL_ALLOWANCES: Decimal("450")}
        )

        assert corrected.allowance_breakdown == {
            "housing": Decimal("300"),
            ADJUSTMENT_LINE: Decimal("150"),
        }
        assert sum(corrected.allowance_breakdown.values()) == corrected.total_allowances

    def test_second_adjustment_replaces_first(self, snapshot):
        first = apply_overrides(snapshot, {CorrectableField.TOTAL_DEDUCTIONS: Decimal("200")})
        second = apply_overrides(first, {CorrectableField.TOTAL_DEDUCTIONS: Decimal("150")})

        assert second.deduction_breakdown == {"pension": Decimal("150")}

    def test_matching_net_override_accepted(self, snapshot):
        corrected = apply_overrides(
            snapshot,
            {
                CorrectableField.BASIC_SALARY: Decimal("3200"),
                CorrectableField.NET_SALARY: Decimal("3631.25"),
            },
        )
        assert corrected.net_salary == Decimal("3631.25")

    def test_mismatched_gross_override_rejected(self, snapshot):
        with pytest.raises(DerivedFieldMismatchError) as exc_info:
            apply_overrides(snapshot, {CorrectableField.GROSS_SALARY: Decimal("9999")})
        assert exc_info.value.derived == Decimal("3581.25")

    def test_snapshot_is_not_mutated(self, snapshot):
        apply_overrides(snapshot, {CorrectableField.TOTAL_ALLOWANCES: Decimal("0")})
        assert snapshot.total_allowances == Decimal("300")
        assert snapshot.allowance_breakdown == {"housing": Decimal("300")}


class TestPreview:

    def test_changes_and_impact(self, snapshot):
        overrides = {CorrectableField.BASIC_SALARY: Decimal("3200")}
        preview = preview_correction(snapshot, overrides, "calculation_error")

        assert preview.original == snapshot
        assert preview.corrected.basic_salary == Decimal("3200")
        assert len(preview.changes) == 1
        change = preview.changes[0]
        assert change.field is CorrectableField.BASIC_SALARY
        assert change.old_value == Decimal("3000")
        assert change.new_value == Decimal("3200")
        assert change.impact == Decimal("200")
        assert change.to_dict() == {
            "field": "BasicSalary",
            "old": "3000",
            "new": "3200",
            "impact": "200",
        }

    def test_changes_follow_field_order(self, snapshot):
        overrides = {
            CorrectableField.TOTAL_DEDUCTIONS: Decimal("100"),
            CorrectableField.BASIC_SALARY: Decimal("2900"),
        }
        fields = [c.field for c in compute_changes(snapshot, overrides)]
        assert fields == [CorrectableField.BASIC_SALARY, CorrectableField.TOTAL_DEDUCTIONS]
