"""Tests for ExpressionFormulaEngine and the restricted formula AST."""

from datetime import date
from decimal import Decimal

import pytest

from payroll_engines.formula import ExpressionFormulaEngine
from payroll_engines.formula_ast import referenced_names, validate_formula_expression
from payroll_kernel.domain.calculation import FormulaEvaluationContext
from payroll_kernel.domain.formula import FormulaType, PayrollFormula
from payroll_kernel.exceptions import FormulaEvaluationError, FormulaValidationError


def _context(**overrides) -> FormulaEvaluationContext:
    values = dict(
        employee_id=7,
        branch_id=1,
        organization_id=1,
        period_start=date(2025, 1, 1),
        period_end=date(2025, 1, 31),
        basic_salary=Decimal("3000"),
        overtime_hours=Decimal("10"),
        working_days=23,
        actual_working_days=20,
        absent_days=2,
        leave_days=1,
        custom_values={"bonus": Decimal("250")},
        department="Engineering",
        designation="Developer",
    )
    values.update(overrides)
    return FormulaEvaluationContext(**values)


@pytest.fixture
def engine():
    return ExpressionFormulaEngine()


def _formula(name, expression, formula_type=FormulaType.ALLOWANCE, **kwargs):
    return PayrollFormula(name=name, formula_type=formula_type, expression=expression, **kwargs)


class TestValidation:

    @pytest.mark.parametrize("expression", [
        "basic_salary * 0.1",
        "min(basic_salary, 5000) - abs(-1)",
        "100 if absent_days > 1 and leave_days < 3 else 0",
        "custom.bonus + 1",
        "not (working_days == 0)",
    ])
    def test_allowed_expressions(self, expression):
        assert validate_formula_expression(expression) == []

    @pytest.mark.parametrize("expression", [
        "__import__('os')",
        "basic_salary ** 2",
        "basic_salary // 2",
        "open('x')",
        "basic_salary.real",
        "[1, 2][0]",
        "lambda: 1",
        "'text'",
        "unknown_name + 1",
        "",
    ])
    def test_rejected_expressions(self, expression):
        assert validate_formula_expression(expression) != []

    def test_extra_names_allow_earlier_formulas(self):
        assert validate_formula_expression("housing * 2") != []
        assert validate_formula_expression("housing * 2", extra_names=["housing"]) == []

    def test_referenced_names(self):
        assert referenced_names("max(housing, basic_salary) + custom.bonus") == {
            "housing",
            "basic_salary",
        }


class TestEvaluation:

    def test_arithmetic_is_decimal(self, engine):
        value = engine.evaluate_formula(
            _formula("tenth", "basic_salary * 0.1"),
            {"basic_salary": Decimal("3000")},
        )
        assert isinstance(value, Decimal)
        assert value == Decimal("300")

    def test_conditional(self, engine):
        context = _context()
        result = engine.evaluate_all_formulas(
            context, [_formula("attendance_bonus", "100 if absent_days == 0 else 0")]
        )
        assert result == {"attendance_bonus": Decimal("0")}

    def test_custom_values(self, engine):
        result = engine.evaluate_all_formulas(
            _context(), [_formula("bonus", "custom.bonus * 2")]
        )
        assert result == {"bonus": Decimal("500")}

    def test_missing_custom_value_fails(self, engine):
        with pytest.raises(FormulaEvaluationError, match="missing custom value"):
            engine.evaluate_all_formulas(_context(), [_formula("bonus", "custom.other")])

    def test_division_by_zero_fails(self, engine):
        with pytest.raises(FormulaEvaluationError):
            engine.evaluate_all_formulas(_context(), [_formula("bad", "basic_salary / 0")])

    def test_boolean_result_fails(self, engine):
        with pytest.raises(FormulaEvaluationError, match="did not produce a number"):
            engine.evaluate_all_formulas(_context(), [_formula("flag", "absent_days > 0")])

    def test_invalid_expression_fails_at_evaluation(self, engine):
        with pytest.raises(FormulaEvaluationError):
            engine.evaluate_all_formulas(_context(), [_formula("pow", "basic_salary ** 2")])

    def test_days_in_month_is_available(self, engine):
        result = engine.evaluate_all_formulas(
            _context(), [_formula("per_day", "basic_salary / days_in_month", FormulaType.CUSTOM)]
        )
        assert result["per_day"] == Decimal("3000") / Decimal("31")


class TestOrderingAndScope:

    def test_priority_order_and_chaining(self, engine):
        formulas = [
            _formula("pension", "housing / 2", FormulaType.DEDUCTION, priority=20),
            _formula("housing", "basic_salary * 0.1", priority=10),
        ]
        result = engine.evaluate_all_formulas(_context(), formulas)

        assert list(result) == ["housing", "pension"]
        assert result["pension"] == Decimal("150")

    def test_ties_break_by_name(self, engine):
        formulas = [_formula("zeta", "1"), _formula("alpha", "2")]
        assert list(engine.evaluate_all_formulas(_context(), formulas)) == ["alpha", "zeta"]

    def test_inactive_formula_skipped(self, engine):
        formulas = [_formula("housing", "100", is_active=False)]
        assert engine.evaluate_all_formulas(_context(), formulas) == {}

    def test_scope_filters(self, engine):
        formulas = [
            _formula("other_branch", "1", branch_id=2),
            _formula("other_org", "1", organization_id=9),
            _formula("sales_only", "1", department="Sales"),
            _formula("dev_only", "1", designation="developer"),
            _formula("everyone", "1"),
        ]
        result = engine.evaluate_all_formulas(_context(), formulas)
        assert set(result) == {"dev_only", "everyone"}

    def test_formula_named_like_context_variable_rejected(self, engine):
        formulas = [
            _formula("basic_salary", "1", priority=1),
            _formula("pension", "basic_salary * 0.05", FormulaType.DEDUCTION, priority=2),
        ]
        with pytest.raises(FormulaEvaluationError, match="shadows a context variable"):
            engine.evaluate_all_formulas(_context(), formulas)


class TestIntrospection:

    def test_validate_formula_valid(self, engine):
        assert engine.validate_formula("basic_salary * 0.1 + custom.bonus") == []

    def test_validate_formula_reports_problems(self, engine):
        messages = engine.validate_formula("housing ** 2")

        assert any("Unknown name: housing" in m for m in messages)
        assert any("Pow" in m for m in messages)

    def test_validate_formula_with_known_names(self, engine):
        assert engine.validate_formula("housing / 2", known_names=["housing"]) == []

    def test_validate_formula_syntax_error(self, engine):
        [message] = engine.validate_formula("basic_salary *")
        assert message.startswith("Syntax error")

    def test_extract_variables(self, engine):
        variables = engine.extract_variables(
            "max(housing, basic_salary) + custom.bonus - custom.advance"
        )
        assert variables == ["basic_salary", "housing", "custom.advance", "custom.bonus"]

    def test_extract_variables_blank(self, engine):
        assert engine.extract_variables("  ") == []

    def test_extract_variables_unparseable(self, engine):
        with pytest.raises(FormulaValidationError):
            engine.extract_variables("basic_salary *")


class TestOvertime:

    def test_overtime_amount(self, engine):
        amount = engine.calculate_overtime_amount(
            Decimal("10"), Decimal("3000"), Decimal("1.5")
        )
        assert amount == Decimal("281.25")

    def test_overtime_is_not_rounded(self, engine):
        amount = engine.calculate_overtime_amount(
            Decimal("1"), Decimal("1000"), Decimal("1.5")
        )
        assert amount == Decimal("9.375")

    @pytest.mark.parametrize("hours,basic", [
        (Decimal("0"), Decimal("3000")),
        (Decimal("-2"), Decimal("3000")),
        (Decimal("5"), Decimal("0")),
    ])
    def test_zero_when_no_hours_or_salary(self, engine, hours, basic):
        assert engine.calculate_overtime_amount(hours, basic, Decimal("1.5")) == Decimal("0")

    def test_custom_standard_hours(self):
        engine = ExpressionFormulaEngine(standard_monthly_hours=Decimal("100"))
        assert engine.calculate_overtime_amount(
            Decimal("10"), Decimal("3000"), Decimal("2")
        ) == Decimal("600")

    def test_standard_hours_must_be_positive(self):
        with pytest.raises(ValueError):
            ExpressionFormulaEngine(standard_monthly_hours=Decimal("0"))
