"""
Expression formula engine -- default FormulaEngine implementation.

Responsibility:
    Evaluates configured payroll formulas against a FormulaEvaluationContext
    with exact Decimal arithmetic, and prices overtime.

Architecture position:
    Engines -- pure computation.  No I/O, no session, no clock.

Invariants enforced:
    - Expressions are validated against ``formula_ast`` before evaluation;
      the AST is walked directly, nothing is passed to ``eval``.
    - Every literal becomes a Decimal via its source text, so ``0.1`` is
      exactly one tenth.
    - A failing formula raises FormulaEvaluationError.  It is never replaced
      by zero.

Failure modes:
    - FormulaEvaluationError: syntax outside the allowed subset, unknown
      names or custom keys, division by zero, non-numeric result.
"""

from __future__ import annotations

import ast
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal

from payroll_engines.formula_ast import (
    CONTEXT_VARIABLES,
    CUSTOM_ROOT,
    parse_formula,
    referenced_custom_keys,
    referenced_names,
    validate_formula_expression,
)
from payroll_kernel.domain.calculation import FormulaEvaluationContext
from payroll_kernel.domain.formula import PayrollFormula
from payroll_kernel.exceptions import FormulaEvaluationError, FormulaValidationError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.formula")

ZERO = Decimal("0")
DEFAULT_STANDARD_MONTHLY_HOURS = Decimal("160")

_BINARY = {
    ast.Add: lambda a, b: a + b,
    ast.Sub: lambda a, b: a - b,
    ast.Mult: lambda a, b: a * b,
    ast.Div: lambda a, b: a / b,
}

_COMPARE = {
    ast.Eq: lambda a, b: a == b,
    ast.NotEq: lambda a, b: a != b,
    ast.Lt: lambda a, b: a < b,
    ast.LtE: lambda a, b: a <= b,
    ast.Gt: lambda a, b: a > b,
    ast.GtE: lambda a, b: a >= b,
}

_FUNCTIONS = {
    "min": min,
    "max": max,
    "abs": abs,
}


def _as_decimal(value: Decimal | bool) -> Decimal:
    if isinstance(value, bool):
        return Decimal(int(value))
    return value


class _Evaluator:
    """Walks a validated expression tree."""

    def __init__(self, name: str, variables: Mapping[str, Decimal], custom: Mapping[str, Decimal]):
        self._name = name
        self._variables = variables
        self._custom = custom

    def eval(self, node: ast.AST) -> Decimal | bool:
        if isinstance(node, ast.Constant):
            if isinstance(node.value, bool):
                return node.value
            return Decimal(str(node.value))

        if isinstance(node, ast.Name):
            try:
                return self._variables[node.id]
            except KeyError:
                raise FormulaEvaluationError(self._name, f"unknown name '{node.id}'") from None

        if isinstance(node, ast.Attribute):
            try:
                return self._custom[node.attr]
            except KeyError:
                raise FormulaEvaluationError(
                    self._name, f"missing custom value '{node.attr}'"
                ) from None

        if isinstance(node, ast.BinOp):
            left = _as_decimal(self.eval(node.left))
            right = _as_decimal(self.eval(node.right))
            return _BINARY[type(node.op)](left, right)

        if isinstance(node, ast.UnaryOp):
            operand = self.eval(node.operand)
            if isinstance(node.op, ast.Not):
                return not operand
            operand = _as_decimal(operand)
            return -operand if isinstance(node.op, ast.USub) else +operand

        if isinstance(node, ast.BoolOp):
            if isinstance(node.op, ast.And):
                result: Decimal | bool = True
                for value in node.values:
                    result = self.eval(value)
                    if not result:
                        return result
                return result
            result = False
            for value in node.values:
                result = self.eval(value)
                if result:
                    return result
            return result

        if isinstance(node, ast.Compare):
            left = _as_decimal(self.eval(node.left))
            for op, comparator in zip(node.ops, node.comparators):
                right = _as_decimal(self.eval(comparator))
                if not _COMPARE[type(op)](left, right):
                    return False
                left = right
            return True

        if isinstance(node, ast.IfExp):
            return self.eval(node.body) if self.eval(node.test) else self.eval(node.orelse)

        if isinstance(node, ast.Call):
            args = [_as_decimal(self.eval(arg)) for arg in node.args]
            return _FUNCTIONS[node.func.id](*args)

        raise FormulaEvaluationError(self._name, f"unsupported node {type(node).__name__}")


class ExpressionFormulaEngine:
    """
    Evaluates restricted-expression formulas.

    Contract:
        ``evaluate_all_formulas`` returns ``{formula.name: Decimal}`` for every
        active formula whose scope matches the employee, in priority order.
        Earlier results are visible to later formulas under their names.

    Non-goals:
        - Does NOT bucket results into allowances/deductions; the calculator
          does that from each formula's declared type.
    """

    def __init__(self, standard_monthly_hours: Decimal = DEFAULT_STANDARD_MONTHLY_HOURS):
        if standard_monthly_hours <= 0:
            raise ValueError("standard_monthly_hours must be positive")
        self._standard_monthly_hours = standard_monthly_hours

    @property
    def standard_monthly_hours(self) -> Decimal:
        return self._standard_monthly_hours

    def validate_formula(self, expression: str, known_names: Iterable[str] = ()) -> list[str]:
        """
        Check an expression without evaluating it.

        ``known_names`` are other formula names the expression may use.
        Returns the problems found; an empty list means the expression is
        valid.
        """
        return [
            e.message
            for e in validate_formula_expression(expression, extra_names=known_names)
        ]

    def extract_variables(self, expression: str) -> list[str]:
        """
        Names an expression reads, sorted, with custom inputs as
        ``custom.<key>``.

        Raises:
            FormulaValidationError: the expression does not parse.
        """
        if not expression or not expression.strip():
            return []
        try:
            names = referenced_names(expression)
            custom_keys = referenced_custom_keys(expression)
        except SyntaxError as exc:
            raise FormulaValidationError(expression, [f"Syntax error: {exc.msg}"]) from None
        return sorted(names) + sorted(f"{CUSTOM_ROOT}.{key}" for key in custom_keys)

    def evaluate_formula(
        self,
        formula: PayrollFormula,
        variables: Mapping[str, Decimal],
        custom: Mapping[str, Decimal] | None = None,
    ) -> Decimal:
        """Evaluate one formula against already-bound variables."""
        errors = validate_formula_expression(formula.expression, extra_names=variables.keys())
        if errors:
            raise FormulaEvaluationError(
                formula.name, "; ".join(e.message for e in errors)
            )

        tree = parse_formula(formula.expression)
        try:
            value = _Evaluator(formula.name, variables, custom or {}).eval(tree.body)
        except (ArithmeticError, TypeError) as exc:
            raise FormulaEvaluationError(
                formula.name, f"{type(exc).__name__} while evaluating"
            ) from exc

        if isinstance(value, bool):
            raise FormulaEvaluationError(formula.name, "expression did not produce a number")
        return value

    def evaluate_all_formulas(
        self,
        context: FormulaEvaluationContext,
        formulas: Sequence[PayrollFormula],
    ) -> dict[str, Decimal]:
        variables: dict[str, Decimal] = context.variables()
        results: dict[str, Decimal] = {}

        applicable = [
            f for f in formulas
            if f.is_active
            and f.applies_to(
                organization_id=context.organization_id,
                branch_id=context.branch_id,
                department=context.department,
                designation=context.designation,
            )
        ]
        for formula in applicable:
            if formula.name in CONTEXT_VARIABLES:
                raise FormulaEvaluationError(
                    formula.name, "formula name shadows a context variable"
                )
        for formula in sorted(applicable, key=lambda f: (f.priority, f.name)):
            value = self.evaluate_formula(formula, variables, context.custom_values)
            results[formula.name] = value
            variables[formula.name] = value
            logger.debug(
                "formula_evaluated",
                extra={
                    "formula_name": formula.name,
                    "formula_type": formula.formula_type.value,
                    "employee_id": context.employee_id,
                    "value": str(value),
                },
            )

        return results

    def calculate_overtime_amount(
        self, hours: Decimal, basic_salary: Decimal, rate: Decimal
    ) -> Decimal:
        """hours * (basic_salary / standard monthly hours) * rate, unrounded."""
        if hours <= ZERO or basic_salary <= ZERO:
            return ZERO
        hourly_rate = basic_salary / self._standard_monthly_hours
        return hours * hourly_rate * rate
