"""
PayrollCalculator -- pure payroll computation.

Responsibility:
    Given a FormulaEvaluationContext and the formulas that apply, produce a
    PayrollCalculationResult: basic, overtime, bucketed formula
    contributions, totals, gross and net.

Architecture position:
    Engines -- pure computation.  Used for live calculation, previews and
    batch runs.  Never touches the database.

Invariants enforced:
    - gross = basic + total_allowances + overtime_amount and
      net = gross - total_deductions, via ``PayrollCalculationResult.build``.
    - A contribution is bucketed by its formula's declared type only:
      ALLOWANCE to allowances, DEDUCTION and TAX to deductions, CUSTOM to
      custom_calculations.
    - Amounts are never rounded and never converted.  The exchange rate is
      attached as metadata.

Failure modes:
    - FormulaEvaluationError propagates from the formula engine, and is
      raised for a result naming a formula that was not supplied.
    - ExchangeRateUnavailableError propagates when the fallback policy is
      ``fail``; under ``omit`` it becomes an entry in ``errors``.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.calculation import (
    ZERO,
    FormulaEvaluationContext,
    PayrollCalculationResult,
)
from payroll_kernel.domain.formula import FormulaType, PayrollFormula
from payroll_kernel.domain.providers import CurrencyRateProvider, FormulaEngine
from payroll_kernel.exceptions import ExchangeRateUnavailableError, FormulaEvaluationError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.calculator")

FALLBACK_OMIT = "omit"
FALLBACK_FAIL = "fail"
EXCHANGE_RATE_FALLBACKS = frozenset({FALLBACK_OMIT, FALLBACK_FAIL})

NEGATIVE_NET_SALARY = "Net salary is negative"


def refresh_negative_net_flag(errors: Sequence[str], net_salary: Decimal) -> list[str]:
    """Errors with the negative-net entry present exactly when net < 0."""
    refreshed = [e for e in errors if e != NEGATIVE_NET_SALARY]
    if net_salary < ZERO:
        refreshed.append(NEGATIVE_NET_SALARY)
    return refreshed


class PayrollCalculator:
    """
    Computes one employee's payroll for one period.

    Contract:
        ``calculate`` is deterministic for fixed inputs and a deterministic
        currency provider.

    Non-goals:
        - Does NOT fetch employees or attendance (see the context builder).
        - Does NOT persist anything.
        - Does NOT clamp negative net salary; it flags it in ``errors``.
    """

    def __init__(
        self,
        formula_engine: FormulaEngine,
        currency_provider: CurrencyRateProvider | None = None,
        reporting_currency: str = "USD",
        exchange_rate_fallback: str = FALLBACK_OMIT,
    ):
        if exchange_rate_fallback not in EXCHANGE_RATE_FALLBACKS:
            raise ValueError(
                f"exchange_rate_fallback must be one of {sorted(EXCHANGE_RATE_FALLBACKS)}"
            )
        self._formula_engine = formula_engine
        self._currency_provider = currency_provider
        self._reporting_currency = reporting_currency.upper()
        self._exchange_rate_fallback = exchange_rate_fallback

    @traced_engine("payroll_calculator", "1.0", fingerprint_fields=("context", "formulas"))
    def calculate(
        self,
        context: FormulaEvaluationContext,
        formulas: Sequence[PayrollFormula] = (),
        include_custom_formulas: bool = True,
    ) -> PayrollCalculationResult:
        overtime_amount = self._formula_engine.calculate_overtime_amount(
            context.overtime_hours, context.basic_salary, context.overtime_rate
        )

        allowances: dict[str, Decimal] = {}
        deductions: dict[str, Decimal] = {}
        custom: dict[str, Decimal] = {}

        if include_custom_formulas and formulas:
            by_name = {f.name: f for f in formulas}
            values = self._formula_engine.evaluate_all_formulas(context, formulas)
            for name, value in values.items():
                if name not in by_name:
                    raise FormulaEvaluationError(
                        name, "result returned for a formula that was not supplied"
                    )
                formula_type = FormulaType(by_name[name].formula_type)
                if formula_type is FormulaType.ALLOWANCE:
                    allowances[name] = value
                elif formula_type in (FormulaType.DEDUCTION, FormulaType.TAX):
                    deductions[name] = value
                else:
                    custom[name] = value

        errors: list[str] = []
        exchange_rate = self._lookup_exchange_rate(context.currency, errors)

        result = PayrollCalculationResult.build(
            employee_id=context.employee_id,
            basic_salary=context.basic_salary,
            overtime_amount=overtime_amount,
            currency=context.currency,
            allowance_breakdown=allowances,
            deduction_breakdown=deductions,
            custom_calculations=custom,
            exchange_rate=exchange_rate,
            errors=tuple(errors),
            period_start=context.period_start,
            period_end=context.period_end,
            overtime_hours=context.overtime_hours,
        )

        if result.net_salary < ZERO:
            logger.warning(
                "negative_net_salary",
                extra={
                    "employee_id": context.employee_id,
                    "net_salary": str(result.net_salary),
                },
            )
            result = result.with_errors(NEGATIVE_NET_SALARY)

        logger.info(
            "payroll_calculated",
            extra={
                "employee_id": context.employee_id,
                "period_start": context.period_start.isoformat(),
                "period_end": context.period_end.isoformat(),
                "gross_salary": str(result.gross_salary),
                "net_salary": str(result.net_salary),
                "error_count": len(result.errors),
            },
        )
        return result

    def _lookup_exchange_rate(self, currency: str, errors: list[str]) -> Decimal | None:
        if currency.upper() == self._reporting_currency or self._currency_provider is None:
            return None
        try:
            return self._currency_provider.get_exchange_rate(currency, self._reporting_currency)
        except ExchangeRateUnavailableError as exc:
            if self._exchange_rate_fallback == FALLBACK_FAIL:
                raise
            logger.warning(
                "exchange_rate_omitted",
                extra={
                    "from_currency": currency,
                    "to_currency": self._reporting_currency,
                    "reason": exc.reason,
                },
            )
            errors.append(
                f"Exchange rate {currency}->{self._reporting_currency} unavailable: {exc.reason}"
            )
            return None
