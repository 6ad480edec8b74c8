"""
PayrollSettings schema.

The human-authored YAML settings file is parsed by the loader into these
frozen types.  Nothing here performs I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from payroll_kernel.domain.formula import PayrollFormula

DEFAULT_DATABASE_URL = "sqlite:///payroll.db"


@dataclass(frozen=True)
class PayrollSettings:
    """Runtime settings for the payroll engine."""

    database_url: str = DEFAULT_DATABASE_URL
    default_currency: str = "USD"
    reporting_currency: str = "USD"
    standard_monthly_hours: Decimal = Decimal("160")
    overtime_rate: Decimal = Decimal("1.5")
    custom_formulas_enabled: bool = True
    exchange_rate_timeout_seconds: float = 5.0
    exchange_rate_fallback: str = "omit"  # omit | fail
    formulas: tuple[PayrollFormula, ...] = ()
