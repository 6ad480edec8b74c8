"""
Settings Loader (``payroll_config.loader``).

Responsibility
--------------
Loads the YAML settings file and parses it into a frozen
``PayrollSettings``.  Every formula expression is checked against the
restricted formula AST here, so a bad expression fails at load time rather
than in the middle of a payroll run.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` with a descriptive message; no silent
  defaults for malformed values.
* ``PAYROLL_DATABASE_URL`` in the environment overrides ``database_url``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid value  -> ``ValueError``.
* Invalid formula expression  -> ``FormulaValidationError``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from payroll_config.schema import DEFAULT_DATABASE_URL, PayrollSettings
from payroll_engines.calculator import EXCHANGE_RATE_FALLBACKS
from payroll_engines.formula_ast import CONTEXT_VARIABLES, validate_formula_expression
from payroll_kernel.domain.formula import FormulaType, PayrollFormula
from payroll_kernel.exceptions import FormulaValidationError

DATABASE_URL_ENV = "PAYROLL_DATABASE_URL"

_KNOWN_KEYS = frozenset({
    "database_url",
    "default_currency",
    "reporting_currency",
    "standard_monthly_hours",
    "overtime_rate",
    "custom_formulas_enabled",
    "exchange_rate_timeout_seconds",
    "exchange_rate_fallback",
    "formulas",
})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(name: str, value: Any, *, positive: bool = False) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{name} must be a number, got {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"{name} must be finite, got {value!r}")
    if positive and result <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")
    return result


def parse_currency(name: str, value: Any) -> str:
    if not isinstance(value, str) or len(value) != 3 or not value.isalpha():
        raise ValueError(f"{name} must be a 3-letter ISO 4217 code, got {value!r}")
    return value.upper()


def parse_bool(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{name} must be true or false, got {value!r}")
    return value


def parse_formula(data: Mapping[str, Any]) -> PayrollFormula:
    """Parse one formula entry.  Expression syntax is checked separately."""
    try:
        name = data["name"]
        expression = data["expression"]
    except KeyError as exc:
        raise ValueError(f"formula entry is missing {exc.args[0]!r}: {dict(data)!r}") from None
    if not isinstance(name, str) or not name.isidentifier():
        raise ValueError(f"formula name must be an identifier, got {name!r}")
    if name in CONTEXT_VARIABLES:
        raise ValueError(f"formula name {name!r} shadows a context variable")

    raw_type = str(data.get("type", FormulaType.CUSTOM.value)).lower()
    try:
        formula_type = FormulaType(raw_type)
    except ValueError:
        raise ValueError(f"formula {name!r} has unknown type {raw_type!r}") from None

    priority = data.get("priority", 100)
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise ValueError(f"formula {name!r} priority must be an integer")

    return PayrollFormula(
        name=name,
        formula_type=formula_type,
        expression=str(expression),
        priority=priority,
        is_active=parse_bool(f"formula {name!r} active", data.get("active", True)),
        organization_id=data.get("organization_id"),
        branch_id=data.get("branch_id"),
        department=data.get("department"),
        designation=data.get("designation"),
        description=data.get("description", ""),
    )


def validate_formulas(formulas: tuple[PayrollFormula, ...]) -> None:
    """
    Check every expression against the restricted AST.

    Formulas may reference any formula evaluated before them, so names of
    all configured formulas are accepted.

    Raises:
        ValueError: duplicate formula names, or names that shadow a
            context variable.
        FormulaValidationError: first invalid expression found.
    """
    names = [f.name for f in formulas]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"duplicate formula names: {', '.join(duplicates)}")
    shadowing = sorted(n for n in names if n in CONTEXT_VARIABLES)
    if shadowing:
        raise ValueError(f"formula names shadow context variables: {', '.join(shadowing)}")

    for formula in formulas:
        errors = validate_formula_expression(formula.expression, extra_names=names)
        if errors:
            raise FormulaValidationError(formula.name, [e.message for e in errors])


def parse_settings(
    data: Mapping[str, Any],
    environ: Mapping[str, str] | None = None,
) -> PayrollSettings:
    """Parse a settings mapping (already loaded from YAML)."""
    environ = os.environ if environ is None else environ

    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        raise ValueError(f"unknown settings: {', '.join(unknown)}")

    fallback = data.get("exchange_rate_fallback", "omit")
    if fallback not in EXCHANGE_RATE_FALLBACKS:
        raise ValueError(
            f"exchange_rate_fallback must be one of {sorted(EXCHANGE_RATE_FALLBACKS)}, "
            f"got {fallback!r}"
        )

    raw_formulas = data.get("formulas") or []
    if not isinstance(raw_formulas, list):
        raise ValueError("formulas must be a list")
    formulas = tuple(parse_formula(f) for f in raw_formulas)
    validate_formulas(formulas)

    database_url = environ.get(DATABASE_URL_ENV) or data.get("database_url", DEFAULT_DATABASE_URL)

    return PayrollSettings(
        database_url=database_url,
        default_currency=parse_currency("default_currency", data.get("default_currency", "USD")),
        reporting_currency=parse_currency(
            "reporting_currency", data.get("reporting_currency", "USD")
        ),
        standard_monthly_hours=parse_decimal(
            "standard_monthly_hours", data.get("standard_monthly_hours", 160), positive=True
        ),
        overtime_rate=parse_decimal("overtime_rate", data.get("overtime_rate", "1.5"), positive=True),
        custom_formulas_enabled=parse_bool(
            "custom_formulas_enabled", data.get("custom_formulas_enabled", True)
        ),
        exchange_rate_timeout_seconds=float(
            parse_decimal(
                "exchange_rate_timeout_seconds",
                data.get("exchange_rate_timeout_seconds", 5),
                positive=True,
            )
        ),
        exchange_rate_fallback=fallback,
        formulas=formulas,
    )


def load_settings(path: Path | str, environ: Mapping[str, str] | None = None) -> PayrollSettings:
    """Load and validate a YAML settings file."""
    return parse_settings(load_yaml_file(Path(path)), environ)
