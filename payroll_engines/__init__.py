"""
Module: payroll_engines
Responsibility:
    Package entrypoint re-exporting the pure payroll engines: attendance
    summarization, formula evaluation, the payroll calculator and
    correction arithmetic.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import payroll_kernel domain types, exceptions and logging.
    MUST NOT import payroll_kernel services or models.

Invariants enforced:
    - Purity: engines never read the clock or the database.
    - Decimal-only arithmetic; engines never round.
    - Determinism: identical inputs always produce identical outputs.
"""

from payroll_engines.attendance import (
    AttendanceSummary,
    count_working_days,
    summarize_attendance,
)
from payroll_engines.calculator import (
    FALLBACK_FAIL,
    FALLBACK_OMIT,
    NEGATIVE_NET_SALARY,
    PayrollCalculator,
)
from payroll_engines.correction import (
    ADJUSTMENT_LINE,
    apply_overrides,
    compute_changes,
    parse_correction_data,
    parse_error_type,
    preview_correction,
    serialize_overrides,
)
from payroll_engines.formula import ExpressionFormulaEngine
from payroll_engines.formula_ast import validate_formula_expression

__all__ = [
    "ADJUSTMENT_LINE",
    "AttendanceSummary",
    "ExpressionFormulaEngine",
    "FALLBACK_FAIL",
    "FALLBACK_OMIT",
    "NEGATIVE_NET_SALARY",
    "PayrollCalculator",
    "apply_overrides",
    "compute_changes",
    "count_working_days",
    "parse_correction_data",
    "parse_error_type",
    "preview_correction",
    "serialize_overrides",
    "summarize_attendance",
    "validate_formula_expression",
]
