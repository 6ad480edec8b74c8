"""
Correction arithmetic -- pure functions behind the error-correction workflow.

Responsibility:
    Parse and validate correction data for an error type, apply overrides to
    a PayrollSnapshot, and describe the resulting field changes.

Architecture position:
    Engines -- pure computation.  ErrorCorrectionService calls these both
    when a correction is requested (preview) and when it is processed
    (against the live record).

Invariants enforced:
    - Only CorrectableField names are accepted; every unknown key is
      reported, none is dropped.
    - The corrected snapshot always satisfies gross = basic + allowances +
      overtime and net = gross - deductions.  Gross and net overrides must
      agree with that derivation.
    - Breakdowns keep summing to their totals: an overridden total gains a
      ``correction_adjustment`` line for the difference.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Any

from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.correction import (
    REQUIRED_FIELDS_BY_ERROR_TYPE,
    CorrectableField,
    CorrectionPreview,
    FieldChange,
    PayrollErrorType,
)
from payroll_kernel.domain.record import PayrollSnapshot
from payroll_kernel.exceptions import (
    CorrectionValidationError,
    DerivedFieldMismatchError,
    EmptyCorrectionDataError,
    InvalidCorrectionValueError,
    UnknownCorrectionFieldError,
    UnsupportedErrorTypeError,
)

ADJUSTMENT_LINE = "correction_adjustment"

_ERROR_TYPE_LOOKUP: dict[str, PayrollErrorType] = {
    t.value.replace("_", ""): t for t in PayrollErrorType
}


def parse_error_type(error_type: PayrollErrorType | str) -> PayrollErrorType:
    """Accept ``calculation_error``, ``CalculationError`` and the like."""
    if isinstance(error_type, PayrollErrorType):
        return error_type
    key = str(error_type).replace("_", "").casefold()
    try:
        return _ERROR_TYPE_LOOKUP[key]
    except KeyError:
        raise UnsupportedErrorTypeError(str(error_type)) from None


def _to_decimal(error_type: str, key: str, value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise InvalidCorrectionValueError(error_type, key, value)
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidCorrectionValueError(error_type, key, value) from None
    if not amount.is_finite():
        raise InvalidCorrectionValueError(error_type, key, value)
    return amount


def parse_correction_data(
    error_type: PayrollErrorType | str,
    data: Mapping[str, Any],
) -> dict[CorrectableField, Decimal]:
    """
    Validate correction data for an error type.

    Returns:
        ``{CorrectableField: Decimal}`` for every requested field.

    Raises:
        UnsupportedErrorTypeError, EmptyCorrectionDataError,
        UnknownCorrectionFieldError, InvalidCorrectionValueError, or
        CorrectionValidationError when the error type's required field
        is not touched.
    """
    kind = parse_error_type(error_type)
    if not data:
        raise EmptyCorrectionDataError(kind.value)

    unknown = [key for key in data if CorrectableField.lookup(str(key)) is None]
    if unknown:
        raise UnknownCorrectionFieldError(kind.value, [str(k) for k in unknown])

    overrides: dict[CorrectableField, Decimal] = {}
    for key, value in data.items():
        field = CorrectableField.lookup(str(key))
        if field in overrides:
            raise CorrectionValidationError(
                kind.value, f"{field.value} is given more than once"
            )
        overrides[field] = _to_decimal(kind.value, str(key), value)

    required = REQUIRED_FIELDS_BY_ERROR_TYPE.get(kind)
    if required and not required & overrides.keys():
        names = ", ".join(sorted(f.value for f in required))
        raise CorrectionValidationError(
            kind.value, f"{kind.value} correction must include one of: {names}"
        )

    return overrides


def serialize_overrides(overrides: Mapping[CorrectableField, Decimal]) -> dict[str, str]:
    """Storage form for ``correction_data``: canonical names, decimal strings."""
    return {field.value: str(overrides[field]) for field in CorrectableField if field in overrides}


def _adjust_breakdown(
    breakdown: dict[str, Decimal], old_total: Decimal, new_total: Decimal
) -> dict[str, Decimal]:
    adjusted = dict(breakdown)
    amount = adjusted.pop(ADJUSTMENT_LINE, Decimal("0")) + (new_total - old_total)
    if amount != 0:
        adjusted[ADJUSTMENT_LINE] = amount
    return adjusted


@traced_engine("correction_apply", "1.0", fingerprint_fields=("snapshot", "overrides"))
def apply_overrides(
    snapshot: PayrollSnapshot,
    overrides: Mapping[CorrectableField, Decimal],
    error_type: str = "",
) -> PayrollSnapshot:
    """
    Apply overrides to a snapshot and recompute gross and net.

    Raises:
        DerivedFieldMismatchError: a GrossSalary or NetSalary override
            differs from the value derived from the other fields.
    """
    changes: dict[str, Any] = {}
    for field, value in overrides.items():
        if not field.is_derived:
            changes[field.attribute] = value

    if CorrectableField.TOTAL_ALLOWANCES in overrides:
        changes["allowance_breakdown"] = _adjust_breakdown(
            snapshot.allowance_breakdown,
            snapshot.total_allowances,
            overrides[CorrectableField.TOTAL_ALLOWANCES],
        )
    if CorrectableField.TOTAL_DEDUCTIONS in overrides:
        changes["deduction_breakdown"] = _adjust_breakdown(
            snapshot.deduction_breakdown,
            snapshot.total_deductions,
            overrides[CorrectableField.TOTAL_DEDUCTIONS],
        )

    corrected = replace(snapshot, **changes).recomputed()

    for field in (CorrectableField.GROSS_SALARY, CorrectableField.NET_SALARY):
        if field in overrides:
            derived = getattr(corrected, field.attribute)
            if overrides[field] != derived:
                raise DerivedFieldMismatchError(
                    error_type, field.value, overrides[field], derived
                )

    return corrected


def compute_changes(
    original: PayrollSnapshot,
    overrides: Mapping[CorrectableField, Decimal],
) -> tuple[FieldChange, ...]:
    """One FieldChange per requested field, in CorrectableField order."""
    return tuple(
        FieldChange(
            field=field,
            old_value=getattr(original, field.attribute),
            new_value=overrides[field],
        )
        for field in CorrectableField
        if field in overrides
    )


def preview_correction(
    snapshot: PayrollSnapshot,
    overrides: Mapping[CorrectableField, Decimal],
    error_type: str = "",
) -> CorrectionPreview:
    """What ``snapshot`` would become with ``overrides`` applied."""
    return CorrectionPreview(
        original=snapshot,
        corrected=apply_overrides(snapshot, overrides, error_type),
        changes=compute_changes(snapshot, overrides),
    )
