"""
Typed Exception Hierarchy for the Payroll Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Payroll results are money owed to people. Callers must be able to tell a
missing employee from a duplicate period from a broken formula without
parsing message strings:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        records.create_record(request, actor_id=1)
    except Exception as e:
        if "already exists" in str(e):  # FRAGILE - message might change
            ...

Example - RIGHT way:
    try:
        records.create_record(request, actor_id=1)
    except DuplicatePayrollRecordError as e:
        api_response(code=e.code, employee=e.employee_id, month=e.month)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayrollKernelError (base)
    |
    +-- NotFoundError
    |   +-- EmployeeNotFoundError
    |   +-- PayrollRecordNotFoundError
    |   +-- CorrectionNotFoundError
    |
    +-- ConflictError
    |   +-- DuplicatePayrollRecordError
    |   +-- InvalidRecordTransitionError
    |   +-- InvalidCorrectionTransitionError
    |   +-- ConcurrentModificationError
    |
    +-- PayrollValidationError
    |   +-- InvalidDateRangeError
    |   +-- InvalidPeriodError
    |   +-- InvalidCustomValueError
    |   +-- CorrectionValidationError
    |       +-- UnsupportedErrorTypeError
    |       +-- EmptyCorrectionDataError
    |       +-- UnknownCorrectionFieldError
    |       +-- InvalidCorrectionValueError
    |       +-- DerivedFieldMismatchError
    |   +-- FormulaValidationError
    |
    +-- ExternalDependencyError
    |   +-- FormulaEvaluationError
    |   +-- ExchangeRateUnavailableError
    |
    +-- IntegrityError
        +-- ImmutabilityViolationError
        +-- AuditChainBrokenError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|-------------------------------
NotFound        | EMPLOYEE_NOT_FOUND            | Directory has no such employee
                | PAYROLL_RECORD_NOT_FOUND      | Record ID / period unknown
                | CORRECTION_NOT_FOUND          | Correction ID unknown
----------------|-------------------------------|-------------------------------
Conflict        | DUPLICATE_PAYROLL_RECORD      | Period already has a record
                | INVALID_RECORD_TRANSITION     | e.g. approving twice
                | INVALID_CORRECTION_TRANSITION | e.g. processing a Pending one
                | CONCURRENT_MODIFICATION       | Version check failed at flush
----------------|-------------------------------|-------------------------------
Validation      | INVALID_DATE_RANGE            | period start > period end
                | INVALID_PERIOD                | month outside 1..12
                | INVALID_CUSTOM_VALUE          | non-numeric custom value
                | UNSUPPORTED_ERROR_TYPE        | unknown correction error type
                | EMPTY_CORRECTION_DATA         | correction_data is empty
                | UNKNOWN_CORRECTION_FIELD      | key is not a correctable field
                | INVALID_CORRECTION_VALUE      | value is not a decimal
                | CORRECTION_VALIDATION_FAILED  | error type rule not satisfied
                | DERIVED_FIELD_MISMATCH        | gross/net override disagrees
                | FORMULA_VALIDATION_FAILED     | disallowed formula syntax
----------------|-------------------------------|-------------------------------
External        | FORMULA_EVALUATION_FAILED     | formula raised at evaluation
                | EXCHANGE_RATE_UNAVAILABLE     | rate lookup failed / timed out
----------------|-------------------------------|-------------------------------
Integrity       | IMMUTABILITY_VIOLATION        | audit row update/delete
                | AUDIT_CHAIN_BROKEN            | hash chain validation failed

===============================================================================
HANDLING PATTERNS
===============================================================================

All kinds propagate to the caller. The one local recovery is the branch
payroll batch, which records a failed employee's ``code`` and message in that
employee's item result and moves on.
"""

from decimal import Decimal
from typing import Any


class PayrollKernelError(Exception):
    """
    Base exception for all payroll kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PAYROLL_KERNEL_ERROR"


# Category bases


class NotFoundError(PayrollKernelError):
    """Base exception for missing employees, records and corrections."""

    code: str = "NOT_FOUND"


class ConflictError(PayrollKernelError):
    """Base exception for duplicate periods and illegal state transitions."""

    code: str = "CONFLICT"


class PayrollValidationError(PayrollKernelError):
    """Base exception for malformed requests."""

    code: str = "VALIDATION_ERROR"


class ExternalDependencyError(PayrollKernelError):
    """Base exception for formula engine and currency provider failures."""

    code: str = "EXTERNAL_DEPENDENCY_ERROR"


class IntegrityError(PayrollKernelError):
    """Base exception for audit trail integrity failures."""

    code: str = "INTEGRITY_ERROR"


# Not found


class EmployeeNotFoundError(NotFoundError):
    """Employee is unknown to the employee directory."""

    code: str = "EMPLOYEE_NOT_FOUND"

    def __init__(self, employee_id: int):
        self.employee_id = employee_id
        super().__init__(f"Employee not found: {employee_id}")


class PayrollRecordNotFoundError(NotFoundError):
    """Payroll record with given ID (or period) was not found."""

    code: str = "PAYROLL_RECORD_NOT_FOUND"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Payroll record not found: {record_id}")


class CorrectionNotFoundError(NotFoundError):
    """Error correction with given ID was not found."""

    code: str = "CORRECTION_NOT_FOUND"

    def __init__(self, correction_id: str):
        self.correction_id = correction_id
        super().__init__(f"Error correction not found: {correction_id}")


# Conflict


class DuplicatePayrollRecordError(ConflictError):
    """A payroll record already exists for (employee_id, year, month)."""

    code: str = "DUPLICATE_PAYROLL_RECORD"

    def __init__(self, employee_id: int, year: int, month: int):
        self.employee_id = employee_id
        self.year = year
        self.month = month
        super().__init__(
            f"Payroll already exists for employee {employee_id} "
            f"for {month:02d}/{year}"
        )


class InvalidRecordTransitionError(ConflictError):
    """Payroll record status transition is not allowed."""

    code: str = "INVALID_RECORD_TRANSITION"

    def __init__(self, record_id: str, from_status: str, to_status: str):
        self.record_id = record_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Payroll record {record_id} cannot move from "
            f"'{from_status}' to '{to_status}'"
        )


class InvalidCorrectionTransitionError(ConflictError):
    """Error correction status transition is not allowed."""

    code: str = "INVALID_CORRECTION_TRANSITION"

    def __init__(self, correction_id: str, from_status: str, to_status: str):
        self.correction_id = correction_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Error correction {correction_id} cannot move from "
            f"'{from_status}' to '{to_status}'"
        )


class ConcurrentModificationError(ConflictError):
    """
    Row was modified by another transaction between read and write.

    Raised when the version column check fails at flush.
    """

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"Concurrent modification detected on {entity} {entity_id}"
        )


# Validation


class InvalidDateRangeError(PayrollValidationError):
    """Payroll period start is after its end."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start: Any, end: Any):
        self.start = start
        self.end = end
        super().__init__(f"Invalid payroll period: {start} is after {end}")


class InvalidPeriodError(PayrollValidationError):
    """Payroll year/month does not name a calendar month."""

    code: str = "INVALID_PERIOD"

    def __init__(self, year: int, month: int):
        self.year = year
        self.month = month
        super().__init__(f"Invalid payroll period: {year}-{month}")


class InvalidCustomValueError(PayrollValidationError):
    """A custom formula input cannot be read as a decimal."""

    code: str = "INVALID_CUSTOM_VALUE"

    def __init__(self, key: str, value: Any):
        self.key = key
        self.value = value
        super().__init__(f"Custom value '{key}' is not numeric: {value!r}")


class CorrectionValidationError(PayrollValidationError):
    """Correction request does not satisfy the rules of its error type."""

    code: str = "CORRECTION_VALIDATION_FAILED"

    def __init__(self, error_type: str, message: str):
        self.error_type = error_type
        super().__init__(message)


class UnsupportedErrorTypeError(CorrectionValidationError):
    """Correction error type is not one of the known error types."""

    code: str = "UNSUPPORTED_ERROR_TYPE"

    def __init__(self, error_type: str):
        super().__init__(error_type, f"Unsupported error type: {error_type}")


class EmptyCorrectionDataError(CorrectionValidationError):
    """Correction request carries no field overrides."""

    code: str = "EMPTY_CORRECTION_DATA"

    def __init__(self, error_type: str):
        super().__init__(error_type, "Correction data is required")


class UnknownCorrectionFieldError(CorrectionValidationError):
    """Correction data names fields that are not correctable."""

    code: str = "UNKNOWN_CORRECTION_FIELD"

    def __init__(self, error_type: str, fields: list[str]):
        self.fields = fields
        super().__init__(
            error_type,
            f"Unknown correction field(s): {', '.join(sorted(fields))}",
        )


class InvalidCorrectionValueError(CorrectionValidationError):
    """Correction value for a field cannot be read as a decimal."""

    code: str = "INVALID_CORRECTION_VALUE"

    def __init__(self, error_type: str, field: str, value: Any):
        self.field = field
        self.value = value
        super().__init__(
            error_type, f"Correction value for {field} is not numeric: {value!r}"
        )


class DerivedFieldMismatchError(CorrectionValidationError):
    """
    Gross or net override disagrees with the value derived from the others.

    gross = basic + allowances + overtime and net = gross - deductions hold
    for every corrected record, so a derived override must agree.
    """

    code: str = "DERIVED_FIELD_MISMATCH"

    def __init__(
        self, error_type: str, field: str, requested: Decimal, derived: Decimal
    ):
        self.field = field
        self.requested = requested
        self.derived = derived
        super().__init__(
            error_type,
            f"{field} override {requested} does not match derived value {derived}",
        )


class FormulaValidationError(PayrollValidationError):
    """Formula expression uses syntax outside the allowed subset."""

    code: str = "FORMULA_VALIDATION_FAILED"

    def __init__(self, formula_name: str, errors: list[str]):
        self.formula_name = formula_name
        self.errors = errors
        super().__init__(
            f"Formula '{formula_name}' is invalid: {'; '.join(errors)}"
        )


# External dependency


class FormulaEvaluationError(ExternalDependencyError):
    """Formula failed while being evaluated against a context."""

    code: str = "FORMULA_EVALUATION_FAILED"

    def __init__(self, formula_name: str, reason: str):
        self.formula_name = formula_name
        self.reason = reason
        super().__init__(f"Formula '{formula_name}' failed: {reason}")


class ExchangeRateUnavailableError(ExternalDependencyError):
    """Currency provider could not supply a rate in time."""

    code: str = "EXCHANGE_RATE_UNAVAILABLE"

    def __init__(self, from_currency: str, to_currency: str, reason: str):
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.reason = reason
        super().__init__(
            f"Exchange rate {from_currency}->{to_currency} unavailable: {reason}"
        )


# Integrity


class ImmutabilityViolationError(IntegrityError):
    """Attempted to modify or delete an append-only row."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )


class AuditChainBrokenError(IntegrityError):
    """Audit trail hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_id: str, expected_hash: str, actual_hash: str):
        self.audit_id = audit_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_id}: "
            f"expected {expected_hash}, got {actual_hash}"
        )
