"""Pure domain types for the payroll kernel.  No I/O."""

from payroll_kernel.domain.audit import AuditEntryDTO, Page
from payroll_kernel.domain.calculation import (
    AttendanceRecord,
    AttendanceStatus,
    EmployeeProfile,
    FormulaEvaluationContext,
    PayrollCalculationRequest,
    PayrollCalculationResult,
    round_money,
)
from payroll_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from payroll_kernel.domain.correction import (
    CORRECTION_TRANSITIONS,
    TERMINAL_CORRECTION_STATUSES,
    CorrectableField,
    CorrectionPreview,
    CorrectionResult,
    CorrectionStatus,
    ErrorCorrectionRequest,
    FieldChange,
    PayrollErrorCorrectionDTO,
    PayrollErrorType,
)
from payroll_kernel.domain.formula import FormulaType, PayrollFormula
from payroll_kernel.domain.providers import (
    AttendanceProvider,
    CurrencyRateProvider,
    EmployeeDirectory,
    FormulaEngine,
    FormulaSource,
)
from payroll_kernel.domain.record import (
    RECORD_TRANSITIONS,
    PayrollRecordDTO,
    PayrollRecordStatus,
    PayrollSnapshot,
)

__all__ = [
    "AttendanceProvider",
    "AttendanceRecord",
    "AuditEntryDTO",
    "AttendanceStatus",
    "CORRECTION_TRANSITIONS",
    "Clock",
    "CorrectableField",
    "CorrectionPreview",
    "CorrectionResult",
    "CorrectionStatus",
    "CurrencyRateProvider",
    "DeterministicClock",
    "EmployeeDirectory",
    "EmployeeProfile",
    "ErrorCorrectionRequest",
    "FieldChange",
    "FormulaEngine",
    "FormulaEvaluationContext",
    "FormulaSource",
    "FormulaType",
    "Page",
    "PayrollCalculationRequest",
    "PayrollCalculationResult",
    "PayrollErrorCorrectionDTO",
    "PayrollErrorType",
    "PayrollFormula",
    "PayrollRecordDTO",
    "PayrollRecordStatus",
    "PayrollSnapshot",
    "RECORD_TRANSITIONS",
    "SystemClock",
    "TERMINAL_CORRECTION_STATUSES",
    "round_money",
]
