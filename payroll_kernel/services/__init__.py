"""Services for the payroll kernel (write side)."""

from payroll_kernel.services.audit_trail_service import AuditTrailService
from payroll_kernel.services.context_builder import FormulaEvaluationContextBuilder
from payroll_kernel.services.error_correction_service import ErrorCorrectionService
from payroll_kernel.services.payroll_record_service import PayrollRecordService
from payroll_kernel.services.sequence_service import SequenceService

__all__ = [
    "AuditTrailService",
    "ErrorCorrectionService",
    "FormulaEvaluationContextBuilder",
    "PayrollRecordService",
    "SequenceService",
]
