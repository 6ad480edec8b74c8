"""ORM models for payroll records, corrections and the audit trail."""

from payroll_kernel.models.audit_trail import AuditAction, PayrollAuditEntry
from payroll_kernel.models.error_correction import PayrollErrorCorrection
from payroll_kernel.models.payroll_record import PayrollRecord
from payroll_kernel.models.sequence import SequenceCounter

__all__ = [
    "AuditAction",
    "PayrollAuditEntry",
    "PayrollErrorCorrection",
    "PayrollRecord",
    "SequenceCounter",
]
