"""Selectors for the payroll kernel (read side)."""

from payroll_kernel.selectors.audit_selector import AuditSelector

__all__ = ["AuditSelector"]
