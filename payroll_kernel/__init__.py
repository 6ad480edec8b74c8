"""
Payroll Kernel

Payroll calculation and error-correction engine with:
- One persisted payroll record per employee per month
- Pluggable, restricted-expression payroll formulas
- Approval-gated, audited corrections
- Full auditability via hash chain
- Exact decimal arithmetic throughout
"""

__version__ = "0.1.0"
