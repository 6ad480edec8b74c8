"""
payroll_batch -- Branch payroll runs.

Runs payroll for every active employee of a branch with per-employee
SAVEPOINT isolation.  Nothing in payroll_kernel, payroll_engines,
payroll_config or payroll_services imports from payroll_batch.
"""

from payroll_batch.executor import BranchPayrollExecutor
from payroll_batch.types import (
    BatchItemStatus,
    BatchJobStatus,
    BranchPayrollItemResult,
    BranchPayrollRunResult,
)

__all__ = [
    "BatchItemStatus",
    "BatchJobStatus",
    "BranchPayrollExecutor",
    "BranchPayrollItemResult",
    "BranchPayrollRunResult",
]
