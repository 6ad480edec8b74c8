"""
payroll_batch.types -- Pure frozen dataclasses for branch payroll runs.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class BatchJobStatus(str, Enum):
    """Outcome of a whole branch run."""

    COMPLETED = "completed"  # No employee failed
    PARTIALLY_COMPLETED = "partially_completed"  # Some failed, some did not
    FAILED = "failed"  # Every employee failed


class BatchItemStatus(str, Enum):
    """Outcome for one employee within a run."""

    SUCCEEDED = "succeeded"  # Record created
    SKIPPED = "skipped"  # Record already existed for the period
    FAILED = "failed"  # Error captured; no record created


@dataclass(frozen=True)
class BranchPayrollItemResult:
    """Result of processing one employee."""

    employee_id: int
    status: BatchItemStatus
    record_id: UUID | None = None
    net_salary: Decimal | None = None
    error_code: str | None = None
    error_message: str | None = None
    duration_ms: int = 0

    @property
    def is_success(self) -> bool:
        return self.status is BatchItemStatus.SUCCEEDED


@dataclass(frozen=True)
class BranchPayrollRunResult:
    """Result of one ``process_branch_payroll`` call."""

    batch_id: UUID
    branch_id: int
    year: int
    month: int
    status: BatchJobStatus
    items: tuple[BranchPayrollItemResult, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def succeeded(self) -> int:
        return sum(1 for i in self.items if i.status is BatchItemStatus.SUCCEEDED)

    @property
    def skipped(self) -> int:
        return sum(1 for i in self.items if i.status is BatchItemStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return sum(1 for i in self.items if i.status is BatchItemStatus.FAILED)

    @property
    def failures(self) -> tuple[BranchPayrollItemResult, ...]:
        return tuple(i for i in self.items if i.status is BatchItemStatus.FAILED)

    @property
    def total_net_salary(self) -> Decimal:
        return sum(
            (i.net_salary for i in self.items if i.net_salary is not None),
            Decimal("0"),
        )


def job_status_for(items: tuple[BranchPayrollItemResult, ...]) -> BatchJobStatus:
    """COMPLETED unless something failed; FAILED only if everything did."""
    failed = sum(1 for i in items if i.status is BatchItemStatus.FAILED)
    if failed == 0:
        return BatchJobStatus.COMPLETED
    if failed == len(items):
        return BatchJobStatus.FAILED
    return BatchJobStatus.PARTIALLY_COMPLETED
