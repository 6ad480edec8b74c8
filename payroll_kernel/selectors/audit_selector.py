"""
Module: payroll_kernel.selectors.audit_selector
Responsibility: Paged, filtered read access to the payroll audit trail.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.

Invariants enforced:
    - Read-only.
    - Newest first: ordered by occurred_at descending, ties broken by seq
      descending, so paging is stable.

Failure modes:
    - ValueError for page < 1 or page_size outside 1..500.
    - Returns an empty page when nothing matches; never raises on absence.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from payroll_kernel.domain.audit import AuditEntryDTO, Page
from payroll_kernel.models.audit_trail import AuditAction, PayrollAuditEntry
from payroll_kernel.selectors.base import BaseSelector

MAX_PAGE_SIZE = 500


class AuditSelector(BaseSelector[PayrollAuditEntry]):
    """
    Selector for audit trail queries.

    Guarantees:
        - All filters combine with AND; ``start``/``end`` are inclusive.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def query(
        self,
        payroll_record_id: UUID | str | None = None,
        employee_id: int | None = None,
        action: AuditAction | str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Page[AuditEntryDTO]:
        if page < 1:
            raise ValueError("page must be >= 1")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")

        conditions = []
        if payroll_record_id is not None:
            record_id = (
                payroll_record_id
                if isinstance(payroll_record_id, UUID)
                else UUID(str(payroll_record_id))
            )
            conditions.append(PayrollAuditEntry.payroll_record_id == record_id)
        if employee_id is not None:
            conditions.append(PayrollAuditEntry.employee_id == employee_id)
        if action is not None:
            conditions.append(PayrollAuditEntry.action == AuditAction(action).value)
        if start is not None:
            conditions.append(PayrollAuditEntry.occurred_at >= start)
        if end is not None:
            conditions.append(PayrollAuditEntry.occurred_at <= end)

        total = self.session.execute(
            select(func.count()).select_from(PayrollAuditEntry).where(*conditions)
        ).scalar_one()

        rows = self.session.execute(
            select(PayrollAuditEntry)
            .where(*conditions)
            .order_by(PayrollAuditEntry.occurred_at.desc(), PayrollAuditEntry.seq.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars().all()

        return Page(
            items=tuple(row.to_dto() for row in rows),
            page=page,
            page_size=page_size,
            total=total,
        )

    def for_record(self, payroll_record_id: UUID | str) -> list[AuditEntryDTO]:
        """Complete history of one record, oldest first."""
        record_id = (
            payroll_record_id
            if isinstance(payroll_record_id, UUID)
            else UUID(str(payroll_record_id))
        )
        rows = self.session.execute(
            select(PayrollAuditEntry)
            .where(PayrollAuditEntry.payroll_record_id == record_id)
            .order_by(PayrollAuditEntry.seq)
        ).scalars().all()
        return [row.to_dto() for row in rows]
