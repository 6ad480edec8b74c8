"""
Module: payroll_kernel.models.error_correction
Responsibility: ORM persistence for proposed corrections to payroll records.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value types only.

Invariants enforced:
    - status holds a CorrectionStatus value; transitions are enforced by
      ErrorCorrectionService against CORRECTION_TRANSITIONS.
    - corrected_values is NULL unless status is 'processed' (CHECK
      constraint ck_correction_corrected_iff_processed).
    - Rows in a terminal status are frozen by db/immutability.py.

Failure modes:
    - IntegrityError if the corrected_values/status pairing is violated.
    - StaleDataError on concurrent update (version counter).
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase, UUIDString


class PayrollErrorCorrection(TrackedBase):
    """
    A proposed, approval-gated change to one payroll record.

    Guarantees:
        - original_values is captured when the correction is requested.
        - corrected_values is captured only when it is processed.
        - correction_data keys are CorrectableField names, values decimal strings.
    """

    __tablename__ = "payroll_error_corrections"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'processed', 'cancelled')",
            name="ck_correction_valid_status",
        ),
        CheckConstraint(
            "(status = 'processed' AND corrected_values IS NOT NULL) OR "
            "(status <> 'processed' AND corrected_values IS NULL)",
            name="ck_correction_corrected_iff_processed",
        ),
        Index("idx_correction_record", "payroll_record_id"),
        Index("idx_correction_status", "status"),
    )

    payroll_record_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("payroll_records.id"), nullable=False
    )
    error_type: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    correction_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    original_values: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    corrected_values: Mapped[dict[str, Any] | None] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )

    requested_by: Mapped[int] = mapped_column(BigInteger, nullable=False)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    approved_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejected_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Rejection / cancellation reason
    resolution_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def overrides(self):
        """correction_data as {CorrectableField: Decimal}."""
        from payroll_kernel.domain.correction import CorrectableField

        return {CorrectableField(k): Decimal(v) for k, v in self.correction_data.items()}

    def to_dto(self):
        from payroll_kernel.domain.correction import (
            CorrectionStatus,
            PayrollErrorCorrectionDTO,
            PayrollErrorType,
        )
        from payroll_kernel.domain.record import PayrollSnapshot

        return PayrollErrorCorrectionDTO(
            id=self.id,
            payroll_record_id=self.payroll_record_id,
            error_type=PayrollErrorType(self.error_type),
            correction_data={k: Decimal(v) for k, v in self.correction_data.items()},
            status=CorrectionStatus(self.status),
            original_values=PayrollSnapshot.from_dict(self.original_values),
            corrected_values=(
                PayrollSnapshot.from_dict(self.corrected_values)
                if self.corrected_values is not None
                else None
            ),
            requested_by=self.requested_by,
            requested_at=self.requested_at,
            reason=self.reason,
            description=self.description,
            notes=self.notes,
            approved_by=self.approved_by,
            approved_at=self.approved_at,
            approval_notes=self.approval_notes,
            rejected_by=self.rejected_by,
            rejected_at=self.rejected_at,
            processed_by=self.processed_by,
            processed_at=self.processed_at,
            cancelled_by=self.cancelled_by,
            cancelled_at=self.cancelled_at,
            resolution_reason=self.resolution_reason,
        )

    def __repr__(self) -> str:
        return (
            f"<PayrollErrorCorrection {self.id} record={self.payroll_record_id} "
            f"{self.error_type} ({self.status})>"
        )
