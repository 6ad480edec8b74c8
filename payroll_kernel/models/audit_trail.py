"""
Module: payroll_kernel.models.audit_trail
Responsibility: ORM persistence for the payroll audit trail.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit entries are append-only; no UPDATE or DELETE (db/immutability.py).
    - Hash chain integrity: hash = H(seq | action | payroll_record_id |
      payload_hash | prev_hash).  Validated by AuditTrailService.
    - seq is strictly increasing, allocated by SequenceService.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - AuditChainBrokenError when chain validation detects a hash mismatch.

Audit relevance:
    Every payroll record or correction status transition produces exactly
    one entry:
    - RECORD_CALCULATED, RECORD_APPROVED
    - CORRECTION_REQUESTED, CORRECTION_APPROVED, CORRECTION_REJECTED,
      CORRECTION_PROCESSED, CORRECTION_CANCELLED
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Types of auditable payroll actions."""

    # Record lifecycle
    RECORD_CALCULATED = "record_calculated"
    RECORD_APPROVED = "record_approved"

    # Correction lifecycle
    CORRECTION_REQUESTED = "correction_requested"
    CORRECTION_APPROVED = "correction_approved"
    CORRECTION_REJECTED = "correction_rejected"
    CORRECTION_PROCESSED = "correction_processed"
    CORRECTION_CANCELLED = "correction_cancelled"


class PayrollAuditEntry(Base):
    """
    One append-only audit trail entry.

    Guarantees:
        - seq is unique and strictly increasing.
        - prev_hash is None only for the genesis entry.

    Non-goals:
        - This model does NOT check hash correctness at INSERT time;
          that is the responsibility of AuditTrailService.
    """

    __tablename__ = "payroll_audit_trail"

    __table_args__ = (
        Index("idx_payroll_audit_record", "payroll_record_id"),
        Index("idx_payroll_audit_employee", "employee_id"),
        Index("idx_payroll_audit_action", "action"),
        Index("idx_payroll_audit_occurred", "occurred_at"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    payroll_record_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    employee_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    correction_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    action: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    old_values: Mapped[dict[str, Any] | None] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )
    new_values: Mapped[dict[str, Any] | None] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def hashed_payload(self) -> dict[str, Any]:
        """The fields covered by payload_hash."""
        return {
            "payroll_record_id": self.payroll_record_id,
            "employee_id": self.employee_id,
            "correction_id": self.correction_id,
            "action": self.action,
            "description": self.description,
            "user_id": self.user_id,
            "occurred_at": self.occurred_at,
            "old_values": self.old_values,
            "new_values": self.new_values,
            "reason": self.reason,
        }

    def to_dto(self):
        from payroll_kernel.domain.audit import AuditEntryDTO

        return AuditEntryDTO(
            id=self.id,
            seq=self.seq,
            payroll_record_id=self.payroll_record_id,
            employee_id=self.employee_id,
            correction_id=self.correction_id,
            action=AuditAction(self.action),
            description=self.description,
            user_id=self.user_id,
            occurred_at=self.occurred_at,
            old_values=self.old_values,
            new_values=self.new_values,
            reason=self.reason,
            hash=self.hash,
        )

    def __repr__(self) -> str:
        return f"<PayrollAuditEntry #{self.seq} {self.action} record={self.payroll_record_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None
