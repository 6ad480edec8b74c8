"""
AuditTrailService -- append-only, hash-chained payroll audit trail.

Responsibility:
    Writes one audit entry per payroll record or correction status
    transition and validates the hash chain for tamper detection.  Reading
    the trail page by page lives in ``selectors.audit_selector``.

Architecture position:
    Kernel > Services -- imperative shell, called by PayrollRecordService
    and ErrorCorrectionService inside their own transactions.

Invariants enforced:
    - Append-only: ``add_entry`` is the only write path; the ORM refuses
      UPDATE/DELETE on audit rows (db/immutability.py).
    - Chain integrity: ``hash = H(seq | action | record | payload_hash |
      prev_hash)``; every entry links to its predecessor.
    - seq comes from SequenceService, never from max(seq) + 1.

Failure modes:
    - AuditChainBrokenError from ``validate_chain`` on any mismatch.

Audit relevance:
    This IS the audit service.  It flushes but never commits, so an entry
    exists exactly when the transition it describes was committed.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.exceptions import AuditChainBrokenError
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.audit_trail import AuditAction, PayrollAuditEntry
from payroll_kernel.services.sequence_service import SequenceService
from payroll_kernel.utils.hashing import hash_audit_entry, hash_payload

logger = get_logger("services.audit_trail")


class AuditTrailService:
    """
    Writer for the payroll audit trail.

    Contract:
        Each ``record_*`` method appends exactly one entry and flushes.

    Non-goals:
        - Does NOT commit; the calling service owns the transaction.
        - Does NOT expose update or delete.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        return self._session.execute(
            select(PayrollAuditEntry.hash)
            .order_by(PayrollAuditEntry.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def add_entry(
        self,
        *,
        payroll_record_id: UUID,
        employee_id: int,
        action: AuditAction,
        description: str,
        user_id: int,
        correction_id: UUID | None = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        reason: str | None = None,
    ) -> PayrollAuditEntry:
        """
        Append one audit entry with hash chain linkage.

        Postconditions:
            - A new ``PayrollAuditEntry`` is flushed with the next ``seq``
              and ``prev_hash`` equal to the previous entry's ``hash``.
        """
        seq = self._sequence_service.next_value(SequenceService.AUDIT_ENTRY)
        prev_hash = self._get_last_hash()

        entry = PayrollAuditEntry(
            seq=seq,
            payroll_record_id=payroll_record_id,
            employee_id=employee_id,
            correction_id=correction_id,
            action=action.value,
            description=description,
            user_id=user_id,
            occurred_at=self._clock.now(),
            old_values=old_values,
            new_values=new_values,
            reason=reason,
        )
        entry.payload_hash = hash_payload(entry.hashed_payload())
        entry.prev_hash = prev_hash
        entry.hash = hash_audit_entry(
            seq=seq,
            action=action.value,
            payroll_record_id=str(payroll_record_id),
            payload_hash=entry.payload_hash,
            prev_hash=prev_hash,
        )

        self._session.add(entry)
        self._session.flush()

        logger.info(
            "audit_entry_created",
            extra={
                "action": action.value,
                "payroll_record_id": str(payroll_record_id),
                "employee_id": employee_id,
                "seq": seq,
            },
        )
        return entry

    # Domain-specific recording methods

    def record_calculated(self, record, user_id: int) -> PayrollAuditEntry:
        return self.add_entry(
            payroll_record_id=record.id,
            employee_id=record.employee_id,
            action=AuditAction.RECORD_CALCULATED,
            description=f"Payroll calculated for {record.year}-{record.month:02d}",
            user_id=user_id,
            new_values=record.snapshot().to_dict(),
        )

    def record_approved(
        self, record, user_id: int, notes: str | None = None
    ) -> PayrollAuditEntry:
        return self.add_entry(
            payroll_record_id=record.id,
            employee_id=record.employee_id,
            action=AuditAction.RECORD_APPROVED,
            description="Payroll record approved",
            user_id=user_id,
            reason=notes,
        )

    def record_correction_requested(
        self, record, correction, user_id: int
    ) -> PayrollAuditEntry:
        return self.add_entry(
            payroll_record_id=record.id,
            employee_id=record.employee_id,
            correction_id=correction.id,
            action=AuditAction.CORRECTION_REQUESTED,
            description="Error correction request created",
            user_id=user_id,
            old_values=correction.original_values,
            new_values=dict(correction.correction_data),
            reason=correction.reason,
        )

    def record_correction_approved(
        self, record, correction, user_id: int, notes: str | None = None
    ) -> PayrollAuditEntry:
        return self.add_entry(
            payroll_record_id=record.id,
            employee_id=record.employee_id,
            correction_id=correction.id,
            action=AuditAction.CORRECTION_APPROVED,
            description="Error correction approved",
            user_id=user_id,
            reason=notes,
        )

    def record_correction_rejected(
        self, record, correction, user_id: int, reason: str
    ) -> PayrollAuditEntry:
        return self.add_entry(
            payroll_record_id=record.id,
            employee_id=record.employee_id,
            correction_id=correction.id,
            action=AuditAction.CORRECTION_REJECTED,
            description="Error correction rejected",
            user_id=user_id,
            reason=reason,
        )

    def record_correction_processed(
        self,
        record,
        correction,
        user_id: int,
        old_values: dict[str, Any],
        new_values: dict[str, Any],
    ) -> PayrollAuditEntry:
        return self.add_entry(
            payroll_record_id=record.id,
            employee_id=record.employee_id,
            correction_id=correction.id,
            action=AuditAction.CORRECTION_PROCESSED,
            description="Error correction processed",
            user_id=user_id,
            old_values=old_values,
            new_values=new_values,
        )

    def record_correction_cancelled(
        self, record, correction, user_id: int, reason: str
    ) -> PayrollAuditEntry:
        return self.add_entry(
            payroll_record_id=record.id,
            employee_id=record.employee_id,
            correction_id=correction.id,
            action=AuditAction.CORRECTION_CANCELLED,
            description="Error correction cancelled",
            user_id=user_id,
            reason=reason,
        )

    def validate_chain(self) -> bool:
        """
        Validate the entire audit chain.

        Postconditions:
            - Returns ``True`` only if every entry's payload hash and chained
              hash recompute to the stored values and every ``prev_hash``
              matches its predecessor's ``hash``.

        Raises:
            AuditChainBrokenError: If chain validation fails at any point.
        """
        entries = self._session.execute(
            select(PayrollAuditEntry).order_by(PayrollAuditEntry.seq)
        ).scalars().all()

        previous_hash: str | None = None
        for entry in entries:
            if entry.prev_hash != previous_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"seq": entry.seq, "check": "linkage"},
                )
                raise AuditChainBrokenError(
                    str(entry.id), previous_hash or "None", entry.prev_hash or "None"
                )

            payload_hash = hash_payload(entry.hashed_payload())
            expected_hash = hash_audit_entry(
                seq=entry.seq,
                action=entry.action,
                payroll_record_id=str(entry.payroll_record_id),
                payload_hash=payload_hash,
                prev_hash=entry.prev_hash,
            )
            if entry.hash != expected_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"seq": entry.seq, "check": "hash"},
                )
                raise AuditChainBrokenError(str(entry.id), expected_hash, entry.hash)

            previous_hash = entry.hash

        logger.info("audit_chain_valid", extra={"entry_count": len(entries)})
        return True
