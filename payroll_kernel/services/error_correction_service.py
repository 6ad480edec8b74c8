"""
ErrorCorrectionService -- approval-gated corrections to payroll records.

Responsibility:
    Runs the correction state machine: request (with preview), approve,
    reject, cancel and process.  Processing is the only path that changes
    the monetary fields of a persisted payroll record.

Architecture position:
    Kernel > Services -- imperative shell around the pure correction
    arithmetic in ``payroll_engines.correction``.

Invariants enforced:
    - Transitions follow CORRECTION_TRANSITIONS; processed implies
      approved, and terminal corrections never change again.
    - corrected_values is written only on processing.
    - Processing re-applies the stored overrides to the live record, not to
      the snapshot taken at request time.
    - Every transition writes exactly one audit entry in the same
      transaction.
    - The correction and its record are loaded SELECT ... FOR UPDATE; the
      version counters turn lost updates into ConcurrentModificationError.

Failure modes:
    - CorrectionValidationError (and subclasses) for bad correction data.
    - InvalidCorrectionTransitionError for moves the state machine forbids.
    - CorrectionNotFoundError / PayrollRecordNotFoundError for unknown ids.
    - ConcurrentModificationError on stale writes.

Audit relevance:
    Request entries carry original snapshot and requested overrides;
    processing entries carry old and new record snapshots.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from payroll_engines.calculator import refresh_negative_net_flag
from payroll_engines.correction import (
    apply_overrides,
    parse_correction_data,
    parse_error_type,
    preview_correction,
    serialize_overrides,
)
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.correction import (
    CorrectionResult,
    CorrectionStatus,
    ErrorCorrectionRequest,
    PayrollErrorCorrectionDTO,
    can_transition,
)
from payroll_kernel.exceptions import (
    ConcurrentModificationError,
    CorrectionNotFoundError,
    CorrectionValidationError,
    InvalidCorrectionTransitionError,
    PayrollRecordNotFoundError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.models.error_correction import PayrollErrorCorrection
from payroll_kernel.models.payroll_record import PayrollRecord
from payroll_kernel.services.audit_trail_service import AuditTrailService

logger = get_logger("services.error_correction")


def _as_uuid(value: UUID | str) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


class ErrorCorrectionService:
    """
    Correction workflow over persisted payroll records.

    Contract:
        Each public write method commits on success and rolls back on any
        exception (``auto_commit=True``), returning frozen DTOs.

    Non-goals:
        - Does NOT decide who may approve; callers pass an authenticated
          actor id.
        - Does NOT recalculate from attendance; corrections are overrides.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrailService | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._audit = audit or AuditTrailService(session, self._clock)
        self._auto_commit = auto_commit

    def _commit(self) -> None:
        if self._auto_commit:
            self._session.commit()

    def _rollback(self) -> None:
        if self._auto_commit:
            self._session.rollback()

    # -------------------------------------------------------------------------
    # Request
    # -------------------------------------------------------------------------

    def create_correction(self, request: ErrorCorrectionRequest) -> CorrectionResult:
        """
        Validate and store a pending correction.

        Postconditions:
            - A ``pending`` correction with ``original_values`` taken from
              the live record and no ``corrected_values``.
            - One ``correction_requested`` audit entry.
            - The record itself is unchanged; the returned preview shows
              what processing would produce now.
        """
        record_id = _as_uuid(request.payroll_record_id)
        with LogContext.bind(record_id=record_id, actor_id=request.requested_by):
            try:
                error_type = parse_error_type(request.error_type)
                overrides = parse_correction_data(error_type, request.correction_data)

                record = self._session.get(PayrollRecord, record_id)
                if record is None:
                    raise PayrollRecordNotFoundError(str(record_id))

                snapshot = record.snapshot()
                preview = preview_correction(snapshot, overrides, error_type.value)

                correction = PayrollErrorCorrection(
                    payroll_record_id=record_id,
                    error_type=error_type.value,
                    description=request.description,
                    correction_data=serialize_overrides(overrides),
                    status=CorrectionStatus.PENDING.value,
                    original_values=snapshot.to_dict(),
                    corrected_values=None,
                    requested_by=request.requested_by,
                    requested_at=self._clock.now(),
                    reason=request.reason,
                    notes=request.notes,
                    created_by_id=request.requested_by,
                )
                self._session.add(correction)
                self._session.flush()

                self._audit.record_correction_requested(
                    record, correction, request.requested_by
                )
                dto = correction.to_dto()
                self._commit()

                logger.info(
                    "correction_requested",
                    extra={
                        "correction_id": str(dto.id),
                        "record_id": str(record_id),
                        "error_type": error_type.value,
                        "fields": sorted(f.value for f in overrides),
                    },
                )
                return CorrectionResult(correction=dto, preview=preview)
            except Exception:
                self._rollback()
                raise

    def validate_correction(self, request: ErrorCorrectionRequest) -> list[str]:
        """
        Dry-run the checks ``create_correction`` performs.

        Returns the error messages; an empty list means the request would be
        accepted against the record as it is now.  Nothing is written.
        """
        errors: list[str] = []
        record = self._session.get(PayrollRecord, _as_uuid(request.payroll_record_id))
        if record is None:
            errors.append("Payroll record not found")

        try:
            error_type = parse_error_type(request.error_type)
            overrides = parse_correction_data(error_type, request.correction_data)
            if record is not None:
                apply_overrides(record.snapshot(), overrides, error_type.value)
        except CorrectionValidationError as exc:
            errors.append(str(exc))

        if errors:
            logger.info(
                "correction_validation_failed",
                extra={
                    "record_id": str(request.payroll_record_id),
                    "errors": errors,
                },
            )
        return errors

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def approve(
        self, correction_id: UUID | str, approver_id: int, notes: str | None = None
    ) -> PayrollErrorCorrectionDTO:
        """pending -> approved."""

        def _apply(correction: PayrollErrorCorrection, record: PayrollRecord) -> None:
            correction.approved_by = approver_id
            correction.approved_at = self._clock.now()
            correction.approval_notes = notes
            self._session.flush()
            self._audit.record_correction_approved(record, correction, approver_id, notes)

        return self._transition(
            correction_id, CorrectionStatus.APPROVED, approver_id, _apply,
            required=CorrectionStatus.PENDING,
        )

    def reject(
        self, correction_id: UUID | str, rejector_id: int, reason: str
    ) -> PayrollErrorCorrectionDTO:
        """pending -> rejected."""

        def _apply(correction: PayrollErrorCorrection, record: PayrollRecord) -> None:
            correction.rejected_by = rejector_id
            correction.rejected_at = self._clock.now()
            correction.resolution_reason = reason
            self._session.flush()
            self._audit.record_correction_rejected(record, correction, rejector_id, reason)

        return self._transition(
            correction_id, CorrectionStatus.REJECTED, rejector_id, _apply,
            required=CorrectionStatus.PENDING,
        )

    def cancel(
        self, correction_id: UUID | str, canceller_id: int, reason: str
    ) -> PayrollErrorCorrectionDTO:
        """pending or approved -> cancelled."""

        def _apply(correction: PayrollErrorCorrection, record: PayrollRecord) -> None:
            correction.cancelled_by = canceller_id
            correction.cancelled_at = self._clock.now()
            correction.resolution_reason = reason
            self._session.flush()
            self._audit.record_correction_cancelled(record, correction, canceller_id, reason)

        return self._transition(
            correction_id, CorrectionStatus.CANCELLED, canceller_id, _apply
        )

    def process(
        self, correction_id: UUID | str, processor_id: int
    ) -> PayrollErrorCorrectionDTO:
        """
        approved -> processed, applying the overrides to the live record.

        Postconditions:
            - The record's monetary fields equal the overrides applied to
              its state at processing time, with gross and net recomputed.
            - ``corrected_values`` holds that new state, including the
              refreshed ``calculation_errors``.
            - The negative-net entry in ``calculation_errors`` tracks the
              corrected net salary.
            - One ``correction_processed`` audit entry with old and new
              snapshots.
        """

        def _apply(correction: PayrollErrorCorrection, record: PayrollRecord) -> None:
            old = record.snapshot()
            new = apply_overrides(old, correction.overrides(), correction.error_type)
            old_errors = list(record.calculation_errors)
            new_errors = refresh_negative_net_flag(old_errors, new.net_salary)
            record.apply_snapshot(new, updated_by_id=processor_id)
            record.calculation_errors = new_errors

            old_values = {**old.to_dict(), "calculation_errors": old_errors}
            new_values = {**new.to_dict(), "calculation_errors": new_errors}
            correction.corrected_values = new_values
            correction.processed_by = processor_id
            correction.processed_at = self._clock.now()
            self._session.flush()

            self._audit.record_correction_processed(
                record, correction, processor_id, old_values, new_values
            )
            logger.info(
                "payroll_record_corrected",
                extra={
                    "record_id": str(record.id),
                    "old_net_salary": str(old.net_salary),
                    "new_net_salary": str(new.net_salary),
                },
            )

        return self._transition(
            correction_id, CorrectionStatus.PROCESSED, processor_id, _apply,
            required=CorrectionStatus.APPROVED,
        )

    def _transition(
        self,
        correction_id: UUID | str,
        target: CorrectionStatus,
        actor_id: int,
        apply,
        required: CorrectionStatus | None = None,
    ) -> PayrollErrorCorrectionDTO:
        """
        Lock, check and move one correction.

        ``required`` narrows the allowed source state beyond what
        CORRECTION_TRANSITIONS permits.
        """
        correction_id = _as_uuid(correction_id)
        with LogContext.bind(correction_id=correction_id, actor_id=actor_id):
            try:
                correction = self._load_correction_for_update(correction_id)
                record = self._load_record_for_update(correction.payroll_record_id)

                current = CorrectionStatus(correction.status)
                allowed = can_transition(current, target) and (
                    required is None or current is required
                )
                if not allowed:
                    logger.warning(
                        "correction_transition_rejected",
                        extra={
                            "correction_id": str(correction_id),
                            "from_status": current.value,
                            "to_status": target.value,
                        },
                    )
                    raise InvalidCorrectionTransitionError(
                        str(correction_id), current.value, target.value
                    )

                correction.status = target.value
                correction.updated_by_id = actor_id
                apply(correction, record)
                dto = correction.to_dto()
                self._commit()

                logger.info(
                    f"correction_{target.value}",
                    extra={
                        "correction_id": str(correction_id),
                        "from_status": current.value,
                        "to_status": target.value,
                    },
                )
                return dto
            except StaleDataError as exc:
                self._rollback()
                raise ConcurrentModificationError(
                    "payroll_error_correction", str(correction_id)
                ) from exc
            except Exception:
                self._rollback()
                raise

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_correction(self, correction_id: UUID | str) -> PayrollErrorCorrectionDTO:
        correction = self._session.get(PayrollErrorCorrection, _as_uuid(correction_id))
        if correction is None:
            raise CorrectionNotFoundError(str(correction_id))
        return correction.to_dto()

    def list_corrections(
        self,
        payroll_record_id: UUID | str,
        status: CorrectionStatus | None = None,
    ) -> list[PayrollErrorCorrectionDTO]:
        stmt = select(PayrollErrorCorrection).where(
            PayrollErrorCorrection.payroll_record_id == _as_uuid(payroll_record_id)
        )
        if status is not None:
            stmt = stmt.where(PayrollErrorCorrection.status == CorrectionStatus(status).value)
        stmt = stmt.order_by(PayrollErrorCorrection.requested_at)
        return [c.to_dto() for c in self._session.execute(stmt).scalars()]

    def list_pending_corrections(
        self, branch_id: int | None = None
    ) -> list[PayrollErrorCorrectionDTO]:
        """Pending corrections, oldest request first, optionally for one branch."""
        stmt = select(PayrollErrorCorrection).where(
            PayrollErrorCorrection.status == CorrectionStatus.PENDING.value
        )
        if branch_id is not None:
            stmt = stmt.join(
                PayrollRecord, PayrollRecord.id == PayrollErrorCorrection.payroll_record_id
            ).where(PayrollRecord.branch_id == branch_id)
        stmt = stmt.order_by(PayrollErrorCorrection.requested_at)
        return [c.to_dto() for c in self._session.execute(stmt).scalars()]

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _load_correction_for_update(self, correction_id: UUID) -> PayrollErrorCorrection:
        correction = self._session.execute(
            select(PayrollErrorCorrection)
            .where(PayrollErrorCorrection.id == correction_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if correction is None:
            raise CorrectionNotFoundError(str(correction_id))
        return correction

    def _load_record_for_update(self, record_id: UUID) -> PayrollRecord:
        record = self._session.execute(
            select(PayrollRecord)
            .where(PayrollRecord.id == record_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if record is None:
            raise PayrollRecordNotFoundError(str(record_id))
        return record
