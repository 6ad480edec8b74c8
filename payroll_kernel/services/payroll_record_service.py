"""
PayrollRecordService -- lifecycle of persisted payroll records.

Responsibility:
    Calculates and persists one payroll record per employee per month,
    approves records, previews calculations without persisting, and reads
    records back as frozen DTOs.

Architecture position:
    Kernel > Services -- imperative shell.  Composes the context builder,
    the pure PayrollCalculator and AuditTrailService.  The branch-wide run
    lives in ``payroll_batch`` and calls ``create_record`` per employee.

Invariants enforced:
    - One record per (employee_id, year, month): checked before the
      calculation and enforced again by the UNIQUE constraint at flush.
    - Records move calculated -> approved only (RECORD_TRANSITIONS).
    - Every transition writes exactly one audit entry in the same
      transaction.

Failure modes:
    - DuplicatePayrollRecordError on a second record for the same period.
    - InvalidRecordTransitionError when approving a non-calculated record.
    - PayrollRecordNotFoundError for unknown ids.
    - ConcurrentModificationError when another writer updated the row.
    - Calculation and lookup errors propagate unchanged.

Audit relevance:
    ``record_calculated`` carries the full monetary snapshot;
    ``record_approved`` carries the approver and notes.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError as DBIntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from payroll_engines.calculator import PayrollCalculator
from payroll_kernel.domain.calculation import (
    PayrollCalculationRequest,
    PayrollCalculationResult,
)
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.providers import (
    AttendanceProvider,
    EmployeeDirectory,
    FormulaSource,
)
from payroll_kernel.domain.record import (
    RECORD_TRANSITIONS,
    PayrollRecordDTO,
    PayrollRecordStatus,
)
from payroll_kernel.exceptions import (
    ConcurrentModificationError,
    DuplicatePayrollRecordError,
    InvalidRecordTransitionError,
    PayrollRecordNotFoundError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.models.payroll_record import PayrollRecord
from payroll_kernel.services.audit_trail_service import AuditTrailService
from payroll_kernel.services.context_builder import (
    DEFAULT_OVERTIME_RATE,
    FormulaEvaluationContextBuilder,
)

logger = get_logger("services.payroll_record")


def _as_uuid(value: UUID | str) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


class PayrollRecordService:
    """
    Create, approve and read payroll records.

    Contract:
        With ``auto_commit=True`` (default) every public write commits on
        success and rolls back on any exception.  With ``auto_commit=False``
        writes only flush, and the caller owns the transaction (the branch
        batch runs each employee inside its own SAVEPOINT this way).

    Non-goals:
        - Does NOT change monetary fields after creation; that is the
          job of ErrorCorrectionService.
        - Does NOT delete records.
    """

    def __init__(
        self,
        session: Session,
        directory: EmployeeDirectory,
        attendance: AttendanceProvider,
        formula_source: FormulaSource,
        calculator: PayrollCalculator,
        clock: Clock | None = None,
        audit: AuditTrailService | None = None,
        custom_formulas_enabled: bool = True,
        default_currency: str = "USD",
        default_overtime_rate: Decimal = DEFAULT_OVERTIME_RATE,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._builder = FormulaEvaluationContextBuilder(
            directory, attendance, default_currency, default_overtime_rate
        )
        self._formula_source = formula_source
        self._calculator = calculator
        self._audit = audit or AuditTrailService(session, self._clock)
        self._custom_formulas_enabled = custom_formulas_enabled
        self._auto_commit = auto_commit

    @property
    def auto_commit(self) -> bool:
        return self._auto_commit

    def _commit(self) -> None:
        if self._auto_commit:
            self._session.commit()

    def _rollback(self) -> None:
        if self._auto_commit:
            self._session.rollback()

    # -------------------------------------------------------------------------
    # Calculation
    # -------------------------------------------------------------------------

    def preview_calculation(self, request: PayrollCalculationRequest) -> PayrollCalculationResult:
        """Calculate without persisting anything."""
        context = self._builder.build_context(
            request.employee_id,
            request.period_start,
            request.period_end,
            request.custom_values,
        )
        include = request.include_custom_formulas and self._custom_formulas_enabled
        formulas = (
            self._formula_source.get_active_formulas(context.organization_id, context.branch_id)
            if include
            else ()
        )
        return self._calculator.calculate(
            context=context,
            formulas=tuple(formulas),
            include_custom_formulas=include,
        )

    def create_record(
        self, request: PayrollCalculationRequest, actor_id: int
    ) -> PayrollRecordDTO:
        """
        Calculate and persist the record for ``request``'s period.

        Postconditions:
            - One new record with status ``calculated``.
            - One ``record_calculated`` audit entry.

        Raises:
            DuplicatePayrollRecordError: a record already exists for
                (employee_id, year, month).
        """
        with LogContext.bind(employee_id=request.employee_id, actor_id=actor_id):
            try:
                existing = self._find_for_period(request.employee_id, request.year, request.month)
                if existing is not None:
                    raise DuplicatePayrollRecordError(
                        request.employee_id, request.year, request.month
                    )

                employee = self._builder.get_employee(request.employee_id)
                result = self.preview_calculation(request)
                record = PayrollRecord.from_result(
                    result,
                    branch_id=employee.branch_id,
                    organization_id=employee.organization_id,
                    year=request.year,
                    month=request.month,
                    period_start=request.period_start,
                    period_end=request.period_end,
                    status=PayrollRecordStatus.CALCULATED.value,
                    created_by_id=actor_id,
                )

                savepoint = self._session.begin_nested()
                try:
                    self._session.add(record)
                    self._session.flush()
                    savepoint.commit()
                except DBIntegrityError as exc:
                    savepoint.rollback()
                    raise DuplicatePayrollRecordError(
                        request.employee_id, request.year, request.month
                    ) from exc

                self._audit.record_calculated(record, actor_id)
                dto = record.to_dto()
                self._commit()

                logger.info(
                    "payroll_record_created",
                    extra={
                        "record_id": str(dto.id),
                        "employee_id": request.employee_id,
                        "year": request.year,
                        "month": request.month,
                        "net_salary": str(dto.net_salary),
                    },
                )
                return dto
            except Exception:
                self._rollback()
                raise

    # -------------------------------------------------------------------------
    # Approval
    # -------------------------------------------------------------------------

    def approve_record(
        self,
        record_id: UUID | str,
        approver_id: int,
        notes: str | None = None,
    ) -> PayrollRecordDTO:
        """
        Move a record from calculated to approved.

        Raises:
            InvalidRecordTransitionError: the record is not ``calculated``.
        """
        record_id = _as_uuid(record_id)
        with LogContext.bind(record_id=record_id, actor_id=approver_id):
            try:
                record = self._load_for_update(record_id)
                current = PayrollRecordStatus(record.status)
                target = PayrollRecordStatus.APPROVED
                if target not in RECORD_TRANSITIONS[current]:
                    raise InvalidRecordTransitionError(
                        str(record_id), current.value, target.value
                    )

                record.status = target.value
                record.approved_by = approver_id
                record.approved_at = self._clock.now()
                record.approval_notes = notes
                record.updated_by_id = approver_id
                self._session.flush()

                self._audit.record_approved(record, approver_id, notes)
                dto = record.to_dto()
                self._commit()

                logger.info(
                    "payroll_record_approved",
                    extra={"record_id": str(record_id), "approver_id": approver_id},
                )
                return dto
            except StaleDataError as exc:
                self._rollback()
                raise ConcurrentModificationError("payroll_record", str(record_id)) from exc
            except Exception:
                self._rollback()
                raise

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_record(self, record_id: UUID | str) -> PayrollRecordDTO:
        record = self._session.get(PayrollRecord, _as_uuid(record_id))
        if record is None:
            raise PayrollRecordNotFoundError(str(record_id))
        return record.to_dto()

    def get_record_for_period(
        self, employee_id: int, year: int, month: int
    ) -> PayrollRecordDTO | None:
        record = self._find_for_period(employee_id, year, month)
        return record.to_dto() if record is not None else None

    def list_employee_records(
        self, employee_id: int, year: int, month: int | None = None
    ) -> list[PayrollRecordDTO]:
        """Records for an employee in a year (optionally one month), oldest first."""
        stmt = select(PayrollRecord).where(
            PayrollRecord.employee_id == employee_id,
            PayrollRecord.year == year,
        )
        if month is not None:
            stmt = stmt.where(PayrollRecord.month == month)
        stmt = stmt.order_by(PayrollRecord.month)
        return [r.to_dto() for r in self._session.execute(stmt).scalars()]

    def list_branch_records(self, branch_id: int, year: int, month: int) -> list[PayrollRecordDTO]:
        """Every record of a branch for one month, by employee id."""
        stmt = (
            select(PayrollRecord)
            .where(
                PayrollRecord.branch_id == branch_id,
                PayrollRecord.year == year,
                PayrollRecord.month == month,
            )
            .order_by(PayrollRecord.employee_id)
        )
        return [r.to_dto() for r in self._session.execute(stmt).scalars()]

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _find_for_period(self, employee_id: int, year: int, month: int) -> PayrollRecord | None:
        return self._session.execute(
            select(PayrollRecord).where(
                PayrollRecord.employee_id == employee_id,
                PayrollRecord.year == year,
                PayrollRecord.month == month,
            )
        ).scalar_one_or_none()

    def _load_for_update(self, record_id: UUID) -> PayrollRecord:
        record = self._session.execute(
            select(PayrollRecord)
            .where(PayrollRecord.id == record_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if record is None:
            raise PayrollRecordNotFoundError(str(record_id))
        return record
