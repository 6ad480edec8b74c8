"""
BranchPayrollExecutor -- SAVEPOINT-per-employee branch payroll run.

Contract:
    ``process_branch_payroll`` creates one payroll record for every active
    employee of a branch for one month, continuing past per-employee
    failures.

Architecture: payroll_batch.  Imports from payroll_kernel, payroll_engines,
    payroll_config and payroll_services; nothing imports from here.

Invariants enforced:
    - SAVEPOINT isolation per employee: a failure rolls back that
      employee's partial writes only, so no record exists for a failed
      employee.
    - Employees that already have a record for the period are skipped,
      not failed.
    - All timestamps come from the injected Clock.
"""

from __future__ import annotations

import time
from uuid import uuid4

from sqlalchemy.orm import Session

from payroll_batch.types import (
    BatchItemStatus,
    BranchPayrollItemResult,
    BranchPayrollRunResult,
    job_status_for,
)
from payroll_config.schema import PayrollSettings
from payroll_kernel.domain.calculation import PayrollCalculationRequest
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.providers import (
    AttendanceProvider,
    CurrencyRateProvider,
    EmployeeDirectory,
    FormulaSource,
)
from payroll_kernel.exceptions import (
    DuplicatePayrollRecordError,
    InvalidPeriodError,
    PayrollKernelError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.services.payroll_record_service import PayrollRecordService
from payroll_services.orchestrator import PayrollOrchestrator

logger = get_logger("batch.executor")


class BranchPayrollExecutor:
    """
    Branch-wide payroll run.

    Contract:
        ``records`` must be built with ``auto_commit=False``; the executor
        owns the transaction and commits once at the end (when its own
        ``auto_commit`` is true).

    Non-goals:
        - Does NOT schedule runs.
        - Does NOT retry failed employees; re-running the branch picks them
          up because successful ones are skipped.
    """

    def __init__(
        self,
        session: Session,
        directory: EmployeeDirectory,
        records: PayrollRecordService,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        if records.auto_commit:
            raise ValueError("BranchPayrollExecutor needs a PayrollRecordService with auto_commit=False")
        self._session = session
        self._directory = directory
        self._records = records
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit

    @classmethod
    def from_settings(
        cls,
        session: Session,
        settings: PayrollSettings,
        directory: EmployeeDirectory,
        attendance: AttendanceProvider,
        formula_source: FormulaSource | None = None,
        currency_provider: CurrencyRateProvider | None = None,
        clock: Clock | None = None,
    ) -> BranchPayrollExecutor:
        orchestrator = PayrollOrchestrator(
            session,
            settings,
            directory,
            attendance,
            formula_source=formula_source,
            currency_provider=currency_provider,
            clock=clock,
            auto_commit=False,
        )
        return cls(session, directory, orchestrator.records, clock=orchestrator.clock)

    def process_branch_payroll(
        self,
        branch_id: int,
        year: int,
        month: int,
        actor_id: int,
    ) -> BranchPayrollRunResult:
        """
        Run payroll for every active employee in ``branch_id``.

        Raises:
            InvalidPeriodError: ``month`` is outside 1..12 (before any work).
        """
        if not 1 <= month <= 12:
            raise InvalidPeriodError(year, month)

        batch_id = uuid4()
        start = time.monotonic()
        started_at = self._clock.now()

        with LogContext.bind(batch_id=batch_id, actor_id=actor_id):
            try:
                employees = self._directory.list_active_employees(branch_id)
                logger.info(
                    "branch_payroll_started",
                    extra={
                        "branch_id": branch_id,
                        "year": year,
                        "month": month,
                        "employee_count": len(employees),
                    },
                )

                items = tuple(
                    self._process_employee(e.employee_id, year, month, actor_id)
                    for e in employees
                )

                if self._auto_commit:
                    self._session.commit()
            except Exception:
                if self._auto_commit:
                    self._session.rollback()
                raise

            result = BranchPayrollRunResult(
                batch_id=batch_id,
                branch_id=branch_id,
                year=year,
                month=month,
                status=job_status_for(items),
                items=items,
                started_at=started_at,
                completed_at=self._clock.now(),
                duration_ms=int((time.monotonic() - start) * 1000),
            )
            logger.info(
                "branch_payroll_completed",
                extra={
                    "branch_id": branch_id,
                    "status": result.status.value,
                    "succeeded": result.succeeded,
                    "skipped": result.skipped,
                    "failed": result.failed,
                    "duration_ms": result.duration_ms,
                },
            )
            return result

    def _process_employee(
        self, employee_id: int, year: int, month: int, actor_id: int
    ) -> BranchPayrollItemResult:
        item_start = time.monotonic()

        def _elapsed() -> int:
            return int((time.monotonic() - item_start) * 1000)

        with LogContext.bind(employee_id=employee_id):
            if self._records.get_record_for_period(employee_id, year, month) is not None:
                logger.info("branch_payroll_item_skipped", extra={"employee_id": employee_id})
                return BranchPayrollItemResult(
                    employee_id=employee_id,
                    status=BatchItemStatus.SKIPPED,
                    duration_ms=_elapsed(),
                )

            savepoint = self._session.begin_nested()
            try:
                record = self._records.create_record(
                    PayrollCalculationRequest.for_month(employee_id, year, month),
                    actor_id,
                )
                savepoint.commit()
                return BranchPayrollItemResult(
                    employee_id=employee_id,
                    status=BatchItemStatus.SUCCEEDED,
                    record_id=record.id,
                    net_salary=record.net_salary,
                    duration_ms=_elapsed(),
                )
            except DuplicatePayrollRecordError:
                savepoint.rollback()
                return BranchPayrollItemResult(
                    employee_id=employee_id,
                    status=BatchItemStatus.SKIPPED,
                    duration_ms=_elapsed(),
                )
            except PayrollKernelError as exc:
                savepoint.rollback()
                logger.warning(
                    "branch_payroll_item_failed",
                    extra={"employee_id": employee_id, "error_code": exc.code},
                )
                return BranchPayrollItemResult(
                    employee_id=employee_id,
                    status=BatchItemStatus.FAILED,
                    error_code=exc.code,
                    error_message=str(exc),
                    duration_ms=_elapsed(),
                )
            except Exception as exc:
                savepoint.rollback()
                logger.exception(
                    "branch_payroll_item_failed",
                    extra={"employee_id": employee_id, "error_code": "UNHANDLED_EXCEPTION"},
                )
                return BranchPayrollItemResult(
                    employee_id=employee_id,
                    status=BatchItemStatus.FAILED,
                    error_code="UNHANDLED_EXCEPTION",
                    error_message=str(exc),
                    duration_ms=_elapsed(),
                )
