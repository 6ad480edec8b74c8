"""
Tests for the branch-wide payroll run.

Each employee runs in its own SAVEPOINT: one employee failing never undoes
another employee's record.
"""

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from payroll_batch.executor import BranchPayrollExecutor
from payroll_batch.types import (
    BatchItemStatus,
    BatchJobStatus,
    BranchPayrollItemResult,
    job_status_for,
)
from payroll_kernel.domain.calculation import EmployeeProfile, PayrollCalculationRequest
from payroll_kernel.domain.formula import FormulaType, PayrollFormula
from payroll_kernel.exceptions import InvalidPeriodError
from payroll_kernel.models.audit_trail import PayrollAuditEntry
from payroll_kernel.models.payroll_record import PayrollRecord
from payroll_services.directory import StaticFormulaSource
from payroll_services.orchestrator import PayrollOrchestrator

ACTOR_ID = 100


class _FlakyAttendance:
    """Delegates to an attendance provider but breaks for one employee."""

    def __init__(self, inner, broken_employee_id):
        self._inner = inner
        self._broken = broken_employee_id

    def get_attendance_in_range(self, employee_id, start, end):
        if employee_id == self._broken:
            raise RuntimeError("attendance store unavailable")
        return self._inner.get_attendance_in_range(employee_id, start, end)


def _profile(employee_id, department="Engineering", branch_id=1, is_active=True):
    return EmployeeProfile(
        employee_id=employee_id,
        branch_id=branch_id,
        organization_id=1,
        basic_salary=Decimal("2000"),
        department=department,
        is_active=is_active,
    )


@pytest.fixture
def branch_directory(directory):
    directory.add(_profile(8))
    directory.add(_profile(9, department="Sales"))
    directory.add(_profile(10, is_active=False))
    directory.add(_profile(11, branch_id=2))
    return directory


@pytest.fixture
def sales_formula_source():
    # Fails only for Sales employees.
    return StaticFormulaSource([
        PayrollFormula("sales_bonus", FormulaType.ALLOWANCE, "basic_salary / 0", department="Sales"),
    ])


@pytest.fixture
def executor(session, settings, branch_directory, attendance, sales_formula_source, deterministic_clock):
    return BranchPayrollExecutor.from_settings(
        session,
        settings,
        branch_directory,
        attendance,
        formula_source=sales_formula_source,
        clock=deterministic_clock,
    )


def _record_count(session) -> int:
    return session.execute(select(func.count()).select_from(PayrollRecord)).scalar_one()


class TestProcessBranchPayroll:

    def test_mixed_outcome(self, session, executor):
        result = executor.process_branch_payroll(1, 2025, 1, ACTOR_ID)

        assert result.status is BatchJobStatus.PARTIALLY_COMPLETED
        assert [i.employee_id for i in result.items] == [7, 8, 9]
        assert result.succeeded == 2
        assert result.failed == 1
        assert result.skipped == 0

        failure = result.failures[0]
        assert failure.employee_id == 9
        assert failure.error_code == "FORMULA_EVALUATION_FAILED"
        assert "sales_bonus" in failure.error_message

    def test_failed_employee_has_no_record(self, session, executor):
        executor.process_branch_payroll(1, 2025, 1, ACTOR_ID)

        employee_ids = set(session.execute(select(PayrollRecord.employee_id)).scalars())
        assert employee_ids == {7, 8}
        audited = set(session.execute(select(PayrollAuditEntry.employee_id)).scalars())
        assert audited == {7, 8}

    def test_successful_items_carry_record_and_net(self, executor):
        result = executor.process_branch_payroll(1, 2025, 1, ACTOR_ID)

        by_employee = {i.employee_id: i for i in result.items}
        assert by_employee[7].net_salary == Decimal("3281.25")
        assert by_employee[7].record_id is not None
        assert by_employee[8].net_salary == Decimal("2000")
        assert result.total_net_salary == Decimal("5281.25")

    def test_rerun_skips_existing_records(self, session, executor):
        executor.process_branch_payroll(1, 2025, 1, ACTOR_ID)
        second = executor.process_branch_payroll(1, 2025, 1, ACTOR_ID)

        statuses = {i.employee_id: i.status for i in second.items}
        assert statuses == {
            7: BatchItemStatus.SKIPPED,
            8: BatchItemStatus.SKIPPED,
            9: BatchItemStatus.FAILED,
        }
        assert _record_count(session) == 2

    def test_existing_record_is_skipped(self, session, executor, orchestrator):
        orchestrator.records.create_record(
            PayrollCalculationRequest.for_month(7, 2025, 1), ACTOR_ID
        )
        result = executor.process_branch_payroll(1, 2025, 1, ACTOR_ID)

        assert result.items[0].status is BatchItemStatus.SKIPPED
        assert _record_count(session) == 2

    def test_unexpected_error_is_isolated(
        self, session, settings, branch_directory, attendance, deterministic_clock
    ):
        executor = BranchPayrollExecutor.from_settings(
            session,
            settings,
            branch_directory,
            _FlakyAttendance(attendance, broken_employee_id=8),
            clock=deterministic_clock,
        )
        result = executor.process_branch_payroll(1, 2025, 1, ACTOR_ID)

        by_employee = {i.employee_id: i for i in result.items}
        assert by_employee[8].status is BatchItemStatus.FAILED
        assert by_employee[8].error_code == "UNHANDLED_EXCEPTION"
        assert by_employee[7].is_success
        assert by_employee[9].is_success

    def test_empty_branch_completes(self, executor):
        result = executor.process_branch_payroll(99, 2025, 1, ACTOR_ID)

        assert result.status is BatchJobStatus.COMPLETED
        assert result.total == 0

    def test_invalid_month_rejected_before_work(self, session, executor):
        with pytest.raises(InvalidPeriodError):
            executor.process_branch_payroll(1, 2025, 0, ACTOR_ID)
        assert _record_count(session) == 0

    def test_result_timing(self, executor, deterministic_clock):
        result = executor.process_branch_payroll(1, 2025, 1, ACTOR_ID)

        assert result.started_at == datetime(2025, 1, 31, 12, 0, tzinfo=UTC)
        assert result.duration_ms >= 0
        assert (result.branch_id, result.year, result.month) == (1, 2025, 1)

    def test_logs_batch_id_on_every_line(self, executor, captured_logs):
        result = executor.process_branch_payroll(1, 2025, 1, ACTOR_ID)

        logs = captured_logs()
        completed = [r for r in logs if r["message"] == "branch_payroll_completed"]
        assert completed[0]["batch_id"] == str(result.batch_id)
        created = [r for r in logs if r["message"] == "payroll_record_created"]
        assert all(r["batch_id"] == str(result.batch_id) for r in created)

    def test_requires_non_committing_record_service(
        self, session, settings, directory, attendance
    ):
        committing = PayrollOrchestrator(session, settings, directory, attendance)
        with pytest.raises(ValueError):
            BranchPayrollExecutor(session, directory, committing.records)


class TestJobStatus:

    def _item(self, status):
        return BranchPayrollItemResult(employee_id=1, status=status)

    def test_all_failed(self):
        items = (self._item(BatchItemStatus.FAILED),) * 2
        assert job_status_for(items) is BatchJobStatus.FAILED

    def test_skipped_counts_as_success(self):
        items = (self._item(BatchItemStatus.SKIPPED), self._item(BatchItemStatus.SUCCEEDED))
        assert job_status_for(items) is BatchJobStatus.COMPLETED

    def test_empty(self):
        assert job_status_for(()) is BatchJobStatus.COMPLETED
