"""
Shared fixtures for the payroll engine test suite.

Every test runs against an in-memory SQLite database with the immutability
listeners registered.  Employee 7 is the reference employee: branch 1,
organization 1, basic salary 3000 USD and 10 overtime hours in January 2025.
"""

import json
import logging
from datetime import UTC, date, datetime
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy.orm import sessionmaker

from payroll_config.schema import PayrollSettings
from payroll_kernel.db.engine import create_engine_for_url, create_tables
from payroll_kernel.db.immutability import register_immutability_listeners
from payroll_kernel.domain.calculation import (
    AttendanceRecord,
    AttendanceStatus,
    EmployeeProfile,
    PayrollCalculationRequest,
)
from payroll_kernel.domain.clock import DeterministicClock
from payroll_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from payroll_services.currency import StaticCurrencyRateProvider
from payroll_services.directory import InMemoryAttendanceProvider, InMemoryEmployeeDirectory
from payroll_services.orchestrator import PayrollOrchestrator

EMPLOYEE_ID = 7
BRANCH_ID = 1
ORGANIZATION_ID = 1
ACTOR_ID = 100
APPROVER_ID = 200


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session", autouse=True)
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture payroll_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, record_service):
            record_service.create_record(...)
            logs = captured_logs()
            assert any(r["message"] == "payroll_record_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("payroll_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    eng = create_engine_for_url("sqlite://")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    register_immutability_listeners()
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    sess = factory()
    yield sess
    sess.close()


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2025, 1, 31, 12, 0, tzinfo=UTC))


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def employee():
    return EmployeeProfile(
        employee_id=EMPLOYEE_ID,
        branch_id=BRANCH_ID,
        organization_id=ORGANIZATION_ID,
        basic_salary=Decimal("3000"),
        currency="USD",
        department="Engineering",
        designation="Developer",
        full_name="Reference Employee",
    )


@pytest.fixture
def directory(employee):
    return InMemoryEmployeeDirectory([employee])


@pytest.fixture
def attendance():
    return InMemoryAttendanceProvider([
        AttendanceRecord(EMPLOYEE_ID, date(2025, 1, 2), AttendanceStatus.PRESENT, Decimal("4")),
        AttendanceRecord(EMPLOYEE_ID, date(2025, 1, 3), AttendanceStatus.PRESENT, Decimal("6")),
        AttendanceRecord(EMPLOYEE_ID, date(2025, 1, 6), AttendanceStatus.ABSENT),
        AttendanceRecord(EMPLOYEE_ID, date(2025, 1, 7), AttendanceStatus.ON_LEAVE),
        AttendanceRecord(EMPLOYEE_ID, date(2025, 1, 8), AttendanceStatus.LATE),
        # Outside January: must never be counted.
        AttendanceRecord(EMPLOYEE_ID, date(2025, 2, 3), AttendanceStatus.PRESENT, Decimal("8")),
    ])


@pytest.fixture
def settings():
    return PayrollSettings(database_url="sqlite://")


@pytest.fixture
def orchestrator(session, settings, directory, attendance, deterministic_clock):
    return PayrollOrchestrator(
        session,
        settings,
        directory,
        attendance,
        currency_provider=StaticCurrencyRateProvider(),
        clock=deterministic_clock,
    )


@pytest.fixture
def record_service(orchestrator):
    return orchestrator.records


@pytest.fixture
def correction_service(orchestrator):
    return orchestrator.corrections


@pytest.fixture
def january_request():
    return PayrollCalculationRequest.for_month(EMPLOYEE_ID, 2025, 1)


@pytest.fixture
def january_record(record_service, january_request):
    """A persisted, calculated record for employee 7, January 2025."""
    return record_service.create_record(january_request, ACTOR_ID)
