"""
payroll_services.orchestrator -- Central wiring for payroll services.

Responsibility:
    Creates every payroll service exactly once from a ``PayrollSettings``
    and the external collaborators, and exposes them as attributes.

Architecture position:
    Services -- the only place where engines, kernel services and reference
    adapters are composed.

Invariants enforced:
    - Single-instance lifecycle: one AuditTrailService per orchestrator,
      shared by the record and correction services so every audit write in
      a transaction chains through the same sequence.
    - All services share the same Session and Clock.

Usage:
    orchestrator = PayrollOrchestrator(
        session=session,
        settings=get_active_settings(),
        directory=directory,
        attendance=attendance,
    )
    record = orchestrator.records.create_record(
        PayrollCalculationRequest.for_month(7, 2025, 1), actor_id=1,
    )
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from payroll_config.schema import PayrollSettings
from payroll_engines.calculator import PayrollCalculator
from payroll_engines.formula import ExpressionFormulaEngine
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.providers import (
    AttendanceProvider,
    CurrencyRateProvider,
    EmployeeDirectory,
    FormulaSource,
)
from payroll_kernel.selectors.audit_selector import AuditSelector
from payroll_kernel.services.audit_trail_service import AuditTrailService
from payroll_kernel.services.error_correction_service import ErrorCorrectionService
from payroll_kernel.services.payroll_record_service import PayrollRecordService
from payroll_services.currency import shared_reference_provider
from payroll_services.directory import StaticFormulaSource


class PayrollOrchestrator:
    """
    Factory for payroll services.

    Guarantees:
        - When no currency provider is given, the process-wide static
          reference provider for the configured timeout is used.
        - When no formula source is given, ``settings.formulas`` is used.

    Non-goals:
        - Does NOT manage transaction boundaries beyond what each service
          does with ``auto_commit``.
        - Does NOT own the Session lifecycle.
    """

    def __init__(
        self,
        session: Session,
        settings: PayrollSettings,
        directory: EmployeeDirectory,
        attendance: AttendanceProvider,
        formula_source: FormulaSource | None = None,
        currency_provider: CurrencyRateProvider | None = None,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self.settings = settings
        self.directory = directory

        self.formula_engine = ExpressionFormulaEngine(settings.standard_monthly_hours)
        self.formula_source = formula_source or StaticFormulaSource(settings.formulas)
        self.currency_provider = currency_provider or shared_reference_provider(
            settings.exchange_rate_timeout_seconds
        )
        self.calculator = PayrollCalculator(
            self.formula_engine,
            currency_provider=self.currency_provider,
            reporting_currency=settings.reporting_currency,
            exchange_rate_fallback=settings.exchange_rate_fallback,
        )

        self.audit = AuditTrailService(session, self._clock)
        self.audit_selector = AuditSelector(session)
        self.records = PayrollRecordService(
            session,
            directory,
            attendance,
            self.formula_source,
            self.calculator,
            clock=self._clock,
            audit=self.audit,
            custom_formulas_enabled=settings.custom_formulas_enabled,
            default_currency=settings.default_currency,
            default_overtime_rate=settings.overtime_rate,
            auto_commit=auto_commit,
        )
        self.corrections = ErrorCorrectionService(
            session, clock=self._clock, audit=self.audit, auto_commit=auto_commit
        )

    @property
    def session(self) -> Session:
        return self._session

    @property
    def clock(self) -> Clock:
        return self._clock
