"""
payroll_services -- Reference adapters and service wiring.

Responsibility:
    In-process implementations of the collaborator contracts (employee
    directory, attendance, formulas, currency rates) and
    ``PayrollOrchestrator``, which composes engines and kernel services.

Architecture position:
    Services -- above payroll_kernel, payroll_engines and payroll_config.
    Neither the kernel nor the engines import from this package.
"""

from payroll_services.currency import (
    USD_REFERENCE_RATES,
    StaticCurrencyRateProvider,
    TimeoutCurrencyRateProvider,
)
from payroll_services.directory import (
    InMemoryAttendanceProvider,
    InMemoryEmployeeDirectory,
    StaticFormulaSource,
)
from payroll_services.orchestrator import PayrollOrchestrator

__all__ = [
    "InMemoryAttendanceProvider",
    "InMemoryEmployeeDirectory",
    "PayrollOrchestrator",
    "StaticCurrencyRateProvider",
    "StaticFormulaSource",
    "TimeoutCurrencyRateProvider",
    "USD_REFERENCE_RATES",
]
