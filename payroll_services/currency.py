"""
Currency rate providers.

``StaticCurrencyRateProvider`` answers from a USD-based reference table.
``TimeoutCurrencyRateProvider`` wraps any provider so a slow or failing
lookup surfaces as ExchangeRateUnavailableError within a bounded time.
"""

from __future__ import annotations

from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from decimal import Decimal
from functools import lru_cache

from payroll_kernel.domain.providers import CurrencyRateProvider
from payroll_kernel.exceptions import ExchangeRateUnavailableError, PayrollKernelError
from payroll_kernel.logging_config import get_logger

logger = get_logger("services.currency")

# Units of each currency per 1 USD.
USD_REFERENCE_RATES: dict[str, Decimal] = {
    "USD": Decimal("1.0"),
    "EUR": Decimal("0.85"),
    "GBP": Decimal("0.73"),
    "INR": Decimal("83.0"),
    "CAD": Decimal("1.35"),
    "AUD": Decimal("1.50"),
    "JPY": Decimal("150.0"),
    "SGD": Decimal("1.35"),
    "AED": Decimal("3.67"),
    "CHF": Decimal("0.88"),
    "CNY": Decimal("7.25"),
    "SEK": Decimal("10.5"),
    "NOK": Decimal("10.8"),
    "DKK": Decimal("6.85"),
    "PLN": Decimal("4.15"),
    "CZK": Decimal("22.5"),
    "HUF": Decimal("360.0"),
    "RUB": Decimal("90.0"),
    "BRL": Decimal("5.0"),
    "MXN": Decimal("17.0"),
    "ZAR": Decimal("18.5"),
    "KRW": Decimal("1320.0"),
    "THB": Decimal("35.0"),
    "MYR": Decimal("4.65"),
}


class StaticCurrencyRateProvider:
    """Rates derived from a fixed table: table[to] / table[from]."""

    def __init__(self, rates: Mapping[str, Decimal] | None = None):
        self._rates = {k.upper(): v for k, v in (rates or USD_REFERENCE_RATES).items()}

    def supported_currencies(self) -> frozenset[str]:
        return frozenset(self._rates)

    def get_exchange_rate(self, from_currency: str, to_currency: str) -> Decimal:
        source = from_currency.upper()
        target = to_currency.upper()
        if source == target:
            return Decimal("1")
        for code in (source, target):
            if code not in self._rates:
                raise ExchangeRateUnavailableError(
                    from_currency, to_currency, f"unsupported currency {code}"
                )
        return self._rates[target] / self._rates[source]


class TimeoutCurrencyRateProvider:
    """
    Bounds the time spent in another provider's lookup.

    The lookup runs on a worker thread; if it has not finished after
    ``timeout_seconds`` the caller gets ExchangeRateUnavailableError and the
    worker is left to finish on its own.
    """

    def __init__(
        self,
        inner: CurrencyRateProvider,
        timeout_seconds: float = 5.0,
        max_workers: int = 2,
    ):
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._inner = inner
        self._timeout = timeout_seconds
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="currency-rate"
        )

    def get_exchange_rate(self, from_currency: str, to_currency: str) -> Decimal:
        future = self._executor.submit(
            self._inner.get_exchange_rate, from_currency, to_currency
        )
        try:
            return future.result(timeout=self._timeout)
        except FutureTimeoutError:
            logger.warning(
                "exchange_rate_timeout",
                extra={
                    "from_currency": from_currency,
                    "to_currency": to_currency,
                    "timeout_seconds": self._timeout,
                },
            )
            raise ExchangeRateUnavailableError(
                from_currency, to_currency, f"timed out after {self._timeout}s"
            ) from None
        except ExchangeRateUnavailableError:
            raise
        except (PayrollKernelError, OSError, ArithmeticError) as exc:
            raise ExchangeRateUnavailableError(
                from_currency, to_currency, f"{type(exc).__name__}: {exc}"
            ) from exc

    def close(self) -> None:
        self._executor.shutdown(wait=False)


@lru_cache()
def shared_reference_provider(timeout_seconds: float) -> TimeoutCurrencyRateProvider:
    """
    The process-wide timeout-wrapped reference provider for one timeout.

    Services built without an explicit currency provider share this one, so
    the worker pool is created once per process rather than per service.
    """
    return TimeoutCurrencyRateProvider(StaticCurrencyRateProvider(), timeout_seconds)
