"""Tests for the currency rate providers."""

import threading
from decimal import Decimal

import pytest

from payroll_kernel.exceptions import ExchangeRateUnavailableError
from payroll_services.currency import (
    USD_REFERENCE_RATES,
    StaticCurrencyRateProvider,
    TimeoutCurrencyRateProvider,
)


class _BlockingProvider:
    """Never answers until released."""

    def __init__(self):
        self.release = threading.Event()

    def get_exchange_rate(self, from_currency, to_currency):
        self.release.wait(5)
        return Decimal("1")


class _BrokenProvider:
    def get_exchange_rate(self, from_currency, to_currency):
        raise ConnectionError("rate service down")


class TestStaticProvider:

    def test_same_currency(self):
        assert StaticCurrencyRateProvider().get_exchange_rate("EUR", "eur") == Decimal("1")

    def test_cross_rate(self):
        provider = StaticCurrencyRateProvider()
        assert provider.get_exchange_rate("USD", "INR") == Decimal("83.0")
        assert provider.get_exchange_rate("EUR", "USD") == Decimal("1.0") / Decimal("0.85")

    def test_unknown_currency(self):
        with pytest.raises(ExchangeRateUnavailableError) as exc_info:
            StaticCurrencyRateProvider().get_exchange_rate("XYZ", "USD")
        assert "XYZ" in exc_info.value.reason

    def test_supported_currencies(self):
        assert StaticCurrencyRateProvider().supported_currencies() == frozenset(
            USD_REFERENCE_RATES
        )


class TestTimeoutProvider:

    def test_passes_through(self):
        provider = TimeoutCurrencyRateProvider(StaticCurrencyRateProvider(), timeout_seconds=1)
        try:
            assert provider.get_exchange_rate("USD", "GBP") == Decimal("0.73")
        finally:
            provider.close()

    def test_timeout_becomes_unavailable(self, captured_logs):
        inner = _BlockingProvider()
        provider = TimeoutCurrencyRateProvider(inner, timeout_seconds=0.05)
        try:
            with pytest.raises(ExchangeRateUnavailableError, match="timed out"):
                provider.get_exchange_rate("USD", "EUR")
        finally:
            inner.release.set()
            provider.close()

        assert any(r["message"] == "exchange_rate_timeout" for r in captured_logs())

    def test_io_error_is_wrapped(self):
        provider = TimeoutCurrencyRateProvider(_BrokenProvider(), timeout_seconds=1)
        try:
            with pytest.raises(ExchangeRateUnavailableError) as exc_info:
                provider.get_exchange_rate("USD", "EUR")
        finally:
            provider.close()
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            TimeoutCurrencyRateProvider(StaticCurrencyRateProvider(), timeout_seconds=0)
