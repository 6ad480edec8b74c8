"""Tests for the engine tracing decorator."""

from dataclasses import dataclass
from decimal import Decimal

from payroll_engines.tracer import compute_input_fingerprint, traced_engine
from payroll_kernel.domain.formula import FormulaType


@dataclass(frozen=True)
class _Payload:
    amount: Decimal
    kind: FormulaType


@traced_engine("test_engine", "2.1", fingerprint_fields=("payload",))
def _double(payload: _Payload, factor: int = 2) -> Decimal:
    return payload.amount * factor


class TestFingerprint:

    def test_equal_decimals_share_fingerprint(self):
        a = compute_input_fingerprint(("x",), {"x": Decimal("1.50")})
        b = compute_input_fingerprint(("x",), {"x": Decimal("1.5")})
        assert a == b

    def test_dict_order_does_not_matter(self):
        a = compute_input_fingerprint(("x",), {"x": {"a": 1, "b": 2}})
        b = compute_input_fingerprint(("x",), {"x": {"b": 2, "a": 1}})
        assert a == b

    def test_different_values_differ(self):
        a = compute_input_fingerprint(("x",), {"x": Decimal("1")})
        b = compute_input_fingerprint(("x",), {"x": Decimal("2")})
        assert a != b

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("x",), {}) == compute_input_fingerprint(
            ("x",), {"x": None}
        )


class TestTracedEngine:

    def test_result_is_unchanged(self):
        assert _double(_Payload(Decimal("3"), FormulaType.TAX)) == Decimal("6")

    def test_emits_trace(self, captured_logs):
        _double(_Payload(Decimal("3"), FormulaType.TAX), factor=3)

        traces = [r for r in captured_logs() if r["message"] == "PAYROLL_ENGINE_TRACE"]
        assert len(traces) == 1
        trace = traces[0]
        assert trace["engine_name"] == "test_engine"
        assert trace["engine_version"] == "2.1"
        assert trace["function"].endswith("_double")
        assert trace["input_fingerprint"] == compute_input_fingerprint(
            ("payload",), {"payload": _Payload(Decimal("3"), FormulaType.TAX)}
        )

    def test_wraps_preserves_name(self):
        assert _double.__name__ == "_double"
