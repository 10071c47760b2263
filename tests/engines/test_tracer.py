"""Tests for the engine tracing decorator."""

from decimal import Decimal

from mfg_engines.tracer import compute_input_fingerprint, traced_engine
from mfg_kernel.domain.dtos import ContainerStatus, FormulaLine


@traced_engine("sample", "2.1", fingerprint_fields=("a", "b"))
def _sample(*, a, b=None):
    return a


class TestFingerprint:
    def test_deterministic(self):
        kwargs = {"a": Decimal("1.5"), "b": "x"}
        assert compute_input_fingerprint(("a", "b"), kwargs) == compute_input_fingerprint(
            ("a", "b"), dict(kwargs)
        )

    def test_sixteen_hex_chars(self):
        fp = compute_input_fingerprint(("a",), {"a": 1})
        assert len(fp) == 16
        int(fp, 16)

    def test_differs_on_value(self):
        assert compute_input_fingerprint(("a",), {"a": 1}) != compute_input_fingerprint(
            ("a",), {"a": 2}
        )

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("a",), {}) == compute_input_fingerprint(
            ("a",), {"a": None}
        )

    def test_dict_order_irrelevant(self):
        assert compute_input_fingerprint(("a",), {"a": {"x": 1, "y": 2}}) == (
            compute_input_fingerprint(("a",), {"a": {"y": 2, "x": 1}})
        )

    def test_dataclasses_and_enums(self):
        line = FormulaLine(line_id="L1", component_ref="C", quantity=Decimal("1"), unit="g")
        fp1 = compute_input_fingerprint(("a", "b"), {"a": line, "b": ContainerStatus.EMPTY})
        fp2 = compute_input_fingerprint(("a", "b"), {"a": line, "b": "empty"})
        assert fp1 == fp2


class TestTracedEngine:
    def test_emits_trace(self, captured_logs):
        assert _sample(a=7) == 7

        traces = [r for r in captured_logs() if r["message"] == "MFG_ENGINE_TRACE"]
        assert len(traces) == 1
        trace = traces[0]
        assert trace["trace_type"] == "MFG_ENGINE_TRACE"
        assert trace["engine_name"] == "sample"
        assert trace["engine_version"] == "2.1"
        assert trace["logger"] == "mfg_kernel.engines.tracer"
        assert trace["input_fingerprint"] == compute_input_fingerprint(("a", "b"), {"a": 7})
        assert "duration_ms" in trace

    def test_no_trace_on_exception(self, captured_logs):
        @traced_engine("failing", "1.0")
        def boom():
            raise RuntimeError("nope")

        try:
            boom()
        except RuntimeError:
            pass

        assert not [r for r in captured_logs() if r["message"] == "MFG_ENGINE_TRACE"]

    def test_preserves_metadata(self):
        assert _sample.__name__ == "_sample"

    def test_positional_arguments_fingerprinted(self, captured_logs):
        @traced_engine("positional", "1.0", fingerprint_fields=("qty",))
        def scale(qty, factor=2):
            return qty * factor

        scale(Decimal("3"))
        scale(qty=Decimal("3"))

        traces = [r for r in captured_logs() if r["message"] == "MFG_ENGINE_TRACE"]
        assert len(traces) == 2
        expected = compute_input_fingerprint(("qty",), {"qty": Decimal("3")})
        assert [t["input_fingerprint"] for t in traces] == [expected, expected]
