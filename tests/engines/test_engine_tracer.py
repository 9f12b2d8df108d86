"""
Tests for the engine tracing decorator.
"""

from capital_engines.tracer import compute_input_fingerprint, traced_engine


@traced_engine("sample", "2.1", fingerprint_fields=("a", "b"))
def _sample(a, b=0, c=None):
    return a + b


class TestFingerprint:
    def test_deterministic(self):
        first = compute_input_fingerprint(("a",), {"a": 1})
        assert first == compute_input_fingerprint(("a",), {"a": 1})
        assert len(first) == 16

    def test_selected_fields_only(self):
        base = compute_input_fingerprint(("a",), {"a": 1, "b": 2})
        assert base == compute_input_fingerprint(("a",), {"a": 1, "b": 99})

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("a",), {}) == compute_input_fingerprint(("a",), {"a": None})

    def test_dict_order_independent(self):
        left = compute_input_fingerprint(("m",), {"m": {"x": 1, "y": 2}})
        right = compute_input_fingerprint(("m",), {"m": {"y": 2, "x": 1}})
        assert left == right


class TestTracedEngine:
    def test_returns_result(self):
        assert _sample(2, b=3) == 5

    def test_emits_trace(self, captured_logs):
        _sample(1, 2)
        trace = next(r for r in captured_logs() if r["message"] == "CAPITAL_ENGINE_TRACE")
        assert trace["engine_name"] == "sample"
        assert trace["engine_version"] == "2.1"
        assert trace["function"] == "_sample"
        assert trace["input_fingerprint"] == compute_input_fingerprint(("a", "b"), {"a": 1, "b": 2})
        assert trace["duration_ms"] >= 0

    def test_keyword_and_positional_agree(self, captured_logs):
        _sample(1, 2)
        _sample(a=1, b=2)
        traces = [r for r in captured_logs() if r["message"] == "CAPITAL_ENGINE_TRACE"]
        assert traces[0]["input_fingerprint"] == traces[1]["input_fingerprint"]

    def test_preserves_metadata(self):
        assert _sample.__name__ == "_sample"
