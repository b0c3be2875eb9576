"""
Unit tests for the run trace.
"""
import pytest

from dutyflow.trace import RunTrace, new_trace, timed_step


class TestTimedStep:

    def test_records_step_and_totals(self):
        trace = new_trace("Mid Term", "mock")
        with timed_step(trace, "a", "Step A") as step:
            step.decisions.append("did A")
        with timed_step(trace, "b", "Step B"):
            pass
        assert [s.step_id for s in trace.steps] == ["a", "b"]
        assert trace.step("a").decisions == ["did A"]
        assert trace.step("b").start_ms == pytest.approx(trace.step("a").duration_ms)
        assert trace.total_ms >= 0

    def test_step_closed_on_error(self):
        trace = new_trace("", "mock")
        with pytest.raises(RuntimeError):
            with timed_step(trace, "boom", "Failing step"):
                raise RuntimeError("x")
        assert trace.step("boom") is not None

    def test_unknown_step(self):
        assert new_trace("", "mock").step("missing") is None


class TestSerialisation:

    def test_dict_round_trip_ignores_unknown_keys(self):
        trace = new_trace("Mid Term", "azure_openai")
        with timed_step(trace, "generate", "Duty generation") as step:
            step.detail = {"sessions": 4}
        data = trace.to_dict()
        data["steps"][0]["legacy_field"] = True
        revived = RunTrace.from_dict(data)
        assert revived.mode == "azure_openai"
        assert revived.step("generate").detail == {"sessions": 4}
