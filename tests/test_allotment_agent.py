"""
Tests for the LLM allotment agent and the generate_allotment pipeline.
The OpenAI client is replaced by a MagicMock — no network calls.
"""
import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from factories import make_exam, make_invigilator

from dutyflow.allotment_agent import (
    AllotmentBlocked,
    DutyAllotmentAgent,
    _build_user_message,
    generate_allotment,
)
from dutyflow.config import AzureOpenAIConfig


_CFG = AzureOpenAIConfig("https://exam-cell.openai.azure.com", "test-key", "gpt-4o", "2024-12-01-preview")


def _fake_client(content: str) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create.return_value = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )
    return client


def _llm_payload(exams, names_per_exam):
    return json.dumps({"assignments": [
        {"date": e.iso_date, "subject": e.subject, "time": e.time_slot, "invigilators": names}
        for e, names in zip(exams, names_per_exam)
    ]})


@pytest.fixture
def small_roster():
    staff = [make_invigilator("Alice"), make_invigilator("Bob")]
    exams = [make_exam("2024-01-01", "Math"), make_exam("2024-01-02", "Physics")]
    return staff, exams


class TestPrompt:

    def test_user_message_lists_roster_in_seniority_order(self, staff, exams):
        msg = _build_user_message(staff, exams)
        assert msg.index("Dr. Rao") < msg.index("Mr. Khan")
        assert '"invigilators_needed": 2' in msg
        assert '"available_days": [\n      "Monday",' in msg


class TestDutyAllotmentAgent:

    def test_not_configured_raises(self):
        agent = DutyAllotmentAgent(AzureOpenAIConfig("", "", "gpt-4o", "v"))
        assert not agent.is_available
        with pytest.raises(EnvironmentError):
            agent.run([], [])

    def test_parses_assignments(self, small_roster):
        staff, exams = small_roster
        client = _fake_client(_llm_payload(exams, [["Alice"], ["Bob"]]))
        out = DutyAllotmentAgent(_CFG, client=client).run(staff, exams)
        assert [a.invigilators for a in out] == [["Alice"], ["Bob"]]
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["response_format"] == {"type": "json_object"}

    def test_response_cached(self, small_roster):
        staff, exams = small_roster
        client = _fake_client(_llm_payload(exams, [["Alice"], ["Bob"]]))
        agent = DutyAllotmentAgent(_CFG, client=client)
        first  = agent.run(staff, exams)
        second = agent.run(staff, exams)
        assert client.chat.completions.create.call_count == 1
        assert [a.model_dump() for a in first] == [a.model_dump() for a in second]

    def test_cache_can_be_disabled(self, small_roster):
        staff, exams = small_roster
        client = _fake_client(_llm_payload(exams, [["Alice"], ["Bob"]]))
        agent = DutyAllotmentAgent(_CFG, client=client, use_cache=False)
        agent.run(staff, exams)
        agent.run(staff, exams)
        assert client.chat.completions.create.call_count == 2


class TestGenerateAllotment:

    def test_mock_mode_pipeline(self, staff, exams):
        run = generate_allotment(staff, exams)
        assert run.mode == "mock"
        assert [s.step_id for s in run.trace.steps] == [
            "input_guardrails", "generate", "rebalance", "assignment_guardrails",
        ]
        assert len(run.assignments) == len(exams)
        assert run.allotment.exam_title == "Examination from 1-Jan-24"
        assert run.allotment.first_exam_date == "2024-01-01"
        assert run.rebalance_stats is not None and run.rebalance_stats.converged
        assert not run.guardrails.blocked

    def test_explicit_title_and_college(self, staff, exams):
        run = generate_allotment(staff, exams, exam_title="Semester End", college_name="GDC")
        assert run.allotment.exam_title == "Semester End"
        assert run.allotment.college_name == "GDC"
        assert run.trace.exam_title == "Semester End"

    def test_blocked_input_raises(self, exams):
        with pytest.raises(AllotmentBlocked) as exc_info:
            generate_allotment([], exams)
        assert "R-01" in exc_info.value.result.codes()

    def test_llm_output_is_rebalanced(self, small_roster):
        staff, exams = small_roster
        client = _fake_client(_llm_payload(exams, [["Alice"], ["Alice"]]))
        run = generate_allotment(staff, exams, agent=DutyAllotmentAgent(_CFG, client=client))
        assert run.mode == "azure_openai"
        assert run.rebalance_stats.swaps == 1
        assert sorted(n for a in run.assignments for n in a.invigilators) == ["Alice", "Bob"]

    def test_invalid_json_falls_back(self, small_roster):
        staff, exams = small_roster
        client = _fake_client("Sure! Here is your roster:")
        run = generate_allotment(staff, exams, agent=DutyAllotmentAgent(_CFG, client=client))
        assert run.mode == "mock"
        assert run.trace.step("generate").status == "fallback"
        assert all(a.invigilators for a in run.assignments)

    def test_schema_mismatch_falls_back(self, small_roster):
        staff, exams = small_roster
        client = _fake_client(json.dumps({"assignments": [{"date": "2024-01-01"}]}))
        run = generate_allotment(staff, exams, agent=DutyAllotmentAgent(_CFG, client=client))
        assert run.mode == "mock"
        assert len(run.assignments) == 2

    @pytest.mark.parametrize("reply", ["null", "42", '["Alice"]', '{"foo": 1}', '{"assignments": null}'])
    def test_wrong_reply_shape_falls_back(self, small_roster, reply):
        staff, exams = small_roster
        run = generate_allotment(staff, exams, agent=DutyAllotmentAgent(_CFG, client=_fake_client(reply)))
        assert run.mode == "mock"
        assert run.trace.step("generate").status == "fallback"
        assert len(run.assignments) == len(exams)
        assert "R-17" not in run.guardrails.codes()

    def test_rejected_reply_not_cached(self, small_roster):
        staff, exams = small_roster
        client = _fake_client('{"foo": 1}')
        agent = DutyAllotmentAgent(_CFG, client=client)
        for _ in range(2):
            with pytest.raises(ValidationError):
                agent.run(staff, exams)
        assert client.chat.completions.create.call_count == 2

    def test_rebalance_can_be_skipped(self, small_roster):
        staff, exams = small_roster
        client = _fake_client(_llm_payload(exams, [["Alice"], ["Alice"]]))
        run = generate_allotment(
            staff, exams, rebalance_after=False, agent=DutyAllotmentAgent(_CFG, client=client),
        )
        assert run.rebalance_stats is None
        assert run.trace.step("rebalance").status == "skipped"
        assert [a.invigilators for a in run.assignments] == [["Alice"], ["Alice"]]
        assert "R-16" in run.guardrails.codes()
