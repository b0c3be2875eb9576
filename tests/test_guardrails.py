"""
Tests for the roster guardrails (R-01 … R-17).
Run: python -m pytest tests/test_guardrails.py -v
"""
from factories import make_assignment, make_exam, make_invigilator

from dutyflow.guardrails import (
    AssignmentGuardrails,
    GuardrailLevel,
    GuardrailsPipeline,
    RosterInputGuardrails,
)


def _codes(result, level=None):
    return {v.code for v in result.violations if level is None or v.level == level}


class TestRosterInput:

    def setup_method(self):
        self.guard = RosterInputGuardrails()

    def test_clean_input_passes(self, staff, exams):
        result = self.guard.check(staff, exams)
        assert result.passed
        assert result.summary() == "✅ All guardrails passed."

    def test_r01_empty_inputs_block(self):
        result = self.guard.check([], [])
        assert result.blocked
        assert _codes(result) == {"R-01"}
        assert len(result.violations) == 2

    def test_r02_duplicate_names_block(self, exams):
        staff = [make_invigilator("A"), make_invigilator("A")]
        result = self.guard.check(staff, exams[:1])
        assert "R-02" in _codes(result, GuardrailLevel.BLOCK)

    def test_r03_unknown_weekday_warns(self, exams):
        staff = [make_invigilator("A"), make_invigilator("B", available_days=["Mon"])]
        result = self.guard.check(staff, exams[:1])
        assert "R-03" in _codes(result, GuardrailLevel.WARN)
        assert not result.blocked

    def test_r04_invalid_date_blocks(self, staff):
        result = self.guard.check(staff, [make_exam("04/03/2024", "Physics")])
        assert "R-04" in _codes(result, GuardrailLevel.BLOCK)

    def test_r05_no_rooms_warns(self, staff):
        result = self.guard.check(staff, [make_exam("2024-01-01", "Physics", rooms=0)])
        assert "R-05" in _codes(result, GuardrailLevel.WARN)

    def test_r06_capacity_warns(self):
        staff = [make_invigilator("A"), make_invigilator("B", available_days=["Friday"])]
        result = self.guard.check(staff, [make_exam("2024-01-01", "Physics", rooms=2)])
        assert "R-06" in _codes(result, GuardrailLevel.WARN)


class TestAssignmentChecks:

    def setup_method(self):
        self.guard = AssignmentGuardrails()

    def test_r10_unknown_name_warns(self, staff):
        result = self.guard.check(staff, [make_assignment("2024-01-01", "Math", ["Ghost"])])
        assert "R-10" in _codes(result, GuardrailLevel.WARN)

    def test_r11_duplicate_in_session_blocks(self, staff):
        result = self.guard.check(staff, [make_assignment("2024-01-01", "Math", ["Dr. Rao", "Dr. Rao"])])
        assert "R-11" in _codes(result, GuardrailLevel.BLOCK)

    def test_r12_part_time_wrong_day_blocks(self, staff):
        # Ms. Dsouza works Monday / Wednesday; 2024-01-02 is a Tuesday.
        result = self.guard.check(staff, [make_assignment("2024-01-02", "Math", ["Ms. Dsouza"])])
        assert "R-12" in _codes(result, GuardrailLevel.BLOCK)

    def test_r13_same_date_double_duty_blocks(self, staff):
        assignments = [
            make_assignment("2024-01-01", "Math",    ["Mr. Khan"], time="09-12"),
            make_assignment("2024-01-01", "Physics", ["Mr. Khan"], time="14-17"),
        ]
        result = self.guard.check(staff, assignments)
        assert "R-13" in _codes(result, GuardrailLevel.BLOCK)

    def test_r14_r15_only_with_examinations(self, staff):
        assignments = [make_assignment("2024-01-01", "Art", ["Mr. Khan"])]
        assert not {"R-14", "R-15"} & _codes(self.guard.check(staff, assignments))

    def test_r14_staffing_mismatch_warns(self, staff):
        exam = make_exam("2024-01-01", "Math", rooms=2)
        result = self.guard.check(staff, [make_assignment("2024-01-01", "Math", ["Mr. Khan"])], [exam])
        assert "R-14" in _codes(result, GuardrailLevel.WARN)

    def test_r15_unmatched_session_warns(self, staff, exams):
        result = self.guard.check(staff, [make_assignment("2024-01-01", "Art", ["Mr. Khan"])], exams)
        assert "R-15" in _codes(result, GuardrailLevel.WARN)

    def test_r17_examination_without_session_blocks(self, staff):
        exams = [make_exam("2024-01-01", "Math"), make_exam("2024-01-02", "Physics")]
        result = self.guard.check(staff, [make_assignment("2024-01-01", "Math", ["Mr. Khan"])], exams)
        assert "R-17" in _codes(result, GuardrailLevel.BLOCK)
        assert [v.field for v in result.violations if v.code == "R-17"] == ["2024-01-02 Physics (10:00 - 13:00)"]

    def test_r17_empty_allotment_blocks_every_examination(self, staff, exams):
        result = self.guard.check(staff, [], exams)
        assert sum(v.code == "R-17" for v in result.violations) == len(exams)
        assert result.blocked

    def test_r16_seniority_is_advisory(self, staff):
        assignments = [
            make_assignment("2024-01-01", "Math",    ["Dr. Rao"]),
            make_assignment("2024-01-02", "Physics", ["Dr. Rao"]),
        ]
        result = self.guard.check(staff, assignments)
        assert "R-16" in _codes(result, GuardrailLevel.INFO)
        assert result.passed
        assert result.infos


class TestPipeline:

    def test_merge_keeps_all_violations(self, staff):
        gp = GuardrailsPipeline()
        a = gp.check_input([], [])
        b = gp.check_assignments(staff, [make_assignment("2024-01-01", "Math", ["Ghost"])])
        merged = gp.merge(a, b)
        assert len(merged.violations) == len(a.violations) + len(b.violations)
        assert merged.blocked
        assert not merged.passed

    def test_mock_allotment_is_clean(self, staff, exams, allotment):
        gp = GuardrailsPipeline()
        result = gp.check_assignments(staff, allotment.assignments, exams)
        assert not result.blocked
        assert not _codes(result) & {"R-10", "R-11", "R-12", "R-13", "R-15"}
