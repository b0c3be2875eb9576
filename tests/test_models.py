"""
Unit tests for dutyflow.models: aliases, weekday helpers, cloning, toggling.
"""
from factories import make_assignment, make_exam, make_invigilator

from dutyflow.models import (
    Assignment,
    Examination,
    Invigilator,
    SavedAllotment,
    clone_assignments,
    parse_date,
    toggle_duty,
    weekday_name,
)


class TestDateHelpers:

    def test_parse_plain_date(self):
        assert parse_date("2024-03-04").isoformat() == "2024-03-04"

    def test_parse_iso_timestamp(self):
        assert parse_date("2024-03-04T00:00:00.000Z").isoformat() == "2024-03-04"

    def test_parse_garbage(self):
        assert parse_date("next tuesday") is None
        assert parse_date("") is None

    def test_weekday_name(self):
        assert weekday_name("2024-01-01") == "Monday"
        assert weekday_name("2024-01-07") == "Sunday"
        assert weekday_name("bad") is None


class TestInvigilator:

    def test_camel_case_aliases(self):
        inv = Invigilator.model_validate({
            "id": "1", "name": "Dr. Rao", "designation": "Professor",
            "mobileNo": "9999", "email": "rao@college.edu",
            "availableDays": ["Monday"],
        })
        assert inv.mobile_no == "9999"
        assert inv.available_days == ["Monday"]
        assert inv.model_dump(by_alias=True)["availableDays"] == ["Monday"]

    def test_full_time_by_default(self):
        inv = make_invigilator("A")
        assert not inv.is_part_time
        assert inv.is_available_on("2024-01-06")

    def test_empty_days_is_full_time(self):
        assert not make_invigilator("A", available_days=[]).is_part_time

    def test_part_time_availability(self):
        inv = make_invigilator("A", available_days=["Monday", "Wednesday"])
        assert inv.is_part_time
        assert inv.is_available_on("2024-01-01")
        assert not inv.is_available_on("2024-01-02")
        assert inv.is_available_on("2024-01-03")

    def test_ids_are_generated(self):
        assert make_invigilator("A").id != make_invigilator("B").id


class TestExamination:

    def test_aliases_and_derived_fields(self):
        exam = Examination.model_validate({
            "date": "2024-03-04T00:00:00.000Z", "day": "Monday", "subject": "Physics",
            "startTime": "10:00", "endTime": "13:00",
            "roomsAllotted": 3, "relieversRequired": 1,
        })
        assert exam.time_slot == "10:00 - 13:00"
        assert exam.iso_date == "2024-03-04"
        assert exam.invigilators_needed == 3
        assert exam.relievers_required == 1

    def test_matches_assignment(self):
        exam = make_exam("2024-03-04", "Physics")
        assert exam.matches(make_assignment("2024-03-04", "Physics", []))
        assert not exam.matches(make_assignment("2024-03-04", "Physics", [], time="14:00 - 17:00"))
        assert not exam.matches(make_assignment("2024-03-05", "Physics", []))


class TestAssignment:

    def test_clone_is_independent(self):
        a = make_assignment("2024-01-01", "Math", ["A"])
        b = a.clone()
        b.invigilators.append("B")
        assert a.invigilators == ["A"]
        assert b.session_key == a.session_key

    def test_clone_assignments(self):
        items = [make_assignment("2024-01-01", "Math", ["A"])]
        copies = clone_assignments(items)
        assert copies == items
        assert copies[0] is not items[0]


class TestToggleDuty:

    def test_adds_missing_name(self):
        items = [make_assignment("2024-01-01", "Math", ["A"])]
        out = toggle_duty(items, "B", ("2024-01-01", "Math", "10:00 - 13:00"))
        assert out[0].invigilators == ["A", "B"]
        assert items[0].invigilators == ["A"]

    def test_removes_present_name(self):
        items = [make_assignment("2024-01-01", "Math", ["A", "B"])]
        out = toggle_duty(items, "A", ("2024-01-01", "Math", "10:00 - 13:00"))
        assert out[0].invigilators == ["B"]

    def test_unknown_session_unchanged(self):
        items = [make_assignment("2024-01-01", "Math", ["A"])]
        out = toggle_duty(items, "B", ("2024-01-02", "Math", "10:00 - 13:00"))
        assert out == items


class TestSavedAllotment:

    def test_default_title(self):
        assert SavedAllotment.default_title("2024-03-04") == "Examination from 4-Mar-24"
        assert SavedAllotment.default_title("") == "Examination"

    def test_accepts_web_app_json(self):
        data = {
            "id": "2024-03-01T10:00:00.000Z",
            "collegeName": "Govt. Degree College",
            "examTitle": "Mid Term",
            "firstExamDate": "2024-03-04",
            "invigilators": [{"id": "1", "name": "A", "designation": "", "mobileNo": "", "email": ""}],
            "examinations": [{
                "id": "e1", "date": "2024-03-04", "day": "Monday", "subject": "Physics",
                "startTime": "10:00", "endTime": "13:00", "roomsAllotted": 1, "relieversRequired": 0,
            }],
            "assignments": [{"date": "2024-03-04", "subject": "Physics",
                             "time": "10:00 - 13:00", "invigilators": ["A"]}],
        }
        allotment = SavedAllotment.model_validate(data)
        assert allotment.college_name == "Govt. Degree College"
        assert isinstance(allotment.assignments[0], Assignment)
        assert allotment.examinations[0].matches(allotment.assignments[0])
