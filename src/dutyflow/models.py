"""
Data models for DutyFlow.

Staff (invigilators), examination sessions and the duty assignments that tie
them together.  Every model accepts both snake_case field names and the
camelCase keys used by saved allotments exported from the web app
(``mobileNo``, ``availableDays``, ``roomsAllotted`` …).
"""

from __future__ import annotations

import uuid
from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ─── Enumerations ────────────────────────────────────────────────────────────

class Weekday(str, Enum):
    """English weekday names, as stored in ``available_days``."""
    MONDAY    = "Monday"
    TUESDAY   = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY  = "Thursday"
    FRIDAY    = "Friday"
    SATURDAY  = "Saturday"
    SUNDAY    = "Sunday"


WEEKDAY_NAMES = [d.value for d in Weekday]   # index == date.weekday()


def parse_date(value: str) -> Optional[date]:
    """Parse the calendar-date part of an ISO string; None if unparseable."""
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def weekday_name(value: str) -> Optional[str]:
    """Return e.g. ``"Monday"`` for ``"2024-01-01"``; None if unparseable."""
    d = parse_date(value)
    return WEEKDAY_NAMES[d.weekday()] if d else None


def _short_id() -> str:
    return uuid.uuid4().hex[:12]


# ─── Staff ───────────────────────────────────────────────────────────────────

class Invigilator(BaseModel):
    """
    A staff member eligible for invigilation duty.

    Seniority is not a field: rosters are kept in seniority order
    (index 0 = most senior).  ``available_days`` empty or missing means
    full-time.
    """
    model_config = ConfigDict(populate_by_name=True)

    id:             str = Field(default_factory=_short_id)
    name:           str
    designation:    str = ""
    mobile_no:      str = Field(default="", alias="mobileNo")
    email:          str = ""
    available_days: Optional[list[str]] = Field(default=None, alias="availableDays")

    @property
    def is_part_time(self) -> bool:
        return bool(self.available_days)

    def is_available_on(self, date_str: str) -> bool:
        """True if the weekday of *date_str* is allowed for this member."""
        if not self.is_part_time:
            return True
        return weekday_name(date_str) in self.available_days


# ─── Examinations & duties ───────────────────────────────────────────────────

class Examination(BaseModel):
    """One examination sitting as entered by the exam cell."""
    model_config = ConfigDict(populate_by_name=True)

    id:                 str = Field(default_factory=_short_id)
    date:               str
    day:                str = ""
    subject:            str
    start_time:         str = Field(alias="startTime")
    end_time:           str = Field(alias="endTime")
    rooms_allotted:     int = Field(default=1, alias="roomsAllotted")
    relievers_required: int = Field(default=0, alias="relieversRequired")

    @property
    def time_slot(self) -> str:
        return f"{self.start_time} - {self.end_time}"

    @property
    def invigilators_needed(self) -> int:
        # One invigilator per room; relievers are tracked separately.
        return self.rooms_allotted

    @property
    def iso_date(self) -> str:
        return str(self.date)[:10]

    def matches(self, assignment: "Assignment") -> bool:
        return (
            self.iso_date == str(assignment.date)[:10]
            and self.subject == assignment.subject
            and self.time_slot == assignment.time
        )


class Assignment(BaseModel):
    """A session (date, subject, time slot) and the names assigned to it."""
    date:         str
    subject:      str
    time:         str
    invigilators: list[str] = Field(default_factory=list)

    @property
    def session_key(self) -> tuple[str, str, str]:
        return (self.date, self.subject, self.time)

    def clone(self) -> "Assignment":
        """Field-by-field copy with an independent invigilator list."""
        return Assignment(
            date=self.date,
            subject=self.subject,
            time=self.time,
            invigilators=list(self.invigilators),
        )


class SavedAllotment(BaseModel):
    """A complete allotment as persisted in history / saved allotments."""
    model_config = ConfigDict(populate_by_name=True)

    id:              str
    college_name:    str = Field(default="", alias="collegeName")
    exam_title:      str = Field(default="", alias="examTitle")
    first_exam_date: str = Field(default="", alias="firstExamDate")
    invigilators:    list[Invigilator] = Field(default_factory=list)
    examinations:    list[Examination] = Field(default_factory=list)
    assignments:     list[Assignment] = Field(default_factory=list)

    @staticmethod
    def default_title(first_exam_date: str) -> str:
        """``"Examination from 4-Mar-24"`` style title."""
        d = parse_date(first_exam_date)
        if d is None:
            return "Examination"
        return f"Examination from {d.day}-{d.strftime('%b-%y')}"


# ─── Helpers ─────────────────────────────────────────────────────────────────

def clone_assignments(assignments: list[Assignment]) -> list[Assignment]:
    return [a.clone() for a in assignments]


def toggle_duty(
    assignments: list[Assignment],
    name: str,
    session_key: tuple[str, str, str],
) -> list[Assignment]:
    """
    Return a copy of *assignments* with *name* added to (or removed from)
    the session identified by *session_key*.  Unknown keys leave the copy
    unchanged.
    """
    updated = clone_assignments(assignments)
    for a in updated:
        if a.session_key == tuple(session_key):
            if name in a.invigilators:
                a.invigilators.remove(name)
            else:
                a.invigilators.append(name)
            break
    return updated
