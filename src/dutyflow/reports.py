"""
reports.py — Duty summaries and analytics over an allotment
===========================================================
Pure functions; nothing here mutates its input.

  duties_per_invigilator     duty count per person, roster order
  invigilator_duty_summary   one person's duties, date-sorted
  daily_workload             assigned seats vs free staff per exam day
  invigilators_per_subject   seats per subject
  invigilators_by_designation  head-count per designation
  session_trends             duties / rooms / relievers per exam day
  day_wise_schedule          every session on one date, from history
  allotment_matrix           the allotment sheet (0/1 grid with totals)
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

import pandas as pd

from dutyflow.models import Assignment, Invigilator, SavedAllotment, parse_date


# ─── Result records ───────────────────────────────────────────────────────────

@dataclass
class DutyCount:
    name:        str
    designation: str
    duties:      int


@dataclass
class DutyLine:
    date:    str
    day:     str      # "Mon", "Tue", …
    subject: str
    time:    str


@dataclass
class DailyWorkload:
    date:     str
    assigned: int
    free:     int


@dataclass
class SessionTrend:
    date:         str
    total_duties: int = 0
    rooms:        int = 0
    relievers:    int = 0


@dataclass
class DaySession:
    subject:      str
    time:         str
    invigilators: list[Invigilator] = field(default_factory=list)


@dataclass
class DaySchedule:
    college_name: str
    exam_title:   str
    date:         str
    sessions:     list[DaySession] = field(default_factory=list)


@dataclass
class MatrixRow:
    invigilator: Invigilator
    marks:       list[int]
    total:       int


@dataclass
class AllotmentMatrix:
    """The allotment sheet: sessions as columns, invigilators as rows."""
    sessions:      list[Assignment]
    rows:          list[MatrixRow]
    column_totals: list[int]
    grand_total:   int

    def session_labels(self) -> list[str]:
        return [f"{a.date} {a.subject} ({a.time})" for a in self.sessions]

    def to_dataframe(self) -> pd.DataFrame:
        """Rows per invigilator plus a "Total" row; last column is the row total."""
        labels  = self.session_labels()
        records = []
        for i, row in enumerate(self.rows, start=1):
            rec = {"S.No": i, "Name": row.invigilator.name,
                   "Designation": row.invigilator.designation}
            rec.update(dict(zip(labels, row.marks)))
            rec["Total"] = row.total
            records.append(rec)
        totals = {"S.No": "", "Name": "Total Duties Allotted", "Designation": ""}
        totals.update(dict(zip(labels, self.column_totals)))
        totals["Total"] = self.grand_total
        records.append(totals)
        return pd.DataFrame.from_records(
            records, columns=["S.No", "Name", "Designation", *labels, "Total"],
        )


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _date_key(value: str) -> tuple[date, str]:
    return (parse_date(value) or date.max, str(value))


def sort_sessions(assignments: Iterable[Assignment]) -> list[Assignment]:
    """Sessions ordered by date, then by time slot label."""
    return sorted(assignments, key=lambda a: (_date_key(a.date), a.time))


# ─── Per-person ───────────────────────────────────────────────────────────────

def duties_per_invigilator(
    invigilators: list[Invigilator],
    assignments: list[Assignment],
) -> list[DutyCount]:
    counts = Counter(name for a in assignments for name in set(a.invigilators))
    return [DutyCount(inv.name, inv.designation, counts[inv.name]) for inv in invigilators]


def invigilator_duty_summary(
    invigilator: Invigilator,
    assignments: list[Assignment],
) -> list[DutyLine]:
    lines = []
    for a in sort_sessions(a for a in assignments if invigilator.name in a.invigilators):
        d = parse_date(a.date)
        lines.append(DutyLine(
            date=a.date,
            day=d.strftime("%a") if d else "",
            subject=a.subject,
            time=a.time,
        ))
    return lines


# ─── Analytics ────────────────────────────────────────────────────────────────

def daily_workload(allotment: SavedAllotment) -> list[DailyWorkload]:
    assigned: Counter[str] = Counter()
    for a in allotment.assignments:
        assigned[str(a.date)[:10]] += len(a.invigilators)
    staff = len(allotment.invigilators)
    return [
        DailyWorkload(date=d, assigned=n, free=staff - n)
        for d, n in sorted(assigned.items(), key=lambda kv: _date_key(kv[0]))
    ]


def invigilators_per_subject(assignments: list[Assignment]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for a in assignments:
        counts[a.subject] = counts.get(a.subject, 0) + len(a.invigilators)
    return counts


def invigilators_by_designation(invigilators: list[Invigilator]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for inv in invigilators:
        counts[inv.designation] = counts.get(inv.designation, 0) + 1
    return counts


def session_trends(allotment: SavedAllotment) -> list[SessionTrend]:
    trends: dict[str, SessionTrend] = {}
    for a in allotment.assignments:
        day = str(a.date)[:10]
        t = trends.setdefault(day, SessionTrend(date=day))
        t.total_duties += len(a.invigilators)
        exam = next((e for e in allotment.examinations if e.matches(a)), None)
        if exam is not None:
            t.rooms     += exam.rooms_allotted
            t.relievers += exam.relievers_required
    return sorted(trends.values(), key=lambda t: _date_key(t.date))


def day_wise_schedule(
    history: list[SavedAllotment],
    on_date: str,
) -> Optional[DaySchedule]:
    """
    Sessions held on *on_date* taken from the first allotment in *history*
    (newest first) that has any, sorted by time slot.  None when no
    allotment covers that date.
    """
    day = str(on_date)[:10]
    for allotment in history:
        sessions = [a for a in allotment.assignments if str(a.date)[:10] == day]
        if not sessions:
            continue
        return DaySchedule(
            college_name=allotment.college_name,
            exam_title=allotment.exam_title,
            date=day,
            sessions=sorted(
                (
                    DaySession(
                        subject=a.subject,
                        time=a.time,
                        invigilators=[i for i in allotment.invigilators if i.name in a.invigilators],
                    )
                    for a in sessions
                ),
                key=lambda s: s.time,
            ),
        )
    return None


# ─── Allotment sheet ──────────────────────────────────────────────────────────

def allotment_matrix(
    invigilators: list[Invigilator],
    assignments: list[Assignment],
) -> AllotmentMatrix:
    sessions = sort_sessions(assignments)
    rows = []
    for inv in invigilators:
        marks = [1 if inv.name in a.invigilators else 0 for a in sessions]
        rows.append(MatrixRow(invigilator=inv, marks=marks, total=sum(marks)))
    column_totals = [sum(r.marks[j] for r in rows) for j in range(len(sessions))]
    return AllotmentMatrix(
        sessions=sessions,
        rows=rows,
        column_totals=column_totals,
        grand_total=sum(r.total for r in rows),
    )
