"""
guardrails.py – Roster validation layer
=======================================
Checks that wrap the generation pipeline.  An LLM-generated allotment is
never trusted blindly: it is checked against the roster and the
examinations before it is shown, saved or emailed.

Guardrail levels
----------------
BLOCK   – Hard-stop: the allotment must not be published as-is.
WARN    – Soft-stop: the allotment can be used but needs a look.
INFO    – Advisory: informational note logged in the run trace.

Guards implemented
------------------
Input guards (before generation):
  R-01  At least one invigilator and one examination
  R-02  Invigilator names are unique (names are the assignment key)
  R-03  available_days only contains English weekday names
  R-04  Examination dates parse as ISO dates
  R-05  rooms_allotted is at least 1
  R-06  Seats needed on a date do not exceed staff available that date

Assignment guards (after generation / rebalancing):
  R-10  Every assigned name belongs to the roster
  R-11  No name appears twice in one session
  R-12  Part-time staff only on their available weekdays
  R-13  Nobody holds two sessions on the same date
  R-14  Staffing matches invigilators_needed of the examination
  R-15  Every session matches an examination
  R-16  No full-time senior holds more duties than a full-time junior
  R-17  Every examination has a session
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from enum import Enum

from dutyflow.models import (
    WEEKDAY_NAMES,
    Assignment,
    Examination,
    Invigilator,
    parse_date,
)


# ─── Enums & data models ─────────────────────────────────────────────────────

class GuardrailLevel(str, Enum):
    BLOCK = "BLOCK"
    WARN  = "WARN"
    INFO  = "INFO"


@dataclass
class GuardrailViolation:
    code:    str
    level:   GuardrailLevel
    message: str
    field:   str = ""   # which field / session triggered the violation


@dataclass
class GuardrailResult:
    passed:     bool
    violations: list[GuardrailViolation] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return any(v.level == GuardrailLevel.BLOCK for v in self.violations)

    @property
    def warnings(self) -> list[GuardrailViolation]:
        return [v for v in self.violations if v.level == GuardrailLevel.WARN]

    @property
    def infos(self) -> list[GuardrailViolation]:
        return [v for v in self.violations if v.level == GuardrailLevel.INFO]

    def codes(self) -> set[str]:
        return {v.code for v in self.violations}

    def summary(self) -> str:
        if not self.violations:
            return "✅ All guardrails passed."
        icon = {GuardrailLevel.BLOCK: "🚫", GuardrailLevel.WARN: "⚠️", GuardrailLevel.INFO: "ℹ️"}
        return "\n".join(f"{icon[v.level]} [{v.code}] {v.message}" for v in self.violations)


def _result(violations: list[GuardrailViolation]) -> GuardrailResult:
    return GuardrailResult(
        passed=not any(v.level == GuardrailLevel.BLOCK for v in violations),
        violations=violations,
    )


def _session_label(a: Assignment) -> str:
    return f"{a.date} {a.subject} ({a.time})"


# ─── Guardrail checks ─────────────────────────────────────────────────────────

class RosterInputGuardrails:
    """R-01 – R-06: Validates the roster and examinations before generation."""

    def check(
        self,
        invigilators: list[Invigilator],
        examinations: list[Examination],
    ) -> GuardrailResult:
        violations: list[GuardrailViolation] = []

        # R-01 Non-empty inputs
        if not invigilators:
            violations.append(GuardrailViolation(
                code="R-01", level=GuardrailLevel.BLOCK, field="invigilators",
                message="Add at least one invigilator.",
            ))
        if not examinations:
            violations.append(GuardrailViolation(
                code="R-01", level=GuardrailLevel.BLOCK, field="examinations",
                message="Add at least one examination.",
            ))

        # R-02 Unique names
        for name, n in Counter(inv.name for inv in invigilators).items():
            if n > 1:
                violations.append(GuardrailViolation(
                    code="R-02", level=GuardrailLevel.BLOCK, field=name,
                    message=f"Invigilator name '{name}' appears {n} times; names must be unique.",
                ))

        # R-03 Weekday names
        for inv in invigilators:
            bad = [d for d in (inv.available_days or []) if d not in WEEKDAY_NAMES]
            if bad:
                violations.append(GuardrailViolation(
                    code="R-03", level=GuardrailLevel.WARN, field=inv.name,
                    message=f"{inv.name}: unrecognised available day(s) {', '.join(bad)}.",
                ))

        # R-04 / R-05 Examination fields
        for exam in examinations:
            if parse_date(exam.date) is None:
                violations.append(GuardrailViolation(
                    code="R-04", level=GuardrailLevel.BLOCK, field=exam.subject,
                    message=f"Examination '{exam.subject}' has an invalid date '{exam.date}'.",
                ))
            if exam.rooms_allotted < 1:
                violations.append(GuardrailViolation(
                    code="R-05", level=GuardrailLevel.WARN, field=exam.subject,
                    message=f"Examination '{exam.subject}' on {exam.date} has no rooms allotted.",
                ))

        # R-06 Capacity per date (one session per person per day)
        needed: dict[str, int] = defaultdict(int)
        for exam in examinations:
            if parse_date(exam.date) is not None:
                needed[exam.iso_date] += max(exam.invigilators_needed, 0)
        for day, seats in sorted(needed.items()):
            available = sum(1 for inv in invigilators if inv.is_available_on(day))
            if seats > available:
                violations.append(GuardrailViolation(
                    code="R-06", level=GuardrailLevel.WARN, field=day,
                    message=(
                        f"{day}: {seats} invigilators needed but only {available} "
                        "available; some sessions will be short-staffed."
                    ),
                ))

        return _result(violations)


class AssignmentGuardrails:
    """R-10 – R-17: Validates an allotment against the full roster."""

    def check(
        self,
        invigilators: list[Invigilator],
        assignments: list[Assignment],
        examinations: list[Examination] | None = None,
    ) -> GuardrailResult:
        violations: list[GuardrailViolation] = []
        roster = {inv.name: inv for inv in invigilators}

        held_on: dict[tuple[str, str], list[Assignment]] = defaultdict(list)
        for a in assignments:
            label = _session_label(a)

            # R-11 Duplicates within one session
            for name, n in Counter(a.invigilators).items():
                if n > 1:
                    violations.append(GuardrailViolation(
                        code="R-11", level=GuardrailLevel.BLOCK, field=label,
                        message=f"{name} is listed {n} times for {label}.",
                    ))

            for name in dict.fromkeys(a.invigilators):
                inv = roster.get(name)
                # R-10 Unknown name
                if inv is None:
                    violations.append(GuardrailViolation(
                        code="R-10", level=GuardrailLevel.WARN, field=label,
                        message=f"'{name}' on {label} is not in the roster.",
                    ))
                    continue
                # R-12 Part-time day
                if not inv.is_available_on(a.date):
                    violations.append(GuardrailViolation(
                        code="R-12", level=GuardrailLevel.BLOCK, field=label,
                        message=(
                            f"{name} is part-time ({', '.join(inv.available_days or [])}) "
                            f"but is assigned on {label}."
                        ),
                    ))
                held_on[(name, str(a.date)[:10])].append(a)

        # R-13 Double duty on one date
        for (name, day), sessions in held_on.items():
            if len(sessions) > 1:
                violations.append(GuardrailViolation(
                    code="R-13", level=GuardrailLevel.BLOCK, field=name,
                    message=(
                        f"{name} holds {len(sessions)} sessions on {day}: "
                        + "; ".join(_session_label(s) for s in sessions)
                    ),
                ))

        # R-14 / R-15 Staffing against examinations
        if examinations is not None:
            for a in assignments:
                exam = next((e for e in examinations if e.matches(a)), None)
                if exam is None:
                    violations.append(GuardrailViolation(
                        code="R-15", level=GuardrailLevel.WARN, field=_session_label(a),
                        message=f"{_session_label(a)} does not match any examination.",
                    ))
                    continue
                if len(set(a.invigilators)) != exam.invigilators_needed:
                    violations.append(GuardrailViolation(
                        code="R-14", level=GuardrailLevel.WARN, field=_session_label(a),
                        message=(
                            f"{_session_label(a)} has {len(set(a.invigilators))} "
                            f"invigilator(s); {exam.invigilators_needed} needed."
                        ),
                    ))

            # R-17 Examinations left without a session
            for exam in examinations:
                if not any(exam.matches(a) for a in assignments):
                    label = f"{exam.iso_date} {exam.subject} ({exam.time_slot})"
                    violations.append(GuardrailViolation(
                        code="R-17", level=GuardrailLevel.BLOCK, field=label,
                        message=f"Examination {label} has no session in the allotment.",
                    ))

        # R-16 Seniority fairness (advisory)
        full_time = [inv for inv in invigilators if not inv.is_part_time]
        counts = Counter(name for a in assignments for name in set(a.invigilators))
        for i, senior in enumerate(full_time):
            for junior in full_time[i + 1:]:
                if counts[senior.name] > counts[junior.name]:
                    violations.append(GuardrailViolation(
                        code="R-16", level=GuardrailLevel.INFO, field=senior.name,
                        message=(
                            f"{senior.name} ({counts[senior.name]} duties) has more duties "
                            f"than junior {junior.name} ({counts[junior.name]})."
                        ),
                    ))

        return _result(violations)


# ─── Convenience façade ───────────────────────────────────────────────────────

class GuardrailsPipeline:
    """
    Single entry-point that runs the guardrails for a given pipeline stage.

    Usage::

        gp = GuardrailsPipeline()
        result = gp.check_input(invigilators, examinations)
        result = gp.check_assignments(invigilators, assignments, examinations)
    """

    def __init__(self):
        self.input_guard      = RosterInputGuardrails()
        self.assignment_guard = AssignmentGuardrails()

    def check_input(self, invigilators, examinations) -> GuardrailResult:
        return self.input_guard.check(invigilators, examinations)

    def check_assignments(self, invigilators, assignments, examinations=None) -> GuardrailResult:
        return self.assignment_guard.check(invigilators, assignments, examinations)

    def merge(self, *results: GuardrailResult) -> GuardrailResult:
        """Merge multiple GuardrailResult objects into one."""
        all_v = []
        for r in results:
            all_v.extend(r.violations)
        return _result(all_v)
