"""
mock_allotter.py – Rule-based duty allotment (no Azure OpenAI needed).

Follows the same rules the LLM is prompted with, so the whole pipeline is
usable and testable before credentials are wired in:

  • one assignment per examination, sorted by date then start time
  • part-time staff only on their available weekdays
  • at most one session per person per day
  • fewest duties first, then avoid back-to-back days, then juniors before
    seniors (seniors end up with fewer duties)
  • sessions that cannot be fully staffed get everyone who is available
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import timedelta

from dutyflow.models import Assignment, Examination, Invigilator, parse_date

logger = logging.getLogger(__name__)


def _sort_key(exam: Examination) -> tuple[str, str, str]:
    return (exam.iso_date, exam.start_time, exam.subject)


class MockAllotter:
    """Greedy allotter used as Tier 2 when no model is configured."""

    def run(
        self,
        invigilators: list[Invigilator],
        examinations: list[Examination],
    ) -> list[Assignment]:
        rank    = {inv.name: i for i, inv in enumerate(invigilators)}
        duties: dict[str, int]      = defaultdict(int)
        days:   dict[str, set[str]] = defaultdict(set)
        assignments: list[Assignment] = []

        for exam in sorted(examinations, key=_sort_key):
            day  = exam.iso_date
            d    = parse_date(day)
            prev = (d - timedelta(days=1)).isoformat() if d else ""

            candidates = [
                inv for inv in invigilators
                if inv.is_available_on(day) and day not in days[inv.name]
            ]
            candidates.sort(key=lambda inv: (
                duties[inv.name],
                prev in days[inv.name],
                -rank[inv.name],
            ))
            chosen = [inv.name for inv in candidates[: max(exam.invigilators_needed, 0)]]
            if len(chosen) < exam.invigilators_needed:
                logger.warning(
                    "%s %s (%s): only %d of %d invigilators available",
                    day, exam.subject, exam.time_slot, len(chosen), exam.invigilators_needed,
                )
            for name in chosen:
                duties[name] += 1
                days[name].add(day)

            assignments.append(Assignment(
                date=day,
                subject=exam.subject,
                time=exam.time_slot,
                invigilators=chosen,
            ))

        logger.info(
            "Rule-based allotment: %d sessions, %d duties",
            len(assignments), sum(duties.values()),
        )
        return assignments
