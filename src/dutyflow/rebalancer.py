"""
rebalancer.py — Seniority-aware fairness pass over a duty allotment
===================================================================
Takes an existing allotment (from the LLM, the rule-based allotter or a
saved history entry) and moves duties from senior to junior full-time
staff until no senior holds more duties than a junior, or no further
move is feasible.

Rules
-----
- The roster order is the seniority order (index 0 = most senior).
- Part-time staff (non-empty ``available_days``) are never moved, but
  their duties still block same-day moves for everybody else.
- Sessions are never added, removed or reordered; only the
  ``invigilators`` list of existing sessions changes.
- Duties only move senior → junior, one move per pair per pass.
- Passes repeat while a pass made at least one swap, capped at
  ``len(full_time) ** 2`` passes.

The caller's list is never mutated: the pass works on a clone and
returns it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from dutyflow.models import Assignment, Invigilator, clone_assignments

logger = logging.getLogger(__name__)


@dataclass
class RebalanceStats:
    """What a rebalancing run did (for logging and the run trace)."""
    full_time_count: int
    max_passes:      int
    passes:          int = 0
    swaps:           int = 0
    converged:       bool = True


# ─── Helpers ──────────────────────────────────────────────────────────────────

def count_duties(assignments: list[Assignment], name: str) -> int:
    """Number of sessions whose invigilator list contains *name*."""
    return sum(1 for a in assignments if name in a.invigilators)


def is_available(
    invigilator: Invigilator,
    assignment: Assignment,
    assignments: list[Assignment],
) -> bool:
    """
    Can *invigilator* take *assignment* given everything else in *assignments*?

    False when already on that session, when the weekday is outside a
    part-timer's days, or when they already hold another session that date.
    """
    if invigilator.name in assignment.invigilators:
        return False
    if not invigilator.is_available_on(assignment.date):
        return False
    day = str(assignment.date)[:10]
    for other in assignments:
        if other is assignment:
            continue
        if str(other.date)[:10] == day and invigilator.name in other.invigilators:
            return False
    return True


def _try_swap(
    senior: Invigilator,
    junior: Invigilator,
    assignments: list[Assignment],
) -> bool:
    """Move the first of *senior*'s sessions that *junior* can take."""
    for a in assignments:
        if senior.name not in a.invigilators:
            continue
        if is_available(junior, a, assignments):
            a.invigilators.remove(senior.name)
            a.invigilators.append(junior.name)
            logger.debug(
                "Moved %s %s (%s) from %s to %s",
                a.date, a.subject, a.time, senior.name, junior.name,
            )
            return True
    return False


# ─── Public interface ─────────────────────────────────────────────────────────

def rebalance_with_stats(
    staff: list[Invigilator],
    assignments: list[Assignment],
) -> tuple[list[Assignment], RebalanceStats]:
    """Like :func:`rebalance` but also returns a :class:`RebalanceStats`."""
    working   = clone_assignments(assignments)
    full_time = [inv for inv in staff if not inv.is_part_time]
    stats     = RebalanceStats(
        full_time_count=len(full_time),
        max_passes=len(full_time) ** 2,
    )

    swaps_in_pass = 0
    while stats.passes < stats.max_passes:
        swaps_in_pass = 0
        for i, senior in enumerate(full_time):
            for junior in full_time[i + 1:]:
                senior_count = count_duties(working, senior.name)
                junior_count = count_duties(working, junior.name)
                if senior_count <= junior_count:
                    continue
                if _try_swap(senior, junior, working):
                    swaps_in_pass += 1
        stats.passes += 1
        stats.swaps  += swaps_in_pass
        if swaps_in_pass == 0:
            break

    stats.converged = swaps_in_pass == 0
    logger.info(
        "Rebalanced %d sessions across %d full-time staff: %d swaps in %d passes%s",
        len(working), stats.full_time_count, stats.swaps, stats.passes,
        "" if stats.converged else " (pass cap reached)",
    )
    return working, stats


def rebalance(
    staff: list[Invigilator],
    assignments: list[Assignment],
) -> list[Assignment]:
    """
    Return a rebalanced copy of *assignments*.

    Never raises for well-formed input: empty rosters, empty allotments,
    all-part-time rosters and names missing from *staff* all pass through.
    """
    rebalanced, _ = rebalance_with_stats(staff, assignments)
    return rebalanced
