"""
Duty Allotment Agent
====================
DutyAllotmentAgent
    Sends the roster (in seniority order) and the examination list to Azure
    OpenAI and parses the returned duty assignments.  Uses JSON-mode with a
    schema-anchored system prompt so the output is directly parseable.
    Returns: list[Assignment]

generate_allotment
    Full pipeline: input guardrails → LLM (or rule-based fallback)
    → seniority rebalancer → assignment guardrails.  Every stage is timed
    into a RunTrace.
    Returns: AllotmentRun
"""

from __future__ import annotations

import hashlib
import json
import logging
import textwrap
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from openai import AzureOpenAI, OpenAIError
from pydantic import BaseModel, ValidationError

from dutyflow import storage
from dutyflow.config import AzureOpenAIConfig, Settings, get_settings
from dutyflow.guardrails import GuardrailResult, GuardrailsPipeline
from dutyflow.mock_allotter import MockAllotter
from dutyflow.models import Assignment, Examination, Invigilator, SavedAllotment
from dutyflow.rebalancer import RebalanceStats, rebalance_with_stats
from dutyflow.trace import RunTrace, new_trace, timed_step

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Prompt
# ─────────────────────────────────────────────────────────────────────────────

# The exact JSON shape we expect back from the LLM.
_ALLOTMENT_JSON_SCHEMA = {
    "assignments": [
        {
            "date":         "string (YYYY-MM-DD, copied from the examination)",
            "subject":      "string (copied from the examination)",
            "time":         "string (copied from the examination time slot)",
            "invigilators": ["string (invigilator name, exactly as given)"],
        }
    ]
}

_SYSTEM_PROMPT = textwrap.dedent("""
    You are an expert in academic administration, specialising in fair and
    optimised invigilation duty schedules for examinations.

    Assign invigilators to every examination you are given.

    ## Core Rules
    1. Seniority precedence: invigilators are listed in order of seniority
       (index 0 is the most senior). Seniors should get fewer duties than juniors.
    2. Duty distribution: spread duties as evenly as possible; totals for any
       two invigilators should not differ significantly, while respecting seniority.
    3. Availability: invigilators without 'available_days' are full-time and may
       take any examination. Part-time invigilators MUST only be assigned on
       their listed 'available_days'.
    4. No double duty: nobody may be assigned more than one examination on the same day.
    5. Meet requirements: each examination gets exactly 'invigilators_needed' people.
    6. Avoid back-to-back days for the same invigilator where possible.

    ## Output
    Respond with ONLY a valid JSON object matching this schema exactly,
    with one entry per examination in the order given:
""") + json.dumps(_ALLOTMENT_JSON_SCHEMA, indent=2) + (
    "\n\nDo NOT include any explanation, markdown, or extra text outside the JSON."
)


class AllotmentResponse(BaseModel):
    """Top-level shape of the LLM reply; ``assignments`` is required."""
    assignments: list[Assignment]


def _build_user_message(
    invigilators: list[Invigilator],
    examinations: list[Examination],
) -> str:
    staff = [
        {
            "name":           inv.name,
            "designation":    inv.designation,
            "available_days": inv.available_days or [],
        }
        for inv in invigilators
    ]
    exams = [
        {
            "date":                e.iso_date,
            "subject":             e.subject,
            "time":                e.time_slot,
            "invigilators_needed": e.invigilators_needed,
        }
        for e in examinations
    ]
    return (
        "Invigilators (sorted by seniority, most senior first):\n"
        + json.dumps(staff, indent=2)
        + "\n\nExaminations:\n"
        + json.dumps(exams, indent=2)
        + "\n\nGenerate the duty assignments JSON."
    )


# ─────────────────────────────────────────────────────────────────────────────
# AGENT – Duty allotment (LLM-powered)
# ─────────────────────────────────────────────────────────────────────────────

class DutyAllotmentAgent:
    """
    Sends the roster and examinations to an LLM and returns validated
    Assignment models.

    Execution strategy:
      1. Direct Azure OpenAI   — when AZURE_OPENAI_ENDPOINT + KEY are set.
      2. Raise EnvironmentError — not configured (caller falls back to
         MockAllotter).

    Responses are cached in SQLite by request hash, so regenerating the same
    roster does not call the model again.
    """

    def __init__(
        self,
        config: AzureOpenAIConfig | None = None,
        client: Any = None,
        use_cache: bool = True,
    ) -> None:
        self._cfg       = config or get_settings().openai
        self._use_cache = use_cache
        self._client    = client
        if self._client is None and self._cfg.is_configured:
            self._client = AzureOpenAI(
                azure_endpoint=self._cfg.endpoint,
                api_key=self._cfg.api_key,
                api_version=self._cfg.api_version,
            )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    # ── LLM call ─────────────────────────────────────────────────────────────

    def _cache_key(self, user_message: str) -> str:
        payload = f"{self._cfg.deployment}\n{_SYSTEM_PROMPT}\n{user_message}"
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def _call_llm(self, user_message: str) -> AllotmentResponse:
        if self._client is None:
            raise EnvironmentError(
                "Azure OpenAI is not configured. "
                "Set AZURE_OPENAI_ENDPOINT + AZURE_OPENAI_API_KEY."
            )

        key = self._cache_key(user_message)
        if self._use_cache:
            cached = storage.get_llm_cache(key)
            if cached is not None:
                logger.info("Duty allotment served from LLM cache (%s…)", key[:12])
                return AllotmentResponse.model_validate(cached)

        response = self._client.chat.completions.create(
            model=self._cfg.deployment,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user",   "content": user_message},
            ],
            temperature=0.2,
            max_tokens=4000,
        )
        data = json.loads(response.choices[0].message.content)
        reply = AllotmentResponse.model_validate(data)
        # only replies that validate are cached
        if self._use_cache:
            storage.set_llm_cache(key, self._cfg.deployment, data)
        return reply

    # ── Public interface ──────────────────────────────────────────────────────

    def run(
        self,
        invigilators: list[Invigilator],
        examinations: list[Examination],
    ) -> list[Assignment]:
        """
        Generate assignments for *examinations*.

        Raises:
            EnvironmentError     – Azure OpenAI credentials not configured.
            ValidationError      – LLM returned JSON that doesn't match the schema
                                   (including a non-object reply or a missing
                                   "assignments" list).
            json.JSONDecodeError – LLM response was not valid JSON (rare).
        """
        reply = self._call_llm(_build_user_message(invigilators, examinations))
        assignments = reply.assignments
        logger.info("LLM allotment: %d sessions", len(assignments))
        return assignments


# ─────────────────────────────────────────────────────────────────────────────
# Pipeline
# ─────────────────────────────────────────────────────────────────────────────

class AllotmentBlocked(Exception):
    """Input guardrails blocked generation."""

    def __init__(self, result: GuardrailResult) -> None:
        super().__init__(result.summary())
        self.result = result


@dataclass
class AllotmentRun:
    allotment:       SavedAllotment
    mode:            str
    guardrails:      GuardrailResult
    trace:           RunTrace
    rebalance_stats: Optional[RebalanceStats] = None

    @property
    def assignments(self) -> list[Assignment]:
        return self.allotment.assignments


def generate_allotment(
    invigilators: list[Invigilator],
    examinations: list[Examination],
    *,
    exam_title: str = "",
    college_name: str = "",
    settings: Settings | None = None,
    rebalance_after: bool = True,
    agent: DutyAllotmentAgent | None = None,
) -> AllotmentRun:
    """
    Run the full allotment pipeline.

    Uses the LLM when live mode is on (or an *agent* is supplied), otherwise
    the rule-based MockAllotter.  LLM failures fall back to the MockAllotter.

    Raises:
        AllotmentBlocked – roster / examination input failed a BLOCK guardrail.
    """
    settings = settings or get_settings()
    gp       = GuardrailsPipeline()
    use_llm  = agent is not None or settings.live_mode
    trace    = new_trace(exam_title, "azure_openai" if use_llm else "mock")

    # ── Input guardrails ─────────────────────────────────────────────────────
    with timed_step(trace, "input_guardrails", "Roster input guardrails") as step:
        input_result = gp.check_input(invigilators, examinations)
        step.input_summary  = f"{len(invigilators)} invigilators, {len(examinations)} examinations"
        step.output_summary = input_result.summary()
        step.warnings       = [v.message for v in input_result.warnings]
    if input_result.blocked:
        raise AllotmentBlocked(input_result)

    # ── Generation ───────────────────────────────────────────────────────────
    with timed_step(trace, "generate", "Duty generation") as step:
        assignments: list[Assignment] | None = None
        if use_llm:
            try:
                llm = agent or DutyAllotmentAgent(settings.openai)
                assignments = llm.run(invigilators, examinations)
                step.decisions.append("Generated with Azure OpenAI")
            except (EnvironmentError, OpenAIError, json.JSONDecodeError, ValidationError) as exc:
                logger.warning("LLM allotment failed (%s); using rule-based allotter", exc)
                step.status = "fallback"
                step.warnings.append(f"LLM failed: {exc}")
                trace.mode = "mock"
        if assignments is None:
            assignments = MockAllotter().run(invigilators, examinations)
            step.decisions.append("Generated with rule-based allotter")
        step.output_summary = (
            f"{len(assignments)} sessions, "
            f"{sum(len(a.invigilators) for a in assignments)} duties"
        )

    # ── Rebalancing ──────────────────────────────────────────────────────────
    stats = None
    with timed_step(trace, "rebalance", "Seniority rebalancer") as step:
        if rebalance_after:
            assignments, stats = rebalance_with_stats(invigilators, assignments)
            step.output_summary = f"{stats.swaps} swaps in {stats.passes} passes"
            step.detail = {"converged": stats.converged, "max_passes": stats.max_passes}
            if not stats.converged:
                step.warnings.append("Pass cap reached before convergence")
        else:
            step.status = "skipped"

    # ── Assignment guardrails ────────────────────────────────────────────────
    with timed_step(trace, "assignment_guardrails", "Assignment guardrails") as step:
        result = gp.check_assignments(invigilators, assignments, examinations)
        step.output_summary = result.summary()
        step.warnings       = [v.message for v in result.warnings]

    first_date = min((e.iso_date for e in examinations), default="")
    allotment = SavedAllotment(
        id=datetime.now().isoformat(),
        college_name=college_name or settings.app.college_name,
        exam_title=exam_title or SavedAllotment.default_title(first_date),
        first_exam_date=first_date,
        invigilators=list(invigilators),
        examinations=list(examinations),
        assignments=assignments,
    )
    trace.exam_title = allotment.exam_title
    return AllotmentRun(
        allotment=allotment,
        mode=trace.mode,
        guardrails=gp.merge(input_result, result),
        trace=trace,
        rebalance_stats=stats,
    )
