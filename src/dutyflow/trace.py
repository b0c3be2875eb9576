"""
trace.py — Lightweight audit log for allotment pipeline runs
============================================================
Every stage of ``generate_allotment`` (input guardrails, generation,
rebalancing, assignment guardrails) emits a PipelineStep record.  The steps
are collected into a RunTrace, which is returned to the caller and stored
next to the allotment in the history table.

Key fields
----------
  PipelineStep.status       "success" | "fallback" | "skipped"
  PipelineStep.duration_ms  Wall-clock milliseconds for that stage
  PipelineStep.decisions    Human-readable list of choices the stage made
  PipelineStep.warnings     Any non-fatal issues detected by the stage
  RunTrace.mode             "mock" | "azure_openai"
  RunTrace.total_ms         End-to-end pipeline wall time
"""

from __future__ import annotations

import datetime
import time
import uuid
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from typing import Any, Iterator


@dataclass
class PipelineStep:
    """One stage's contribution inside a pipeline run."""
    step_id:        str
    step_name:      str
    start_ms:       float            # relative to run start
    duration_ms:    float = 0.0
    status:         str   = "success"
    input_summary:  str   = ""
    output_summary: str   = ""
    decisions:      list[str] = field(default_factory=list)
    warnings:       list[str] = field(default_factory=list)
    detail:         dict[str, Any] = field(default_factory=dict)


@dataclass
class RunTrace:
    """Full trace for a single allotment run."""
    run_id:     str
    exam_title: str
    timestamp:  str
    mode:       str
    total_ms:   float = 0.0
    steps:      list[PipelineStep] = field(default_factory=list)

    def append(self, step: PipelineStep) -> None:
        self.steps.append(step)

    def step(self, step_id: str) -> PipelineStep | None:
        return next((s for s in self.steps if s.step_id == step_id), None)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunTrace":
        known = {f for f in PipelineStep.__dataclass_fields__}
        steps = [
            PipelineStep(**{k: v for k, v in s.items() if k in known})
            for s in data.get("steps", [])
        ]
        return cls(
            run_id     = data.get("run_id", ""),
            exam_title = data.get("exam_title", ""),
            timestamp  = data.get("timestamp", ""),
            mode       = data.get("mode", ""),
            total_ms   = data.get("total_ms", 0.0),
            steps      = steps,
        )


def new_trace(exam_title: str, mode: str) -> RunTrace:
    return RunTrace(
        run_id     = str(uuid.uuid4())[:8].upper(),
        exam_title = exam_title,
        timestamp  = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        mode       = mode,
    )


@contextmanager
def timed_step(trace: RunTrace, step_id: str, step_name: str) -> Iterator[PipelineStep]:
    """
    Append a PipelineStep to *trace* and time the ``with`` body::

        with timed_step(trace, "rebalance", "Seniority rebalancer") as step:
            ...
            step.output_summary = "3 swaps"
    """
    started = time.perf_counter()
    step = PipelineStep(step_id=step_id, step_name=step_name, start_ms=trace.total_ms)
    trace.append(step)
    try:
        yield step
    finally:
        step.duration_ms = round((time.perf_counter() - started) * 1000, 2)
        trace.total_ms   = round(trace.total_ms + step.duration_ms, 2)
