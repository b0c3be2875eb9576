"""
dutyflow — Examination invigilation duty roster toolkit
========================================================
Package containing the duty generation agents, the seniority rebalancer,
roster guardrails, persistence, reports, exporters and notification helpers.

Module map
----------
  models.py            Pydantic models: Invigilator, Examination, Assignment,
                       SavedAllotment; weekday helpers; manual duty toggling.
  config.py            Settings loaded from .env; live / mock detection.
  storage.py           SQLite persistence (saved allotments, history, LLM cache).
  guardrails.py        Roster validation rules R-01..R-17.
  trace.py             PipelineStep / RunTrace audit log.

  allotment_agent.py   LLM duty generation + generate_allotment() pipeline.
  mock_allotter.py     Rule-based allotter (no Azure needed).
  rebalancer.py        Seniority-aware fairness pass over an allotment.
  reports.py           Duty counts, per-person summaries, analytics, sheet matrix.
  export.py            XLSX (openpyxl / pandas) and PDF (reportlab) export.
  notifications.py     SMTP email helpers, bulk send, duty notices.
  cli.py               `dutyflow` command-line entry point.

Pipeline order
--------------
  RosterInputGuardrails → DutyAllotmentAgent (LLM) | MockAllotter (fallback)
  → rebalance() → AssignmentGuardrails → storage.append_history()
"""
__version__ = "0.1.0"
