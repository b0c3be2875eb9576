"""
dutyflow/storage.py — SQLite persistence for allotments
=======================================================
Stores every generated allotment (history) and every allotment the user
explicitly saves, so rosters can be reopened, analysed, exported or
rebalanced later without calling the model again.

Design decisions
----------------
- **JSON blobs** — each allotment is stored as one TEXT column holding the
  SavedAllotment JSON, plus a few columns for listing.  One .db file is the
  whole archive.
- **WAL journal mode** — the CLI and any reporting job can read at once.
- **Per-call connections** — every function opens and closes its own
  connection; the schema is created on first use.

Database file location
----------------------
``DUTYFLOW_DB_PATH`` (default ``dutyflow_data.db`` in the working directory).

Tables
------
  saved_allotments    id TEXT PK, exam_title, first_exam_date, allotment_json,
                      created_at, updated_at  — upsert by id
  duty_history        seq PK, allotment_id, exam_title, first_exam_date,
                      allotment_json, trace_json, created_at — append only
  llm_response_cache  cache_key PK, model, response_json, created_at, hit_count

Public API
----------
  init_db()
  save_allotment(allotment)        → id
  get_allotment(id)                → SavedAllotment | None
  list_saved_allotments()          → list[SavedAllotment]   newest first
  delete_allotment(id)             → bool
  clear_saved_allotments()         → rows deleted
  append_history(allotment, trace) → seq
  list_history()                   → list[SavedAllotment]   newest first
  get_history_entry(id)            → (SavedAllotment, RunTrace | None) | None
  get_llm_cache(key) / set_llm_cache(key, model, response)
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Optional

from dutyflow.config import get_settings
from dutyflow.models import SavedAllotment
from dutyflow.trace import RunTrace

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS saved_allotments (
    id              TEXT PRIMARY KEY,
    exam_title      TEXT,
    first_exam_date TEXT,
    allotment_json  TEXT NOT NULL,
    created_at      TEXT DEFAULT (datetime('now')),
    updated_at      TEXT DEFAULT (datetime('now'))
);
CREATE TABLE IF NOT EXISTS duty_history (
    seq             INTEGER PRIMARY KEY AUTOINCREMENT,
    allotment_id    TEXT NOT NULL,
    exam_title      TEXT,
    first_exam_date TEXT,
    allotment_json  TEXT NOT NULL,
    trace_json      TEXT,
    created_at      TEXT DEFAULT (datetime('now'))
);
CREATE TABLE IF NOT EXISTS llm_response_cache (
    cache_key     TEXT PRIMARY KEY,
    model         TEXT NOT NULL,
    response_json TEXT NOT NULL,
    created_at    TEXT DEFAULT (datetime('now')),
    hit_count     INTEGER DEFAULT 0
);
"""


def _db_path() -> Path:
    return Path(get_settings().storage.db_path)


def _get_conn() -> sqlite3.Connection:
    """Return a connection with row_factory set and the schema in place."""
    path = _db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.executescript(_SCHEMA)
    return conn


def init_db() -> None:
    """Create tables if they don't exist."""
    conn = _get_conn()
    conn.close()
    logger.debug("Database ready at %s", _db_path())


def _to_json(allotment: SavedAllotment) -> str:
    return allotment.model_dump_json()


def _from_row(row: sqlite3.Row) -> SavedAllotment:
    return SavedAllotment.model_validate_json(row["allotment_json"])


# ─── Saved allotments ─────────────────────────────────────────────────────────

def save_allotment(allotment: SavedAllotment) -> str:
    """Insert or update *allotment* by id; an update keeps its list position."""
    conn = _get_conn()
    conn.execute(
        """
        INSERT INTO saved_allotments (id, exam_title, first_exam_date, allotment_json)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            exam_title      = excluded.exam_title,
            first_exam_date = excluded.first_exam_date,
            allotment_json  = excluded.allotment_json,
            updated_at      = datetime('now')
        """,
        (allotment.id, allotment.exam_title, allotment.first_exam_date, _to_json(allotment)),
    )
    conn.commit()
    conn.close()
    logger.info("Saved allotment %s (%s)", allotment.id, allotment.exam_title)
    return allotment.id


def get_allotment(allotment_id: str) -> Optional[SavedAllotment]:
    """Fetch a saved allotment by id. Returns None if missing."""
    conn = _get_conn()
    row = conn.execute(
        "SELECT allotment_json FROM saved_allotments WHERE id = ?", (allotment_id,)
    ).fetchone()
    conn.close()
    return _from_row(row) if row else None


def list_saved_allotments() -> list[SavedAllotment]:
    """All saved allotments, most recently created first."""
    conn = _get_conn()
    rows = conn.execute(
        "SELECT allotment_json FROM saved_allotments ORDER BY rowid DESC"
    ).fetchall()
    conn.close()
    return [_from_row(r) for r in rows]


def delete_allotment(allotment_id: str) -> bool:
    conn = _get_conn()
    cur = conn.execute("DELETE FROM saved_allotments WHERE id = ?", (allotment_id,))
    conn.commit()
    conn.close()
    return cur.rowcount > 0


def clear_saved_allotments() -> int:
    conn = _get_conn()
    cur = conn.execute("DELETE FROM saved_allotments")
    conn.commit()
    conn.close()
    logger.info("Cleared %d saved allotment(s)", cur.rowcount)
    return cur.rowcount


# ─── Generation history ───────────────────────────────────────────────────────

def append_history(allotment: SavedAllotment, trace: Optional[RunTrace] = None) -> int:
    """Record a freshly generated allotment (and its run trace)."""
    conn = _get_conn()
    cur = conn.execute(
        """
        INSERT INTO duty_history
            (allotment_id, exam_title, first_exam_date, allotment_json, trace_json)
        VALUES (?, ?, ?, ?, ?)
        """,
        (
            allotment.id,
            allotment.exam_title,
            allotment.first_exam_date,
            _to_json(allotment),
            json.dumps(trace.to_dict()) if trace else None,
        ),
    )
    conn.commit()
    seq = cur.lastrowid
    conn.close()
    return seq


def list_history() -> list[SavedAllotment]:
    """Every generated allotment, newest first."""
    conn = _get_conn()
    rows = conn.execute(
        "SELECT allotment_json FROM duty_history ORDER BY seq DESC"
    ).fetchall()
    conn.close()
    return [_from_row(r) for r in rows]


def get_history_entry(allotment_id: str) -> Optional[tuple[SavedAllotment, Optional[RunTrace]]]:
    """Latest history entry for *allotment_id*, with its trace if recorded."""
    conn = _get_conn()
    row = conn.execute(
        """
        SELECT allotment_json, trace_json FROM duty_history
        WHERE allotment_id = ? ORDER BY seq DESC LIMIT 1
        """,
        (allotment_id,),
    ).fetchone()
    conn.close()
    if row is None:
        return None
    trace = RunTrace.from_dict(json.loads(row["trace_json"])) if row["trace_json"] else None
    return _from_row(row), trace


# ─── LLM Response Cache ──────────────────────────────────────────────────────

def get_llm_cache(cache_key: str) -> Optional[dict]:
    """Return the cached LLM response dict, or None on miss.
    Also increments hit_count so reuse can be reported.
    """
    conn = _get_conn()
    row = conn.execute(
        "SELECT response_json FROM llm_response_cache WHERE cache_key = ?",
        (cache_key,),
    ).fetchone()
    if row is None:
        conn.close()
        return None
    conn.execute(
        "UPDATE llm_response_cache SET hit_count = hit_count + 1 WHERE cache_key = ?",
        (cache_key,),
    )
    conn.commit()
    conn.close()
    return json.loads(row["response_json"])


def set_llm_cache(cache_key: str, model: str, response: dict) -> None:
    """Persist an LLM response dict keyed by its SHA-256 hash.
    Silently ignores duplicate keys (same input → same result).
    """
    conn = _get_conn()
    conn.execute(
        """
        INSERT OR IGNORE INTO llm_response_cache (cache_key, model, response_json)
        VALUES (?, ?, ?)
        """,
        (cache_key, model, json.dumps(response)),
    )
    conn.commit()
    conn.close()
