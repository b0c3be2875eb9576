"""
Shared pytest fixtures for the DutyFlow test suite.
All fixtures use mock mode — no Azure credentials or SMTP server required.
Factory helpers live in tests/factories.py so they can be imported
directly by test modules as well as being used here.
"""
import sys
import os

_tests_dir = os.path.dirname(__file__)
_src_dir   = os.path.join(_tests_dir, "..", "src")
for _p in (_tests_dir, _src_dir):
    if _p not in sys.path:
        sys.path.insert(0, _p)

# Force mock mode: never call Azure during tests
os.environ["FORCE_MOCK_MODE"] = "true"
os.environ.setdefault("AZURE_OPENAI_ENDPOINT", "<placeholder>")
os.environ.setdefault("AZURE_OPENAI_API_KEY",  "<placeholder>")


import pytest

from factories import make_allotment, make_exam, make_invigilator


# ─── Isolation ────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def isolated_db(tmp_path, monkeypatch):
    """Every test gets its own SQLite file."""
    db = tmp_path / "dutyflow_test.db"
    monkeypatch.setenv("DUTYFLOW_DB_PATH", str(db))
    return db


@pytest.fixture
def no_smtp(monkeypatch):
    for key in ("SMTP_USER", "SMTP_PASS", "SMTP_FROM"):
        monkeypatch.delenv(key, raising=False)


# ─── Roster fixtures ──────────────────────────────────────────────────────────

@pytest.fixture
def staff():
    """Four full-time staff (most senior first) and one Monday/Wednesday part-timer."""
    return [
        make_invigilator("Dr. Rao",    "Professor"),
        make_invigilator("Dr. Mehta",  "Associate Professor"),
        make_invigilator("Ms. Iyer",   "Assistant Professor"),
        make_invigilator("Mr. Khan",   "Assistant Professor"),
        make_invigilator("Ms. Dsouza", "Guest Faculty", available_days=["Monday", "Wednesday"]),
    ]


@pytest.fixture
def exams():
    """A week of exams: 2024-01-01 is a Monday."""
    return [
        make_exam("2024-01-01", "Mathematics", rooms=2),
        make_exam("2024-01-02", "Physics",     rooms=2),
        make_exam("2024-01-03", "Chemistry",   rooms=2),
        make_exam("2024-01-04", "Biology",     rooms=1),
        make_exam("2024-01-05", "English",     rooms=1),
    ]


@pytest.fixture
def allotment(staff, exams):
    return make_allotment(staff, exams)
