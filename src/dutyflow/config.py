"""
config.py — Central settings for DutyFlow
==========================================
All configuration is loaded from environment variables / .env file.
Copy .env.example → .env and fill in your values.

Live mode activates automatically when AZURE_OPENAI_ENDPOINT and
AZURE_OPENAI_API_KEY contain real (non-placeholder) values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load .env into os.environ (no-op if already set, safe to call multiple times)
load_dotenv(override=False)


# ─── Helpers ────────────────────────────────────────────────────────────────

def _is_placeholder(value: str) -> bool:
    """Return True if the value looks like an unfilled template placeholder."""
    return not value or "<" in value or value.startswith("your-") or value == "PLACEHOLDER"


# ─── Azure OpenAI ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AzureOpenAIConfig:
    endpoint:    str
    api_key:     str
    deployment:  str
    api_version: str

    @property
    def is_configured(self) -> bool:
        """True when both endpoint and key are real (non-placeholder) values."""
        return (
            bool(self.endpoint)
            and bool(self.api_key)
            and not _is_placeholder(self.endpoint)
            and not _is_placeholder(self.api_key)
        )


# ─── SMTP (duty notices) ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class SmtpConfig:
    host:     str
    port:     int
    user:     str
    password: str
    sender:   str

    @property
    def is_configured(self) -> bool:
        return (
            bool(self.user)
            and bool(self.password)
            and not _is_placeholder(self.user)
            and not _is_placeholder(self.password)
        )


# ─── Storage ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StorageConfig:
    db_path: str


# ─── App-level settings ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class AppConfig:
    force_mock_mode: bool
    college_name:    str
    log_level:       str


# ─── Master settings object ──────────────────────────────────────────────────

@dataclass(frozen=True)
class Settings:
    openai:  AzureOpenAIConfig
    smtp:    SmtpConfig
    storage: StorageConfig
    app:     AppConfig

    @property
    def live_mode(self) -> bool:
        """Automatically True when Azure OpenAI creds are real and FORCE_MOCK_MODE is false."""
        return self.openai.is_configured and not self.app.force_mock_mode

    def status_summary(self) -> dict[str, str]:
        """Return a dict of service → status badge for the CLI."""
        def badge(ok: bool) -> str:
            return "🟢 Live" if ok else "⚪ Not configured"

        return {
            "Azure OpenAI": badge(self.live_mode),
            "SMTP email":   badge(self.smtp.is_configured),
            "Storage":      f"📁 {self.storage.db_path}",
        }


def get_settings() -> Settings:
    """Load all configuration from environment variables."""
    _str  = lambda k, d="": os.getenv(k, d).strip()
    _int  = lambda k, d=0: int(os.getenv(k, str(d)) or d)
    _bool = lambda k, d=False: os.getenv(k, str(d)).lower() in ("1", "true", "yes")

    smtp_user = _str("SMTP_USER")
    return Settings(
        openai=AzureOpenAIConfig(
            endpoint    = _str("AZURE_OPENAI_ENDPOINT").rstrip("/"),
            api_key     = _str("AZURE_OPENAI_API_KEY"),
            deployment  = _str("AZURE_OPENAI_DEPLOYMENT", "gpt-4o"),
            api_version = _str("AZURE_OPENAI_API_VERSION", "2024-12-01-preview"),
        ),
        smtp=SmtpConfig(
            host     = _str("SMTP_HOST", "smtp.sendgrid.net"),
            port     = _int("SMTP_PORT", 587),
            user     = smtp_user,
            password = _str("SMTP_PASS"),
            sender   = _str("SMTP_FROM", smtp_user),
        ),
        storage=StorageConfig(
            db_path = _str("DUTYFLOW_DB_PATH", "dutyflow_data.db"),
        ),
        app=AppConfig(
            force_mock_mode = _bool("FORCE_MOCK_MODE", False),
            college_name    = _str("DUTYFLOW_COLLEGE_NAME", ""),
            log_level       = _str("DUTYFLOW_LOG_LEVEL", "INFO").upper(),
        ),
    )
