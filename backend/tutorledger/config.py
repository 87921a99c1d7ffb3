# backend/tutorledger/config.py
from __future__ import annotations
import os
from dataclasses import dataclass, field
from datetime import timedelta
from zoneinfo import ZoneInfo


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the instance by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///tutorledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # A lesson is due for completion this many minutes after it starts
    LESSON_DURATION_MINUTES = int(os.environ.get("LESSON_DURATION_MINUTES", "50"))

    # Schedule expansion horizon, in weeks after "now"
    SCHEDULE_WEEKS_AHEAD = int(os.environ.get("SCHEDULE_WEEKS_AHEAD", "2"))

    # Only generate as many future lessons as the student's balance covers
    SCHEDULE_GATE_ON_BALANCE = _env_bool("SCHEDULE_GATE_ON_BALANCE", True)

    # Wall-clock zone of schedule slot times ("HH:MM") and week boundaries
    LEDGER_TIMEZONE = os.environ.get("LEDGER_TIMEZONE", "UTC")

    # Background completion sweep period for `flask ledger worker`
    SWEEP_INTERVAL_SECONDS = int(os.environ.get("SWEEP_INTERVAL_SECONDS", "300"))

    LOW_BALANCE_THRESHOLD = int(os.environ.get("LOW_BALANCE_THRESHOLD", "3"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


@dataclass(frozen=True)
class LedgerSettings:
    """
    Reconciliation policy knobs, detached from Flask so the engine can be
    built anywhere (tests, CLI, worker threads).
    """
    lesson_duration: timedelta = timedelta(minutes=50)
    schedule_weeks_ahead: int = 2
    schedule_gate_on_balance: bool = True
    timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo("UTC"))
    low_balance_threshold: int = 3

    @classmethod
    def from_mapping(cls, config) -> "LedgerSettings":
        return cls(
            lesson_duration=timedelta(minutes=int(config.get("LESSON_DURATION_MINUTES", 50))),
            schedule_weeks_ahead=int(config.get("SCHEDULE_WEEKS_AHEAD", 2)),
            schedule_gate_on_balance=bool(config.get("SCHEDULE_GATE_ON_BALANCE", True)),
            timezone=ZoneInfo(config.get("LEDGER_TIMEZONE", "UTC")),
            low_balance_threshold=int(config.get("LOW_BALANCE_THRESHOLD", 3)),
        )
