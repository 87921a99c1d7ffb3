# Overview: Per-application reconciliation engine wiring.

from __future__ import annotations

from flask import Flask, current_app

from .config import LedgerSettings
from .extensions import db
from .services.clock import SystemClock
from .services.ledger_store import LedgerStore
from .services.reconciliation_service import ReconciliationEngine

EXTENSION_KEY = "tutorledger"


def init_ledger(app: Flask, clock=None) -> ReconciliationEngine:
    """
    Build the app's engine over the Flask-SQLAlchemy scoped session.

    The scoped session resolves to the session of whichever app context is
    active, so the same engine serves request threads, CLI commands and
    timer threads alike.
    """
    engine = ReconciliationEngine(
        LedgerStore(db.session),
        clock=clock or SystemClock(),
        settings=LedgerSettings.from_mapping(app.config),
    )
    app.extensions[EXTENSION_KEY] = engine
    return engine


def get_engine() -> ReconciliationEngine:
    return current_app.extensions[EXTENSION_KEY]
