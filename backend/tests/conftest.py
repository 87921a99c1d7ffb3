"""
Pytest fixtures for tutorledger backend tests.

Provides an in-memory database, a controllable clock, the reconciliation
engine and a recording timer backend.
"""

from datetime import datetime

import pytest
from tutorledger import create_app
from tutorledger.extensions import db
from tutorledger.ledger import get_engine
from tutorledger.services.clock import FixedClock

# Sunday. The current local week (UTC) started Monday 2026-10-12.
SUNDAY_MIDNIGHT = datetime(2026, 10, 18, 0, 0)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(
        {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'SQLALCHEMY_TRACK_MODIFICATIONS': False,
            'LESSON_DURATION_MINUTES': 50,
            'SCHEDULE_WEEKS_AHEAD': 2,
            'SCHEDULE_GATE_ON_BALANCE': True,
            'LEDGER_TIMEZONE': 'UTC',
            'LOW_BALANCE_THRESHOLD': 3,
        },
        clock=FixedClock(SUNDAY_MIDNIGHT),
    )

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        db.session.remove()


@pytest.fixture(scope='function')
def clock(app):
    """The engine's clock, reset to Sunday 2026-10-18 00:00 UTC."""
    clock = get_engine().clock
    clock.set(SUNDAY_MIDNIGHT)
    return clock


@pytest.fixture(scope='function')
def engine(app, db_session, clock):
    return get_engine()


class RecordedTimer:
    def __init__(self, when, fn):
        self.when = when
        self.fn = fn
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class RecordingTimerBackend:
    """Timer backend that records calls instead of starting threads."""

    def __init__(self):
        self.timers: list[RecordedTimer] = []

    def call_at(self, when, fn):
        timer = RecordedTimer(when, fn)
        self.timers.append(timer)
        return timer

    @property
    def live(self) -> list[RecordedTimer]:
        return [t for t in self.timers if not t.cancelled]


@pytest.fixture(scope='function')
def timer_backend():
    return RecordingTimerBackend()


def make_student(engine, name: str = "Olena", balance: int = 0):
    return engine.create_student(name, balance)


def add_lesson(engine, student, at: datetime, *, is_paid: bool = False, is_completed: bool = False):
    return engine.create_lesson(student.id, at, is_paid=is_paid, is_completed=is_completed)
