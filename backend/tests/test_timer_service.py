import logging
import threading
from datetime import datetime, timedelta

import pytest

from tutorledger.models import LessonStatus
from tutorledger.services.timer_service import LessonTimers, SweepWorker, ThreadingTimerBackend

from conftest import add_lesson, make_student


@pytest.fixture
def timers(engine, timer_backend):
    timers = LessonTimers(engine, timer_backend)
    yield timers
    timers.stop()


class TestLessonTimers:

    def test_start_arms_one_timer_per_pending_lesson(self, engine, timers, timer_backend):
        student = make_student(engine, balance=2)
        lesson = add_lesson(engine, student, datetime(2026, 10, 19, 10, 0))
        add_lesson(engine, student, datetime(2026, 10, 16, 10, 0), is_completed=True)

        assert timers.start() == 1

        assert timers.armed_lesson_ids == {lesson.id}
        (timer,) = timer_backend.live
        assert timer.when == datetime(2026, 10, 19, 10, 50)

    def test_engine_changes_rearm_timers(self, engine, timers, timer_backend):
        timers.start()
        student = make_student(engine, balance=2)

        lesson = add_lesson(engine, student, datetime(2026, 10, 19, 10, 0))
        assert timers.armed_lesson_ids == {lesson.id}
        first = timer_backend.live[0]

        engine.update_lesson(lesson.id, at=datetime(2026, 10, 20, 10, 0))
        assert first.cancelled is True
        assert [t.when for t in timer_backend.live] == [datetime(2026, 10, 20, 10, 50)]

        engine.delete_lesson(lesson.id)
        assert timers.armed_lesson_ids == set()
        assert timer_backend.live == []

    def test_firing_completes_the_lesson(self, engine, clock, timers, timer_backend):
        student = make_student(engine, balance=2)
        lesson = add_lesson(engine, student, datetime(2026, 10, 19, 10, 0))
        timers.start()
        (timer,) = timer_backend.live

        clock.set(timer.when)
        timer.fn()

        assert engine.get_lesson(lesson.id).status is LessonStatus.COMPLETED_PAID
        assert engine.get_student(student.id).balance == 1
        assert timers.armed_lesson_ids == set()

    def test_firing_for_deleted_lesson_is_harmless(self, engine, clock, timers, timer_backend):
        student = make_student(engine, balance=2)
        lesson = add_lesson(engine, student, datetime(2026, 10, 19, 10, 0))
        timers.start()
        fire = timer_backend.live[0].fn
        engine.delete_lesson(lesson.id)

        clock.set(datetime(2026, 10, 19, 11, 0))
        fire()

        assert engine.get_student(student.id).balance == 2

    def test_callback_failure_is_logged(self, engine, timers, timer_backend, monkeypatch, caplog):
        student = make_student(engine, balance=2)
        add_lesson(engine, student, datetime(2026, 10, 19, 10, 0))
        timers.start()

        def boom(lesson_id):
            raise RuntimeError("database is locked")

        monkeypatch.setattr(engine, "complete_lesson", boom)
        with caplog.at_level(logging.ERROR, logger="tutorledger.services.timer_service"):
            timer_backend.live[0].fn()

        assert "Lesson timer for lesson" in caplog.text

    def test_stop_disconnects_from_engine(self, engine, timers, timer_backend):
        timers.start()
        timers.stop()
        student = make_student(engine, balance=2)

        add_lesson(engine, student, datetime(2026, 10, 19, 10, 0))

        assert timer_backend.timers == []
        assert timers.armed_lesson_ids == set()


class TestThreadingTimerBackend:

    def test_past_instant_fires_immediately(self, clock):
        fired = threading.Event()
        backend = ThreadingTimerBackend(clock)

        timer = backend.call_at(clock.now() - timedelta(minutes=5), fired.set)
        timer.join(2)

        assert fired.is_set()
        assert timer.daemon is True

    def test_cancel_prevents_firing(self, clock):
        fired = threading.Event()
        backend = ThreadingTimerBackend(clock)

        timer = backend.call_at(clock.now() + timedelta(hours=1), fired.set)
        timer.cancel()
        timer.join(2)

        assert not fired.is_set()


class CountingEngine:
    def __init__(self, fail=False):
        self.calls = 0
        self.fail = fail
        self.called = threading.Event()

    def run_completion_sweep(self):
        self.calls += 1
        self.called.set()
        if self.fail:
            raise RuntimeError("database is locked")
        return 3


class TestSweepWorker:

    def test_tick_runs_sweep(self, engine, clock):
        student = make_student(engine, balance=1)
        clock.set(datetime(2026, 10, 10, 0, 0))
        add_lesson(engine, student, datetime(2026, 10, 17, 10, 0))
        clock.set(datetime(2026, 10, 18, 0, 0))

        assert SweepWorker(engine, 60).tick() == 1
        assert engine.get_student(student.id).balance == 0

    def test_tick_logs_failures(self, caplog):
        worker = SweepWorker(CountingEngine(fail=True), 60)

        with caplog.at_level(logging.ERROR, logger="tutorledger.services.timer_service"):
            assert worker.tick() == 0

        assert "Completion sweep failed" in caplog.text

    def test_background_thread_sweeps_until_stopped(self):
        fake = CountingEngine()
        worker = SweepWorker(fake, 0.01)

        worker.start()
        try:
            assert fake.called.wait(2)
        finally:
            worker.stop(timeout=2)

        assert fake.calls >= 1
        assert worker._thread is None
