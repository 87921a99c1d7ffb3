# Overview: One-shot lesson completion timers and the periodic completion sweep.

"""
Lesson Timers

WHY: The sweep alone completes lessons with up to SWEEP_INTERVAL_SECONDS of
latency. A one-shot timer per pending lesson fires right at lesson end.

DESIGN:
- A timer backend schedules "call fn at instant T" and returns a handle
  with cancel(). ThreadingTimerBackend uses threading.Timer; tests swap in a
  recording backend.
- Timers are keyed by lesson id. Whenever the engine sends lessons_changed,
  all timers are cancelled and re-armed from the current pending lessons.
- Firing calls engine.complete_lesson(), which is idempotent, so a timer
  racing the sweep is harmless.
"""

from __future__ import annotations

import logging
import threading
from contextlib import nullcontext
from datetime import datetime
from typing import Callable

from ..signals import lessons_changed

logger = logging.getLogger(__name__)


class ThreadingTimerBackend:
    """Schedules callbacks on daemon threading.Timer threads."""

    def __init__(self, clock):
        self.clock = clock

    def call_at(self, when: datetime, fn: Callable[[], None]):
        delay = max((when - self.clock.now()).total_seconds(), 0.0)
        timer = threading.Timer(delay, fn)
        timer.daemon = True
        timer.start()
        return timer


class LessonTimers:

    def __init__(self, engine, backend, context_factory=None):
        """
        context_factory: returns a context manager entered around each timer
        callback (e.g. app.app_context for a Flask-SQLAlchemy session).
        """
        self.engine = engine
        self.backend = backend
        self.context_factory = context_factory or nullcontext
        self._handles: dict[int, object] = {}
        self._lock = threading.Lock()
        self._connected = False

    @property
    def armed_lesson_ids(self) -> set[int]:
        with self._lock:
            return set(self._handles)

    def start(self) -> int:
        if not self._connected:
            lessons_changed.connect(self._on_lessons_changed, sender=self.engine, weak=False)
            self._connected = True
        return self.rearm()

    def stop(self) -> None:
        if self._connected:
            lessons_changed.disconnect(self._on_lessons_changed, sender=self.engine)
            self._connected = False
        self.cancel_all()

    def cancel_all(self) -> None:
        with self._lock:
            for handle in self._handles.values():
                handle.cancel()
            self._handles.clear()

    def rearm(self) -> int:
        """Cancel every timer and schedule one per pending lesson."""
        self.cancel_all()
        lessons = self.engine.store.pending_lessons()
        with self._lock:
            for lesson in lessons:
                fire_at = self.engine.completion_time(lesson)
                self._handles[lesson.id] = self.backend.call_at(fire_at, self._callback(lesson.id))
        logger.debug("Armed %d lesson timer(s)", len(lessons))
        return len(lessons)

    def _callback(self, lesson_id: int) -> Callable[[], None]:
        def fire():
            with self._lock:
                self._handles.pop(lesson_id, None)
            with self.context_factory():
                try:
                    self.engine.complete_lesson(lesson_id)
                except Exception:
                    # no caller on a timer thread; the next sweep retries
                    logger.exception("Lesson timer for lesson %s failed", lesson_id)
        return fire

    def _on_lessons_changed(self, sender, **kwargs) -> None:
        self.rearm()


class SweepWorker:
    """
    Runs engine.run_completion_sweep every interval seconds on a daemon
    thread until stop() is called.
    """

    def __init__(self, engine, interval_seconds: float, context_factory=None):
        self.engine = engine
        self.interval_seconds = interval_seconds
        self.context_factory = context_factory or nullcontext
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def tick(self) -> int:
        with self.context_factory():
            try:
                return self.engine.run_completion_sweep()
            except Exception:
                logger.exception("Completion sweep failed; retrying next interval")
                return 0

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self.tick()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="completion-sweep", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
