# Overview: Signals emitted by the reconciliation engine.

from blinker import Namespace

_signals = Namespace()

# Sent with sender=engine after any command that changed lessons; per-lesson
# timers listen to this to cancel and re-arm against fresh data.
lessons_changed = _signals.signal("lessons-changed")
