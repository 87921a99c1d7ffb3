# backend/tutorledger/routes/system.py
"""
System health endpoint.

Reports database reachability and the engine's clock so a caller can tell
a stale worker from a dead database.
"""

import time
from flask import Blueprint, current_app, jsonify
from ..extensions import db
from ..ledger import get_engine
from ..models import Lesson, ScheduleSlot, Student
from tutorledger.time_utils import to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        student_count = db.session.query(Student).count()
        lesson_count = db.session.query(Lesson).count()
        slot_count = db.session.query(ScheduleSlot).count()
        pending_count = db.session.query(Lesson).filter(Lesson.is_completed.is_(False)).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "students": student_count,
                "lessons": lesson_count,
                "pending_lessons": pending_count,
                "schedule_slots": slot_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "healthy" if healthy else "unhealthy",
        "now": to_utc_z(get_engine().clock.now()),
        "database": database,
    }), 200 if healthy else 503
