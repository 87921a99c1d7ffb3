# Overview: Flask API routes for calendar lessons; parses input and returns JSON responses.

"""
Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- Range queries are half-open: start <= datetime < end.
- Without start/end, the current week (Monday start, ledger timezone) is returned.
"""

from flask import Blueprint, jsonify, request

from ..decorators import handle_ledger_errors
from ..ledger import get_engine
from ..services import stats_service
from ..time_utils import week_range
from ..validation import optional_bool, optional_datetime, require_datetime, require_int


lessons_bp = Blueprint("lessons", __name__, url_prefix="/api/lessons")


def _requested_range():
    engine = get_engine()
    start = optional_datetime(request.args, "start")
    end = optional_datetime(request.args, "end")
    if start is None or end is None:
        week_start, week_end = week_range(engine.clock.now(), engine.settings.timezone)
        start = start or week_start
        end = end or week_end
    return start, end


@lessons_bp.get("")
@handle_ledger_errors
def list_lessons_route():
    start, end = _requested_range()
    lessons = get_engine().list_lessons(start, end)
    return jsonify([lesson.to_dict() for lesson in lessons]), 200


@lessons_bp.get("/stats")
@handle_ledger_errors
def lesson_stats_route():
    start, end = _requested_range()
    lessons = get_engine().list_lessons(start, end)
    return jsonify(stats_service.lesson_stats(lessons)), 200


@lessons_bp.post("")
@handle_ledger_errors
def create_lesson_route():
    """
    Request body:
    {
        "student_id": 1,
        "datetime": "2026-10-19T10:00:00Z",
        "is_paid": false,       (optional; omitted means paid iff balance > 0 for a completed lesson)
        "is_completed": false   (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    if data.get("student_id") is None or data.get("datetime") is None:
        return jsonify({"error": "student_id and datetime required"}), 400

    lesson = get_engine().create_lesson(
        require_int(data["student_id"], "student_id"),
        require_datetime(data["datetime"], "datetime"),
        is_paid=optional_bool(data, "is_paid"),
        is_completed=bool(optional_bool(data, "is_completed")),
    )
    return jsonify(lesson.to_dict()), 201


@lessons_bp.get("/<int:lesson_id>")
@handle_ledger_errors
def get_lesson_route(lesson_id: int):
    return jsonify(get_engine().get_lesson(lesson_id).to_dict()), 200


@lessons_bp.patch("/<int:lesson_id>")
@handle_ledger_errors
def update_lesson_route(lesson_id: int):
    """Partial update: any of datetime, is_completed, is_paid."""
    data = request.get_json(silent=True) or {}
    lesson = get_engine().update_lesson(
        lesson_id,
        at=optional_datetime(data, "datetime"),
        is_completed=optional_bool(data, "is_completed"),
        is_paid=optional_bool(data, "is_paid"),
    )
    return jsonify(lesson.to_dict()), 200


@lessons_bp.post("/<int:lesson_id>/toggle-payment")
@handle_ledger_errors
def toggle_payment_route(lesson_id: int):
    lesson = get_engine().toggle_lesson_payment(lesson_id)
    return jsonify(lesson.to_dict()), 200


@lessons_bp.delete("/<int:lesson_id>")
@handle_ledger_errors
def delete_lesson_route(lesson_id: int):
    get_engine().delete_lesson(lesson_id)
    return "", 204


@lessons_bp.post("/sweep")
@handle_ledger_errors
def sweep_route():
    completed = get_engine().run_completion_sweep()
    return jsonify({"completed": completed}), 200
