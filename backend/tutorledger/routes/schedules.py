# Overview: Flask API routes for weekly schedule slots; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..decorators import handle_ledger_errors
from ..ledger import get_engine


schedules_bp = Blueprint("schedules", __name__, url_prefix="/api")


@schedules_bp.get("/students/<int:student_id>/schedule")
@handle_ledger_errors
def list_slots_route(student_id: int):
    active_only = request.args.get("active_only", "false").lower() == "true"
    slots = get_engine().list_schedule_slots(student_id, active_only=active_only)
    return jsonify([slot.to_dict() for slot in slots]), 200


@schedules_bp.post("/students/<int:student_id>/schedule")
@handle_ledger_errors
def create_slot_route(student_id: int):
    """
    Request body: {"day_of_week": 0, "time": "10:00"}

    day_of_week: 0=Monday .. 6=Sunday.
    Re-adding an inactive day/time reactivates it; an active duplicate is 409.
    """
    data = request.get_json(silent=True) or {}
    slot = get_engine().create_schedule_slot(student_id, data.get("day_of_week"), data.get("time"))
    return jsonify(slot.to_dict()), 201


@schedules_bp.post("/students/<int:student_id>/schedule/expand")
@handle_ledger_errors
def expand_schedule_route(student_id: int):
    created = get_engine().expand_schedule(student_id)
    return jsonify({"created": created}), 200


@schedules_bp.post("/schedule/<int:slot_id>/deactivate")
@handle_ledger_errors
def deactivate_slot_route(slot_id: int):
    return jsonify(get_engine().deactivate_schedule_slot(slot_id).to_dict()), 200


@schedules_bp.post("/schedule/<int:slot_id>/reactivate")
@handle_ledger_errors
def reactivate_slot_route(slot_id: int):
    return jsonify(get_engine().reactivate_schedule_slot(slot_id).to_dict()), 200


@schedules_bp.post("/schedule/<int:slot_id>/toggle")
@handle_ledger_errors
def toggle_slot_route(slot_id: int):
    return jsonify(get_engine().toggle_schedule_slot(slot_id).to_dict()), 200


@schedules_bp.delete("/schedule/<int:slot_id>")
@handle_ledger_errors
def delete_slot_route(slot_id: int):
    get_engine().delete_schedule_slot(slot_id)
    return "", 204
