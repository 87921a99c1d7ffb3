# Overview: Flask API routes for students and balances; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..decorators import handle_ledger_errors
from ..ledger import get_engine
from ..services import stats_service


students_bp = Blueprint("students", __name__, url_prefix="/api/students")


@students_bp.get("")
@handle_ledger_errors
def list_students_route():
    """
    Query params:
    - q: case-insensitive name filter
    - low_balance=true: only students below LOW_BALANCE_THRESHOLD
    """
    engine = get_engine()
    students = engine.search_students(request.args.get("q"))
    if request.args.get("low_balance", "false").lower() == "true":
        students = stats_service.low_balance_students(
            students, threshold=engine.settings.low_balance_threshold
        )
    return jsonify([s.to_dict() for s in students]), 200


@students_bp.get("/stats")
@handle_ledger_errors
def student_stats_route():
    engine = get_engine()
    students = engine.list_students()
    threshold = engine.settings.low_balance_threshold
    return jsonify(stats_service.student_stats(students, low_balance_threshold=threshold)), 200


@students_bp.post("")
@handle_ledger_errors
def create_student_route():
    """
    Request body:
    {
        "name": "Olena",
        "balance": 4   (optional, default 0)
    }
    """
    data = request.get_json(silent=True) or {}
    student = get_engine().create_student(data.get("name"), data.get("balance", 0))
    return jsonify(student.to_dict()), 201


@students_bp.get("/<int:student_id>")
@handle_ledger_errors
def get_student_route(student_id: int):
    return jsonify(get_engine().get_student(student_id).to_dict()), 200


@students_bp.delete("/<int:student_id>")
@handle_ledger_errors
def delete_student_route(student_id: int):
    get_engine().delete_student(student_id)
    return "", 204


@students_bp.post("/<int:student_id>/balance")
@handle_ledger_errors
def adjust_balance_route(student_id: int):
    """
    Request body: {"delta": 8}

    A positive delta is a top-up: it settles the oldest unpaid completed
    lessons and generates scheduled lessons the new balance covers.
    """
    data = request.get_json(silent=True) or {}
    if "delta" not in data:
        return jsonify({"error": "delta is required"}), 400
    student = get_engine().adjust_balance(student_id, data["delta"])
    return jsonify(student.to_dict()), 200
