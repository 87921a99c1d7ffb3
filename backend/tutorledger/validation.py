from __future__ import annotations

from datetime import datetime
from typing import Any

from tutorledger.errors import ValidationError
from tutorledger.time_utils import parse_iso_datetime

MAX_NAME_LENGTH = 255


def require_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for counts and balance deltas.

    Rejects bools, floats, decimals and scientific notation so that "1.5"
    lessons or "1e3" never reach the ledger.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def require_name(value: Any) -> str:
    if value is None:
        raise ValidationError("name is required")
    name = str(value).strip()
    if not name:
        raise ValidationError("name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"name exceeds max length {MAX_NAME_LENGTH}")
    return name


def require_day_of_week(value: Any) -> int:
    """0=Monday .. 6=Sunday."""
    day = require_int(value, "day_of_week")
    if not 0 <= day <= 6:
        raise ValidationError("day_of_week must be between 0 (Monday) and 6 (Sunday)")
    return day


def require_slot_time(value: Any) -> str:
    """Normalize a wall-clock time to zero-padded "HH:MM"."""
    if not isinstance(value, str) or ":" not in value:
        raise ValidationError("time must be in HH:MM format")
    parts = value.strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValidationError("time must be in HH:MM format")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValidationError("time must be a valid 24-hour HH:MM")
    return f"{hours:02d}:{minutes:02d}"


def require_datetime(value: Any, field: str) -> datetime:
    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 datetime")
        if dt is not None:
            return dt
    raise ValidationError(f"{field} must be an ISO-8601 datetime")


def optional_datetime(payload: dict, field: str) -> datetime | None:
    if payload.get(field) is None:
        return None
    return require_datetime(payload[field], field)


def optional_bool(payload: dict, field: str) -> bool | None:
    """Accept JSON booleans and the 0/1 integers older clients send."""
    value = payload.get(field)
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ValidationError(f"{field} must be a boolean")
