# Overview: Error translation decorator for API routes.

from functools import wraps
from flask import jsonify, current_app

from .errors import (
    AlreadyExistsError,
    InvalidStateError,
    NotFoundError,
    StoreFailure,
    ValidationError,
)


def handle_ledger_errors(f):
    """
    Map the ledger error taxonomy onto HTTP responses.

    - ValidationError -> 400
    - NotFoundError -> 404
    - AlreadyExistsError, InvalidStateError -> 409
    - StoreFailure -> 500 (logged with traceback; details not leaked)
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400
        except NotFoundError as e:
            return jsonify({"error": str(e)}), 404
        except (AlreadyExistsError, InvalidStateError) as e:
            return jsonify({"error": str(e)}), 409
        except StoreFailure as e:
            current_app.logger.exception("Ledger store failure during %s", e.operation)
            return jsonify({"error": "Internal server error"}), 500

    return decorated_function
