# Overview: Error taxonomy raised by the ledger store and reconciliation engine.

from __future__ import annotations


class LedgerError(Exception):
    """
    Base class for every failure surfaced by the engine.

    Carries the operation and the entity it was acting on so callers can
    log and display the failure without parsing the message.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        entity: str | None = None,
        entity_id: int | None = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.entity = entity
        self.entity_id = entity_id

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "operation": self.operation,
            "entity": self.entity,
            "entity_id": self.entity_id,
        }


class NotFoundError(LedgerError):
    """Referenced student, lesson or schedule slot does not exist."""

    def __init__(self, entity: str, entity_id: int, *, operation: str | None = None):
        super().__init__(
            f"{entity} {entity_id} not found",
            operation=operation,
            entity=entity,
            entity_id=entity_id,
        )


class AlreadyExistsError(LedgerError):
    """An active schedule slot already occupies the same day and time."""


class InvalidStateError(LedgerError):
    """The entity is not in a state that allows the operation."""


class ValidationError(LedgerError, ValueError):
    """400-level input problem."""


class StoreFailure(LedgerError):
    """
    Persistence failed and the transaction was rolled back.

    The originating SQLAlchemy exception is chained as __cause__.
    """
