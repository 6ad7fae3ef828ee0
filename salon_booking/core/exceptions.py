"""Domain errors raised by the booking engine.

Endpoints map ``BookingValidationError`` to HTTP 400 and ``NotFoundError`` to
HTTP 404. Both subclass builtin exceptions so callers that only know about
``ValueError`` / ``LookupError`` keep working.
"""


class SalonError(Exception):
    """Base class for booking engine errors."""


class BookingValidationError(SalonError, ValueError):
    """The request cannot be honoured as submitted (bad request)."""


class NotFoundError(SalonError, LookupError):
    """A referenced appointment, employee, client, user or rule does not exist."""

    def __init__(self, entity: str, entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        message = f"{entity} not found"
        if entity_id is not None:
            message = f"{entity} {entity_id} not found"
        super().__init__(message)


class BookingLockTimeout(SalonError):
    """The per-employee booking lock could not be acquired in time."""
