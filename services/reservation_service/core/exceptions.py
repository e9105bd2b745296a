"""
Reservation Service — Domain errors

Raised by the db layer, translated to HTTP responses by the routes.
"""


class ReservationError(Exception):
    """Base class for reservation domain errors."""


class InvalidRequestError(ReservationError):
    """Missing or malformed input (400)."""


class TableNotFoundError(ReservationError):
    """Referenced table does not exist (404)."""


class ReservationNotFoundError(ReservationError):
    """Referenced reservation does not exist (404)."""


class ReservationConflictError(ReservationError):
    """An active reservation already covers part of the requested slot (400)."""
