"""Reservation conflict guard and reservation management services."""

from . import schemas
from .repository import DuplicateBookingError, SqlAlchemyBookingRepository
from .service import ReservationService, to_reservation

__all__ = [
    "DuplicateBookingError",
    "ReservationService",
    "SqlAlchemyBookingRepository",
    "schemas",
    "to_reservation",
]
