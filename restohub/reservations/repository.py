"""Database repository for bookings and tables."""

from __future__ import annotations

import datetime as dt
import uuid
from collections.abc import Sequence
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import Booking, BookingStatus, RestaurantTable
from .guard import as_utc


class DuplicateBookingError(RuntimeError):
    """Raised when an insert violates a booking uniqueness or exclusion constraint."""


class BookingRepository(Protocol):
    """Abstraction for persisting bookings of a single tenant."""

    @property
    def tenant_id(self) -> uuid.UUID: ...

    def get(self, booking_id: uuid.UUID) -> Booking | None: ...

    def get_by_idempotency_key(self, key: str) -> Booking | None: ...

    def get_table(self, table_id: uuid.UUID) -> RestaurantTable | None: ...

    def list_tables(self) -> Sequence[RestaurantTable]: ...

    def count_tables(self) -> int: ...

    def list_in_window(
        self,
        table_id: uuid.UUID,
        window_start: dt.datetime,
        window_end: dt.datetime,
        *,
        exclude_id: uuid.UUID | None = None,
    ) -> Sequence[Booking]: ...

    def list_between(
        self,
        start: dt.datetime,
        end: dt.datetime,
        *,
        statuses: Sequence[str] | None = None,
        channel: str | None = None,
    ) -> Sequence[Booking]: ...

    def add(self, booking: Booking) -> Booking: ...

    def save(self) -> None: ...


class SqlAlchemyBookingRepository:
    """SQLAlchemy implementation of :class:`BookingRepository`.

    Every query is filtered by the tenant the repository was created for.
    """

    def __init__(self, session: Session, tenant_id: uuid.UUID) -> None:
        self._session = session
        self._tenant_id = tenant_id

    @property
    def tenant_id(self) -> uuid.UUID:
        return self._tenant_id

    # Lookups -----------------------------------------------------------------
    def get(self, booking_id: uuid.UUID) -> Booking | None:
        return self._session.execute(
            select(Booking)
            .where(Booking.tenant_id == self._tenant_id)
            .where(Booking.id == booking_id)
        ).scalar_one_or_none()

    def get_by_idempotency_key(self, key: str) -> Booking | None:
        return self._session.execute(
            select(Booking)
            .where(Booking.tenant_id == self._tenant_id)
            .where(Booking.idempotency_key == key)
        ).scalar_one_or_none()

    def get_table(self, table_id: uuid.UUID) -> RestaurantTable | None:
        return self._session.execute(
            select(RestaurantTable)
            .where(RestaurantTable.tenant_id == self._tenant_id)
            .where(RestaurantTable.id == table_id)
        ).scalar_one_or_none()

    def list_tables(self) -> Sequence[RestaurantTable]:
        return (
            self._session.execute(
                select(RestaurantTable)
                .where(RestaurantTable.tenant_id == self._tenant_id)
                .order_by(RestaurantTable.name)
            )
            .scalars()
            .all()
        )

    def count_tables(self) -> int:
        return int(
            self._session.execute(
                select(func.count())
                .select_from(RestaurantTable)
                .where(RestaurantTable.tenant_id == self._tenant_id)
            ).scalar_one()
        )

    def list_in_window(
        self,
        table_id: uuid.UUID,
        window_start: dt.datetime,
        window_end: dt.datetime,
        *,
        exclude_id: uuid.UUID | None = None,
    ) -> Sequence[Booking]:
        """Non-cancelled bookings on ``table_id`` whose interval reaches into the window.

        Bookings longer than the window still qualify through ``ends_at``.
        """

        stmt = (
            select(Booking)
            .where(Booking.tenant_id == self._tenant_id)
            .where(Booking.table_id == table_id)
            .where(Booking.status != BookingStatus.CANCELLED.value)
            .where(Booking.booking_time <= as_utc(window_end))
            .where(Booking.ends_at >= as_utc(window_start))
        )
        if exclude_id is not None:
            stmt = stmt.where(Booking.id != exclude_id)
        return self._session.execute(stmt).scalars().all()

    def list_between(
        self,
        start: dt.datetime,
        end: dt.datetime,
        *,
        statuses: Sequence[str] | None = None,
        channel: str | None = None,
    ) -> Sequence[Booking]:
        """Bookings starting in ``[start, end)`` ordered by start time."""

        stmt = (
            select(Booking)
            .where(Booking.tenant_id == self._tenant_id)
            .where(Booking.booking_time >= as_utc(start))
            .where(Booking.booking_time < as_utc(end))
            .order_by(Booking.booking_time, Booking.created_at)
        )
        if statuses:
            stmt = stmt.where(Booking.status.in_(list(statuses)))
        if channel:
            stmt = stmt.where(Booking.channel == channel)
        return self._session.execute(stmt).scalars().all()

    # Writes ------------------------------------------------------------------
    def add(self, booking: Booking) -> Booking:
        """Insert ``booking`` and flush so constraint violations surface now.

        Raises:
            DuplicateBookingError: When the database rejects the row. The
                session is rolled back so it can be reused for follow-up reads.
        """

        booking.tenant_id = self._tenant_id
        self._session.add(booking)
        try:
            self._session.flush()
        except IntegrityError as exc:
            self._session.rollback()
            raise DuplicateBookingError(str(exc.orig)) from exc
        return booking

    def save(self) -> None:
        try:
            self._session.flush()
        except IntegrityError as exc:
            self._session.rollback()
            raise DuplicateBookingError(str(exc.orig)) from exc
        self._session.commit()


__all__ = [
    "BookingRepository",
    "DuplicateBookingError",
    "SqlAlchemyBookingRepository",
]
