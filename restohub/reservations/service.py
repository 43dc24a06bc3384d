"""Reservation use cases: guarded creation, listing, updates and approvals."""

from __future__ import annotations

import csv
import datetime as dt
import io
import logging
import re
import uuid
from collections.abc import Callable

from .. import errors
from ..models import Booking, BookingStatus, RestaurantTable
from . import guard, schemas
from .repository import BookingRepository, DuplicateBookingError

logger = logging.getLogger(__name__)

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    BookingStatus.PENDING.value: frozenset(
        {BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value}
    ),
    BookingStatus.CONFIRMED.value: frozenset(
        {
            BookingStatus.SEATED.value,
            BookingStatus.CANCELLED.value,
            BookingStatus.NO_SHOW.value,
        }
    ),
    BookingStatus.SEATED.value: frozenset({BookingStatus.COMPLETED.value}),
    BookingStatus.COMPLETED.value: frozenset(),
    BookingStatus.CANCELLED.value: frozenset(),
    BookingStatus.NO_SHOW.value: frozenset(),
}

EXPORT_COLUMNS = (
    "id",
    "start",
    "end",
    "table_id",
    "section",
    "guest_name",
    "guest_phone",
    "guest_email",
    "party_size",
    "status",
    "channel",
    "special_requests",
)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def parse_day(value: str) -> tuple[dt.date, dt.datetime, dt.datetime]:
    """Parse ``YYYY-MM-DD`` into the date and its UTC ``[start, end)`` bounds."""

    if not value or not _DATE_PATTERN.match(value):
        raise errors.ValidationError("Invalid date format. Use YYYY-MM-DD")
    try:
        day = dt.date.fromisoformat(value)
    except ValueError as exc:
        raise errors.ValidationError("Invalid date format. Use YYYY-MM-DD") from exc
    start = dt.datetime.combine(day, dt.time.min, tzinfo=dt.timezone.utc)
    return day, start, start + dt.timedelta(days=1)


def status_name(status: str | None) -> str:
    return (status or BookingStatus.CONFIRMED.value).upper()


def to_reservation(booking: Booking, table: RestaurantTable | None = None) -> schemas.Reservation:
    """Normalize a booking row into the public reservation shape."""

    table = table or booking.table
    interval = guard.Interval.from_duration(booking.booking_time, booking.duration_minutes)
    special = booking.special_requests or None
    return schemas.Reservation(
        id=booking.id,
        tenantId=booking.tenant_id,
        tableId=booking.table_id,
        section=(table.section if table is not None and table.section else "Main"),
        start=interval.start,
        end=interval.end,
        partySize=booking.party_size,
        channel=booking.channel or "WEB",
        vip=bool(special and "vip" in special.lower()),
        guestName=booking.guest_name,
        guestPhone=booking.guest_phone,
        guestEmail=booking.guest_email,
        status=status_name(booking.status),
        depositRequired=booking.deposit_amount is not None and booking.deposit_amount > 0,
        depositAmount=booking.deposit_amount,
        specialRequests=special,
        confirmationCode=booking.confirmation_code,
        createdAt=guard.as_utc(booking.created_at),
        updatedAt=guard.as_utc(booking.updated_at),
    )


def confirmation_code(booking_id: uuid.UUID) -> str:
    return f"CONF{str(booking_id)[-6:].upper()}"


def pending_code(booking_id: uuid.UUID) -> str:
    return f"PEND{str(booking_id)[-6:].upper()}"


class ReservationService:
    """Coordinates validation, conflict detection and persistence of bookings."""

    def __init__(
        self,
        repository: BookingRepository,
        *,
        clock: Callable[[], dt.datetime] | None = None,
    ) -> None:
        self._repository = repository
        self._clock = clock or _utcnow

    @property
    def tenant_id(self) -> uuid.UUID:
        return self._repository.tenant_id

    # ------------------------------------------------------------------
    # Creation

    def create_reservation(
        self, payload: schemas.CreateReservationRequest, idempotency_key: str | None
    ) -> schemas.Reservation:
        """Create a confirmed booking, or return the one stored under the key.

        Validation runs first, then the idempotency lookup, then the table
        conflict check. The insert itself is guarded by database constraints,
        so a concurrent request that slipped past the check is reported the
        same way as one caught by it.
        """

        booking = self._book(payload, idempotency_key, BookingStatus.CONFIRMED)
        return to_reservation(booking)

    def request_reservation(
        self, payload: schemas.BookingRequest, idempotency_key: str | None
    ) -> schemas.BookingRequestResult:
        """Store a guest's booking request as ``pending`` until staff review it.

        The request goes through the same validation, replay and conflict
        rules as :meth:`create_reservation`, so a pending request holds its
        table and time.
        """

        if not payload.guestEmail.strip():
            raise errors.ValidationError(
                "Missing required fields", code=errors.MISSING_REQUIRED_FIELD
            )
        booking = self._book(payload, idempotency_key, BookingStatus.PENDING)
        return schemas.BookingRequestResult(
            reservationId=booking.id,
            confirmationNumber=booking.confirmation_code or pending_code(booking.id),
            status=booking.status,
            data=to_reservation(booking),
        )

    def _book(
        self,
        payload: schemas.CreateReservationRequest,
        idempotency_key: str | None,
        status: BookingStatus,
    ) -> Booking:
        key = (idempotency_key or "").strip()
        if not key:
            raise errors.ValidationError(
                "x-idempotency-key header required",
                code=errors.MISSING_REQUIRED_FIELD,
            )
        if not payload.guestName.strip():
            raise errors.ValidationError(
                "Missing required fields", code=errors.MISSING_REQUIRED_FIELD
            )

        guard.validate_party_size(payload.partySize)
        requested = guard.Interval.of(payload.start, payload.end)
        guard.validate_interval(requested, self._clock())
        # Checked as stored: durations are kept in whole minutes.
        requested = requested.whole_minutes()

        existing = self._repository.get_by_idempotency_key(key)
        if existing is not None:
            logger.info("Replaying reservation %s for idempotency key", existing.id)
            return existing

        table = self._repository.get_table(payload.tableId)
        if table is None:
            raise errors.NotFoundError("Table not found")

        self._ensure_available(table.id, requested)

        booking = Booking(
            id=uuid.uuid4(),
            table_id=table.id,
            table=table,
            guest_name=payload.guestName.strip(),
            guest_phone=payload.guestPhone,
            guest_email=payload.guestEmail,
            party_size=payload.partySize,
            booking_time=requested.start,
            duration_minutes=requested.minutes,
            ends_at=requested.end,
            status=status.value,
            channel=payload.channel,
            special_requests=payload.specialRequests,
            idempotency_key=key,
        )
        try:
            self._repository.add(booking)
            self._repository.save()
        except DuplicateBookingError:
            replay = self._repository.get_by_idempotency_key(key)
            if replay is not None:
                logger.info("Concurrent retry resolved to reservation %s", replay.id)
                return replay
            logger.info("Insert rejected by overlap constraint on table %s", table.id)
            raise errors.ConflictError(
                "Time slot conflicts with existing reservation"
            ) from None

        logger.info(
            "Created %s reservation %s on table %s for %s",
            status.value,
            booking.id,
            table.id,
            requested.start.isoformat(),
        )
        return booking

    def _ensure_available(
        self,
        table_id: uuid.UUID,
        requested: guard.Interval,
        *,
        exclude_id: uuid.UUID | None = None,
    ) -> None:
        window_start, window_end = requested.search_window()
        candidates = self._repository.list_in_window(
            table_id, window_start, window_end, exclude_id=exclude_id
        )
        guard.ensure_no_conflict(requested, candidates)

    # ------------------------------------------------------------------
    # Queries

    def list_reservations(
        self, date: str, filters: schemas.ReservationFilters | None = None
    ) -> list[schemas.Reservation]:
        """Return the reservations starting on ``date`` (UTC day)."""

        _, start, end = parse_day(date)
        filters = filters or schemas.ReservationFilters()
        statuses = None if filters.status == "all" else [filters.status.lower()]
        channel = None if filters.channel == "all" else filters.channel

        bookings = self._repository.list_between(
            start, end, statuses=statuses, channel=channel
        )
        reservations = [to_reservation(b) for b in bookings if b.table_id is not None]
        if filters.section and filters.section.lower() != "all":
            wanted = filters.section.lower()
            reservations = [r for r in reservations if r.section.lower() == wanted]
        return reservations

    def export_csv(self, date: str) -> str:
        """Render the reservations of ``date`` as CSV text."""

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(EXPORT_COLUMNS)
        for item in self.list_reservations(date):
            writer.writerow(
                [
                    item.id,
                    schemas._iso(item.start),
                    schemas._iso(item.end),
                    item.tableId or "",
                    item.section,
                    item.guestName,
                    item.guestPhone or "",
                    item.guestEmail or "",
                    item.partySize,
                    item.status,
                    item.channel,
                    item.specialRequests or "",
                ]
            )
        return buffer.getvalue()

    # ------------------------------------------------------------------
    # Updates

    def update_reservation(
        self, payload: schemas.UpdateReservationRequest
    ) -> schemas.Reservation:
        """Move a booking to another table or time, or change its status.

        The conflict check runs against the target table and interval before
        the row is touched, excluding the booking itself.
        """

        if (
            payload.tableId is None
            and payload.start is None
            and payload.end is None
            and payload.status is None
        ):
            raise errors.ValidationError("Nothing to update")
        if (payload.start is None) != (payload.end is None):
            raise errors.ValidationError("start and end must be provided together")

        booking = self._get_booking(payload.reservationId)
        target_status = booking.status
        if payload.status is not None:
            target_status = self._check_transition(booking.status, payload.status.lower())

        table = booking.table
        if payload.tableId is not None and payload.tableId != booking.table_id:
            table = self._repository.get_table(payload.tableId)
            if table is None:
                raise errors.NotFoundError("Table not found")

        interval = guard.Interval.from_duration(booking.booking_time, booking.duration_minutes)
        if payload.start is not None and payload.end is not None:
            interval = guard.Interval.of(payload.start, payload.end)
            guard.validate_interval(interval, self._clock())
            interval = interval.whole_minutes()

        moved = payload.tableId is not None or payload.start is not None
        if (
            moved
            and table is not None
            and target_status != BookingStatus.CANCELLED.value
        ):
            self._ensure_available(table.id, interval, exclude_id=booking.id)

        booking.status = target_status
        if table is not None:
            booking.table_id = table.id
        booking.booking_time = interval.start
        booking.duration_minutes = interval.minutes
        booking.ends_at = interval.end
        booking.updated_at = self._clock()
        try:
            self._repository.save()
        except DuplicateBookingError:
            raise errors.ConflictError(
                "Time slot conflicts with existing reservation"
            ) from None
        logger.info("Reservation %s updated", booking.id)
        return to_reservation(booking, table)

    def review_pending(
        self, reservation_id: uuid.UUID, action: str
    ) -> schemas.ReservationStatusResult:
        """Approve or decline a pending reservation request."""

        booking = self._get_booking(reservation_id)
        if booking.status != BookingStatus.PENDING.value:
            raise errors.ValidationError("Reservation is not in pending status")

        if action == "approve":
            booking.status = self._check_transition(
                booking.status, BookingStatus.CONFIRMED.value
            )
            booking.confirmation_code = confirmation_code(booking.id)
        elif action == "decline":
            booking.status = self._check_transition(
                booking.status, BookingStatus.CANCELLED.value
            )
        else:
            raise errors.ValidationError("Invalid action. Must be approve or decline")

        booking.updated_at = self._clock()
        self._repository.save()
        logger.info("Reservation %s %sd", booking.id, action)
        return schemas.ReservationStatusResult(
            status=booking.status,
            confirmationCode=booking.confirmation_code,
            data=to_reservation(booking),
        )

    def _get_booking(self, reservation_id: uuid.UUID) -> Booking:
        booking = self._repository.get(reservation_id)
        if booking is None:
            raise errors.NotFoundError("Reservation not found")
        return booking

    @staticmethod
    def _check_transition(current: str | None, target: str) -> str:
        current = current or BookingStatus.CONFIRMED.value
        if target == current:
            return target
        if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
            raise errors.ValidationError(
                f"Cannot change status from {status_name(current)} to {status_name(target)}"
            )
        return target


__all__ = [
    "ALLOWED_TRANSITIONS",
    "ReservationService",
    "confirmation_code",
    "pending_code",
    "parse_day",
    "to_reservation",
]
