"""Floor view: the tenant's tables with their live status."""

from __future__ import annotations

import datetime as dt
import uuid
from collections import Counter
from collections.abc import Callable, Iterable

from pydantic import BaseModel

from .models import Booking, BookingStatus, RestaurantTable
from .reservations.guard import Interval, as_utc
from .reservations.repository import BookingRepository


class TableView(BaseModel):
    id: uuid.UUID
    name: str
    section: str
    seats: int
    status: str


class TableMeta(BaseModel):
    tenant_id: uuid.UUID
    total_tables: int
    sections: list[str]
    status_counts: dict[str, int]
    last_updated: dt.datetime


class TableList(BaseModel):
    data: list[TableView]
    meta: TableMeta


def live_status(
    table: RestaurantTable, bookings: Iterable[Booking], now: dt.datetime
) -> str:
    """Status of ``table`` at ``now`` given the day's confirmed and seated bookings.

    A booking covering ``now`` marks the table ``SEATED`` or ``RESERVED``;
    otherwise the stored status (default ``AVAILABLE``) is kept.
    """

    for booking in bookings:
        if booking.table_id != table.id:
            continue
        slot = Interval.from_duration(booking.booking_time, booking.duration_minutes)
        if slot.start <= now <= slot.end:
            return "SEATED" if booking.status == BookingStatus.SEATED.value else "RESERVED"
    return table.status or "AVAILABLE"


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class TableService:
    def __init__(
        self,
        repository: BookingRepository,
        *,
        clock: Callable[[], dt.datetime] | None = None,
    ) -> None:
        self._repository = repository
        self._clock = clock or _utcnow

    def list_tables(self) -> TableList:
        now = as_utc(self._clock())
        day_start = dt.datetime.combine(now.date(), dt.time.min, tzinfo=dt.timezone.utc)
        bookings = self._repository.list_between(
            day_start,
            day_start + dt.timedelta(days=1),
            statuses=[BookingStatus.CONFIRMED.value, BookingStatus.SEATED.value],
        )

        views = [
            TableView(
                id=table.id,
                name=table.name,
                section=table.section or "Main",
                seats=table.capacity or 4,
                status=live_status(table, bookings, now),
            )
            for table in self._repository.list_tables()
        ]
        sections = list(dict.fromkeys(view.section for view in views))
        return TableList(
            data=views,
            meta=TableMeta(
                tenant_id=self._repository.tenant_id,
                total_tables=len(views),
                sections=sections,
                status_counts=dict(Counter(view.status for view in views)),
                last_updated=now,
            ),
        )


__all__ = ["TableList", "TableService", "TableView", "live_status"]
