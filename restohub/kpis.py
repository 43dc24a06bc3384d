"""Dashboard KPI cards computed from a day's bookings."""

from __future__ import annotations

import datetime as dt
import logging
import random
import uuid
from collections.abc import Callable, Sequence
from typing import Literal

from pydantic import BaseModel

from .models import Booking, BookingStatus
from .reservations.guard import Interval, as_utc
from .reservations.repository import BookingRepository
from .reservations.service import parse_day

logger = logging.getLogger(__name__)

DEFAULT_TOTAL_TABLES = 20
NO_SHOW_RISK_MULTIPLIER = 0.15
KITCHEN_LOAD_MULTIPLIER = 20
SPARK_POINTS = 12

Tone = Literal["success", "warning", "danger", "default"]


class KpiCard(BaseModel):
    id: str
    label: str
    value: str
    tone: Tone
    spark: list[float]
    hint: str
    format: Literal["percentage", "number"]


class KpiMeta(BaseModel):
    date: str
    tenant_id: uuid.UUID
    total_bookings: int
    confirmed_bookings: int
    completed_bookings: int
    cancelled_bookings: int
    calculated_at: dt.datetime


class KpiResponse(BaseModel):
    data: list[KpiCard]
    meta: KpiMeta


class KpiRequest(BaseModel):
    date: str | None = None


def sparkline(seed: str, base: float, variance: float) -> list[float]:
    """Return a deterministic trend line of ``SPARK_POINTS`` values around ``base``."""

    rng = random.Random(seed)
    return [
        max(0.0, round(base + (rng.random() - 0.5) * variance, 2))
        for _ in range(SPARK_POINTS)
    ]


def _occupancy_tone(value: int) -> Tone:
    if value > 80:
        return "success"
    if value > 60:
        return "default"
    return "warning"


def _risk_tone(value: int, *, danger: int, warning: int) -> Tone:
    if value > danger:
        return "danger"
    if value > warning:
        return "warning"
    return "success"


def compute_kpis(
    bookings: Sequence[Booking],
    *,
    table_count: int,
    now: dt.datetime,
    seed: str = "",
) -> list[KpiCard]:
    """Build the five dashboard cards for ``bookings`` as seen at ``now``.

    ``table_count`` of zero falls back to :data:`DEFAULT_TOTAL_TABLES`.
    """

    now = as_utc(now)
    total_tables = table_count or DEFAULT_TOTAL_TABLES
    active = [
        b
        for b in bookings
        if b.status in (BookingStatus.CONFIRMED.value, BookingStatus.SEATED.value)
    ]

    occupied = 0
    for booking in bookings:
        if booking.status != BookingStatus.SEATED.value:
            continue
        slot = Interval.from_duration(booking.booking_time, booking.duration_minutes)
        if slot.start <= now <= slot.end:
            occupied += 1
    occupancy = round(occupied / total_tables * 100)

    covers = sum(b.party_size or 0 for b in active)

    upcoming = [
        b
        for b in bookings
        if b.status == BookingStatus.CONFIRMED.value and as_utc(b.booking_time) > now
    ]
    no_show_risk = min(100, round(len(upcoming) * NO_SHOW_RISK_MULTIPLIER * 100))

    avg_party = round(covers / len(active), 1) if active else 0

    this_hour = sum(
        1
        for b in bookings
        if b.status == BookingStatus.SEATED.value
        and as_utc(b.booking_time).hour == now.hour
    )
    kitchen_load = min(100, this_hour * KITCHEN_LOAD_MULTIPLIER)

    return [
        KpiCard(
            id="occupancy",
            label="Occupancy",
            value=f"{occupancy}%",
            tone=_occupancy_tone(occupancy),
            spark=sparkline(f"{seed}:occupancy", occupancy, 15),
            hint=f"{occupied} of {total_tables} tables occupied",
            format="percentage",
        ),
        KpiCard(
            id="covers",
            label="Covers",
            value=str(covers),
            tone="default",
            spark=sparkline(f"{seed}:covers", covers, 8),
            hint=f"{len(active)} confirmed reservations",
            format="number",
        ),
        KpiCard(
            id="no-show-risk",
            label="No-Show Risk",
            value=f"{no_show_risk}%",
            tone=_risk_tone(no_show_risk, danger=20, warning=10),
            spark=sparkline(f"{seed}:no-show-risk", no_show_risk, 5),
            hint=f"Based on {len(upcoming)} upcoming reservations",
            format="percentage",
        ),
        KpiCard(
            id="avg-party",
            label="Avg Party Size",
            value=str(avg_party),
            tone="default",
            spark=sparkline(f"{seed}:avg-party", avg_party, 0.5),
            hint="Average guests per reservation",
            format="number",
        ),
        KpiCard(
            id="kitchen-pacing",
            label="Kitchen Load",
            value=f"{kitchen_load}%",
            tone=_risk_tone(kitchen_load, danger=80, warning=60),
            spark=sparkline(f"{seed}:kitchen-pacing", kitchen_load, 20),
            hint=f"{this_hour} orders this hour",
            format="percentage",
        ),
    ]


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class KpiService:
    def __init__(
        self,
        repository: BookingRepository,
        *,
        clock: Callable[[], dt.datetime] | None = None,
    ) -> None:
        self._repository = repository
        self._clock = clock or _utcnow

    def get_kpis(self, date: str | None = None) -> KpiResponse:
        now = self._clock()
        date = date or as_utc(now).date().isoformat()
        _, start, end = parse_day(date)

        bookings = self._repository.list_between(start, end)
        tenant_id = self._repository.tenant_id
        cards = compute_kpis(
            bookings,
            table_count=self._repository.count_tables(),
            now=now,
            seed=f"{tenant_id}:{date}",
        )
        logger.debug("Computed KPIs for tenant %s on %s", tenant_id, date)

        def count(status: BookingStatus) -> int:
            return sum(1 for b in bookings if b.status == status.value)

        return KpiResponse(
            data=cards,
            meta=KpiMeta(
                date=date,
                tenant_id=tenant_id,
                total_bookings=len(bookings),
                confirmed_bookings=count(BookingStatus.CONFIRMED)
                + count(BookingStatus.SEATED),
                completed_bookings=count(BookingStatus.COMPLETED),
                cancelled_bookings=count(BookingStatus.CANCELLED),
                calculated_at=now,
            ),
        )


__all__ = [
    "DEFAULT_TOTAL_TABLES",
    "KpiCard",
    "KpiRequest",
    "KpiResponse",
    "KpiService",
    "compute_kpis",
    "sparkline",
]
