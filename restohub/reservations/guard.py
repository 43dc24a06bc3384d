"""Validation and overlap rules for reserving a table.

Intervals are half-open, ``[start, end)``: a booking ending at 15:30 and one
starting at 15:30 on the same table do not conflict. All timestamps are
compared in UTC; naive values are assumed to already be UTC.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import math
from collections.abc import Iterable
from typing import Protocol

from .. import errors

MIN_PARTY_SIZE = 1
MAX_PARTY_SIZE = 20
CONFLICT_WINDOW = dt.timedelta(hours=4)
DEFAULT_DURATION_MINUTES = 90


def as_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


@dataclasses.dataclass(frozen=True)
class Interval:
    start: dt.datetime
    end: dt.datetime

    @classmethod
    def of(cls, start: dt.datetime, end: dt.datetime) -> "Interval":
        return cls(as_utc(start), as_utc(end))

    @classmethod
    def from_duration(cls, start: dt.datetime, minutes: int | None) -> "Interval":
        start = as_utc(start)
        duration = minutes or DEFAULT_DURATION_MINUTES
        return cls(start, start + dt.timedelta(minutes=duration))

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and self.end > other.start

    def contains(self, instant: dt.datetime) -> bool:
        instant = as_utc(instant)
        return self.start <= instant < self.end

    @property
    def minutes(self) -> int:
        """Whole minutes covered by the interval, never less than one."""

        seconds = (self.end - self.start).total_seconds()
        return max(1, math.ceil(seconds / 60))

    def whole_minutes(self) -> "Interval":
        """The interval as stored, with ``end`` rounded up to a whole minute."""

        return Interval(self.start, self.start + dt.timedelta(minutes=self.minutes))

    def search_window(self) -> tuple[dt.datetime, dt.datetime]:
        """Bounds of the span worth fetching existing bookings for."""

        return self.start - CONFLICT_WINDOW, self.end + CONFLICT_WINDOW


class BookedSlot(Protocol):
    booking_time: dt.datetime
    duration_minutes: int


def slot_interval(slot: BookedSlot) -> Interval:
    return Interval.from_duration(slot.booking_time, slot.duration_minutes)


def validate_party_size(party_size: int) -> None:
    if not MIN_PARTY_SIZE <= party_size <= MAX_PARTY_SIZE:
        raise errors.ValidationError(
            f"Party size must be between {MIN_PARTY_SIZE} and {MAX_PARTY_SIZE}"
        )


def validate_interval(interval: Interval, now: dt.datetime) -> None:
    """Reject intervals starting in the past or ending before they start."""

    if interval.start < as_utc(now):
        raise errors.ValidationError(
            "Cannot create reservations in the past",
            code=errors.RESERVATION_PAST_TIME,
        )
    if interval.end <= interval.start:
        raise errors.ValidationError(
            "End time must be after start time",
            code=errors.RESERVATION_INVALID_TIME,
        )


def find_conflict(
    requested: Interval, existing: Iterable[BookedSlot]
) -> BookedSlot | None:
    """Return the first booking in ``existing`` that overlaps ``requested``."""

    for slot in existing:
        if slot_interval(slot).overlaps(requested):
            return slot
    return None


def ensure_no_conflict(requested: Interval, existing: Iterable[BookedSlot]) -> None:
    if find_conflict(requested, existing) is not None:
        raise errors.ConflictError("Time slot conflicts with existing reservation")


__all__ = [
    "CONFLICT_WINDOW",
    "DEFAULT_DURATION_MINUTES",
    "Interval",
    "MAX_PARTY_SIZE",
    "MIN_PARTY_SIZE",
    "as_utc",
    "ensure_no_conflict",
    "find_conflict",
    "slot_interval",
    "validate_interval",
    "validate_party_size",
]
