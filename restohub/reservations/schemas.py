"""Pydantic schemas for the reservation endpoints.

Field names follow the dashboard's camelCase JSON contract.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_serializer

Channel = Literal["WEB", "PHONE", "WALKIN"]
StatusName = Literal[
    "PENDING", "CONFIRMED", "SEATED", "COMPLETED", "CANCELLED", "NO_SHOW"
]


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


class Reservation(BaseModel):
    """Normalized reservation returned by every reservation endpoint."""

    id: uuid.UUID
    tenantId: uuid.UUID
    tableId: uuid.UUID | None = None
    section: str = "Main"
    start: datetime
    end: datetime
    partySize: int
    channel: str = "WEB"
    vip: bool = False
    guestName: str
    guestPhone: str | None = None
    guestEmail: str | None = None
    status: str
    depositRequired: bool = False
    depositAmount: Decimal | None = None
    specialRequests: str | None = None
    confirmationCode: str | None = None
    createdAt: datetime
    updatedAt: datetime

    @field_serializer("start", "end", "createdAt", "updatedAt")
    def _serialize_timestamp(self, value: datetime) -> str | None:
        return _iso(value)

    @field_serializer("depositAmount")
    def _serialize_deposit(self, value: Decimal | None) -> float | None:
        return float(value) if value is not None else None


class ReservationEnvelope(BaseModel):
    data: Reservation


class ReservationList(BaseModel):
    data: list[Reservation]


class CreateReservationRequest(BaseModel):
    tableId: uuid.UUID
    start: datetime
    end: datetime
    partySize: int
    guestName: str
    guestPhone: str | None = None
    guestEmail: str | None = None
    specialRequests: str | None = Field(default=None, max_length=2000)
    channel: Channel = "WEB"


class BookingRequest(CreateReservationRequest):
    """A guest's request from the booking widget, held as pending for review."""

    action: Literal["confirm"]
    guestEmail: str


class BookingRequestResult(BaseModel):
    success: bool = True
    reservationId: uuid.UUID
    confirmationNumber: str
    status: str
    data: Reservation


class ReservationFilters(BaseModel):
    section: str = "all"
    status: Literal["all"] | StatusName = "all"
    channel: Literal["all"] | Channel = "all"


class ListReservationsRequest(BaseModel):
    date: str = Field(..., description="Day to list in YYYY-MM-DD format")
    filters: ReservationFilters | None = None


class UpdateReservationRequest(BaseModel):
    reservationId: uuid.UUID
    tableId: uuid.UUID | None = None
    start: datetime | None = None
    end: datetime | None = None
    status: StatusName | None = None


class ReservationStatusRequest(BaseModel):
    reservationId: uuid.UUID
    action: Literal["approve", "decline"]


class ReservationStatusResult(BaseModel):
    success: bool = True
    status: str
    confirmationCode: str | None = None
    data: Reservation
