"""Booking and dining-table models."""

from __future__ import annotations

import datetime as dt
import enum
import uuid
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class BookingStatus(str, enum.Enum):
    """Lifecycle states stored in ``bookings.status``."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    SEATED = "seated"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class RestaurantTable(Base):
    """A physical table guests can be seated at."""

    __tablename__ = "restaurant_tables"
    __table_args__ = (Index("ix_restaurant_tables_tenant_id", "tenant_id"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(length=120), nullable=False)
    section: Mapped[str] = mapped_column(
        String(length=64),
        nullable=False,
        default="Main",
        server_default=text("'Main'"),
    )
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    status: Mapped[str] = mapped_column(
        String(length=32),
        nullable=False,
        default="AVAILABLE",
        server_default=text("'AVAILABLE'"),
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )


class Booking(Base):
    """A guest's reserved interval ``[booking_time, ends_at)`` on a table.

    ``ends_at`` is always ``booking_time + duration_minutes``; it is stored so
    the database can enforce non-overlap with an exclusion constraint.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        Index(
            "ix_bookings_tenant_idempotency_unique",
            "tenant_id",
            "idempotency_key",
            unique=True,
        ),
        Index("ix_bookings_tenant_table_time", "tenant_id", "table_id", "booking_time"),
        Index("ix_bookings_tenant_time", "tenant_id", "booking_time"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
    )
    table_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("restaurant_tables.id", ondelete="SET NULL"),
        nullable=True,
    )
    guest_name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    guest_phone: Mapped[str | None] = mapped_column(String(length=64))
    guest_email: Mapped[str | None] = mapped_column(String(length=320))
    party_size: Mapped[int] = mapped_column(Integer, nullable=False)
    booking_time: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    duration_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=90,
        server_default=text("90"),
    )
    ends_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(length=32),
        nullable=False,
        default=BookingStatus.CONFIRMED.value,
        server_default=text("'confirmed'"),
    )
    channel: Mapped[str] = mapped_column(
        String(length=16),
        nullable=False,
        default="WEB",
        server_default=text("'WEB'"),
    )
    special_requests: Mapped[str | None] = mapped_column(Text())
    deposit_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    confirmation_code: Mapped[str | None] = mapped_column(String(length=32))
    idempotency_key: Mapped[str | None] = mapped_column(String(length=255))
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    table: Mapped[RestaurantTable | None] = relationship(lazy="joined")


__all__ = ["Booking", "BookingStatus", "RestaurantTable"]
