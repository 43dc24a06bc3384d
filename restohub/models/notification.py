"""Per-user notification preferences."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from . import Base


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class NotificationPreference(Base):
    """Delivery preferences of one user inside one tenant.

    ``quiet_hours_start``/``quiet_hours_end`` are ``HH:MM`` strings interpreted
    in ``timezone``; a window whose end is before its start wraps midnight.
    """

    __tablename__ = "notification_preferences"
    __table_args__ = (
        Index(
            "ix_notification_preferences_tenant_user_unique",
            "tenant_id",
            "user_id",
            unique=True,
        ),
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
    user_id: Mapped[str] = mapped_column(String(length=255), nullable=False)
    is_enabled: Mapped[bool] = mapped_column(nullable=False, default=True)
    quiet_hours_start: Mapped[str | None] = mapped_column(String(length=5))
    quiet_hours_end: Mapped[str | None] = mapped_column(String(length=5))
    timezone: Mapped[str] = mapped_column(String(length=64), nullable=False, default="UTC")
    channel_preferences: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    category_preferences: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    enable_digest: Mapped[bool] = mapped_column(nullable=False, default=False)
    digest_frequency: Mapped[str] = mapped_column(
        String(length=16), nullable=False, default="daily"
    )
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


__all__ = ["NotificationPreference"]
