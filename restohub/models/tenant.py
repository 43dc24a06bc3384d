"""Tenant-related SQLAlchemy models.

A tenant is one restaurant account. Users live in the external auth service;
``TenantMembership`` is the lookup table that joins an auth subject to the
tenant it works for, together with the role it holds there. The columns mirror
the DDL in ``restohub/migrations/001_create_reservation_tables.py``.
"""

from __future__ import annotations

import datetime as dt
import uuid
from typing import List

from sqlalchemy import DateTime, ForeignKey, Index, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base


def _utcnow() -> dt.datetime:
    """Return the current UTC timestamp with timezone awareness."""

    return dt.datetime.now(dt.timezone.utc)


class Tenant(Base):
    """Represents a restaurant account.

    Attributes:
        id: Primary key generated via ``gen_random_uuid`` in Postgres.
        name: Display name of the restaurant.
        slug: Unique short name used in URLs and for the demo fallback.
        status: ``active`` or ``suspended``.
        timezone: IANA timezone the restaurant operates in.
        memberships: Users allowed to act for this tenant.
    """

    __tablename__ = "tenants"
    __table_args__ = (Index("ix_tenants_slug_unique", "slug", unique=True),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    slug: Mapped[str] = mapped_column(String(length=255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(length=32),
        nullable=False,
        default="active",
        server_default=text("'active'"),
    )
    timezone: Mapped[str] = mapped_column(
        String(length=64),
        nullable=False,
        default="UTC",
        server_default=text("'UTC'"),
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    memberships: Mapped[List["TenantMembership"]] = relationship(
        back_populates="tenant",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class TenantMembership(Base):
    """Links an external auth subject to a tenant with a role."""

    __tablename__ = "tenant_memberships"
    __table_args__ = (
        Index("ix_tenant_memberships_user_id", "user_id"),
        Index(
            "ix_tenant_memberships_tenant_user_unique",
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
    role: Mapped[str] = mapped_column(
        String(length=32),
        nullable=False,
        default="viewer",
        server_default=text("'viewer'"),
    )
    active: Mapped[bool] = mapped_column(
        nullable=False,
        default=True,
        server_default=text("true"),
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    tenant: Mapped[Tenant] = relationship(back_populates="memberships", lazy="joined")


__all__ = ["Tenant", "TenantMembership"]
