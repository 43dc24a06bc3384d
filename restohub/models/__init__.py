"""SQLAlchemy declarative base and tenant-scoped models.

This package hosts the SQLAlchemy models used across the backend. It exposes a
single declarative ``Base`` class that other modules import when creating
tables or writing migrations. Individual models live in dedicated modules
within this package.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy declarative models."""


# Re-export the models so callers can import them via
# ``from restohub.models import Booking`` instead of touching private modules.
from .tenant import Tenant, TenantMembership
from .booking import Booking, BookingStatus, RestaurantTable
from .notification import NotificationPreference


__all__ = [
    "Base",
    "Booking",
    "BookingStatus",
    "NotificationPreference",
    "RestaurantTable",
    "Tenant",
    "TenantMembership",
]
