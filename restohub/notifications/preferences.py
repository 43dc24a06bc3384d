"""Per-user notification preferences and delivery checks."""

from __future__ import annotations

import copy
import datetime as dt
import logging
import uuid
from collections.abc import Callable
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .. import errors
from ..models import NotificationPreference

logger = logging.getLogger(__name__)

Channel = Literal["email", "sms", "push", "in_app"]
Priority = Literal["low", "normal", "high", "urgent"]

_PRIORITY_RANK = {"low": 0, "normal": 1, "high": 2, "urgent": 3}
_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
_NULLABLE_FIELDS = frozenset({"quiet_hours_start", "quiet_hours_end"})

DEFAULT_CHANNEL_PREFERENCES: dict[str, Any] = {
    "email": {"enabled": True, "categories": ["system", "booking", "payment"]},
    "sms": {"enabled": True, "categories": ["booking", "alert"]},
    "push": {"enabled": True, "categories": ["booking", "alert", "reminder"]},
    "in_app": {
        "enabled": True,
        "categories": ["system", "booking", "payment", "update"],
    },
}

DEFAULT_CATEGORY_PREFERENCES: dict[str, Any] = {
    "system": {"enabled": True, "priority_threshold": "normal"},
    "booking": {"enabled": True, "priority_threshold": "normal"},
    "payment": {"enabled": True, "priority_threshold": "normal"},
    "marketing": {"enabled": False, "priority_threshold": "normal"},
    "alert": {"enabled": True, "priority_threshold": "low"},
    "reminder": {"enabled": True, "priority_threshold": "normal"},
    "update": {"enabled": True, "priority_threshold": "normal"},
    "social": {"enabled": False, "priority_threshold": "normal"},
}


class Preferences(BaseModel):
    tenant_id: uuid.UUID
    user_id: str
    is_enabled: bool = True
    quiet_hours_start: str | None = None
    quiet_hours_end: str | None = None
    timezone: str = "UTC"
    channel_preferences: dict[str, Any] = Field(
        default_factory=lambda: copy.deepcopy(DEFAULT_CHANNEL_PREFERENCES)
    )
    category_preferences: dict[str, Any] = Field(
        default_factory=lambda: copy.deepcopy(DEFAULT_CATEGORY_PREFERENCES)
    )
    enable_digest: bool = False
    digest_frequency: str = "daily"
    updated_at: dt.datetime | None = None


class PreferencesResponse(BaseModel):
    success: bool = True
    preferences: Preferences
    message: str | None = None


class PreferencesUpdate(BaseModel):
    is_enabled: bool | None = None
    quiet_hours_start: str | None = Field(default=None, pattern=_TIME_PATTERN)
    quiet_hours_end: str | None = Field(default=None, pattern=_TIME_PATTERN)
    timezone: str | None = None
    channel_preferences: dict[str, Any] | None = None
    category_preferences: dict[str, Any] | None = None
    enable_digest: bool | None = None
    digest_frequency: Literal["hourly", "daily", "weekly"] | None = None


class DeliveryTestRequest(BaseModel):
    channel: Channel
    category: str
    priority: Priority = "normal"


class DeliveryTestResult(BaseModel):
    success: bool = True
    is_enabled: bool
    in_quiet_hours: bool
    will_send: bool


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise errors.ValidationError(f"Unknown timezone: {name}") from exc


def _parse_time(value: str) -> dt.time:
    hours, minutes = value.split(":")
    return dt.time(int(hours), int(minutes))


def channel_enabled(
    prefs: Preferences, channel: str, category: str, priority: str
) -> bool:
    """Whether a notification would be delivered on ``channel`` ignoring quiet hours."""

    if not prefs.is_enabled:
        return False
    channel_pref = prefs.channel_preferences.get(channel)
    if not channel_pref or not channel_pref.get("enabled"):
        return False
    if category not in channel_pref.get("categories", []):
        return False
    category_pref = prefs.category_preferences.get(category)
    if not category_pref or not category_pref.get("enabled"):
        return False
    threshold = category_pref.get("priority_threshold", "normal")
    return _PRIORITY_RANK.get(priority, 1) >= _PRIORITY_RANK.get(threshold, 1)


def in_quiet_hours(prefs: Preferences, now: dt.datetime) -> bool:
    """Whether ``now`` falls inside the user's quiet hours, both ends inclusive.

    A window whose start is not before its end spans midnight.
    """

    if not prefs.quiet_hours_start or not prefs.quiet_hours_end:
        return False
    start = _parse_time(prefs.quiet_hours_start)
    end = _parse_time(prefs.quiet_hours_end)
    local = now.astimezone(_zone(prefs.timezone)).time().replace(second=0, microsecond=0)
    if start < end:
        return start <= local <= end
    return local >= start or local <= end


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class NotificationPreferenceService:
    """Reads and writes the preferences of one user in one tenant."""

    def __init__(
        self,
        session: Session,
        tenant_id: uuid.UUID,
        user_id: str,
        *,
        clock: Callable[[], dt.datetime] | None = None,
    ) -> None:
        self._session = session
        self._tenant_id = tenant_id
        self._user_id = user_id
        self._clock = clock or _utcnow

    def _load(self) -> NotificationPreference | None:
        return self._session.execute(
            select(NotificationPreference)
            .where(NotificationPreference.tenant_id == self._tenant_id)
            .where(NotificationPreference.user_id == self._user_id)
        ).scalar_one_or_none()

    def _defaults(self) -> Preferences:
        return Preferences(tenant_id=self._tenant_id, user_id=self._user_id)

    def _to_schema(self, row: NotificationPreference) -> Preferences:
        return Preferences(
            tenant_id=row.tenant_id,
            user_id=row.user_id,
            is_enabled=row.is_enabled,
            quiet_hours_start=row.quiet_hours_start,
            quiet_hours_end=row.quiet_hours_end,
            timezone=row.timezone,
            channel_preferences=row.channel_preferences,
            category_preferences=row.category_preferences,
            enable_digest=row.enable_digest,
            digest_frequency=row.digest_frequency,
            updated_at=row.updated_at,
        )

    def get(self) -> Preferences:
        row = self._load()
        return self._to_schema(row) if row is not None else self._defaults()

    def update(self, payload: PreferencesUpdate) -> Preferences:
        """Apply the fields set in ``payload``, creating the row on first write."""

        changes = payload.model_dump(exclude_unset=True)
        if changes.get("timezone"):
            _zone(changes["timezone"])

        row = self._load()
        if row is None:
            defaults = self._defaults()
            row = NotificationPreference(
                tenant_id=self._tenant_id,
                user_id=self._user_id,
                channel_preferences=defaults.channel_preferences,
                category_preferences=defaults.category_preferences,
            )
            self._session.add(row)

        for field, value in changes.items():
            if value is None and field not in _NULLABLE_FIELDS:
                continue
            setattr(row, field, value)
        row.updated_at = self._clock()
        self._session.commit()
        logger.info(
            "Notification preferences updated for user %s in tenant %s",
            self._user_id,
            self._tenant_id,
        )
        return self._to_schema(row)

    def reset(self) -> Preferences:
        self._session.execute(
            delete(NotificationPreference)
            .where(NotificationPreference.tenant_id == self._tenant_id)
            .where(NotificationPreference.user_id == self._user_id)
        )
        self._session.commit()
        return self._defaults()

    def test_delivery(self, payload: DeliveryTestRequest) -> DeliveryTestResult:
        prefs = self.get()
        enabled = channel_enabled(prefs, payload.channel, payload.category, payload.priority)
        quiet = in_quiet_hours(prefs, self._clock())
        return DeliveryTestResult(
            is_enabled=enabled,
            in_quiet_hours=quiet,
            will_send=enabled and (not quiet or payload.priority == "urgent"),
        )


__all__ = [
    "DeliveryTestRequest",
    "DeliveryTestResult",
    "NotificationPreferenceService",
    "Preferences",
    "PreferencesResponse",
    "PreferencesUpdate",
    "channel_enabled",
    "in_quiet_hours",
]
