"""Notification preferences and guest e-mail delivery."""

from .email import StatusEmail, send_status_email
from .preferences import NotificationPreferenceService

__all__ = [
    "NotificationPreferenceService",
    "StatusEmail",
    "send_status_email",
]
