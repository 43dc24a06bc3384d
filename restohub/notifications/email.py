"""Guest e-mails sent when a pending reservation is approved or declined."""

from __future__ import annotations

import dataclasses
import datetime as dt
import logging
import os
from html import escape

import requests

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


@dataclasses.dataclass(frozen=True)
class StatusEmail:
    to_email: str
    tenant_name: str
    guest_name: str
    booking_time: dt.datetime
    party_size: int
    action: str
    confirmation_code: str | None = None

    @property
    def approved(self) -> bool:
        return self.action == "approve"

    def _when(self) -> tuple[str, str]:
        when = self.booking_time
        date_str = f"{when:%B} {when.day}, {when.year}"
        time_str = when.strftime("%I:%M %p").lstrip("0")
        return date_str, time_str

    def subject(self) -> str:
        if self.approved:
            return f"Reservation Confirmed at {self.tenant_name}"
        return f"Reservation Declined at {self.tenant_name}"

    def text(self) -> str:
        date_str, time_str = self._when()
        if self.approved:
            return (
                f"Hi {self.guest_name}, great news! Your reservation at {self.tenant_name} "
                f"has been confirmed for {date_str} at {time_str}. Party size: "
                f"{self.party_size}. Confirmation: {self.confirmation_code}. "
                "We look forward to seeing you!"
            )
        return (
            f"Hi {self.guest_name}, we're sorry but your reservation request at "
            f"{self.tenant_name} for {date_str} at {time_str} (party of {self.party_size}) "
            "could not be accommodated. Please try a different time or contact us directly."
        )

    def html(self) -> str:
        date_str, time_str = self._when()
        guest = escape(self.guest_name)
        tenant = escape(self.tenant_name)
        if self.approved:
            return (
                "<h2>Reservation Confirmed!</h2>"
                f"<p>Hi {guest},</p>"
                f"<p>Great news! Your reservation at <strong>{tenant}</strong> has been confirmed.</p>"
                f"<p><strong>{date_str} at {time_str}</strong></p>"
                f"<p><strong>Party size:</strong> {self.party_size}</p>"
                f"<p><strong>Confirmation:</strong> {escape(self.confirmation_code or '')}</p>"
                "<p>We look forward to seeing you!</p>"
            )
        return (
            "<h2>Reservation Update</h2>"
            f"<p>Hi {guest},</p>"
            f"<p>We're sorry, but your reservation request at <strong>{tenant}</strong> "
            "could not be accommodated.</p>"
            f"<p><strong>Requested:</strong> {date_str} at {time_str}</p>"
            f"<p><strong>Party size:</strong> {self.party_size}</p>"
            "<p>Please try selecting a different time, or feel free to contact us "
            "directly to discuss alternatives.</p>"
        )


def send_status_email(
    message: StatusEmail,
    *,
    session: requests.Session | None = None,
    timeout: float = 10.0,
) -> bool:
    """Post ``message`` to the Resend API.

    Returns ``False`` without sending when ``RESEND_API_KEY`` or ``RESEND_FROM``
    is not configured or the guest has no e-mail address. Delivery failures are
    logged and reported as ``False``; they never affect the reservation itself.
    """

    api_key = os.getenv("RESEND_API_KEY")
    sender = os.getenv("RESEND_FROM")
    if not api_key or not sender:
        logger.info("E-mail provider not configured; skipping status e-mail")
        return False
    if not message.to_email:
        logger.info("Guest has no e-mail address; skipping status e-mail")
        return False

    if session is None:
        with requests.Session() as http:
            return _deliver(http, message, api_key, sender, timeout)
    return _deliver(session, message, api_key, sender, timeout)


def _deliver(
    http: requests.Session,
    message: StatusEmail,
    api_key: str,
    sender: str,
    timeout: float,
) -> bool:
    try:
        resp = http.post(
            RESEND_API_URL,
            headers={"Authorization": f"Bearer {api_key}"},
            json={
                "from": sender,
                "to": message.to_email,
                "subject": message.subject(),
                "text": message.text(),
                "html": message.html(),
            },
            timeout=timeout,
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Failed to send status e-mail: %s", exc)
        return False
    logger.info("Sent %s e-mail for reservation", message.action)
    return True


__all__ = ["StatusEmail", "send_status_email"]
