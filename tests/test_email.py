import datetime as dt

import pytest
import requests

from restohub.notifications.email import RESEND_API_URL, StatusEmail, send_status_email


class _Response:
    def __init__(self, status_code=200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class _Session:
    def __init__(self, response=None, exc=None):
        self.calls = []
        self._response = response or _Response()
        self._exc = exc

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self._exc is not None:
            raise self._exc
        return self._response


def _message(action="approve", **overrides):
    fields = {
        "to_email": "ada@example.com",
        "tenant_name": "Trattoria <Roma>",
        "guest_name": "Ada",
        "booking_time": dt.datetime(2030, 5, 1, 19, 30, tzinfo=dt.timezone.utc),
        "party_size": 4,
        "action": action,
        "confirmation_code": "CONFABC123" if action == "approve" else None,
    }
    fields.update(overrides)
    return StatusEmail(**fields)


@pytest.fixture
def resend_env(monkeypatch):
    monkeypatch.setenv("RESEND_API_KEY", "re_test")
    monkeypatch.setenv("RESEND_FROM", "RestoHub <bookings@restohub.test>")


def test_approved_message_content():
    message = _message()

    assert message.subject() == "Reservation Confirmed at Trattoria <Roma>"
    assert "May 1, 2030 at 7:30 PM" in message.text()
    assert "CONFABC123" in message.text()
    assert "Trattoria &lt;Roma&gt;" in message.html()


def test_declined_message_content():
    message = _message("decline")

    assert message.subject().startswith("Reservation Declined")
    assert "could not be accommodated" in message.text()
    assert "Confirmation" not in message.html()


def test_send_posts_to_resend(resend_env):
    session = _Session()

    assert send_status_email(_message(), session=session) is True

    url, kwargs = session.calls[0]
    assert url == RESEND_API_URL
    assert kwargs["headers"] == {"Authorization": "Bearer re_test"}
    assert kwargs["json"]["to"] == "ada@example.com"
    assert kwargs["json"]["from"] == "RestoHub <bookings@restohub.test>"
    assert kwargs["timeout"] == 10.0


def test_send_skips_when_not_configured(monkeypatch):
    monkeypatch.delenv("RESEND_API_KEY", raising=False)
    session = _Session()

    assert send_status_email(_message(), session=session) is False
    assert session.calls == []


def test_send_skips_without_recipient(resend_env):
    session = _Session()

    assert send_status_email(_message(to_email=""), session=session) is False
    assert session.calls == []


@pytest.mark.parametrize(
    "session",
    [
        _Session(response=_Response(422)),
        _Session(exc=requests.ConnectionError("down")),
    ],
)
def test_send_failures_are_reported_not_raised(resend_env, session, caplog):
    assert send_status_email(_message(), session=session) is False
    assert any("Failed to send status e-mail" in r.message for r in caplog.records)


def test_owned_session_is_closed(resend_env, monkeypatch):
    opened = []

    class _OwnedSession(_Session):
        closed = False

        def __enter__(self):
            return self

        def __exit__(self, *exc_info):
            self.closed = True

    def _factory():
        opened.append(_OwnedSession())
        return opened[-1]

    monkeypatch.setattr(requests, "Session", _factory)

    assert send_status_email(_message()) is True
    assert len(opened[0].calls) == 1
    assert opened[0].closed is True
