import csv
import datetime as dt
import io
import uuid

import pytest

from conftest import at, booking_day

DAY = booking_day(3)


def _at(hour, minute=0, day=DAY):
    return dt.datetime.combine(day, dt.time(hour, minute), tzinfo=dt.timezone.utc)


def _list(client, restaurant, filters=None, date=None, role="viewer"):
    body = {"date": date or DAY.isoformat()}
    if filters is not None:
        body["filters"] = filters
    return client.post("/api/list-reservations", json=body, headers=restaurant.header(role))


def _update(client, restaurant, body, method="patch"):
    return client.request(
        method.upper(),
        "/api/update-reservation",
        json=body,
        headers=restaurant.header(),
    )


@pytest.fixture
def status_emails(monkeypatch):
    sent = []

    def _record(message, **_kwargs):
        sent.append(message)
        return True

    monkeypatch.setattr("restohub.routers.reservations.send_status_email", _record)
    return sent


# list-reservations ---------------------------------------------------------


def test_list_returns_day_in_start_order(client, restaurant):
    late = restaurant.add_booking(booking_time=_at(20), guest_name="Late")
    early = restaurant.add_booking(booking_time=_at(12), guest_name="Early")
    restaurant.add_booking(booking_time=_at(12, day=booking_day(4)), guest_name="Tomorrow")

    resp = _list(client, restaurant)

    assert resp.status_code == 200
    ids = [item["id"] for item in resp.json()["data"]]
    assert ids == [str(early), str(late)]


def test_list_never_returns_other_tenants(client, restaurant):
    restaurant.add_booking(booking_time=_at(12))
    restaurant.add_booking(
        booking_time=_at(12),
        tenant_id=restaurant.other_tenant_id,
        table_id=restaurant.other_table_id,
    )

    data = _list(client, restaurant).json()["data"]

    assert len(data) == 1
    assert {item["tenantId"] for item in data} == {str(restaurant.tenant_id)}


def test_list_applies_filters(client, restaurant):
    restaurant.add_booking(booking_time=_at(12), channel="PHONE")
    patio = restaurant.add_booking(
        booking_time=_at(13), table_id=restaurant.tables["T2"], status="seated"
    )
    restaurant.add_booking(booking_time=_at(18), status="cancelled")

    by_section = _list(client, restaurant, {"section": "patio"}).json()["data"]
    by_status = _list(client, restaurant, {"status": "SEATED"}).json()["data"]
    by_channel = _list(client, restaurant, {"channel": "PHONE"}).json()["data"]
    everything = _list(client, restaurant, {"status": "all", "section": "all"}).json()["data"]

    assert [item["id"] for item in by_section] == [str(patio)]
    assert [item["id"] for item in by_status] == [str(patio)]
    assert [item["channel"] for item in by_channel] == ["PHONE"]
    assert len(everything) == 3


def test_list_skips_bookings_without_table(client, restaurant):
    restaurant.add_booking(booking_time=_at(12), table_id=None)

    assert _list(client, restaurant).json()["data"] == []


@pytest.mark.parametrize("date", ["2030/01/01", "tomorrow", "2030-13-01"])
def test_list_rejects_bad_dates(client, restaurant, date):
    resp = _list(client, restaurant, date=date)

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


def test_list_requires_authentication(client, restaurant):
    resp = client.post("/api/list-reservations", json={"date": DAY.isoformat()})

    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "AUTH_REQUIRED"


# update-reservation --------------------------------------------------------


def test_update_status_transition(client, restaurant):
    booking = restaurant.add_booking(booking_time=_at(12))

    resp = _update(client, restaurant, {"reservationId": str(booking), "status": "SEATED"})

    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "SEATED"


def test_update_accepts_post(client, restaurant):
    booking = restaurant.add_booking(booking_time=_at(12))

    resp = _update(
        client, restaurant, {"reservationId": str(booking), "status": "CANCELLED"}, method="post"
    )

    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "CANCELLED"


def test_update_rejects_invalid_transition(client, restaurant):
    booking = restaurant.add_booking(booking_time=_at(12), status="completed")

    resp = _update(client, restaurant, {"reservationId": str(booking), "status": "SEATED"})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


def test_update_moves_to_another_table(client, restaurant):
    booking = restaurant.add_booking(booking_time=_at(12))

    resp = _update(
        client,
        restaurant,
        {"reservationId": str(booking), "tableId": str(restaurant.tables["T2"])},
    )

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["tableId"] == str(restaurant.tables["T2"])
    assert data["section"] == "Patio"
    assert data["start"] == at(DAY, 12)


def test_update_reschedule_conflict(client, restaurant):
    restaurant.add_booking(booking_time=_at(14))
    booking = restaurant.add_booking(booking_time=_at(18))

    resp = _update(
        client,
        restaurant,
        {"reservationId": str(booking), "start": at(DAY, 15), "end": at(DAY, 16)},
    )

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "RESERVATION_CONFLICT"
    listed = _list(client, restaurant).json()["data"]
    assert [item["start"] for item in listed] == [at(DAY, 14), at(DAY, 18)]


def test_update_reschedule_within_own_slot(client, restaurant):
    booking = restaurant.add_booking(booking_time=_at(14))

    resp = _update(
        client,
        restaurant,
        {"reservationId": str(booking), "start": at(DAY, 14, 30), "end": at(DAY, 16)},
    )

    assert resp.status_code == 200
    assert resp.json()["data"]["end"] == at(DAY, 16)


def test_update_requires_start_and_end_together(client, restaurant):
    booking = restaurant.add_booking(booking_time=_at(14))

    resp = _update(client, restaurant, {"reservationId": str(booking), "start": at(DAY, 15)})

    assert resp.status_code == 400


def test_update_unknown_reservation(client, restaurant):
    resp = _update(client, restaurant, {"reservationId": str(uuid.uuid4()), "status": "SEATED"})

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


def test_update_cannot_reach_other_tenant(client, restaurant):
    theirs = restaurant.add_booking(
        booking_time=_at(12),
        tenant_id=restaurant.other_tenant_id,
        table_id=restaurant.other_table_id,
    )

    resp = _update(client, restaurant, {"reservationId": str(theirs), "status": "CANCELLED"})

    assert resp.status_code == 404


# reservation-status --------------------------------------------------------


def test_approve_pending_reservation(client, restaurant, status_emails):
    booking = restaurant.add_booking(
        booking_time=_at(19), status="pending", guest_email="ada@example.com"
    )

    resp = client.post(
        "/api/reservation-status",
        json={"reservationId": str(booking), "action": "approve"},
        headers=restaurant.header(),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["status"] == "confirmed"
    assert body["confirmationCode"] == f"CONF{str(booking)[-6:].upper()}"
    assert body["data"]["status"] == "CONFIRMED"

    assert len(status_emails) == 1
    message = status_emails[0]
    assert message.to_email == "ada@example.com"
    assert message.tenant_name == "Trattoria"
    assert message.action == "approve"
    assert message.confirmation_code == body["confirmationCode"]


def test_decline_without_email_sends_nothing(client, restaurant, status_emails):
    booking = restaurant.add_booking(booking_time=_at(19), status="pending")

    resp = client.post(
        "/api/reservation-status",
        json={"reservationId": str(booking), "action": "decline"},
        headers=restaurant.header(),
    )

    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"
    assert resp.json()["confirmationCode"] is None
    assert status_emails == []


def test_review_requires_pending_status(client, restaurant, status_emails):
    booking = restaurant.add_booking(booking_time=_at(19))

    resp = client.post(
        "/api/reservation-status",
        json={"reservationId": str(booking), "action": "approve"},
        headers=restaurant.header(),
    )

    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "Reservation is not in pending status"


def test_review_rejects_unknown_action(client, restaurant, status_emails):
    booking = restaurant.add_booking(booking_time=_at(19), status="pending")

    resp = client.post(
        "/api/reservation-status",
        json={"reservationId": str(booking), "action": "maybe"},
        headers=restaurant.header(),
    )

    assert resp.status_code == 400


# export ----------------------------------------------------------------------


def test_export_csv(client, restaurant):
    restaurant.add_booking(
        booking_time=_at(12), guest_name="Ada, Countess", special_requests="Window"
    )

    resp = client.get(
        "/api/reservations/export",
        params={"date": DAY.isoformat()},
        headers=restaurant.header("viewer"),
    )

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert f"reservations-{DAY.isoformat()}.csv" in resp.headers["content-disposition"]
    rows = list(csv.DictReader(io.StringIO(resp.text)))
    assert len(rows) == 1
    assert rows[0]["guest_name"] == "Ada, Countess"
    assert rows[0]["start"] == at(DAY, 12)
    assert rows[0]["status"] == "CONFIRMED"
    assert rows[0]["special_requests"] == "Window"
