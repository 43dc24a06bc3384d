import datetime as dt
from types import SimpleNamespace

from conftest import booking_day

from restohub.kpis import SPARK_POINTS, compute_kpis, sparkline

UTC = dt.timezone.utc
NOW = dt.datetime(2030, 5, 1, 19, 30, tzinfo=UTC)


def _booking(hour, status, party_size, duration=90):
    return SimpleNamespace(
        booking_time=dt.datetime(2030, 5, 1, hour, 0, tzinfo=UTC),
        duration_minutes=duration,
        status=status,
        party_size=party_size,
    )


EVENING = [
    _booking(19, "seated", 4),
    _booking(18, "seated", 2),
    _booking(21, "confirmed", 6),
    _booking(20, "confirmed", 2),
    _booking(19, "cancelled", 8),
    _booking(12, "completed", 3),
]


def _cards(bookings, table_count=4):
    return {card.id: card for card in compute_kpis(bookings, table_count=table_count, now=NOW)}


def test_card_order_and_formats():
    cards = compute_kpis(EVENING, table_count=4, now=NOW)

    assert [c.id for c in cards] == [
        "occupancy",
        "covers",
        "no-show-risk",
        "avg-party",
        "kitchen-pacing",
    ]
    assert [c.format for c in cards] == [
        "percentage",
        "number",
        "percentage",
        "number",
        "percentage",
    ]
    assert all(len(c.spark) == SPARK_POINTS for c in cards)


def test_occupancy_counts_seated_bookings_covering_now():
    occupancy = _cards(EVENING)["occupancy"]

    # The 18:00 booking ends exactly at 19:30 and still counts.
    assert occupancy.value == "50%"
    assert occupancy.hint == "2 of 4 tables occupied"
    assert occupancy.tone == "warning"


def test_occupancy_falls_back_to_default_table_count():
    assert _cards(EVENING, table_count=0)["occupancy"].value == "10%"


def test_covers_and_average_party_use_active_bookings():
    cards = _cards(EVENING)

    assert cards["covers"].value == "14"
    assert cards["covers"].hint == "4 confirmed reservations"
    assert cards["avg-party"].value == "3.5"


def test_no_show_risk_from_upcoming_confirmed():
    risk = _cards(EVENING)["no-show-risk"]

    assert risk.value == "30%"
    assert risk.tone == "danger"
    assert risk.hint == "Based on 2 upcoming reservations"


def test_no_show_risk_is_capped():
    upcoming = [_booking(21, "confirmed", 2) for _ in range(10)]

    assert _cards(upcoming)["no-show-risk"].value == "100%"


def test_kitchen_load_counts_seatings_this_hour():
    kitchen = _cards(EVENING)["kitchen-pacing"]

    assert kitchen.value == "20%"
    assert kitchen.tone == "success"
    assert kitchen.hint == "1 orders this hour"


def test_empty_day():
    cards = _cards([])

    assert cards["occupancy"].value == "0%"
    assert cards["covers"].value == "0"
    assert cards["avg-party"].value == "0"
    assert cards["no-show-risk"].tone == "success"


def test_sparkline_is_deterministic():
    first = sparkline("tenant:2030-05-01:covers", 14, 8)

    assert first == sparkline("tenant:2030-05-01:covers", 14, 8)
    assert first != sparkline("tenant:2030-05-02:covers", 14, 8)
    assert all(value >= 0 for value in sparkline("seed", 0, 20))


def test_get_kpis_endpoint(client, restaurant):
    day = booking_day(5)
    start = dt.datetime.combine(day, dt.time(19), tzinfo=UTC)
    for status in ("confirmed", "confirmed", "seated", "completed", "cancelled"):
        restaurant.add_booking(booking_time=start, status=status, party_size=2)

    resp = client.get(
        "/api/get-kpis", params={"date": day.isoformat()}, headers=restaurant.header("viewer")
    )

    assert resp.status_code == 200
    body = resp.json()
    meta = body["meta"]
    assert meta["date"] == day.isoformat()
    assert meta["tenant_id"] == str(restaurant.tenant_id)
    assert meta["total_bookings"] == 5
    assert meta["confirmed_bookings"] == 3
    assert meta["completed_bookings"] == 1
    assert meta["cancelled_bookings"] == 1
    cards = {card["id"]: card for card in body["data"]}
    assert cards["covers"]["value"] == "6"

    again = client.post(
        "/api/get-kpis", json={"date": day.isoformat()}, headers=restaurant.header("viewer")
    )
    assert {c["id"]: c["spark"] for c in again.json()["data"]}["covers"] == cards["covers"]["spark"]


def test_get_kpis_defaults_to_today(client, restaurant):
    resp = client.post("/api/get-kpis", headers=restaurant.header("viewer"))

    assert resp.status_code == 200
    assert resp.json()["meta"]["date"] == dt.datetime.now(UTC).date().isoformat()


def test_get_kpis_rejects_bad_date(client, restaurant):
    resp = client.get(
        "/api/get-kpis", params={"date": "05/01/2030"}, headers=restaurant.header("viewer")
    )

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"
