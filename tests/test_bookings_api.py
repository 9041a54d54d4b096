# tests/test_bookings_api.py
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.models.booking import Booking
from app.services.payment.provider_interface import PaymentIntentResult
from app.utils.time import utcnow
from tests.utils.auth import CUSTOMER_ID, PARTNER_ID, get_user_authentication_headers
from tests.utils.booking import (
    HOURLY_RULE,
    create_test_area,
    create_test_booking,
    create_test_rule,
)

BOOKINGS_URL = "/api/v1/bookings"

CUSTOMER = get_user_authentication_headers()
PARTNER = get_user_authentication_headers(PARTNER_ID, "partner")


def booking_request(area, start_at, hours=2, guests=1):
    return {
        "area_id": area.id,
        "start_at": start_at.isoformat(),
        "booking_hours": hours,
        "guest_count": guests,
    }


@pytest.fixture
def provider():
    mock = MagicMock()
    mock.create_payment_intent = AsyncMock(
        return_value=PaymentIntentResult(
            intent_id="pi_test_1",
            client_secret="pi_test_1_secret",
            status="requires_payment_method",
        )
    )
    mock.get_publishable_key.return_value = "pk_test_booking"
    with patch(
        "app.api.v1.endpoints.bookings.get_payment_provider", return_value=mock
    ):
        yield mock


# --- quote ---

def test_quote(client, area, future_start):
    response = client.post(
        f"{BOOKINGS_URL}/quote",
        json=booking_request(area, future_start, hours=3),
        headers=CUSTOMER,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["price_minor"] == 30000
    assert body["currency"] == "PHP"
    assert body["branch"] == "base_rate"
    assert body["billed_units"] == 3


def test_quote_uses_space_local_time(client, db, space, future_start):
    space.timezone = "Asia/Manila"
    db.commit()
    # 02:00 UTC is 10:00 in Manila
    rule = create_test_rule(
        db,
        space,
        {
            "base_rate": "100",
            "conditions": [
                {
                    "id": "morning",
                    "when": {"kind": "time_of_day", "start": "09:00", "end": "12:00"},
                    "price": {"type": "fixed", "amount": "50"},
                }
            ],
        },
    )
    area = create_test_area(db, space, rule)

    response = client.post(
        f"{BOOKINGS_URL}/quote",
        json=booking_request(area, future_start.replace(hour=2)),
        headers=CUSTOMER,
    )

    assert response.json()["matched_condition"] == "morning"
    assert response.json()["price_minor"] == 5000


def test_quote_requires_auth(client, area, future_start):
    response = client.post(f"{BOOKINGS_URL}/quote", json=booking_request(area, future_start))

    assert response.status_code == 401


def test_malformed_rule_is_a_server_error_with_a_generic_message(
    client, db, space, future_start
):
    broken = create_test_rule(
        db,
        space,
        {
            "base_rate": "100",
            "conditions": [
                {
                    "id": "moon",
                    "when": {"kind": "lunar_phase", "phase": "full"},
                    "price": {"type": "fixed", "amount": "1"},
                }
            ],
        },
    )
    area = create_test_area(db, space, broken)

    response = client.post(
        f"{BOOKINGS_URL}/quote", json=booking_request(area, future_start), headers=CUSTOMER
    )

    assert response.status_code == 500
    error = response.json()["error"]
    assert error["category"] == "pricing_error"
    assert error["message"] == "Pricing is temporarily unavailable for this area"
    assert "lunar_phase" not in response.text


def test_area_without_rule_cannot_be_priced(client, db, space, future_start):
    area = create_test_area(db, space, None)

    response = client.post(
        f"{BOOKINGS_URL}/quote", json=booking_request(area, future_start), headers=CUSTOMER
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Pricing unavailable for this selection"


def test_rule_without_applicable_price(client, db, space, future_start):
    groups_only = create_test_rule(
        db,
        space,
        {
            "conditions": [
                {
                    "id": "large_group",
                    "when": {
                        "kind": "threshold",
                        "field": "guest_count",
                        "operator": ">",
                        "value": 100,
                    },
                    "price": {"type": "fixed", "amount": "1000"},
                }
            ]
        },
    )
    area = create_test_area(db, space, groups_only)

    response = client.post(
        f"{BOOKINGS_URL}/quote", json=booking_request(area, future_start), headers=CUSTOMER
    )

    assert response.status_code == 400


def test_unknown_area(client, db, area, future_start):
    request = booking_request(area, future_start)
    request["area_id"] = "area_missing"

    response = client.post(f"{BOOKINGS_URL}/quote", json=request, headers=CUSTOMER)

    assert response.status_code == 404


@pytest.mark.parametrize("hours", [0, 25])
def test_hours_out_of_range(client, area, future_start, hours):
    response = client.post(
        f"{BOOKINGS_URL}/quote",
        json=booking_request(area, future_start, hours=hours),
        headers=CUSTOMER,
    )

    assert response.status_code == 422


def test_naive_start_is_rejected(client, area, future_start):
    request = booking_request(area, future_start)
    request["start_at"] = future_start.replace(tzinfo=None).isoformat()

    response = client.post(f"{BOOKINGS_URL}/quote", json=request, headers=CUSTOMER)

    assert response.status_code == 422


# --- create ---

def test_create_booking_starts_payment(client, db, area, future_start, provider):
    response = client.post(
        BOOKINGS_URL, json=booking_request(area, future_start, guests=2), headers=CUSTOMER
    )

    assert response.status_code == 201
    body = response.json()
    assert body["booking"]["status"] == "pending"
    assert body["booking"]["price_minor"] == 20000
    assert body["client_secret"] == "pi_test_1_secret"
    assert body["publishable_key"] == "pk_test_booking"

    params = provider.create_payment_intent.await_args.args[0]
    assert params.amount == 20000
    assert params.currency == "PHP"
    assert params.booking_id == body["booking"]["id"]

    booking = db.get(Booking, body["booking"]["id"])
    assert booking.user_auth_id == CUSTOMER_ID
    assert booking.partner_auth_id == PARTNER_ID
    assert booking.payment_reference == "pi_test_1"
    assert booking.price_rule_snapshot == HOURLY_RULE
    assert booking.price_rule_branch == "base_rate"
    assert booking.area_max_capacity == 5
    assert booking.expires_at is not None


def test_area_needing_approval_marks_booking(client, db, space, rule, future_start, provider):
    area = create_test_area(db, space, rule, automatic_booking_enabled=False)

    response = client.post(
        BOOKINGS_URL, json=booking_request(area, future_start), headers=CUSTOMER
    )

    assert response.json()["booking"]["requires_host_approval"] is True
    assert provider.create_payment_intent.await_args.args[0].requires_host_approval is True


def test_free_booking_skips_payment(client, db, space, future_start, provider):
    area = create_test_area(db, space, create_test_rule(db, space, {"base_rate": "0"}))

    response = client.post(
        BOOKINGS_URL, json=booking_request(area, future_start), headers=CUSTOMER
    )

    assert response.status_code == 201
    assert response.json()["booking"]["status"] == "confirmed"
    assert response.json()["client_secret"] is None
    provider.create_payment_intent.assert_not_called()


def test_booking_in_the_past_is_rejected(client, area, provider):
    start = (utcnow() - timedelta(hours=1)).replace(microsecond=0)

    response = client.post(BOOKINGS_URL, json=booking_request(area, start), headers=CUSTOMER)

    assert response.status_code == 400
    provider.create_payment_intent.assert_not_called()


# --- area booking policy ---

def test_full_area_refuses_new_bookings(client, db, area, future_start, provider):
    create_test_booking(db, area, future_start, guest_count=4, status="confirmed")

    response = client.post(
        BOOKINGS_URL, json=booking_request(area, future_start, guests=2), headers=CUSTOMER
    )

    assert response.status_code == 409
    assert response.json()["error"]["category"] == "conflict_error"
    assert response.json()["error"]["message"] == "This area is fully booked for this time window"
    provider.create_payment_intent.assert_not_called()
    assert db.query(Booking).filter(Booking.user_auth_id == CUSTOMER_ID).count() == 1


def test_full_area_can_take_requests_for_approval(client, db, space, rule, future_start, provider):
    area = create_test_area(db, space, rule, request_approval_at_capacity=True)
    create_test_booking(db, area, future_start, guest_count=3, paid=True)

    response = client.post(
        BOOKINGS_URL, json=booking_request(area, future_start, guests=3), headers=CUSTOMER
    )

    assert response.status_code == 201
    assert response.json()["booking"]["requires_host_approval"] is True
    assert provider.create_payment_intent.await_args.args[0].requires_host_approval is True


def test_unpaid_bookings_do_not_fill_the_window(client, db, area, future_start, provider):
    create_test_booking(db, area, future_start, guest_count=5)

    response = client.post(
        BOOKINGS_URL, json=booking_request(area, future_start, guests=5), headers=CUSTOMER
    )

    assert response.status_code == 201
    assert response.json()["booking"]["requires_host_approval"] is False


def test_booking_fitting_the_remaining_room_is_accepted(client, db, area, future_start, provider):
    create_test_booking(db, area, future_start, guest_count=3, status="confirmed")

    response = client.post(
        BOOKINGS_URL, json=booking_request(area, future_start, guests=2), headers=CUSTOMER
    )

    assert response.status_code == 201
    assert response.json()["booking"]["requires_host_approval"] is False


@pytest.mark.parametrize(
    "unit, days_ahead, expected_status",
    [("days", 1, 400), ("days", 3, 201), ("weeks", 10, 400), ("weeks", 15, 201)],
)
def test_advance_booking_lead_time(
    client, db, space, rule, provider, unit, days_ahead, expected_status
):
    area = create_test_area(
        db,
        space,
        rule,
        advance_booking_enabled=True,
        advance_booking_value=2,
        advance_booking_unit=unit,
    )
    start = (utcnow() + timedelta(days=days_ahead)).replace(microsecond=0)

    response = client.post(BOOKINGS_URL, json=booking_request(area, start), headers=CUSTOMER)

    assert response.status_code == expected_status
    if expected_status == 400:
        assert response.json()["error"]["message"] == "Please book further in advance for this area"


def test_disabled_lead_time_is_ignored(client, db, space, rule, provider):
    area = create_test_area(
        db, space, rule, advance_booking_value=7, advance_booking_unit="days"
    )
    start = (utcnow() + timedelta(hours=3)).replace(microsecond=0)

    response = client.post(BOOKINGS_URL, json=booking_request(area, start), headers=CUSTOMER)

    assert response.status_code == 201


# --- read ---

def test_owner_and_partner_can_read_booking(client, db, area, future_start):
    booking = create_test_booking(db, area, future_start, price_rule_snapshot=HOURLY_RULE)

    as_owner = client.get(f"{BOOKINGS_URL}/{booking.id}", headers=CUSTOMER)
    as_partner = client.get(
        f"{BOOKINGS_URL}/{booking.id}", headers=PARTNER
    )

    assert as_owner.status_code == 200
    assert as_owner.json()["price_rule_snapshot"] == HOURLY_RULE
    assert as_partner.status_code == 200


def test_other_users_booking_is_not_found(client, db, area, future_start):
    booking = create_test_booking(db, area, future_start)

    response = client.get(
        f"{BOOKINGS_URL}/{booking.id}", headers=get_user_authentication_headers("customer_2")
    )

    assert response.status_code == 404
