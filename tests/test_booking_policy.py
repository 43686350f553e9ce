import uuid
from datetime import datetime, timedelta, timezone

import pytest

from core.validate_enum import normalize_booking_status
from models.enums import BookingStatus
from services.booking_policy import (
    APPROVE_FROM,
    HOLD_DURATION,
    blocks_house,
    booking_payment_note,
    build_upi_link,
    can_cancel,
    effective_status,
    encode_uri_component,
    is_hold_expired,
    is_tenant_active,
    transition_conflict,
)

CREATED = datetime(2026, 3, 1, 12, 0, 0)


@pytest.mark.parametrize(
    "legacy, canonical",
    [
        ("created", BookingStatus.INITIATED),
        ("qr_created", BookingStatus.INITIATED),
        ("paid", BookingStatus.PAYMENT_SUBMITTED),
        ("failed", BookingStatus.REJECTED),
        ("PAYMENT_SUBMITTED", BookingStatus.PAYMENT_SUBMITTED),
        (" approved ", BookingStatus.APPROVED),
    ],
)
def test_legacy_statuses_normalize(legacy, canonical):
    assert normalize_booking_status(legacy) is canonical


def test_unknown_status_is_rejected():
    with pytest.raises(ValueError, match="Allowed values"):
        normalize_booking_status("settled")


def test_hold_expires_only_after_ten_minutes():
    assert HOLD_DURATION == timedelta(minutes=10)
    assert not is_hold_expired("initiated", CREATED, CREATED + timedelta(minutes=10))
    assert is_hold_expired(
        "initiated", CREATED, CREATED + timedelta(minutes=10, seconds=1)
    )


def test_legacy_hold_expires_like_initiated():
    assert is_hold_expired("qr_created", CREATED, CREATED + timedelta(hours=1))
    assert effective_status("created", CREATED, CREATED + timedelta(hours=1)) is (
        BookingStatus.EXPIRED
    )


@pytest.mark.parametrize(
    "status",
    ["payment_submitted", "approved", "transferred", "cancelled", "rejected"],
)
def test_non_hold_statuses_never_expire(status):
    later = CREATED + timedelta(days=30)
    assert not is_hold_expired(status, CREATED, later)
    assert effective_status(status, CREATED, later) is BookingStatus(status)


def test_expiry_accepts_aware_timestamps():
    aware_now = datetime(2026, 3, 1, 12, 11, tzinfo=timezone.utc)
    assert is_hold_expired("initiated", CREATED, aware_now)


def test_status_sets_are_asymmetric():
    assert is_tenant_active(BookingStatus.INITIATED)
    assert not blocks_house(BookingStatus.INITIATED)
    assert blocks_house("paid")
    assert not can_cancel(BookingStatus.TRANSFERRED)
    assert can_cancel(BookingStatus.APPROVED)


def test_transition_conflict_names_both_states():
    assert transition_conflict(BookingStatus.PAYMENT_SUBMITTED, APPROVE_FROM, "approved") is None

    conflict = transition_conflict(BookingStatus.INITIATED, APPROVE_FROM, "approved")
    assert conflict["status"] == "initiated"
    assert conflict["required_status"] == "payment_submitted"
    assert "only payment_submitted bookings can be approved" in conflict["message"].lower()


def test_encode_uri_component_matches_javascript():
    assert encode_uri_component("HomeRent Booking | abc") == "HomeRent%20Booking%20%7C%20abc"
    assert encode_uri_component("ravi@okaxis") == "ravi%40okaxis"
    assert encode_uri_component("a-b_c.d!e~f*g'h(i)") == "a-b_c.d!e~f*g'h(i)"


def test_upi_link_format():
    booking_id = uuid.UUID("12345678-1234-5678-1234-567812345678")
    link = build_upi_link(
        payee_vpa="homerent@upi",
        payee_name="HomeRent",
        amount=5000,
        note=booking_payment_note(booking_id),
    )
    assert link == (
        "upi://pay?pa=homerent%40upi&pn=HomeRent&am=5000&cu=INR"
        "&tn=HomeRent%20Booking%20%7C%2012345678-1234-5678-1234-567812345678"
    )
