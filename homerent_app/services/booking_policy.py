"""Pure booking lifecycle rules.

Nothing in here touches the database: every function takes the booking's
status and timestamps and answers a question, so the same rules back the
request handlers, the periodic sweep and the tests.
"""

from datetime import datetime, timedelta
from urllib.parse import quote

from core.date_helper import to_naive_utc
from core.settings import settings
from core.validate_enum import normalize_booking_status
from models.enums import (
    HOLD_STATUSES,
    HOUSE_BLOCKING_STATUSES,
    TENANT_ACTIVE_STATUSES,
    TERMINAL_BOOKING_STATUSES,
    BookingStatus,
)

HOLD_DURATION = timedelta(minutes=settings.BOOKING_HOLD_MINUTES)

HOLD_CREATED_NOTE = "Booking created"
HOLD_EXPIRED_NOTE = (
    f"Hold expired after {settings.BOOKING_HOLD_MINUTES} minutes without payment"
)

# Source states each admin/tenant event may start from.
SUBMIT_PAYMENT_FROM = frozenset({BookingStatus.INITIATED})
APPROVE_FROM = frozenset({BookingStatus.PAYMENT_SUBMITTED})
REJECT_FROM = frozenset({BookingStatus.PAYMENT_SUBMITTED})
TRANSFER_FROM = frozenset({BookingStatus.APPROVED})

URI_COMPONENT_SAFE = "-_.!~*'()"


def hold_expires_at(created_at: datetime, hold: timedelta = HOLD_DURATION) -> datetime:
    return to_naive_utc(created_at) + hold


def is_hold_expired(
    status: str | BookingStatus,
    created_at: datetime,
    now: datetime,
    hold: timedelta = HOLD_DURATION,
) -> bool:
    if normalize_booking_status(status) not in HOLD_STATUSES:
        return False
    return to_naive_utc(now) - to_naive_utc(created_at) > hold


def effective_status(
    status: str | BookingStatus,
    created_at: datetime,
    now: datetime,
    hold: timedelta = HOLD_DURATION,
) -> BookingStatus:
    if is_hold_expired(status, created_at, now, hold):
        return BookingStatus.EXPIRED
    return normalize_booking_status(status)


def is_terminal(status: str | BookingStatus) -> bool:
    return normalize_booking_status(status) in TERMINAL_BOOKING_STATUSES


def is_tenant_active(status: str | BookingStatus) -> bool:
    return normalize_booking_status(status) in TENANT_ACTIVE_STATUSES


def blocks_house(status: str | BookingStatus) -> bool:
    return normalize_booking_status(status) in HOUSE_BLOCKING_STATUSES


def can_cancel(status: str | BookingStatus) -> bool:
    return not is_terminal(status)


def transition_conflict(
    current: BookingStatus, allowed: frozenset, action: str
) -> dict | None:
    """Structured 4xx body when ``current`` is not a legal source for ``action``."""
    if current in allowed:
        return None
    required = sorted(s.value for s in allowed)
    required_label = " or ".join(required)
    return {
        "message": f"Only {required_label} bookings can be {action}. "
        f"Current status: {current.value}",
        "status": current.value,
        "required_status": required[0] if len(required) == 1 else required,
    }


def encode_uri_component(value) -> str:
    # Same escaping as JavaScript's encodeURIComponent; UPI apps parse it that way.
    return quote(str(value), safe=URI_COMPONENT_SAFE)


def build_upi_link(*, payee_vpa: str, payee_name: str, amount: int, note: str) -> str:
    pa = encode_uri_component(payee_vpa)
    pn = encode_uri_component(payee_name)
    am = encode_uri_component(amount)
    tn = encode_uri_component(note)
    return f"upi://pay?pa={pa}&pn={pn}&am={am}&cu=INR&tn={tn}"


def booking_payment_note(booking_id) -> str:
    return f"HomeRent Booking | {booking_id}"


def booking_payout_note(booking_id) -> str:
    return f"HomeRent Payout | {booking_id}"


def rent_payment_note(period: str, payment_id) -> str:
    return f"HomeRent Rent {period} | {payment_id}"
