from enum import Enum


class UserRole(str, Enum):
    TENANT = "tenant"
    LANDLORD = "landlord"
    ADMIN = "admin"


class HouseStatus(str, Enum):
    AVAILABLE = "available"
    RENTED = "rented"


class HouseVerificationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class BookingStatus(str, Enum):
    INITIATED = "initiated"
    PAYMENT_SUBMITTED = "payment_submitted"
    APPROVED = "approved"
    TRANSFERRED = "transferred"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# Older records and clients still carry these values.
LEGACY_BOOKING_STATUSES = {
    "created": BookingStatus.INITIATED,
    "qr_created": BookingStatus.INITIATED,
    "paid": BookingStatus.PAYMENT_SUBMITTED,
    "failed": BookingStatus.REJECTED,
}

HOLD_STATUSES = frozenset({BookingStatus.INITIATED})

TERMINAL_BOOKING_STATUSES = frozenset(
    {
        BookingStatus.REJECTED,
        BookingStatus.CANCELLED,
        BookingStatus.EXPIRED,
        BookingStatus.TRANSFERRED,
    }
)

TENANT_ACTIVE_STATUSES = frozenset(
    {
        BookingStatus.INITIATED,
        BookingStatus.PAYMENT_SUBMITTED,
        BookingStatus.APPROVED,
        BookingStatus.TRANSFERRED,
    }
)

HOUSE_BLOCKING_STATUSES = frozenset(
    {
        BookingStatus.PAYMENT_SUBMITTED,
        BookingStatus.APPROVED,
        BookingStatus.TRANSFERRED,
    }
)

IN_SETTLEMENT_STATUSES = frozenset(
    {
        BookingStatus.PAYMENT_SUBMITTED,
        BookingStatus.APPROVED,
    }
)

RENTED_BOOKING_STATUSES = frozenset(
    {
        BookingStatus.APPROVED,
        BookingStatus.TRANSFERRED,
    }
)


class AdminBookingBucket(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ALL = "all"


ADMIN_BUCKET_STATUSES = {
    AdminBookingBucket.PENDING: [BookingStatus.PAYMENT_SUBMITTED],
    AdminBookingBucket.APPROVED: [BookingStatus.APPROVED, BookingStatus.TRANSFERRED],
    AdminBookingBucket.REJECTED: [BookingStatus.REJECTED],
    AdminBookingBucket.ALL: None,
}


class PayoutBucket(str, Enum):
    TRANSFERRED = "transferred"
    APPROVED = "approved"
    ALL = "all"


PAYOUT_BUCKET_STATUSES = {
    PayoutBucket.TRANSFERRED: [BookingStatus.TRANSFERRED],
    PayoutBucket.APPROVED: [BookingStatus.APPROVED],
    PayoutBucket.ALL: [
        BookingStatus.APPROVED,
        BookingStatus.TRANSFERRED,
        BookingStatus.REJECTED,
        BookingStatus.CANCELLED,
    ],
}


class RentPaymentStatus(str, Enum):
    INITIATED = "initiated"
    PAYMENT_SUBMITTED = "payment_submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class VisitStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


OPEN_VISIT_STATUSES = frozenset({VisitStatus.PENDING, VisitStatus.ACCEPTED})


class ActorKind(str, Enum):
    USER = "user"
    SYSTEM = "system"


class HouseType(str, Enum):
    APARTMENT = "apartment"
    ROOM = "room"
    HOUSE = "house"


class Furnishing(str, Enum):
    UNFURNISHED = "unfurnished"
    SEMI = "semi"
    FULLY = "fully"
