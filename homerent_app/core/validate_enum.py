from enum import Enum
from typing import Type, TypeVar

from models.enums import LEGACY_BOOKING_STATUSES, BookingStatus

E = TypeVar("E", bound=Enum)


def validate_enum(
    value: str | Enum,
    enum_cls: Type[E],
    *,
    field: str,
) -> E:
    if isinstance(value, enum_cls):
        return value

    if isinstance(value, str):
        cleaned = value.strip()
        try:
            return enum_cls(cleaned)
        except ValueError:
            pass

        try:
            return enum_cls(cleaned.lower())
        except ValueError:
            pass

        try:
            return enum_cls[cleaned.upper()]
        except KeyError:
            pass

    allowed = ", ".join(e.value for e in enum_cls)
    raise ValueError(f"Invalid {field}: {value}. Allowed values: {allowed}")


def normalize_booking_status(value: str | BookingStatus) -> BookingStatus:
    if isinstance(value, BookingStatus):
        return value
    if isinstance(value, str):
        legacy = LEGACY_BOOKING_STATUSES.get(value.strip().lower())
        if legacy is not None:
            return legacy
    return validate_enum(value, BookingStatus, field="booking status")
