from enum import Enum as PyEnum
from typing import Type

from sqlalchemy import Enum, String
from sqlalchemy.types import TypeDecorator

from core.validate_enum import normalize_booking_status

from .enums import BookingStatus


def value_enum(enum_cls: Type[PyEnum]) -> Enum:
    """Non-native enum column that stores member values, not names."""
    return Enum(
        enum_cls,
        native_enum=False,
        values_callable=lambda members: [m.value for m in members],
        length=32,
        validate_strings=True,
    )


class BookingStatusType(TypeDecorator):
    """Booking status column that folds legacy values into the canonical set on
    both write and read, so rows written by older clients load as current states.
    """

    impl = String(32)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return normalize_booking_status(value).value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return normalize_booking_status(value)

    @property
    def python_type(self):
        return BookingStatus
