import logging
import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from core.date_helper import utcnow
from models.enums import HouseStatus
from models.models import Booking, House

logger = logging.getLogger(__name__)


class HouseRepo:
    def __init__(self, db):
        self.db = db

    async def get_by_id(self, house_id: uuid.UUID) -> House | None:
        result = await self.db.execute(
            select(House)
            .where(House.id == house_id)
            .options(selectinload(House.landlord))
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, house_id: uuid.UUID) -> House | None:
        result = await self.db.execute(
            select(House)
            .where(House.id == house_id)
            .options(selectinload(House.landlord))
            .with_for_update(of=House)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    def is_held_by_other(self, house: House, booking: Booking) -> bool:
        return house.is_rented and house.current_booking_id != booking.id

    def assign_to_tenant(
        self, house: House, booking: Booking, now: datetime | None = None
    ) -> bool:
        """Mark ``house`` rented by the booking's tenant.

        Returns ``False`` without touching the row when the house is already
        rented, either through this booking (repeat approve/transfer) or
        through another one, which is never overwritten.
        """
        if house.is_rented:
            if house.current_booking_id != booking.id:
                logger.warning(
                    f"House {house.id} already rented through booking "
                    f"{house.current_booking_id}; not assigning booking {booking.id}"
                )
            return False

        house.status = HouseStatus.RENTED
        house.current_tenant_id = booking.tenant_id
        house.current_booking_id = booking.id
        house.rented_at = now or utcnow()
        return True

    def release(self, house: House, booking: Booking) -> bool:
        """Vacate ``house`` if it is currently rented through ``booking``."""
        if house.current_booking_id != booking.id:
            return False
        house.status = HouseStatus.AVAILABLE
        house.current_tenant_id = None
        house.current_booking_id = None
        house.rented_at = None
        return True
