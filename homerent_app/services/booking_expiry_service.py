import logging
import uuid
from datetime import datetime
from typing import Iterable, Optional

from core.date_helper import utcnow
from models.enums import BookingStatus
from models.models import Booking, BookingStatusHistory
from repos.booking_repo import BookingRepo
from repos.status_history import record_transition

from .booking_policy import HOLD_DURATION, HOLD_EXPIRED_NOTE, is_hold_expired

logger = logging.getLogger(__name__)


class BookingExpiryService:
    def __init__(self, db):
        self.db = db
        self.repo: BookingRepo = BookingRepo(db)

    def expire_if_stale(self, booking: Booking, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        if not is_hold_expired(booking.status, booking.created_at, now):
            return False
        record_transition(
            booking,
            BookingStatusHistory,
            BookingStatus.EXPIRED,
            actor_id=None,
            note=HOLD_EXPIRED_NOTE,
            now=now,
        )
        booking.updated_at = now
        logger.info(f"Booking {booking.id} expired (hold elapsed)")
        return True

    def _expire_all(self, bookings: Iterable[Booking], now: datetime) -> int:
        return sum(1 for b in bookings if self.expire_if_stale(b, now))

    async def expire_stale_for(
        self,
        *,
        house_id: Optional[uuid.UUID] = None,
        tenant_id: Optional[uuid.UUID] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Expire stale holds touching a house and/or tenant.

        Flushes only; the caller commits together with its own change.
        """
        if house_id is None and tenant_id is None:
            raise ValueError("expire_stale_for needs a house_id or tenant_id")
        now = now or utcnow()
        stale = await self.repo.list_stale_holds(
            now - HOLD_DURATION, house_id=house_id, tenant_id=tenant_id
        )
        count = self._expire_all(stale, now)
        if count:
            await self.db.flush()
        return count

    async def expire_stale_holds(
        self, now: Optional[datetime] = None, batch_size: int = 500
    ) -> int:
        """Periodic sweep. Safe to re-run: already expired rows are skipped."""
        now = now or utcnow()
        total = 0
        while True:
            stale = await self.repo.list_stale_holds(
                now - HOLD_DURATION, limit=batch_size
            )
            count = self._expire_all(stale, now)
            if not count:
                break
            await self.repo.db_commit()
            total += count
            if len(stale) < batch_size:
                break

        if total:
            logger.info(f"Expired {total} stale booking hold(s)")
        return total
