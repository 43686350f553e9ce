import asyncio
import logging

from sqlalchemy.exc import OperationalError

from core.get_db import AsyncSessionLocal
from services.booking_expiry_service import BookingExpiryService

logger = logging.getLogger(__name__)


def create_booking_hold_expiry_task(app):
    class BookingHoldExpiryTask(app.Task):
        name = "expire_stale_booking_holds"

        autoretry_for = (OperationalError, ConnectionError)
        retry_backoff = True
        retry_jitter = True
        max_retries = 3
        default_retry_delay = 10

        def _run_async(self, coro):
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
            try:
                return loop.run_until_complete(coro)
            finally:
                loop.close()

        def run(self):
            async def _runner():
                async with AsyncSessionLocal() as session:
                    return await BookingExpiryService(session).expire_stale_holds()

            expired = self._run_async(_runner())
            logger.info(f"Booking hold sweep expired {expired} booking(s)")
            return expired

    return BookingHoldExpiryTask
