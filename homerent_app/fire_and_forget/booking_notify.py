import logging

from email_notify.email_service import EmailService

logger = logging.getLogger(__name__)


class BookingNotifier:
    """Best-effort booking emails. Never raises: settlement state is already
    committed by the time these run."""

    def __init__(self, email_service: EmailService | None = None):
        self.email_service = email_service or EmailService()

    async def _deliver(self, label: str, booking, send, **kwargs):
        try:
            await send(**kwargs)
        except Exception as e:
            logger.error(f"Failed to send {label} email for booking {booking.id}: {e}")
            return False
        return True

    async def payout_transferred(self, booking) -> bool:
        landlord = booking.landlord
        if not landlord or not landlord.email:
            logger.warning(f"No landlord email for booking {booking.id}")
            return False
        return await self._deliver(
            "payout transferred",
            booking,
            self.email_service.send_payout_transferred,
            email=landlord.email,
            name=landlord.name,
            booking_id=booking.id,
            amount=booking.amount,
            payout_txn_id=booking.payout_txn_id or "",
        )

    async def booking_approved(self, booking) -> bool:
        tenant = booking.tenant
        if not tenant or not tenant.email:
            logger.warning(f"No tenant email for booking {booking.id}")
            return False
        return await self._deliver(
            "booking approved",
            booking,
            self.email_service.send_booking_approved,
            email=tenant.email,
            name=tenant.name,
            booking_id=booking.id,
            house_title=booking.house.title if booking.house else "",
            amount=booking.amount,
        )

    async def booking_rejected(self, booking) -> bool:
        tenant = booking.tenant
        if not tenant or not tenant.email:
            logger.warning(f"No tenant email for booking {booking.id}")
            return False
        return await self._deliver(
            "booking rejected",
            booking,
            self.email_service.send_booking_rejected,
            email=tenant.email,
            name=tenant.name,
            booking_id=booking.id,
            house_title=booking.house.title if booking.house else "",
            note=booking.admin_note or "",
        )
