import logging
import uuid
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError

from core.check_permission import CheckRolePermission
from core.date_helper import utcnow
from core.house_lock import house_locks, tenant_locks
from core.mapper import ORMMapper
from core.settings import settings
from models.enums import (
    IN_SETTLEMENT_STATUSES,
    RENTED_BOOKING_STATUSES,
    BookingStatus,
    UserRole,
)
from models.models import Booking, BookingStatusHistory, User
from repos.booking_repo import BookingRepo
from repos.house_repo import HouseRepo
from repos.status_history import record_transition
from schemas.schema import BookingDetailOut, HouseSummaryOut

from .booking_expiry_service import BookingExpiryService
from .booking_policy import (
    HOLD_CREATED_NOTE,
    HOLD_DURATION,
    SUBMIT_PAYMENT_FROM,
    booking_payment_note,
    build_upi_link,
    can_cancel,
    hold_expires_at,
    transition_conflict,
)

logger = logging.getLogger(__name__)

SETTLEMENT_CONFLICT = {
    "message": "Another booking for this house is already being processed.",
    "can_cancel": False,
}


class BookingService:
    def __init__(self, db):
        self.db = db
        self.repo: BookingRepo = BookingRepo(db)
        self.house_repo: HouseRepo = HouseRepo(db)
        self.expiry: BookingExpiryService = BookingExpiryService(db)
        self.permission: CheckRolePermission = CheckRolePermission()

    # ---------- helpers ----------

    def _contention(self, existing: Booking, tenant_id: uuid.UUID, message: str):
        """400 with the id for the caller's own booking, 409 without it otherwise."""
        if existing.tenant_id == tenant_id:
            raise HTTPException(
                status_code=400,
                detail={
                    "message": message,
                    "booking_id": str(existing.id),
                    "status": existing.status.value,
                    "can_cancel": can_cancel(existing.status),
                },
            )
        raise HTTPException(
            status_code=409,
            detail={
                "message": "This house is already booked by another tenant.",
                "status": existing.status.value,
                "can_cancel": False,
            },
        )

    async def _get_booking(self, booking_id: uuid.UUID) -> Booking:
        booking = await self.repo.get_by_id(booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    def _ensure_owner(self, booking: Booking, current_user: User):
        if booking.tenant_id != current_user.id:
            raise HTTPException(
                status_code=403, detail="You can only manage your own bookings"
            )

    def _ensure_party(self, booking: Booking, current_user: User):
        if current_user.role == UserRole.ADMIN:
            return
        if current_user.id not in (booking.tenant_id, booking.landlord_id):
            raise HTTPException(
                status_code=403, detail="You are not allowed to view this booking"
            )

    async def _expire_and_commit(self, booking: Booking, now: datetime) -> bool:
        if self.expiry.expire_if_stale(booking, now):
            await self.repo.db_commit()
            return True
        return False

    async def _commit_settlement(self, booking: Booking):
        # Rollback expires the instance, so read ids first.
        booking_id, house_id = booking.id, booking.house_id
        try:
            await self.repo.db_commit()
        except IntegrityError:
            logger.warning(
                f"In-settlement uniqueness rejected booking {booking_id} "
                f"for house {house_id}"
            )
            raise HTTPException(status_code=409, detail=SETTLEMENT_CONFLICT)

    # ---------- tenant operations ----------

    async def initiate(self, current_user: User, house_id: uuid.UUID) -> dict:
        await self.permission.check_tenant(current_user)

        house = await self.house_repo.get_by_id(house_id)
        if not house:
            raise HTTPException(status_code=404, detail="House not found")

        amount = int(house.booking_amount or 0)
        if amount <= 0:
            raise HTTPException(status_code=400, detail="Booking amount not set")

        landlord = house.landlord
        if not landlord:
            raise HTTPException(status_code=404, detail="Landlord not found")
        if landlord.role != UserRole.LANDLORD:
            raise HTTPException(
                status_code=400, detail="House owner is not a landlord account"
            )

        if not settings.PLATFORM_UPI_ID:
            logger.error("PLATFORM_UPI_ID is not set; cannot build booking links")
            raise HTTPException(
                status_code=500, detail="Platform UPI is not configured"
            )

        async with tenant_locks.hold(current_user.id), house_locks.hold(house.id):
            now = utcnow()
            await self.repo.lock_tenant(current_user.id)
            house = await self.house_repo.get_for_update(house.id)

            await self.expiry.expire_stale_for(
                house_id=house.id, tenant_id=current_user.id, now=now
            )

            if house.is_rented:
                await self.repo.db_commit()
                raise HTTPException(
                    status_code=409,
                    detail={
                        "message": "This house is already rented.",
                        "status": house.status.value,
                        "can_cancel": False,
                    },
                )

            own = await self.repo.find_tenant_active_with_landlord(
                current_user.id, landlord.id
            )
            if own:
                await self.repo.db_commit()
                self._contention(
                    own,
                    current_user.id,
                    "You already have an active booking with this landlord.",
                )

            blocking = await self.repo.find_blocking_for_house(house.id)
            if blocking:
                await self.repo.db_commit()
                self._contention(
                    blocking,
                    current_user.id,
                    "You already have a booking in progress for this house.",
                )

            booking = Booking(
                house_id=house.id,
                landlord_id=landlord.id,
                tenant_id=current_user.id,
                amount=amount,
                created_at=now,
                updated_at=now,
            )
            record_transition(
                booking,
                BookingStatusHistory,
                BookingStatus.INITIATED,
                actor_id=current_user.id,
                note=HOLD_CREATED_NOTE,
                now=now,
            )
            await self.repo.add(booking)
            await self._commit_settlement(booking)

        logger.info(
            f"Booking {booking.id} initiated by tenant {current_user.id} "
            f"for house {house.id}"
        )

        upi_link = build_upi_link(
            payee_vpa=settings.PLATFORM_UPI_ID,
            payee_name=settings.PLATFORM_UPI_NAME,
            amount=amount,
            note=booking_payment_note(booking.id),
        )
        return {
            "booking_id": str(booking.id),
            "amount": amount,
            "currency": settings.CURRENCY,
            "upi_link": upi_link,
            "payee": {
                "name": settings.PLATFORM_UPI_NAME,
                "upi_id": settings.PLATFORM_UPI_ID,
            },
            "landlord": {
                "id": str(landlord.id),
                "name": landlord.name,
                "phone": landlord.phone,
                "email": landlord.email,
            },
            "hold_minutes": int(HOLD_DURATION.total_seconds() // 60),
            "expires_at": hold_expires_at(booking.created_at).isoformat(),
        }

    async def mark_paid(
        self,
        current_user: User,
        booking_id: uuid.UUID,
        utr: str,
        proof_url: Optional[str] = None,
    ) -> dict:
        utr = (utr or "").strip()
        if not utr:
            raise HTTPException(status_code=400, detail="UTR is required")

        booking = await self._get_booking(booking_id)
        self._ensure_owner(booking, current_user)

        async with house_locks.hold(booking.house_id):
            now = utcnow()
            booking = await self.repo.get_for_update(booking.id)

            if booking.status == BookingStatus.TRANSFERRED:
                raise HTTPException(status_code=400, detail="Already transferred")

            if await self._expire_and_commit(booking, now):
                raise HTTPException(
                    status_code=400,
                    detail={
                        "message": "Booking hold has expired. Please start a new booking.",
                        "status": BookingStatus.EXPIRED.value,
                        "required_status": BookingStatus.INITIATED.value,
                    },
                )

            conflict = transition_conflict(
                booking.status, SUBMIT_PAYMENT_FROM, "marked paid"
            )
            if conflict:
                raise HTTPException(status_code=400, detail=conflict)

            house = await self.house_repo.get_for_update(booking.house_id)
            if house.is_rented:
                raise HTTPException(
                    status_code=409,
                    detail={
                        "message": "This house is already rented.",
                        "status": house.status.value,
                        "can_cancel": False,
                    },
                )

            other = await self.repo.find_blocking_for_house(
                booking.house_id,
                exclude_booking_id=booking.id,
                statuses=IN_SETTLEMENT_STATUSES,
            )
            if other:
                self._contention(
                    other,
                    current_user.id,
                    "You already have a booking in progress for this house.",
                )

            booking.tenant_utr = utr
            booking.payment_proof_url = proof_url
            booking.payment_submitted_at = now
            booking.updated_at = now
            record_transition(
                booking,
                BookingStatusHistory,
                BookingStatus.PAYMENT_SUBMITTED,
                actor_id=current_user.id,
                note=f"Payment submitted with UTR {utr}",
                now=now,
            )
            await self._commit_settlement(booking)

        logger.info(f"Booking {booking.id} payment submitted by {current_user.id}")
        return {"booking_id": str(booking.id), "status": booking.status.value}

    async def cancel(
        self, current_user: User, booking_id: uuid.UUID, note: str = ""
    ) -> dict:
        booking = await self._get_booking(booking_id)
        self._ensure_owner(booking, current_user)

        async with house_locks.hold(booking.house_id):
            now = utcnow()
            booking = await self.repo.get_for_update(booking.id)
            await self._expire_and_commit(booking, now)

            if not can_cancel(booking.status):
                raise HTTPException(
                    status_code=400,
                    detail={
                        "message": f"Cannot cancel booking in status: {booking.status.value}",
                        "status": booking.status.value,
                    },
                )

            was = booking.status
            booking.cancelled_at = now
            booking.cancel_note = note or ""
            booking.updated_at = now
            record_transition(
                booking,
                BookingStatusHistory,
                BookingStatus.CANCELLED,
                actor_id=current_user.id,
                note=note or "Cancelled by tenant",
                now=now,
            )

            if was in RENTED_BOOKING_STATUSES:
                house = await self.house_repo.get_for_update(booking.house_id)
                if house and self.house_repo.release(house, booking):
                    logger.info(
                        f"House {house.id} released by cancelled booking {booking.id}"
                    )

            await self.repo.db_commit()

        logger.info(f"Booking {booking.id} cancelled by tenant {current_user.id}")
        return {"booking_id": str(booking.id), "status": booking.status.value}

    # ---------- reads ----------

    async def status(self, current_user: User, booking_id: uuid.UUID) -> dict:
        booking = await self._get_booking(booking_id)
        self._ensure_party(booking, current_user)
        await self._expire_and_commit(booking, utcnow())
        return {"booking_id": str(booking.id), "status": booking.status.value}

    async def detail(self, current_user: User, booking_id: uuid.UUID) -> dict:
        booking = await self._get_booking(booking_id)
        self._ensure_party(booking, current_user)
        await self._expire_and_commit(booking, utcnow())
        data = ORMMapper.one(booking, BookingDetailOut).model_dump(mode="json")
        data["expires_at"] = (
            hold_expires_at(booking.created_at).isoformat()
            if booking.status == BookingStatus.INITIATED
            else None
        )
        return data

    async def my_bookings(self, current_user: User) -> list[dict]:
        await self.permission.check_tenant(current_user)
        if await self.expiry.expire_stale_for(tenant_id=current_user.id):
            await self.repo.db_commit()
        bookings = await self.repo.list_for_tenant(current_user.id)
        return ORMMapper.dump_many(bookings, BookingDetailOut)

    async def my_rents(self, current_user: User) -> list[dict]:
        await self.permission.check_tenant(current_user)
        bookings = await self.repo.list_for_tenant(
            current_user.id, statuses=RENTED_BOOKING_STATUSES
        )
        return [
            {
                "booking_id": str(b.id),
                "status": b.status.value,
                "amount": b.amount,
                "approved_at": b.approved_at.isoformat() if b.approved_at else None,
                "house": HouseSummaryOut.model_validate(b.house).model_dump(mode="json"),
                "landlord": {
                    "id": str(b.landlord.id),
                    "name": b.landlord.name,
                    "phone": b.landlord.phone,
                    "email": b.landlord.email,
                },
            }
            for b in bookings
        ]

    async def availability(self, house_id: uuid.UUID) -> dict:
        house = await self.house_repo.get_by_id(house_id)
        if not house:
            raise HTTPException(status_code=404, detail="House not found")

        if await self.expiry.expire_stale_for(house_id=house.id):
            await self.repo.db_commit()

        reason = None
        if house.is_rented:
            reason = "rented"
        elif await self.repo.find_blocking_for_house(house.id):
            reason = "booking_in_progress"

        return {
            "house_id": str(house.id),
            "available": reason is None,
            "reason": reason,
            "status": house.status.value,
        }
