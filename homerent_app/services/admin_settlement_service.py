import logging
import uuid

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError

from core.check_permission import CheckRolePermission
from core.date_helper import utcnow
from core.house_lock import house_locks
from core.mapper import ORMMapper
from core.paginate import PaginatePage
from core.validate_enum import normalize_booking_status, validate_enum
from fire_and_forget.booking_notify import BookingNotifier
from models.enums import (
    ADMIN_BUCKET_STATUSES,
    PAYOUT_BUCKET_STATUSES,
    AdminBookingBucket,
    BookingStatus,
    PayoutBucket,
)
from models.models import Booking, BookingStatusHistory, User
from repos.booking_repo import BookingRepo
from repos.house_repo import HouseRepo
from repos.status_history import record_transition
from schemas.schema import BookingDetailOut

from .booking_policy import (
    APPROVE_FROM,
    REJECT_FROM,
    TRANSFER_FROM,
    booking_payout_note,
    build_upi_link,
    effective_status,
    transition_conflict,
)

logger = logging.getLogger(__name__)


class AdminSettlementService:
    def __init__(self, db, notifier: BookingNotifier | None = None):
        self.db = db
        self.repo: BookingRepo = BookingRepo(db)
        self.house_repo: HouseRepo = HouseRepo(db)
        self.permission: CheckRolePermission = CheckRolePermission()
        self.notifier: BookingNotifier = notifier or BookingNotifier()
        self.pager: PaginatePage = PaginatePage()

    def _bucket_statuses(self, value: str | None):
        raw = (value or AdminBookingBucket.PENDING.value).strip().lower()
        try:
            bucket = AdminBookingBucket(raw)
        except ValueError:
            try:
                return [normalize_booking_status(raw)]
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
        return ADMIN_BUCKET_STATUSES[bucket]

    async def _locked_booking(self, booking_id: uuid.UUID) -> Booking:
        booking = await self.repo.get_for_update(booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    async def _house_id_of(self, booking_id: uuid.UUID) -> uuid.UUID:
        booking = await self.repo.get_by_id(booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking.house_id

    def _guard(self, booking: Booking, allowed: frozenset, action: str):
        conflict = transition_conflict(booking.status, allowed, action)
        if conflict:
            raise HTTPException(status_code=400, detail=conflict)

    async def list_bookings(
        self, current_user: User, status: str | None, page: int = 1, per_page: int = 20
    ) -> dict:
        await self.permission.check_admin(current_user)
        statuses = self._bucket_statuses(status)
        page, per_page = self.pager.clamp(page, per_page)

        # Stale holds are reported as expired here; the periodic sweep persists them.
        now = utcnow()
        bookings = await self.repo.list_by_statuses(statuses, page, per_page)
        items = ORMMapper.many(bookings, BookingDetailOut)
        for item, booking in zip(items, bookings):
            item.status = effective_status(booking.status, booking.created_at, now)
        return self.pager.envelope(items, page, per_page)

    async def approve(
        self, current_user: User, booking_id: uuid.UUID, note: str = ""
    ) -> dict:
        await self.permission.check_admin(current_user)
        house_id = await self._house_id_of(booking_id)

        async with house_locks.hold(house_id):
            now = utcnow()
            booking = await self._locked_booking(booking_id)
            self._guard(booking, APPROVE_FROM, "approved")

            house = await self.house_repo.get_for_update(booking.house_id)
            if house and self.house_repo.is_held_by_other(house, booking):
                raise HTTPException(
                    status_code=409,
                    detail={
                        "message": "House is already rented through another booking.",
                        "status": booking.status.value,
                    },
                )

            booking.approved_by_id = current_user.id
            booking.approved_at = now
            booking.admin_note = note or ""
            booking.updated_at = now
            record_transition(
                booking,
                BookingStatusHistory,
                BookingStatus.APPROVED,
                actor_id=current_user.id,
                note=note or "Payment verified",
                now=now,
            )
            if house:
                self.house_repo.assign_to_tenant(house, booking, now)

            try:
                await self.repo.db_commit()
            except IntegrityError:
                raise HTTPException(
                    status_code=409,
                    detail="Another booking for this house is already in settlement.",
                )

        logger.info(f"Booking {booking.id} approved by {current_user.id}")
        await self.notifier.booking_approved(booking)
        return {"booking_id": str(booking.id), "status": booking.status.value}

    async def reject(
        self, current_user: User, booking_id: uuid.UUID, note: str = ""
    ) -> dict:
        await self.permission.check_admin(current_user)
        house_id = await self._house_id_of(booking_id)

        async with house_locks.hold(house_id):
            now = utcnow()
            booking = await self._locked_booking(booking_id)
            self._guard(booking, REJECT_FROM, "rejected")

            booking.rejected_by_id = current_user.id
            booking.rejected_at = now
            booking.admin_note = note or ""
            booking.updated_at = now
            record_transition(
                booking,
                BookingStatusHistory,
                BookingStatus.REJECTED,
                actor_id=current_user.id,
                note=note or "Payment could not be verified",
                now=now,
            )
            await self.repo.db_commit()

        logger.info(f"Booking {booking.id} rejected by {current_user.id}")
        await self.notifier.booking_rejected(booking)
        return {"booking_id": str(booking.id), "status": booking.status.value}

    async def upi_intent(self, current_user: User, booking_id: uuid.UUID) -> dict:
        await self.permission.check_admin(current_user)
        booking = await self.repo.get_by_id(booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        self._guard(booking, TRANSFER_FROM, "paid out")

        landlord = booking.landlord
        if not landlord or not (landlord.upi_id or "").strip():
            raise HTTPException(status_code=400, detail="Landlord UPI ID not set")
        if int(booking.amount or 0) <= 0:
            raise HTTPException(status_code=400, detail="Invalid booking amount")

        note = booking_payout_note(booking.id)
        intent = build_upi_link(
            payee_vpa=landlord.upi_id.strip(),
            payee_name=landlord.name,
            amount=booking.amount,
            note=note,
        )
        return {
            "intent": intent,
            "booking_id": str(booking.id),
            "amount": booking.amount,
            "payee": {"name": landlord.name, "upi_id": landlord.upi_id.strip()},
            "note": note,
        }

    async def mark_transferred(
        self, current_user: User, booking_id: uuid.UUID, payout_txn_id: str
    ) -> dict:
        await self.permission.check_admin(current_user)
        payout_txn_id = (payout_txn_id or "").strip()
        if not payout_txn_id:
            raise HTTPException(
                status_code=400, detail="Payout transaction reference is required"
            )
        house_id = await self._house_id_of(booking_id)

        async with house_locks.hold(house_id):
            now = utcnow()
            booking = await self._locked_booking(booking_id)
            self._guard(booking, TRANSFER_FROM, "marked transferred")

            booking.payout_txn_id = payout_txn_id
            booking.payout_at = now
            booking.updated_at = now
            record_transition(
                booking,
                BookingStatusHistory,
                BookingStatus.TRANSFERRED,
                actor_id=current_user.id,
                note=f"Payout transferred with UTR {payout_txn_id}",
                now=now,
            )

            house = await self.house_repo.get_for_update(booking.house_id)
            if house and self.house_repo.assign_to_tenant(house, booking, now):
                logger.warning(
                    f"House {house.id} was not assigned at approval; "
                    f"assigned on transfer of booking {booking.id}"
                )
            await self.repo.db_commit()

        logger.info(
            f"Booking {booking.id} payout {payout_txn_id} marked by {current_user.id}"
        )
        await self.notifier.payout_transferred(booking)
        return {"booking_id": str(booking.id), "status": booking.status.value}

    async def landlord_payouts(self, current_user: User, status: str | None) -> list:
        await self.permission.check_landlord(current_user)
        try:
            bucket = validate_enum(
                status or PayoutBucket.TRANSFERRED.value, PayoutBucket, field="status"
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        bookings = await self.repo.list_for_landlord(
            current_user.id, PAYOUT_BUCKET_STATUSES[bucket]
        )
        return [
            {
                "booking_id": str(b.id),
                "status": b.status.value,
                "amount": b.amount,
                "payout_txn_id": b.payout_txn_id,
                "payout_at": b.payout_at.isoformat() if b.payout_at else None,
                "house": {"id": str(b.house.id), "title": b.house.title},
                "tenant": {"id": str(b.tenant.id), "name": b.tenant.name},
            }
            for b in bookings
        ]
