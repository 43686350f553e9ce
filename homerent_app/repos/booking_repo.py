import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from models.enums import (
    HOLD_STATUSES,
    HOUSE_BLOCKING_STATUSES,
    TENANT_ACTIVE_STATUSES,
    BookingStatus,
)
from models.models import Booking, House, User


class BookingRepo:
    def __init__(self, db):
        self.db = db

    def _with_parties(self, stmt):
        return stmt.options(
            selectinload(Booking.house).selectinload(House.landlord),
            selectinload(Booking.tenant),
            selectinload(Booking.landlord),
        )

    async def add(self, booking: Booking) -> Booking:
        self.db.add(booking)
        await self.db.flush()
        return booking

    async def get_by_id(self, booking_id: uuid.UUID) -> Booking | None:
        result = await self.db.execute(
            self._with_parties(select(Booking).where(Booking.id == booking_id))
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, booking_id: uuid.UUID) -> Booking | None:
        stmt = (
            self._with_parties(select(Booking).where(Booking.id == booking_id))
            .with_for_update(of=Booking)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def lock_tenant(self, tenant_id: uuid.UUID) -> None:
        await self.db.execute(
            select(User.id).where(User.id == tenant_id).with_for_update()
        )

    async def find_tenant_active_with_landlord(
        self,
        tenant_id: uuid.UUID,
        landlord_id: uuid.UUID,
    ) -> Booking | None:
        stmt = (
            select(Booking)
            .where(
                Booking.tenant_id == tenant_id,
                Booking.landlord_id == landlord_id,
                Booking.status.in_(list(TENANT_ACTIVE_STATUSES)),
            )
            .order_by(Booking.created_at.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_blocking_for_house(
        self,
        house_id: uuid.UUID,
        exclude_booking_id: Optional[uuid.UUID] = None,
        statuses: Iterable[BookingStatus] = HOUSE_BLOCKING_STATUSES,
    ) -> Booking | None:
        stmt = select(Booking).where(
            Booking.house_id == house_id,
            Booking.status.in_(list(statuses)),
        )
        if exclude_booking_id is not None:
            stmt = stmt.where(Booking.id != exclude_booking_id)
        result = await self.db.execute(
            stmt.order_by(Booking.created_at.desc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def list_stale_holds(
        self,
        cutoff: datetime,
        *,
        house_id: Optional[uuid.UUID] = None,
        tenant_id: Optional[uuid.UUID] = None,
        limit: Optional[int] = None,
    ) -> List[Booking]:
        stmt = select(Booking).where(
            Booking.status.in_(list(HOLD_STATUSES)),
            Booking.created_at < cutoff,
        )
        if house_id is not None and tenant_id is not None:
            stmt = stmt.where(
                (Booking.house_id == house_id) | (Booking.tenant_id == tenant_id)
            )
        elif house_id is not None:
            stmt = stmt.where(Booking.house_id == house_id)
        elif tenant_id is not None:
            stmt = stmt.where(Booking.tenant_id == tenant_id)
        stmt = stmt.order_by(Booking.created_at)
        if limit:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_for_tenant(
        self,
        tenant_id: uuid.UUID,
        statuses: Optional[Iterable[BookingStatus]] = None,
    ) -> List[Booking]:
        stmt = select(Booking).where(Booking.tenant_id == tenant_id)
        if statuses is not None:
            stmt = stmt.where(Booking.status.in_(list(statuses)))
        stmt = self._with_parties(stmt.order_by(Booking.created_at.desc())).execution_options(
            populate_existing=True
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_for_landlord(
        self,
        landlord_id: uuid.UUID,
        statuses: Iterable[BookingStatus],
    ) -> List[Booking]:
        stmt = self._with_parties(
            select(Booking)
            .where(
                Booking.landlord_id == landlord_id,
                Booking.status.in_(list(statuses)),
            )
            .order_by(Booking.payout_at.desc(), Booking.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_by_statuses(
        self,
        statuses: Optional[Iterable[BookingStatus]],
        page: int = 1,
        per_page: int = 20,
    ) -> List[Booking]:
        stmt = select(Booking)
        if statuses is not None:
            stmt = stmt.where(Booking.status.in_(list(statuses)))
        stmt = (
            self._with_parties(stmt.order_by(Booking.created_at.desc()))
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def db_commit(self):
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
