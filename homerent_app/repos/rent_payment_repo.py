import uuid
from typing import List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from models.enums import RentPaymentStatus
from models.models import House, RentPayment, User


class RentPaymentRepo:
    def __init__(self, db):
        self.db = db

    async def add(self, payment: RentPayment) -> RentPayment:
        self.db.add(payment)
        await self.db.flush()
        return payment

    async def get_for_update(self, payment_id: uuid.UUID) -> Optional[RentPayment]:
        result = await self.db.execute(
            select(RentPayment)
            .where(RentPayment.id == payment_id)
            .options(
                selectinload(RentPayment.house).selectinload(House.landlord),
                selectinload(RentPayment.tenant),
            )
            .with_for_update(of=RentPayment)
        )
        return result.scalar_one_or_none()

    async def find_for_period(
        self, house_id: uuid.UUID, tenant_id: uuid.UUID, period: str
    ) -> Optional[RentPayment]:
        result = await self.db.execute(
            select(RentPayment).where(
                RentPayment.house_id == house_id,
                RentPayment.tenant_id == tenant_id,
                RentPayment.period == period,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_tenant_house(
        self, tenant_id: uuid.UUID, house_id: uuid.UUID
    ) -> List[RentPayment]:
        result = await self.db.execute(
            select(RentPayment)
            .where(
                RentPayment.tenant_id == tenant_id,
                RentPayment.house_id == house_id,
            )
            .order_by(RentPayment.period.desc())
        )
        return list(result.scalars().all())

    async def list_for_landlord(
        self,
        landlord_id: uuid.UUID,
        *,
        status: Optional[RentPaymentStatus] = None,
        tenant_id: Optional[uuid.UUID] = None,
    ) -> List[RentPayment]:
        stmt = (
            select(RentPayment)
            .where(RentPayment.landlord_id == landlord_id)
            .options(selectinload(RentPayment.house), selectinload(RentPayment.tenant))
        )
        if status is not None:
            stmt = stmt.where(RentPayment.status == status)
        if tenant_id is not None:
            stmt = stmt.where(RentPayment.tenant_id == tenant_id)
        result = await self.db.execute(
            stmt.order_by(RentPayment.updated_at.desc(), RentPayment.period.desc())
        )
        return list(result.scalars().all())

    async def landlord_folders(self, landlord_id: uuid.UUID) -> list[dict]:
        """One row per tenant: payment count, approved total, pending count and
        last activity."""
        approved_total = func.sum(
            case(
                (RentPayment.status == RentPaymentStatus.APPROVED, RentPayment.amount),
                else_=0,
            )
        )
        pending_count = func.sum(
            case(
                (RentPayment.status == RentPaymentStatus.PAYMENT_SUBMITTED, 1),
                else_=0,
            )
        )
        last_activity = func.max(RentPayment.updated_at)
        stmt = (
            select(
                RentPayment.tenant_id,
                User.name,
                User.email,
                func.count(RentPayment.id),
                approved_total,
                pending_count,
                last_activity,
            )
            .join(User, User.id == RentPayment.tenant_id)
            .where(RentPayment.landlord_id == landlord_id)
            .group_by(RentPayment.tenant_id, User.name, User.email)
            .order_by(last_activity.desc())
        )
        result = await self.db.execute(stmt)
        return [
            {
                "tenant_id": row[0],
                "tenant_name": row[1],
                "tenant_email": row[2],
                "payments": int(row[3] or 0),
                "approved_total": int(row[4] or 0),
                "pending": int(row[5] or 0),
                "last_activity": row[6],
            }
            for row in result.all()
        ]

    async def db_commit(self):
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
