import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from models.enums import OPEN_VISIT_STATUSES
from models.models import VisitRequest


class VisitRepo:
    def __init__(self, db):
        self.db = db

    async def add(self, visit: VisitRequest) -> VisitRequest:
        self.db.add(visit)
        await self.db.flush()
        return visit

    async def get_for_update(self, visit_id: uuid.UUID) -> Optional[VisitRequest]:
        result = await self.db.execute(
            select(VisitRequest)
            .where(VisitRequest.id == visit_id)
            .options(selectinload(VisitRequest.house))
            .with_for_update(of=VisitRequest)
        )
        return result.scalar_one_or_none()

    async def find_open(
        self, tenant_id: uuid.UUID, house_id: uuid.UUID
    ) -> Optional[VisitRequest]:
        result = await self.db.execute(
            select(VisitRequest)
            .where(
                VisitRequest.tenant_id == tenant_id,
                VisitRequest.house_id == house_id,
                VisitRequest.status.in_(list(OPEN_VISIT_STATUSES)),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_tenant(self, tenant_id: uuid.UUID) -> List[VisitRequest]:
        result = await self.db.execute(
            select(VisitRequest)
            .where(VisitRequest.tenant_id == tenant_id)
            .options(selectinload(VisitRequest.house))
            .order_by(VisitRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_for_landlord(self, landlord_id: uuid.UUID) -> List[VisitRequest]:
        result = await self.db.execute(
            select(VisitRequest)
            .where(VisitRequest.landlord_id == landlord_id)
            .options(selectinload(VisitRequest.house))
            .order_by(VisitRequest.requested_start)
        )
        return list(result.scalars().all())

    async def db_commit(self):
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
