import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException

from core.check_permission import CheckRolePermission
from core.date_helper import utcnow
from core.mapper import ORMMapper
from models.enums import OPEN_VISIT_STATUSES, VisitStatus
from models.models import User, VisitRequest, VisitRequestStatusHistory
from repos.house_repo import HouseRepo
from repos.status_history import record_transition
from repos.visit_repo import VisitRepo
from schemas.schema import VisitAcceptIn, VisitCreateIn, VisitOut

logger = logging.getLogger(__name__)

MIN_SLOT = timedelta(minutes=15)
MAX_SLOT = timedelta(hours=4)
MIN_NOTICE = timedelta(minutes=30)


def resolve_slot(
    start: Optional[datetime],
    end: Optional[datetime],
    visit_at: Optional[datetime] = None,
    duration_mins: int = 30,
) -> tuple[datetime, datetime]:
    start = start or visit_at
    if start is None:
        raise HTTPException(status_code=400, detail="Visit start time is required")
    end = end or start + timedelta(minutes=duration_mins)
    return start, end


def validate_slot(start: datetime, end: datetime, now: datetime):
    length = end - start
    if length < MIN_SLOT or length > MAX_SLOT:
        raise HTTPException(
            status_code=400,
            detail="Visit slot must be between 15 minutes and 4 hours",
        )
    if start < now + MIN_NOTICE:
        raise HTTPException(
            status_code=400,
            detail="Visit must start at least 30 minutes from now",
        )


class VisitService:
    def __init__(self, db):
        self.db = db
        self.repo: VisitRepo = VisitRepo(db)
        self.house_repo: HouseRepo = HouseRepo(db)
        self.permission: CheckRolePermission = CheckRolePermission()

    async def _visit(self, visit_id: uuid.UUID) -> VisitRequest:
        visit = await self.repo.get_for_update(visit_id)
        if not visit:
            raise HTTPException(status_code=404, detail="Visit request not found")
        return visit

    def _require(self, visit: VisitRequest, allowed: frozenset, action: str):
        if visit.status not in allowed:
            required = sorted(s.value for s in allowed)
            raise HTTPException(
                status_code=400,
                detail={
                    "message": f"Only {' or '.join(required)} visits can be {action}. "
                    f"Current status: {visit.status.value}",
                    "status": visit.status.value,
                    "required_status": required[0] if len(required) == 1 else required,
                },
            )

    async def _move(
        self, visit: VisitRequest, to_status: VisitStatus, actor: User, note: str
    ) -> dict:
        now = utcnow()
        visit.updated_at = now
        record_transition(
            visit,
            VisitRequestStatusHistory,
            to_status,
            actor_id=actor.id,
            note=note,
            now=now,
        )
        await self.repo.db_commit()
        logger.info(f"Visit {visit.id} {to_status.value} by {actor.id}")
        return ORMMapper.one(visit, VisitOut).model_dump(mode="json")

    async def create(self, current_user: User, data: VisitCreateIn) -> dict:
        await self.permission.check_tenant(current_user)
        house = await self.house_repo.get_by_id(data.house_id)
        if not house:
            raise HTTPException(status_code=404, detail="House not found")
        if house.is_rented:
            raise HTTPException(status_code=400, detail="This house is already rented")

        now = utcnow()
        start, end = resolve_slot(data.start, data.end, data.visit_at, data.duration_mins)
        validate_slot(start, end, now)

        existing = await self.repo.find_open(current_user.id, house.id)
        if existing:
            raise HTTPException(
                status_code=400,
                detail={
                    "message": "You already have an open visit request for this house.",
                    "visit_id": str(existing.id),
                    "status": existing.status.value,
                },
            )

        visit = VisitRequest(
            house_id=house.id,
            landlord_id=house.landlord_id,
            tenant_id=current_user.id,
            requested_start=start,
            requested_end=end,
            tenant_message=data.message.strip(),
            created_at=now,
            updated_at=now,
        )
        record_transition(
            visit,
            VisitRequestStatusHistory,
            VisitStatus.PENDING,
            actor_id=current_user.id,
            note="Visit requested",
            now=now,
        )
        await self.repo.add(visit)
        await self.repo.db_commit()
        logger.info(f"Visit {visit.id} requested for house {house.id}")
        return ORMMapper.one(visit, VisitOut).model_dump(mode="json")

    async def my_visits(self, current_user: User) -> list:
        await self.permission.check_tenant(current_user)
        return ORMMapper.dump_many(
            await self.repo.list_for_tenant(current_user.id), VisitOut
        )

    async def landlord_visits(self, current_user: User) -> list:
        await self.permission.check_landlord(current_user)
        return ORMMapper.dump_many(
            await self.repo.list_for_landlord(current_user.id), VisitOut
        )

    async def cancel(self, current_user: User, visit_id: uuid.UUID, note: str = ""):
        visit = await self._visit(visit_id)
        if visit.tenant_id != current_user.id:
            raise HTTPException(status_code=403, detail="Not your visit request")
        self._require(visit, OPEN_VISIT_STATUSES, "cancelled")
        return await self._move(
            visit, VisitStatus.CANCELLED, current_user, note or "Cancelled by tenant"
        )

    async def _landlord_visit(self, current_user: User, visit_id: uuid.UUID):
        await self.permission.check_landlord(current_user)
        visit = await self._visit(visit_id)
        if visit.landlord_id != current_user.id:
            raise HTTPException(status_code=403, detail="Not your house")
        return visit

    async def accept(self, current_user: User, visit_id: uuid.UUID, data: VisitAcceptIn):
        visit = await self._landlord_visit(current_user, visit_id)
        self._require(visit, frozenset({VisitStatus.PENDING}), "accepted")

        if data.start is not None:
            validate_slot(data.start, data.end, utcnow())
            visit.final_start, visit.final_end = data.start, data.end
        else:
            visit.final_start, visit.final_end = visit.requested_start, visit.requested_end
        visit.landlord_note = data.note.strip()
        return await self._move(
            visit, VisitStatus.ACCEPTED, current_user, data.note or "Visit accepted"
        )

    async def reject(self, current_user: User, visit_id: uuid.UUID, note: str = ""):
        visit = await self._landlord_visit(current_user, visit_id)
        self._require(visit, frozenset({VisitStatus.PENDING}), "rejected")
        visit.landlord_note = note or ""
        return await self._move(
            visit, VisitStatus.REJECTED, current_user, note or "Visit rejected"
        )

    async def complete(self, current_user: User, visit_id: uuid.UUID, note: str = ""):
        visit = await self._landlord_visit(current_user, visit_id)
        self._require(visit, frozenset({VisitStatus.ACCEPTED}), "completed")
        return await self._move(
            visit, VisitStatus.COMPLETED, current_user, note or "Visit completed"
        )
