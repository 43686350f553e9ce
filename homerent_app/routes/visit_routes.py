import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from models.models import User
from schemas.schema import NoteIn, VisitAcceptIn, VisitCreateIn
from services.visit_service import VisitService

router = APIRouter(tags=["Visit Requests"])


# Mounted at the bare prefix, so it cannot live on the cbv class.
@router.post("", status_code=201)
@safe_handler
async def create_visit(
    payload: VisitCreateIn,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_async),
):
    return await VisitService(db).create(current_user, payload)


@cbv(router=router)
class VisitRoutes:
    db: AsyncSession = Depends(get_db_async)
    current_user: User = Depends(get_current_user)

    @router.get("/my")
    @safe_handler
    async def my_visits(self):
        return await VisitService(self.db).my_visits(self.current_user)

    @router.get("/landlord")
    @safe_handler
    async def landlord_visits(self):
        return await VisitService(self.db).landlord_visits(self.current_user)

    @router.put("/{visit_id}/cancel")
    @safe_handler
    async def cancel(self, visit_id: uuid.UUID, payload: Optional[NoteIn] = None):
        return await VisitService(self.db).cancel(
            self.current_user, visit_id, note=payload.note if payload else ""
        )

    @router.put("/{visit_id}/accept")
    @safe_handler
    async def accept(self, visit_id: uuid.UUID, payload: Optional[VisitAcceptIn] = None):
        return await VisitService(self.db).accept(
            self.current_user, visit_id, payload or VisitAcceptIn()
        )

    @router.put("/{visit_id}/reject")
    @safe_handler
    async def reject(self, visit_id: uuid.UUID, payload: Optional[NoteIn] = None):
        return await VisitService(self.db).reject(
            self.current_user, visit_id, note=payload.note if payload else ""
        )

    @router.put("/{visit_id}/complete")
    @safe_handler
    async def complete(self, visit_id: uuid.UUID, payload: Optional[NoteIn] = None):
        return await VisitService(self.db).complete(
            self.current_user, visit_id, note=payload.note if payload else ""
        )
