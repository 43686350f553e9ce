import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from models.models import User
from schemas.schema import BookingInitiateIn, MarkPaidIn, NoteIn
from services.booking_service import BookingService

router = APIRouter(tags=["Bookings"])


@cbv(router=router)
class BookingRoutes:
    db: AsyncSession = Depends(get_db_async)
    current_user: User = Depends(get_current_user)

    @router.post("/initiate", status_code=201)
    @safe_handler
    async def initiate(self, payload: BookingInitiateIn):
        return await BookingService(self.db).initiate(
            current_user=self.current_user, house_id=payload.house_id
        )

    @router.get("/my")
    @safe_handler
    async def my_bookings(self):
        return await BookingService(self.db).my_bookings(self.current_user)

    @router.get("/my-rents")
    @safe_handler
    async def my_rents(self):
        return await BookingService(self.db).my_rents(self.current_user)

    @router.post("/{booking_id}/mark-paid")
    @safe_handler
    async def mark_paid(self, booking_id: uuid.UUID, payload: MarkPaidIn):
        return await BookingService(self.db).mark_paid(
            current_user=self.current_user,
            booking_id=booking_id,
            utr=payload.utr,
            proof_url=payload.proof_url,
        )

    @router.put("/{booking_id}/cancel")
    @safe_handler
    async def cancel(self, booking_id: uuid.UUID, payload: Optional[NoteIn] = None):
        return await BookingService(self.db).cancel(
            current_user=self.current_user,
            booking_id=booking_id,
            note=payload.note if payload else "",
        )

    @router.get("/{booking_id}/status")
    @safe_handler
    async def status(self, booking_id: uuid.UUID):
        return await BookingService(self.db).status(self.current_user, booking_id)

    @router.get("/{booking_id}")
    @safe_handler
    async def detail(self, booking_id: uuid.UUID):
        return await BookingService(self.db).detail(self.current_user, booking_id)
