import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from models.models import User
from schemas.schema import MarkTransferredIn, NoteIn
from services.admin_settlement_service import AdminSettlementService

router = APIRouter(tags=["Admin Settlement"])


@cbv(router=router)
class AdminBookingRoutes:
    db: AsyncSession = Depends(get_db_async)
    current_user: User = Depends(get_current_user)

    @router.get("/bookings")
    @safe_handler
    async def list_bookings(
        self,
        status: str = Query("pending"),
        page: int = Query(1, ge=1),
        per_page: int = Query(20, ge=1, le=100),
    ):
        return await AdminSettlementService(self.db).list_bookings(
            self.current_user, status=status, page=page, per_page=per_page
        )

    @router.put("/bookings/{booking_id}/approve")
    @safe_handler
    async def approve(self, booking_id: uuid.UUID, payload: Optional[NoteIn] = None):
        return await AdminSettlementService(self.db).approve(
            self.current_user, booking_id, note=payload.note if payload else ""
        )

    @router.put("/bookings/{booking_id}/reject")
    @safe_handler
    async def reject(self, booking_id: uuid.UUID, payload: Optional[NoteIn] = None):
        return await AdminSettlementService(self.db).reject(
            self.current_user, booking_id, note=payload.note if payload else ""
        )

    @router.get("/bookings/{booking_id}/upi-intent")
    @safe_handler
    async def upi_intent(self, booking_id: uuid.UUID):
        return await AdminSettlementService(self.db).upi_intent(
            self.current_user, booking_id
        )

    @router.post("/bookings/{booking_id}/mark-transferred")
    @safe_handler
    async def mark_transferred(self, booking_id: uuid.UUID, payload: MarkTransferredIn):
        return await AdminSettlementService(self.db).mark_transferred(
            self.current_user, booking_id, payout_txn_id=payload.payout_txn_id
        )
