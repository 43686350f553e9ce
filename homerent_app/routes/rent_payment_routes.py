import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from models.models import User
from schemas.schema import MarkPaidIn, NoteIn, RentPaymentInitiateIn
from services.rent_payment_service import RentPaymentService

router = APIRouter(tags=["Rent Payments"])


@cbv(router=router)
class RentPaymentRoutes:
    db: AsyncSession = Depends(get_db_async)
    current_user: User = Depends(get_current_user)

    @router.post("/initiate", status_code=201)
    @safe_handler
    async def initiate(self, payload: RentPaymentInitiateIn):
        return await RentPaymentService(self.db).initiate(
            self.current_user, payload.house_id, payload.period
        )

    @router.post("/{payment_id}/mark-paid")
    @safe_handler
    async def mark_paid(self, payment_id: uuid.UUID, payload: MarkPaidIn):
        return await RentPaymentService(self.db).mark_paid(
            self.current_user, payment_id, payload.utr, payload.proof_url
        )

    @router.put("/{payment_id}/approve")
    @safe_handler
    async def approve(self, payment_id: uuid.UUID, payload: Optional[NoteIn] = None):
        return await RentPaymentService(self.db).approve(
            self.current_user, payment_id, note=payload.note if payload else ""
        )

    @router.put("/{payment_id}/reject")
    @safe_handler
    async def reject(self, payment_id: uuid.UUID, payload: Optional[NoteIn] = None):
        return await RentPaymentService(self.db).reject(
            self.current_user, payment_id, note=payload.note if payload else ""
        )

    @router.get("/my/{house_id}")
    @safe_handler
    async def my_payments(self, house_id: uuid.UUID):
        return await RentPaymentService(self.db).my_payments(self.current_user, house_id)

    @router.get("/landlord/pending")
    @safe_handler
    async def landlord_pending(self):
        return await RentPaymentService(self.db).landlord_pending(self.current_user)

    @router.get("/landlord/folders")
    @safe_handler
    async def landlord_folders(self):
        return await RentPaymentService(self.db).landlord_folders(self.current_user)

    @router.get("/landlord/tenant/{tenant_id}")
    @safe_handler
    async def landlord_tenant(self, tenant_id: uuid.UUID):
        return await RentPaymentService(self.db).landlord_tenant_payments(
            self.current_user, tenant_id
        )
