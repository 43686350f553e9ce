from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from models.models import User
from schemas.schema import LandlordUpiIn
from services.admin_settlement_service import AdminSettlementService
from services.landlord_service import LandlordService

router = APIRouter(tags=["Landlord Payouts"])


@router.get("/payouts")
@safe_handler
async def payouts(
    status: str = Query("transferred"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_async),
):
    return await AdminSettlementService(db).landlord_payouts(current_user, status)


@router.put("/upi")
@safe_handler
async def set_upi(
    payload: LandlordUpiIn,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_async),
):
    return await LandlordService(db).set_upi(current_user, payload.upi_id)


@router.delete("/upi")
@safe_handler
async def clear_upi(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_async),
):
    return await LandlordService(db).clear_upi(current_user)
