import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_db import get_db_async
from core.safe_handler import safe_handler
from services.booking_service import BookingService

router = APIRouter(tags=["Houses"])


@router.get("/{house_id}/availability")
@safe_handler
async def availability(house_id: uuid.UUID, db: AsyncSession = Depends(get_db_async)):
    return await BookingService(db).availability(house_id)
