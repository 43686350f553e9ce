import logging

from fastapi import HTTPException

from core.check_permission import CheckRolePermission
from core.mapper import ORMMapper
from models.models import User
from schemas.schema import LandlordProfileOut

logger = logging.getLogger(__name__)


class LandlordService:
    def __init__(self, db):
        self.db = db
        self.permission: CheckRolePermission = CheckRolePermission()

    async def _load(self, current_user: User) -> User:
        await self.permission.check_landlord(current_user)
        user = await self.db.get(User, current_user.id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    async def set_upi(self, current_user: User, upi_id: str | None) -> dict:
        user = await self._load(current_user)
        if not upi_id:
            raise HTTPException(status_code=400, detail="UPI ID is required")
        if "@" not in upi_id:
            raise HTTPException(
                status_code=400,
                detail="Invalid UPI ID format (example: name@bank)",
            )

        user.upi_id = upi_id
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"Landlord {user.id} updated payout UPI ID")
        return {
            "success": True,
            "message": "UPI ID saved successfully",
            "upi_id": user.upi_id,
            "user": ORMMapper.one(user, LandlordProfileOut),
        }

    async def clear_upi(self, current_user: User) -> dict:
        user = await self._load(current_user)
        user.upi_id = None
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"Landlord {user.id} cleared payout UPI ID")
        return {
            "success": True,
            "message": "UPI ID cleared",
            "user": ORMMapper.one(user, LandlordProfileOut),
        }
