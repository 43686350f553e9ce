from fastapi import HTTPException

from models.enums import UserRole


class CheckRolePermission:
    async def _require(self, current_user, *roles: UserRole, detail: str):
        if current_user is None or current_user.role not in roles:
            raise HTTPException(status_code=403, detail=detail)

    async def check_admin(self, current_user):
        await self._require(current_user, UserRole.ADMIN, detail="Admin access required.")

    async def check_tenant(self, current_user):
        await self._require(
            current_user, UserRole.TENANT, detail="Only tenants can do this."
        )

    async def check_landlord(self, current_user):
        await self._require(
            current_user, UserRole.LANDLORD, detail="Only landlords can do this."
        )
