import logging
import uuid
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError

from core.check_permission import CheckRolePermission
from core.date_helper import current_period, utcnow
from core.mapper import ORMMapper
from models.enums import RentPaymentStatus
from models.models import RentPayment, RentPaymentStatusHistory, User
from repos.house_repo import HouseRepo
from repos.rent_payment_repo import RentPaymentRepo
from repos.status_history import record_transition
from schemas.schema import RentPaymentOut

from .booking_policy import build_upi_link, rent_payment_note

logger = logging.getLogger(__name__)

SUBMIT_FROM = frozenset({RentPaymentStatus.INITIATED, RentPaymentStatus.REJECTED})
DECIDE_FROM = frozenset({RentPaymentStatus.PAYMENT_SUBMITTED})


def _conflict(payment: RentPayment, allowed: frozenset, action: str) -> dict:
    required = sorted(s.value for s in allowed)
    return {
        "message": f"Only {' or '.join(required)} rent payments can be {action}. "
        f"Current status: {payment.status.value}",
        "status": payment.status.value,
        "required_status": required[0] if len(required) == 1 else required,
    }


class RentPaymentService:
    def __init__(self, db):
        self.db = db
        self.repo: RentPaymentRepo = RentPaymentRepo(db)
        self.house_repo: HouseRepo = HouseRepo(db)
        self.permission: CheckRolePermission = CheckRolePermission()

    async def _payment(self, payment_id: uuid.UUID) -> RentPayment:
        payment = await self.repo.get_for_update(payment_id)
        if not payment:
            raise HTTPException(status_code=404, detail="Rent payment not found")
        return payment

    def _upi_link(self, payment: RentPayment, landlord: User) -> str:
        return build_upi_link(
            payee_vpa=landlord.upi_id.strip(),
            payee_name=landlord.name,
            amount=payment.amount,
            note=rent_payment_note(payment.period, payment.id),
        )

    async def initiate(
        self, current_user: User, house_id: uuid.UUID, period: Optional[str] = None
    ) -> dict:
        await self.permission.check_tenant(current_user)
        house = await self.house_repo.get_by_id(house_id)
        if not house:
            raise HTTPException(status_code=404, detail="House not found")
        if house.current_tenant_id != current_user.id:
            raise HTTPException(
                status_code=403, detail="You are not the current tenant of this house"
            )
        if int(house.rent or 0) <= 0:
            raise HTTPException(status_code=400, detail="Rent amount not set")

        landlord = house.landlord
        if not landlord or not (landlord.upi_id or "").strip():
            raise HTTPException(status_code=400, detail="Landlord UPI ID not set")

        period = period or current_period()
        existing = await self.repo.find_for_period(house.id, current_user.id, period)
        if existing:
            raise HTTPException(
                status_code=400,
                detail={
                    "message": f"Rent for {period} already exists.",
                    "payment_id": str(existing.id),
                    "status": existing.status.value,
                },
            )

        now = utcnow()
        payment = RentPayment(
            house_id=house.id,
            landlord_id=landlord.id,
            tenant_id=current_user.id,
            period=period,
            amount=int(house.rent),
            created_at=now,
            updated_at=now,
        )
        record_transition(
            payment,
            RentPaymentStatusHistory,
            RentPaymentStatus.INITIATED,
            actor_id=current_user.id,
            note="Rent payment created",
            now=now,
        )
        await self.repo.add(payment)
        try:
            await self.repo.db_commit()
        except IntegrityError:
            raise HTTPException(
                status_code=400, detail=f"Rent for {period} already exists."
            )

        logger.info(f"Rent payment {payment.id} for {period} initiated by {current_user.id}")
        return {
            "payment_id": str(payment.id),
            "amount": payment.amount,
            "period": period,
            "upi_link": self._upi_link(payment, landlord),
            "payee": {"name": landlord.name, "upi_id": landlord.upi_id.strip()},
        }

    async def mark_paid(
        self,
        current_user: User,
        payment_id: uuid.UUID,
        utr: str,
        proof_url: Optional[str] = None,
    ) -> dict:
        utr = (utr or "").strip()
        if not utr:
            raise HTTPException(status_code=400, detail="UTR is required")

        payment = await self._payment(payment_id)
        if payment.tenant_id != current_user.id:
            raise HTTPException(status_code=403, detail="Not your rent payment")
        if payment.status == RentPaymentStatus.APPROVED:
            raise HTTPException(status_code=400, detail="Already approved")
        if payment.status not in SUBMIT_FROM:
            raise HTTPException(
                status_code=400, detail=_conflict(payment, SUBMIT_FROM, "marked paid")
            )

        now = utcnow()
        resubmission = payment.status == RentPaymentStatus.REJECTED
        payment.tenant_utr = utr
        payment.payment_proof_url = proof_url
        payment.payment_submitted_at = now
        payment.updated_at = now
        record_transition(
            payment,
            RentPaymentStatusHistory,
            RentPaymentStatus.PAYMENT_SUBMITTED,
            actor_id=current_user.id,
            note=("Resubmitted" if resubmission else "Submitted") + f" with UTR {utr}",
            now=now,
        )
        await self.repo.db_commit()
        return {"payment_id": str(payment.id), "status": payment.status.value}

    async def _decide(
        self,
        current_user: User,
        payment_id: uuid.UUID,
        to_status: RentPaymentStatus,
        note: str,
    ) -> dict:
        await self.permission.check_landlord(current_user)
        payment = await self._payment(payment_id)
        if payment.landlord_id != current_user.id:
            raise HTTPException(status_code=403, detail="Not your tenant's payment")
        action = "approved" if to_status == RentPaymentStatus.APPROVED else "rejected"
        if payment.status not in DECIDE_FROM:
            raise HTTPException(
                status_code=400, detail=_conflict(payment, DECIDE_FROM, action)
            )

        now = utcnow()
        if to_status == RentPaymentStatus.APPROVED:
            payment.approved_at = now
        else:
            payment.rejected_at = now
            payment.rejection_note = note or ""
        payment.updated_at = now
        record_transition(
            payment,
            RentPaymentStatusHistory,
            to_status,
            actor_id=current_user.id,
            note=note or f"Rent {action} by landlord",
            now=now,
        )
        await self.repo.db_commit()
        logger.info(f"Rent payment {payment.id} {action} by {current_user.id}")
        return {"payment_id": str(payment.id), "status": payment.status.value}

    async def approve(self, current_user: User, payment_id: uuid.UUID, note: str = ""):
        return await self._decide(
            current_user, payment_id, RentPaymentStatus.APPROVED, note
        )

    async def reject(self, current_user: User, payment_id: uuid.UUID, note: str = ""):
        return await self._decide(
            current_user, payment_id, RentPaymentStatus.REJECTED, note
        )

    async def my_payments(self, current_user: User, house_id: uuid.UUID) -> list:
        await self.permission.check_tenant(current_user)
        payments = await self.repo.list_for_tenant_house(current_user.id, house_id)
        return ORMMapper.dump_many(payments, RentPaymentOut)

    async def landlord_pending(self, current_user: User) -> list:
        await self.permission.check_landlord(current_user)
        payments = await self.repo.list_for_landlord(
            current_user.id, status=RentPaymentStatus.PAYMENT_SUBMITTED
        )
        return ORMMapper.dump_many(payments, RentPaymentOut)

    async def landlord_folders(self, current_user: User) -> list:
        await self.permission.check_landlord(current_user)
        folders = await self.repo.landlord_folders(current_user.id)
        for folder in folders:
            folder["tenant_id"] = str(folder["tenant_id"])
            if folder["last_activity"]:
                folder["last_activity"] = folder["last_activity"].isoformat()
        return folders

    async def landlord_tenant_payments(
        self, current_user: User, tenant_id: uuid.UUID
    ) -> list:
        await self.permission.check_landlord(current_user)
        payments = await self.repo.list_for_landlord(current_user.id, tenant_id=tenant_id)
        return ORMMapper.dump_many(payments, RentPaymentOut)
