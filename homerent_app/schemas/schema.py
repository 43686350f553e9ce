import re
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from core.date_helper import to_naive_utc
from core.validate_enum import normalize_booking_status
from models.enums import (
    ActorKind,
    BookingStatus,
    HouseStatus,
    RentPaymentStatus,
    UserRole,
    VisitStatus,
)

PERIOD_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def _required_text(value, field: str) -> str:
    cleaned = str(value or "").strip()
    if not cleaned:
        raise ValueError(f"{field} is required")
    return cleaned


def _naive(value: Optional[datetime]) -> Optional[datetime]:
    return to_naive_utc(value) if value is not None else None


# ---------- inputs ----------


class BookingInitiateIn(BaseModel):
    house_id: uuid.UUID


class MarkPaidIn(BaseModel):
    utr: str = Field(..., max_length=64)
    proof_url: Optional[str] = None

    @field_validator("utr", mode="before")
    @classmethod
    def utr_required(cls, v):
        return _required_text(v, "UTR")

    @field_validator("proof_url", mode="before")
    @classmethod
    def blank_proof_is_none(cls, v):
        if v is None:
            return None
        return str(v).strip() or None


class NoteIn(BaseModel):
    note: str = ""

    @field_validator("note", mode="before")
    @classmethod
    def strip_note(cls, v):
        return str(v or "").strip()


class MarkTransferredIn(BaseModel):
    payout_txn_id: str = Field(..., max_length=64)

    @field_validator("payout_txn_id", mode="before")
    @classmethod
    def ref_required(cls, v):
        return _required_text(v, "Payout transaction reference")


class RentPaymentInitiateIn(BaseModel):
    house_id: uuid.UUID
    period: Optional[str] = None

    @field_validator("period")
    @classmethod
    def validate_period(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not PERIOD_RE.match(v):
            raise ValueError("period must look like YYYY-MM")
        return v


class VisitCreateIn(BaseModel):
    house_id: uuid.UUID
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    visit_at: Optional[datetime] = None
    duration_mins: int = Field(30, ge=1, le=24 * 60)
    message: str = Field("", max_length=1000)

    @field_validator("start", "end", "visit_at")
    @classmethod
    def to_naive(cls, v):
        return _naive(v)

    @model_validator(mode="after")
    def need_a_slot(self):
        if self.start is None and self.visit_at is None:
            raise ValueError("Provide start/end or visit_at")
        return self


class LandlordUpiIn(BaseModel):
    upi_id: Optional[str] = None

    @field_validator("upi_id", mode="before")
    @classmethod
    def strip_upi(cls, v):
        if v is None:
            return None
        return str(v).strip() or None


class VisitAcceptIn(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    note: str = ""

    @field_validator("start", "end")
    @classmethod
    def to_naive(cls, v):
        return _naive(v)

    @model_validator(mode="after")
    def both_or_neither(self):
        if (self.start is None) != (self.end is None):
            raise ValueError("start and end must be given together")
        return self


# ---------- outputs ----------


class PartyOut(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    phone: Optional[str] = None
    role: UserRole

    model_config = {"from_attributes": True}


class LandlordProfileOut(PartyOut):
    upi_id: Optional[str] = None


class HouseSummaryOut(BaseModel):
    id: uuid.UUID
    title: str
    location: str
    rent: int
    deposit: int
    booking_amount: int
    status: HouseStatus
    current_tenant_id: Optional[uuid.UUID] = None
    current_booking_id: Optional[uuid.UUID] = None
    rented_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class StatusHistoryOut(BaseModel):
    status: str
    at: datetime
    by_id: Optional[uuid.UUID] = None
    actor_kind: ActorKind
    note: str = ""

    model_config = {"from_attributes": True}

    @field_validator("status", mode="before")
    @classmethod
    def status_value(cls, v):
        return getattr(v, "value", v)


class BookingOut(BaseModel):
    id: uuid.UUID
    house_id: uuid.UUID
    landlord_id: uuid.UUID
    tenant_id: uuid.UUID
    amount: int
    status: BookingStatus
    tenant_utr: Optional[str] = None
    payment_proof_url: Optional[str] = None
    payment_submitted_at: Optional[datetime] = None
    approved_by_id: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    rejected_by_id: Optional[uuid.UUID] = None
    rejected_at: Optional[datetime] = None
    admin_note: str = ""
    payout_txn_id: Optional[str] = None
    payout_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_note: str = ""
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("status", mode="before")
    @classmethod
    def canonical_status(cls, v):
        return normalize_booking_status(v)


class BookingDetailOut(BookingOut):
    house: Optional[HouseSummaryOut] = None
    tenant: Optional[PartyOut] = None
    landlord: Optional[PartyOut] = None
    history: List[StatusHistoryOut] = Field(default_factory=list)


class RentPaymentOut(BaseModel):
    id: uuid.UUID
    house_id: uuid.UUID
    landlord_id: uuid.UUID
    tenant_id: uuid.UUID
    period: str
    amount: int
    status: RentPaymentStatus
    tenant_utr: Optional[str] = None
    payment_proof_url: Optional[str] = None
    payment_submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_note: str = ""
    created_at: datetime
    updated_at: datetime
    history: List[StatusHistoryOut] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class VisitOut(BaseModel):
    id: uuid.UUID
    house_id: uuid.UUID
    landlord_id: uuid.UUID
    tenant_id: uuid.UUID
    status: VisitStatus
    requested_start: datetime
    requested_end: datetime
    final_start: Optional[datetime] = None
    final_end: Optional[datetime] = None
    tenant_message: str = ""
    landlord_note: str = ""
    created_at: datetime
    updated_at: datetime
    history: List[StatusHistoryOut] = Field(default_factory=list)

    model_config = {"from_attributes": True}
