import uuid
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from core.date_helper import utcnow
from core.get_db import Base

from .enums import (
    ActorKind,
    BookingStatus,
    Furnishing,
    HouseStatus,
    HouseType,
    HouseVerificationStatus,
    RentPaymentStatus,
    UserRole,
    VisitStatus,
)
from .utils import BookingStatusType, value_enum

IN_SETTLEMENT_SQL = "status IN ('payment_submitted', 'approved')"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        value_enum(UserRole), nullable=False, index=True
    )
    upi_id: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )

    houses: Mapped[List["House"]] = relationship(
        "House",
        back_populates="landlord",
        foreign_keys="House.landlord_id",
    )

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"


class House(Base):
    __tablename__ = "houses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    landlord_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    landlord: Mapped["User"] = relationship(
        "User", back_populates="houses", foreign_keys=[landlord_id]
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    location: Mapped[str] = mapped_column(String(255), nullable=False)

    rent: Mapped[int] = mapped_column(Integer, nullable=False)
    deposit: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    booking_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    house_type: Mapped[HouseType] = mapped_column(
        value_enum(HouseType), nullable=False, default=HouseType.APARTMENT
    )
    beds: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    baths: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    area: Mapped[Optional[int]] = mapped_column(Integer)
    furnished: Mapped[Furnishing] = mapped_column(
        value_enum(Furnishing), nullable=False, default=Furnishing.UNFURNISHED
    )

    verification_status: Mapped[HouseVerificationStatus] = mapped_column(
        value_enum(HouseVerificationStatus),
        nullable=False,
        default=HouseVerificationStatus.PENDING,
        index=True,
    )
    status: Mapped[HouseStatus] = mapped_column(
        value_enum(HouseStatus),
        nullable=False,
        default=HouseStatus.AVAILABLE,
        index=True,
    )
    current_tenant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    current_tenant: Mapped[Optional["User"]] = relationship(
        "User", foreign_keys=[current_tenant_id]
    )
    current_booking_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    rented_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "(status = 'rented') = "
            "(current_tenant_id IS NOT NULL AND current_booking_id IS NOT NULL)",
            name="ck_house_rented_has_occupant",
        ),
    )

    @property
    def is_rented(self) -> bool:
        return self.status == HouseStatus.RENTED or self.current_tenant_id is not None

    @validates("rent", "deposit", "booking_amount")
    def validate_amount(self, key, value):
        if value is not None and value < 0:
            raise ValueError(f"{key} must not be negative.")
        return value


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    house_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("houses.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    house: Mapped["House"] = relationship("House", foreign_keys=[house_id])
    landlord_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    landlord: Mapped["User"] = relationship("User", foreign_keys=[landlord_id])
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    tenant: Mapped["User"] = relationship("User", foreign_keys=[tenant_id])

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        BookingStatusType(),
        nullable=False,
        default=BookingStatus.INITIATED,
        index=True,
    )

    tenant_utr: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    payment_proof_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    approved_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    rejected_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    admin_note: Mapped[str] = mapped_column(Text, nullable=False, default="")

    payout_txn_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    payout_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    cancel_note: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    history: Mapped[List["BookingStatusHistory"]] = relationship(
        "BookingStatusHistory",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingStatusHistory.id",
        lazy="selectin",
    )

    __table_args__ = (
        Index(
            "uq_booking_house_in_settlement",
            "house_id",
            unique=True,
            postgresql_where=text(IN_SETTLEMENT_SQL),
            sqlite_where=text(IN_SETTLEMENT_SQL),
        ),
        Index("ix_booking_tenant_landlord_status", "tenant_id", "landlord_id", "status"),
        Index("ix_booking_house_status", "house_id", "status"),
    )

    def __repr__(self):
        return f"<Booking {self.id} {self.status.value}>"


class BookingStatusHistory(Base):
    __tablename__ = "booking_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    booking: Mapped["Booking"] = relationship("Booking", back_populates="history")
    status: Mapped[BookingStatus] = mapped_column(BookingStatusType(), nullable=False)
    at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    actor_kind: Mapped[ActorKind] = mapped_column(
        value_enum(ActorKind), nullable=False, default=ActorKind.USER
    )
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")


class RentPayment(Base):
    __tablename__ = "rent_payments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    house_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("houses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    house: Mapped["House"] = relationship("House", foreign_keys=[house_id])
    landlord_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    tenant: Mapped["User"] = relationship("User", foreign_keys=[tenant_id])

    # YYYY-MM
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[RentPaymentStatus] = mapped_column(
        value_enum(RentPaymentStatus),
        nullable=False,
        default=RentPaymentStatus.INITIATED,
        index=True,
    )

    tenant_utr: Mapped[Optional[str]] = mapped_column(String(64))
    payment_proof_url: Mapped[Optional[str]] = mapped_column(Text)
    payment_submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    rejection_note: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    history: Mapped[List["RentPaymentStatusHistory"]] = relationship(
        "RentPaymentStatusHistory",
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="RentPaymentStatusHistory.id",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint(
            "house_id", "tenant_id", "period", name="uq_rent_payment_period"
        ),
    )


class RentPaymentStatusHistory(Base):
    __tablename__ = "rent_payment_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rent_payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    payment: Mapped["RentPayment"] = relationship(
        "RentPayment", back_populates="history"
    )
    status: Mapped[RentPaymentStatus] = mapped_column(
        value_enum(RentPaymentStatus), nullable=False
    )
    at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    actor_kind: Mapped[ActorKind] = mapped_column(
        value_enum(ActorKind), nullable=False, default=ActorKind.USER
    )
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")


class VisitRequest(Base):
    __tablename__ = "visit_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    house_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("houses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    house: Mapped["House"] = relationship("House", foreign_keys=[house_id])
    landlord_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    status: Mapped[VisitStatus] = mapped_column(
        value_enum(VisitStatus),
        nullable=False,
        default=VisitStatus.PENDING,
        index=True,
    )

    requested_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    requested_end: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    final_start: Mapped[Optional[datetime]] = mapped_column(DateTime)
    final_end: Mapped[Optional[datetime]] = mapped_column(DateTime)

    tenant_message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    landlord_note: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    history: Mapped[List["VisitRequestStatusHistory"]] = relationship(
        "VisitRequestStatusHistory",
        back_populates="visit",
        cascade="all, delete-orphan",
        order_by="VisitRequestStatusHistory.id",
        lazy="selectin",
    )


class VisitRequestStatusHistory(Base):
    __tablename__ = "visit_request_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    visit_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("visit_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    visit: Mapped["VisitRequest"] = relationship(
        "VisitRequest", back_populates="history"
    )
    status: Mapped[VisitStatus] = mapped_column(value_enum(VisitStatus), nullable=False)
    at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    actor_kind: Mapped[ActorKind] = mapped_column(
        value_enum(ActorKind), nullable=False, default=ActorKind.USER
    )
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")
