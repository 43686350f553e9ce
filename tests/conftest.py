import os

os.environ["PLATFORM_UPI_ID"] = "homerent.platform@upi"
os.environ["PLATFORM_UPI_NAME"] = "HomeRent"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.pop("EMAIL_SERVER", None)

import uuid
from datetime import datetime

import pytest
from fastapi import HTTPException
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app import app
from core.get_current_user import get_current_user
from core.get_db import Base, get_db_async
from models.enums import HouseStatus, HouseVerificationStatus, UserRole
from models.models import Booking, House, User


class AuthState:
    def __init__(self):
        self.user: User | None = None

    def login(self, user: User | None):
        self.user = user


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'homerent.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def auth():
    return AuthState()


@pytest.fixture
async def client(session_factory, auth):
    async def _db():
        async with session_factory() as session:
            yield session

    async def _current_user():
        if auth.user is None:
            raise HTTPException(status_code=401, detail="Not authenticated")
        return auth.user

    app.dependency_overrides[get_db_async] = _db
    app.dependency_overrides[get_current_user] = _current_user
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    async def _make(role: UserRole = UserRole.TENANT, **kwargs) -> User:
        suffix = uuid.uuid4().hex[:8]
        user = User(
            name=kwargs.pop("name", f"{role.value} {suffix}"),
            email=kwargs.pop("email", f"{role.value}-{suffix}@example.com"),
            phone=kwargs.pop("phone", "9876543210"),
            role=role,
            **kwargs,
        )
        db.add(user)
        await db.commit()
        return user

    return _make


@pytest.fixture
def make_house(db):
    async def _make(landlord: User, **kwargs) -> House:
        house = House(
            landlord_id=landlord.id,
            title=kwargs.pop("title", "2BHK near Metro"),
            location=kwargs.pop("location", "Indiranagar, Bengaluru"),
            rent=kwargs.pop("rent", 25000),
            deposit=kwargs.pop("deposit", 50000),
            booking_amount=kwargs.pop("booking_amount", 5000),
            verification_status=HouseVerificationStatus.APPROVED,
            status=HouseStatus.AVAILABLE,
            **kwargs,
        )
        db.add(house)
        await db.commit()
        return house

    return _make


@pytest.fixture
def fetch(db):
    async def _fetch(model, obj_id):
        result = await db.execute(
            select(model)
            .where(model.id == uuid.UUID(str(obj_id)))
            .execution_options(populate_existing=True)
        )
        obj = result.scalar_one()
        await db.commit()
        return obj

    return _fetch


@pytest.fixture
def backdate(db):
    async def _backdate(booking_id, created_at: datetime):
        await db.execute(
            update(Booking)
            .where(Booking.id == uuid.UUID(str(booking_id)))
            .values(created_at=created_at)
        )
        await db.commit()

    return _backdate


@pytest.fixture
async def parties(make_user, make_house):
    landlord = await make_user(UserRole.LANDLORD, name="Ravi Kumar", upi_id="ravi@okaxis")
    tenant = await make_user(UserRole.TENANT, name="Asha Rao")
    other_tenant = await make_user(UserRole.TENANT, name="Vikram Shah")
    admin = await make_user(UserRole.ADMIN, name="Ops Admin")
    house = await make_house(landlord)
    return {
        "landlord": landlord,
        "tenant": tenant,
        "other_tenant": other_tenant,
        "admin": admin,
        "house": house,
    }
