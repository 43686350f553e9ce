import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text

from services.booking_expiry_service import BookingExpiryService

from .get_db import AsyncSessionLocal, async_engine

logger = logging.getLogger("startup")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Waiting for application startup...")

    try:
        async with async_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connected.")
    except Exception:
        logger.exception("Database connection check failed")

    try:
        async with AsyncSessionLocal() as db:
            expired = await BookingExpiryService(db).expire_stale_holds()
        logger.info(f"Startup hold sweep expired {expired} booking(s).")
    except Exception:
        logger.exception("Startup hold sweep failed")

    logger.info("Application startup complete.")

    yield

    await async_engine.dispose()
    logger.info("Database engine disposed.")
