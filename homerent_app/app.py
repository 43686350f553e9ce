import logging

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from core.catch_error_middleware import ErrorHandlerMiddleware
from core.exception_handler import ValidationErrorHandler
from core.lifespan import lifespan
from core.settings import settings
from routes.admin_booking_routes import router as admin_booking_router
from routes.booking_routes import router as booking_router
from routes.house_routes import router as house_router
from routes.landlord_payout_routes import router as landlord_payout_router
from routes.rent_payment_routes import router as rent_payment_router
from routes.visit_routes import router as visit_router

logging.basicConfig(level=logging.INFO)

app = FastAPI(
    lifespan=lifespan,
    title=settings.PROJECT_NAME,
    version="2.0.0",
)

app.include_router(booking_router, prefix="/v2/bookings")
app.include_router(house_router, prefix="/v2/houses")
app.include_router(admin_booking_router, prefix="/v2/admin")
app.include_router(landlord_payout_router, prefix="/v2/landlord")
app.include_router(rent_payment_router, prefix="/v2/rent-payments")
app.include_router(visit_router, prefix="/v2/visits")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["System"])
async def health_check():
    return {"status": "ok"}


app.add_exception_handler(
    RequestValidationError,
    ValidationErrorHandler(),
)

app.add_middleware(ErrorHandlerMiddleware)


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8001)
