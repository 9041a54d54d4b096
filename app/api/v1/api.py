# app/api/v1/api.py
from fastapi import APIRouter

from app.api.v1.endpoints import (
    bookings,
    internals,
    partner_bookings,
    price_rules,
    webhooks,
)

api_router = APIRouter()

api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])
api_router.include_router(price_rules.router, prefix="/partner", tags=["Price Rules"])
api_router.include_router(
    partner_bookings.router, prefix="/partner/bookings", tags=["Partner Bookings"]
)
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
api_router.include_router(internals.router)
