"""Routes API / API routes."""

from fastapi import APIRouter

from capacity_ledger.api import (
    availability,
    bookings,
    capacity,
    contributions,
    intervals,
    lanes,
    sales_items,
)

api_router = APIRouter(prefix="/api")

api_router.include_router(availability.router, prefix="/availability", tags=["availability"])
api_router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
api_router.include_router(capacity.router, prefix="/capacity", tags=["capacity"])
api_router.include_router(intervals.router, prefix="/intervals", tags=["intervals"])
api_router.include_router(lanes.router, prefix="/lanes", tags=["lanes"])
api_router.include_router(sales_items.router, prefix="/sales-items", tags=["sales-items"])
api_router.include_router(contributions.router, prefix="/contributions", tags=["contributions"])
