"""Routes Réservations / Booking API routes."""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from capacity_ledger.config import settings
from capacity_ledger.database import get_db, get_session_factory
from capacity_ledger.models.booking import Booking, BookingStatus
from capacity_ledger.rate_limit import limiter
from capacity_ledger.schemas.booking import BookingCreate, BookingCreated, BookingRead, CancelResponse
from capacity_ledger.services.allocation import BOOKING_METADATA_FIELDS, BookingRequest, allocate_booking
from capacity_ledger.services.reversal import reverse_booking

router = APIRouter()


@router.post("/", response_model=BookingCreated, status_code=201)
@limiter.limit(settings.RATE_LIMIT_BOOKING)
async def create_booking(
    request: Request,
    data: BookingCreate,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Créer une réservation confirmée / Create a confirmed booking."""
    booking_request = BookingRequest(
        lane_id=data.lane_id,
        window_start=data.delivery_window_starts_at,
        window_end=data.delivery_window_ends_at,
        required_seconds=data.service_time_seconds,
        metadata=data.model_dump(include=set(BOOKING_METADATA_FIELDS), exclude_none=True),
        required_capability_ids=set(data.capability_ids),
        sales_item_ids=data.sales_item_ids,
        user=data.user_id,
    )
    booking_id = await allocate_booking(booking_request, session_factory)
    return BookingCreated(booking_id=booking_id, status=BookingStatus.CONFIRMED)


@router.get("/{booking_id}", response_model=BookingRead)
async def get_booking(booking_id: int, db: AsyncSession = Depends(get_db)):
    """Obtenir une réservation et ses créneaux / Get a booking with its intervals."""
    result = await db.execute(
        select(Booking).options(selectinload(Booking.intervals)).where(Booking.id == booking_id)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


@router.post("/{booking_id}/cancel", response_model=CancelResponse)
@limiter.limit(settings.RATE_LIMIT_CANCEL)
async def cancel_booking(
    request: Request,
    booking_id: int,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Annuler une réservation et restituer la capacité / Cancel a booking and restore capacity."""
    await reverse_booking(booking_id, session_factory)
    return CancelResponse(success=True)
