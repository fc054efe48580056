"""Routes Disponibilité / Availability API routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from capacity_ledger.database import get_db
from capacity_ledger.schemas.availability import AvailabilityQuery, AvailabilityResponse, AvailabilitySlotRead
from capacity_ledger.services.availability import query_availability, resolve_sales_items

router = APIRouter()


@router.post("/", response_model=AvailabilityResponse)
async def get_availability(data: AvailabilityQuery, db: AsyncSession = Depends(get_db)):
    """Créneaux disponibles pour une journée / Available slots for a day.

    La durée vient de `required_seconds` ou, à défaut, des prestations.
    Duration comes from `required_seconds`, else from the sales items.
    """
    capability_ids, items_seconds = await resolve_sales_items(db, data.sales_item_ids)
    capability_ids |= set(data.capability_ids)
    required_seconds = data.required_seconds if data.required_seconds is not None else items_seconds

    slots = await query_availability(db, data.date, capability_ids, data.lane_ids, required_seconds)
    return AvailabilityResponse(
        required_seconds=required_seconds,
        slots=[AvailabilitySlotRead.model_validate(slot) for slot in slots],
    )
