"""Routes Créneaux / Capacity interval API routes."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from capacity_ledger.database import get_db
from capacity_ledger.schemas.capacity import GenerateResult, IntervalGenerate, IntervalRead
from capacity_ledger.services.interval_seeding import generate_capacity_intervals
from capacity_ledger.services.interval_store import intervals_for_date

router = APIRouter()


@router.get("/", response_model=list[IntervalRead])
async def list_intervals(date: str = Query(pattern=r"^\d{4}-\d{2}-\d{2}$"), db: AsyncSession = Depends(get_db)):
    """Lister les créneaux d'une journée / List the intervals of a day."""
    return await intervals_for_date(db, date)


@router.post("/generate", response_model=GenerateResult, status_code=201)
async def generate_intervals(data: IntervalGenerate, db: AsyncSession = Depends(get_db)):
    """Générer les créneaux manquants / Generate the missing intervals."""
    try:
        created = await generate_capacity_intervals(db, data.start_date, data.end_date, data.interval_minutes)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return GenerateResult(created=created)
