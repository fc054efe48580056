"""Routes Capacité / Capacity API routes (rapport, audit, réparation)."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from capacity_ledger.database import get_db, get_session_factory
from capacity_ledger.models.lane import Lane
from capacity_ledger.schemas.capacity import CapacityDiscrepancyRead, IntervalCapacityRead
from capacity_ledger.services.ledger_audit import audit_lane_capacity, lane_capacity_report, repair_lane_capacity

router = APIRouter()

_DATE = r"^\d{4}-\d{2}-\d{2}$"


@router.get("/lanes/{lane_id}", response_model=list[IntervalCapacityRead])
async def get_lane_capacity(
    lane_id: int,
    date: str = Query(pattern=_DATE),
    db: AsyncSession = Depends(get_db),
):
    """Utilisation de la capacité d'une voie / Capacity utilization of a lane."""
    if not await db.get(Lane, lane_id):
        raise HTTPException(status_code=404, detail="Lane not found")
    report = await lane_capacity_report(db, lane_id, date)
    return [IntervalCapacityRead.model_validate(r) for r in report]


@router.get("/audit", response_model=list[CapacityDiscrepancyRead])
async def audit_capacity(date: str | None = Query(default=None, pattern=_DATE), db: AsyncSession = Depends(get_db)):
    """Écarts entre le cache et les réservations / Drift between the cache and the bookings."""
    discrepancies = await audit_lane_capacity(db, date)
    return [CapacityDiscrepancyRead.model_validate(d) for d in discrepancies]


@router.post("/repair", response_model=list[CapacityDiscrepancyRead])
async def repair_capacity(
    date: str | None = Query(default=None, pattern=_DATE),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Réaligner le cache sur les réservations / Realign the cache on the bookings.

    Retourne les écarts corrigés / Returns the repaired discrepancies.
    """
    repaired = await repair_lane_capacity(date, session_factory)
    return [CapacityDiscrepancyRead.model_validate(d) for d in repaired]
