"""Routes Voies et Compétences / Lane and capability API routes."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from capacity_ledger.database import get_db
from capacity_ledger.models.lane import Capability, Lane
from capacity_ledger.schemas.lane import CapabilityCreate, CapabilityRead, LaneCreate, LaneRead
from capacity_ledger.utils.timeutils import to_naive_utc

router = APIRouter()


async def load_capabilities(db: AsyncSession, capability_ids: list[int]) -> list[Capability]:
    """Charger les compétences demandées / Load the requested capabilities (422 si inconnues / if unknown)."""
    if not capability_ids:
        return []
    result = await db.execute(select(Capability).where(Capability.id.in_(capability_ids)))
    capabilities = list(result.scalars().all())
    unknown = set(capability_ids) - {c.id for c in capabilities}
    if unknown:
        raise HTTPException(status_code=422, detail=f"Unknown capabilities: {sorted(unknown)}")
    return capabilities


@router.get("/capabilities", response_model=list[CapabilityRead])
async def list_capabilities(db: AsyncSession = Depends(get_db)):
    """Lister les compétences / List capabilities."""
    result = await db.execute(select(Capability).order_by(Capability.id))
    return result.scalars().all()


@router.post("/capabilities", response_model=CapabilityRead, status_code=201)
async def create_capability(data: CapabilityCreate, db: AsyncSession = Depends(get_db)):
    """Créer une compétence / Create a capability."""
    existing = await db.execute(select(Capability).where(Capability.name == data.name))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Capability already exists")
    capability = Capability(name=data.name)
    db.add(capability)
    await db.flush()
    await db.refresh(capability)
    return capability


@router.get("/", response_model=list[LaneRead])
async def list_lanes(db: AsyncSession = Depends(get_db)):
    """Lister toutes les voies / List all lanes."""
    result = await db.execute(select(Lane).order_by(Lane.id))
    return result.scalars().all()


@router.get("/{lane_id}", response_model=LaneRead)
async def get_lane(lane_id: int, db: AsyncSession = Depends(get_db)):
    """Obtenir une voie par ID / Get lane by ID."""
    lane = await db.get(Lane, lane_id)
    if not lane:
        raise HTTPException(status_code=404, detail="Lane not found")
    return lane


@router.post("/", response_model=LaneRead, status_code=201)
async def create_lane(data: LaneCreate, db: AsyncSession = Depends(get_db)):
    """Créer une voie / Create a lane."""
    capabilities = await load_capabilities(db, data.capability_ids)
    fields = data.model_dump(exclude={"capability_ids"})
    for key in ("closed_for_new_bookings_at", "closed_for_cancellations_at"):
        if fields[key] is not None:
            fields[key] = to_naive_utc(fields[key])
    lane = Lane(**fields, capabilities=capabilities)
    db.add(lane)
    await db.flush()
    await db.refresh(lane)
    return lane
