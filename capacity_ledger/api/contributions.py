"""Routes Contributions / Worker contribution API routes."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from capacity_ledger.database import get_db
from capacity_ledger.models.lane import Lane
from capacity_ledger.models.worker_contribution import WorkerContribution
from capacity_ledger.schemas.contribution import ContributionCreate, ContributionRead, ContributionUpdate, SyncResult
from capacity_ledger.services.interval_seeding import regenerate_contribution_intervals, sync_contribution_intervals
from capacity_ledger.utils.timeutils import to_naive_utc

router = APIRouter()


@router.get("/", response_model=list[ContributionRead])
async def list_contributions(lane_id: int | None = None, db: AsyncSession = Depends(get_db)):
    """Lister les contributions / List contributions."""
    query = select(WorkerContribution).order_by(WorkerContribution.starts_at, WorkerContribution.id)
    if lane_id is not None:
        query = query.where(WorkerContribution.lane_id == lane_id)
    result = await db.execute(query)
    return result.scalars().all()


@router.post("/", response_model=ContributionRead, status_code=201)
async def create_contribution(data: ContributionCreate, db: AsyncSession = Depends(get_db)):
    """Créer une contribution et ses lignes par créneau / Create a contribution and its per-interval rows."""
    if not await db.get(Lane, data.lane_id):
        raise HTTPException(status_code=404, detail="Lane not found")
    contribution = WorkerContribution(
        worker_id=data.worker_id,
        lane_id=data.lane_id,
        starts_at=to_naive_utc(data.starts_at),
        ends_at=to_naive_utc(data.ends_at),
        available_seconds=data.available_seconds,
    )
    db.add(contribution)
    await db.flush()
    await sync_contribution_intervals(db, [contribution.id])
    await db.refresh(contribution)
    return contribution


@router.post("/sync", response_model=SyncResult)
async def sync_contributions(db: AsyncSession = Depends(get_db)):
    """Dériver les lignes manquantes pour les créneaux existants / Derive missing rows for existing intervals."""
    created = await sync_contribution_intervals(db)
    return SyncResult(created=created)


@router.put("/{contribution_id}", response_model=ContributionRead)
async def update_contribution(contribution_id: int, data: ContributionUpdate, db: AsyncSession = Depends(get_db)):
    """Modifier une contribution non consommée / Update an unconsumed contribution.

    Les lignes par créneau sont recalculées ; 409 si une réservation les utilise.
    Per-interval rows are recomputed; 409 when a booking uses them.
    """
    contribution = await db.get(WorkerContribution, contribution_id)
    if not contribution:
        raise HTTPException(status_code=404, detail="Contribution not found")
    for key, value in data.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        if key in ("starts_at", "ends_at"):
            value = to_naive_utc(value)
        setattr(contribution, key, value)
    if contribution.ends_at <= contribution.starts_at:
        raise HTTPException(status_code=422, detail="ends_at must be after starts_at")
    await db.flush()
    await regenerate_contribution_intervals(db, contribution_id)
    await db.refresh(contribution)
    return contribution


@router.post("/{contribution_id}/regenerate", response_model=SyncResult)
async def regenerate_contribution(contribution_id: int, db: AsyncSession = Depends(get_db)):
    """Recalculer les lignes d'une contribution intacte / Recompute the rows of an untouched contribution."""
    if not await db.get(WorkerContribution, contribution_id):
        raise HTTPException(status_code=404, detail="Contribution not found")
    created = await regenerate_contribution_intervals(db, contribution_id)
    return SyncResult(created=created)
