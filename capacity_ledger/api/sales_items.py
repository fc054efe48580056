"""Routes Prestations / Sales item API routes."""

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from capacity_ledger.api.lanes import load_capabilities
from capacity_ledger.database import get_db
from capacity_ledger.models.sales_item import SalesItem
from capacity_ledger.schemas.sales_item import SalesItemCreate, SalesItemRead

router = APIRouter()


@router.get("/", response_model=list[SalesItemRead])
async def list_sales_items(active: bool | None = None, db: AsyncSession = Depends(get_db)):
    """Lister les prestations / List sales items."""
    query = select(SalesItem).order_by(SalesItem.id)
    if active is not None:
        query = query.where(SalesItem.active == active)
    result = await db.execute(query)
    return result.scalars().all()


@router.post("/", response_model=SalesItemRead, status_code=201)
async def create_sales_item(data: SalesItemCreate, db: AsyncSession = Depends(get_db)):
    """Créer une prestation / Create a sales item."""
    capabilities = await load_capabilities(db, data.capability_ids)
    item = SalesItem(**data.model_dump(exclude={"capability_ids"}), capabilities=capabilities)
    db.add(item)
    await db.flush()
    await db.refresh(item)
    return item
