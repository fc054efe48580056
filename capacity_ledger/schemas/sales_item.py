"""Schémas Prestation / Sales item schemas."""

from pydantic import BaseModel, ConfigDict, Field

from capacity_ledger.schemas.lane import CapabilityRead


class SalesItemBase(BaseModel):
    name: str
    description: str | None = None
    service_time_seconds: int = Field(gt=0)
    price_cents: int = Field(default=0, ge=0)
    active: bool = True


class SalesItemCreate(SalesItemBase):
    capability_ids: list[int] = []


class SalesItemRead(SalesItemBase):
    model_config = ConfigDict(from_attributes=True)
    id: int
    capabilities: list[CapabilityRead] = []
