"""Schémas Disponibilité / Availability schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AvailabilityQuery(BaseModel):
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")  # YYYY-MM-DD
    capability_ids: list[int] = []
    sales_item_ids: list[int] = []
    lane_ids: list[int] | None = None
    required_seconds: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _needs_duration(self):
        if self.required_seconds is None and not self.sales_item_ids:
            raise ValueError("required_seconds or sales_item_ids is required")
        return self


class AvailabilitySlotRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    interval_id: int
    lane_id: int
    lane_name: str
    starts_at: datetime
    ends_at: datetime
    available_seconds: int


class AvailabilityResponse(BaseModel):
    required_seconds: int
    slots: list[AvailabilitySlotRead]
