"""Schémas Capacité et Créneaux / Capacity and interval schemas."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class IntervalRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    starts_at: datetime
    ends_at: datetime
    date: str


class IntervalGenerate(BaseModel):
    start_date: date
    end_date: date
    interval_minutes: int | None = Field(default=None, gt=0)


class GenerateResult(BaseModel):
    created: int


class IntervalCapacityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    interval_id: int
    starts_at: datetime
    ends_at: datetime
    total_capacity_seconds: int
    remaining_seconds: int
    booked_seconds: int
    utilization_percent: float
    is_overbooked: bool
    excess_seconds: int
    booking_ids: list[int]


class CapacityDiscrepancyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    lane_id: int
    interval_id: int
    cached_seconds: int
    derived_seconds: int
    drift_seconds: int
