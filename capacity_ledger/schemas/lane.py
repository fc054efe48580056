"""Schémas Voie / Lane schemas."""

from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

_HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"


class CapabilityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str


class LaneBase(BaseModel):
    name: str
    open_time: str = Field(default="08:00", pattern=_HHMM)
    close_time: str = Field(default="17:00", pattern=_HHMM)
    time_zone: str = "UTC"
    closed_for_new_bookings_at: datetime | None = None
    closed_for_cancellations_at: datetime | None = None

    @field_validator("time_zone")
    @classmethod
    def _known_time_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown time zone: {value}") from exc
        return value


class LaneCreate(LaneBase):
    capability_ids: list[int] = []


class LaneRead(LaneBase):
    model_config = ConfigDict(from_attributes=True)
    id: int
    capabilities: list[CapabilityRead] = []


class CapabilityCreate(BaseModel):
    name: str
