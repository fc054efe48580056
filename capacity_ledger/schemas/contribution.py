"""Schémas Contribution / Contribution schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ContributionBase(BaseModel):
    worker_id: int
    lane_id: int
    starts_at: datetime
    ends_at: datetime
    available_seconds: int = Field(ge=0)


class ContributionCreate(ContributionBase):
    @model_validator(mode="after")
    def _window_order(self):
        if self.ends_at <= self.starts_at:
            raise ValueError("ends_at must be after starts_at")
        return self


class ContributionRead(ContributionBase):
    model_config = ConfigDict(from_attributes=True)
    id: int


class SyncResult(BaseModel):
    created: int


class ContributionUpdate(BaseModel):
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    available_seconds: int | None = Field(default=None, ge=0)
