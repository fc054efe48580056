"""Schémas Réservation / Booking schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from capacity_ledger.models.booking import BookingStatus


class BookingMetadata(BaseModel):
    user_id: str | None = None
    address_id: str | None = None
    vehicle_make: str | None = None
    vehicle_model: str | None = None
    vehicle_year: int | None = None
    vehicle_registration: str | None = None
    customer_notes: str | None = None


class BookingCreate(BookingMetadata):
    lane_id: int
    delivery_window_starts_at: datetime
    delivery_window_ends_at: datetime
    service_time_seconds: int | None = Field(default=None, gt=0)
    sales_item_ids: list[int] = []
    capability_ids: list[int] = []


class BookingCreated(BaseModel):
    booking_id: int
    status: BookingStatus


class BookingIntervalRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    interval_id: int
    booked_seconds: int


class BookingRead(BookingMetadata):
    model_config = ConfigDict(from_attributes=True)
    id: int
    lane_id: int
    delivery_window_starts_at: datetime
    delivery_window_ends_at: datetime
    service_time_seconds: int
    status: BookingStatus
    created_at: datetime | None = None
    cancelled_at: datetime | None = None
    intervals: list[BookingIntervalRead] = []


class CancelResponse(BaseModel):
    success: bool = True
