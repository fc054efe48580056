"""
Modèles Réservation / Booking models.
Booking + BookingInterval (journal d'annulation) + BookingIntervalContribution (détail par technicien).
Booking + BookingInterval (undo log) + BookingIntervalContribution (per-worker breakdown).
"""

import enum
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, String, Table, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from capacity_ledger.database import Base

# Prestations d'une réservation / Sales items of a booking
booking_sales_items = Table(
    "booking_sales_items",
    Base.metadata,
    Column("booking_id", ForeignKey("bookings.id", ondelete="CASCADE"), primary_key=True),
    Column("sales_item_id", ForeignKey("sales_items.id"), primary_key=True),
)


class BookingStatus(str, enum.Enum):
    """Statut de la réservation / Booking status.

    confirmed -> cancelled (annulation) ou completed (externe) ; les deux sont terminaux.
    confirmed -> cancelled (reversal) or completed (external); both are terminal.
    """
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    lane_id: Mapped[int] = mapped_column(ForeignKey("lanes.id"), nullable=False, index=True)
    delivery_window_starts_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    delivery_window_ends_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    service_time_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, values_callable=lambda e: [m.value for m in e]),
        default=BookingStatus.CONFIRMED,
        nullable=False,
    )

    # Métadonnées client, opaques pour le registre / Customer metadata, opaque to the ledger
    user_id: Mapped[str | None] = mapped_column(String(64))
    address_id: Mapped[str | None] = mapped_column(String(64))
    vehicle_make: Mapped[str | None] = mapped_column(String(50))
    vehicle_model: Mapped[str | None] = mapped_column(String(50))
    vehicle_year: Mapped[int | None] = mapped_column(Integer)
    vehicle_registration: Mapped[str | None] = mapped_column(String(20))
    customer_notes: Mapped[str | None] = mapped_column(Text)
    admin_notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime)
    # False pour les réservations importées sans détail par contribution /
    # False for bookings imported without a per-contribution breakdown
    has_contribution_breakdown: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Relations
    lane: Mapped["Lane"] = relationship()
    intervals: Mapped[list["BookingInterval"]] = relationship(
        back_populates="booking", order_by="BookingInterval.interval_id"
    )
    sales_items: Mapped[list["SalesItem"]] = relationship(secondary=booking_sales_items)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Booking {self.id} lane={self.lane_id} {self.status.value}>"


class BookingInterval(Base):
    """Allocation par créneau, jamais modifiée / Per-interval allocation, never mutated."""

    __tablename__ = "booking_intervals"

    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id", ondelete="CASCADE"), primary_key=True)
    interval_id: Mapped[int] = mapped_column(ForeignKey("capacity_intervals.id"), primary_key=True, index=True)
    booked_seconds: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relations
    booking: Mapped["Booking"] = relationship(back_populates="intervals")
    interval: Mapped["CapacityInterval"] = relationship()

    def __repr__(self) -> str:
        return f"<BookingInterval booking={self.booking_id} interval={self.interval_id} {self.booked_seconds}s>"


class BookingIntervalContribution(Base):
    """Secondes déduites d'une contribution pour une réservation / Seconds deducted from one contribution for one booking.

    Rejoué à l'identique par l'annulation / Replayed exactly by reversal.
    """
    __tablename__ = "booking_interval_contributions"

    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id", ondelete="CASCADE"), primary_key=True)
    interval_id: Mapped[int] = mapped_column(ForeignKey("capacity_intervals.id"), primary_key=True)
    contribution_id: Mapped[int] = mapped_column(ForeignKey("worker_contributions.id"), primary_key=True, index=True)
    deducted_seconds: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<BookingIntervalContribution booking={self.booking_id} interval={self.interval_id} "
            f"contribution={self.contribution_id} {self.deducted_seconds}s>"
        )
