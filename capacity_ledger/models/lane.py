"""
Modèles Voie et Compétence / Lane and Capability models.
Une voie ne reçoit une réservation que si elle possède toutes les compétences requises.
A lane only takes a booking when it holds every required capability.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, Table
from sqlalchemy.orm import Mapped, mapped_column, relationship

from capacity_ledger.database import Base

# Table de jonction Lane <-> Capability / Junction table Lane <-> Capability
lane_capabilities = Table(
    "lane_capabilities",
    Base.metadata,
    Column("lane_id", ForeignKey("lanes.id", ondelete="CASCADE"), primary_key=True),
    Column("capability_id", ForeignKey("capabilities.id", ondelete="CASCADE"), primary_key=True),
)


class Capability(Base):
    __tablename__ = "capabilities"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Capability {self.name}>"


class Lane(Base):
    """Voie de service / Service lane."""

    __tablename__ = "lanes"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    open_time: Mapped[str] = mapped_column(String(5), nullable=False, default="08:00")  # HH:MM
    close_time: Mapped[str] = mapped_column(String(5), nullable=False, default="17:00")  # HH:MM
    time_zone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")  # IANA
    # UTC naïf / naive UTC
    closed_for_new_bookings_at: Mapped[datetime | None] = mapped_column(DateTime)
    closed_for_cancellations_at: Mapped[datetime | None] = mapped_column(DateTime)

    # Relations
    capabilities: Mapped[list["Capability"]] = relationship(secondary=lane_capabilities, lazy="selectin")

    @property
    def capability_ids(self) -> set[int]:
        return {c.id for c in self.capabilities}

    def is_closed_for_bookings(self, now: datetime) -> bool:
        return self.closed_for_new_bookings_at is not None and self.closed_for_new_bookings_at < now

    def is_closed_for_cancellations(self, now: datetime) -> bool:
        return self.closed_for_cancellations_at is not None and self.closed_for_cancellations_at < now

    def __repr__(self) -> str:
        return f"<Lane {self.name} {self.open_time}-{self.close_time}>"
