"""Modèle Capacité réservée par voie et créneau / Lane interval booked-capacity model."""

from sqlalchemy import ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from capacity_ledger.database import Base


class LaneIntervalCapacity(Base):
    """Cache de la somme des secondes réservées / Cache of the sum of booked seconds.

    La source de vérité reste BookingInterval ; voir services.ledger_audit.
    BookingInterval remains the source of truth; see services.ledger_audit.
    """
    __tablename__ = "lane_interval_capacity"

    lane_id: Mapped[int] = mapped_column(ForeignKey("lanes.id"), primary_key=True)
    interval_id: Mapped[int] = mapped_column(ForeignKey("capacity_intervals.id"), primary_key=True)
    total_booked_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<LaneIntervalCapacity lane={self.lane_id} interval={self.interval_id} booked={self.total_booked_seconds}s>"
