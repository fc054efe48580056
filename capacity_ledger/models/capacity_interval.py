"""Modèle Créneau de capacité / Capacity interval model."""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from capacity_ledger.database import Base


class CapacityInterval(Base):
    """Tranche horaire fixe, unité de comptage de la capacité / Fixed time slice, unit of capacity accounting.

    Créée une fois par la génération des créneaux, jamais modifiée.
    Created once by interval seeding, never mutated.
    """
    __tablename__ = "capacity_intervals"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    starts_at: Mapped[datetime] = mapped_column(DateTime, unique=True, nullable=False)  # UTC naïf / naive UTC
    ends_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)  # YYYY-MM-DD

    @property
    def duration_seconds(self) -> int:
        return int((self.ends_at - self.starts_at).total_seconds())

    def __repr__(self) -> str:
        return f"<CapacityInterval {self.starts_at:%Y-%m-%d %H:%M}-{self.ends_at:%H:%M}>"
