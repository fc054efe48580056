"""
Modèles Contribution des techniciens / Worker contribution models.
WorkerContribution = engagement d'un technicien sur une voie pour un poste.
ContributionInterval = compteur de secondes restantes par créneau, dérivé de l'engagement.
WorkerContribution = a worker's pledge to a lane for a shift.
ContributionInterval = per-interval remaining-seconds counter derived from the pledge.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from capacity_ledger.database import Base


class WorkerContribution(Base):
    __tablename__ = "worker_contributions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    worker_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    lane_id: Mapped[int] = mapped_column(ForeignKey("lanes.id"), nullable=False, index=True)
    starts_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    available_seconds: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relations
    lane: Mapped["Lane"] = relationship()
    intervals: Mapped[list["ContributionInterval"]] = relationship(
        back_populates="contribution", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<WorkerContribution worker={self.worker_id} lane={self.lane_id} {self.available_seconds}s>"


class ContributionInterval(Base):
    """Seul champ mutable : remaining_seconds / Only mutable field: remaining_seconds.

    Invariant : 0 <= remaining_seconds <= original_seconds.
    """
    __tablename__ = "contribution_intervals"
    __table_args__ = (
        CheckConstraint("remaining_seconds >= 0", name="ck_contribution_intervals_remaining_non_negative"),
    )

    contribution_id: Mapped[int] = mapped_column(
        ForeignKey("worker_contributions.id", ondelete="CASCADE"), primary_key=True
    )
    interval_id: Mapped[int] = mapped_column(ForeignKey("capacity_intervals.id"), primary_key=True, index=True)
    remaining_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    original_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Relations
    contribution: Mapped["WorkerContribution"] = relationship(back_populates="intervals")

    __mapper_args__ = {"version_id_col": version}

    @property
    def consumed_seconds(self) -> int:
        return self.original_seconds - self.remaining_seconds

    def __repr__(self) -> str:
        return (
            f"<ContributionInterval contribution={self.contribution_id} interval={self.interval_id} "
            f"{self.remaining_seconds}/{self.original_seconds}s>"
        )
