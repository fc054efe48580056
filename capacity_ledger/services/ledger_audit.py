"""
Contrôle et réparation du registre / Ledger audit and repair.

total_booked_seconds n'est qu'un cache : la valeur de référence est la somme
des BookingInterval des réservations non annulées.
total_booked_seconds is only a cache: the reference value is the sum of the
BookingInterval rows of non-cancelled bookings.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from capacity_ledger.models.booking import Booking, BookingInterval, BookingStatus
from capacity_ledger.models.capacity_interval import CapacityInterval
from capacity_ledger.models.lane_interval_capacity import LaneIntervalCapacity
from capacity_ledger.models.worker_contribution import ContributionInterval, WorkerContribution
from capacity_ledger.services.audit_trail import record_audit
from capacity_ledger.services.interval_store import (
    booked_seconds_by_key,
    ensure_lane_capacity_rows,
    intervals_for_date,
    lock_lane_capacity,
)
from capacity_ledger.services.ledger_transaction import run_ledger_transaction

logger = logging.getLogger(__name__)


@dataclass
class CapacityDiscrepancy:
    lane_id: int
    interval_id: int
    cached_seconds: int
    derived_seconds: int

    @property
    def drift_seconds(self) -> int:
        return self.cached_seconds - self.derived_seconds


@dataclass
class IntervalCapacityReport:
    interval_id: int
    starts_at: datetime
    ends_at: datetime
    total_capacity_seconds: int
    remaining_seconds: int
    booked_seconds: int
    utilization_percent: float
    is_overbooked: bool
    excess_seconds: int
    booking_ids: list[int] = field(default_factory=list)


async def derived_booked_seconds(session: AsyncSession, date: str | None = None) -> dict[tuple[int, int], int]:
    """Somme de référence par (voie, créneau) / Reference sum per (lane, interval)."""
    query = (
        select(Booking.lane_id, BookingInterval.interval_id, func.sum(BookingInterval.booked_seconds))
        .join(Booking, Booking.id == BookingInterval.booking_id)
        .where(Booking.status != BookingStatus.CANCELLED)
        .group_by(Booking.lane_id, BookingInterval.interval_id)
    )
    if date is not None:
        query = query.join(CapacityInterval, CapacityInterval.id == BookingInterval.interval_id).where(
            CapacityInterval.date == date
        )
    result = await session.execute(query)
    return {(lane_id, interval_id): int(total or 0) for lane_id, interval_id, total in result.all()}


async def _cached_booked_seconds(session: AsyncSession, date: str | None = None) -> dict[tuple[int, int], int]:
    query = select(LaneIntervalCapacity.lane_id, LaneIntervalCapacity.interval_id, LaneIntervalCapacity.total_booked_seconds)
    if date is not None:
        query = query.join(CapacityInterval, CapacityInterval.id == LaneIntervalCapacity.interval_id).where(
            CapacityInterval.date == date
        )
    result = await session.execute(query)
    return {(lane_id, interval_id): booked or 0 for lane_id, interval_id, booked in result.all()}


async def audit_lane_capacity(session: AsyncSession, date: str | None = None) -> list[CapacityDiscrepancy]:
    """Lister les écarts cache / référence / List cache vs reference discrepancies."""
    cached = await _cached_booked_seconds(session, date)
    derived = await derived_booked_seconds(session, date)
    discrepancies = [
        CapacityDiscrepancy(
            lane_id=key[0],
            interval_id=key[1],
            cached_seconds=cached.get(key, 0),
            derived_seconds=derived.get(key, 0),
        )
        for key in sorted(set(cached) | set(derived))
        if cached.get(key, 0) != derived.get(key, 0)
    ]
    if discrepancies:
        logger.warning("Ledger audit found %d discrepancies (date=%s)", len(discrepancies), date)
    return discrepancies


async def repair_lane_capacity(
    date: str | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    user: str | None = None,
) -> list[CapacityDiscrepancy]:
    """
    Réécrire le cache à partir des BookingInterval / Rewrite the cache from BookingInterval rows.

    Retourne les écarts corrigés / Returns the corrected discrepancies.
    """

    async def operation(session: AsyncSession) -> list[CapacityDiscrepancy]:
        discrepancies = await audit_lane_capacity(session, date)
        by_lane: dict[int, list[CapacityDiscrepancy]] = {}
        for d in discrepancies:
            by_lane.setdefault(d.lane_id, []).append(d)

        for lane_id, items in sorted(by_lane.items()):
            interval_ids = [d.interval_id for d in items]
            await ensure_lane_capacity_rows(session, lane_id, interval_ids)
            rows = await lock_lane_capacity(session, lane_id, interval_ids)
            # Relire sous verrou / Re-read under lock
            derived = await derived_booked_seconds(session, date)
            for d in items:
                rows[d.interval_id].total_booked_seconds = derived.get((lane_id, d.interval_id), 0)
                record_audit(
                    session, "lane_capacity", lane_id, "REPAIR",
                    {"interval_id": d.interval_id, "from": d.cached_seconds, "to": d.derived_seconds},
                    user=user,
                )
        await session.flush()
        return discrepancies

    repaired = await run_ledger_transaction(operation, session_factory, label="repair lane capacity")
    logger.info("Repaired %d lane interval capacity rows (date=%s)", len(repaired), date)
    return repaired


async def lane_capacity_report(session: AsyncSession, lane_id: int, date: str) -> list[IntervalCapacityReport]:
    """Occupation par créneau d'une voie / Per-interval utilization of a lane."""
    intervals = await intervals_for_date(session, date)
    if not intervals:
        return []
    interval_ids = [i.id for i in intervals]

    result = await session.execute(
        select(
            ContributionInterval.interval_id,
            func.sum(ContributionInterval.original_seconds),
            func.sum(ContributionInterval.remaining_seconds),
        )
        .join(WorkerContribution, WorkerContribution.id == ContributionInterval.contribution_id)
        .where(WorkerContribution.lane_id == lane_id, ContributionInterval.interval_id.in_(interval_ids))
        .group_by(ContributionInterval.interval_id)
    )
    capacity = {interval_id: (int(total or 0), int(left or 0)) for interval_id, total, left in result.all()}
    booked = await booked_seconds_by_key(session, interval_ids, [lane_id])

    result = await session.execute(
        select(BookingInterval.interval_id, Booking.id)
        .join(Booking, Booking.id == BookingInterval.booking_id)
        .where(
            Booking.lane_id == lane_id,
            Booking.status != BookingStatus.CANCELLED,
            BookingInterval.interval_id.in_(interval_ids),
        )
        .order_by(Booking.id)
    )
    bookings: dict[int, list[int]] = {}
    for interval_id, booking_id in result.all():
        bookings.setdefault(interval_id, []).append(booking_id)

    report = []
    for interval in intervals:
        total, left = capacity.get(interval.id, (0, 0))
        booked_seconds = booked.get((lane_id, interval.id), 0)
        # 100 % est plein, au-delà c'est de la surréservation / 100% is full, above is overbooking
        utilization = round(booked_seconds / total * 100, 1) if total > 0 else 0.0
        report.append(IntervalCapacityReport(
            interval_id=interval.id,
            starts_at=interval.starts_at,
            ends_at=interval.ends_at,
            total_capacity_seconds=total,
            remaining_seconds=left,
            booked_seconds=booked_seconds,
            utilization_percent=utilization,
            is_overbooked=booked_seconds > total,
            excess_seconds=max(0, booked_seconds - total),
            booking_ids=bookings.get(interval.id, []),
        ))
    return report
