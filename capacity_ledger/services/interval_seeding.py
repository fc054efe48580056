"""
Génération des créneaux et des compteurs dérivés / Interval and derived counter generation.

Les créneaux couvrent chaque journée UTC de bout en bout ; les horaires
d'ouverture des voies sont appliqués au moment de la recherche.
Intervals cover each UTC day end to end; lane opening hours are applied at
query time.
"""

import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from capacity_ledger.config import settings
from capacity_ledger.exceptions import ContributionInUse
from capacity_ledger.models.booking import BookingIntervalContribution
from capacity_ledger.models.capacity_interval import CapacityInterval
from capacity_ledger.models.worker_contribution import ContributionInterval, WorkerContribution
from capacity_ledger.services.interval_store import find_overlapping_intervals
from capacity_ledger.utils.apportion import apportion
from capacity_ledger.utils.timeutils import iter_dates, overlap_seconds

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


async def generate_capacity_intervals(
    session: AsyncSession,
    start_date: date,
    end_date: date,
    interval_minutes: int | None = None,
) -> int:
    """
    Créer les créneaux manquants de start_date à end_date inclus /
    Create the missing intervals from start_date to end_date inclusive.

    Idempotent : un créneau déjà présent (mêmes bornes) est ignoré. Lève
    ValueError si un créneau existant de la plage sort de la grille demandée.
    Idempotent: an existing interval (same bounds) is skipped. Raises
    ValueError when an existing interval in the range is off the requested grid.
    """
    minutes = interval_minutes or settings.INTERVAL_MINUTES
    if minutes <= 0 or MINUTES_PER_DAY % minutes:
        raise ValueError(f"Interval length must divide a day evenly, got {minutes} minutes")
    if end_date < start_date:
        raise ValueError("end_date must not be before start_date")

    range_start = datetime.combine(start_date, time.min)
    range_end = datetime.combine(end_date + timedelta(days=1), time.min)
    step = timedelta(minutes=minutes)
    result = await session.execute(
        select(CapacityInterval.starts_at, CapacityInterval.ends_at).where(
            CapacityInterval.starts_at < range_end, CapacityInterval.ends_at > range_start
        )
    )
    existing = set()
    for starts_at, ends_at in result.all():
        offset = starts_at - datetime.combine(starts_at.date(), time.min)
        if ends_at - starts_at != step or offset % step:
            raise ValueError(
                f"Existing interval {starts_at:%Y-%m-%d %H:%M}-{ends_at:%H:%M} is not on the {minutes}-minute grid"
            )
        existing.add(starts_at)

    created = 0
    for day in iter_dates(start_date, end_date):
        cursor = datetime.combine(day, time.min)
        day_end = cursor + timedelta(days=1)
        while cursor < day_end:
            if cursor not in existing:
                session.add(CapacityInterval(starts_at=cursor, ends_at=cursor + step, date=day.isoformat()))
                created += 1
            cursor += step
    await session.flush()
    logger.info("Generated %d capacity intervals (%s..%s, %d min)", created, start_date, end_date, minutes)
    return created


def contribution_shares(contribution: WorkerContribution, intervals: list[CapacityInterval]) -> dict[int, int]:
    """
    Part de la contribution par créneau / Contribution share per interval.

    available_seconds est étalé sur la plage du poste au prorata du chevauchement ;
    la partie hors créneaux générés n'est attribuée à aucun créneau.
    available_seconds is spread over the shift in proportion to overlap; the
    part outside the generated intervals goes to no interval.
    """
    window = max(0, int((contribution.ends_at - contribution.starts_at).total_seconds()))
    overlaps = [
        overlap_seconds(contribution.starts_at, contribution.ends_at, interval.starts_at, interval.ends_at)
        for interval in intervals
    ]
    uncovered = max(0, window - sum(overlaps))
    shares = apportion(contribution.available_seconds, overlaps + [uncovered])
    return {interval.id: share for interval, share in zip(intervals, shares) if share > 0}


async def sync_contribution_intervals(session: AsyncSession, contribution_ids: list[int] | None = None) -> int:
    """Créer les compteurs dérivés manquants / Create the missing derived counters."""
    query = select(WorkerContribution).order_by(WorkerContribution.id)
    if contribution_ids is not None:
        query = query.where(WorkerContribution.id.in_(contribution_ids))
    contributions = (await session.execute(query)).scalars().all()

    created = 0
    for contribution in contributions:
        intervals = await find_overlapping_intervals(session, contribution.starts_at, contribution.ends_at)
        if not intervals:
            continue
        result = await session.execute(
            select(ContributionInterval.interval_id).where(ContributionInterval.contribution_id == contribution.id)
        )
        existing = set(result.scalars().all())
        for interval_id, share in contribution_shares(contribution, intervals).items():
            if interval_id in existing:
                continue
            session.add(ContributionInterval(
                contribution_id=contribution.id,
                interval_id=interval_id,
                remaining_seconds=share,
                original_seconds=share,
            ))
            created += 1
    await session.flush()
    logger.info("Derived %d contribution intervals from %d contributions", created, len(contributions))
    return created


async def regenerate_contribution_intervals(session: AsyncSession, contribution_id: int) -> int:
    """
    Reconstruire les compteurs d'une contribution modifiée / Rebuild the counters of an edited contribution.

    Refusé dès qu'une réservation a consommé de sa capacité.
    Refused as soon as a booking has consumed its capacity.
    """
    result = await session.execute(
        select(ContributionInterval)
        .where(ContributionInterval.contribution_id == contribution_id)
        .with_for_update()
    )
    rows = result.scalars().all()
    if any(row.remaining_seconds != row.original_seconds for row in rows):
        raise ContributionInUse()
    used = await session.scalar(
        select(BookingIntervalContribution.booking_id)
        .where(BookingIntervalContribution.contribution_id == contribution_id)
        .limit(1)
    )
    if used is not None:
        raise ContributionInUse()

    for row in rows:
        await session.delete(row)
    await session.flush()
    logger.info("Cleared %d derived intervals of contribution %s", len(rows), contribution_id)
    return await sync_contribution_intervals(session, [contribution_id])
