"""
Accès aux créneaux et à la capacité réservée / Interval and booked-capacity data access.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from capacity_ledger.models.capacity_interval import CapacityInterval
from capacity_ledger.models.lane_interval_capacity import LaneIntervalCapacity
from capacity_ledger.services.ledger_transaction import dialect_name


async def intervals_for_date(session: AsyncSession, date: str) -> list[CapacityInterval]:
    """Créneaux d'une date, triés / Intervals of a date, ordered."""
    result = await session.execute(
        select(CapacityInterval).where(CapacityInterval.date == date).order_by(CapacityInterval.starts_at)
    )
    return list(result.scalars().all())


async def find_overlapping_intervals(session: AsyncSession, start: datetime, end: datetime) -> list[CapacityInterval]:
    """Créneaux dont [starts_at, ends_at) coupe [start, end) / Intervals whose [starts_at, ends_at) meets [start, end)."""
    result = await session.execute(
        select(CapacityInterval)
        .where(CapacityInterval.starts_at < end, CapacityInterval.ends_at > start)
        .order_by(CapacityInterval.starts_at)
    )
    return list(result.scalars().all())


async def booked_seconds_by_key(
    session: AsyncSession,
    interval_ids: list[int],
    lane_ids: list[int] | None = None,
) -> dict[tuple[int, int], int]:
    """Secondes réservées en cache par (voie, créneau) / Cached booked seconds per (lane, interval)."""
    if not interval_ids:
        return {}
    query = select(
        LaneIntervalCapacity.lane_id,
        LaneIntervalCapacity.interval_id,
        func.coalesce(LaneIntervalCapacity.total_booked_seconds, 0),
    ).where(LaneIntervalCapacity.interval_id.in_(interval_ids))
    if lane_ids is not None:
        query = query.where(LaneIntervalCapacity.lane_id.in_(lane_ids))
    result = await session.execute(query)
    return {(lane_id, interval_id): booked for lane_id, interval_id, booked in result.all()}


async def ensure_lane_capacity_rows(session: AsyncSession, lane_id: int, interval_ids: list[int]) -> None:
    """Créer les lignes manquantes sans écraser l'existant / Create missing rows without touching existing ones.

    INSERT ... ON CONFLICT DO NOTHING : deux allocations concurrentes ne se
    heurtent pas sur la clé primaire.
    INSERT ... ON CONFLICT DO NOTHING: two concurrent allocations do not
    collide on the primary key.
    """
    if not interval_ids:
        return
    rows = [
        {"lane_id": lane_id, "interval_id": interval_id, "total_booked_seconds": 0, "version": 1}
        for interval_id in sorted(set(interval_ids))
    ]
    name = dialect_name(session)
    if name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        existing = await lock_lane_capacity(session, lane_id, interval_ids)
        for row in rows:
            if row["interval_id"] not in existing:
                session.add(LaneIntervalCapacity(**row))
        await session.flush()
        return

    stmt = insert(LaneIntervalCapacity.__table__).values(rows).on_conflict_do_nothing(
        index_elements=["lane_id", "interval_id"]
    )
    await session.execute(stmt)


async def lock_lane_capacity(
    session: AsyncSession, lane_id: int, interval_ids: list[int]
) -> dict[int, LaneIntervalCapacity]:
    """Verrouiller les lignes (voie, créneau) par ordre de créneau / Lock (lane, interval) rows in interval order."""
    if not interval_ids:
        return {}
    result = await session.execute(
        select(LaneIntervalCapacity)
        .where(LaneIntervalCapacity.lane_id == lane_id, LaneIntervalCapacity.interval_id.in_(interval_ids))
        .order_by(LaneIntervalCapacity.interval_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return {row.interval_id: row for row in result.scalars().all()}
