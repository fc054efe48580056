"""
Service de disponibilité / Availability query service.

Lecture seule : aucune écriture, aucun verrou, aucune erreur métier.
Le résultat est un instantané sans garantie de fraîcheur ; l'allocation
revérifie la capacité sous verrou.
Read-only: no writes, no locks, no domain errors. The result is a
point-in-time snapshot; allocation re-checks capacity under lock.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from capacity_ledger.models.lane import Lane
from capacity_ledger.models.sales_item import SalesItem
from capacity_ledger.services.contribution_store import remaining_by_key
from capacity_ledger.services.interval_store import booked_seconds_by_key, intervals_for_date
from capacity_ledger.utils.timeutils import local_hhmm, to_naive_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass
class AvailabilitySlot:
    interval_id: int
    lane_id: int
    lane_name: str
    starts_at: datetime
    ends_at: datetime
    available_seconds: int


async def resolve_sales_items(session: AsyncSession, sales_item_ids: list[int]) -> tuple[set[int], int]:
    """
    Compétences requises et durée totale des prestations /
    Required capabilities and total service time of the sales items.

    Retourne (ids de compétences, secondes) / Returns (capability ids, seconds).
    Les ids inconnus sont ignorés / Unknown ids are ignored.
    """
    if not sales_item_ids:
        return set(), 0
    result = await session.execute(select(SalesItem).where(SalesItem.id.in_(sales_item_ids)))
    items = result.scalars().all()
    capability_ids = {c.id for item in items for c in item.capabilities}
    # Une prestation demandée deux fois compte deux fois / An item requested twice counts twice
    seconds_by_id = {item.id: item.service_time_seconds for item in items}
    total_seconds = sum(seconds_by_id.get(item_id, 0) for item_id in sales_item_ids)
    return capability_ids, total_seconds


async def _candidate_lanes(session: AsyncSession, candidate_lane_ids: list[int] | None) -> list[Lane]:
    if candidate_lane_ids is None:
        result = await session.execute(select(Lane).order_by(Lane.id))
        return list(result.scalars().all())
    if not candidate_lane_ids:
        return []
    result = await session.execute(select(Lane).where(Lane.id.in_(candidate_lane_ids)))
    by_id = {lane.id: lane for lane in result.scalars().all()}
    # Conserver l'ordre demandé / Keep the requested order
    ordered: list[Lane] = []
    for lane_id in candidate_lane_ids:
        lane = by_id.pop(lane_id, None)
        if lane is not None:
            ordered.append(lane)
    return ordered


async def query_availability(
    session: AsyncSession,
    date: str,
    required_capability_ids: set[int] | list[int],
    candidate_lane_ids: list[int] | None,
    required_seconds: int,
    now: datetime | None = None,
) -> list[AvailabilitySlot]:
    """
    Créneaux (créneau, voie) avec assez de capacité libre / (interval, lane) slots with enough spare capacity.

    available = somme(remaining_seconds) - total_booked_seconds, pour la voie et le créneau.
    available = sum(remaining_seconds) - total_booked_seconds, for the lane and interval.

    `candidate_lane_ids` à None = toutes les voies ; liste vide = aucune voie.
    `candidate_lane_ids` None = every lane; empty list = no lane.
    """
    now = to_naive_utc(now) if now else utcnow()
    required = set(required_capability_ids)

    intervals = await intervals_for_date(session, date)
    if not intervals:
        logger.info("No capacity intervals for %s", date)
        return []

    lanes = []
    for lane in await _candidate_lanes(session, candidate_lane_ids):
        if lane.is_closed_for_bookings(now):
            logger.debug("Lane %s is closed for new bookings", lane.name)
            continue
        if not required.issubset(lane.capability_ids):
            logger.debug("Lane %s missing required capabilities", lane.name)
            continue
        lanes.append(lane)
    if not lanes:
        return []

    interval_ids = [interval.id for interval in intervals]
    lane_ids = [lane.id for lane in lanes]
    remaining = await remaining_by_key(session, interval_ids, lane_ids)
    booked = await booked_seconds_by_key(session, interval_ids, lane_ids)

    slots: list[AvailabilitySlot] = []
    for interval in intervals:
        for lane in lanes:
            start_hhmm = local_hhmm(interval.starts_at, lane.time_zone)
            if start_hhmm < lane.open_time or start_hhmm >= lane.close_time:
                continue
            key = (lane.id, interval.id)
            available = remaining.get(key, 0) - booked.get(key, 0)
            if available >= required_seconds:
                slots.append(AvailabilitySlot(
                    interval_id=interval.id,
                    lane_id=lane.id,
                    lane_name=lane.name,
                    starts_at=interval.starts_at,
                    ends_at=interval.ends_at,
                    available_seconds=available,
                ))

    logger.info("Found %d available slots on %s for %ds", len(slots), date, required_seconds)
    return slots
