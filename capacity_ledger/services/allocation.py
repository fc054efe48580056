"""
Moteur d'allocation / Allocation engine.

1. Découverte des créneaux qui coupent la fenêtre de livraison.
2. Remplissage glouton de gauche à droite (durée murale uniquement).
3. Écriture atomique : réservation, allocations, capacité de voie, compteurs de contribution.
1. Discover the intervals meeting the delivery window.
2. Greedy left-to-right fill (wall-clock overlap only).
3. Atomic commit: booking, allocations, lane capacity, contribution counters.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from capacity_ledger.config import settings
from capacity_ledger.exceptions import (
    CapabilityMismatch,
    CapacityExceeded,
    IntervalsMissing,
    InvalidBookingRequest,
    LaneClosedForBookings,
    LaneNotFound,
)
from capacity_ledger.models.booking import Booking, BookingInterval, BookingIntervalContribution, BookingStatus
from capacity_ledger.models.capacity_interval import CapacityInterval
from capacity_ledger.models.lane import Lane
from capacity_ledger.models.sales_item import SalesItem
from capacity_ledger.services.audit_trail import record_audit
from capacity_ledger.services.contribution_store import deduct_proportionally, lock_contribution_intervals
from capacity_ledger.services.interval_store import (
    ensure_lane_capacity_rows,
    find_overlapping_intervals,
    lock_lane_capacity,
)
from capacity_ledger.services.ledger_transaction import run_ledger_transaction
from capacity_ledger.utils.timeutils import overlap_seconds, to_naive_utc, utcnow

logger = logging.getLogger(__name__)

# Champs de métadonnées recopiés sur la réservation / Metadata fields copied onto the booking
BOOKING_METADATA_FIELDS = (
    "user_id",
    "address_id",
    "vehicle_make",
    "vehicle_model",
    "vehicle_year",
    "vehicle_registration",
    "customer_notes",
    "admin_notes",
)


@dataclass
class BookingRequest:
    """Demande de réservation confirmée / Confirmed booking request.

    `required_seconds` à None = somme des durées des prestations.
    `required_seconds` None = sum of the sales item durations.
    """
    lane_id: int
    window_start: datetime
    window_end: datetime
    required_seconds: int | None = None
    metadata: dict = field(default_factory=dict)
    required_capability_ids: set[int] = field(default_factory=set)
    sales_item_ids: list[int] = field(default_factory=list)
    user: str | None = None


@dataclass(frozen=True)
class IntervalAllocation:
    interval_id: int
    booked_seconds: int


def distribute_service_time(
    intervals: list[CapacityInterval],
    required_seconds: int,
    window_start: datetime,
    window_end: datetime,
) -> list[IntervalAllocation]:
    """
    Répartir la durée de service sur les créneaux / Spread the service time over the intervals.

    Fonction pure des bornes : chaque créneau reçoit min(reste à placer, chevauchement),
    sans consulter la capacité restante. S'arrête quand tout est placé.
    Pure function of the boundaries: each interval gets min(remaining, overlap),
    without looking at remaining capacity. Stops once everything is placed.
    """
    allocations: list[IntervalAllocation] = []
    remaining = required_seconds
    for interval in sorted(intervals, key=lambda i: i.starts_at):
        if remaining <= 0:
            break
        overlap = overlap_seconds(window_start, window_end, interval.starts_at, interval.ends_at)
        if overlap <= 0:
            continue
        booked = min(remaining, overlap)
        allocations.append(IntervalAllocation(interval_id=interval.id, booked_seconds=booked))
        remaining -= booked
    return allocations


def _validate(request: BookingRequest) -> tuple[datetime, datetime]:
    start = to_naive_utc(request.window_start)
    end = to_naive_utc(request.window_end)
    if end <= start:
        raise InvalidBookingRequest("Delivery window must end after it starts")
    if request.required_seconds is not None and request.required_seconds <= 0:
        raise InvalidBookingRequest("Required service time must be positive")
    if request.required_seconds is None and not request.sales_item_ids:
        raise InvalidBookingRequest("Either required seconds or sales items must be given")
    return start, end


async def _load_sales_items(session: AsyncSession, sales_item_ids: list[int]) -> list[SalesItem]:
    if not sales_item_ids:
        return []
    result = await session.execute(select(SalesItem).where(SalesItem.id.in_(sales_item_ids)))
    items = list(result.scalars().all())
    unknown = set(sales_item_ids) - {item.id for item in items}
    if unknown:
        raise InvalidBookingRequest(f"Unknown sales items: {sorted(unknown)}")
    return items


async def _allocate(
    session: AsyncSession,
    request: BookingRequest,
    window_start: datetime,
    window_end: datetime,
    allow_overbooking: bool,
    now: datetime,
) -> int:
    lane = await session.get(Lane, request.lane_id)
    if lane is None:
        raise LaneNotFound()
    if lane.is_closed_for_bookings(now):
        raise LaneClosedForBookings()

    sales_items = await _load_sales_items(session, request.sales_item_ids)
    required_capabilities = set(request.required_capability_ids)
    for item in sales_items:
        required_capabilities |= {c.id for c in item.capabilities}
    if not required_capabilities.issubset(lane.capability_ids):
        raise CapabilityMismatch()

    required_seconds = request.required_seconds
    if required_seconds is None:
        items_by_id = {item.id: item for item in sales_items}
        required_seconds = sum(items_by_id[i].service_time_seconds for i in request.sales_item_ids)
        if required_seconds <= 0:
            raise InvalidBookingRequest("Sales items carry no service time")

    # Étape 1 : découverte / Step 1: discovery
    intervals = await find_overlapping_intervals(session, window_start, window_end)
    if not intervals:
        raise IntervalsMissing()

    # Étape 2 : répartition / Step 2: distribution
    allocations = distribute_service_time(intervals, required_seconds, window_start, window_end)
    unallocated = required_seconds - sum(a.booked_seconds for a in allocations)
    if unallocated > 0:
        logger.warning(
            "Lane %s: %ds of %ds do not fit the delivery window %s-%s and stay unallocated",
            lane.id, unallocated, required_seconds, window_start, window_end,
        )

    # Étape 3 : verrous puis écriture / Step 3: locks then commit
    interval_ids = [a.interval_id for a in allocations]
    await ensure_lane_capacity_rows(session, lane.id, interval_ids)
    capacities = await lock_lane_capacity(session, lane.id, interval_ids)
    contributions = await lock_contribution_intervals(session, lane.id, interval_ids)

    for allocation in allocations:
        remaining = sum(row.remaining_seconds for row in contributions.get(allocation.interval_id, []))
        if allocation.booked_seconds <= remaining:
            continue
        if not allow_overbooking:
            raise CapacityExceeded(
                f"Interval {allocation.interval_id} has {remaining}s left on lane {lane.id}, "
                f"{allocation.booked_seconds}s requested"
            )
        logger.warning(
            "Overbooking lane %s interval %s: %ds requested, %ds left",
            lane.id, allocation.interval_id, allocation.booked_seconds, remaining,
        )

    metadata = {key: value for key, value in request.metadata.items() if key in BOOKING_METADATA_FIELDS}
    booking = Booking(
        lane_id=lane.id,
        delivery_window_starts_at=window_start,
        delivery_window_ends_at=window_end,
        service_time_seconds=required_seconds,
        status=BookingStatus.CONFIRMED,
        has_contribution_breakdown=True,
        sales_items=sales_items,
        **metadata,
    )
    session.add(booking)
    await session.flush()

    for allocation in allocations:
        session.add(BookingInterval(
            booking_id=booking.id,
            interval_id=allocation.interval_id,
            booked_seconds=allocation.booked_seconds,
        ))
        capacities[allocation.interval_id].total_booked_seconds += allocation.booked_seconds

        rows = contributions.get(allocation.interval_id, [])
        for row, deducted in deduct_proportionally(rows, allocation.booked_seconds):
            session.add(BookingIntervalContribution(
                booking_id=booking.id,
                interval_id=allocation.interval_id,
                contribution_id=row.contribution_id,
                deducted_seconds=deducted,
            ))

    record_audit(
        session, "booking", booking.id, "ALLOCATE",
        {
            "lane_id": lane.id,
            "service_time_seconds": required_seconds,
            "allocations": {str(a.interval_id): a.booked_seconds for a in allocations},
        },
        user=request.user,
    )
    await session.flush()

    logger.info("Booking %s confirmed on lane %s across %d intervals", booking.id, lane.id, len(allocations))
    return booking.id


async def allocate_booking(
    request: BookingRequest,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    allow_overbooking: bool | None = None,
    now: datetime | None = None,
) -> int:
    """
    Créer une réservation et débiter le registre / Create a booking and debit the ledger.

    Lève IntervalsMissing, CapacityExceeded, LaneNotFound, LaneClosedForBookings,
    CapabilityMismatch, InvalidBookingRequest ou ConcurrencyConflict.
    Raises IntervalsMissing, CapacityExceeded, LaneNotFound, LaneClosedForBookings,
    CapabilityMismatch, InvalidBookingRequest or ConcurrencyConflict.
    """
    window_start, window_end = _validate(request)
    overbook = settings.ALLOW_OVERBOOKING if allow_overbooking is None else allow_overbooking
    now = to_naive_utc(now) if now else utcnow()

    async def operation(session: AsyncSession) -> int:
        return await _allocate(session, request, window_start, window_end, overbook, now)

    return await run_ledger_transaction(operation, session_factory, label=f"allocate lane={request.lane_id}")
