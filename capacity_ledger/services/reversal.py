"""
Moteur d'annulation / Reversal engine.

Rejoue à l'envers les écritures de l'allocation à partir des lignes
BookingInterval (journal) et BookingIntervalContribution (détail), dans une
seule transaction. Les lignes du journal sont conservées.
Replays the allocation's writes backwards from the BookingInterval rows (log)
and BookingIntervalContribution rows (breakdown), in a single transaction.
The log rows are kept.
"""

import logging
from collections import defaultdict
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from capacity_ledger.exceptions import (
    AlreadyCancelled,
    BookingNotCancellable,
    BookingNotFound,
    CancellationWindowClosed,
)
from capacity_ledger.models.booking import Booking, BookingInterval, BookingIntervalContribution, BookingStatus
from capacity_ledger.models.lane import Lane
from capacity_ledger.services.audit_trail import record_audit
from capacity_ledger.services.contribution_store import (
    lock_contribution_intervals,
    restore_evenly,
    restore_recorded,
)
from capacity_ledger.services.interval_store import lock_lane_capacity
from capacity_ledger.services.ledger_transaction import run_ledger_transaction
from capacity_ledger.utils.timeutils import to_naive_utc, utcnow

logger = logging.getLogger(__name__)


async def _load_breakdown(session: AsyncSession, booking_id: int) -> dict[int, dict[int, int]]:
    """Détail {créneau: {contribution: secondes}} / Breakdown {interval: {contribution: seconds}}."""
    result = await session.execute(
        select(BookingIntervalContribution).where(BookingIntervalContribution.booking_id == booking_id)
    )
    breakdown: dict[int, dict[int, int]] = defaultdict(dict)
    for row in result.scalars().all():
        breakdown[row.interval_id][row.contribution_id] = row.deducted_seconds
    return breakdown


async def _reverse(session: AsyncSession, booking_id: int, now: datetime, user: str | None) -> None:
    result = await session.execute(
        select(Booking).where(Booking.id == booking_id).with_for_update().execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise BookingNotFound()
    if booking.status == BookingStatus.CANCELLED:
        raise AlreadyCancelled()
    if booking.status != BookingStatus.CONFIRMED:
        raise BookingNotCancellable(f"Booking is {booking.status.value}")

    lane = await session.get(Lane, booking.lane_id)
    if lane is not None and lane.is_closed_for_cancellations(now):
        raise CancellationWindowClosed()

    result = await session.execute(
        select(BookingInterval).where(BookingInterval.booking_id == booking_id).order_by(BookingInterval.interval_id)
    )
    booking_intervals = list(result.scalars().all())
    interval_ids = [bi.interval_id for bi in booking_intervals]

    capacities = await lock_lane_capacity(session, booking.lane_id, interval_ids)
    contributions = await lock_contribution_intervals(session, booking.lane_id, interval_ids)
    breakdown = await _load_breakdown(session, booking_id) if booking.has_contribution_breakdown else None

    released: dict[str, int] = {}
    for bi in booking_intervals:
        capacity = capacities.get(bi.interval_id)
        if capacity is None:
            logger.warning("Booking %s: no capacity row for lane %s interval %s", booking_id, booking.lane_id, bi.interval_id)
        else:
            capacity.total_booked_seconds = max(0, capacity.total_booked_seconds - bi.booked_seconds)

        rows = contributions.get(bi.interval_id, [])
        if breakdown is not None:
            restored = restore_recorded(rows, breakdown.get(bi.interval_id, {}))
        else:
            restored = restore_evenly(rows, bi.booked_seconds)
        released[str(bi.interval_id)] = restored

    booking.status = BookingStatus.CANCELLED
    booking.cancelled_at = now

    record_audit(
        session, "booking", booking.id, "REVERSE",
        {"lane_id": booking.lane_id, "restored": released},
        user=user,
    )
    await session.flush()
    logger.info("Booking %s cancelled, %d intervals released", booking_id, len(booking_intervals))


async def reverse_booking(
    booking_id: int,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    now: datetime | None = None,
    user: str | None = None,
) -> None:
    """
    Annuler une réservation et recréditer le registre / Cancel a booking and credit the ledger back.

    Lève BookingNotFound, AlreadyCancelled, BookingNotCancellable,
    CancellationWindowClosed ou ConcurrencyConflict.
    Raises BookingNotFound, AlreadyCancelled, BookingNotCancellable,
    CancellationWindowClosed or ConcurrencyConflict.
    """
    now = to_naive_utc(now) if now else utcnow()

    async def operation(session: AsyncSession) -> None:
        await _reverse(session, booking_id, now, user)

    await run_ledger_transaction(operation, session_factory, label=f"reverse booking={booking_id}")
