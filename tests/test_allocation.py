"""Tests du moteur d'allocation / Allocation engine tests."""

from datetime import timezone

import pytest
from sqlalchemy import func, select

from capacity_ledger.exceptions import (
    CapabilityMismatch,
    CapacityExceeded,
    IntervalsMissing,
    InvalidBookingRequest,
    LaneClosedForBookings,
    LaneNotFound,
)
from capacity_ledger.models.audit import AuditLog
from capacity_ledger.models.booking import Booking, BookingInterval, BookingIntervalContribution, BookingStatus
from capacity_ledger.services.allocation import BookingRequest, allocate_booking
from tests.conftest import DAY, at


async def _breakdown(session_factory, booking_id):
    async with session_factory() as session:
        result = await session.execute(
            select(BookingIntervalContribution.contribution_id, BookingIntervalContribution.deducted_seconds)
            .where(BookingIntervalContribution.booking_id == booking_id)
            .order_by(BookingIntervalContribution.interval_id, BookingIntervalContribution.contribution_id)
        )
        return [tuple(row) for row in result.all()]


@pytest.mark.asyncio
async def test_single_contribution_scenario(ledger, session_factory):
    await ledger.intervals()
    lane_id = await ledger.lane()
    contribution_id = await ledger.contribution(lane_id, "09:00", "09:30", 1800)
    interval_id = await ledger.interval_id("09:00")

    booking_id = await allocate_booking(
        BookingRequest(lane_id=lane_id, window_start=at("09:00"), window_end=at("09:30"), required_seconds=900),
        session_factory,
    )

    assert await ledger.remaining(contribution_id, interval_id) == 900
    assert await ledger.booked(lane_id, interval_id) == 900
    async with session_factory() as session:
        booking = await session.get(Booking, booking_id)
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.service_time_seconds == 900
        rows = (await session.execute(select(BookingInterval).where(BookingInterval.booking_id == booking_id))).scalars().all()
        assert [(r.interval_id, r.booked_seconds) for r in rows] == [(interval_id, 900)]
        audits = await session.scalar(select(func.count()).select_from(AuditLog).where(AuditLog.action == "ALLOCATE"))
        assert audits == 1


@pytest.mark.asyncio
async def test_proportional_deduction(ledger, session_factory):
    await ledger.intervals()
    lane_id = await ledger.lane()
    first = await ledger.contribution(lane_id, "09:00", "09:30", 1800, worker_id=1)
    second = await ledger.contribution(lane_id, "09:00", "09:30", 900, worker_id=2)
    interval_id = await ledger.interval_id("09:00")

    booking_id = await allocate_booking(
        BookingRequest(lane_id=lane_id, window_start=at("09:00"), window_end=at("09:30"), required_seconds=900),
        session_factory,
    )

    assert await ledger.remaining(first, interval_id) == 1200
    assert await ledger.remaining(second, interval_id) == 600
    assert await _breakdown(session_factory, booking_id) == [(first, 600), (second, 300)]


@pytest.mark.asyncio
async def test_allocation_is_deterministic(ledger, session_factory):
    await ledger.intervals()
    splits = []
    for name in ("Lane A", "Lane B"):
        lane_id = await ledger.lane(name)
        await ledger.contribution(lane_id, "09:00", "10:00", 3000, worker_id=1)
        await ledger.contribution(lane_id, "09:00", "10:00", 1000, worker_id=2)
        booking_id = await allocate_booking(
            BookingRequest(lane_id=lane_id, window_start=at("09:10"), window_end=at("10:00"), required_seconds=1900),
            session_factory,
        )
        async with session_factory() as session:
            result = await session.execute(
                select(BookingInterval.booked_seconds).where(BookingInterval.booking_id == booking_id)
                .order_by(BookingInterval.interval_id)
            )
            booked = list(result.scalars().all())
        splits.append((booked, [d for _, d in await _breakdown(session_factory, booking_id)]))

    assert splits[0] == splits[1]
    assert splits[0][0] == [1200, 700]


@pytest.mark.asyncio
async def test_spreads_over_several_intervals(ledger, session_factory):
    await ledger.intervals()
    lane_id = await ledger.lane()
    contribution_id = await ledger.contribution(lane_id, "09:00", "10:00", 3600)
    first = await ledger.interval_id("09:00")
    second = await ledger.interval_id("09:30")

    await allocate_booking(
        BookingRequest(
            lane_id=lane_id,
            window_start=at("09:00").replace(tzinfo=timezone.utc),
            window_end=at("10:00").replace(tzinfo=timezone.utc),
            required_seconds=2400,
        ),
        session_factory,
    )

    assert await ledger.booked(lane_id, first) == 1800
    assert await ledger.booked(lane_id, second) == 600
    assert await ledger.remaining(contribution_id, first) == 0
    assert await ledger.remaining(contribution_id, second) == 1200


@pytest.mark.asyncio
async def test_capacity_exceeded_leaves_ledger_untouched(ledger, session_factory):
    await ledger.intervals()
    lane_id = await ledger.lane()
    contribution_id = await ledger.contribution(lane_id, "09:00", "09:30", 1800)
    interval_id = await ledger.interval_id("09:00")
    request = BookingRequest(lane_id=lane_id, window_start=at("09:00"), window_end=at("09:30"), required_seconds=1200)

    await allocate_booking(request, session_factory)
    with pytest.raises(CapacityExceeded):
        await allocate_booking(request, session_factory)

    assert await ledger.remaining(contribution_id, interval_id) == 600
    assert await ledger.booked(lane_id, interval_id) == 1200
    async with session_factory() as session:
        assert await session.scalar(select(func.count()).select_from(Booking)) == 1


@pytest.mark.asyncio
async def test_overbooking_when_allowed(ledger, session_factory):
    await ledger.intervals()
    lane_id = await ledger.lane()
    await ledger.contribution(lane_id, "09:00", "09:30", 1800)
    later = await ledger.interval_id("09:30")

    await allocate_booking(
        BookingRequest(lane_id=lane_id, window_start=at("09:00"), window_end=at("10:00"), required_seconds=2400),
        session_factory,
        allow_overbooking=True,
    )

    # Aucune contribution sur 09:30 : réservé sans capacité / No contribution at 09:30: booked without capacity
    assert await ledger.booked(lane_id, later) == 600


@pytest.mark.asyncio
async def test_unplaced_seconds_stay_unallocated(ledger, session_factory):
    await ledger.intervals()
    lane_id = await ledger.lane()
    await ledger.contribution(lane_id, "09:00", "10:00", 3600)
    interval_id = await ledger.interval_id("09:00")

    booking_id = await allocate_booking(
        BookingRequest(lane_id=lane_id, window_start=at("09:00"), window_end=at("09:30"), required_seconds=2400),
        session_factory,
    )

    assert await ledger.booked(lane_id, interval_id) == 1800
    async with session_factory() as session:
        booking = await session.get(Booking, booking_id)
        assert booking.service_time_seconds == 2400


@pytest.mark.asyncio
async def test_intervals_missing(ledger, session_factory):
    lane_id = await ledger.lane()
    with pytest.raises(IntervalsMissing):
        await allocate_booking(
            BookingRequest(lane_id=lane_id, window_start=at("09:00"), window_end=at("09:30"), required_seconds=900),
            session_factory,
        )


@pytest.mark.asyncio
async def test_lane_checks(ledger, session_factory):
    await ledger.intervals()
    alignment = await ledger.capability("alignment")
    closed = await ledger.lane("Closed", closed_for_new_bookings_at=at("00:00", DAY.replace(year=2020)))
    plain = await ledger.lane("Plain")

    with pytest.raises(LaneNotFound):
        await allocate_booking(
            BookingRequest(lane_id=9999, window_start=at("09:00"), window_end=at("09:30"), required_seconds=900),
            session_factory,
        )
    with pytest.raises(LaneClosedForBookings):
        await allocate_booking(
            BookingRequest(lane_id=closed, window_start=at("09:00"), window_end=at("09:30"), required_seconds=900),
            session_factory,
        )
    with pytest.raises(CapabilityMismatch):
        await allocate_booking(
            BookingRequest(
                lane_id=plain, window_start=at("09:00"), window_end=at("09:30"), required_seconds=900,
                required_capability_ids={alignment},
            ),
            session_factory,
        )


@pytest.mark.asyncio
async def test_invalid_requests(ledger, session_factory):
    lane_id = await ledger.lane()
    with pytest.raises(InvalidBookingRequest):
        await allocate_booking(
            BookingRequest(lane_id=lane_id, window_start=at("09:30"), window_end=at("09:00"), required_seconds=900),
            session_factory,
        )
    with pytest.raises(InvalidBookingRequest):
        await allocate_booking(
            BookingRequest(lane_id=lane_id, window_start=at("09:00"), window_end=at("09:30")),
            session_factory,
        )
    with pytest.raises(InvalidBookingRequest):
        await allocate_booking(
            BookingRequest(lane_id=lane_id, window_start=at("09:00"), window_end=at("09:30"), sales_item_ids=[404]),
            session_factory,
        )


@pytest.mark.asyncio
async def test_service_time_from_sales_items(ledger, session_factory):
    await ledger.intervals()
    tyres = await ledger.capability("tyres")
    item = await ledger.sales_item("Tyre change", 600, [tyres])
    lane_id = await ledger.lane(capability_ids=[tyres])
    await ledger.contribution(lane_id, "09:00", "10:00", 3600)

    booking_id = await allocate_booking(
        BookingRequest(
            lane_id=lane_id, window_start=at("09:00"), window_end=at("10:00"),
            sales_item_ids=[item, item], metadata={"vehicle_make": "Volvo", "status": "cancelled"},
        ),
        session_factory,
    )

    async with session_factory() as session:
        booking = await session.get(Booking, booking_id)
        assert booking.service_time_seconds == 1200
        assert booking.vehicle_make == "Volvo"
        assert booking.status == BookingStatus.CONFIRMED
