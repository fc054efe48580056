"""Tests des modèles / Model tests."""

from datetime import datetime

from capacity_ledger.models.booking import BookingStatus
from capacity_ledger.models.capacity_interval import CapacityInterval
from capacity_ledger.models.lane import Capability, Lane
from capacity_ledger.models.worker_contribution import ContributionInterval


def test_lane_repr():
    lane = Lane(id=1, name="Lane A", open_time="08:00", close_time="17:00")
    assert "Lane A" in repr(lane)


def test_enums():
    assert BookingStatus.CONFIRMED.value == "confirmed"
    assert BookingStatus.CANCELLED.value == "cancelled"
    assert BookingStatus.COMPLETED.value == "completed"


def test_interval_duration():
    interval = CapacityInterval(
        starts_at=datetime(2026, 11, 2, 9, 0), ends_at=datetime(2026, 11, 2, 9, 30), date="2026-11-02"
    )
    assert interval.duration_seconds == 1800


def test_consumed_seconds():
    row = ContributionInterval(contribution_id=1, interval_id=1, remaining_seconds=600, original_seconds=1800)
    assert row.consumed_seconds == 1200


def test_lane_closures():
    cutoff = datetime(2026, 11, 1, 18, 0)
    lane = Lane(name="Lane A", closed_for_new_bookings_at=cutoff)
    assert lane.is_closed_for_bookings(datetime(2026, 11, 1, 18, 1))
    assert not lane.is_closed_for_bookings(datetime(2026, 11, 1, 17, 59))
    assert not lane.is_closed_for_cancellations(datetime(2026, 11, 1, 18, 1))


def test_lane_capability_ids():
    lane = Lane(name="Lane A", capabilities=[Capability(id=3, name="alignment"), Capability(id=5, name="tyres")])
    assert lane.capability_ids == {3, 5}
