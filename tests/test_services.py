"""Tests des services / Service tests."""

from datetime import datetime

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from capacity_ledger.models.capacity_interval import CapacityInterval
from capacity_ledger.models.worker_contribution import ContributionInterval, WorkerContribution
from capacity_ledger.services.allocation import distribute_service_time
from capacity_ledger.services.contribution_store import deduct_proportionally, restore_evenly, restore_recorded
from capacity_ledger.services.interval_seeding import contribution_shares
from capacity_ledger.services.ledger_transaction import is_retryable
from capacity_ledger.utils.apportion import apportion
from capacity_ledger.utils.timeutils import local_hhmm, overlap_seconds


def _interval(interval_id, start, end):
    return CapacityInterval(
        id=interval_id,
        starts_at=datetime.fromisoformat(f"2026-11-02T{start}"),
        ends_at=datetime.fromisoformat(f"2026-11-02T{end}"),
        date="2026-11-02",
    )


def _row(contribution_id, remaining, original=None):
    return ContributionInterval(
        contribution_id=contribution_id,
        interval_id=1,
        remaining_seconds=remaining,
        original_seconds=original if original is not None else remaining,
    )


def test_apportion_largest_remainder():
    assert apportion(10, [1, 1, 1]) == [4, 3, 3]
    assert apportion(900, [1800, 900]) == [600, 300]
    assert apportion(7, [0, 5]) == [0, 7]


def test_apportion_redistributes_past_caps():
    # La première entrée ne peut prendre que 100 / The first entry can only take 100
    assert apportion(900, [1, 1], caps=[100, 1000]) == [100, 800]


def test_apportion_caps_limit_total():
    assert apportion(3000, [1800, 900], caps=[1800, 900]) == [1800, 900]
    assert apportion(0, [1, 2]) == [0, 0]


def test_overlap_seconds():
    a = datetime(2026, 11, 2, 9, 0)
    b = datetime(2026, 11, 2, 9, 30)
    c = datetime(2026, 11, 2, 10, 0)
    assert overlap_seconds(a, c, b, c) == 1800
    assert overlap_seconds(a, b, b, c) == 0


def test_local_hhmm():
    # 07:00 UTC = 08:00 à Paris en hiver / 08:00 in Paris in winter
    assert local_hhmm(datetime(2026, 11, 2, 7, 0), "Europe/Paris") == "08:00"
    assert local_hhmm(datetime(2026, 11, 2, 7, 0), None) == "07:00"


def test_distribute_fills_left_to_right():
    intervals = [_interval(2, "09:30", "10:00"), _interval(1, "09:00", "09:30")]
    start = datetime(2026, 11, 2, 9, 10)
    end = datetime(2026, 11, 2, 10, 0)
    allocations = distribute_service_time(intervals, 2400, start, end)
    assert [(a.interval_id, a.booked_seconds) for a in allocations] == [(1, 1200), (2, 1200)]


def test_distribute_stops_when_placed():
    intervals = [_interval(1, "09:00", "09:30"), _interval(2, "09:30", "10:00")]
    start = datetime(2026, 11, 2, 9, 0)
    end = datetime(2026, 11, 2, 10, 0)
    allocations = distribute_service_time(intervals, 900, start, end)
    assert [(a.interval_id, a.booked_seconds) for a in allocations] == [(1, 900)]


def test_distribute_leaves_what_does_not_fit():
    intervals = [_interval(1, "09:00", "09:30")]
    start = datetime(2026, 11, 2, 9, 0)
    end = datetime(2026, 11, 2, 9, 30)
    allocations = distribute_service_time(intervals, 2400, start, end)
    assert sum(a.booked_seconds for a in allocations) == 1800


def test_contribution_shares_follow_overlap():
    contribution = WorkerContribution(
        id=1, worker_id=7, lane_id=1,
        starts_at=datetime(2026, 11, 2, 9, 0), ends_at=datetime(2026, 11, 2, 9, 45),
        available_seconds=2700,
    )
    intervals = [_interval(1, "09:00", "09:30"), _interval(2, "09:30", "10:00")]
    assert contribution_shares(contribution, intervals) == {1: 1800, 2: 900}


def test_contribution_shares_skip_uncovered_part():
    contribution = WorkerContribution(
        id=1, worker_id=7, lane_id=1,
        starts_at=datetime(2026, 11, 2, 9, 0), ends_at=datetime(2026, 11, 2, 10, 0),
        available_seconds=1000,
    )
    # Seul 09:00-09:30 existe / Only 09:00-09:30 exists
    assert contribution_shares(contribution, [_interval(1, "09:00", "09:30")]) == {1: 500}


def test_deduct_proportionally():
    rows = [_row(1, 1800), _row(2, 900)]
    deductions = deduct_proportionally(rows, 900)
    assert [d for _, d in deductions] == [600, 300]
    assert [r.remaining_seconds for r in rows] == [1200, 600]


def test_deduct_rounding_goes_to_largest_remainder():
    rows = [_row(1, 100), _row(2, 100), _row(3, 100)]
    deductions = deduct_proportionally(rows, 100)
    assert [d for _, d in deductions] == [34, 33, 33]
    assert sum(r.remaining_seconds for r in rows) == 200


def test_deduct_never_goes_negative():
    rows = [_row(1, 100), _row(2, 50)]
    deduct_proportionally(rows, 1000)
    assert [r.remaining_seconds for r in rows] == [0, 0]


def test_restore_recorded_is_capped_at_original():
    rows = [_row(1, 1200, 1800), _row(2, 850, 900)]
    restored = restore_recorded(rows, {1: 600, 2: 300})
    assert [r.remaining_seconds for r in rows] == [1800, 900]
    assert restored == 650


def test_restore_evenly():
    # Marge 600 et 300 : la seconde ligne sature, la première prend le reste / second row saturates, first takes the rest
    rows = [_row(1, 1200, 1800), _row(2, 600, 900)]
    restored = restore_evenly(rows, 900)
    assert restored == 900
    assert [r.remaining_seconds for r in rows] == [1800, 900]


def test_is_retryable():
    assert is_retryable(StaleDataError("stale"))
    assert is_retryable(OperationalError("BEGIN", {}, Exception("database is locked")))
    assert not is_retryable(OperationalError("SELECT", {}, Exception("no such table")))
    assert not is_retryable(ValueError("nope"))
