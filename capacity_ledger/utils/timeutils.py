"""Utilitaires horaires / Time utilities.

Le registre stocke des datetimes UTC naïfs / The ledger stores naive UTC datetimes.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Maintenant en UTC naïf / Now as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normaliser en UTC naïf / Normalize to naive UTC.

    Une valeur naïve est considérée comme déjà en UTC.
    A naive value is assumed to already be UTC.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def overlap_seconds(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> int:
    """Chevauchement en secondes entières / Overlap in whole seconds (0 if disjoint)."""
    start = max(start_a, start_b)
    end = min(end_a, end_b)
    if end <= start:
        return 0
    return int((end - start).total_seconds())


def local_hhmm(value: datetime, time_zone: str | None) -> str:
    """Heure murale HH:MM d'un instant UTC naïf / Wall-clock HH:MM of a naive UTC instant."""
    aware = value.replace(tzinfo=timezone.utc)
    return aware.astimezone(ZoneInfo(time_zone or "UTC")).strftime("%H:%M")


def iter_dates(start: date, end: date):
    """Dates de start à end inclus / Dates from start to end inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
