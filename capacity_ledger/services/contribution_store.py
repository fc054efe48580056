"""
Accès aux compteurs de contribution / Contribution counter data access.

Les seules écritures autorisées sur remaining_seconds passent par
deduct_proportionally (allocation) et restore_* (annulation).
The only writes allowed on remaining_seconds go through
deduct_proportionally (allocation) and restore_* (reversal).
"""

from collections import defaultdict

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from capacity_ledger.models.worker_contribution import ContributionInterval, WorkerContribution
from capacity_ledger.utils.apportion import apportion


async def remaining_by_key(
    session: AsyncSession,
    interval_ids: list[int],
    lane_ids: list[int] | None = None,
) -> dict[tuple[int, int], int]:
    """Somme des secondes restantes par (voie, créneau) / Sum of remaining seconds per (lane, interval)."""
    if not interval_ids:
        return {}
    query = (
        select(
            WorkerContribution.lane_id,
            ContributionInterval.interval_id,
            func.sum(ContributionInterval.remaining_seconds),
        )
        .join(WorkerContribution, WorkerContribution.id == ContributionInterval.contribution_id)
        .where(ContributionInterval.interval_id.in_(interval_ids))
        .group_by(WorkerContribution.lane_id, ContributionInterval.interval_id)
    )
    if lane_ids is not None:
        query = query.where(WorkerContribution.lane_id.in_(lane_ids))
    result = await session.execute(query)
    return {(lane_id, interval_id): int(total or 0) for lane_id, interval_id, total in result.all()}


async def lock_contribution_intervals(
    session: AsyncSession, lane_id: int, interval_ids: list[int]
) -> dict[int, list[ContributionInterval]]:
    """Verrouiller les compteurs d'une voie, groupés par créneau / Lock a lane's counters, grouped by interval.

    Ordre fixe (créneau, contribution) pour éviter les interblocages.
    Fixed (interval, contribution) order to avoid deadlocks.
    """
    grouped: dict[int, list[ContributionInterval]] = defaultdict(list)
    if not interval_ids:
        return grouped
    result = await session.execute(
        select(ContributionInterval)
        .join(WorkerContribution, WorkerContribution.id == ContributionInterval.contribution_id)
        .where(WorkerContribution.lane_id == lane_id, ContributionInterval.interval_id.in_(interval_ids))
        .order_by(ContributionInterval.interval_id, ContributionInterval.contribution_id)
        .with_for_update(of=ContributionInterval)
        .execution_options(populate_existing=True)
    )
    for row in result.scalars().all():
        grouped[row.interval_id].append(row)
    return grouped


def deduct_proportionally(rows: list[ContributionInterval], booked_seconds: int) -> list[tuple[ContributionInterval, int]]:
    """
    Déduire au prorata de la part restante de chaque contribution /
    Deduct in proportion to each contribution's current remaining share.

    deduction_i = floor(booked * remaining_i / sum(remaining)), plafonnée à remaining_i ;
    les secondes d'arrondi vont aux plus grands restes (voir utils.apportion),
    la somme des déductions vaut donc booked_seconds tant que la capacité suffit.
    deduction_i = floor(booked * remaining_i / sum(remaining)), capped at remaining_i;
    rounding seconds go to the largest remainders (see utils.apportion), so the
    deductions add up to booked_seconds whenever capacity allows.
    """
    remaining = [row.remaining_seconds for row in rows]
    deductions = apportion(booked_seconds, remaining, caps=remaining)
    for row, deducted in zip(rows, deductions):
        row.remaining_seconds = max(0, row.remaining_seconds - deducted)
    return list(zip(rows, deductions))


def restore_recorded(rows: list[ContributionInterval], deducted_by_contribution: dict[int, int]) -> int:
    """Rejouer exactement les déductions enregistrées / Replay the recorded deductions exactly.

    Retourne les secondes restituées / Returns the seconds restored.
    """
    restored = 0
    for row in rows:
        amount = deducted_by_contribution.get(row.contribution_id, 0)
        if amount <= 0:
            continue
        new_remaining = min(row.original_seconds, row.remaining_seconds + amount)
        restored += new_remaining - row.remaining_seconds
        row.remaining_seconds = new_remaining
    return restored


def restore_evenly(rows: list[ContributionInterval], booked_seconds: int) -> int:
    """Restituer à parts égales entre les contributions actuelles / Restore evenly across current contributions.

    Utilisé seulement pour les réservations sans détail enregistré.
    Only used for bookings without a recorded breakdown.
    """
    if not rows:
        return 0
    room = [row.original_seconds - row.remaining_seconds for row in rows]
    shares = apportion(booked_seconds, [1] * len(rows), caps=room)
    for row, share in zip(rows, shares):
        row.remaining_seconds += share
    return sum(shares)
