"""
Génération des créneaux / Capacity interval generation.

Crée les créneaux manquants sur une plage de dates puis dérive les lignes
de contribution par créneau. Idempotent : relancer ne crée rien de plus.
Creates the missing intervals over a date range then derives the
per-interval contribution rows. Idempotent: re-running creates nothing new.

Usage:
    DATABASE_URL=postgresql+asyncpg://ledger:password@db:5432/ledger \
    python -m scripts.generate_intervals 2026-11-01 2026-11-30 [interval_minutes]
"""

import asyncio
import os
import sys
from datetime import date

# Rendre le package importable / Make the package importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from capacity_ledger.database import async_session, engine, init_db
from capacity_ledger.services.interval_seeding import generate_capacity_intervals, sync_contribution_intervals


async def generate(start_date: date, end_date: date, interval_minutes: int | None = None):
    await init_db()
    print(f"[intervals] {start_date} -> {end_date}")

    async with async_session() as session:
        async with session.begin():
            created = await generate_capacity_intervals(session, start_date, end_date, interval_minutes)
            derived = await sync_contribution_intervals(session)

    await engine.dispose()
    print(f"[intervals] {created} créneaux créés / intervals created, {derived} lignes dérivées / rows derived")


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)
    minutes = int(sys.argv[3]) if len(sys.argv) > 3 else None
    asyncio.run(generate(date.fromisoformat(sys.argv[1]), date.fromisoformat(sys.argv[2]), minutes))
