"""Fixtures partagées / Shared test fixtures."""

from datetime import date, datetime, time

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from capacity_ledger.database import build_engine, get_db, get_session_factory, init_db
from capacity_ledger.main import app
from capacity_ledger.models.capacity_interval import CapacityInterval
from capacity_ledger.models.lane import Capability, Lane
from capacity_ledger.models.lane_interval_capacity import LaneIntervalCapacity
from capacity_ledger.models.sales_item import SalesItem
from capacity_ledger.models.worker_contribution import ContributionInterval, WorkerContribution
from capacity_ledger.rate_limit import limiter
from capacity_ledger.services.interval_seeding import generate_capacity_intervals, sync_contribution_intervals

DAY = date(2026, 11, 2)


def at(hhmm: str, day: date = DAY) -> datetime:
    """Instant UTC naïf du jour de test / Naive UTC instant on the test day."""
    return datetime.combine(day, time.fromisoformat(hhmm))


class LedgerSeeder:
    """Mise en place des données du registre / Ledger data setup."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def intervals(self, start: date = DAY, end: date = DAY, minutes: int = 30) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                return await generate_capacity_intervals(session, start, end, minutes)

    async def capability(self, name: str) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                capability = Capability(name=name)
                session.add(capability)
                await session.flush()
                return capability.id

    async def lane(self, name: str = "Lane A", capability_ids: list[int] | None = None, **fields) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                capabilities = []
                if capability_ids:
                    result = await session.execute(select(Capability).where(Capability.id.in_(capability_ids)))
                    capabilities = list(result.scalars().all())
                lane = Lane(name=name, capabilities=capabilities, **fields)
                session.add(lane)
                await session.flush()
                return lane.id

    async def sales_item(self, name: str, seconds: int, capability_ids: list[int] | None = None) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                capabilities = []
                if capability_ids:
                    result = await session.execute(select(Capability).where(Capability.id.in_(capability_ids)))
                    capabilities = list(result.scalars().all())
                item = SalesItem(name=name, service_time_seconds=seconds, capabilities=capabilities)
                session.add(item)
                await session.flush()
                return item.id

    async def contribution(self, lane_id: int, start: str, end: str, seconds: int, worker_id: int = 1) -> int:
        """Créer une contribution et dériver ses lignes / Create a contribution and derive its rows."""
        async with self.session_factory() as session:
            async with session.begin():
                contribution = WorkerContribution(
                    worker_id=worker_id, lane_id=lane_id, starts_at=at(start), ends_at=at(end),
                    available_seconds=seconds,
                )
                session.add(contribution)
                await session.flush()
                await sync_contribution_intervals(session, [contribution.id])
                return contribution.id

    async def interval_id(self, hhmm: str) -> int:
        async with self.session_factory() as session:
            return await session.scalar(select(CapacityInterval.id).where(CapacityInterval.starts_at == at(hhmm)))

    async def remaining(self, contribution_id: int, interval_id: int) -> int | None:
        async with self.session_factory() as session:
            row = await session.get(ContributionInterval, (contribution_id, interval_id))
            return row.remaining_seconds if row else None

    async def booked(self, lane_id: int, interval_id: int) -> int:
        async with self.session_factory() as session:
            row = await session.get(LaneIntervalCapacity, (lane_id, interval_id))
            return row.total_booked_seconds if row else 0


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def ledger(session_factory):
    return LedgerSeeder(session_factory)


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    limiter.enabled = True
