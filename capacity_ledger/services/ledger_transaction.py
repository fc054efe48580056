"""
Transactions du registre / Ledger transactions.

Chaque allocation et annulation s'exécute dans une seule transaction :
tout est validé ou rien. Les conflits de sérialisation sont rejoués un nombre
borné de fois avant de remonter en ConcurrencyConflict.
Every allocation and reversal runs inside a single transaction: all or
nothing. Serialization conflicts are replayed a bounded number of times
before surfacing as ConcurrencyConflict.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from capacity_ledger import database
from capacity_ledger.config import settings
from capacity_ledger.exceptions import ConcurrencyConflict

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = {"40001", "40P01"}


def dialect_name(session: AsyncSession) -> str:
    return session.bind.dialect.name


def is_retryable(exc: BaseException) -> bool:
    """Conflit transitoire ? / Transient conflict?"""
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, DBAPIError):
        orig = exc.orig
        code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        if code in RETRYABLE_SQLSTATES:
            return True
        if isinstance(exc, OperationalError) and "database is locked" in str(orig).lower():
            return True
    return False


async def _apply_isolation(session: AsyncSession) -> None:
    # Doit précéder toute requête de la transaction / Must run before any statement of the transaction
    if dialect_name(session) == "sqlite":
        # BEGIN IMMEDIATE, voir database.build_engine / see database.build_engine
        await session.connection(execution_options={database.LEDGER_WRITE_OPTION: True})
        return
    await session.connection(execution_options={"isolation_level": settings.LEDGER_ISOLATION_LEVEL})


async def run_ledger_transaction(
    operation: Callable[[AsyncSession], Awaitable[T]],
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    label: str = "ledger",
) -> T:
    """
    Exécuter `operation` dans une transaction avec reprise / Run `operation` in a transaction with retry.

    Les erreurs métier (LedgerError) annulent la transaction et remontent sans reprise.
    Domain errors (LedgerError) roll the transaction back and propagate without retry.
    """
    factory = session_factory or database.async_session
    attempts = max(1, settings.LEDGER_MAX_RETRIES)

    for attempt in range(1, attempts + 1):
        try:
            async with factory() as session:
                async with session.begin():
                    await _apply_isolation(session)
                    return await operation(session)
        except (DBAPIError, StaleDataError) as exc:
            if not is_retryable(exc):
                raise
            if attempt == attempts:
                logger.error("%s: giving up after %d conflicting attempts", label, attempts)
                raise ConcurrencyConflict() from exc
            delay = settings.LEDGER_RETRY_BACKOFF_MS * attempt * (1 + random.random()) / 1000
            logger.warning("%s: conflict on attempt %d/%d, retrying in %.3fs (%s)", label, attempt, attempts, delay, exc)
            await asyncio.sleep(delay)

    raise ConcurrencyConflict()  # pragma: no cover
