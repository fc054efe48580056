"""
Connexion a la base de donnees / Database connection.
Supporte SQLite (dev) et PostgreSQL (prod) via SQLAlchemy 2.0 async.
"""

import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from capacity_ledger.config import settings

logger = logging.getLogger(__name__)

# Option d'exécution des transactions du registre / Execution option marking ledger transactions
LEDGER_WRITE_OPTION = "ledger_write"


def is_sqlite_url(url: str) -> bool:
    return url.startswith("sqlite")


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Construire un moteur async / Build an async engine.

    SQLite : les transactions du registre (option LEDGER_WRITE_OPTION) sont
    sérialisées par BEGIN IMMEDIATE, les autres ouvrent un BEGIN différé ;
    clés étrangères activées à chaque connexion.
    SQLite: ledger transactions (LEDGER_WRITE_OPTION) are serialized by BEGIN
    IMMEDIATE, others open a deferred BEGIN; foreign keys are enabled on every
    connection.
    """
    engine_kwargs: dict = {"echo": echo}

    if is_sqlite_url(url):
        engine_kwargs["connect_args"] = {"timeout": settings.SQLITE_BUSY_TIMEOUT_SECONDS}
    else:
        # PostgreSQL : connection pooling pour les appels concurrents /
        # PostgreSQL: connection pooling for concurrent callers
        engine_kwargs.update({
            "pool_size": 20,
            "max_overflow": 30,
            "pool_timeout": 30,
            "pool_recycle": 1800,
            "pool_pre_ping": True,
        })

    engine = create_async_engine(url, **engine_kwargs)

    if is_sqlite_url(url):
        @event.listens_for(engine.sync_engine, "connect")
        def _sqlite_connect(dbapi_connection, connection_record):
            # Le driver n'emet plus son propre BEGIN / driver no longer emits its own BEGIN
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _sqlite_begin(conn):
            if conn.get_execution_options().get(LEDGER_WRITE_OPTION):
                conn.exec_driver_sql("BEGIN IMMEDIATE")
            else:
                conn.exec_driver_sql("BEGIN")

    return engine


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    """Dependance FastAPI pour obtenir une session DB / FastAPI dependency for DB session."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Fabrique de sessions pour les transactions du registre / Session factory for ledger transactions.

    Les opérations du registre ouvrent leur propre transaction (avec reprise),
    elles ne partagent pas la session de la requête.
    Ledger operations open their own transaction (with retry) rather than
    sharing the request session.
    """
    return async_session


async def init_db(target: AsyncEngine | None = None):
    """Creer les tables au demarrage / Create tables on startup."""
    # Enregistrer tous les modeles / Register every model
    import capacity_ledger.models  # noqa: F401

    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready (%d tables)", len(Base.metadata.sorted_tables))
