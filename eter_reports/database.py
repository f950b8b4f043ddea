"""
Base de donnees des rapports / Report database.
SQLite en developpement, PostgreSQL en production (SQLAlchemy 2.0 async).
"""

from datetime import datetime, timezone

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from eter_reports.config import settings

_is_sqlite = settings.DATABASE_URL.startswith("sqlite")

if _is_sqlite:
    _engine_kwargs: dict = {"connect_args": {"check_same_thread": False}}
else:
    # Pool de connexions / connection pooling
    _engine_kwargs = {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }

engine = create_async_engine(settings.DATABASE_URL, **_engine_kwargs)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def configure_sqlite(sync_engine) -> None:
    """Clés étrangères actives et lower() Unicode sous SQLite.
    Enforce FK actions and Unicode-aware lower() on SQLite (ILIKE compiles to lower() LIKE lower()).
    """

    @event.listens_for(sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        dbapi_connection.create_function("lower", 1, _unicode_lower)


if _is_sqlite:
    configure_sqlite(engine.sync_engine)


class Base(DeclarativeBase):
    pass


def utc_now() -> datetime:
    """Horodatage UTC naif / Naive UTC timestamp (SQLite drops tzinfo anyway)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def get_db() -> AsyncSession:
    """Session par requete, commit a la fin / Per-request session, committed on success."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db():
    """Creer les tables rapports/utilisateurs/audit / Create report, user and audit tables."""
    import eter_reports.models  # noqa: F401  enregistre les tables / registers tables

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
