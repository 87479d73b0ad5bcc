import logging
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from cinema_booking.core.config import get_settings
from cinema_booking.db.base import Base

logger = logging.getLogger(__name__)

settings = get_settings()


def _enable_sqlite_write_locking(engine: AsyncEngine) -> None:
    # sqlite has no SELECT ... FOR UPDATE, BEGIN IMMEDIATE takes the write
    # lock up front so concurrent booking transactions run one after another
    @event.listens_for(engine.sync_engine, "connect")
    def on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str, echo: bool = False, **kwargs) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"timeout": 30})
        engine = create_async_engine(database_url, echo=echo, **kwargs)
        _enable_sqlite_write_locking(engine)
        return engine
    kwargs.setdefault("pool_size", 10)
    kwargs.setdefault("max_overflow", 20)
    kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(database_url, echo=echo, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)

async_session = build_session_factory(engine)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides an async DB session
    and ensures it's closed after the request.
    """
    async with async_session() as session:
        yield session


async def init_db(bind: AsyncEngine = engine) -> None:
    """
    Create all tables based on models.
    """
    import cinema_booking.models  # noqa: F401  registers every table on Base.metadata

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Created all tables")
