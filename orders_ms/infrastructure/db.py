import asyncio

from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from orders_ms.domain.models import Base
from shared.core import get_logger

logger = get_logger(__name__)

_ASYNC_DRIVERS = {"postgresql": "postgresql+asyncpg", "postgres": "postgresql+asyncpg", "sqlite": "sqlite+aiosqlite"}
_SYNC_DRIVERS = {"postgresql": "postgresql+psycopg2", "postgres": "postgresql+psycopg2", "sqlite": "sqlite"}


def _with_driver(database_url: str, drivers: dict) -> URL:
    url = make_url(database_url)
    backend = url.get_backend_name()
    if url.drivername in drivers:
        return url.set(drivername=drivers[url.drivername])
    if backend in drivers and "+" not in url.drivername:
        return url.set(drivername=drivers[backend])
    return url


def async_database_url(database_url: str) -> URL:
    """``postgresql://...`` -> ``postgresql+asyncpg://...``; explicit drivers are kept."""
    return _with_driver(database_url, _ASYNC_DRIVERS)


def sync_database_url(database_url: str) -> URL:
    """URL for synchronous tooling such as alembic."""
    url = make_url(database_url)
    if url.drivername in ("postgresql+asyncpg",):
        url = url.set(drivername="postgresql")
    if url.drivername == "sqlite+aiosqlite":
        url = url.set(drivername="sqlite")
    return _with_driver(url.render_as_string(hide_password=False), _SYNC_DRIVERS)


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    url = async_database_url(database_url)
    if url.get_backend_name() == "sqlite":
        return create_async_engine(url, echo=echo)
    return create_async_engine(url, echo=echo, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def wait_for_db(engine: AsyncEngine, max_attempts: int = 30, delay: float = 1.0) -> int:
    """Block until the database answers ``SELECT 1``; returns the attempt count."""
    for attempt in range(1, max_attempts + 1):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info(f"Database ready after {attempt} attempt(s)")
            return attempt
        except Exception as e:
            logger.warning(f"DB not ready (attempt {attempt}): {e}")
            await asyncio.sleep(delay)
    raise RuntimeError("Database not ready after max attempts")
