"""SQLAlchemy async engine + session factory for the document store."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from gatekeeper.config import settings


class Base(DeclarativeBase):
    pass


def make_engine(url: str | None = None, **kwargs) -> AsyncEngine:
    url = url or settings.database_url
    kwargs.setdefault("echo", settings.env == "development" and settings.log_level.upper() == "DEBUG")
    return create_async_engine(url, **kwargs)


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables (dev convenience — use Alembic in production)."""
    # Import models so their tables are registered on Base.metadata
    import gatekeeper.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
