"""
Async database engine and session management.

Purpose:
- Create SQLAlchemy async engines for the SQL-backed state store
- Provide async session factories bound to those engines
- Provide the Base declarative class for ORM models

Production notes:
- Use connection pooling with appropriate pool_size and max_overflow
- The state store keeps one row per dataset, so one pooled connection is plenty
"""
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from config.settings import settings
import logging

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_engine(url: str | None = None) -> AsyncEngine:
    """Build an async engine for `url` (defaults to settings.DATABASE_URL)."""
    url = url or settings.DATABASE_URL
    engine = create_async_engine(url, echo=settings.DEBUG, future=True)
    logger.info("Async DB engine created for %s", engine.url.render_as_string(hide_password=True))
    return engine


def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def create_schema(engine: AsyncEngine) -> None:
    """Create tables for all ORM models (development convenience)."""
    # imported for its side effect of registering tables on Base.metadata
    import models.db_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
