from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base
from typing import AsyncGenerator
import logging

from ftrmsg.core.config import settings

logger = logging.getLogger(__name__)


def async_database_url(url: str) -> str:
    """Point a postgres URL (either scheme spelling) at the asyncpg driver."""
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


engine = create_async_engine(
    async_database_url(settings.DATABASE_URL),
    pool_size=settings.DATABASE_POOL_SIZE,
    max_overflow=settings.DATABASE_MAX_OVERFLOW,
    pool_pre_ping=True,
    echo=settings.DEBUG,
    connect_args={"server_settings": {"application_name": "ftrmsg-delivery"}},
)

# Services commit each write explicitly; objects stay readable after commit
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session. Anything left uncommitted when the request
    fails is rolled back.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            logger.error(f"Request session rolled back: {e}")
            await session.rollback()
            raise


class DatabaseManager:
    """Schema bootstrap and pool shutdown."""

    @staticmethod
    async def create_tables():
        # Importing the models registers every table on Base.metadata
        import ftrmsg.models  # noqa: F401
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except Exception as e:
            logger.error(f"Schema creation failed: {e}")
            raise
        logger.info("Tables ensured: %s", ", ".join(sorted(Base.metadata.tables)))

    @staticmethod
    async def close_connections():
        try:
            await engine.dispose()
            logger.info("Database pool disposed")
        except Exception as e:
            logger.error(f"Error disposing database pool: {e}")


db_manager = DatabaseManager()
